"""Shared state, options and error handling for deploysctl commands."""

from dataclasses import dataclass
from typing import Any

import click
from rich.console import Console
from rich.markup import escape

from controlplane.app.errors import TransportError

from ..client import ApiClient, ApiClientError, Invoker
from ..config import Config
from ..output import render_done

err_console = Console(stderr=True)


@dataclass
class CliState:
    output: str = "table"
    client: Invoker | None = None

    def api(self) -> Invoker:
        if self.client is None:
            self.client = ApiClient.from_config(Config.load())
        return self.client


pass_state = click.make_pass_decorator(CliState, ensure=True)


def project_option(func):
    return click.option(
        "--project",
        "-p",
        envvar="DEPLOYS_PROJECT",
        required=True,
        help="Project id (or DEPLOYS_PROJECT).",
    )(func)


def location_option(required: bool = True):
    def decorator(func):
        return click.option(
            "--location",
            "-l",
            envvar="DEPLOYS_LOCATION",
            required=required,
            default=None,
            help="Location id (or DEPLOYS_LOCATION).",
        )(func)

    return decorator


def name_option(func):
    return click.option("--name", "-n", required=True, help="Resource name.")(func)


def compact(payload: dict[str, Any]) -> dict[str, Any]:
    """Drop unset options so the server keeps previous values."""
    return {key: value for key, value in payload.items() if value is not None}


def call_api(state: CliState, method: str, payload: dict[str, Any]) -> Any:
    try:
        return state.api().invoke(method, compact(payload))
    except ApiClientError as exc:
        err_console.print(f"[red]Error:[/red] {escape(exc.message)}")
        for item in exc.items:
            err_console.print(f"  - {escape(item)}")
    except TransportError as exc:
        err_console.print(f"[red]Error:[/red] {escape(exc.message)} (retryable)")
    raise click.exceptions.Exit(1)


def ref_action(method: str, verb: str, help_text: str):
    """Build a command that sends `{project, location, name}` to `method`."""

    @project_option
    @location_option()
    @name_option
    @pass_state
    def command(state: CliState, project: str, location: str, name: str):
        payload = {"project": project, "location": location, "name": name}
        result = call_api(state, method, payload)
        render_done(f"{verb} {name}", result, state.output)

    command.__doc__ = help_text
    return command


def parse_pairs(values: tuple[str, ...], option: str) -> dict[str, str] | None:
    if not values:
        return None
    pairs: dict[str, str] = {}
    for raw in values:
        key, sep, value = raw.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {raw!r}", param_hint=option)
        pairs[key] = value
    return pairs
