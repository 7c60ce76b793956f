"""Route commands for deploysctl."""

import click

from ..output import Column, age, field, render_done, render_item, render_list
from .common import CliState, call_api, location_option, pass_state, project_option

COLUMNS = [
    Column("DOMAIN", field("domain")),
    Column("PATH", field("path")),
    Column("TARGET", field("target")),
    Column("STATUS", field("status")),
    Column("LOCATION", field("location")),
    Column("AGE", age),
]


def _route_options(func):
    func = click.option("--path", default="/", show_default=True)(func)
    func = click.option("--domain", "-d", required=True)(func)
    return func


def _route_config(basic_auth: str | None, forward_auth: str | None) -> dict | None:
    config: dict = {}
    if basic_auth is not None:
        user, sep, password = basic_auth.partition(":")
        if not sep or not user:
            raise click.BadParameter("expected USER:PASSWORD", param_hint="--basic-auth")
        config["basicAuth"] = {"user": user, "password": password}
    if forward_auth is not None:
        config["forwardAuth"] = {"target": forward_auth}
    return config or None


@click.group(name="route")
def route():
    """Manage HTTP routes."""


@route.command()
@project_option
@location_option()
@_route_options
@click.option("--deployment", help="Route to a deployment in the same project.")
@click.option("--target", help="Route to an explicit target such as redirect://...")
@click.option("--basic-auth", help="Protect the route with USER:PASSWORD.")
@click.option("--forward-auth", help="Delegate authentication to an http(s) URL.")
@pass_state
def create(
    state: CliState,
    project: str,
    location: str,
    domain: str,
    path: str,
    deployment: str | None,
    target: str | None,
    basic_auth: str | None,
    forward_auth: str | None,
):
    """Create a route."""
    payload = {
        "project": project,
        "location": location,
        "domain": domain,
        "path": path,
        "deployment": deployment,
        "target": target,
        "config": _route_config(basic_auth, forward_auth),
    }
    result = call_api(state, "route.create", payload)
    render_done(f"Creating route {domain}{path}", result, state.output)


@route.command()
@project_option
@location_option()
@_route_options
@pass_state
def get(state: CliState, project: str, location: str, domain: str, path: str):
    """Show one route."""
    payload = {"project": project, "location": location, "domain": domain, "path": path}
    result = call_api(state, "route.get", payload)
    render_item(result, COLUMNS, state.output)


@route.command(name="list")
@project_option
@location_option(required=False)
@pass_state
def list_routes(state: CliState, project: str, location: str | None):
    """List routes."""
    result = call_api(state, "route.list", {"project": project, "location": location})
    render_list(result, COLUMNS, state.output)


@route.command()
@project_option
@location_option()
@_route_options
@pass_state
def delete(state: CliState, project: str, location: str, domain: str, path: str):
    """Delete a route."""
    payload = {"project": project, "location": location, "domain": domain, "path": path}
    result = call_api(state, "route.delete", payload)
    render_done(f"Deleting route {domain}{path}", result, state.output)
