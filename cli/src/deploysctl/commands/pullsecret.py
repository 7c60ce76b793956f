"""Pull secret commands for deploysctl."""

import click

from ..output import Column, age, field, render_done, render_item, render_list
from .common import (
    CliState,
    call_api,
    location_option,
    name_option,
    pass_state,
    project_option,
    ref_action,
)

COLUMNS = [
    Column("NAME", field("name")),
    Column("SERVER", field("server")),
    Column("USERNAME", field("username")),
    Column("STATUS", field("status")),
    Column("LOCATION", field("location")),
    Column("AGE", age),
]


@click.group(name="pullsecret")
def pullsecret():
    """Manage image registry pull secrets."""


@pullsecret.command()
@project_option
@location_option()
@name_option
@click.option("--server", help="Registry server, e.g. ghcr.io.")
@click.option("--username")
@click.option("--password", envvar="DEPLOYS_PULL_SECRET_PASSWORD")
@click.option("--value", help="Base64 docker config JSON, instead of server/username/password.")
@pass_state
def create(
    state: CliState,
    project: str,
    location: str,
    name: str,
    server: str | None,
    username: str | None,
    password: str | None,
    value: str | None,
):
    """Create a pull secret."""
    spec = None
    if value is None:
        spec = {"server": server or "", "username": username or "", "password": password or ""}
    payload = {
        "project": project,
        "location": location,
        "name": name,
        "spec": spec,
        "value": value,
    }
    result = call_api(state, "pullsecret.create", payload)
    render_done(f"Creating pull secret {name}", result, state.output)


@pullsecret.command()
@project_option
@location_option()
@name_option
@pass_state
def get(state: CliState, project: str, location: str, name: str):
    """Show one pull secret."""
    payload = {"project": project, "location": location, "name": name}
    result = call_api(state, "pullsecret.get", payload)
    render_item(result, COLUMNS, state.output)


@pullsecret.command(name="list")
@project_option
@location_option(required=False)
@pass_state
def list_pull_secrets(state: CliState, project: str, location: str | None):
    """List pull secrets."""
    result = call_api(state, "pullsecret.list", {"project": project, "location": location})
    render_list(result, COLUMNS, state.output)


pullsecret.command(name="delete")(
    ref_action("pullsecret.delete", "Deleting pull secret", "Delete a pull secret.")
)
