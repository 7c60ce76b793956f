"""Workload identity commands for deploysctl."""

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
    Column("GSA", field("gsa")),
    Column("STATUS", field("status")),
    Column("LOCATION", field("location")),
    Column("AGE", age),
]


@click.group(name="workloadidentity")
def workloadidentity():
    """Manage workload identities."""


@workloadidentity.command()
@project_option
@location_option()
@name_option
@click.option("--gsa", required=True, help="Google service account email.")
@pass_state
def create(state: CliState, project: str, location: str, name: str, gsa: str):
    """Bind a workload identity to a service account."""
    payload = {"project": project, "location": location, "name": name, "gsa": gsa}
    result = call_api(state, "workloadidentity.create", payload)
    render_done(f"Creating workload identity {name}", result, state.output)


@workloadidentity.command()
@project_option
@location_option()
@name_option
@pass_state
def get(state: CliState, project: str, location: str, name: str):
    """Show one workload identity."""
    payload = {"project": project, "location": location, "name": name}
    result = call_api(state, "workloadidentity.get", payload)
    render_item(result, COLUMNS, state.output)


@workloadidentity.command(name="list")
@project_option
@location_option(required=False)
@pass_state
def list_workload_identities(state: CliState, project: str, location: str | None):
    """List workload identities."""
    payload = {"project": project, "location": location}
    result = call_api(state, "workloadidentity.list", payload)
    render_list(result, COLUMNS, state.output)


workloadidentity.command(name="delete")(
    ref_action(
        "workloadidentity.delete",
        "Deleting workload identity",
        "Delete a workload identity.",
    )
)
