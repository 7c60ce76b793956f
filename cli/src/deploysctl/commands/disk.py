"""Disk commands for deploysctl."""

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
    Column("SIZE", lambda item: f"{item.get('size', '-')}Gi"),
    Column("STATUS", field("status")),
    Column("ACTION", field("action")),
    Column("LOCATION", field("location")),
    Column("AGE", age),
]


@click.group(name="disk")
def disk():
    """Manage persistent disks."""


@disk.command()
@project_option
@location_option()
@name_option
@click.option("--size", type=int, required=True, help="Size in GiB.")
@pass_state
def create(state: CliState, project: str, location: str, name: str, size: int):
    """Create a disk."""
    payload = {"project": project, "location": location, "name": name, "size": size}
    result = call_api(state, "disk.create", payload)
    render_done(f"Creating disk {name}", result, state.output)


@disk.command()
@project_option
@location_option()
@name_option
@click.option("--size", type=int, required=True, help="New size in GiB; disks only grow.")
@pass_state
def update(state: CliState, project: str, location: str, name: str, size: int):
    """Resize a disk."""
    payload = {"project": project, "location": location, "name": name, "size": size}
    result = call_api(state, "disk.update", payload)
    render_done(f"Resizing disk {name} to {size}Gi", result, state.output)


@disk.command()
@project_option
@location_option()
@name_option
@pass_state
def get(state: CliState, project: str, location: str, name: str):
    """Show one disk."""
    result = call_api(state, "disk.get", {"project": project, "location": location, "name": name})
    render_item(result, COLUMNS, state.output)


@disk.command(name="list")
@project_option
@location_option(required=False)
@pass_state
def list_disks(state: CliState, project: str, location: str | None):
    """List disks."""
    result = call_api(state, "disk.list", {"project": project, "location": location})
    render_list(result, COLUMNS, state.output)


disk.command(name="delete")(ref_action("disk.delete", "Deleting disk", "Delete a disk."))
