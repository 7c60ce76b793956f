"""Deployment commands for deploysctl."""

from pathlib import Path

import click

from controlplane.app.models.resources import DeploymentProtocol, DeploymentType

from ..output import Column, age, field, render_done, render_item, render_list
from .common import (
    CliState,
    call_api,
    location_option,
    name_option,
    pass_state,
    parse_pairs,
    project_option,
    ref_action,
)

LIST_COLUMNS = [
    Column("NAME", field("name")),
    Column("TYPE", field("type")),
    Column("STATUS", field("status")),
    Column("ACTION", field("action")),
    Column("REVISION", field("revision")),
    Column("IMAGE", field("image")),
    Column("LOCATION", field("location")),
    Column("AGE", age),
]

DETAIL_COLUMNS = [
    Column("Name", field("name")),
    Column("Project", field("project")),
    Column("Location", field("location")),
    Column("Type", field("type")),
    Column("Status", field("status")),
    Column("Action", field("action")),
    Column("Revision", field("revision")),
    Column("Image", field("image")),
    Column("Replicas", lambda item: f"{item.get('minReplicas', '-')}-{item.get('maxReplicas', '-')}"),
    Column("Port", field("port")),
    Column("Node port", field("nodePort")),
    Column("Created by", field("createdBy")),
    Column("Age", age),
]

REVISION_COLUMNS = [
    Column("REVISION", field("revision")),
    Column("IMAGE", field("image")),
    Column("STATUS", field("status")),
    Column("CREATED BY", field("createdBy")),
    Column("AGE", age),
]


def _parse_disk(value: str | None) -> dict | None:
    if value is None:
        return None
    parts = value.split(":")
    if len(parts) not in (2, 3) or not parts[0] or not parts[1]:
        raise click.BadParameter("expected NAME:MOUNT_PATH[:SUB_PATH]", param_hint="--disk")
    disk = {"name": parts[0], "mountPath": parts[1]}
    if len(parts) == 3:
        disk["subPath"] = parts[2]
    return disk


def _parse_resources(
    cpu_request: str | None,
    memory_request: str | None,
    cpu_limit: str | None,
    memory_limit: str | None,
) -> dict | None:
    if not any((cpu_request, memory_request, cpu_limit, memory_limit)):
        return None
    requests = {k: v for k, v in (("cpu", cpu_request), ("memory", memory_request)) if v}
    limits = {k: v for k, v in (("cpu", cpu_limit), ("memory", memory_limit)) if v}
    return {"requests": requests, "limits": limits}


def _read_mount_data(values: tuple[str, ...]) -> dict[str, str] | None:
    pairs = parse_pairs(values, "--mount-data")
    if pairs is None:
        return None
    return {
        mount_path: Path(local_file).read_text(encoding="utf-8")
        for mount_path, local_file in pairs.items()
    }


@click.group(name="deployment")
def deployment():
    """Manage deployments."""


@deployment.command()
@project_option
@location_option()
@name_option
@click.option("--image", help="Container image.")
@click.option("--type", "type_", type=click.Choice([t.value for t in DeploymentType]))
@click.option("--port", type=int, help="Container port.")
@click.option("--protocol", type=click.Choice([p.value for p in DeploymentProtocol]))
@click.option("--min-replicas", type=int)
@click.option("--max-replicas", type=int)
@click.option("--env", multiple=True, help="Replace the whole environment (KEY=VALUE).")
@click.option("--add-env", multiple=True, help="Set one environment variable (KEY=VALUE).")
@click.option("--remove-env", multiple=True, help="Remove one environment variable.")
@click.option("--command", "command_", multiple=True, help="Container command.")
@click.option("--arg", "args", multiple=True, help="Container argument.")
@click.option("--workload-identity")
@click.option("--pull-secret")
@click.option("--disk", help="Mount a disk as NAME:MOUNT_PATH[:SUB_PATH].")
@click.option("--schedule", help="Cron schedule for CronJob deployments.")
@click.option("--cpu-request")
@click.option("--memory-request")
@click.option("--cpu-limit")
@click.option("--memory-limit")
@click.option("--mount-data", multiple=True, help="Mount a local file as MOUNT_PATH=LOCAL_FILE.")
@pass_state
def deploy(
    state: CliState,
    project: str,
    location: str,
    name: str,
    image: str | None,
    type_: str | None,
    port: int | None,
    protocol: str | None,
    min_replicas: int | None,
    max_replicas: int | None,
    env: tuple[str, ...],
    add_env: tuple[str, ...],
    remove_env: tuple[str, ...],
    command_: tuple[str, ...],
    args: tuple[str, ...],
    workload_identity: str | None,
    pull_secret: str | None,
    disk: str | None,
    schedule: str | None,
    cpu_request: str | None,
    memory_request: str | None,
    cpu_limit: str | None,
    memory_limit: str | None,
    mount_data: tuple[str, ...],
):
    """Create a deployment or roll out a new revision."""
    payload = {
        "project": project,
        "location": location,
        "name": name,
        "image": image,
        "type": type_,
        "port": port,
        "protocol": protocol,
        "minReplicas": min_replicas,
        "maxReplicas": max_replicas,
        "env": parse_pairs(env, "--env"),
        "addEnv": parse_pairs(add_env, "--add-env"),
        "removeEnv": list(remove_env) or None,
        "command": list(command_) or None,
        "args": list(args) or None,
        "workloadIdentity": workload_identity,
        "pullSecret": pull_secret,
        "disk": _parse_disk(disk),
        "schedule": schedule,
        "resources": _parse_resources(cpu_request, memory_request, cpu_limit, memory_limit),
        "mountData": _read_mount_data(mount_data),
    }
    result = call_api(state, "deployment.deploy", payload)
    render_done(f"Deploying {name}", result, state.output)


@deployment.command()
@project_option
@location_option()
@name_option
@click.option("--revision", type=int, default=0, show_default=True, help="0 means latest.")
@pass_state
def get(state: CliState, project: str, location: str, name: str, revision: int):
    """Show one deployment."""
    payload = {"project": project, "location": location, "name": name, "revision": revision}
    result = call_api(state, "deployment.get", payload)
    render_item(result, DETAIL_COLUMNS, state.output)


@deployment.command(name="list")
@project_option
@location_option(required=False)
@pass_state
def list_deployments(state: CliState, project: str, location: str | None):
    """List deployments."""
    result = call_api(state, "deployment.list", {"project": project, "location": location})
    render_list(result, LIST_COLUMNS, state.output)


@deployment.command()
@project_option
@location_option()
@name_option
@pass_state
def revisions(state: CliState, project: str, location: str, name: str):
    """List the revision history of a deployment."""
    payload = {"project": project, "location": location, "name": name}
    result = call_api(state, "deployment.revisions", payload)
    render_list(result, REVISION_COLUMNS, state.output)


@deployment.command()
@project_option
@location_option()
@name_option
@click.option("--revision", type=int, required=True, help="Revision to restore.")
@pass_state
def rollback(state: CliState, project: str, location: str, name: str, revision: int):
    """Re-deploy the spec of an earlier revision."""
    payload = {"project": project, "location": location, "name": name, "revision": revision}
    result = call_api(state, "deployment.rollback", payload)
    render_done(f"Rolling back {name} to revision {revision}", result, state.output)


deployment.command(name="pause")(ref_action("deployment.pause", "Pausing", "Pause a deployment."))
deployment.command(name="resume")(
    ref_action("deployment.resume", "Resuming", "Resume a paused deployment.")
)
deployment.command(name="delete")(ref_action("deployment.delete", "Deleting", "Delete a deployment."))
