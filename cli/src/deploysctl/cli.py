"""Main CLI entry point for deploysctl."""

from pathlib import Path

import click
from rich.console import Console

from .commands import deployment, disk, pullsecret, route, workloadidentity
from .commands.common import CliState
from .config import Config
from .output import OUTPUT_FORMATS

console = Console()


@click.group()
@click.version_option(version="0.1.0")
@click.option(
    "--output",
    "-o",
    type=click.Choice(OUTPUT_FORMATS),
    default="table",
    show_default=True,
    help="Output format.",
)
@click.pass_context
def main(ctx: click.Context, output: str):
    """deploysctl - command line client for the Deploys control plane."""
    state = ctx.ensure_object(CliState)
    state.output = output


@main.command()
@click.option("--endpoint", help="Control plane base URL.")
@click.option("--token", help="Bearer token for the public API.")
@click.option("--actor", help="Name recorded as createdBy on new resources.")
@click.option("--config-path", type=click.Path(path_type=Path), default=None, hidden=True)
def configure(
    endpoint: str | None,
    token: str | None,
    actor: str | None,
    config_path: Path | None,
):
    """Write ~/.config/deploys/config.yaml."""
    config = Config.load(config_path, environ={})
    if endpoint is not None:
        config.endpoint = endpoint
    if token is not None:
        config.token = token
    if actor is not None:
        config.actor = actor
    saved = config.save(config_path)
    console.print(f"[green]Saved config to[/green] {saved}")


# Resource groups
main.add_command(deployment.deployment)
main.add_command(disk.disk)
main.add_command(pullsecret.pullsecret)
main.add_command(workloadidentity.workloadidentity)
main.add_command(route.route)

# Short aliases
main.add_command(deployment.deployment, name="d")
main.add_command(pullsecret.pullsecret, name="ps")
main.add_command(workloadidentity.workloadidentity, name="wi")


if __name__ == "__main__":
    main()
