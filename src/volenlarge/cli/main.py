"""
volenlarge CLI Main Entry Point.

Provides the command-line interface and the single place where errors
are turned into messages and exit codes.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, NoReturn

import click
import humanize
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from volenlarge import __version__
from volenlarge.core.config import EnlargeConfig, LoggingConfig, load_config
from volenlarge.core.errors import ContextTimeout, DryRunOperation, VolumeEnlargeError
from volenlarge.core.models import GIB, EnlargeReport
from volenlarge.core.session import Session

console = Console(stderr=True)
output = Console()

DRY_RUN_MESSAGE = "Request would have succeeded, but --dry-run is set. Exiting..."
LOG_LEVELS = ["debug", "info", "warn", "error"]


def fail(error: VolumeEnlargeError) -> NoReturn:
    """Report an error and exit with its code."""
    if isinstance(error, DryRunOperation):
        console.print(f"[green]{DRY_RUN_MESSAGE}[/green]")
    elif isinstance(error, ContextTimeout):
        console.print(f"[yellow]{error}[/yellow]")
    else:
        console.print(f"[red]{error.code}: {error}[/red]")
    sys.exit(error.exit_code)


def build_config(ctx: click.Context, **overrides: Any) -> EnlargeConfig:
    """Layer command options over the loaded configuration."""
    config: EnlargeConfig = ctx.obj["config"]
    try:
        return config.with_overrides(**overrides)
    except ValidationError as e:
        raise click.BadParameter(str(e)) from e


def gib(size: int | None) -> str:
    if size is None:
        return ""
    return humanize.naturalsize(size * GIB, binary=True)


def print_report(report: EnlargeReport, json_output: bool) -> None:
    if json_output:
        click.echo(json.dumps(report.to_dict(), indent=2, default=str))
        return

    table = Table(title="Volume Enlargement")
    table.add_column("Target", style="cyan")
    table.add_column("Old size", style="white")
    table.add_column("New size", style="green")
    table.add_column("Snapshot", style="magenta")
    table.add_column("Wait", style="yellow")

    for volume in report.volumes:
        table.add_row(
            volume.target,
            gib(volume.old_size_gib),
            gib(volume.new_size_gib),
            volume.snapshot_id or "",
            volume.wait_outcome.value if volume.wait_outcome else "not requested",
        )

    output.print(table)


@click.group()
@click.version_option(version=__version__, prog_name="volenlarge")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to a JSON configuration file",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Only log messages with the given severity or above",
)
@click.option("--log-json", is_flag=True, help="Emit logs as JSON")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    log_level: str | None,
    log_json: bool,
    json_output: bool,
) -> None:
    """
    volenlarge - Enlarge an EBS volume or a Kubernetes PVC by a percentage.
    """
    ctx.ensure_object(dict)

    loaded = load_config(config)
    logging_data = loaded.logging.model_dump()
    if log_level:
        logging_data["level"] = log_level
    if log_json:
        logging_data["json_format"] = True
    loaded.logging = LoggingConfig.model_validate(logging_data)

    ctx.obj["config"] = loaded
    ctx.obj["json_output"] = json_output


@cli.command("enlarge")
@click.option("--mount-point", help="Mount point of the volume to be enlarged")
@click.option("--pvc", help="PVC name of the volume to be enlarged")
@click.option("--pvc-namespace", help="Kubernetes namespace where the PVC is located")
@click.option("--percents", type=int, help="By what percentage to increase  [default: 20]")
@click.option("--snapshot/--no-snapshot", default=None, help="Create a volume snapshot first")
@click.option(
    "--k8s-snapshot-class",
    help="VolumeSnapshotClass used for snapshots in Kubernetes  [default: csi-aws-vsc]",
)
@click.option("--dry-run/--no-dry-run", default=None, help="Only show the result")
@click.option(
    "--wait-for-modifying/--no-wait-for-modifying",
    default=None,
    help="Wait for the enlargement to complete",
)
@click.option("--sys-path", type=click.Path(path_type=Path), help="sysfs mount point")
@click.option("--proc-path", type=click.Path(path_type=Path), help="procfs mount point")
@click.option("--dev-path", type=click.Path(path_type=Path), help="devtmpfs mount point")
@click.option("--aws-region", help="AWS region of the volume")
@click.option("--kubeconfig", type=click.Path(path_type=Path), help="Path to a kubeconfig")
@click.pass_context
def enlarge(ctx: click.Context, **options: Any) -> None:
    """Enlarge the volume behind a mount point, or a PVC."""
    config = build_config(ctx, **options)
    try:
        config.validate_target()
    except ValueError as e:
        raise click.UsageError(str(e), ctx=ctx) from e

    session = Session(config=config)
    try:
        report = session.run()
    except VolumeEnlargeError as e:
        fail(e)

    print_report(report, ctx.obj.get("json_output", False))


@cli.command("resolve")
@click.argument("mount_point")
@click.option("--sys-path", type=click.Path(path_type=Path), help="sysfs mount point")
@click.option("--proc-path", type=click.Path(path_type=Path), help="procfs mount point")
@click.option("--dev-path", type=click.Path(path_type=Path), help="devtmpfs mount point")
@click.pass_context
def resolve(ctx: click.Context, mount_point: str, **options: Any) -> None:
    """Show the EBS volume IDs behind a mount point."""
    config = build_config(ctx, **options)
    session = Session(config=config)

    try:
        volume_ids = session.resolve_volume_ids(mount_point)
    except VolumeEnlargeError as e:
        fail(e)

    if ctx.obj.get("json_output", False):
        click.echo(json.dumps({"mount_point": mount_point, "volume_ids": volume_ids}, indent=2))
        return

    table = Table(title=f"EBS volumes behind {mount_point}")
    table.add_column("#", style="dim")
    table.add_column("Volume ID", style="cyan")
    for index, volume_id in enumerate(volume_ids, start=1):
        table.add_row(str(index), volume_id)
    output.print(table)


def main() -> None:
    """Main entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
