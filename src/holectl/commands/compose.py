"""Commands: up / down / ps, passed through to ``docker compose``."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from holectl.commands._base import HoleCommand

if TYPE_CHECKING:
    from holectl.commands._context import AppContext

_dry_run = click.option(
    "--dry-run", is_flag=True, help="Print the compose command instead of running it."
)


@click.command(
    cls=HoleCommand,
    examples="""\
  holectl up
  holectl up tailscale
  holectl up --foreground
  holectl up --dry-run""",
)
@click.argument("services", nargs=-1)
@click.option("--foreground", is_flag=True, help="Do not detach (no -d).")
@_dry_run
@click.pass_obj
def up(app: AppContext, services: tuple[str, ...], foreground: bool, dry_run: bool) -> None:
    """Start the stack (or the named services)."""
    from holectl.services.compose import ComposeService

    app.emit(ComposeService(app.stack).up(services, detach=not foreground, dry_run=dry_run))


@click.command(
    cls=HoleCommand,
    examples="""\
  holectl down
  holectl down --volumes
  holectl down --dry-run""",
)
@click.option("--volumes", is_flag=True, help="Also remove named volumes (node state!).")
@_dry_run
@click.pass_obj
def down(app: AppContext, volumes: bool, dry_run: bool) -> None:
    """Stop and remove the stack's containers."""
    if volumes and not dry_run and not app.settings.no_interact:
        click.confirm(
            "Removing volumes deletes the node identity and Pi-hole settings. Continue?",
            abort=True,
        )
    from holectl.services.compose import ComposeService

    app.emit(ComposeService(app.stack).down(volumes=volumes, dry_run=dry_run))


@click.command(
    cls=HoleCommand,
    examples="""\
  holectl ps
  holectl -q ps
  holectl --json ps""",
)
@_dry_run
@click.pass_obj
def ps(app: AppContext, dry_run: bool) -> None:
    """List the stack's containers and their state."""
    from holectl.services.compose import ComposeService

    app.emit(ComposeService(app.stack).ps(dry_run=dry_run))
