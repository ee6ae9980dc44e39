"""Command: start/stop order of the compose services."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from holectl.commands._base import HoleCommand

if TYPE_CHECKING:
    from holectl.commands._context import AppContext


@click.command(
    cls=HoleCommand,
    examples="""\
  holectl plan
  holectl -v plan
  holectl --json plan""",
)
@click.pass_obj
def plan(app: AppContext) -> None:
    """Show the order in which services start and stop."""
    from holectl.services.plan import PlanService

    app.emit(PlanService(app.stack).plan())
