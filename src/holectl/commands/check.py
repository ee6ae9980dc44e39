"""Command: whole-stack validation."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from holectl.commands._base import HoleCommand

if TYPE_CHECKING:
    from holectl.commands._context import AppContext


@click.command(
    cls=HoleCommand,
    examples="""\
  holectl check
  holectl check --errors-only
  holectl check --min-severity error
  holectl --json check | jq '.data.healthy'""",
)
@click.option(
    "--min-severity",
    type=click.Choice(["warning", "error"]),
    default="warning",
    help="Hide issues below this severity.",
)
@click.option("--errors-only", is_flag=True, help="Shortcut for --min-severity error.")
@click.pass_obj
def check(app: AppContext, min_severity: str, errors_only: bool) -> None:
    """Validate the descriptors, the secret and how they are wired together."""
    from holectl.services.check import CheckService

    threshold = "error" if errors_only else min_severity
    app.emit(CheckService(app.stack).check(min_severity=threshold))
