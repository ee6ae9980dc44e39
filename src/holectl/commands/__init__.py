"""Subcommand modules for holectl.

Provides register_commands(), which imports the command modules only when
the root group is assembled.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register the command groups and standalone commands on the root group."""
    # --- Groups ---
    from holectl.commands.acl import acl
    from holectl.commands.route import route
    from holectl.commands.secret import secret

    cli.add_command(acl)
    cli.add_command(route)
    cli.add_command(secret)

    # --- Standalone commands ---
    from holectl.commands.check import check
    from holectl.commands.compose import down, ps, up
    from holectl.commands.init_cmd import init_cmd
    from holectl.commands.plan import plan
    from holectl.commands.verify import verify

    cli.add_command(init_cmd)
    cli.add_command(check)
    cli.add_command(plan)
    cli.add_command(up)
    cli.add_command(down)
    cli.add_command(ps)
    cli.add_command(verify)
