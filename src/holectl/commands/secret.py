"""Command group: the node's auth-key secret."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from holectl.commands._base import HoleGroup

if TYPE_CHECKING:
    from holectl.commands._context import AppContext


@click.group(
    cls=HoleGroup,
    examples="""\
  holectl secret set
  holectl secret status""",
)
@click.pass_obj
def secret(app: AppContext) -> None:
    """Manage the Tailscale auth key file."""


@secret.command(
    "set",
    examples="""\
  holectl secret set
  holectl secret set --stdin < key.txt
  holectl --no-interact secret set --stdin""",
)
@click.option("--stdin", "from_stdin", is_flag=True, help="Read the key from standard input.")
@click.pass_obj
def set_cmd(app: AppContext, from_stdin: bool) -> None:
    """Write the auth key with owner-only permissions."""
    if from_stdin:
        value = click.get_text_stream("stdin").read()
    elif app.settings.no_interact:
        raise click.UsageError("--no-interact needs --stdin to read the key")
    else:
        value = click.prompt("Tailscale auth key", hide_input=True)

    from holectl.services.secret import SecretService

    app.emit(SecretService(app.stack).set_auth_key(value))


@secret.command(
    examples="""\
  holectl secret status
  holectl --json secret status""",
)
@click.pass_obj
def status(app: AppContext) -> None:
    """Show whether the key file exists, its mode and a masked value."""
    from holectl.services.secret import SecretService

    app.emit(SecretService(app.stack).status())
