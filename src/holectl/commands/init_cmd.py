"""Command: stack scaffolding (named init_cmd to avoid shadowing builtins)."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from holectl.commands._base import HoleCommand

if TYPE_CHECKING:
    from holectl.commands._context import AppContext

_INIT_EXAMPLES = """\
  holectl init
  holectl init ./pihole --hostname dns --admin alice@example.com
  holectl init . --tag tag:dns --timezone Europe/Berlin --web-password
  holectl --no-interact init /srv/pihole --admin alice@example.com --auth-key tskey-auth-XXXX
  holectl init --force --admin alice@example.com"""


@click.command("init", cls=HoleCommand, examples=_INIT_EXAMPLES)
@click.argument("path", required=False, default=".")
@click.option("--hostname", default=None, help="Tailnet machine name of the node.")
@click.option("--tag", default=None, help="ACL tag the node advertises (tag:<name>).")
@click.option("--timezone", default=None, help="Pi-hole TZ, e.g. Europe/Berlin.")
@click.option(
    "--admin",
    "admins",
    multiple=True,
    help="Tailnet login allowed to reach the admin UI (repeatable).",
)
@click.option(
    "--auth-key",
    envvar="TS_AUTHKEY",
    default=None,
    help="Tailscale auth key (prompted when omitted; also read from TS_AUTHKEY).",
)
@click.option(
    "--web-password",
    is_flag=False,
    flag_value="",
    default=None,
    help="Pi-hole admin password (prompted when given without a value).",
)
@click.option("--force", is_flag=True, help="Overwrite an existing stack.")
@click.pass_obj
def init_cmd(
    app: AppContext,
    path: str,
    hostname: str | None,
    tag: str | None,
    timezone: str | None,
    admins: tuple[str, ...],
    auth_key: str | None,
    web_password: str | None,
    force: bool,
) -> None:
    """Scaffold a Pi-hole + Tailscale stack directory."""
    stack = app.stack_at(Path(path).resolve())
    defaults = stack.settings
    interactive = not app.settings.no_interact

    if interactive:
        if hostname is None:
            hostname = click.prompt("Tailnet hostname", default=defaults.tailscale.hostname)
        if tag is None:
            tag = click.prompt("Node tag", default=defaults.tailscale.tag)
        if timezone is None:
            timezone = click.prompt("Timezone", default=defaults.pihole.timezone)
        if not admins:
            raw = click.prompt("Admin logins (comma-separated)")
            admins = tuple(a.strip() for a in raw.split(",") if a.strip())
        if auth_key is None:
            auth_key = click.prompt("Tailscale auth key", hide_input=True)
        if web_password == "":
            web_password = click.prompt(
                "Pi-hole admin password", hide_input=True, confirmation_prompt=True
            )

    from holectl.services.init import InitService

    app.emit(
        InitService(stack).init_stack(
            auth_key=auth_key or "",
            admins=list(admins),
            hostname=hostname,
            tag=tag,
            timezone=timezone,
            web_password=web_password or None,
            force=force,
        )
    )
