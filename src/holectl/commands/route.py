"""Command group: serve-config routing."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from holectl.commands._base import HoleGroup

if TYPE_CHECKING:
    from holectl.commands._context import AppContext


@click.group(
    cls=HoleGroup,
    examples="""\
  holectl route list
  holectl route resolve https://pihole.tailnet-1234.ts.net/admin/""",
)
@click.pass_obj
def route(app: AppContext) -> None:
    """Inspect how the Tailscale node proxies HTTPS requests."""


@route.command(
    examples="""\
  holectl route resolve https://pihole.tailnet-1234.ts.net/admin/
  holectl route resolve pihole.tailnet-1234.ts.net:8443/
  holectl -q route resolve https://pihole.tailnet-1234.ts.net/""",
)
@click.argument("url")
@click.pass_obj
def resolve(app: AppContext, url: str) -> None:
    """Show which backend would answer URL."""
    from holectl.services.route import RouteService

    app.emit(RouteService(app.stack).resolve(url))


@route.command(
    "list",
    examples="""\
  holectl route list
  holectl --json route list""",
)
@click.pass_obj
def list_cmd(app: AppContext) -> None:
    """List every configured mount point."""
    from holectl.services.route import RouteService

    app.emit(RouteService(app.stack).list_routes())
