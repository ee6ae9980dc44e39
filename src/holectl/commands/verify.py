"""Command: functional DNS check against the running Pi-hole."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from holectl.commands._base import HoleCommand

if TYPE_CHECKING:
    from holectl.commands._context import AppContext


@click.command(
    cls=HoleCommand,
    examples="""\
  holectl verify
  holectl verify --resolver 100.64.0.53
  holectl verify --blocked ads.example.net --allowed example.org""",
)
@click.option("--resolver", default=None, help="Resolver address (default: [verify] resolver).")
@click.option("--blocked", "blocked_domain", default=None, help="Domain that must be blocked.")
@click.option("--allowed", "allowed_domain", default=None, help="Domain that must resolve.")
@click.pass_obj
def verify(
    app: AppContext,
    resolver: str | None,
    blocked_domain: str | None,
    allowed_domain: str | None,
) -> None:
    """Check that Pi-hole blocks and resolves as expected."""
    from holectl.services.verify import VerifyService

    app.emit(
        VerifyService(app.stack).verify(
            resolver=resolver,
            blocked_domain=blocked_domain,
            allowed_domain=allowed_domain,
        )
    )
