"""Command group: offline access-policy evaluation."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from holectl.commands._base import HoleGroup

if TYPE_CHECKING:
    from holectl.commands._context import AppContext

_ACL_EXAMPLES = """\
  holectl acl test alice@example.com tag:pihole:53
  holectl acl test group:dns-admins tag:pihole:443
  holectl acl run-tests
  holectl acl show"""


@click.group(cls=HoleGroup, examples=_ACL_EXAMPLES)
@click.pass_obj
def acl(app: AppContext) -> None:
    """Evaluate the tailnet policy file without a control server."""


@acl.command(
    "test",
    examples="""\
  holectl acl test alice@example.com tag:pihole:53
  holectl acl test tag:pihole tag:pihole:443
  holectl -q acl test 100.64.0.7 tag:pihole:53""",
)
@click.argument("src")
@click.argument("dst")
@click.pass_obj
def test_cmd(app: AppContext, src: str, dst: str) -> None:
    """Would SRC be allowed to reach DST (target:port)?"""
    from holectl.services.policy import PolicyService

    app.emit(PolicyService(app.stack).test(src, dst))


@acl.command(
    "run-tests",
    examples="""\
  holectl acl run-tests
  holectl --json acl run-tests""",
)
@click.pass_obj
def run_tests(app: AppContext) -> None:
    """Run the assertions in the policy's tests section."""
    from holectl.services.policy import PolicyService

    app.emit(PolicyService(app.stack).run_tests())


@acl.command(
    examples="""\
  holectl acl show
  holectl --json acl show""",
)
@click.pass_obj
def show(app: AppContext) -> None:
    """Summarize groups, tag owners and rules."""
    from holectl.services.policy import PolicyService

    app.emit(PolicyService(app.stack).show())
