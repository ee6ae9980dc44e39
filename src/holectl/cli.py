"""Root CLI group for holectl with global flags and command registration."""

from __future__ import annotations

from pathlib import Path

import click

from holectl import __version__
from holectl.commands import register_commands
from holectl.commands._context import AppContext
from holectl.config.settings import HoleSettings

_EPILOG = """\
The stack directory is the nearest one (at or above the current directory)
holding holectl.toml or a compose file, unless --stack names it.
"""


@click.group(invoke_without_command=True, epilog=_EPILOG)
@click.version_option(version=__version__, prog_name="holectl")
@click.option(
    "-C",
    "--stack",
    "stack_root",
    type=click.Path(exists=True, file_okay=False, resolve_path=True, path_type=Path),
    envvar="HOLECTL_STACK_ROOT",
    default=None,
    help="Stack directory (skips discovery).",
)
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-q", "--quiet", is_flag=True, help="Minimal output.")
@click.option("-v", "--verbose", is_flag=True, help="Debug logs and span telemetry.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("--no-interact", is_flag=True, help="Never prompt (auth key, overwrite).")
@click.pass_context
def cli(
    ctx: click.Context,
    stack_root: Path | None,
    config_path: str | None,
    **flags: bool,
) -> None:
    """holectl — Pi-hole behind a Tailscale node, as a Compose stack.

    Scaffold the stack, check it offline, evaluate its access policy and
    routes, then hand lifecycle verbs to docker compose.
    """
    ctx.obj = AppContext(
        HoleSettings.from_cli(config_path=config_path, stack_root=stack_root, **flags)
    )
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
