"""AppContext — shared Click context for all commands.

Created once by the root CLI group and handed to subcommands through
``@click.pass_obj``.  Builds the Stack lazily and owns result emission
(stdout/stderr routing and exit codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from holectl.output.formatters import OutputSettings, format_result

if TYPE_CHECKING:
    from pathlib import Path

    from holectl.config.settings import HoleSettings
    from holectl.infrastructure.stack import Stack
    from holectl.services.result import ServiceResult


class AppContext:
    """Shared context flowing through Click's command hierarchy.

    The stack is created on first use so ``--help`` and ``--version``
    never touch the filesystem beyond config discovery.
    """

    def __init__(self, settings: HoleSettings) -> None:
        self.settings = settings
        self._stack: Stack | None = None

        from holectl.config.logging import configure_logging

        configure_logging(
            verbose=settings.verbose,
            log_json=settings.log_json,
            stack_root=settings.stack_root,
        )

        from holectl.services.telemetry import disable_telemetry, enable_telemetry

        if settings.verbose:
            enable_telemetry()
        else:
            disable_telemetry()

    @property
    def stack(self) -> Stack:
        """The stack for the resolved stack root (created lazily)."""
        if self._stack is None:
            from holectl.infrastructure.stack import Stack

            self._stack = Stack(self.settings)
        return self._stack

    def stack_at(self, root: Path) -> Stack:
        """A stack rooted somewhere other than the discovered root (``init PATH``)."""
        from holectl.infrastructure.stack import Stack

        if root == self.settings.stack_root:
            return self.stack
        return Stack(self.settings.model_copy(update={"stack_root": root}))

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success: writes to stdout.  Warnings go to stderr so they stay
          out of piped output.
        * Failure: writes to stderr and exits with code 1.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            click.echo(output)
            # JSON output already carries the warnings.
            if not settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)
