"""Click base classes with ``--examples`` support.

HoleCommand and HoleGroup take an ``examples`` string.  Passing
``--examples`` prints it and exits, which keeps ``--help`` short while
still documenting typical invocations.
"""

from __future__ import annotations

from typing import Any

import click


def _add_examples_option(cmd: click.Command, examples: str) -> None:
    """Attach an eager ``--examples`` flag to a command or group."""

    def show_examples(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
        if not value:
            return
        click.echo(f"Examples for '{ctx.command_path}':\n")
        click.echo(examples)
        ctx.exit(0)

    cmd.params.append(
        click.Option(
            ["--examples"],
            is_flag=True,
            expose_value=False,
            is_eager=True,
            callback=show_examples,
            help="Show usage examples.",
        )
    )


class HoleCommand(click.Command):
    """Command that accepts ``examples=`` and exposes ``--examples``."""

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        if examples:
            _add_examples_option(self, examples)


class HoleGroup(click.Group):
    """Group counterpart of :class:`HoleCommand`.

    ``command_class`` makes every ``@group.command`` a HoleCommand, so
    subcommands take ``examples=`` without repeating ``cls=``.
    """

    command_class = HoleCommand

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        if examples:
            _add_examples_option(self, examples)
