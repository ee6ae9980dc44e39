"""Rich Console factory and theme for holectl output.

Consoles render into a StringIO buffer so renderers keep the
``render_result() -> str`` contract.  Outside a terminal (tests, pipes)
Rich drops the color codes on its own.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

HOLE_THEME = Theme(
    {
        "hole.ok": "bold green",
        "hole.error": "bold red",
        "hole.warning": "bold yellow",
        "hole.op": "bold cyan",
        "hole.key": "dim",
        "hole.service": "bold blue",
        "hole.path": "dim",
        "hole.allow": "green",
        "hole.deny": "red",
        "hole.secret": "magenta",
    }
)

_SEVERITY_STYLES: dict[str, str] = {
    "error": "hole.error",
    "warning": "hole.warning",
}


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer."""
    return Console(
        file=StringIO(),
        theme=HOLE_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_severity(severity: str) -> str:
    return _SEVERITY_STYLES.get(severity, "")
