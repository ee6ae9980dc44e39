"""Shared Jinja2 template loading with per-stack override support."""

from __future__ import annotations

from pathlib import Path

from jinja2 import (
    BaseLoader,
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    StrictUndefined,
)


def build_template_environment(group: str, *, stack_root: Path | None = None) -> Environment:
    """Build a Jinja2 environment with user overrides before packaged defaults.

    User overrides are loaded from ``.holectl/templates/`` inside the stack.
    Both a namespaced directory (for example ``.holectl/templates/stack/``)
    and the shared root are supported.
    """

    loaders: list[BaseLoader] = []
    if stack_root is not None:
        template_root = stack_root / ".holectl" / "templates"
        loaders.append(FileSystemLoader([str(template_root / group), str(template_root)]))

    loaders.append(PackageLoader("holectl", f"templates/{group}"))
    return Environment(
        loader=ChoiceLoader(loaders),
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
