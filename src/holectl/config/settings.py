"""Unified settings — CLI flags, env vars, and TOML config in one object.

Priority chain (highest to lowest):
  1. Init kwargs  — CLI flags passed by Click
  2. Env vars     — ``HOLECTL_*`` prefix
  3. TOML file    — ``holectl.toml`` discovered via walk-up
  4. Code defaults — baked into the section models

Uses Pydantic Settings v2 with a custom :class:`TomlSettingsSource` that
reuses the ``find_config`` walk-up discovery from
:mod:`holectl.config.discovery`.
"""

from __future__ import annotations

import threading
import tomllib
from pathlib import Path
from typing import Any, ClassVar

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from holectl.config.discovery import find_config, find_stack_root
from holectl.config.models import (
    ComposeConfig,
    PiholeConfig,
    StackConfig,
    TailscaleConfig,
    VerifyConfig,
)


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Read settings from a ``holectl.toml`` file discovered via walk-up."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path and toml_path.is_file():
            raw = toml_path.read_text(encoding="utf-8")
            try:
                self._data = tomllib.loads(raw)
            except tomllib.TOMLDecodeError as exc:
                import click

                msg = f"Invalid TOML in {toml_path}: {exc}"
                raise click.ClickException(msg) from exc

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Return ``(value, field_name, value_is_complex)``."""
        val = self._data.get(field_name)
        return val, field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        """Return the full TOML data dict for Pydantic to merge."""
        return self._data


# Thread-local storage for TOML path during construction.
_tls = threading.local()


class HoleSettings(BaseSettings):
    """Unified settings for the entire holectl CLI.

    Merges CLI flags, environment variables, TOML config sections,
    and code-baked defaults into a single frozen object.  Stored on the
    :class:`~holectl.commands._context.AppContext` at the CLI root level.

    Attributes:
        stack_root: Resolved stack directory (parent of ``holectl.toml``,
            or CWD if no config found).
        config_path: Explicit ``--config`` override, or None for discovery.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "HOLECTL_",
        "env_nested_delimiter": "__",
    }

    # --- Resolved path (not in TOML — derived from config location) ---
    stack_root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    # --- CLI flags ---
    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False
    no_interact: bool = False

    # --- TOML sections ---
    stack: StackConfig = Field(default_factory=StackConfig)
    tailscale: TailscaleConfig = Field(default_factory=TailscaleConfig)
    pihole: PiholeConfig = Field(default_factory=PiholeConfig)
    compose: ComposeConfig = Field(default_factory=ComposeConfig)
    verify: VerifyConfig = Field(default_factory=VerifyConfig)

    # Retained for type-checker visibility; not used at runtime.
    _toml_path: ClassVar[Path | None] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert TOML source between env vars and defaults."""
        toml_path = getattr(_tls, "toml_path", None)
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, toml_path),
        )

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        stack_root: Path | None = None,
        **cli_flags: Any,
    ) -> HoleSettings:
        """Construct settings from CLI invocation.

        Discovers ``holectl.toml`` via walk-up (or explicit *config_path*),
        resolves *stack_root* from the config file's parent directory (or the
        nearest directory holding a compose file),
        and merges CLI flags as highest-priority overrides.
        """
        toml_path: Path | None = None
        if config_path:
            p = Path(config_path)
            if p.is_file():
                toml_path = p
        else:
            toml_path = find_config(stack_root)

        resolved_root = stack_root
        if resolved_root is None and toml_path is not None:
            resolved_root = toml_path.parent
        if resolved_root is None:
            resolved_root = find_stack_root() or Path.cwd()

        _tls.toml_path = toml_path
        try:
            return cls(
                stack_root=resolved_root,
                config_path=toml_path,
                **cli_flags,
            )
        finally:
            _tls.toml_path = None
