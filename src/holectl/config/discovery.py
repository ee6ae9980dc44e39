"""Stack and config discovery.

A stack directory is recognised by its ``holectl.toml`` or, for stacks
written by hand, by a compose file.  Lookup walks up from the cwd the way
``docker compose`` itself searches for its project file, so commands work
from ``tailscale/`` or ``secrets/`` as well as from the stack root.

``HOLECTL_CONFIG`` and ``--config`` bypass the walk for the config file.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

CONFIG_FILENAME = "holectl.toml"
CONFIG_ENV_VAR = "HOLECTL_CONFIG"

# Same preference order as `docker compose` when -f is not given.
COMPOSE_FILENAMES = (
    "compose.yaml",
    "compose.yml",
    "docker-compose.yaml",
    "docker-compose.yml",
)


def _ancestors(start: Path | None) -> Iterator[Path]:
    current = (start or Path.cwd()).resolve()
    yield current
    yield from current.parents


def find_config(start: Path | None = None) -> Path | None:
    """Return the nearest holectl.toml at or above *start* (default: cwd).

    A set ``HOLECTL_CONFIG`` wins over the walk; when it points at a
    missing file there is no config at all.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        p = Path(env_path)
        return p if p.is_file() else None

    for directory in _ancestors(start):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def detect_compose_file(root: Path) -> str | None:
    """Name of the compose file ``docker compose`` would pick in *root*."""
    for name in COMPOSE_FILENAMES:
        if (root / name).is_file():
            return name
    return None


def find_stack_root(start: Path | None = None) -> Path | None:
    """Nearest directory at or above *start* holding holectl.toml or a compose file."""
    for directory in _ancestors(start):
        if (directory / CONFIG_FILENAME).is_file() or detect_compose_file(directory):
            return directory
    return None
