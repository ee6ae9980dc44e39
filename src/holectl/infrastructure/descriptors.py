"""Load descriptor files from disk.

YAML goes through ruamel.yaml's safe loader.  JSON descriptors are read with
the standard library.  Both raise :class:`DescriptorSyntaxError` with the file
name so services can turn it into a ``PARSE_ERROR`` result.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from holectl.domain.types import DescriptorSyntaxError

_YAML_SUFFIXES = frozenset({".yml", ".yaml"})


def load_yaml(path: Path) -> Any:
    try:
        return YAML(typ="safe").load(path.read_text(encoding="utf-8"))
    except YAMLError as exc:
        msg = f"Invalid YAML in {path.name}: {exc}"
        raise DescriptorSyntaxError(msg) from exc


def load_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        msg = f"Invalid JSON in {path.name}: line {exc.lineno} column {exc.colno}: {exc.msg}"
        raise DescriptorSyntaxError(msg) from exc


def load_descriptor(path: Path) -> Any:
    """Load YAML or JSON based on the file suffix."""
    if path.suffix.lower() in _YAML_SUFFIXES:
        return load_yaml(path)
    return load_json(path)
