"""File-based secrets: writing with owner-only permissions and auditing them.

INVARIANT: a secret file is never readable by group or other.  Writes go
through a temporary file created ``0600`` and renamed into place, so a
partially written key is never visible under the real name.
"""

from __future__ import annotations

import os
import stat
from pathlib import Path

from holectl.domain.types import Category, Issue, error, warning

SECRET_MODE = 0o600
AUTH_KEY_PREFIXES = ("tskey-auth-", "tskey-")
_VISIBLE_CHARS = 12


def mask_secret(value: str) -> str:
    """Show enough of a key to recognise it, never the whole thing."""
    value = value.strip()
    if len(value) <= _VISIBLE_CHARS:
        return "*" * len(value)
    return value[:_VISIBLE_CHARS] + "*" * (len(value) - _VISIBLE_CHARS)


def write_secret(path: Path, value: str) -> None:
    """Write *value* to *path* with mode 0600, replacing any existing file."""
    value = value.strip()
    if not value:
        msg = "Refusing to write an empty secret"
        raise ValueError(msg)

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.tmp")
    fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, SECRET_MODE)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(value + "\n")
        os.chmod(tmp, SECRET_MODE)  # umask may have narrowed it further; pin it
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def read_secret(path: Path) -> str:
    return path.read_text(encoding="utf-8").strip()


def audit_secret(path: Path, *, subject: str | None = None) -> list[Issue]:
    """Check existence, content and permissions of a secret file."""
    subject = subject or path.name
    if not path.is_file():
        return [error(Category.SECRET, f"Secret file {path} does not exist", subject)]

    issues: list[Issue] = []
    mode = stat.S_IMODE(path.stat().st_mode)
    if mode & (stat.S_IRWXG | stat.S_IRWXO):
        issues.append(
            error(
                Category.SECRET,
                f"Secret file is accessible by group/other (mode {mode:o}); chmod 600",
                subject,
            )
        )

    value = read_secret(path)
    if not value:
        issues.append(error(Category.SECRET, "Secret file is empty", subject))
    elif not value.startswith(AUTH_KEY_PREFIXES):
        issues.append(
            warning(Category.SECRET, "Value does not look like a Tailscale auth key", subject)
        )
    return issues
