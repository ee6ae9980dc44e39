"""Stack — repository over one deployment directory.

The Stack is the single dependency injected into every service.  It knows
where each descriptor lives, parses them lazily (once per invocation), and
coordinates file writes through :meth:`transaction` so that a failed
scaffold never leaves a half-written stack behind:

- **Files**: Compensation-based — newly created files are deleted, modified
  files are restored from backup, on rollback.
- **Parsed descriptors**: Cache is invalidated on transaction end (success
  or failure); the next access re-reads from disk.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from holectl.config.discovery import detect_compose_file
from holectl.domain.compose import ComposeFile
from holectl.domain.policy import Policy
from holectl.domain.serve import ServeConfig
from holectl.infrastructure.compose import ComposeRunner
from holectl.infrastructure.descriptors import load_descriptor, load_json, load_yaml
from holectl.infrastructure.graph import build_dependency_graph
from holectl.infrastructure.secrets import write_secret

if TYPE_CHECKING:
    from collections.abc import Iterator

    import networkx as nx

    from holectl.config.settings import HoleSettings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# File operation tracking for compensation-based rollback
# ---------------------------------------------------------------------------


@dataclass
class _FileOp:
    """A tracked file write within a stack transaction."""

    path: Path
    backup: bytes | None  # original content for updates, None for creates
    mode: int | None = None

    def rollback(self) -> None:
        """Undo this file operation (best-effort)."""
        try:
            if self.backup is not None:
                self.path.write_bytes(self.backup)
                if self.mode is not None:
                    self.path.chmod(self.mode)
            else:
                self.path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Failed to rollback file operation: %s", self.path)


@dataclass
class StackTransaction:
    """Active transaction context with tracked file I/O.

    All writes must go through :meth:`write_file` / :meth:`write_secret`
    so the Stack can compensate on rollback.
    """

    _file_ops: list[_FileOp] = field(default_factory=list, repr=False)
    written: list[Path] = field(default_factory=list)

    def _track(self, path: Path) -> None:
        if path.exists():
            op = _FileOp(path=path, backup=path.read_bytes(), mode=path.stat().st_mode & 0o777)
        else:
            op = _FileOp(path=path, backup=None)
        self._file_ops.append(op)

    def write_file(self, path: Path, content: str) -> None:
        """Write *content* to *path*, tracking for rollback.

        Parent directories are created as needed.
        """
        self._track(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        self.written.append(path)

    def write_secret(self, path: Path, value: str) -> None:
        """Write an owner-only secret file, tracking for rollback."""
        self._track(path)
        write_secret(path, value)
        self.written.append(path)


# ---------------------------------------------------------------------------
# Stack — the repository
# ---------------------------------------------------------------------------


class Stack:
    """Repository over the descriptor files of one deployment.

    Constructed lazily by the CLI context from :class:`HoleSettings`.
    Services receive the Stack via their :class:`BaseService` constructor.
    """

    def __init__(self, settings: HoleSettings) -> None:
        self._settings = settings
        self._compose: ComposeFile | None = None
        self._serve: ServeConfig | None = None
        self._policy: Policy | None = None
        self._graph: nx.DiGraph | None = None

    @property
    def root(self) -> Path:
        """The stack root directory."""
        return self._settings.stack_root

    @property
    def settings(self) -> HoleSettings:
        return self._settings

    # --- Paths ---

    @property
    def compose_path(self) -> Path:
        """The configured compose file, or the one `docker compose` would find."""
        configured = self.root / self._settings.stack.compose_file
        if configured.is_file():
            return configured
        found = detect_compose_file(self.root)
        return self.root / found if found else configured

    @property
    def serve_path(self) -> Path:
        return self.root / self._settings.stack.serve_file

    @property
    def policy_path(self) -> Path:
        return self.root / self._settings.stack.policy_file

    @property
    def secret_path(self) -> Path:
        stack = self._settings.stack
        return self.root / stack.secrets_dir / stack.auth_key_secret

    def relative(self, path: Path) -> str:
        """Render *path* relative to the stack root when it is inside it."""
        try:
            return str(path.relative_to(self.root))
        except ValueError:
            return str(path)

    # --- Parsed descriptors (raise FileNotFoundError / DescriptorError) ---

    def compose(self) -> ComposeFile:
        if self._compose is None:
            self._compose = ComposeFile.from_mapping(load_yaml(self.compose_path))
        return self._compose

    def serve(self) -> ServeConfig:
        if self._serve is None:
            self._serve = ServeConfig.from_mapping(load_json(self.serve_path))
        return self._serve

    def policy(self) -> Policy:
        if self._policy is None:
            self._policy = Policy.from_mapping(load_descriptor(self.policy_path))
        return self._policy

    @property
    def graph(self) -> nx.DiGraph:
        """Dependency graph of the compose services (built on first access)."""
        if self._graph is None:
            self._graph = build_dependency_graph(self.compose())
        return self._graph

    def invalidate(self) -> None:
        """Drop cached descriptors, forcing a re-read on next access."""
        self._compose = None
        self._serve = None
        self._policy = None
        self._graph = None

    def runner(self) -> ComposeRunner:
        compose = self._settings.compose
        return ComposeRunner(
            project_dir=self.root,
            compose_file=self.compose_path,
            binary=list(compose.binary),
            project_name=compose.project_name,
        )

    @contextmanager
    def transaction(self) -> Iterator[StackTransaction]:
        """Track file writes and undo them all if the block raises.

        Rollback is best-effort per file to avoid masking the original
        error.

        Usage::

            with stack.transaction() as txn:
                txn.write_file(stack.compose_path, rendered)
                txn.write_secret(stack.secret_path, key)
        """
        file_ops: list[_FileOp] = []
        txn = StackTransaction(_file_ops=file_ops)
        try:
            yield txn
        except BaseException:
            for op in reversed(file_ops):
                op.rollback()
            raise
        finally:
            self.invalidate()
