"""InitService — scaffold a new stack directory.

Pipeline: VALIDATE INPUT → CHECK EXISTING → RENDER → WRITE (transactional) → RESPOND

Everything is rendered before the first byte is written, and the writes
share one stack transaction, so a failure leaves the directory as it was.
"""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any

from jinja2 import TemplateError

from holectl.config.discovery import CONFIG_FILENAME
from holectl.infrastructure.secrets import AUTH_KEY_PREFIXES, mask_secret
from holectl.infrastructure.templates import build_template_environment
from holectl.services.base import BaseService
from holectl.services.result import ServiceResult
from holectl.services.telemetry import trace_span, traced

if TYPE_CHECKING:
    from holectl.infrastructure.stack import StackTransaction

_HOSTNAME_RE = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$", re.IGNORECASE)
_TAG_RE = re.compile(r"^tag:[a-z0-9][a-z0-9-]*$", re.IGNORECASE)


class InitService(BaseService):
    """Writes the descriptors and the auth-key secret for a new stack."""

    @traced
    def init_stack(
        self,
        *,
        auth_key: str,
        admins: list[str],
        hostname: str | None = None,
        tag: str | None = None,
        timezone: str | None = None,
        web_password: str | None = None,
        force: bool = False,
    ) -> ServiceResult:
        """Render the stack templates and write them with the secret."""
        op = "init"
        settings = self._stack.settings
        hostname = hostname or settings.tailscale.hostname
        tag = tag or settings.tailscale.tag
        timezone = timezone or settings.pihole.timezone
        auth_key = auth_key.strip()

        # --- VALIDATE INPUT ---
        problem = _validate_inputs(hostname=hostname, tag=tag, admins=admins, auth_key=auth_key)
        if problem is not None:
            return ServiceResult.failure(op, "INVALID_INPUT", problem)

        # --- CHECK EXISTING ---
        targets = self._targets()
        paths = [*targets.values(), self._stack.secret_path]
        existing = [self._stack.relative(p) for p in paths if p.exists()]
        if existing and not force:
            return ServiceResult.failure(
                op,
                "FILE_EXISTS",
                f"Stack already initialized at {self._stack.root} (use --force to overwrite)",
                files=existing,
            )

        # --- RENDER ---
        context = self._template_context(
            hostname=hostname,
            tag=tag,
            timezone=timezone,
            admins=admins,
            web_password=web_password,
        )
        with trace_span("render"):
            env = build_template_environment("stack", stack_root=self._stack.root)
            try:
                rendered = {
                    path: env.get_template(template).render(**context)
                    for template, path in targets.items()
                }
            except TemplateError as exc:
                return ServiceResult.failure(
                    op, "TEMPLATE_ERROR", f"Template rendering failed: {exc}"
                )

        # --- WRITE ---
        with trace_span("write"):
            try:
                with self._stack.transaction() as txn:
                    self._write(txn, rendered, auth_key)
                    written = [self._stack.relative(p) for p in txn.written]
            except OSError as exc:
                return ServiceResult.failure(op, "WRITE_ERROR", str(exc))

        # --- RESPOND ---
        warnings: list[str] = []
        if not auth_key.startswith(AUTH_KEY_PREFIXES):
            warnings.append("Auth key does not look like a Tailscale auth key (tskey-auth-...)")
        if existing:
            warnings.append(f"Overwrote {len(existing)} existing file(s)")
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "root": str(self._stack.root),
                "files": written,
                "hostname": hostname,
                "tag": tag,
                "auth_key": mask_secret(auth_key),
            },
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _targets(self) -> dict[str, Path]:
        """Template name -> destination path."""
        return {
            "docker-compose.yml.j2": self._stack.compose_path,
            "serve.json.j2": self._stack.serve_path,
            "policy.json.j2": self._stack.policy_path,
            "holectl.toml.j2": self._stack.root / CONFIG_FILENAME,
        }

    def _template_context(self, **inputs: Any) -> dict[str, Any]:
        settings = self._stack.settings
        stack = settings.stack
        serve_file = PurePosixPath(stack.serve_file)
        secret_file = PurePosixPath(stack.secrets_dir) / stack.auth_key_secret
        return {
            **inputs,
            "tailscale": settings.tailscale,
            "pihole": settings.pihole,
            "serve_name": serve_file.name,
            "serve_dir": str(serve_file.parent),
            "secret_name": stack.auth_key_secret,
            "secret_path": str(secret_file),
            "resolver": settings.verify.resolver,
        }

    def _write(self, txn: StackTransaction, rendered: dict[Path, str], auth_key: str) -> None:
        for path, content in rendered.items():
            txn.write_file(path, content)
        txn.write_secret(self._stack.secret_path, auth_key)


def _validate_inputs(*, hostname: str, tag: str, admins: list[str], auth_key: str) -> str | None:
    if not _HOSTNAME_RE.match(hostname):
        return f"Invalid hostname {hostname!r}: use letters, digits and dashes"
    if not _TAG_RE.match(tag):
        return f"Invalid tag {tag!r}: expected tag:<name>"
    if not admins:
        return "At least one admin login is required"
    bad = [a for a in admins if "@" not in a]
    if bad:
        return f"Admin logins must look like user@domain: {', '.join(bad)}"
    if not auth_key:
        return "An auth key is required"
    return None
