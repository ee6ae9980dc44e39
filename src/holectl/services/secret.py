"""SecretService — store and inspect the node's auth key.

INVARIANT: the key itself never appears in a ServiceResult; only the
masked form does.
"""

from __future__ import annotations

import stat

from holectl.infrastructure.secrets import (
    AUTH_KEY_PREFIXES,
    audit_secret,
    mask_secret,
    read_secret,
)
from holectl.services.base import BaseService
from holectl.services.result import ServiceResult
from holectl.services.telemetry import traced


class SecretService(BaseService):
    """Writes the auth-key file and reports on its state."""

    @traced
    def set_auth_key(self, value: str) -> ServiceResult:
        op = "secret_set"
        value = value.strip()
        if not value:
            return ServiceResult.failure(op, "INVALID_INPUT", "Auth key must not be empty")

        path = self._stack.secret_path
        try:
            with self._stack.transaction() as txn:
                txn.write_secret(path, value)
        except OSError as exc:
            return ServiceResult.failure(op, "WRITE_ERROR", str(exc))

        warnings: list[str] = []
        if not value.startswith(AUTH_KEY_PREFIXES):
            warnings.append("Value does not look like a Tailscale auth key (tskey-auth-...)")
        return ServiceResult(
            ok=True,
            op=op,
            data={"path": self._stack.relative(path), "masked": mask_secret(value)},
            warnings=warnings,
        )

    @traced
    def status(self) -> ServiceResult:
        """Existence, permissions and masked value of the auth-key file."""
        op = "secret_status"
        path = self._stack.secret_path
        mode: str | None = None
        masked: str | None = None
        try:
            issues = [i.to_dict() for i in audit_secret(path)]
            if path.is_file():
                mode = f"{stat.S_IMODE(path.stat().st_mode):o}"
                masked = mask_secret(read_secret(path))
        except OSError as exc:
            return ServiceResult.failure(op, "READ_ERROR", str(exc))

        data = {
            "path": self._stack.relative(path),
            "exists": mode is not None,
            "mode": mode,
            "masked": masked,
            "issues": issues,
            **self._issue_counts(issues),
        }
        return ServiceResult(ok=True, op=op, data=data)
