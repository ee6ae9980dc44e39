"""VerifyService — functional DNS check against the running Pi-hole.

A blocked domain must come back as a null address (``0.0.0.0`` / ``::``)
or not resolve at all; an allowed domain must resolve to a real address.
Each reply is reported on its own, so a timeout on one record type does
not hide the result of another.
"""

from __future__ import annotations

from typing import Any

from holectl.infrastructure.resolver import PiholeResolver, Reply
from holectl.services.base import BaseService
from holectl.services.result import ServiceResult
from holectl.services.telemetry import trace_span, traced

_BLOCKED_STATUSES = frozenset({"nxdomain", "noanswer"})


class VerifyService(BaseService):
    """Queries the resolver and judges each answer."""

    @traced
    def verify(
        self,
        *,
        resolver: str | None = None,
        blocked_domain: str | None = None,
        allowed_domain: str | None = None,
    ) -> ServiceResult:
        op = "verify"
        cfg = self._stack.settings.verify
        server = resolver or cfg.resolver
        blocked = blocked_domain or cfg.blocked_domain
        allowed = allowed_domain or cfg.allowed_domain
        rtypes = ["A", "AAAA"] if cfg.ipv6 else ["A"]

        dns = PiholeResolver(server, port=cfg.port, timeout=cfg.timeout)
        checks: list[dict[str, Any]] = []
        with trace_span("blocked"):
            for rtype in rtypes:
                reply = dns.lookup(blocked, rtype)
                checks.append(_judge(reply, expect="blocked"))
        with trace_span("allowed"):
            for rtype in rtypes:
                reply = dns.lookup(allowed, rtype)
                checks.append(_judge(reply, expect="allowed"))

        failed = [c for c in checks if not c["passed"]]
        if failed:
            return ServiceResult.failure(
                op,
                "VERIFY_FAILED",
                f"{len(failed)} of {len(checks)} DNS check(s) failed against {server}",
                resolver=server,
                checks=checks,
            )
        return ServiceResult(
            ok=True,
            op=op,
            data={"resolver": server, "checks": checks, "passed": len(checks)},
        )


def _judge(reply: Reply, *, expect: str) -> dict[str, Any]:
    """Decide whether *reply* is what a working filter would return."""
    if reply.status in ("timeout", "error"):
        passed = False
        reason = reply.detail or reply.status
    elif expect == "blocked" and reply.status in _BLOCKED_STATUSES:
        passed = True
        reason = reply.status
    elif expect == "blocked":
        passed = reply.all_null
        reason = "null answer" if passed else "resolved to a real address"
    else:
        passed = reply.has_real_answer
        reason = "resolved" if passed else f"no usable answer ({reply.status})"
    return {**reply.to_dict(), "expect": expect, "passed": passed, "reason": reason}
