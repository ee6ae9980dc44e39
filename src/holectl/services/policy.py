"""PolicyService — offline evaluation of the access policy."""

from __future__ import annotations

from typing import Any

from holectl.domain.policy import split_destination
from holectl.domain.types import DescriptorError
from holectl.services.base import BaseService
from holectl.services.result import ServiceResult
from holectl.services.telemetry import traced


class PolicyService(BaseService):
    """Answers "can X reach Y on port P" and runs the policy's own tests."""

    @traced
    def test(self, src: str, dst: str) -> ServiceResult:
        """Evaluate one connection.

        *src* is any selector the policy understands (a login, a group,
        a tag, a host alias or an address).  *dst* is ``target:port``.
        Groups expand to their members; the connection is allowed only
        when it is allowed for every member.
        """
        op = "acl_test"
        policy, failure = self._load(op, self._stack.policy)
        if failure is not None:
            return failure
        assert policy is not None

        try:
            target, port_s = split_destination(dst)
            port = int(port_s)
        except (DescriptorError, ValueError):
            return ServiceResult.failure(
                op, "INVALID_INPUT", f"Destination {dst!r} must be target:port with one port"
            )

        sources = policy.identities_for(src)
        targets = policy.identities_for(target)
        if not sources or not targets:
            empty = src if not sources else target
            return ServiceResult.failure(op, "INVALID_INPUT", f"{empty!r} has no members")

        checks: list[dict[str, Any]] = []
        for source in sources:
            for dest in targets:
                decision = policy.allows(source, dest, port)
                checks.append(
                    {"src": source.label(), "dst": dest.label(), **decision.to_dict()}
                )

        allowed = all(c["allowed"] for c in checks)
        rules = sorted({c["rule"] for c in checks if c["rule"] is not None})
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "src": src,
                "dst": target,
                "port": port,
                "allowed": allowed,
                "rules": rules,
                "checks": checks,
            },
        )

    @traced
    def run_tests(self) -> ServiceResult:
        """Run the ``tests`` section; any failing assertion fails the op."""
        op = "policy_tests"
        policy, failure = self._load(op, self._stack.policy)
        if failure is not None:
            return failure
        assert policy is not None

        failures = policy.run_tests()
        total = sum(len(t.accept) + len(t.deny) for t in policy.tests)
        if failures:
            return ServiceResult.failure(
                op,
                "POLICY_TESTS_FAILED",
                f"{len(failures)} of {total} policy assertion(s) failed",
                failures=[f.to_dict() for f in failures],
            )
        warnings = [] if policy.tests else ["Policy defines no tests"]
        return ServiceResult(
            ok=True,
            op=op,
            data={"tests": len(policy.tests), "assertions": total, "failures": []},
            warnings=warnings,
        )

    @traced
    def show(self) -> ServiceResult:
        """Summarize groups, tag owners and rules."""
        op = "acl_show"
        policy, failure = self._load(op, self._stack.policy)
        if failure is not None:
            return failure
        assert policy is not None

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "groups": policy.groups,
                "tag_owners": policy.tag_owners,
                "hosts": policy.hosts,
                "rules": [
                    {"index": i, "action": r.action, "src": r.src, "dst": r.dst}
                    for i, r in enumerate(policy.acls)
                ],
                "tests": len(policy.tests),
            },
        )

