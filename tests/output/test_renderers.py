"""Tests for the Rich renderers and quiet mode."""

from __future__ import annotations

from typing import Any

from holectl.output.renderers import render_quiet, render_result
from holectl.services.result import ServiceResult


def _check(*issues: dict[str, Any]) -> ServiceResult:
    errors = sum(1 for i in issues if i["severity"] == "error")
    return ServiceResult(
        ok=True,
        op="check",
        data={
            "issues": list(issues),
            "count": len(issues),
            "error_count": errors,
            "warning_count": len(issues) - errors,
            "healthy": errors == 0,
        },
    )


_SECRET_ERROR = {
    "category": "secret",
    "severity": "error",
    "message": "Secret file is accessible by group/other (mode 644); chmod 600",
    "subject": "ts_authkey",
}
_CAP_WARNING = {
    "category": "stack_wiring",
    "severity": "warning",
    "message": "Kernel networking needs cap_add NET_RAW",
    "subject": "tailscale",
}


class TestCheck:
    def test_clean(self) -> None:
        assert render_result(_check()) == "OK  No issues found."

    def test_grouped_by_category(self) -> None:
        out = render_result(_check(_SECRET_ERROR, _CAP_WARNING))
        assert "secret" in out
        assert "stack_wiring" in out
        assert "error [ts_authkey]: Secret file is accessible" in out
        assert "warning [tailscale]: Kernel networking" in out
        assert out.endswith("1 errors, 1 warnings: unhealthy")

    def test_markup_in_messages_is_literal(self) -> None:
        issue = {**_CAP_WARNING, "message": "value [bold]x[/bold]", "subject": "[svc]"}
        out = render_result(_check(issue))
        assert "value [bold]x[/bold]" in out
        assert "[[svc]]" in out

    def test_quiet_lists_errors_only(self) -> None:
        assert render_quiet(_check(_SECRET_ERROR, _CAP_WARNING)) == (
            "error ts_authkey: Secret file is accessible by group/other (mode 644); chmod 600"
        )
        assert render_quiet(_check(_CAP_WARNING)) == "OK: check"


class TestErrors:
    def test_error_line(self) -> None:
        result = ServiceResult.failure("plan", "CYCLE", "Dependency cycle between a, b")
        assert render_result(result) == "ERROR  plan: Dependency cycle between a, b"
        assert render_quiet(result) == "ERROR: plan: Dependency cycle between a, b"

    def test_policy_failures_always_shown(self) -> None:
        result = ServiceResult.failure(
            "policy_tests",
            "POLICY_TESTS_FAILED",
            "1 of 3 policy assertion(s) failed",
            failures=[
                {"test": 1, "src": "tag:pihole", "dst": "tag:pihole:443", "expected": "deny"}
            ],
        )
        out = render_result(result)
        assert "expected deny  tag:pihole -> tag:pihole:443  (tests[1])" in out

    def test_policy_failure_reason_shown(self) -> None:
        result = ServiceResult.failure(
            "policy_tests",
            "POLICY_TESTS_FAILED",
            "1 of 1 policy assertion(s) failed",
            failures=[
                {
                    "test": 0,
                    "src": "group:nobody",
                    "dst": "tag:pihole:53",
                    "expected": "accept",
                    "reason": "'group:nobody' has no members",
                }
            ],
        )
        out = render_result(result)
        assert "(tests[0])  'group:nobody' has no members" in out

    def test_existing_files_listed(self) -> None:
        result = ServiceResult.failure(
            "init", "FILE_EXISTS", "Stack already initialized", files=["policy.json"]
        )
        assert "policy.json" in render_result(result)

    def test_extra_detail_only_when_verbose(self) -> None:
        result = ServiceResult.failure("plan", "CYCLE", "cycle", cycles=[["a", "b"]])
        assert "cycles" not in render_result(result)
        assert "cycles: [['a', 'b']]" in render_result(result, verbose=True)

    def test_verify_failure_shows_replies(self) -> None:
        check = {
            "domain": "doubleclick.net",
            "rtype": "A",
            "status": "answer",
            "addresses": ["142.250.0.1"],
            "detail": None,
            "expect": "blocked",
            "passed": False,
            "reason": "resolved to a real address",
        }
        result = ServiceResult.failure(
            "verify", "VERIFY_FAILED", "1 of 1 DNS check(s) failed", checks=[check]
        )
        out = render_result(result)
        assert "142.250.0.1" in out
        assert "FAIL" in out
        assert "doubleclick.net A: resolved to a real address" in out


class TestOperations:
    def test_plan(self) -> None:
        result = ServiceResult(
            ok=True,
            op="plan",
            data={
                "start": [["tailscale"], ["pihole"]],
                "stop": [["pihole"], ["tailscale"]],
                "edges": [{"from": "tailscale", "to": "pihole", "condition": "service_started"}],
                "count": 2,
            },
        )
        out = render_result(result)
        assert "start order\n  1. tailscale\n  2. pihole" in out
        assert "edges" not in out
        assert "tailscale -> pihole  (service_started)" in render_result(result, verbose=True)

    def test_acl_test(self) -> None:
        result = ServiceResult(
            ok=True,
            op="acl_test",
            data={
                "src": "bob@example.com",
                "dst": "tag:pihole",
                "port": 53,
                "allowed": True,
                "rules": [0],
                "checks": [],
            },
        )
        assert render_result(result) == "ALLOW  bob@example.com -> tag:pihole:53  (acls[0])"
        assert render_quiet(result) == "allow"

    def test_route_resolve_quiet_prints_target(self) -> None:
        result = ServiceResult(
            ok=True,
            op="route_resolve",
            data={"host": "h", "port": 443, "path": "/", "kind": "proxy", "target": "http://x/"},
        )
        assert render_quiet(result) == "http://x/"
        assert "h:443/  -> http://x/" in render_result(result)

    def test_compose_dry_run(self) -> None:
        result = ServiceResult(
            ok=True,
            op="up",
            data={"argv": ["docker", "compose", "up", "-d"], "output": "", "dry_run": True},
        )
        assert "would run: docker compose up -d" in render_result(result)

    def test_ps_table_and_quiet(self) -> None:
        result = ServiceResult(
            ok=True,
            op="ps",
            data={
                "argv": [],
                "output": "",
                "dry_run": False,
                "containers": [
                    {
                        "service": "pihole",
                        "name": "pihole",
                        "state": "running",
                        "status": "Up",
                        "health": None,
                    }
                ],
                "count": 1,
            },
        )
        assert "pihole" in render_result(result)
        assert render_quiet(result) == "pihole"

    def test_ps_empty(self) -> None:
        result = ServiceResult(
            ok=True, op="ps", data={"argv": [], "output": "", "containers": [], "count": 0}
        )
        assert render_result(result) == "No containers running."

    def test_init_never_shows_full_key(self) -> None:
        result = ServiceResult(
            ok=True,
            op="init",
            data={
                "root": "/srv/dns",
                "files": ["docker-compose.yml"],
                "hostname": "pihole",
                "tag": "tag:pihole",
                "auth_key": "tskey-auth-k********",
            },
        )
        out = render_result(result)
        assert "auth_key: tskey-auth-k********" in out
        assert "files_written: 1" in out
        assert "holectl up" in out

    def test_generic_fallback(self) -> None:
        result = ServiceResult(ok=True, op="something", data={"answer": 42})
        assert render_result(result) == "OK   something\n  answer: 42"
        assert render_quiet(result) == "OK: something"

    def test_verbose_shows_telemetry(self) -> None:
        result = ServiceResult(
            ok=True,
            op="something",
            meta={"telemetry": {"name": "Svc.op", "duration_ms": 1.5, "children": []}},
        )
        out = render_result(result, verbose=True)
        assert "meta:" in out
        assert "1.50ms  Svc.op" in out
