"""Tests for PlanService."""

from __future__ import annotations

from collections.abc import Callable

from holectl.infrastructure.stack import Stack
from holectl.services.plan import PlanService


def test_start_and_stop_order(stack: Stack) -> None:
    result = PlanService(stack).plan()
    assert result.ok
    assert result.data["start"] == [["tailscale"], ["pihole"]]
    assert result.data["stop"] == [["pihole"], ["tailscale"]]
    assert result.data["count"] == 2
    assert result.data["edges"] == [
        {"from": "tailscale", "to": "pihole", "condition": "service_started"}
    ]


def test_cycle_is_a_failure(stack: Stack, edit_compose: Callable[[str, str], None]) -> None:
    edit_compose(
        "    restart: unless-stopped\n\n  pihole:",
        "    restart: unless-stopped\n    depends_on: [pihole]\n\n  pihole:",
    )
    result = PlanService(stack).plan()
    assert result.error is not None
    assert result.error.code == "CYCLE"
    assert result.error.detail["cycles"] == [["pihole", "tailscale"]]


def test_missing_dependency_warns(stack: Stack, edit_compose: Callable[[str, str], None]) -> None:
    edit_compose(
        "      - tailscale\n    restart",
        "      - tailscale\n      - unbound\n    restart",
    )
    result = PlanService(stack).plan()
    assert result.ok
    assert result.warnings == ["Dependency 'unbound' is not defined and was skipped"]
    assert result.data["start"] == [["tailscale"], ["pihole"]]


def test_missing_compose_file(empty_stack: Stack) -> None:
    result = PlanService(empty_stack).plan()
    assert result.error is not None
    assert result.error.code == "NOT_FOUND"
    assert result.error.message == "docker-compose.yml not found"


def test_malformed_compose_file(stack: Stack, edit_compose: Callable[[str, str], None]) -> None:
    edit_compose("container_name: pihole", "container_name: 123")
    result = PlanService(stack).plan()
    assert result.error is not None
    assert result.error.code == "INVALID_DESCRIPTOR"
    assert result.error.message.startswith("Malformed service 'pihole'")
