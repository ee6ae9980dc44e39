"""CheckService — whole-stack validation.

Single command following the linter pattern: every descriptor is
validated on its own, then the wiring between them is cross-checked.
Findings are issues, never failures, so ``check`` always succeeds and a
broken stack is reported in one pass.
"""

from __future__ import annotations

import shlex
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from holectl.domain.types import Category, DescriptorError, Issue, Severity, error, warning
from holectl.infrastructure.graph import find_cycles
from holectl.infrastructure.secrets import audit_secret
from holectl.services.base import BaseService
from holectl.services.result import ServiceResult
from holectl.services.telemetry import trace_span, traced

if TYPE_CHECKING:
    from collections.abc import Callable

    from holectl.domain.compose import ComposeFile, ServiceSpec
    from holectl.domain.policy import Policy
    from holectl.domain.serve import ServeConfig

_SECRETS_MOUNT = "/run/secrets/"
_TUN_DEVICE = "/dev/net/tun"
_REQUIRED_CAPS = ("NET_ADMIN", "NET_RAW")


class CheckService(BaseService):
    """Validates the descriptors of a stack and how they fit together."""

    @traced
    def check(self, *, min_severity: str = "warning") -> ServiceResult:
        """Report every problem found in the stack without modifying it.

        With ``min_severity="error"`` warnings are left out of the report.
        """
        issues: list[Issue] = []

        with trace_span("compose"):
            compose = self._parse(Category.COMPOSE, self._stack.compose, issues)
            if compose is not None:
                issues.extend(compose.validate_structure())
        with trace_span("dependency_graph"):
            if compose is not None:
                issues.extend(self._check_graph())
        with trace_span("serve"):
            serve = self._parse(Category.SERVE, self._stack.serve, issues)
            if serve is not None:
                issues.extend(serve.validate_structure())
        with trace_span("policy"):
            policy = self._parse(Category.POLICY, self._stack.policy, issues)
            if policy is not None:
                issues.extend(policy.validate_structure())
                issues.extend(self._check_policy_tests(policy))
        with trace_span("stack_wiring"):
            if compose is not None:
                issues.extend(self._check_wiring(compose, serve, policy))
            else:
                issues.extend(audit_secret(self._stack.secret_path))

        if min_severity == Severity.ERROR:
            issues = [i for i in issues if i.severity == Severity.ERROR]
        found = [i.to_dict() for i in issues]
        return ServiceResult(
            ok=True,
            op="check",
            data={"issues": found, **self._issue_counts(found)},
        )

    # ------------------------------------------------------------------
    # Per-descriptor checks
    # ------------------------------------------------------------------

    def _parse[T](
        self, category: Category, loader: Callable[[], T], issues: list[Issue]
    ) -> T | None:
        try:
            return loader()
        except FileNotFoundError as exc:
            name = self._stack.relative(Path(exc.filename or category.value))
            issues.append(error(category, f"{name} not found", name))
        except OSError as exc:
            issues.append(error(category, str(exc)))
        except DescriptorError as exc:
            issues.append(error(category, str(exc)))
        return None

    def _check_graph(self) -> list[Issue]:
        issues: list[Issue] = []
        for cycle in find_cycles(self._stack.graph):
            issues.append(
                error(Category.GRAPH, "Dependency cycle: " + " -> ".join(cycle), cycle[0])
            )
        return issues

    @staticmethod
    def _check_policy_tests(policy: Policy) -> list[Issue]:
        return [
            error(
                Category.POLICY,
                f"Policy test expects {f.expected} for {f.src} -> {f.dst}",
                f"tests[{f.test}]",
            )
            for f in policy.run_tests()
        ]

    # ------------------------------------------------------------------
    # Cross-descriptor wiring
    # ------------------------------------------------------------------

    def _check_wiring(
        self,
        compose: ComposeFile,
        serve: ServeConfig | None,
        policy: Policy | None,
    ) -> list[Issue]:
        settings = self._stack.settings
        ts_name = settings.tailscale.service
        tailscale = compose.service(ts_name)
        if tailscale is None:
            return [
                error(Category.WIRING, f"No {ts_name!r} service in the compose file", ts_name),
                *audit_secret(self._stack.secret_path),
            ]

        issues: list[Issue] = []
        issues.extend(self._check_serve_mount(tailscale))
        issues.extend(self._check_auth_key(compose, tailscale))
        issues.extend(self._check_pihole(compose, serve))
        issues.extend(self._check_tunnel(tailscale))
        issues.extend(self._check_tags(tailscale, policy))
        return issues

    def _check_serve_mount(self, tailscale: ServiceSpec) -> list[Issue]:
        subject = tailscale.name
        value = tailscale.env("TS_SERVE_CONFIG")
        if not value:
            return [
                warning(Category.WIRING, "TS_SERVE_CONFIG is not set; nothing is served", subject)
            ]

        mount = tailscale.mount_for(value)
        if mount is None or mount.source is None or mount.is_named:
            return [
                error(
                    Category.WIRING,
                    f"TS_SERVE_CONFIG {value!r} is not inside a bind-mounted directory",
                    subject,
                )
            ]
        remainder = value[len(mount.target.rstrip("/")) :].lstrip("/")
        host_side = (self._stack.root / mount.source / remainder).resolve()
        if host_side != self._stack.serve_path.resolve():
            return [
                error(
                    Category.WIRING,
                    f"TS_SERVE_CONFIG maps to {self._stack.relative(host_side)}, "
                    f"not {self._stack.relative(self._stack.serve_path)}",
                    subject,
                )
            ]
        return []

    def _check_auth_key(self, compose: ComposeFile, tailscale: ServiceSpec) -> list[Issue]:
        subject = tailscale.name
        value = tailscale.env("TS_AUTHKEY")
        if not value:
            return [
                error(Category.WIRING, "TS_AUTHKEY is not set", subject),
                *audit_secret(self._stack.secret_path),
            ]
        if not value.startswith("file:" + _SECRETS_MOUNT):
            return [
                error(
                    Category.WIRING,
                    "TS_AUTHKEY must read the key from a file secret, not inline",
                    subject,
                )
            ]

        issues: list[Issue] = []
        secret_name = value.removeprefix("file:" + _SECRETS_MOUNT)
        if secret_name not in tailscale.secrets:
            issues.append(
                error(
                    Category.WIRING,
                    f"Secret {secret_name!r} is not granted to the service",
                    subject,
                )
            )
        decl = compose.secrets.get(secret_name)
        secret_path = self._stack.secret_path
        if decl is not None and decl.file:
            secret_path = (self._stack.root / decl.file).resolve()
        issues.extend(audit_secret(secret_path, subject=secret_name))
        return issues

    def _check_pihole(self, compose: ComposeFile, serve: ServeConfig | None) -> list[Issue]:
        settings = self._stack.settings
        name = settings.pihole.service
        pihole = compose.service(name)
        if pihole is None:
            return [error(Category.WIRING, f"No {name!r} service in the compose file", name)]
        if pihole.shared_namespace == settings.tailscale.service:
            return []

        # Without the shared namespace the proxy must reach Pi-hole by name.
        reachable = {name}
        if pihole.container_name:
            reachable.add(pihole.container_name)
        if serve is not None:
            for route in serve.routes():
                if route.kind == "proxy" and _target_host(route.target) in reachable:
                    return []
        return [
            error(
                Category.WIRING,
                f"Pi-hole neither uses network_mode service:{settings.tailscale.service} "
                "nor is the target of a serve proxy",
                name,
            )
        ]

    @staticmethod
    def _check_tunnel(tailscale: ServiceSpec) -> list[Issue]:
        userspace = (tailscale.env("TS_USERSPACE") or "false").lower()
        if userspace in ("true", "1"):
            return []
        issues: list[Issue] = []
        missing = [cap for cap in _REQUIRED_CAPS if cap not in tailscale.cap_add]
        if missing:
            issues.append(
                warning(
                    Category.WIRING,
                    f"Kernel networking needs cap_add {', '.join(missing)}",
                    tailscale.name,
                )
            )
        if not any(d.split(":", 1)[0] == _TUN_DEVICE for d in tailscale.devices):
            issues.append(
                warning(
                    Category.WIRING, f"Kernel networking needs {_TUN_DEVICE}", tailscale.name
                )
            )
        return issues

    @staticmethod
    def _check_tags(tailscale: ServiceSpec, policy: Policy | None) -> list[Issue]:
        tags = advertised_tags(tailscale.env("TS_EXTRA_ARGS") or "")
        if not tags:
            return [
                warning(
                    Category.WIRING,
                    "Node advertises no tags; it will be owned by the key's creator",
                    tailscale.name,
                )
            ]
        if policy is None:
            return []
        return [
            error(Category.WIRING, f"Advertised tag {tag!r} has no owner in the policy", tag)
            for tag in tags
            if not policy.tag_owners.get(tag)
        ]


def advertised_tags(extra_args: str) -> list[str]:
    """Pull the tags out of ``--advertise-tags`` in a TS_EXTRA_ARGS string."""
    try:
        args = shlex.split(extra_args)
    except ValueError:
        args = extra_args.split()
    tags: list[str] = []
    for index, arg in enumerate(args):
        value: str | None = None
        if arg.startswith("--advertise-tags="):
            value = arg.split("=", 1)[1]
        elif arg == "--advertise-tags" and index + 1 < len(args):
            value = args[index + 1]
        if value:
            tags.extend(t.strip() for t in value.split(",") if t.strip())
    return tags


def _target_host(target: str | None) -> str | None:
    if not target:
        return None
    return urlsplit(target).hostname
