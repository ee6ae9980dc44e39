"""Service-graph descriptor — the subset of the Compose file format holectl reads.

``ComposeFile.from_mapping`` normalizes the several equivalent spellings
Compose accepts (list vs. mapping ``environment``, list vs. mapping
``depends_on``, short vs. long volume syntax) so validators only deal
with one shape.  Keys holectl does not model are kept in ``extra``.
"""

from __future__ import annotations

import re
from typing import Any, Self

from pydantic import BaseModel, Field

from holectl.domain.types import (
    Category,
    DescriptorError,
    Issue,
    RestartPolicy,
    error,
    warning,
)

# Compose treats a mount source as a host path when it looks like one.
_PATH_PREFIXES = ("/", "./", "../", "~", "$")
_CAPABILITY_RE = re.compile(r"^[A-Z][A-Z0-9_]*$")
_NAMESPACE_MODES = ("service:", "container:")

_MODELLED_KEYS = frozenset(
    {
        "image",
        "build",
        "container_name",
        "hostname",
        "environment",
        "volumes",
        "cap_add",
        "restart",
        "depends_on",
        "network_mode",
        "secrets",
        "ports",
        "devices",
    }
)


class VolumeMount(BaseModel):
    """One entry of a service's ``volumes`` list."""

    model_config = {"frozen": True}

    source: str | None
    target: str
    read_only: bool = False

    @property
    def is_named(self) -> bool:
        """True when the source refers to a top-level named volume."""
        return bool(self.source) and not (self.source or "").startswith(_PATH_PREFIXES)

    @classmethod
    def parse(cls, entry: Any) -> VolumeMount:
        if isinstance(entry, dict):
            target = entry.get("target")
            if not target:
                msg = f"Volume entry without target: {entry!r}"
                raise DescriptorError(msg)
            return cls(
                source=entry.get("source"),
                target=str(target),
                read_only=bool(entry.get("read_only", False)),
            )
        parts = str(entry).split(":")
        if len(parts) == 1:
            return cls(source=None, target=parts[0])
        mode = parts[2] if len(parts) > 2 else ""
        return cls(source=parts[0], target=parts[1], read_only="ro" in mode.split(","))


class ServiceSpec(BaseModel):
    """A single service of the graph."""

    model_config = {"frozen": True}

    name: str
    image: str | None = None
    build: Any = None
    container_name: str | None = None
    hostname: str | None = None
    environment: dict[str, str | None] = Field(default_factory=dict)
    volumes: list[VolumeMount] = Field(default_factory=list)
    cap_add: list[str] = Field(default_factory=list)
    restart: str | None = None
    depends_on: dict[str, str] = Field(default_factory=dict)
    network_mode: str | None = None
    secrets: list[str] = Field(default_factory=list)
    ports: list[str] = Field(default_factory=list)
    devices: list[str] = Field(default_factory=list)
    extra: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_mapping(cls, name: str, data: Any) -> ServiceSpec:
        if data is None:
            data = {}
        if not isinstance(data, dict):
            msg = f"Service {name!r} must be a mapping"
            raise DescriptorError(msg)
        try:
            return cls(
                name=name,
                image=data.get("image"),
                build=data.get("build"),
                container_name=data.get("container_name"),
                hostname=data.get("hostname"),
                environment=_parse_environment(name, data.get("environment")),
                volumes=[VolumeMount.parse(v) for v in data.get("volumes") or []],
                cap_add=[str(c) for c in data.get("cap_add") or []],
                restart=None if data.get("restart") is None else str(data["restart"]),
                depends_on=_parse_depends_on(name, data.get("depends_on")),
                network_mode=data.get("network_mode"),
                secrets=[_secret_name(s) for s in data.get("secrets") or []],
                ports=[str(p) for p in data.get("ports") or []],
                devices=[str(d) for d in data.get("devices") or []],
                extra={k: v for k, v in data.items() if k not in _MODELLED_KEYS},
            )
        except DescriptorError:
            raise
        except (TypeError, ValueError, AttributeError) as exc:
            # pydantic.ValidationError is a ValueError
            msg = f"Malformed service {name!r}: {exc}"
            raise DescriptorError(msg) from exc

    def env(self, key: str, default: str | None = None) -> str | None:
        value = self.environment.get(key)
        return default if value is None else value

    @property
    def shared_namespace(self) -> str | None:
        """Service whose network namespace this one joins, if any."""
        if self.network_mode and self.network_mode.startswith(_NAMESPACE_MODES):
            return self.network_mode.split(":", 1)[1]
        return None

    def mount_for(self, target: str) -> VolumeMount | None:
        """Return the mount whose container path is *target* or contains it."""
        best: VolumeMount | None = None
        for mount in self.volumes:
            root = mount.target.rstrip("/")
            if target == root or target.startswith(root + "/"):
                if best is None or len(root) > len(best.target.rstrip("/")):
                    best = mount
        return best


class SecretDecl(BaseModel):
    """Top-level ``secrets`` entry."""

    model_config = {"frozen": True}

    name: str
    file: str | None = None
    environment: str | None = None


class ComposeFile(BaseModel):
    """The whole service graph."""

    model_config = {"frozen": True}

    name: str | None = None
    services: dict[str, ServiceSpec] = Field(default_factory=dict)
    volumes: dict[str, Any] = Field(default_factory=dict)
    secrets: dict[str, SecretDecl] = Field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Any) -> Self:
        if data is None:
            data = {}
        if not isinstance(data, dict):
            msg = "Compose file must be a mapping at the top level"
            raise DescriptorError(msg)
        raw_services = data.get("services") or {}
        if not isinstance(raw_services, dict):
            msg = "'services' must be a mapping of name to service"
            raise DescriptorError(msg)

        volumes = _mapping(data.get("volumes"), "'volumes' must be a mapping")
        secrets: dict[str, SecretDecl] = {}
        raw_secrets = _mapping(data.get("secrets"), "'secrets' must be a mapping")
        for secret_name, decl in raw_secrets.items():
            decl = _mapping(decl, f"Secret {secret_name!r} must be a mapping with 'file'")
            try:
                secrets[secret_name] = SecretDecl(
                    name=secret_name,
                    file=decl.get("file"),
                    environment=decl.get("environment"),
                )
            except ValueError as exc:
                msg = f"Malformed secret {secret_name!r}: {exc}"
                raise DescriptorError(msg) from exc

        services = {
            svc: ServiceSpec.from_mapping(svc, body) for svc, body in raw_services.items()
        }
        try:
            return cls(name=data.get("name"), services=services, volumes=volumes, secrets=secrets)
        except ValueError as exc:
            msg = f"Malformed compose file: {exc}"
            raise DescriptorError(msg) from exc

    def service(self, name: str) -> ServiceSpec | None:
        return self.services.get(name)

    def dependencies(self) -> dict[str, set[str]]:
        """Map each service to the services that must start before it.

        Joining another service's network namespace is an implicit
        dependency, the same way the orchestrator treats it.
        """
        deps: dict[str, set[str]] = {}
        for name, svc in self.services.items():
            needs = set(svc.depends_on)
            if svc.network_mode and svc.network_mode.startswith("service:"):
                needs.add(svc.network_mode.split(":", 1)[1])
            deps[name] = needs
        return deps

    def validate_structure(self) -> list[Issue]:
        """Report structural problems without touching the filesystem."""
        issues: list[Issue] = []
        if not self.services:
            issues.append(error(Category.COMPOSE, "No services defined"))
            return issues

        for name, svc in self.services.items():
            if not svc.image and svc.build is None:
                issues.append(error(Category.COMPOSE, "Service has no image or build", name))

            if svc.restart is None:
                issues.append(
                    warning(Category.COMPOSE, "No restart policy; container stays down", name)
                )
            elif not RestartPolicy.is_valid(svc.restart):
                issues.append(
                    error(Category.COMPOSE, f"Invalid restart policy {svc.restart!r}", name)
                )

            for dep in sorted(svc.depends_on):
                if dep not in self.services:
                    issues.append(
                        error(Category.COMPOSE, f"depends_on unknown service {dep!r}", name)
                    )

            if svc.network_mode and svc.network_mode.startswith("service:"):
                target = svc.shared_namespace
                if target not in self.services:
                    issues.append(
                        error(
                            Category.COMPOSE,
                            f"network_mode references unknown service {target!r}",
                            name,
                        )
                    )
            if svc.shared_namespace and svc.ports:
                issues.append(
                    error(
                        Category.COMPOSE,
                        "Service shares another network namespace and cannot publish ports",
                        name,
                    )
                )

            for mount in svc.volumes:
                if mount.is_named and mount.source not in self.volumes:
                    issues.append(
                        error(
                            Category.COMPOSE,
                            f"Named volume {mount.source!r} is not declared",
                            name,
                        )
                    )

            for secret in svc.secrets:
                decl = self.secrets.get(secret)
                if decl is None:
                    issues.append(
                        error(Category.COMPOSE, f"Secret {secret!r} is not declared", name)
                    )
                elif not decl.file and not decl.environment:
                    issues.append(
                        error(Category.COMPOSE, f"Secret {secret!r} has no file source", name)
                    )

            for cap in svc.cap_add:
                if cap.startswith("CAP_") or not _CAPABILITY_RE.match(cap):
                    issues.append(
                        warning(
                            Category.COMPOSE,
                            f"Capability {cap!r} should be an upper-case name without CAP_",
                            name,
                        )
                    )
        return issues


# ---------------------------------------------------------------------------
# Normalization helpers
# ---------------------------------------------------------------------------


def _mapping(raw: Any, msg: str) -> dict[Any, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise DescriptorError(msg)
    return raw


def _parse_environment(service: str, raw: Any) -> dict[str, str | None]:
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return {str(k): None if v is None else _scalar(v) for k, v in raw.items()}
    if isinstance(raw, list):
        env: dict[str, str | None] = {}
        for item in raw:
            key, sep, value = str(item).partition("=")
            env[key] = value if sep else None
        return env
    msg = f"Service {service!r}: environment must be a mapping or a list"
    raise DescriptorError(msg)


def _parse_depends_on(service: str, raw: Any) -> dict[str, str]:
    if raw is None:
        return {}
    if isinstance(raw, list):
        return {str(dep): "service_started" for dep in raw}
    if isinstance(raw, dict):
        return {
            str(dep): str((opts or {}).get("condition", "service_started"))
            for dep, opts in raw.items()
        }
    msg = f"Service {service!r}: depends_on must be a list or a mapping"
    raise DescriptorError(msg)


def _secret_name(entry: Any) -> str:
    if isinstance(entry, dict):
        return str(entry.get("source", ""))
    return str(entry)


def _scalar(value: Any) -> str:
    # YAML booleans become "true"/"false" the way compose serializes them
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
