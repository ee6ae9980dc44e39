"""Access-control policy model and offline evaluator.

Mirrors the tailnet policy file semantics that matter for a single
DNS node:

- Default deny.  Rules only ever accept; a connection is allowed when any
  rule's ``src`` matches the source identity and any of its ``dst``
  entries matches the destination identity and port.
- A device is either user-owned or tagged.  Tagged devices carry no user
  identity, so user, group and ``autogroup:member`` selectors never match
  them.
- ``tests`` entries are assertions evaluated against the rules; they do
  not grant anything by themselves.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Any, Self

from pydantic import BaseModel, Field

from holectl.domain.types import Category, DescriptorError, Issue, error, warning

_AUTOGROUPS = frozenset({"autogroup:member", "autogroup:tagged", "autogroup:self"})
_OWNER_AUTOGROUPS = frozenset({"autogroup:admin", "autogroup:member"})

type _Network = ipaddress.IPv4Network | ipaddress.IPv6Network


# ---------------------------------------------------------------------------
# Identities and port ranges
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Identity:
    """Who is connecting, or what is being connected to."""

    user: str | None = None
    tags: frozenset[str] = field(default_factory=frozenset)
    address: str | None = None

    @property
    def is_tagged(self) -> bool:
        return bool(self.tags)

    @property
    def owner(self) -> str | None:
        """The user identity, which tagged devices do not have."""
        return None if self.tags else self.user

    def label(self) -> str:
        if self.tags:
            return ",".join(sorted(self.tags))
        return self.user or self.address or "?"


@dataclass(frozen=True)
class PortRange:
    low: int
    high: int

    def __contains__(self, port: object) -> bool:
        return isinstance(port, int) and self.low <= port <= self.high


def parse_ports(spec: str) -> tuple[PortRange, ...]:
    """Parse ``*``, ``53``, ``80,443`` or ``1000-2000`` into ranges."""
    if spec == "*":
        return (PortRange(0, 65535),)
    ranges: list[PortRange] = []
    for part in spec.split(","):
        part = part.strip()
        low_s, sep, high_s = part.partition("-")
        try:
            low = int(low_s)
            high = int(high_s) if sep else low
        except ValueError as exc:
            msg = f"Invalid port spec {spec!r}"
            raise DescriptorError(msg) from exc
        if not (0 <= low <= high <= 65535):
            msg = f"Port range out of bounds in {spec!r}"
            raise DescriptorError(msg)
        ranges.append(PortRange(low, high))
    return tuple(ranges)


def split_destination(entry: str) -> tuple[str, str]:
    """Split ``target:ports`` (``[v6]:ports`` for bracketed IPv6)."""
    if entry.startswith("["):
        host, sep, rest = entry[1:].partition("]:")
        if not sep:
            msg = f"Invalid destination {entry!r}"
            raise DescriptorError(msg)
        return host, rest
    target, sep, ports = entry.rpartition(":")
    if not sep or not target:
        msg = f"Destination {entry!r} must be target:ports"
        raise DescriptorError(msg)
    return target, ports


# ---------------------------------------------------------------------------
# Policy document
# ---------------------------------------------------------------------------


class AclRule(BaseModel):
    model_config = {"frozen": True}

    action: str = "accept"
    src: list[str] = Field(default_factory=list)
    dst: list[str] = Field(default_factory=list)


class PolicyTest(BaseModel):
    model_config = {"frozen": True}

    src: str
    accept: list[str] = Field(default_factory=list)
    deny: list[str] = Field(default_factory=list)


@dataclass(frozen=True)
class Decision:
    allowed: bool
    rule: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"allowed": self.allowed, "rule": self.rule}


@dataclass(frozen=True)
class PolicyTestFailure:
    test: int
    src: str
    dst: str
    expected: str
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out = {"test": self.test, "src": self.src, "dst": self.dst, "expected": self.expected}
        if self.reason:
            out["reason"] = self.reason
        return out


class Policy(BaseModel):
    """Parsed policy file."""

    model_config = {"frozen": True}

    tag_owners: dict[str, list[str]] = Field(default_factory=dict)
    groups: dict[str, list[str]] = Field(default_factory=dict)
    hosts: dict[str, str] = Field(default_factory=dict)
    acls: list[AclRule] = Field(default_factory=list)
    tests: list[PolicyTest] = Field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Any) -> Self:
        if not isinstance(data, dict):
            msg = "Policy must be a JSON object"
            raise DescriptorError(msg)
        try:
            return cls(
                tag_owners={k: list(v or []) for k, v in (data.get("tagOwners") or {}).items()},
                groups={k: list(v or []) for k, v in (data.get("groups") or {}).items()},
                hosts={k: str(v) for k, v in (data.get("hosts") or {}).items()},
                acls=[AclRule.model_validate(r) for r in data.get("acls") or []],
                tests=[PolicyTest.model_validate(t) for t in data.get("tests") or []],
            )
        except (TypeError, ValueError, AttributeError) as exc:
            # pydantic.ValidationError is a ValueError
            msg = f"Malformed policy: {exc}"
            raise DescriptorError(msg) from exc

    # ------------------------------------------------------------------
    # Identity resolution
    # ------------------------------------------------------------------

    def identities_for(self, selector: str) -> list[Identity]:
        """Concrete identities a test selector stands for.

        Groups expand to one identity per member so a test on a group
        holds only when it holds for every member.
        """
        if selector.startswith("group:"):
            return [Identity(user=m) for m in self.groups.get(selector, [])]
        if selector.startswith("tag:"):
            return [Identity(tags=frozenset({selector}))]
        if selector in self.hosts:
            return [Identity(address=_first_address(self.hosts[selector]))]
        if _as_network(selector) is not None:
            return [Identity(address=_first_address(selector))]
        return [Identity(user=selector)]

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def allows(self, src: Identity, dst: Identity, port: int) -> Decision:
        """Default-deny evaluation; reports the first rule that accepts."""
        for index, rule in enumerate(self.acls):
            if rule.action != "accept":
                continue
            if not any(self._matches(sel, src) for sel in rule.src):
                continue
            for entry in rule.dst:
                try:
                    target, ports = split_destination(entry)
                    ranges = parse_ports(ports)
                except DescriptorError:
                    continue
                if any(port in r for r in ranges) and self._matches(target, dst, src=src):
                    return Decision(allowed=True, rule=index)
        return Decision(allowed=False)

    def run_tests(self) -> list[PolicyTestFailure]:
        failures: list[PolicyTestFailure] = []
        for index, test in enumerate(self.tests):
            sources = self.identities_for(test.src)
            empty_src = f"{test.src!r} has no members"
            for expected, entries in (("accept", test.accept), ("deny", test.deny)):
                for entry in entries:
                    try:
                        target, port_s = split_destination(entry)
                        port = int(port_s)
                    except (DescriptorError, ValueError):
                        continue  # reported by validate_structure
                    targets = self.identities_for(target)
                    if not sources or not targets:
                        reason = empty_src if not sources else f"{target!r} has no members"
                        failures.append(
                            PolicyTestFailure(index, test.src, entry, expected, reason)
                        )
                        continue
                    want = expected == "accept"
                    for src in sources:
                        if any(self.allows(src, dst, port).allowed != want for dst in targets):
                            failures.append(PolicyTestFailure(index, test.src, entry, expected))
                            break
        return failures

    def _matches(self, selector: str, ident: Identity, *, src: Identity | None = None) -> bool:
        if selector == "*":
            return True
        if selector == "autogroup:member":
            return ident.owner is not None
        if selector == "autogroup:tagged":
            return ident.is_tagged
        if selector == "autogroup:self":
            return src is not None and src.owner is not None and src.owner == ident.owner
        if selector.startswith("tag:"):
            return selector in ident.tags
        if selector.startswith("group:"):
            members = {m.lower() for m in self.groups.get(selector, [])}
            return ident.owner is not None and ident.owner.lower() in members
        if "@" in selector:
            return ident.owner is not None and ident.owner.lower() == selector.lower()
        network = _as_network(self.hosts.get(selector, selector))
        if network is not None and ident.address:
            try:
                return ipaddress.ip_address(ident.address) in network
            except ValueError:
                return False
        return False

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_structure(self) -> list[Issue]:
        issues: list[Issue] = []

        for group, members in self.groups.items():
            if not group.startswith("group:"):
                issues.append(error(Category.POLICY, "Group names must start with group:", group))
            for member in members:
                if member.startswith(("group:", "tag:")):
                    issues.append(
                        error(Category.POLICY, f"Groups cannot contain {member!r}", group)
                    )

        for tag, owners in self.tag_owners.items():
            if not tag.startswith("tag:"):
                issues.append(error(Category.POLICY, "Tag names must start with tag:", tag))
            for owner in owners:
                issues.extend(self._check_owner(owner, tag))

        if not self.acls:
            issues.append(warning(Category.POLICY, "Policy has no rules; everything is denied"))

        for index, rule in enumerate(self.acls):
            subject = f"acls[{index}]"
            if rule.action != "accept":
                issues.append(
                    error(Category.POLICY, f"Unsupported action {rule.action!r}", subject)
                )
            if not rule.src or not rule.dst:
                issues.append(error(Category.POLICY, "Rule needs src and dst", subject))
            for sel in rule.src:
                issues.extend(self._check_selector(sel, subject))
            for entry in rule.dst:
                try:
                    target, ports = split_destination(entry)
                    parse_ports(ports)
                except DescriptorError as exc:
                    issues.append(error(Category.POLICY, str(exc), subject))
                    continue
                issues.extend(self._check_selector(target, subject, destination=True))

        for index, test in enumerate(self.tests):
            subject = f"tests[{index}]"
            issues.extend(self._check_selector(test.src, subject))
            for entry in [*test.accept, *test.deny]:
                try:
                    target, port_s = split_destination(entry)
                    int(port_s)
                except (DescriptorError, ValueError):
                    issues.append(
                        error(Category.POLICY, f"Test target {entry!r} needs one port", subject)
                    )
                    continue
                issues.extend(self._check_selector(target, subject))
        return issues

    def _check_owner(self, owner: str, tag: str) -> list[Issue]:
        if owner in _OWNER_AUTOGROUPS or "@" in owner:
            return []
        if owner.startswith("group:"):
            if owner not in self.groups:
                return [error(Category.POLICY, f"Owner {owner!r} is not a defined group", tag)]
            return []
        if owner.startswith("tag:"):
            if owner not in self.tag_owners:
                return [error(Category.POLICY, f"Owner {owner!r} has no tagOwners entry", tag)]
            return []
        return [error(Category.POLICY, f"Owner {owner!r} is not a user, group or tag", tag)]

    def _check_selector(
        self, selector: str, subject: str, *, destination: bool = False
    ) -> list[Issue]:
        if selector == "*":
            return []
        if selector.startswith("autogroup:"):
            if selector not in _AUTOGROUPS or (selector == "autogroup:self" and not destination):
                return [warning(Category.POLICY, f"{selector!r} is not evaluated", subject)]
            return []
        if selector.startswith("group:"):
            if selector not in self.groups:
                return [error(Category.POLICY, f"Undefined group {selector!r}", subject)]
            return []
        if selector.startswith("tag:"):
            if selector not in self.tag_owners:
                return [error(Category.POLICY, f"{selector!r} has no tagOwners entry", subject)]
            return []
        if "@" in selector or selector in self.hosts or _as_network(selector) is not None:
            return []
        return [error(Category.POLICY, f"Unknown host alias {selector!r}", subject)]


def _as_network(value: str) -> _Network | None:
    try:
        return ipaddress.ip_network(value, strict=False)
    except ValueError:
        return None


def _first_address(value: str) -> str | None:
    network = _as_network(value)
    if network is None:
        return None
    return str(network.network_address)
