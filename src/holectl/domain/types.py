"""Shared enums and the validation Issue record.

Validators in the domain layer never raise on bad descriptors; they
return lists of :class:`Issue` so ``holectl check`` can report every
problem in one pass.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class Severity(StrEnum):
    """How bad a validation finding is. Errors make a stack unhealthy."""

    ERROR = "error"
    WARNING = "warning"


class Category(StrEnum):
    """Which descriptor (or cross-descriptor concern) an issue belongs to."""

    COMPOSE = "compose"
    GRAPH = "dependency_graph"
    SERVE = "serve"
    POLICY = "policy"
    SECRET = "secret"
    WIRING = "stack_wiring"


class RestartPolicy(StrEnum):
    """Restart policies accepted by the compose file format."""

    NO = "no"
    ALWAYS = "always"
    ON_FAILURE = "on-failure"
    UNLESS_STOPPED = "unless-stopped"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        """Accept the plain policies plus ``on-failure:N`` with a retry count."""
        if value in cls._value2member_map_:
            return True
        head, sep, count = value.partition(":")
        return head == cls.ON_FAILURE and bool(sep) and count.isdigit()


@dataclass(frozen=True)
class Issue:
    """One validation finding."""

    category: Category
    severity: Severity
    message: str
    subject: str | None = None

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": str(self.category),
            "severity": str(self.severity),
            "message": self.message,
            "subject": self.subject,
        }


def error(category: Category, message: str, subject: str | None = None) -> Issue:
    return Issue(category, Severity.ERROR, message, subject)


def warning(category: Category, message: str, subject: str | None = None) -> Issue:
    return Issue(category, Severity.WARNING, message, subject)


class DescriptorError(ValueError):
    """A descriptor's shape is too broken to build a model from it."""


class DescriptorSyntaxError(DescriptorError):
    """The file is not valid YAML or JSON."""
