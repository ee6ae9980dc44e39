"""BaseService — foundation for stack-bound services.

Every service receives a :class:`Stack` at construction time.  The Stack
provides parsed descriptors, the dependency graph, the compose runner and
transactional file writes.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from holectl.domain.types import DescriptorError, DescriptorSyntaxError
from holectl.services.result import ServiceResult

if TYPE_CHECKING:
    from collections.abc import Callable

    from holectl.infrastructure.stack import Stack

logger = logging.getLogger(__name__)


class BaseService:
    """Base for all service-layer classes.

    Usage::

        class PlanService(BaseService):
            def plan(self) -> ServiceResult:
                compose, failure = self._load("plan", self._stack.compose)
                if failure is not None:
                    return failure
                ...
    """

    def __init__(self, stack: Stack) -> None:
        self._stack = stack

    def _load[T](
        self, op: str, loader: Callable[[], T]
    ) -> tuple[T, None] | tuple[None, ServiceResult]:
        """Run a descriptor loader, turning read/parse failures into results.

        Returns ``(value, None)`` on success or ``(None, failure)``.
        """
        try:
            return loader(), None
        except FileNotFoundError as exc:
            path = Path(exc.filename or "descriptor")
            return None, ServiceResult.failure(
                op, "NOT_FOUND", f"{self._stack.relative(path)} not found", path=str(path)
            )
        except OSError as exc:
            return None, ServiceResult.failure(op, "READ_ERROR", str(exc))
        except DescriptorSyntaxError as exc:
            logger.debug("Descriptor parse failed", exc_info=True)
            return None, ServiceResult.failure(op, "PARSE_ERROR", str(exc))
        except DescriptorError as exc:
            return None, ServiceResult.failure(op, "INVALID_DESCRIPTOR", str(exc))

    @staticmethod
    def _issue_counts(issues: list[dict[str, Any]]) -> dict[str, Any]:
        errors = sum(1 for i in issues if i["severity"] == "error")
        return {
            "count": len(issues),
            "error_count": errors,
            "warning_count": len(issues) - errors,
            "healthy": errors == 0,
        }
