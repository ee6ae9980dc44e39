"""structlog configuration for holectl.

Two output modes, both on stderr so stdout stays the command result:
- Human (default): colored console output
- JSON (--log-json): one JSON object per line, tracebacks as dicts

Every line carries the stack root it concerns.  Tailscale auth keys are
masked before any renderer sees them.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from pathlib import Path

_AUTH_KEY_RE = re.compile(r"tskey-[A-Za-z0-9-]+")

# Libraries that log per query or per retry at DEBUG.
_NOISY_LOGGERS = ("dns",)


def _mask_auth_keys(
    _logger: Any, _method: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    for key, value in event_dict.items():
        if isinstance(value, str) and "tskey-" in value:
            event_dict[key] = _AUTH_KEY_RE.sub("tskey-****", value)
    return event_dict


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
    stack_root: Path | None = None,
) -> None:
    """Configure structlog processors and route stdlib logging through them.

    Args:
        verbose: DEBUG for holectl loggers. When False, only WARNING+.
        log_json: Use the JSON renderer instead of the console renderer.
        stack_root: Bound as ``stack`` on every log line.
    """
    structlog.contextvars.clear_contextvars()
    if stack_root is not None:
        structlog.contextvars.bind_contextvars(stack=str(stack_root))

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        _mask_auth_keys,
    ]

    final: list[structlog.types.Processor]
    if log_json:
        final = [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        final = [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *final],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.WARNING)

    logging.getLogger("holectl").setLevel(logging.DEBUG if verbose else logging.WARNING)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
