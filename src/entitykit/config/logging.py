"""structlog configuration for entitykit.

Two output modes:
- Human (default): console lines on stderr, prefixed with the bound
  ``entity/op`` of the operation that emitted them
- JSON (--log-json): one JSON object per line on stderr, with ``entity``
  and ``op`` as separate keys and tracebacks as structured data

Engine modules log through the stdlib ``logging`` module; their records
pick up the context that :class:`EntityOrchestrator` binds with
``structlog.contextvars`` for the duration of a read or update.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

ROW_LOGGER = "entitykit.services.binding"


def logger_levels(verbose: bool) -> dict[str, int]:
    """Levels applied to named loggers.

    Per-row write failures are reported in the operation outcome, so the
    binding logger only speaks up for rollback errors unless *verbose*.
    """
    return {
        "entitykit": logging.DEBUG if verbose else logging.WARNING,
        ROW_LOGGER: logging.DEBUG if verbose else logging.ERROR,
        "sqlalchemy.engine": logging.WARNING,
    }


def tag_operation(
    _logger: Any, _method: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Fold bound ``entity``/``op`` keys into a ``entity/op:`` event prefix."""
    entity = event_dict.pop("entity", None)
    op = event_dict.pop("op", None)
    if entity is None:
        if op is not None:
            event_dict["op"] = op
        return event_dict
    scope = f"{entity}/{op}" if op else str(entity)
    event = str(event_dict.get("event", ""))
    # Engine messages usually lead with the entity name already.
    lead = f"{entity}: "
    if event.startswith(lead):
        event = event[len(lead) :]
    event_dict["event"] = f"{scope}: {event}"
    return event_dict


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
) -> None:
    """Configure structlog processors and output routing.

    Args:
        verbose: Enable DEBUG-level output. When False, only WARNING+
            (ERROR+ for per-row binding messages).
        log_json: Use JSON renderer instead of console renderer.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    output: list[structlog.types.Processor]
    if log_json:
        output = [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        output = [
            tag_operation,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *output,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.WARNING)

    for name, level in logger_levels(verbose).items():
        logging.getLogger(name).setLevel(level)
