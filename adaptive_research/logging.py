"""Structured logging for research runs.

Every record is rendered as one JSON object (or one console line with
``testing=True`` / ``LOG_FORMAT=console``) with a fixed set of root fields:
``timestamp``, ``level``, ``logger``, ``message`` and ``context``. Anything
passed as a keyword, plus the run's correlation id, is folded into ``extra``.
"""

import logging
import os
import sys
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

PACKAGE_PREFIX = "adaptive_research"

CORRELATION_ID = "correlation_id"
ROOT_FIELDS = frozenset({"timestamp", "level", "logger", "message", "context"})


@dataclass(frozen=True)
class LogDefaults:
    context: str = "research"
    correlation_id: str = "unknown"
    log_level: str = "INFO"
    max_value_length: int = 60
    correlation_id_display_length: int = 8
    max_question_length: int = 120
    # Libraries that log every provider request at INFO
    noisy_loggers: tuple[str, ...] = ("httpx", "httpcore")


DEFAULTS = LogDefaults()


def get_correlation_id() -> str:
    """Correlation id of the current research run, or ``"unknown"`` outside one."""
    return str(get_context_vars().get(CORRELATION_ID, DEFAULTS.correlation_id))


def bind_research_context(question: str, correlation_id: str | None = None) -> str:
    """Bind a research run's correlation id and (shortened) question to the log context.

    Returns the correlation id so callers can surface it.
    """
    run_id = correlation_id or uuid4().hex[: DEFAULTS.correlation_id_display_length]
    if len(question) > DEFAULTS.max_question_length:
        question = question[: DEFAULTS.max_question_length - 3] + "..."
    bind_context_vars(correlation_id=run_id, question=question)
    return run_id


def _fold_into_extra(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Rename structlog's ``event`` to ``message`` and nest non-root keys under ``extra``."""
    context = get_context_vars()
    record: EventDict = {
        "message": event_dict.pop("event", ""),
        "context": str(context.get("context", DEFAULTS.context)),
    }
    extra: dict[str, Any] = {}
    for key, value in event_dict.items():
        if key in ROOT_FIELDS:
            record[key] = value
        else:
            extra[key] = value

    correlation_id = get_correlation_id()
    if correlation_id != DEFAULTS.correlation_id:
        extra[CORRELATION_ID] = correlation_id
    if extra:
        record["extra"] = extra
    return record


class HumanReadableFormatter:
    """Renders one console line: ``HH:MM:SS [LEVEL] logger: message [k=v, ...] [id:xxxxxxxx]``."""

    def __init__(self, defaults: LogDefaults = DEFAULTS):
        self.defaults = defaults

    def __call__(self, _: WrappedLogger, __: str, event_dict: EventDict) -> str:
        extra = dict(event_dict.get("extra", {}))
        correlation_id = str(extra.pop(CORRELATION_ID, ""))

        line = (
            f"{self.format_timestamp(event_dict.get('timestamp', ''))} "
            f"[{str(event_dict.get('level', 'info')).upper()}] "
            f"{self.format_logger_name(event_dict.get('logger', ''))}: "
            f"{event_dict.get('message', '')}"
        )
        if extra:
            line += " [" + ", ".join(f"{key}={self.format_field_value(value)}" for key, value in extra.items()) + "]"
        if correlation_id:
            line += f" [id:{correlation_id[: self.defaults.correlation_id_display_length]}]"
        return line

    def format_field_value(self, value: Any) -> str:
        text = str(value)
        limit = self.defaults.max_value_length
        return text if len(text) <= limit else text[: limit - 3] + "..."

    @staticmethod
    def format_timestamp(timestamp: str) -> str:
        # TimeStamper(fmt="iso") yields "2025-03-05T10:00:00.123456Z"
        _, sep, clock = timestamp.partition("T")
        return clock[:8] if sep else ""

    @staticmethod
    def format_logger_name(logger_name: str) -> str:
        """``adaptive_research.providers.fetcher`` -> ``providers.fetcher``; foreign loggers unchanged."""
        if logger_name != PACKAGE_PREFIX and not logger_name.startswith(f"{PACKAGE_PREFIX}."):
            return logger_name
        parts = logger_name.split(".")[1:] or [logger_name]
        return ".".join(parts[-2:])


def _resolve_level() -> int:
    name = os.environ.get("LOGGING_LEVEL", DEFAULTS.log_level).upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _build_processors(console: bool) -> list[Processor]:
    renderer: Processor = (
        HumanReadableFormatter() if console else structlog.processors.JSONRenderer(ensure_ascii=False)
    )
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.contextvars.merge_contextvars,
        _fold_into_extra,
        structlog.processors.TimeStamper(fmt="iso"),
        renderer,
    ]


def configure_structlog(testing: bool = False) -> None:
    """Route structlog through stdlib logging on stdout.

    JSON lines by default; console lines when ``testing`` is set or
    ``LOG_FORMAT=console``. The level comes from ``LOGGING_LEVEL`` and falls
    back to INFO for unknown names.
    """
    level = _resolve_level()
    console = testing or os.environ.get("LOG_FORMAT", "").lower() == "console"

    logging.basicConfig(format="%(message)s", level=level, stream=sys.stdout)
    logging.getLogger().setLevel(level)
    for name in DEFAULTS.noisy_loggers:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=_build_processors(console),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


def clear_context_fields() -> None:
    structlog.contextvars.clear_contextvars()


def bind_context_vars(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def get_context_vars() -> dict[str, Any]:
    return structlog.contextvars.get_contextvars()


def get_logger(name: str = "") -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name or PACKAGE_PREFIX)  # type: ignore[no-any-return]
