# ============================================================================
# STRUCTURED LOGGING
# ============================================================================
# EPOCH: 2 - PROBE ORCHESTRATION
# STATUS: Core - Structured logging with context
# PURPOSE: Consistent, queryable logging across orchestrator and probes
# CREATED: 19 OCT 2026
# ============================================================================
"""
Structured Logging

Provides structured, JSON-formatted logging for the security check
orchestrator.

Features:
- Component-based loggers
- Contextual fields (run_id, check, attempt)
- JSON output for log aggregation
- Named checkpoints marking run lifecycle events

Usage:
    from core.logging import get_logger, log_context

    logger = get_logger("security_check.orchestrator")

    with log_context(run_id="run-123", check="tls"):
        logger.info("Probe settled", extra={"passed": True})
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Union
from enum import Enum


class ComponentType(str, Enum):
    """Component types for logging categorization."""
    ORCHESTRATOR = "orchestrator"
    CHECK = "check"
    API = "api"
    CONFIG = "config"


@dataclass(frozen=True)
class LogContext:
    """
    Contextual fields attached to every record logged inside log_context().

    Instances are immutable; entering log_context() derives a new one from
    the enclosing context.
    """
    run_id: Optional[str] = None
    check: Optional[str] = None
    attempt: Optional[int] = None
    component: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        result = {
            key: value
            for key, value in asdict(self).items()
            if value is not None and key != "extra"
        }
        result.update(self.extra)
        return result


# One value per asyncio task: create_task() copies the caller's context, so
# concurrent runs never see each other's fields.
_current_context: ContextVar[LogContext] = ContextVar("security_check_log_context")

_EMPTY_CONTEXT = LogContext()


def get_current_context() -> LogContext:
    """Context of the calling task (empty outside any log_context)."""
    return _current_context.get(_EMPTY_CONTEXT)


@contextmanager
def log_context(**kwargs: Any) -> Iterator[LogContext]:
    """
    Add fields to the logging context for the duration of the block.

    Fields not given are inherited from the enclosing context. Safe to hold
    across awaits: the previous context is restored on exit.

    Example:
        with log_context(run_id="run-123"):
            with log_context(check="hsm", attempt=2):
                logger.warning("Probe raised, retrying")
    """
    parent = get_current_context()
    extra = kwargs.pop("extra", None) or {}
    context = replace(parent, extra={**parent.extra, **extra}, **kwargs)

    token = _current_context.set(context)
    try:
        yield context
    finally:
        _current_context.reset(token)


def _record_context(record: logging.LogRecord) -> LogContext:
    """Context captured when the record was created, else the current one."""
    return getattr(record, "log_context", None) or get_current_context()


def _record_data(record: logging.LogRecord) -> Dict[str, Any]:
    return getattr(record, "data", None) or {}


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line.

    Context fields (run_id, check, attempt, component) are top-level keys so
    a run can be followed with a single filter; call-site fields go under
    "data".
    """

    def __init__(self, include_source: bool = True):
        super().__init__()
        self.include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_data.update(_record_context(record).to_dict())

        data = _record_data(record)
        if data:
            log_data["data"] = data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_source:
            log_data["source"] = f"{record.filename}:{record.lineno}"

        return json.dumps(log_data, default=str)


class HumanFormatter(logging.Formatter):
    """
    Single-line development format.

        12:00:01 INFO     security_check.retry [run=3f2a check=hsm#2]: ...
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, timezone.utc).strftime("%H:%M:%S")
        context = _record_context(record)

        tags = []
        if context.run_id:
            tags.append(f"run={context.run_id}")
        if context.check:
            attempt = f"#{context.attempt}" if context.attempt is not None else ""
            tags.append(f"check={context.check}{attempt}")
        tag_str = f" [{' '.join(tags)}]" if tags else ""

        data = _record_data(record)
        data_str = f" {data}" if data else ""

        line = f"{timestamp} {record.levelname:<8} {record.name}{tag_str}: {record.getMessage()}{data_str}"
        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that captures the caller's LogContext on every record.

    Call-site `extra` becomes the record's "data"; the adapter's component
    fills in when the context has none.
    """

    def process(self, msg, kwargs):
        context = get_current_context()
        component = (self.extra or {}).get("component")
        if component and context.component is None:
            context = replace(context, component=component)

        kwargs["extra"] = {
            "log_context": context,
            "data": dict(kwargs.get("extra") or {}),
        }
        return msg, kwargs


def get_logger(
    name: str,
    component: Optional[ComponentType] = None,
) -> ContextLogger:
    """
    Get a context-aware logger.

    Args:
        name: Logger name (e.g., "security_check.orchestrator")
        component: Optional component type for categorization
    """
    return ContextLogger(
        logging.getLogger(name),
        {"component": component.value if component else None},
    )


def configure_logging(
    level: Union[str, int] = "INFO",
    json_output: bool = False,
) -> None:
    """
    Install a single stdout handler on the root logger.

    Args:
        level: Log level name or number
        json_output: StructuredFormatter instead of HumanFormatter
            (also selected by LOG_FORMAT=json)
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if json_output or os.getenv("LOG_FORMAT", "").lower() == "json":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = HumanFormatter()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)


# ============================================================================
# CHECKPOINT LOGGING
# ============================================================================

def log_checkpoint(
    name: str,
    data: Optional[Dict[str, Any]] = None,
    logger: Union[logging.Logger, logging.LoggerAdapter, None] = None,
) -> None:
    """
    Log a named run lifecycle marker.

    Checkpoints (security_check_started, security_check_completed,
    security_check_terminated) carry the current run context, so the
    flow of one run can be reconstructed from them alone.

    Args:
        name: Checkpoint name
        data: Optional checkpoint data
        logger: Logger or ContextLogger to emit through
    """
    if logger is None:
        logger = logging.getLogger("checkpoint")
    if isinstance(logger, logging.LoggerAdapter):
        logger = logger.logger

    logger.info(
        f"CHECKPOINT: {name}",
        extra={
            "log_context": get_current_context(),
            "data": {"checkpoint": name, **(data or {})},
        },
    )


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ComponentType",
    "LogContext",
    "StructuredFormatter",
    "HumanFormatter",
    "ContextLogger",
    "get_logger",
    "configure_logging",
    "log_context",
    "get_current_context",
    "log_checkpoint",
]
