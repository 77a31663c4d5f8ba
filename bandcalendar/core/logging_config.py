"""
Central logging configuration for bandcalendar.

Every engine operation runs inside operation_context() so the log lines it emits
share one operation id, which makes multi-record series operations easy to follow.
"""

from __future__ import annotations

import contextlib
import logging
import os
import uuid
from collections.abc import Iterator
from contextvars import ContextVar
from typing import Optional

# Context variable carrying the id of the engine operation in progress
operation_id_var: ContextVar[str] = ContextVar("operation_id", default="")

ENGINE_MODULES = [
    "bandcalendar",
    "bandcalendar.domain.recurrence",
    "bandcalendar.domain.series_manager",
    "bandcalendar.domain.candidate_dates",
    "bandcalendar.domain.availability",
    "bandcalendar.domain.event_cache",
    "bandcalendar.store",
]

SUPPRESSED_LOGGERS = [
    "aiosqlite",
    "asyncio",
]


def get_operation_id() -> str:
    """Return the current operation id, or "no-operation-id" outside an operation."""
    return operation_id_var.get() or "no-operation-id"


@contextlib.contextmanager
def operation_context(name: str, operation_id: Optional[str] = None) -> Iterator[str]:
    """Bind an operation id for the duration of one engine operation.

    Nested contexts keep the outer id so one caller action logs under one id.

    Args:
        name: Short operation name, prefixed to generated ids
        operation_id: Explicit id to use instead of a generated one

    Yields:
        The operation id in effect
    """
    current = operation_id_var.get()
    if current and operation_id is None:
        yield current
        return

    new_id = operation_id or f"{name}-{uuid.uuid4().hex[:8]}"
    token = operation_id_var.set(new_id)
    try:
        yield new_id
    finally:
        operation_id_var.reset(token)


class OperationIdFilter(logging.Filter):
    """Add the current operation id to all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.operation_id = get_operation_id()
        return True


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for bandcalendar.

    Args:
        debug_mode: Whether to enable debug logging for bandcalendar modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        BANDCAL_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        BANDCAL_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("BANDCAL_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("BANDCAL_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    operation_filter = OperationIdFilter()

    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        formatter = logging.Formatter(
            "[%(asctime)s] [%(operation_id)s] %(levelname)s - %(name)s - %(message)s"
        )
        handler.setFormatter(formatter)
        handler.addFilter(operation_filter)
        root_logger.addHandler(handler)
    else:
        for existing_handler in root_logger.handlers:
            if not any(isinstance(f, OperationIdFilter) for f in existing_handler.filters):
                existing_handler.addFilter(operation_filter)

    logger_config: dict[str, int] = {name: logging.WARNING for name in SUPPRESSED_LOGGERS}

    engine_level = logging.DEBUG if final_debug else logging.INFO
    for module in ENGINE_MODULES:
        logger_config[module] = engine_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.info("Debug logging enabled for bandcalendar modules.")
    else:
        root_logger.info("Production logging configuration applied.")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}

    for logger_name in ["bandcalendar", *SUPPRESSED_LOGGERS]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)

    return status
