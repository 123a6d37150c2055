"""Logging and observability utilities for tasksync.

This module provides structured logging, timing of pipeline operations,
and observability hooks that callers can subscribe to in order to react
to ledger writes and status changes.
"""

from __future__ import annotations

import json
import time
import logging as std_logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union
from functools import wraps

LOGGER_NAME = "tasksync"


def setup_logging(log_level: Union[str, int] = std_logging.INFO, log_file: Optional[Path] = None) -> None:
    """Setup structured logging for tasksync."""

    if isinstance(log_level, str):
        log_level = log_level.upper()

    logger = std_logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)

    # Clear existing handlers
    logger.handlers.clear()

    detailed_formatter = std_logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # stderr only: stdout carries the MCP stdio transport
    console_handler = std_logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(detailed_formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = std_logging.FileHandler(log_file)
        file_handler.setLevel(std_logging.DEBUG)
        file_handler.setFormatter(JsonFormatter())
        logger.addHandler(file_handler)

    logger.info("tasksync logging initialized")


class JsonFormatter(std_logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: std_logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_entry.update(record.extra_fields)

        return json.dumps(log_entry, default=str)


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class PerformanceMonitor:
    """Collect operation durations in memory."""

    def __init__(self):
        self.metrics: Dict[str, List[Dict[str, Any]]] = {}

    def record_metric(self, name: str, value: Any, tags: Optional[Dict[str, str]] = None) -> None:
        metric = {
            "timestamp": _utcnow(),
            "name": name,
            "value": value,
            "tags": tags or {}
        }
        self.metrics.setdefault(name, []).append(metric)

        logger = std_logging.getLogger(f"{LOGGER_NAME}.performance")
        logger.debug(f"Metric recorded: {name}={value}", extra={"extra_fields": metric})

    def get_metrics(self, name: Optional[str] = None) -> Dict[str, List[Dict[str, Any]]]:
        """Get recorded metrics."""
        if name:
            return {name: self.metrics.get(name, [])}
        return self.metrics.copy()

    def clear(self) -> None:
        self.metrics.clear()


performance_monitor = PerformanceMonitor()


def log_performance(operation_name: str):
    """Decorator to log the duration of an operation, successful or not."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.time()
            logger = std_logging.getLogger(f"{LOGGER_NAME}.performance")

            try:
                logger.debug(f"Starting operation: {operation_name}")
                result = func(*args, **kwargs)

                duration = time.time() - start_time
                performance_monitor.record_metric(
                    f"{operation_name}_duration",
                    duration,
                    {"status": "success"}
                )
                logger.info(
                    f"Completed operation: {operation_name} in {duration:.3f}s",
                    extra={"extra_fields": {
                        "operation": operation_name,
                        "duration": duration,
                        "status": "success"
                    }}
                )
                return result

            except Exception as e:
                duration = time.time() - start_time
                performance_monitor.record_metric(
                    f"{operation_name}_duration",
                    duration,
                    {"status": "error", "error_type": type(e).__name__}
                )
                logger.error(
                    f"Failed operation: {operation_name} after {duration:.3f}s - {e}",
                    extra={"extra_fields": {
                        "operation": operation_name,
                        "duration": duration,
                        "status": "error",
                        "error_type": type(e).__name__,
                        "error_message": str(e)
                    }}
                )
                raise

        return wrapper
    return decorator


@contextmanager
def log_operation(operation_name: str, **extra_fields):
    """Context manager to log operations with custom fields."""
    logger = std_logging.getLogger(f"{LOGGER_NAME}.operations")
    start_time = time.time()

    logger.debug(f"Starting operation: {operation_name}", extra={"extra_fields": {
        "operation": operation_name,
        "status": "started",
        **extra_fields
    }})

    try:
        yield

        duration = time.time() - start_time
        logger.info(f"Completed operation: {operation_name} in {duration:.3f}s", extra={"extra_fields": {
            "operation": operation_name,
            "status": "completed",
            "duration": duration,
            **extra_fields
        }})

    except Exception as e:
        duration = time.time() - start_time
        logger.error(f"Failed operation: {operation_name} after {duration:.3f}s - {e}", extra={"extra_fields": {
            "operation": operation_name,
            "status": "failed",
            "duration": duration,
            "error_type": type(e).__name__,
            "error_message": str(e),
            **extra_fields
        }})
        raise


class ObservabilityHooks:
    """Callbacks fired on synchronization events."""

    def __init__(self):
        self.hooks: Dict[str, List[Callable[..., Any]]] = {}
        self.logger = std_logging.getLogger(f"{LOGGER_NAME}.observability")

    def register_hook(self, event_type: str, callback: Callable[..., Any]) -> None:
        """Register a callback for a specific event type."""
        self.hooks.setdefault(event_type, []).append(callback)
        self.logger.debug(f"Registered hook for event: {event_type}")

    def unregister_hook(self, event_type: str, callback: Callable[..., Any]) -> None:
        callbacks = self.hooks.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def trigger_hooks(self, event_type: str, **data) -> None:
        """Trigger all callbacks for a specific event type.

        A failing hook is logged and does not stop the remaining hooks or
        the operation that fired the event.
        """
        for hook in list(self.hooks.get(event_type, [])):
            try:
                hook(**data)
            except Exception as e:
                self.logger.error(f"Hook failed for event {event_type}: {e}")

    def log_sync_event(self, event_type: str, change_id: Optional[str] = None, **data) -> None:
        """Log a synchronization event and trigger hooks."""
        event_data = {
            "timestamp": _utcnow(),
            "event_type": event_type,
            "change_id": change_id,
            **data
        }
        self.logger.info(f"Sync event: {event_type}", extra={"extra_fields": event_data})

        hook_data = {k: v for k, v in event_data.items() if k != "event_type"}
        self.trigger_hooks(event_type, **hook_data)


observability_hooks = ObservabilityHooks()


def log_error_with_context(error: Exception, context: Dict[str, Any], **extra_fields) -> None:
    """Log an error with rich context information."""
    logger = std_logging.getLogger(f"{LOGGER_NAME}.errors")

    error_data = {
        "timestamp": _utcnow(),
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context,
        **extra_fields
    }

    logger.error(
        f"Error in {context.get('operation', 'unknown operation')}: {error}",
        extra={"extra_fields": error_data},
        exc_info=error
    )


# Convenience functions for common events
def log_document_written(change_id: Optional[str], path: Path, task_count: int, **extra_fields) -> None:
    observability_hooks.log_sync_event(
        "document_written", change_id=change_id, path=str(path), task_count=task_count, **extra_fields
    )


def log_statuses_merged(change_id: Optional[str], preserved: int, **extra_fields) -> None:
    observability_hooks.log_sync_event("statuses_merged", change_id=change_id, preserved=preserved, **extra_fields)


def log_tasks_appended(change_id: Optional[str], section: str, task_count: int, **extra_fields) -> None:
    observability_hooks.log_sync_event(
        "tasks_appended", change_id=change_id, section=section, task_count=task_count, **extra_fields
    )


def log_task_status_update(change_id: Optional[str], task_id: str, status: str, **extra_fields) -> None:
    observability_hooks.log_sync_event(
        "task_status_updated", change_id=change_id, task_id=task_id, status=status, **extra_fields
    )


def log_markdown_synced(change_id: Optional[str], path: Path, updated: int, **extra_fields) -> None:
    observability_hooks.log_sync_event(
        "markdown_synced", change_id=change_id, path=str(path), updated=updated, **extra_fields
    )


_default_logging_initialized = False


def initialize_default_logging(log_level: Union[str, int, None] = None) -> None:
    """Initialize console logging once per process."""
    global _default_logging_initialized
    if not _default_logging_initialized:
        setup_logging(log_level or std_logging.INFO)
        _default_logging_initialized = True
