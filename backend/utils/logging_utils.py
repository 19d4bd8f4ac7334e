"""
Structured Logging Utilities

Provides utilities for adding structured context to log messages,
so batch units can be traced back to the user they worked on.
"""

import inspect
import logging
import time
from typing import Any, Dict, Optional
from contextvars import ContextVar
from functools import wraps


# Context variable for request-scoped logging context
_logging_context: ContextVar[Dict[str, Any]] = ContextVar('logging_context', default={})

_CONTEXT_KEYS = ("user_id", "section", "item_id")


class StructuredLogger:
    """
    Wrapper around standard logger that adds structured context.

    Usage:
        logger = StructuredLogger(__name__)
        logger.info("Vehicle added", extra={"user_id": user_id, "section": "vehicles"})
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _add_context(self, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        context = _logging_context.get().copy()
        if extra:
            context.update(extra)
        return context

    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self.logger.debug(message, extra=self._add_context(extra))

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self.logger.info(message, extra=self._add_context(extra))

    def warning(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self.logger.warning(message, extra=self._add_context(extra))

    def error(self, message: str, extra: Optional[Dict[str, Any]] = None, exc_info: bool = False):
        self.logger.error(message, extra=self._add_context(extra), exc_info=exc_info)


def get_logging_context() -> Dict[str, Any]:
    return _logging_context.get().copy()


def set_logging_context(**kwargs):
    """
    Set logging context for the current request/operation.

    Worker threads keep their context between units, so callers running on
    the pool must pair this with clear_logging_context().

    Example:
        set_logging_context(user_id="u1", operation="batch_add")
    """
    context = _logging_context.get().copy()
    context.update(kwargs)
    _logging_context.set(context)


def clear_logging_context():
    """Clear the logging context."""
    _logging_context.set({})


class _OperationLog:
    """Start/finish/failure records for one decorated call."""

    def __init__(self, module: str, operation_name: str, kwargs: Dict[str, Any]):
        self.logger = StructuredLogger(module)
        self.operation_name = operation_name
        self.context: Dict[str, Any] = {"operation": operation_name}
        self.context.update({key: kwargs[key] for key in _CONTEXT_KEYS if key in kwargs})
        self.started = time.monotonic()
        self.logger.info(f"Starting {operation_name}", extra=self.context)

    def completed(self) -> None:
        self.context["elapsed_ms"] = round((time.monotonic() - self.started) * 1000, 1)
        self.logger.info(
            f"Completed {self.operation_name} in {self.context['elapsed_ms']}ms", extra=self.context
        )

    def failed(self, error: Exception) -> None:
        self.context["error"] = str(error)
        self.context["error_type"] = type(error).__name__
        self.logger.error(f"Failed {self.operation_name}", extra=self.context, exc_info=True)


def log_operation(operation_name: str):
    """
    Decorator to log operation start/end with elapsed time and structured context.

    user_id, section and item_id keyword arguments are copied into the context.

    Example:
        @log_operation("generate_report")
        async def generate_report(self, user_ids):
            ...
    """
    def decorator(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            op_log = _OperationLog(func.__module__, operation_name, kwargs)
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                op_log.failed(e)
                raise
            op_log.completed()
            return result

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            op_log = _OperationLog(func.__module__, operation_name, kwargs)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                op_log.failed(e)
                raise
            op_log.completed()
            return result

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
