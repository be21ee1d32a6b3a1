"""
Centralized logging and error handling utilities for streamchat.

This module provides helpers to standardize logging and error reporting
across the codebase.

Features:
- Structured logging with contextual information
- Error classification for user-facing failure reporting
- Performance timing for async operations
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, ParamSpec, TypeVar

import structlog
from pydantic import ValidationError

from streamchat.llm.exceptions import StreamTransportFailure, TransportRejected

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

# Type variables for generic decorators
P = ParamSpec("P")
T = TypeVar("T")
AsyncCallable = Callable[P, Awaitable[T]]

logger = structlog.get_logger(__name__)


def configure_logging(logging_config: dict[str, Any] | None = None) -> None:
    """Configure stdlib logging from the ``logging`` section of config.yaml."""
    logging_config = logging_config or {}
    level_name = str(logging_config.get("level", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise ValueError(f"Unknown logging level: {level_name}")

    logging.basicConfig(
        level=level,
        format=logging_config.get(
            "format", "%(asctime)s - %(levelname)s - %(message)s"
        ),
    )


class ChatErrorHandler:
    """Centralized chat error classification."""

    @staticmethod
    def classify_error(error: BaseException) -> str:
        """
        Classify an error into a reporting category.

        Args:
            error: The exception to classify

        Returns:
            The error category
        """
        if isinstance(error, TransportRejected):
            return "transport_rejected"
        if isinstance(error, StreamTransportFailure):
            return "stream_transport_failure"
        if isinstance(error, ValidationError):
            return "validation_error"
        if isinstance(error, TimeoutError):
            return "timeout_error"
        if isinstance(error, ConnectionError | OSError):
            return "connection_error"
        if isinstance(error, ValueError | TypeError):
            return "parameter_error"
        return "unknown_error"


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)


def _failure_fields(error: Exception, start_time: float) -> dict[str, Any]:
    return {
        "error_type": type(error).__name__,
        "error_category": ChatErrorHandler.classify_error(error),
        "error_message": str(error),
        "duration_ms": _elapsed_ms(start_time),
    }


def log_operation(
    operation: str,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """
    Decorator that logs start, duration and failure of an async method.

    Args:
        operation: Name logged as the ``operation`` field
    """
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            operation_logger = logger.bind(
                operation=operation, function=func.__name__
            )
            operation_logger.debug("Operation started")
            start_time = time.perf_counter()

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                operation_logger.error(
                    "Operation failed", **_failure_fields(e, start_time)
                )
                raise

            operation_logger.debug(
                "Operation completed successfully",
                duration_ms=_elapsed_ms(start_time),
            )
            return result

        return wrapper
    return decorator


@asynccontextmanager
async def operation_context(
    operation: str,
    *,
    context: dict[str, Any] | None = None,
):
    """
    Async context manager for operation logging.

    A failure is logged once, with its ``error_category``, and re-raised.

    Args:
        operation: Description of the operation
        context: Additional context for logging

    Yields:
        Bound logger for the operation
    """
    operation_logger = logger.bind(operation=operation, **(context or {}))
    operation_logger.info("Operation started")
    start_time = time.perf_counter()

    try:
        yield operation_logger
    except Exception as e:
        operation_logger.error("Operation failed", **_failure_fields(e, start_time))
        raise

    operation_logger.info(
        "Operation completed successfully", duration_ms=_elapsed_ms(start_time)
    )
