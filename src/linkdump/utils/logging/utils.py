# ABOUTME: Logger utilities with context binding and stage timing decorators
# ABOUTME: Provides get_logger function and decorators for consistent structured logging

import functools
import time
import uuid
from collections.abc import Callable
from typing import Any, TypeVar

import structlog

# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., Any])


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance with automatic module detection.

    Args:
        name: Logger name, auto-detected from caller if None

    Returns:
        Configured structlog logger instance
    """
    if name is None:
        import inspect

        frame = inspect.currentframe()
        if frame and frame.f_back:
            name = frame.f_back.f_globals.get("__name__", "unknown")

    return structlog.get_logger(name or "linkdump")


def generate_operation_id() -> str:
    """Generate a unique operation ID for tracking requests."""
    return str(uuid.uuid4())[:8]


def log_stage(stage_name: str) -> Callable[[F], F]:
    """Decorator to log an enrichment stage run for one link.

    The first positional argument after ``self`` is expected to be the link;
    its url is bound to the log context.

    Args:
        stage_name: Name of the pipeline stage

    Returns:
        Decorated coroutine with stage timing logs
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(self, link, *args, **kwargs):
            logger = get_logger(func.__module__)
            bound_logger = logger.bind(stage=stage_name, url=getattr(link, "url", None))
            start_time = time.time()

            try:
                result = await func(self, link, *args, **kwargs)
            except Exception as e:
                bound_logger.error(
                    f"Stage failed: {stage_name}",
                    duration_seconds=round(time.time() - start_time, 3),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

            bound_logger.debug(f"Stage done: {stage_name}", duration_seconds=round(time.time() - start_time, 3))
            return result

        return wrapper  # type: ignore[return-value]

    return decorator


class LogContext:
    """Context manager for binding logger context."""

    def __init__(self, logger: structlog.stdlib.BoundLogger, **context):
        self.logger = logger
        self.context = context
        self.bound_logger = None

    def __enter__(self) -> structlog.stdlib.BoundLogger:
        self.bound_logger = self.logger.bind(**self.context)
        return self.bound_logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None and self.bound_logger is not None:
            self.bound_logger.error("Context operation failed", error=str(exc_val), error_type=exc_type.__name__)


def with_source_context(filename: str | None) -> LogContext:
    """Create a logging context for one imported document.

    Args:
        filename: Name of the link-dump file being processed

    Returns:
        LogContext manager with document context
    """
    logger = get_logger()
    return LogContext(logger, filename=filename, entity_type="link_source")


def with_pipeline_context(pipeline_name: str, **context) -> LogContext:
    """Create a logging context for pipeline operations.

    Args:
        pipeline_name: Name of the pipeline
        **context: Additional context to bind

    Returns:
        LogContext manager with pipeline context
    """
    logger = get_logger()
    operation_id = generate_operation_id()
    return LogContext(logger, pipeline=pipeline_name, operation_id=operation_id, **context)
