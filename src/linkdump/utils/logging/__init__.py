# ABOUTME: Logging configuration and structured logger helpers
# ABOUTME: structlog loggers everywhere, loguru sinks configured once at startup

from .config import LoggingMode, configure_logging, detect_logging_mode, get_logging_status
from .utils import get_logger, log_stage, with_pipeline_context, with_source_context

__all__ = [
    # Configuration
    "LoggingMode",
    "configure_logging",
    "detect_logging_mode",
    "get_logging_status",
    # Utilities
    "get_logger",
    "log_stage",
    "with_pipeline_context",
    "with_source_context",
]
