"""
Utility modules for the CaesarBot gateway.
"""

from .structured_logging import (
    LogContext,
    CorrelationIdFilter,
    StructuredFormatter,
    ContextualLogger,
    LoggingManager,
    logging_manager,
    get_logger,
    with_correlation_id,
)

__all__ = [
    "LogContext",
    "CorrelationIdFilter",
    "StructuredFormatter",
    "ContextualLogger",
    "LoggingManager",
    "logging_manager",
    "get_logger",
    "with_correlation_id",
]
