"""
Utilities for pgproxy.
"""

from .logging import (
    get_logger, configure_logging, logging_context,
    get_context, set_context, clear_context,
    JsonFormatter, StructuredLogRecord
)

__all__ = [
    'get_logger', 'configure_logging', 'logging_context',
    'get_context', 'set_context', 'clear_context',
    'JsonFormatter', 'StructuredLogRecord'
]
