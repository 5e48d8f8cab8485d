"""Utility modules for logging, error handling and retries."""

from driftguard.utils.retry import RetryStrategy
from driftguard.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    DriftGuardError,
    ConfigurationError,
    NotFoundError,
    ParseError,
    TransportError,
    ConflictError,
    WriteError,
    ErrorHandler,
    error_handler
)
from driftguard.utils.logging import get_logger, setup_logging

__all__ = [
    # Retry
    'RetryStrategy',

    # Errors
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'DriftGuardError',
    'ConfigurationError',
    'NotFoundError',
    'ParseError',
    'TransportError',
    'ConflictError',
    'WriteError',
    'ErrorHandler',
    'error_handler',

    # Logging
    'get_logger',
    'setup_logging',
]
