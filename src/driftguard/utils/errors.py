"""Error handling framework for drift detection and reconciliation."""

import json
from typing import Optional, Dict, Any, List
from enum import Enum
from dataclasses import dataclass

import requests
import yaml

from driftguard.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Categories of errors that can occur during a reconciliation run."""
    CONFIGURATION = "configuration"
    NOT_FOUND = "not_found"
    PARSE = "parse"
    TRANSPORT = "transport"
    CONFLICT = "conflict"
    WRITE = "write"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    CRITICAL = "critical"  # Run cannot continue
    ERROR = "error"  # Host failed but the run can continue
    WARNING = "warning"  # Non-fatal issue
    INFO = "info"  # Informational message


@dataclass
class ErrorContext:
    """Context information for an error."""
    host: Optional[str] = None
    store_path: Optional[str] = None
    operation: Optional[str] = None
    set_name: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None


class DriftGuardError(Exception):
    """Base exception for driftguard errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """Initialize driftguard error.

        Args:
            message: Human-readable error message
            category: Error category
            severity: Error severity
            context: Additional context about the error
            cause: Original exception that caused this error
            suggestions: List of suggested fixes
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = suggestions or []

    def to_user_message(self) -> str:
        """Convert error to user-friendly message.

        Returns:
            Formatted error message for display to user
        """
        lines = []

        lines.append(f"{self.severity.value.upper()}: {self.message}")

        if self.context.host:
            lines.append(f"   Host: {self.context.host}")
        if self.context.store_path:
            lines.append(f"   Store: {self.context.store_path}")
        if self.context.operation:
            lines.append(f"   Operation: {self.context.operation}")

        if self.cause:
            lines.append(f"   Cause: {str(self.cause)}")

        if self.suggestions:
            lines.append("\nSuggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error
        """
        return {
            'message': self.message,
            'category': self.category.value,
            'severity': self.severity.value,
            'context': {
                'host': self.context.host,
                'store_path': self.context.store_path,
                'operation': self.context.operation,
                'set_name': self.context.set_name,
                'additional_info': self.context.additional_info
            },
            'cause': str(self.cause) if self.cause else None,
            'suggestions': self.suggestions
        }


class ConfigurationError(DriftGuardError):
    """Error in configuration file or settings."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class NotFoundError(DriftGuardError):
    """A file, host, desired set or store section does not exist."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.NOT_FOUND,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class ParseError(DriftGuardError):
    """Structured input is malformed or violates the record schema."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.PARSE,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class TransportError(DriftGuardError):
    """Host or remote source is unreachable, or access was refused."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.TRANSPORT,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class ConflictError(DriftGuardError):
    """Two records share an identity key within one record set."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFLICT,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class WriteError(DriftGuardError):
    """Persisting a patch (or its backup) failed."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.WRITE,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class ErrorHandler:
    """Handles and categorizes errors from I/O, parsing and HTTP sources."""

    # HTTP status codes with a known meaning for desired-set fetches
    HTTP_ERROR_MAPPING = {
        401: {
            'category': ErrorCategory.TRANSPORT,
            'message': 'Remote source rejected the credentials',
            'suggestions': [
                'Check the credentials configured for the remote desired-set source',
                'Verify the account still has read access to the set repository'
            ]
        },
        403: {
            'category': ErrorCategory.TRANSPORT,
            'message': 'Access to the remote desired set was denied',
            'suggestions': [
                'Verify you have read permission on the remote base URL',
                'Use --desired-file to supply a local copy instead'
            ]
        },
        404: {
            'category': ErrorCategory.NOT_FOUND,
            'message': 'Desired set not found at the remote source',
            'suggestions': [
                'Check the set name and the --remote-base URL',
                'List built-in sets with: driftguard sets'
            ]
        },
    }

    def __init__(self):
        """Initialize error handler."""
        self.logger = get_logger(__name__)

    def handle_exception(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None
    ) -> DriftGuardError:
        """Handle an exception and convert to DriftGuardError.

        Args:
            error: The exception to handle
            context: Additional context about where the error occurred

        Returns:
            DriftGuardError with categorization and suggestions
        """
        context = context or ErrorContext()

        if isinstance(error, DriftGuardError):
            return error

        if isinstance(error, requests.HTTPError):
            return self._handle_http_error(error, context)

        if isinstance(error, (requests.ConnectionError, requests.Timeout)):
            return self._handle_network_error(error, context)

        if isinstance(error, (json.JSONDecodeError, yaml.YAMLError)):
            return ParseError(
                message=f'Malformed structured input: {str(error)}',
                context=context,
                cause=error,
                suggestions=['Validate the file with a JSON/YAML linter before retrying']
            )

        if isinstance(error, FileNotFoundError):
            return NotFoundError(
                message=f'File not found: {error.filename or str(error)}',
                context=context,
                cause=error
            )

        if isinstance(error, PermissionError):
            return TransportError(
                message=f'Access denied: {str(error)}',
                context=context,
                cause=error,
                suggestions=[
                    'Check that the account running driftguard can read and write the store',
                    'Verify the host share is mounted with write access'
                ]
            )

        if isinstance(error, (ConnectionError, TimeoutError, OSError)):
            return self._handle_network_error(error, context)

        return DriftGuardError(
            message=str(error),
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=error,
            suggestions=['Check logs for more details']
        )

    def _handle_http_error(
        self,
        error: requests.HTTPError,
        context: ErrorContext
    ) -> DriftGuardError:
        """Handle an HTTP error response.

        Args:
            error: The HTTPError
            context: Error context

        Returns:
            Categorized DriftGuardError
        """
        status = error.response.status_code if error.response is not None else None
        error_info = self.HTTP_ERROR_MAPPING.get(status)

        if error_info:
            if error_info['category'] == ErrorCategory.NOT_FOUND:
                error_cls = NotFoundError
            else:
                error_cls = TransportError
            return error_cls(
                message=f"{error_info['message']} (HTTP {status})",
                context=context,
                cause=error,
                suggestions=error_info['suggestions']
            )

        return TransportError(
            message=f'HTTP error ({status}): {str(error)}',
            context=context,
            cause=error,
            suggestions=['Retry later; the remote source may be temporarily unavailable']
        )

    def _handle_network_error(
        self,
        error: Exception,
        context: ErrorContext
    ) -> TransportError:
        """Handle network and host-reachability errors.

        Args:
            error: The network error
            context: Error context

        Returns:
            TransportError
        """
        return TransportError(
            message=f'Transport error: {str(error)}',
            context=context,
            cause=error,
            suggestions=[
                'Check that the host is reachable and its share is mounted',
                'Verify firewall rules and credentials for the host',
                'Re-run the command; failed hosts are not retried automatically'
            ]
        )

    def log_error(self, error: DriftGuardError):
        """Log an error with appropriate level.

        Args:
            error: The error to log
        """
        log_message = error.to_user_message()

        if error.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.ERROR):
            self.logger.error(log_message)
        elif error.severity == ErrorSeverity.WARNING:
            self.logger.warning(log_message)
        else:
            self.logger.info(log_message)

        self.logger.debug(f"Error details: {error.to_dict()}")


# Global error handler instance
error_handler = ErrorHandler()
