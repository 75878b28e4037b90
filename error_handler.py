"""Centralized error handling for Bourbaki."""

import traceback
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, Callable

from logging_config import get_logger
from metrics import record_error

logger = get_logger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels for user feedback."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Categories of errors for better organization."""
    GIT_OPERATION = "git_operation"
    PROCESS_PROBE = "process_probe"
    TOOL_AVAILABILITY = "tool_availability"
    PERSISTENCE = "persistence"
    CONFIGURATION = "configuration"
    SESSION_MANAGEMENT = "session_management"
    STARTUP = "startup"
    UNKNOWN = "unknown"


@dataclass
class ErrorInfo:
    """Structured error information."""
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    user_message: str
    context: Optional[Dict[str, Any]] = None
    exception: Optional[Exception] = None
    traceback_str: Optional[str] = None


class ErrorHandler:
    """Logs errors, records them as metrics and forwards them to an optional UI callback."""

    def __init__(self):
        self.notification_callback: Optional[Callable[[ErrorInfo], None]] = None

    def set_notification_callback(self, callback: Optional[Callable[[ErrorInfo], None]]):
        """Set callback function for user notifications."""
        self.notification_callback = callback
        logger.debug("Error notification callback registered")

    def handle_error(
        self,
        exception: Exception,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        user_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> ErrorInfo:
        """Handle an error with logging and optional user feedback."""
        traceback_str = None
        if exception is not None and exception.__traceback__ is not None:
            traceback_str = "".join(traceback.format_exception(type(exception), exception, exception.__traceback__))

        error_info = ErrorInfo(
            category=category,
            severity=severity,
            message=str(exception),
            user_message=user_message or self._generate_user_message(exception, category),
            context=context or {},
            exception=exception,
            traceback_str=traceback_str
        )

        self._log_error(error_info)
        self._record_error_metrics(error_info)

        if self.notification_callback:
            try:
                self.notification_callback(error_info)
            except Exception as e:
                logger.error(f"Error in notification callback: {e}")

        return error_info

    def handle_persistence_error(
        self,
        exception: Exception,
        operation: str,
        file_path: Optional[Path] = None,
        severity: ErrorSeverity = ErrorSeverity.WARNING
    ) -> ErrorInfo:
        """Handle failures reading or writing persisted state."""
        context = {
            "operation": operation,
            "file_path": str(file_path) if file_path else None
        }
        path_str = str(file_path) if file_path else "the data file"
        if operation == "load":
            user_message = f"Could not read {path_str}; starting with an empty project list."
        else:
            user_message = f"Could not {operation} {path_str}: {exception}"

        return self.handle_error(
            exception=exception,
            category=ErrorCategory.PERSISTENCE,
            severity=severity,
            user_message=user_message,
            context=context
        )

    def handle_configuration_error(
        self,
        exception: Exception,
        config_key: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.WARNING
    ) -> ErrorInfo:
        """Handle configuration-related errors."""
        key_info = f" for setting '{config_key}'" if config_key else ""
        return self.handle_error(
            exception=exception,
            category=ErrorCategory.CONFIGURATION,
            severity=severity,
            user_message=f"Configuration error{key_info}: {exception}",
            context={"config_key": config_key}
        )

    def _log_error(self, error_info: ErrorInfo):
        """Log error information according to its severity."""
        log_message = f"[{error_info.category.value}] {error_info.message}"

        if error_info.context:
            log_message += f" | Context: {error_info.context}"

        if error_info.severity == ErrorSeverity.CRITICAL:
            logger.critical(log_message, exc_info=error_info.exception)
        elif error_info.severity == ErrorSeverity.ERROR:
            logger.error(log_message, exc_info=error_info.exception)
        elif error_info.severity == ErrorSeverity.WARNING:
            logger.warning(log_message)
        else:
            logger.info(log_message)

    def _record_error_metrics(self, error_info: ErrorInfo):
        """Record error metrics for analysis."""
        record_error(
            error_type=f"{error_info.category.value}_{type(error_info.exception).__name__}",
            error_message=error_info.message,
            context={
                "severity": error_info.severity.value,
                "category": error_info.category.value,
                **(error_info.context or {})
            }
        )

    def _generate_user_message(self, exception: Exception, category: ErrorCategory) -> str:
        """Generate user-friendly error message."""
        if category == ErrorCategory.GIT_OPERATION:
            return f"Git operation failed: {exception}"
        elif category == ErrorCategory.PROCESS_PROBE:
            return f"Could not inspect running processes: {exception}"
        elif category == ErrorCategory.TOOL_AVAILABILITY:
            return f"Tool check failed: {exception}"
        elif category == ErrorCategory.PERSISTENCE:
            return f"Could not save or load data: {exception}"
        elif category == ErrorCategory.CONFIGURATION:
            return f"Configuration error: {exception}"
        elif category == ErrorCategory.SESSION_MANAGEMENT:
            return f"Session management error: {exception}"
        elif category == ErrorCategory.STARTUP:
            return f"Application startup error: {exception}"
        else:
            return f"An unexpected error occurred: {exception}"


# Global error handler instance
_error_handler = ErrorHandler()


def get_error_handler() -> ErrorHandler:
    """Get the global error handler instance."""
    return _error_handler


def handle_error(
    exception: Exception,
    category: ErrorCategory = ErrorCategory.UNKNOWN,
    severity: ErrorSeverity = ErrorSeverity.ERROR,
    user_message: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> ErrorInfo:
    """Convenience function to handle errors using the global handler."""
    return _error_handler.handle_error(exception, category, severity, user_message, context)


def handle_persistence_error(
    exception: Exception,
    operation: str,
    file_path: Optional[Path] = None,
    severity: ErrorSeverity = ErrorSeverity.WARNING
) -> ErrorInfo:
    """Convenience function to handle persistence errors."""
    return _error_handler.handle_persistence_error(exception, operation, file_path, severity)


def handle_configuration_error(
    exception: Exception,
    config_key: Optional[str] = None,
    severity: ErrorSeverity = ErrorSeverity.WARNING
) -> ErrorInfo:
    """Convenience function to handle configuration errors."""
    return _error_handler.handle_configuration_error(exception, config_key, severity)
