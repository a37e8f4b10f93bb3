"""
Custom exceptions for the Nightscout monitor.

This module provides structured error handling with clear error codes
and user-friendly messages for better debugging and UX.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Standardized error codes for the application."""

    # Nightscout Feed Errors (1xxx)
    NIGHTSCOUT_AUTH_FAILED = "NIGHTSCOUT_1001"
    NIGHTSCOUT_API_ERROR = "NIGHTSCOUT_1002"
    NIGHTSCOUT_NO_DATA = "NIGHTSCOUT_1003"
    NIGHTSCOUT_CONNECTION_ERROR = "NIGHTSCOUT_1004"

    # Reading Errors (2xxx)
    READING_MALFORMED = "READING_2001"
    READING_DEGENERATE_TIME_DELTA = "READING_2002"

    # Configuration Errors (3xxx)
    CONFIG_INVALID = "CONFIG_3001"
    CONFIG_MISSING_REQUIRED = "CONFIG_3002"
    CONFIG_INVALID_COLOR = "CONFIG_3003"


class NightscoutMonitorError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        details: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details
        self.original_error = original_error
        super().__init__(self.full_message)

    @property
    def full_message(self) -> str:
        """Returns the complete error message with code and details."""
        parts = [f"[{self.error_code.value}] {self.message}"]
        if self.details:
            parts.append(f"Details: {self.details}")
        if self.original_error:
            parts.append(f"Caused by: {type(self.original_error).__name__}: {self.original_error}")
        return " | ".join(parts)

    def to_dict(self) -> dict:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details,
        }


class NightscoutAuthError(NightscoutMonitorError):
    """Raised when Nightscout rejects the API secret or token."""

    def __init__(
        self,
        message: str = "Failed to authenticate with Nightscout",
        details: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.NIGHTSCOUT_AUTH_FAILED,
            details=details,
            original_error=original_error,
        )


class NightscoutAPIError(NightscoutMonitorError):
    """Raised when a Nightscout API call fails or returns an unusable body."""

    def __init__(
        self,
        message: str = "Nightscout API request failed",
        details: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.NIGHTSCOUT_API_ERROR,
            details=details,
            original_error=original_error,
        )


class NightscoutNoDataError(NightscoutMonitorError):
    """Raised when no glucose data is available from the feed."""

    def __init__(
        self,
        message: str = "No glucose data available",
        details: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.NIGHTSCOUT_NO_DATA,
            details=details,
        )


class NightscoutConnectionError(NightscoutMonitorError):
    """Raised when connection to the Nightscout site fails."""

    def __init__(
        self,
        message: str = "Failed to connect to Nightscout",
        details: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.NIGHTSCOUT_CONNECTION_ERROR,
            details=details,
            original_error=original_error,
        )


class MalformedReadingError(NightscoutMonitorError):
    """Raised when a feed entry has a missing or non-numeric glucose value."""

    def __init__(
        self,
        field: str,
        value: object = None,
        message: str = "Malformed glucose reading",
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.READING_MALFORMED,
            details=f"Field '{field}' is unusable: {value!r}",
        )
        self.field = field


class DegenerateTimeDeltaError(NightscoutMonitorError):
    """Raised when two readings are not strictly ordered newest-first in time."""

    def __init__(
        self,
        minutes: float,
        message: str = "Rate of change is undefined for these readings",
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.READING_DEGENERATE_TIME_DELTA,
            details=f"Time between readings: {minutes} minutes",
        )
        self.minutes = minutes


class ConfigurationError(NightscoutMonitorError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str = "Invalid configuration",
        error_code: ErrorCode = ErrorCode.CONFIG_INVALID,
        details: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class InvalidColorError(ConfigurationError):
    """Raised when a color configuration is invalid."""

    def __init__(self, color_name: str, color_value: str):
        super().__init__(
            message=f"Invalid color value for '{color_name}'",
            error_code=ErrorCode.CONFIG_INVALID_COLOR,
            details=f"Expected 'R,G,B' with values 0-255 or '#rrggbb', got: '{color_value}'",
        )
