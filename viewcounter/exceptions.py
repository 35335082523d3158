"""
Custom exception classes for the profile view counter.

Errors fall into two groups:
- Per-request errors (InvalidKey, StoreUnavailable) abort a single request.
- Startup errors (EmptyPalette, MalformedTemplate, ConfigurationError) keep
  the server from ever reaching a serving state.
"""

from typing import Any


class ViewCounterError(Exception):
    """Base exception for all view counter errors.

    All custom exceptions inherit from this class so callers can catch every
    application-specific error while preserving the hierarchy.
    """
    pass


class InvalidKey(ViewCounterError):
    """Exception raised when a profile key is empty or malformed.

    Attributes:
        key: The rejected key (may be any type if the caller passed a non-string)
        reason: Short description of why the key was rejected
    """

    def __init__(self, message: str, key: Any = None, reason: str = None):
        """Initialize InvalidKey.

        Args:
            message: Human-readable error message
            key: Rejected key (optional)
            reason: Rejection reason (optional)
        """
        super().__init__(message)
        self.key = key
        self.reason = reason


class StoreUnavailable(ViewCounterError):
    """Exception raised when the counter store cannot durably record a count.

    The in-memory count is never advanced when this is raised.

    Attributes:
        key: Profile key being incremented
        operation: Operation that failed (e.g., 'lock', 'persist', 'overflow')
        original_error: The underlying exception that caused this error
    """

    def __init__(self, message: str, key: str = None, operation: str = None, original_error: Exception = None):
        """Initialize StoreUnavailable.

        Args:
            message: Human-readable error message
            key: Profile key (optional)
            operation: Operation that failed (optional)
            original_error: Underlying exception (optional)
        """
        super().__init__(message)
        self.key = key
        self.operation = operation
        self.original_error = original_error


class EmptyPalette(ViewCounterError):
    """Exception raised when a palette source yields no usable colors.

    Attributes:
        source: Path or description of the palette source
        rejected: Number of non-blank lines that were not valid colors
    """

    def __init__(self, message: str, source: str = None, rejected: int = 0):
        super().__init__(message)
        self.source = source
        self.rejected = rejected


class MalformedTemplate(ViewCounterError):
    """Exception raised when a badge template fails placeholder validation.

    Attributes:
        source: Path or description of the template source
        missing: Required placeholders absent from the template
        unknown: Placeholders present in the template that the renderer cannot fill
        original_error: The underlying exception (e.g., an I/O error), if any
    """

    def __init__(self, message: str, source: str = None, missing: Any = None,
                 unknown: Any = None, original_error: Exception = None):
        """Initialize MalformedTemplate.

        Args:
            message: Human-readable error message
            source: Template source (optional)
            missing: Missing placeholder names (optional)
            unknown: Unknown placeholder names (optional)
            original_error: Underlying exception (optional)
        """
        super().__init__(message)
        self.source = source
        self.missing = sorted(missing or [])
        self.unknown = sorted(unknown or [])
        self.original_error = original_error


class ConfigurationError(ViewCounterError):
    """Exception raised for invalid configuration values.

    Attributes:
        errors: List of validation messages
        setting_name: Name of the setting that is invalid (if a single one)
        setting_value: The invalid value
    """

    def __init__(self, message: str, errors: Any = None, setting_name: str = None,
                 setting_value: Any = None):
        super().__init__(message)
        self.errors = list(errors or [])
        self.setting_name = setting_name
        self.setting_value = setting_value
