# =============================================================================
# lms_core/errors/__init__.py
# Centralized Error Handling for the LMS client core
# =============================================================================

from .exceptions import (
    LmsError,
    NetworkUnavailableError,
    ServerError,
    MalformedResponseError,
    ValidationError,
    ConfigurationError,
)

from .handlers import (
    handle_error,
    safe_execute,
    ErrorContext,
    error_boundary,
)

__all__ = [
    # Exceptions
    "LmsError",
    "NetworkUnavailableError",
    "ServerError",
    "MalformedResponseError",
    "ValidationError",
    "ConfigurationError",
    # Handlers
    "handle_error",
    "safe_execute",
    "ErrorContext",
    "error_boundary",
]
