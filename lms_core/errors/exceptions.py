# =============================================================================
# lms_core/errors/exceptions.py
# Exception Hierarchy for the LMS client core
# =============================================================================

from typing import Optional, Dict, Any


class LmsError(Exception):
    """
    Base exception for all LMS client errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "NET_001")
        details: Additional context as a dictionary
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "LMS_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# REMOTE API EXCEPTIONS
# =============================================================================

class NetworkUnavailableError(LmsError):
    """Raised when no response reached the server (connection error, timeout)"""

    def __init__(
        self,
        message: str = "Network/Unavailable",
        url: Optional[str] = None,
        cause: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if url:
            details["url"] = url
        if cause:
            details["cause"] = cause

        super().__init__(
            message=message,
            code="NET_001",
            details=details,
            **kwargs,
        )


class ServerError(LmsError):
    """Raised when the server answers with a non-2xx status"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if status_code is not None:
            details["status_code"] = status_code
        if url:
            details["url"] = url

        super().__init__(
            message=message,
            code="API_001",
            details=details,
            **kwargs,
        )
        self.status_code = status_code


class MalformedResponseError(LmsError):
    """Raised when a 2xx response does not have the expected shape"""

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if resource:
            details["resource"] = resource
        if expected:
            details["expected"] = expected
        if actual:
            details["actual"] = actual

        super().__init__(
            message=message,
            code="API_002",
            details=details,
            **kwargs,
        )


# =============================================================================
# CLIENT-SIDE EXCEPTIONS
# =============================================================================

class ValidationError(LmsError):
    """Raised when a mutation payload fails client-side checks"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field

        super().__init__(
            message=message,
            code="VAL_001",
            details=details,
            **kwargs,
        )


class ConfigurationError(LmsError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )
