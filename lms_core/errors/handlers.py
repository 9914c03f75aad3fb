# =============================================================================
# lms_core/errors/handlers.py
# Error Handling Utilities for the LMS client core
# =============================================================================

from __future__ import annotations
import functools
import traceback
from typing import Optional, Callable, TypeVar, Any

from lms_core.logging import get_logger
from .exceptions import LmsError

logger = get_logger(__name__)

T = TypeVar("T")


def handle_error(
    error: Exception,
    log_error: bool = True,
    user_message: Optional[str] = None,
    level: str = "error",
) -> str:
    """
    Centralized error handling function.

    Nothing in the core is allowed to crash the client, so handling an
    error means logging it and producing the message a caller can show.

    Args:
        error: The exception to handle
        log_error: Whether to log the error
        user_message: Custom message (uses the error message if None)
        level: Logger method to use ("error", "warning", "info")

    Returns:
        The human-readable message for the caller
    """
    if isinstance(error, LmsError):
        message = user_message or error.message
        code = error.code
        details = error.details
        exc_info = not error.recoverable
    else:
        message = user_message or str(error)
        code = "UNKNOWN"
        details = {"traceback": traceback.format_exc()}
        exc_info = True

    if log_error:
        log = getattr(logger, level, logger.error)
        log(f"[{code}] {message}", extra={"details": details}, exc_info=exc_info)

    return message


def safe_execute(
    func: Callable[..., T],
    *args,
    default: Optional[T] = None,
    error_message: Optional[str] = None,
    reraise: bool = False,
    **kwargs,
) -> Optional[T]:
    """
    Execute a function with automatic error handling.

    Usage:
        changed = safe_execute(session.refresh, default=False)
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        handle_error(e, user_message=error_message)
        if reraise:
            raise
        return default


class ErrorContext:
    """
    Context manager for error handling with automatic logging.

    Usage:
        with ErrorContext("Replaying queued mutations"):
            queue.replay(connector)
    """

    def __init__(self, operation: str, recoverable: bool = True):
        self.operation = operation
        self.recoverable = recoverable

    def __enter__(self) -> ErrorContext:
        logger.debug(f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            if isinstance(exc_val, LmsError):
                handle_error(exc_val, level="warning")
            else:
                handle_error(exc_val, user_message=f"Error during: {self.operation}")

            # Suppress exception if recoverable
            return self.recoverable

        logger.debug(f"Completed: {self.operation}")
        return False


def error_boundary(
    default_return: Any = None,
    log: bool = True,
):
    """
    Decorator to wrap functions with error handling.

    Usage:
        @error_boundary(default_return=None)
        def _poll_cycle(self) -> None:
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., Optional[T]]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Optional[T]:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if log:
                    logger.warning(f"Error in {func.__name__}: {e}")
                return default_return

        return wrapper

    return decorator
