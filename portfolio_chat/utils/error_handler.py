"""
Error handling utilities for the portfolio chat backend and client.
"""
import functools
from typing import Any, Callable, Type, Union, Tuple

from .logger import get_logger

logger = get_logger(__name__)


class ApiError(Exception):
    """An error that maps onto an HTTP response with a JSON ``{"error": ...}`` body."""

    def __init__(self, status_code: int, message: str, details: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class StreamEventError(Exception):
    """Raised by the chat client when the server streams an ``error`` event."""
    pass


def handle_exceptions(
    error_types: Union[Type[Exception], Tuple[Type[Exception], ...]] = Exception,
    default_value: Any = None
) -> Callable:
    """Decorator to handle exceptions and return a default value."""
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except error_types as e:
                logger.error(f"Error in {func.__name__}: {str(e)}")
                return default_value
        return wrapper
    return decorator
