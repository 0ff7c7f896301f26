"""Utility for consistent logging across portfolio chat modules."""
import functools
import logging
import os
from typing import Any, Callable


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger with basic configuration.

    Log level can be controlled via PORTFOLIO_CHAT_LOG_LEVEL env var. Default INFO.
    """
    level_str = os.getenv("PORTFOLIO_CHAT_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_str, logging.INFO)
    # Configure root logger only once.
    if not logging.getLogger().handlers:
        logging.basicConfig(
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            level=level,
        )
    logger = logging.getLogger(name or "portfolio_chat")
    logger.setLevel(level)
    return logger


def log_function_call() -> Callable:
    """Decorator to log function calls."""
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            logger = get_logger(func.__module__)
            logger.info(f"Calling {func.__name__}")
            try:
                result = func(*args, **kwargs)
                logger.info(f"Completed {func.__name__}")
                return result
            except Exception as e:
                logger.error(f"Error in {func.__name__}: {str(e)}")
                raise
        return wrapper
    return decorator
