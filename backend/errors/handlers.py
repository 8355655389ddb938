"""
Error handling decorators and utilities for Charla.

Provides decorators for consistent error handling across tool executors.
"""

import logging
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from .exceptions import CharlaError
from .response import error_response

# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., Any])


def _log_tool_failure(log: logging.Logger, tool_name: str, error: Exception) -> None:
    if isinstance(error, CharlaError):
        # Recoverable failures (missing memory, no session) are normal traffic
        if error.recoverable:
            log.warning(f"[{tool_name}] {error.code.value}: {error.message}")
        else:
            log.error(f"[{tool_name}] {error.code.value}: {error.message}", exc_info=True)
    else:
        log.error(f"[{tool_name}] Unexpected error: {error}", exc_info=True)


def handle_async_tool_errors(tool_name: str, logger: Optional[logging.Logger] = None):
    """Decorator that turns a failing async tool executor into an error payload.

    Wraps the coroutine to catch all exceptions, log them, and return a
    standardized error response dictionary so a failing tool never aborts
    the turn.

    Example:
        >>> @handle_async_tool_errors("calculator")
        ... async def execute_calculator(expression):
        ...     if not expression.strip():
        ...         raise ValidationError("Empty expression", parameter="expression")
        ...     return {"success": True, "result": evaluate(expression)}
    """

    def decorator(func: F) -> F:
        log = logger or logging.getLogger(f"charla.{tool_name}")

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> dict:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                _log_tool_failure(log, tool_name, e)
                return error_response(e, tool=tool_name)

        return wrapper  # type: ignore

    return decorator


def log_error(
    logger: logging.Logger, error: Exception, context: Optional[str] = None, include_traceback: bool = True
) -> None:
    """Log an error with consistent formatting.

    Example:
        >>> log_error(logger, err, context="Turn")
        # Logs: "[Turn] LLM_TIMEOUT: Completion timed out"
    """
    if isinstance(error, CharlaError):
        message = f"{error.code.value}: {error.message}"
    else:
        message = str(error)

    if context:
        message = f"[{context}] {message}"

    logger.error(message, exc_info=include_traceback)
