"""
Charla Error Handling Module

Provides standardized error codes, exceptions, and response builders
for consistent error handling across the application.

Usage:
    from errors import (
        ErrorCode,
        CharlaError,
        ValidationError,
        ToolArgumentsError,
        NotFoundError,
        SessionError,
        LLMError,
        ExternalServiceError,
        StoreError,
        ConfigurationError,
        error_response,
        handle_async_tool_errors,
    )

Example:
    from errors import handle_async_tool_errors, NotFoundError, SessionError

    @handle_async_tool_errors("getUserCasualData")
    async def execute_get_memory(store, turn, key):
        if turn.identity is None:
            raise SessionError()
        value = await store.aget_memory(turn.identity.id, key)
        if value is None:
            raise NotFoundError("not found", resource_type="memory", resource_id=key)
        return {"success": True, "key": key, "value": value}
"""

from .codes import ErrorCode
from .exceptions import (
    CharlaError,
    ValidationError,
    ToolArgumentsError,
    NotFoundError,
    SessionError,
    LLMError,
    ExternalServiceError,
    StoreError,
    ConfigurationError,
)
from .response import (
    GENERIC_FAILURE_MESSAGE,
    error_response,
    http_error_body,
)
from .handlers import (
    handle_async_tool_errors,
    log_error,
)

__all__ = [
    # Error codes
    "ErrorCode",
    # Exceptions
    "CharlaError",
    "ValidationError",
    "ToolArgumentsError",
    "NotFoundError",
    "SessionError",
    "LLMError",
    "ExternalServiceError",
    "StoreError",
    "ConfigurationError",
    # Response builders
    "GENERIC_FAILURE_MESSAGE",
    "error_response",
    "http_error_body",
    # Decorators
    "handle_async_tool_errors",
    "log_error",
]
