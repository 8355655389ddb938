"""
Custom exception hierarchy for Charla.

All exceptions inherit from CharlaError and include:
- code: ErrorCode for categorization
- message: Human-readable error message
- details: Optional additional context
- recoverable: Whether the user can retry/fix the issue
- context: Additional key-value pairs for debugging
"""

from typing import Any, Optional
from .codes import ErrorCode


class CharlaError(Exception):
    """Base exception for all Charla errors.

    Attributes:
        code: The ErrorCode categorizing this error
        message: Human-readable error message
        details: Optional additional context for the user
        recoverable: Whether the error can be resolved by user action
        context: Additional debugging information
    """

    code: ErrorCode = ErrorCode.INTERNAL_UNEXPECTED
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        recoverable: Optional[bool] = None,
        **context: Any,
    ):
        self.message = message
        self.details = details
        self.context = context if context else None

        # Allow overriding class defaults
        if code is not None:
            self.code = code
        if recoverable is not None:
            self.recoverable = recoverable

        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message

    def to_dict(self) -> dict:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "context": self.context,
        }


class ValidationError(CharlaError):
    """Error during input validation."""

    code = ErrorCode.VALIDATION_MISSING_PARAM
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        parameter: Optional[str] = None,
        expected: Optional[str] = None,
        received: Optional[str] = None,
        **context: Any,
    ):
        ctx = {**context}
        if parameter:
            ctx["parameter"] = parameter
        if expected:
            ctx["expected"] = expected
        if received:
            ctx["received"] = received
        super().__init__(message, details, **ctx)


class ToolArgumentsError(ValidationError):
    """Tool call arguments from the model could not be used.

    Raised by the dispatcher before any executor runs. Unlike soft tool
    failures this propagates and fails the whole request.
    """

    code = ErrorCode.LLM_TOOL_ARGS_INVALID
    recoverable = False

    def __init__(self, message: str, details: Optional[str] = None, tool: Optional[str] = None, **context: Any):
        if tool:
            context["tool"] = tool
        super().__init__(message, details, **context)


class NotFoundError(CharlaError):
    """Error when a required resource is not found."""

    code = ErrorCode.NOT_FOUND_MEMORY
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        **context: Any,
    ):
        # Set appropriate code based on resource type
        if resource_type == "identity":
            code = ErrorCode.NOT_FOUND_IDENTITY
        elif resource_type == "tool":
            code = ErrorCode.NOT_FOUND_TOOL
        else:
            code = ErrorCode.NOT_FOUND_MEMORY

        ctx = {**context}
        if resource_type:
            ctx["resource_type"] = resource_type
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message, details, code=code, **ctx)


class SessionError(CharlaError):
    """The operation needs an identity and the caller has none."""

    code = ErrorCode.SESSION_MISSING
    recoverable = True

    def __init__(self, message: str = "no active session", details: Optional[str] = None, expired: bool = False, **context: Any):
        code = ErrorCode.SESSION_EXPIRED if expired else ErrorCode.SESSION_MISSING
        super().__init__(message, details, code=code, **context)


class LLMError(CharlaError):
    """Error during completion service interactions."""

    code = ErrorCode.LLM_UNAVAILABLE
    recoverable = False

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        model: Optional[str] = None,
        error_type: Optional[str] = None,
        **context: Any,
    ):
        # Set appropriate code based on error type
        if error_type == "timeout":
            code = ErrorCode.LLM_TIMEOUT
        elif error_type == "invalid":
            code = ErrorCode.LLM_RESPONSE_INVALID
        else:
            code = ErrorCode.LLM_UNAVAILABLE

        ctx = {**context}
        if model:
            ctx["model"] = model
        super().__init__(message, details, code=code, **ctx)


class ExternalServiceError(CharlaError):
    """Error with external services (weather API, LLM provider, etc.)."""

    code = ErrorCode.EXTERNAL_NETWORK_ERROR
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ):
        # Set appropriate code based on service
        if service == "weather":
            code = ErrorCode.EXTERNAL_WEATHER_FAILED
        elif service == "llm":
            code = ErrorCode.EXTERNAL_LLM_FAILED
        else:
            code = ErrorCode.EXTERNAL_NETWORK_ERROR

        ctx = {**context}
        if service:
            ctx["service"] = service
        if status_code:
            ctx["status_code"] = status_code
        super().__init__(message, details, code=code, **ctx)


class StoreError(CharlaError):
    """Error reading or writing persisted records."""

    code = ErrorCode.STORE_FAILED
    recoverable = False

    def __init__(self, message: str, details: Optional[str] = None, operation: Optional[str] = None, **context: Any):
        if operation:
            context["operation"] = operation
        super().__init__(message, details, **context)


class ConfigurationError(CharlaError):
    """Required configuration is missing or invalid. Fatal for the request."""

    code = ErrorCode.INTERNAL_CONFIG_ERROR
    recoverable = False

    def __init__(self, message: str, details: Optional[str] = None, setting: Optional[str] = None, **context: Any):
        if setting:
            context["setting"] = setting
        super().__init__(message, details, **context)
