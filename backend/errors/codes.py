"""
Error codes for Charla.

Provides a standardized taxonomy of error codes organized by category.
Use these codes consistently across all error responses.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes for Charla.

    Categories:
    - VALIDATION_*: Input validation errors (tool arguments, expressions)
    - NOT_FOUND_*: Resource not found errors
    - SESSION_*: Session / identity errors
    - LLM_*: Completion service errors
    - EXTERNAL_*: External service errors
    - TOOL_*: Tool execution errors
    - STORE_*: Persistence errors
    - INTERNAL_*: Internal/unexpected errors
    """

    # Validation errors (input checking)
    VALIDATION_MISSING_PARAM = "VALIDATION_MISSING_PARAM"
    VALIDATION_INVALID_TYPE = "VALIDATION_INVALID_TYPE"
    VALIDATION_OUT_OF_RANGE = "VALIDATION_OUT_OF_RANGE"
    VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"

    # Not found errors (missing resources)
    NOT_FOUND_MEMORY = "NOT_FOUND_MEMORY"
    NOT_FOUND_IDENTITY = "NOT_FOUND_IDENTITY"
    NOT_FOUND_TOOL = "NOT_FOUND_TOOL"

    # Session errors
    SESSION_MISSING = "SESSION_MISSING"
    SESSION_EXPIRED = "SESSION_EXPIRED"

    # LLM errors (model interactions)
    LLM_UNAVAILABLE = "LLM_UNAVAILABLE"
    LLM_TIMEOUT = "LLM_TIMEOUT"
    LLM_RESPONSE_INVALID = "LLM_RESPONSE_INVALID"
    LLM_TOOL_ARGS_INVALID = "LLM_TOOL_ARGS_INVALID"

    # External service errors
    EXTERNAL_WEATHER_FAILED = "EXTERNAL_WEATHER_FAILED"
    EXTERNAL_LLM_FAILED = "EXTERNAL_LLM_FAILED"
    EXTERNAL_NETWORK_ERROR = "EXTERNAL_NETWORK_ERROR"

    # Tool execution errors
    TOOL_TIMEOUT = "TOOL_TIMEOUT"

    # Persistence errors
    STORE_FAILED = "STORE_FAILED"

    # Internal errors (unexpected failures)
    INTERNAL_UNEXPECTED = "INTERNAL_UNEXPECTED"
    INTERNAL_CONFIG_ERROR = "INTERNAL_CONFIG_ERROR"
    INTERNAL_STATE_ERROR = "INTERNAL_STATE_ERROR"
