"""
Standard error response builders for Charla.

Tool executors return these payloads to the model; the transport layer
uses the same shapes for its JSON error bodies.
"""

from typing import Optional
from .codes import ErrorCode
from .exceptions import CharlaError

GENERIC_FAILURE_MESSAGE = "Something went wrong processing your message. Please try again."


def error_response(error: CharlaError | Exception, tool: Optional[str] = None, include_context: bool = True) -> dict:
    """Build a standard error response dictionary.

    Args:
        error: The exception to convert to a response
        tool: Optional tool name for context
        include_context: Whether to include the context dict (disable for privacy)

    Returns:
        Standard error response dict with success=False

    Example:
        >>> from errors import NotFoundError, error_response
        >>> err = NotFoundError("not found", resource_type="memory", resource_id="tio.auto_color")
        >>> error_response(err, tool="getUserCasualData")
        {
            "success": False,
            "error": {
                "code": "NOT_FOUND_MEMORY",
                "message": "not found",
                "details": None,
                "tool": "getUserCasualData",
                "recoverable": True,
                "context": {"resource_type": "memory", "resource_id": "tio.auto_color"}
            }
        }
    """
    if isinstance(error, CharlaError):
        return {
            "success": False,
            "error": {
                "code": error.code.value,
                "message": error.message,
                "details": error.details,
                "tool": tool,
                "recoverable": error.recoverable,
                "context": error.context if include_context else None,
            },
        }

    # Unexpected exceptions never leak their text to the model
    return {
        "success": False,
        "error": {
            "code": ErrorCode.INTERNAL_UNEXPECTED.value,
            "message": "internal error",
            "details": None,
            "tool": tool,
            "recoverable": False,
            "context": None,
        },
    }


def http_error_body(error: CharlaError | Exception) -> dict:
    """JSON body for a failed request. Never includes internal detail."""
    code = error.code.value if isinstance(error, CharlaError) else ErrorCode.INTERNAL_UNEXPECTED.value
    return {"error": {"code": code, "message": GENERIC_FAILURE_MESSAGE}}
