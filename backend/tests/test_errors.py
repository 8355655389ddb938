"""
Tests for the Charla error handling module.
"""

import asyncio
import logging
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
    GENERIC_FAILURE_MESSAGE,
    error_response,
    http_error_body,
    handle_async_tool_errors,
)


class TestErrorCodes:
    """Test error code enum."""

    def test_error_codes_are_strings(self):
        """Error codes should be string values."""
        assert ErrorCode.NOT_FOUND_MEMORY.value == "NOT_FOUND_MEMORY"
        assert ErrorCode.SESSION_MISSING.value == "SESSION_MISSING"

    def test_error_codes_have_categories(self):
        """Error codes should follow category naming convention."""
        validation_codes = [c for c in ErrorCode if c.value.startswith("VALIDATION_")]
        assert len(validation_codes) >= 3

        llm_codes = [c for c in ErrorCode if c.value.startswith("LLM_")]
        assert ErrorCode.LLM_TOOL_ARGS_INVALID in llm_codes


class TestCharlaError:
    """Test base CharlaError exception."""

    def test_basic_creation(self):
        """Create basic error with message."""
        err = CharlaError("Test error")
        assert err.message == "Test error"
        assert err.details is None
        assert err.code == ErrorCode.INTERNAL_UNEXPECTED
        assert err.recoverable is False

    def test_with_context(self):
        """Create error with additional context."""
        err = CharlaError("Test error", foo="bar", count=42)
        assert err.context == {"foo": "bar", "count": 42}

    def test_str_representation(self):
        """String representation includes message and details."""
        err = CharlaError("Test error", details="More info")
        assert str(err) == "Test error - More info"
        assert str(CharlaError("Test error")) == "Test error"

    def test_overrides(self):
        """Code and recoverable can be overridden per instance."""
        err = CharlaError("slow", code=ErrorCode.TOOL_TIMEOUT, recoverable=True)
        assert err.code == ErrorCode.TOOL_TIMEOUT
        assert err.recoverable is True
        # Class default untouched
        assert CharlaError.recoverable is False

    def test_to_dict(self):
        """Convert error to dictionary."""
        err = CharlaError("Test error", details="More info", key="value")
        d = err.to_dict()
        assert d["code"] == ErrorCode.INTERNAL_UNEXPECTED.value
        assert d["message"] == "Test error"
        assert d["details"] == "More info"
        assert d["recoverable"] is False
        assert d["context"] == {"key": "value"}


class TestValidationErrors:
    """Test ValidationError and ToolArgumentsError."""

    def test_default_code(self):
        """Default code is VALIDATION_MISSING_PARAM."""
        err = ValidationError("Missing param")
        assert err.code == ErrorCode.VALIDATION_MISSING_PARAM
        assert err.recoverable is True

    def test_with_parameter_info(self):
        """Include parameter context."""
        err = ValidationError("Invalid value", parameter="key", expected="ENTIDAD.ATRIBUTO", received="??")
        assert err.context == {"parameter": "key", "expected": "ENTIDAD.ATRIBUTO", "received": "??"}

    def test_tool_arguments_error_is_fatal(self):
        """Malformed model arguments are not recoverable and name the tool."""
        err = ToolArgumentsError("bad json", tool="calculator")
        assert isinstance(err, ValidationError)
        assert err.code == ErrorCode.LLM_TOOL_ARGS_INVALID
        assert err.recoverable is False
        assert err.context["tool"] == "calculator"


class TestResourceErrors:
    """Test NotFoundError and SessionError."""

    def test_not_found_defaults_to_memory(self):
        err = NotFoundError("not found")
        assert err.code == ErrorCode.NOT_FOUND_MEMORY
        assert err.recoverable is True

    def test_not_found_resource_types(self):
        assert NotFoundError("x", resource_type="identity").code == ErrorCode.NOT_FOUND_IDENTITY
        assert NotFoundError("x", resource_type="tool").code == ErrorCode.NOT_FOUND_TOOL

    def test_not_found_with_resource_id(self):
        err = NotFoundError("not found", resource_type="memory", resource_id="tio_auto_color")
        assert err.context == {"resource_type": "memory", "resource_id": "tio_auto_color"}

    def test_session_error(self):
        """Session errors default to 'no active session'."""
        err = SessionError()
        assert err.message == "no active session"
        assert err.code == ErrorCode.SESSION_MISSING
        assert SessionError(expired=True).code == ErrorCode.SESSION_EXPIRED


class TestServiceErrors:
    """Test LLM, external service, store and configuration errors."""

    def test_llm_error_types(self):
        assert LLMError("x").code == ErrorCode.LLM_UNAVAILABLE
        assert LLMError("x", error_type="timeout").code == ErrorCode.LLM_TIMEOUT
        assert LLMError("x", error_type="invalid").code == ErrorCode.LLM_RESPONSE_INVALID
        assert LLMError("x", model="gpt-4o-mini").context["model"] == "gpt-4o-mini"

    def test_external_service_codes(self):
        assert ExternalServiceError("x").code == ErrorCode.EXTERNAL_NETWORK_ERROR
        err = ExternalServiceError("x", service="weather", status_code=404)
        assert err.code == ErrorCode.EXTERNAL_WEATHER_FAILED
        assert err.context == {"service": "weather", "status_code": 404}

    def test_store_error(self):
        err = StoreError("write failed", operation="append_message")
        assert err.code == ErrorCode.STORE_FAILED
        assert err.context["operation"] == "append_message"

    def test_configuration_error(self):
        err = ConfigurationError("missing", setting="OPENAI_API_KEY")
        assert err.code == ErrorCode.INTERNAL_CONFIG_ERROR
        assert err.recoverable is False
        assert err.context["setting"] == "OPENAI_API_KEY"


class TestErrorResponse:
    """Test error_response and http_error_body."""

    def test_charla_error_response(self):
        """Convert CharlaError to response dict."""
        err = NotFoundError("not found", details="Ask the user", resource_id="perro_nombre")
        resp = error_response(err, tool="getUserCasualData")

        assert resp["success"] is False
        assert resp["error"]["code"] == "NOT_FOUND_MEMORY"
        assert resp["error"]["message"] == "not found"
        assert resp["error"]["details"] == "Ask the user"
        assert resp["error"]["tool"] == "getUserCasualData"
        assert resp["error"]["recoverable"] is True

    def test_generic_exception_response_hides_text(self):
        """Unexpected exceptions never leak their message."""
        resp = error_response(ValueError("secret path /etc/x"), tool="test")
        assert resp["error"]["code"] == "INTERNAL_UNEXPECTED"
        assert "secret" not in resp["error"]["message"]
        assert resp["error"]["recoverable"] is False

    def test_without_context(self):
        resp = error_response(NotFoundError("x", resource_id="abc"), include_context=False)
        assert resp["error"]["context"] is None

    def test_http_error_body_is_generic(self):
        body = http_error_body(LLMError("provider exploded", details="stack"))
        assert body == {"error": {"code": "LLM_UNAVAILABLE", "message": GENERIC_FAILURE_MESSAGE}}
        assert http_error_body(RuntimeError("boom"))["error"]["code"] == "INTERNAL_UNEXPECTED"


class TestAsyncHandleToolErrors:
    """Test handle_async_tool_errors decorator."""

    def test_wraps_coroutine(self):
        @handle_async_tool_errors("test")
        async def my_func():
            return {"success": True}

        assert asyncio.iscoroutinefunction(my_func)
        assert asyncio.run(my_func()) == {"success": True}

    def test_converts_exceptions(self):
        @handle_async_tool_errors("calculator")
        async def my_func():
            raise ValidationError("Error al evaluar la expresión", parameter="expression")

        result = asyncio.run(my_func())
        assert result["success"] is False
        assert result["error"]["code"] == "VALIDATION_MISSING_PARAM"
        assert result["error"]["tool"] == "calculator"

    def test_recoverable_errors_log_warning(self, caplog):
        """Recoverable failures are logged as warnings, not errors."""

        @handle_async_tool_errors("getUserCasualData")
        async def my_func():
            raise SessionError()

        with caplog.at_level(logging.WARNING):
            asyncio.run(my_func())

        records = [r for r in caplog.records if "SESSION_MISSING" in r.getMessage()]
        assert records and records[0].levelno == logging.WARNING

    def test_unexpected_errors_log_error(self, caplog):
        @handle_async_tool_errors("test")
        async def my_func():
            raise ValueError("Bad value")

        with caplog.at_level(logging.ERROR):
            result = asyncio.run(my_func())

        assert result["error"]["code"] == "INTERNAL_UNEXPECTED"
        assert result["error"]["message"] == "internal error"
        assert "Bad value" in caplog.text

    def test_preserves_function_metadata(self):
        @handle_async_tool_errors("test")
        async def my_func():
            """My docstring."""
            return {"success": True}

        assert my_func.__name__ == "my_func"
        assert my_func.__doc__ == "My docstring."
