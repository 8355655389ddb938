"""
LLM Client - wraps the OpenAI SDK for chat completions with function calling.

Response format:
    {"message": {"role": "assistant", "content": "...", "tool_calls": [...]}}

Key translations:
- Streaming: ChatCompletionChunk → {"message": {"content": chunk}, "done": False}
- Tool calls: OpenAI objects → plain dicts, arguments kept as the raw JSON text
  (the dispatcher owns argument parsing and rejects malformed payloads)
- Options: temperature / max_tokens passed through, anything else ignored
"""

import json
import logging
from typing import Any, Dict, Generator, List, Optional

from openai import OpenAI

from errors import ConfigurationError, LLMError

logger = logging.getLogger(__name__)


def _translate_messages_for_openai(messages: List[Dict]) -> List[Dict]:
    """Translate internal message format to OpenAI API format.

    Handles tool call results and assistant messages carrying tool calls.
    """
    translated = []
    for msg in messages:
        role = msg.get("role", "user")
        content = msg.get("content", "")

        # Tool call results
        if role == "tool":
            translated.append({
                "role": "tool",
                "content": content if isinstance(content, str) else json.dumps(content, ensure_ascii=False),
                "tool_call_id": msg.get("tool_call_id", "call_0"),
            })
            continue

        new_msg = {"role": role, "content": content}

        # Forward tool_calls from assistant messages
        if role == "assistant" and msg.get("tool_calls"):
            openai_tool_calls = []
            for i, tc in enumerate(msg["tool_calls"]):
                fn = tc.get("function", tc)
                arguments = fn.get("arguments", "{}")
                openai_tool_calls.append({
                    "id": tc.get("id") or f"call_{i}",
                    "type": "function",
                    "function": {
                        "name": fn.get("name", ""),
                        "arguments": arguments if isinstance(arguments, str) else json.dumps(arguments),
                    },
                })
            new_msg["tool_calls"] = openai_tool_calls
            # OpenAI requires content to be None when tool_calls present
            if not content:
                new_msg["content"] = None

        translated.append(new_msg)

    return translated


def _translate_tool_calls_from_openai(choices) -> Optional[List[Dict]]:
    """Translate OpenAI tool call objects to plain dicts.

    OpenAI: choice.message.tool_calls[i].function.{name, arguments(str)}
    Internal: [{"id": ..., "type": "function", "function": {"name": ..., "arguments": str}}]
    """
    if not choices:
        return None

    message = choices[0].message
    if not message.tool_calls:
        return None

    result = []
    for tc in message.tool_calls:
        result.append({
            "id": tc.id,
            "type": "function",
            "function": {
                "name": tc.function.name,
                "arguments": tc.function.arguments or "",
            },
        })

    return result if result else None


class LLMClient:
    """Wraps the OpenAI SDK. Built once at startup and shared by all requests."""

    def __init__(self, api_key: str = "", base_url: str = "", timeout: float = 60.0):
        """
        Args:
            api_key: Provider credential. An empty key leaves the client
                unconfigured; every call then raises ConfigurationError.
            base_url: Optional override for OpenAI-compatible endpoints
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/") if base_url else ""
        self._timeout = timeout
        self._openai = None
        if api_key:
            kwargs: Dict[str, Any] = {"api_key": api_key, "timeout": timeout, "max_retries": 0}
            if self.base_url:
                kwargs["base_url"] = self.base_url
            self._openai = OpenAI(**kwargs)

    @property
    def configured(self) -> bool:
        return self._openai is not None

    def ensure_configured(self) -> None:
        if self._openai is None:
            raise ConfigurationError(
                "Completion service credential is not configured",
                details="Set OPENAI_API_KEY",
                setting="OPENAI_API_KEY",
            )

    def chat(
        self,
        model: str = "",
        messages: List[Dict] = None,
        tools: Optional[List[Dict]] = None,
        tool_choice: Optional[str] = None,
        stream: bool = False,
        options: Optional[Dict] = None,
    ) -> Any:
        """Call the chat completions endpoint.

        Args:
            model: Model name
            messages: List of message dicts
            tools: Tool definitions (OpenAI function schema)
            tool_choice: "auto", "none" or "required"; only sent with tools
            stream: Whether to stream response
            options: Generation options (temperature, max_tokens)

        Returns:
            If stream=False: dict with "message" key
            If stream=True: generator yielding chunk dicts
        """
        self.ensure_configured()
        messages = messages or []
        options = options or {}

        kwargs: Dict[str, Any] = {
            "model": model,
            "messages": _translate_messages_for_openai(messages),
        }

        if options.get("temperature") is not None:
            kwargs["temperature"] = options["temperature"]
        if options.get("max_tokens") is not None:
            kwargs["max_tokens"] = options["max_tokens"]

        if tools:
            kwargs["tools"] = tools
            if tool_choice:
                kwargs["tool_choice"] = tool_choice

        if stream:
            return self._stream_chat(**kwargs)

        response = self._openai.chat.completions.create(stream=False, **kwargs)

        if not response.choices:
            raise LLMError("Completion returned no choices", error_type="invalid", model=model)

        content = response.choices[0].message.content or ""
        tool_calls = _translate_tool_calls_from_openai(response.choices)

        result = {
            "message": {
                "role": "assistant",
                "content": content,
            }
        }
        if tool_calls:
            result["message"]["tool_calls"] = tool_calls

        return result

    def _stream_chat(self, **kwargs) -> Generator[Dict, None, None]:
        """Stream chat response, yielding chunk dicts.

        Closing the generator closes the underlying HTTP stream.
        """
        stream = self._openai.chat.completions.create(stream=True, **kwargs)
        try:
            for chunk in stream:
                delta = chunk.choices[0].delta if chunk.choices else None
                if not delta or not delta.content:
                    continue
                yield {"message": {"content": delta.content}, "done": False}
        finally:
            stream.close()

        # Final done signal
        yield {"message": {"content": ""}, "done": True}
