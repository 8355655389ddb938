"""
Shared pytest fixtures for the Charla conversation engine tests.

Coroutines are driven with asyncio.run() inside each test; no async
plugin is required.
"""

import json
from typing import Any, Dict, List, Optional

import pytest

from config import RuntimeConfig
from routers.chat_prompts import CONTEXT_SUMMARY_PROMPT, DOMAIN_CLASSIFIER_PROMPT
from services.sessions import SessionManager
from services.store import ChatStore
from tools.registry import register_all_tools


# ---------------------------------------------------------------------------
# Helpers - fake completion responses
# ---------------------------------------------------------------------------

def llm_response(content: str = "", tool_calls: Optional[List[Dict]] = None) -> Dict[str, Any]:
    """Build a canned response dict matching LLMClient.chat() format."""
    msg = {"role": "assistant", "content": content}
    if tool_calls:
        msg["tool_calls"] = tool_calls
    return {"message": msg}


def tool_call(name: str, arguments: Any, call_id: str = "call_0") -> Dict[str, Any]:
    """Build a single native tool call; dict arguments are encoded as JSON text."""
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": arguments}}


class FakeLLMClient:
    """Scripted stand-in for LLMClient.

    Classifier and context-summary calls are answered from ``domain`` and
    ``summary``; every other call consumes the next scripted response.
    Streaming calls split the response content into ``chunk_size`` pieces.
    """

    def __init__(
        self,
        responses: Optional[List[Dict[str, Any]]] = None,
        domain: str = "casual",
        summary: str = "",
        configured: bool = True,
        chunk_size: int = 4,
    ):
        self.responses = list(responses or [])
        self.domain = domain
        self.summary = summary
        self._configured = configured
        self.chunk_size = chunk_size
        self.calls: List[Dict[str, Any]] = []
        self.closed_streams = 0

    @property
    def configured(self) -> bool:
        return self._configured

    def ensure_configured(self) -> None:
        if not self._configured:
            from errors import ConfigurationError

            raise ConfigurationError("Completion service credential is not configured", setting="OPENAI_API_KEY")

    @property
    def chat_calls(self) -> List[Dict[str, Any]]:
        """Calls that were neither classification nor context summaries."""
        return [c for c in self.calls if c["kind"] == "chat"]

    def chat(self, model="", messages=None, tools=None, tool_choice=None, stream=False, options=None):
        messages = messages or []
        system = messages[0]["content"] if messages and messages[0]["role"] == "system" else ""

        if system == DOMAIN_CLASSIFIER_PROMPT:
            self.calls.append({"kind": "classify", "model": model, "messages": messages})
            if isinstance(self.domain, Exception):
                raise self.domain
            return llm_response(self.domain)

        if system == CONTEXT_SUMMARY_PROMPT:
            self.calls.append({"kind": "summary", "model": model, "messages": messages})
            if isinstance(self.summary, Exception):
                raise self.summary
            return llm_response(self.summary)

        self.calls.append({
            "kind": "chat",
            "model": model,
            "messages": messages,
            "tools": tools,
            "tool_choice": tool_choice,
            "stream": stream,
        })
        if not self.responses:
            raise AssertionError("FakeLLMClient ran out of scripted responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if stream:
            return self._stream(response["message"].get("content", ""))
        return response

    def _stream(self, text: str):
        try:
            for i in range(0, len(text), self.chunk_size):
                yield {"message": {"content": text[i:i + self.chunk_size]}, "done": False}
            yield {"message": {"content": ""}, "done": True}
        finally:
            self.closed_streams += 1


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def config():
    """Isolated RuntimeConfig with fast timeouts and no retry delay."""
    cfg = RuntimeConfig()
    cfg.openai_api_key = "test-key"
    cfg.llm_timeout = 5.0
    cfg.llm_retry_max = 2
    cfg.llm_retry_delay = 0.0
    cfg.tool_timeout = 5.0
    cfg.context_summary_enabled = True
    return cfg


@pytest.fixture
def store(tmp_path):
    """ChatStore on a throwaway SQLite file."""
    return ChatStore(tmp_path / "charla-test.db")


@pytest.fixture
def sessions(store):
    return SessionManager(store, ttl_days=30)


@pytest.fixture(autouse=True)
def tools_registered():
    """The tool catalogue is process-wide; make sure it is populated."""
    register_all_tools()
