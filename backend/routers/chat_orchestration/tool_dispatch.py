"""
Charla Tool Dispatcher - Tool call parsing and concurrent execution

Handles:
- Reading native tool calls from a phase-1 completion
- Strict argument parsing against the catalogue schema; malformed
  arguments fail the whole request before any tool runs
- Concurrent execution of every call in a turn (fan-out / ordered fan-in)
- Per-tool timeout, turned into a soft error payload
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from errors import CharlaError, ErrorCode, ToolArgumentsError, error_response
from logging_config import log_tool
from tools.registry import ToolRegistry, ToolDefinition

from ..chat_executors import execute_tool
from .session import TurnContext

logger = logging.getLogger(__name__)

# Executor context names; model-supplied args with these names are dropped
_CONTEXT_KEYS = {"turn", "store", "sessions", "http_client"}

_SCALAR_TYPES = (str, int, float)


@dataclass
class ToolCallResult:
    """One executed tool call, in the order the model requested it."""

    call_id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    result: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return bool(self.result.get("success"))

    def to_message(self) -> Dict[str, Any]:
        """Tool-role message replayed to the model in phase 2."""
        return {
            "role": "tool",
            "tool_call_id": self.call_id,
            "content": json.dumps(self.result, ensure_ascii=False, default=str),
        }

    def to_trace(self) -> Dict[str, Any]:
        return {"id": self.call_id, "name": self.name, "result": self.result}


def parse_arguments(tool_name: str, raw: Any, tool_def: Optional[ToolDefinition]) -> Dict[str, Any]:
    """Parse and validate tool-call arguments.

    Raises:
        ToolArgumentsError: not JSON, not an object, a required parameter
            missing, or a string parameter given a non-scalar value
    """
    if isinstance(raw, dict):
        args = dict(raw)
    else:
        text = (raw or "").strip() if isinstance(raw, str) else raw
        if text in ("", None):
            args = {}
        else:
            try:
                args = json.loads(text)
            except (TypeError, json.JSONDecodeError) as e:
                raise ToolArgumentsError(
                    "Tool arguments are not valid JSON",
                    details=str(e),
                    tool=tool_name,
                ) from None
    if not isinstance(args, dict):
        raise ToolArgumentsError(
            "Tool arguments must be a JSON object",
            tool=tool_name,
            received=type(args).__name__,
        )

    args = {k: v for k, v in args.items() if k not in _CONTEXT_KEYS}

    if tool_def is None:
        return args

    missing = [p for p in tool_def.required_params if args.get(p) is None]
    if missing:
        raise ToolArgumentsError(
            "Tool call is missing required arguments",
            tool=tool_name,
            parameter=",".join(missing),
        )

    for param, schema in tool_def.parameters.items():
        if param not in args or schema.get("type") != "string":
            continue
        value = args[param]
        if isinstance(value, bool) or not isinstance(value, _SCALAR_TYPES):
            raise ToolArgumentsError(
                "Tool argument has the wrong type",
                tool=tool_name,
                parameter=param,
                expected="string",
                received=type(value).__name__,
            )
        args[param] = str(value)

    return args


class ToolDispatcher:
    """Coordinates tool parsing and execution for one process.

    Usage:
        dispatcher = ToolDispatcher(store, sessions, runtime_config)
        results = await dispatcher.execute_tools(tool_calls, turn)
    """

    def __init__(self, store, sessions, runtime_config, http_client=None):
        """
        Args:
            store: ChatStore
            sessions: SessionManager
            runtime_config: RuntimeConfig (tool_timeout)
            http_client: Optional shared httpx.AsyncClient for external lookups
        """
        self.store = store
        self.sessions = sessions
        self.runtime_config = runtime_config
        self.http_client = http_client

    def parse_tool_calls(self, response: Dict[str, Any]) -> Optional[List[Dict]]:
        """Native tool calls from a completion response, or None."""
        tool_calls = response.get("message", {}).get("tool_calls")
        if tool_calls:
            logger.debug(f"Found {len(tool_calls)} native tool calls")
            return tool_calls
        return None

    async def dispatch(self, name: str, args: Dict[str, Any], turn: TurnContext) -> Dict[str, Any]:
        """Run one tool with already-parsed arguments. Never raises for tool failures."""
        timeout = self.runtime_config.tool_timeout
        try:
            return await asyncio.wait_for(
                execute_tool(
                    name,
                    args,
                    turn=turn,
                    store=self.store,
                    sessions=self.sessions,
                    http_client=self.http_client,
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Tool {name} timed out after {timeout}s")
            return error_response(
                CharlaError(f"Tool timed out after {timeout}s", code=ErrorCode.TOOL_TIMEOUT, recoverable=True),
                tool=name,
            )

    async def _run_call(self, call_id: str, name: str, args: Dict[str, Any], turn: TurnContext) -> ToolCallResult:
        log_tool(logger, name, "start", **self._build_log_context(name, args))
        result = await self.dispatch(name, args, turn)
        log_tool(logger, name, "end", **self._build_result_context(result))
        return ToolCallResult(call_id=call_id, name=name, arguments=args, result=result)

    async def execute_tools(self, tool_calls: List[Dict], turn: TurnContext) -> List[ToolCallResult]:
        """Execute all tool calls of a turn concurrently.

        Arguments are validated for every call before any tool runs.

        Returns:
            One ToolCallResult per call, in request order

        Raises:
            ToolArgumentsError: any call carries unusable arguments
        """
        prepared = []
        for i, tool_call in enumerate(tool_calls):
            fn = tool_call.get("function", {})
            name = fn.get("name", "")
            call_id = tool_call.get("id") or f"call_{i}"
            tool_def = ToolRegistry.get_tool(name)
            if tool_def is None:
                # Unknown tools get a soft error from execute_tool; their args are irrelevant
                prepared.append((call_id, name, {}))
                continue
            prepared.append((call_id, name, parse_arguments(name, fn.get("arguments"), tool_def)))

        results = await asyncio.gather(
            *(self._run_call(call_id, name, args, turn) for call_id, name, args in prepared)
        )

        turn.tools_used.extend(r.name for r in results)
        return list(results)

    def _build_log_context(self, tool_name: str, args: Dict) -> Dict[str, str]:
        """Build context dict for tool start logging. Codes and values stay out of logs."""
        ctx = {}
        if "expression" in args:
            ctx["expr"] = f'"{str(args["expression"])[:40]}"'
        elif "location" in args:
            ctx["location"] = f'"{str(args["location"])[:40]}"'
        elif "key" in args:
            ctx["key"] = str(args["key"])[:60]
        elif "name" in args:
            ctx["name"] = str(args["name"])[:40]
        return ctx

    def _build_result_context(self, result: Dict) -> Dict[str, str]:
        """Build context dict for tool end logging."""
        ctx = {}
        if result.get("success"):
            if "authenticated" in result:
                ctx["authenticated"] = result["authenticated"]
            elif "logged_out" in result:
                ctx["logged_out"] = result["logged_out"]
            elif "created" in result:
                ctx["created"] = result["created"]
        else:
            ctx["error"] = result.get("error", {}).get("code", "true")
        return ctx
