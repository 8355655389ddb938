"""
Charla Chat Executors - Unified Tool Dispatch

Re-exports the executors and provides execute_tool(), which routes a call
through the ToolRegistry. Every executor is a coroutine returning a result
dict; failures inside an executor come back as soft error payloads.
"""

import inspect
import logging
from typing import Any, Dict

from errors import NotFoundError, error_response
from tools.registry import ToolRegistry

from .calculations import execute_calculator, evaluate_expression
from .casual import execute_tell_joke
from .common import normalize_key, require_identity
from .identity import (
    execute_authenticate_user,
    execute_logout_user,
    execute_save_user_info,
    establish_session,
)
from .memory import execute_get_casual_data, execute_save_casual_data
from .weather import execute_get_weather

logger = logging.getLogger(__name__)


def _filter_kwargs_for_executor(executor, all_kwargs: Dict[str, Any]) -> Dict[str, Any]:
    """Filter kwargs to only those accepted by the executor function.

    Lets the dispatcher pass one unified context to every executor; each
    executor only receives the parameters it declares.
    """
    sig = inspect.signature(executor)
    accepts_var_keyword = any(p.kind == inspect.Parameter.VAR_KEYWORD for p in sig.parameters.values())

    if accepts_var_keyword:
        return all_kwargs

    accepted_params = set(sig.parameters.keys())
    return {k: v for k, v in all_kwargs.items() if k in accepted_params}


async def execute_tool(tool_name: str, args: Dict[str, Any], **context: Any) -> Dict[str, Any]:
    """
    Unified tool dispatch function using ToolRegistry.

    Args:
        tool_name: Name of the tool to execute
        args: Parsed tool arguments
        **context: turn, store, sessions, http_client ...

    Returns:
        Tool result dictionary
    """
    tool_def = ToolRegistry.get_tool(tool_name)
    if not tool_def:
        return error_response(
            NotFoundError(f"Unknown tool: {tool_name}", resource_type="tool", resource_id=tool_name),
            tool=tool_name,
        )

    # Context keys win so model-supplied args can never override turn/store
    all_kwargs = {**args, **context}
    filtered_kwargs = _filter_kwargs_for_executor(tool_def.executor, all_kwargs)
    return await tool_def.executor(**filtered_kwargs)


__all__ = [
    # Main dispatch
    "execute_tool",
    # Calculations / casual
    "execute_calculator",
    "evaluate_expression",
    "execute_tell_joke",
    "execute_get_weather",
    # Identity
    "execute_save_user_info",
    "execute_authenticate_user",
    "execute_logout_user",
    "establish_session",
    # Memory
    "execute_save_casual_data",
    "execute_get_casual_data",
    # Utilities
    "normalize_key",
    "require_identity",
]
