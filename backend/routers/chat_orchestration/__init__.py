"""
Charla Chat Orchestration - Conversational turn components

Components:
- TurnContext: Per-request caller state and session mutations
- next_state / ConversationState: Pure conversation state machine
- DomainRouter / Domain: Semantic domain classification
- compose: Layered instruction text for each completion call
- ToolDispatcher: Tool parsing and execution coordination
- LLMOrchestrator: Two-call LLM pattern (tool call -> execute -> response)

Routing decisions fall back rather than fail:
    1. Domain classification error or timeout → casual
    2. Context summary failure               → stored memories only
    3. Tool failure                          → soft error payload for the model
"""

from .session import TurnContext, UploadedFile, COOKIE_SET, COOKIE_CLEAR
from .state_machine import ConversationState, next_state
from .domain_router import Domain, DomainRouter
from .prompt_composer import compose
from .tool_dispatch import ToolDispatcher, ToolCallResult
from .orchestrator import LLMOrchestrator, TurnResult

__all__ = [
    "TurnContext",
    "UploadedFile",
    "COOKIE_SET",
    "COOKIE_CLEAR",
    "ConversationState",
    "next_state",
    "Domain",
    "DomainRouter",
    "compose",
    "ToolDispatcher",
    "ToolCallResult",
    "LLMOrchestrator",
    "TurnResult",
]
