"""
Charla Prompt Composer - Layered instruction text

Layers, always in this order:
    core rules → tool rules → state layer → domain layer → dynamic context

compose() is pure: same inputs, same text.
"""

from typing import List, Optional

from services.store import Identity

from .. import chat_prompts as prompts
from .domain_router import Domain
from .state_machine import ConversationState

LAYER_SEPARATOR = "\n\n"


def state_layer(state: ConversationState, identity: Optional[Identity]) -> str:
    # Logout-related states resolve first
    if state == ConversationState.LOGGING_OUT:
        return prompts.LOGGING_OUT_PROMPT
    if state == ConversationState.NO_SESSION:
        return prompts.NO_SESSION_PROMPT

    if state == ConversationState.REGISTERING:
        return prompts.REGISTERING_PROMPT
    if state == ConversationState.LOGGING_IN:
        return prompts.LOGGING_IN_PROMPT
    if state == ConversationState.AUTHENTICATED:
        if identity is None:
            raise ValueError("AUTHENTICATED state requires an identity")
        return prompts.authenticated_prompt(identity.display_name, identity.secret_code)

    return prompts.UNAUTHENTICATED_PROMPT


def domain_layer(domain: Domain) -> str:
    if domain == Domain.MEMORY:
        return prompts.MEMORY_PROMPT
    if domain == Domain.AUTHENTICATION:
        return prompts.AUTH_PROMPT
    return prompts.CASUAL_PROMPT


def compose_layers(
    state: ConversationState,
    domain: Domain,
    identity: Optional[Identity] = None,
    dynamic_context: str = "",
) -> List[str]:
    layers = [
        prompts.CORE_RULES,
        prompts.TOOL_RULES,
        state_layer(state, identity),
        domain_layer(domain),
    ]
    if dynamic_context and dynamic_context.strip():
        layers.append(dynamic_context.strip())
    return layers


def compose(
    state: ConversationState,
    domain: Domain,
    identity: Optional[Identity] = None,
    dynamic_context: str = "",
) -> str:
    """Build the instruction text for one completion call.

    Raises:
        ValueError: AUTHENTICATED without an identity
    """
    return LAYER_SEPARATOR.join(compose_layers(state, domain, identity, dynamic_context))
