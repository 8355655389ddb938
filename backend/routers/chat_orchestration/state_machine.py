"""
Charla Conversation State Machine

Pure mapping from (is there an identity?, message text) to a conversation
state. Recomputed on every turn and never stored.
"""

import re
from enum import Enum
from typing import Optional

from services.store import Identity


class ConversationState(str, Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    REGISTERING = "REGISTERING"
    LOGGING_IN = "LOGGING_IN"
    AUTHENTICATED = "AUTHENTICATED"
    LOGGING_OUT = "LOGGING_OUT"
    NO_SESSION = "NO_SESSION"


class Intent(str, Enum):
    REGISTER = "register"
    LOGIN = "login"
    NONE = "none"


LOGOUT_PATTERN = re.compile(r"cerrar sesi[oó]n|\blog ?out\b|\bsalir\b")

REGISTER_KEYWORDS = ("registr", "crear cuenta", "register", "sign up", "signup")
LOGIN_KEYWORDS = ("ingresar", "inicio", "iniciar sesi", "entrar", "login", "log in")


def is_logout(text: str) -> bool:
    return bool(LOGOUT_PATTERN.search(text.lower()))


def detect_intent(text: str) -> Intent:
    """Keyword intent for anonymous callers. Register keywords win over login."""
    lowered = text.lower()
    if any(k in lowered for k in REGISTER_KEYWORDS):
        return Intent.REGISTER
    if any(k in lowered for k in LOGIN_KEYWORDS):
        return Intent.LOGIN
    return Intent.NONE


def looks_like_credentials(text: str) -> bool:
    """True for a bare "name, code" pair: exactly one comma, both sides non-empty."""
    parts = text.split(",")
    return len(parts) == 2 and all(p.strip() for p in parts)


def next_state(identity: Optional[Identity], text: str) -> ConversationState:
    """Compute the conversation state for this turn.

    Priority:
        1. logout intent without identity   -> NO_SESSION
        2. logout intent with identity      -> LOGGING_OUT
        3. any other text with identity     -> AUTHENTICATED
        4. register / login keywords        -> REGISTERING / LOGGING_IN
        5. "name, code"                     -> REGISTERING
        6. otherwise                        -> UNAUTHENTICATED
    """
    text = (text or "").lower()
    has_identity = identity is not None

    if is_logout(text):
        return ConversationState.LOGGING_OUT if has_identity else ConversationState.NO_SESSION

    if has_identity:
        return ConversationState.AUTHENTICATED

    intent = detect_intent(text)
    if intent == Intent.REGISTER:
        return ConversationState.REGISTERING
    if intent == Intent.LOGIN:
        return ConversationState.LOGGING_IN

    if looks_like_credentials(text):
        return ConversationState.REGISTERING

    return ConversationState.UNAUTHENTICATED
