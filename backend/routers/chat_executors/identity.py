"""
Charla Chat Executors - Identity

Registration, authentication and logout. Successful registration or
authentication issues a session for the turn; logout revokes it. Session
issuance is serialized through the turn's lock so concurrent auth-family
calls create at most one session per turn.
"""

import logging
import secrets
from typing import Any, Dict

from errors import handle_async_tool_errors, ValidationError
from logging_config import log_session
from services.store import Identity

logger = logging.getLogger(__name__)

AUTH_FAILED_MESSAGE = "Nombre o código incorrecto."
NO_SESSION_MESSAGE = "No hay sesión activa para cerrar."
LOGGED_OUT_MESSAGE = "Has cerrado sesión correctamente."


def _require_text(value: Any, parameter: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"'{parameter}' is required", parameter=parameter)
    return text


def codes_match(expected: str, provided: str) -> bool:
    return secrets.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


async def establish_session(turn, sessions, identity: Identity) -> bool:
    """Issue a session for ``identity`` unless this turn already issued one.

    Returns True when a new session was created.
    """
    async with turn.issue_lock:
        if turn.session_issued:
            logger.info(f"Session already issued this turn; ignoring redundant issue for identity={identity.id}")
            return False

        issued = await sessions.issue(identity.id)
        # The caller's previous session is superseded by the new one
        if turn.session_token:
            await sessions.revoke(turn.session_token)
        turn.record_issue(identity, issued.token)
        log_session(logger, "issued", identity.id)
        return True


@handle_async_tool_errors("saveUserInfo")
async def execute_save_user_info(name: str, code: str, turn=None, store=None, sessions=None) -> Dict[str, Any]:
    """Register an identity. An existing name (any case) is a welcome back, not an error."""
    name = _require_text(name, "name")
    code = _require_text(code, "code")

    identity, created = await store.acreate_identity(name, code)
    await establish_session(turn, sessions, identity)

    if created:
        message = f"Tu usuario {identity.display_name} se registró correctamente y ha iniciado sesión."
    else:
        message = f"Bienvenido!!! {identity.display_name}, ¿en qué puedo ayudarte hoy?"

    return {
        "success": True,
        "identity_id": identity.id,
        "created": created,
        "message": message,
    }


@handle_async_tool_errors("authenticateUser")
async def execute_authenticate_user(name: str, code: str, turn=None, store=None, sessions=None) -> Dict[str, Any]:
    """Authenticate by name (case-insensitive) and exact code.

    Wrong name and wrong code produce the same payload.
    """
    name = _require_text(name, "name")
    code = _require_text(code, "code")

    identity = await store.afind_identity_by_name(name)
    if identity is None or not codes_match(identity.secret_code, code):
        logger.info("Authentication failed")
        return {"success": True, "authenticated": False, "message": AUTH_FAILED_MESSAGE}

    await establish_session(turn, sessions, identity)
    return {
        "success": True,
        "authenticated": True,
        "identity_id": identity.id,
        "name": identity.display_name,
        "code": identity.secret_code,
        "message": f"Bienvenido {identity.display_name}!",
    }


@handle_async_tool_errors("logoutUser")
async def execute_logout_user(turn=None, sessions=None) -> Dict[str, Any]:
    """Close the caller's session and clear the session cookie."""
    async with turn.issue_lock:
        tokens = [t for t in (turn.session_token, turn.issued_token) if t]
        if not tokens:
            return {"success": True, "logged_out": False, "message": NO_SESSION_MESSAGE}

        for token in tokens:
            await sessions.revoke(token)
        identity = turn.active_identity
        turn.record_logout()

    log_session(logger, "revoked", identity.id if identity else None)
    return {"success": True, "logged_out": True, "message": LOGGED_OUT_MESSAGE}
