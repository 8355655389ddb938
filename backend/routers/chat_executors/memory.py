"""
Charla Chat Executors - Casual memory

Per-identity key/value facts. Keys are normalized before every read and
write so both sides agree: "Tío.Auto Color" and "tio.auto_color" both
land on "tio_auto_color".
"""

import logging
from typing import Any, Dict

from errors import handle_async_tool_errors, NotFoundError, ValidationError

from .common import normalize_key, require_identity

logger = logging.getLogger(__name__)

MAX_VALUE_LENGTH = 2000


def _checked_key(key: Any) -> str:
    normalized = normalize_key(str(key) if key is not None else "")
    if not normalized:
        raise ValidationError("Memory key is empty after normalization", parameter="key", received=str(key))
    return normalized


@handle_async_tool_errors("saveUserCasualData")
async def execute_save_casual_data(key: str, value: str, turn=None, store=None) -> Dict[str, Any]:
    """Upsert one fact for the caller. Last write wins."""
    identity = require_identity(turn)
    normalized = _checked_key(key)
    value = str(value).strip() if value is not None else ""
    if not value:
        raise ValidationError("Memory value is required", parameter="value")
    if len(value) > MAX_VALUE_LENGTH:
        raise ValidationError(
            "Memory value too long",
            parameter="value",
            expected=f"at most {MAX_VALUE_LENGTH} characters",
        )

    await store.aupsert_memory(identity.id, normalized, value)
    return {"success": True, "key": normalized, "value": value}


@handle_async_tool_errors("getUserCasualData")
async def execute_get_casual_data(key: str, turn=None, store=None) -> Dict[str, Any]:
    identity = require_identity(turn)
    normalized = _checked_key(key)

    value = await store.aget_memory(identity.id, normalized)
    if value is None:
        raise NotFoundError("not found", resource_type="memory", resource_id=normalized)
    return {"success": True, "key": normalized, "value": value}
