"""
Charla Chat Executors - Shared helpers
"""

import re
import unicodedata
from typing import Optional

from errors import SessionError
from services.store import Identity


def normalize_key(key: str) -> str:
    """Normalize a memory key to a deterministic form.

    "  Tío.Auto Color " -> "tio_auto_color". Accents are folded, runs of
    anything that is not a-z/0-9 collapse to one underscore, and edge
    underscores are stripped. Idempotent.
    """
    folded = unicodedata.normalize("NFKD", key or "")
    folded = "".join(c for c in folded if not unicodedata.combining(c))
    folded = folded.strip().lower()
    folded = re.sub(r"[^a-z0-9]+", "_", folded)
    return folded.strip("_")


def require_identity(turn) -> Identity:
    """Identity the tool acts for, or SessionError (a soft failure)."""
    identity: Optional[Identity] = turn.active_identity if turn is not None else None
    if identity is None:
        raise SessionError("no active session", details="The user must log in first")
    return identity
