"""
Session resolver - opaque session tokens to identities.

Tokens are random URL-safe strings carried in the session cookie. A token
resolves to at most one live session; malformed, unknown and expired tokens
all resolve to no identity.
"""

import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from services.store import ChatStore, Identity, utcnow

logger = logging.getLogger(__name__)

# token_urlsafe(32) yields 43 chars; allow some headroom for older formats
_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]{16,128}$")


@dataclass(frozen=True)
class IssuedSession:
    token: str = ""
    identity_id: int = 0
    expires_at: Optional[datetime] = None


class SessionManager:
    """Issues, resolves and revokes sessions backed by the chat store."""

    def __init__(self, store: ChatStore, ttl_days: int = 30):
        self.store = store
        self.ttl_days = ttl_days

    @staticmethod
    def is_well_formed(token: Optional[str]) -> bool:
        return bool(token) and bool(_TOKEN_PATTERN.match(token))

    async def resolve(self, token: Optional[str]) -> Optional[Identity]:
        """Return the identity behind a session token, or None."""
        if not self.is_well_formed(token):
            if token:
                logger.debug("Ignoring malformed session token")
            return None
        return await self.store.aresolve_session(token)

    async def issue(self, identity_id: int) -> IssuedSession:
        token = secrets.token_urlsafe(32)
        expires_at = utcnow() + timedelta(days=self.ttl_days)
        await self.store.acreate_session(token, identity_id, expires_at)
        return IssuedSession(token=token, identity_id=identity_id, expires_at=expires_at)

    async def revoke(self, token: Optional[str]) -> bool:
        if not self.is_well_formed(token):
            return False
        return await self.store.adelete_session(token)
