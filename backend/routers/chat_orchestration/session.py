"""
Charla Turn Context - per-request conversation state

Dataclass holding everything one turn knows about the caller, plus the
session mutations tools performed during the turn. The transport reads
``cookie_action`` after the turn to set or clear the session cookie.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from services.store import Identity

COOKIE_SET = "set"
COOKIE_CLEAR = "clear"


@dataclass
class UploadedFile:
    """Reference to a file uploaded through the (external) upload service."""

    file_name: str
    openai_file_id: str = ""
    document_id: str = ""


@dataclass
class TurnContext:
    """Holds caller state for a single request.

    Attributes:
        identity: Identity resolved from the session token at turn start
        session_token: Token presented by the caller (may be stale or None)
        uploaded_files: Files the caller referenced with this message
        resolved_identity: Copy of ``identity`` that logout does not clear

        Session mutations (written by auth-family tools):
        issued_identity: Identity a session was issued for during this turn
        issued_token: Token of that session
        cookie_action: COOKIE_SET / COOKIE_CLEAR / None, last mutation wins
    """

    identity: Optional[Identity] = None
    session_token: Optional[str] = None
    uploaded_files: List[UploadedFile] = field(default_factory=list)

    issued_identity: Optional[Identity] = None
    issued_token: Optional[str] = None
    cookie_action: Optional[str] = None

    resolved_identity: Optional[Identity] = field(default=None, init=False)

    tools_used: List[str] = field(default_factory=list)
    # Guards session issuance; at most one session per turn
    issue_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def __post_init__(self):
        self.resolved_identity = self.identity

    @property
    def active_identity(self) -> Optional[Identity]:
        """Identity tools should act for: a newly issued one wins over the resolved one."""
        return self.issued_identity or self.identity

    @property
    def message_owner(self) -> Optional[Identity]:
        """Identity the turn's assistant reply is stored under.

        A session issued this turn wins; otherwise the caller resolved at
        turn start, even when the turn logged them out.
        """
        return self.issued_identity or self.resolved_identity

    @property
    def session_issued(self) -> bool:
        return self.issued_token is not None

    def record_issue(self, identity: Identity, token: str) -> None:
        self.issued_identity = identity
        self.issued_token = token
        self.cookie_action = COOKIE_SET

    def record_logout(self) -> None:
        self.identity = None
        self.session_token = None
        self.issued_identity = None
        self.issued_token = None
        self.cookie_action = COOKIE_CLEAR

    def uploaded_files_payload(self) -> List[Dict[str, Any]]:
        return [
            {"fileName": f.file_name, "openaiFileId": f.openai_file_id, "documentId": f.document_id}
            for f in self.uploaded_files
        ]
