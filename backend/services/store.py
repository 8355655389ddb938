"""
Record store - SQLite persistence for identities, sessions, messages and memories.

Tables:
- identities: display name + secret code, unique on the casefolded name key
- sessions: opaque token → identity, with expiry
- messages: append-only conversation log, ordered by autoincrement id
- memories: one value per (identity, normalized key), last write wins

All sync methods open their own connection; writes are serialized by a
process-wide lock. Async callers use the ``a*`` coroutine wrappers, which
run the sync method in the default executor.

Usage:
    store = ChatStore(Path("data/charla.db"))
    identity, created = await store.acreate_identity("Ana", "1234")
"""

import asyncio
import logging
import sqlite3
import threading
import unicodedata
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from errors import StoreError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def name_key(name: str) -> str:
    """Case-insensitive lookup key for a display name; folds non-ASCII letters too."""
    return unicodedata.normalize("NFC", name.strip()).casefold()


@dataclass(frozen=True)
class Identity:
    """A registered user. Immutable once created except for vector_store_id."""

    id: int
    display_name: str
    secret_code: str = field(repr=False)
    vector_store_id: Optional[str] = None


@dataclass
class MessageRecord:
    id: int
    role: str
    content: str
    identity_id: Optional[int]
    created_at: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "created_at": self.created_at,
        }


_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS identities (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        display_name TEXT NOT NULL,
        name_key TEXT NOT NULL UNIQUE,
        secret_code TEXT NOT NULL,
        vector_store_id TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sessions (
        token TEXT PRIMARY KEY,
        identity_id INTEGER NOT NULL REFERENCES identities(id),
        expires_at TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        identity_id INTEGER REFERENCES identities(id),
        role TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
        content TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_messages_identity
    ON messages(identity_id, id)
    """,
    """
    CREATE TABLE IF NOT EXISTS memories (
        identity_id INTEGER NOT NULL REFERENCES identities(id),
        key TEXT NOT NULL,
        value TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (identity_id, key)
    )
    """,
)


class ChatStore:
    """SQLite storage for the conversation engine."""

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize store.

        Args:
            db_path: Path to SQLite database (default: backend/data/charla.db)
        """
        if db_path is None:
            backend_dir = Path(__file__).parent.parent
            db_path = backend_dir / "data" / "charla.db"

        self.db_path = Path(db_path)
        self._write_lock = threading.Lock()
        self._init_db()

    # =========================================================================
    # Connection handling
    # =========================================================================

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path, timeout=10)
        except sqlite3.Error as e:
            raise StoreError("Could not open database", details=str(e), operation="connect") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError("Database operation failed", details=str(e)) from e
        finally:
            conn.close()

    def _init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._write_lock, self._connect() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)
        logger.info(f"Chat store ready at {self.db_path}")

    async def _run(self, fn, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(fn, *args, **kwargs))

    @staticmethod
    def _row_to_identity(row: sqlite3.Row) -> Identity:
        return Identity(
            id=row["id"],
            display_name=row["display_name"],
            secret_code=row["secret_code"],
            vector_store_id=row["vector_store_id"],
        )

    def ping(self) -> bool:
        """Readiness check used by /health."""
        try:
            with self._connect() as conn:
                conn.execute("SELECT 1").fetchone()
            return True
        except StoreError as e:
            logger.warning(f"Store ping failed: {e}")
            return False

    # =========================================================================
    # Identities
    # =========================================================================

    def find_identity_by_name(self, name: str) -> Optional[Identity]:
        """Case-insensitive lookup by display name."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM identities WHERE name_key = ?",
                (name_key(name),),
            ).fetchone()
        return self._row_to_identity(row) if row else None

    def get_identity(self, identity_id: int) -> Optional[Identity]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM identities WHERE id = ?", (identity_id,)).fetchone()
        return self._row_to_identity(row) if row else None

    def create_identity(self, name: str, code: str) -> Tuple[Identity, bool]:
        """Create an identity unless the name is taken.

        Returns:
            (identity, created). When the name already exists (any case) the
            existing identity is returned with created=False; concurrent
            creates for the same name therefore converge on one row.
        """
        name = name.strip()
        with self._write_lock, self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO identities (display_name, name_key, secret_code, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (name, name_key(name), code, utcnow().isoformat()),
            )
            created = cursor.rowcount > 0
            row = conn.execute(
                "SELECT * FROM identities WHERE name_key = ?",
                (name_key(name),),
            ).fetchone()
        if row is None:
            raise StoreError("Identity vanished after insert", operation="create_identity")
        return self._row_to_identity(row), created

    def set_vector_store_id(self, identity_id: int, vector_store_id: str) -> bool:
        with self._write_lock, self._connect() as conn:
            cursor = conn.execute(
                "UPDATE identities SET vector_store_id = ? WHERE id = ?",
                (vector_store_id, identity_id),
            )
            return cursor.rowcount > 0

    # =========================================================================
    # Sessions
    # =========================================================================

    def create_session(self, token: str, identity_id: int, expires_at: datetime) -> None:
        with self._write_lock, self._connect() as conn:
            conn.execute(
                "INSERT INTO sessions (token, identity_id, expires_at, created_at) VALUES (?, ?, ?, ?)",
                (token, identity_id, expires_at.isoformat(), utcnow().isoformat()),
            )

    def resolve_session(self, token: str) -> Optional[Identity]:
        """Return the identity bound to a live session, or None.

        Expired sessions are deleted on sight.
        """
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT s.expires_at, i.*
                FROM sessions s JOIN identities i ON i.id = s.identity_id
                WHERE s.token = ?
                """,
                (token,),
            ).fetchone()
        if row is None:
            return None

        if datetime.fromisoformat(row["expires_at"]) <= utcnow():
            self.delete_session(token)
            logger.info("Expired session purged")
            return None
        return self._row_to_identity(row)

    def delete_session(self, token: str) -> bool:
        with self._write_lock, self._connect() as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE token = ?", (token,))
            return cursor.rowcount > 0

    def purge_expired_sessions(self) -> int:
        now = utcnow()
        with self._connect() as conn:
            rows = conn.execute("SELECT token, expires_at FROM sessions").fetchall()
        expired = [r["token"] for r in rows if datetime.fromisoformat(r["expires_at"]) <= now]
        if not expired:
            return 0
        with self._write_lock, self._connect() as conn:
            conn.executemany("DELETE FROM sessions WHERE token = ?", [(t,) for t in expired])
        logger.info(f"Purged {len(expired)} expired sessions")
        return len(expired)

    # =========================================================================
    # Messages
    # =========================================================================

    def append_message(self, role: str, content: str, identity_id: Optional[int] = None) -> int:
        with self._write_lock, self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO messages (identity_id, role, content, created_at) VALUES (?, ?, ?, ?)",
                (identity_id, role, content, utcnow().isoformat()),
            )
            return cursor.lastrowid

    def last_messages(self, identity_id: int, limit: int = 20) -> List[MessageRecord]:
        """Most recent messages for an identity, oldest first."""
        if limit <= 0:
            return []
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM messages
                WHERE identity_id = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                (identity_id, limit),
            ).fetchall()
        return [
            MessageRecord(
                id=r["id"],
                role=r["role"],
                content=r["content"],
                identity_id=r["identity_id"],
                created_at=r["created_at"],
            )
            for r in reversed(rows)
        ]

    # =========================================================================
    # Memories
    # =========================================================================

    def upsert_memory(self, identity_id: int, key: str, value: str) -> None:
        with self._write_lock, self._connect() as conn:
            conn.execute(
                """
                INSERT INTO memories (identity_id, key, value, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(identity_id, key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (identity_id, key, value, utcnow().isoformat()),
            )

    def get_memory(self, identity_id: int, key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM memories WHERE identity_id = ? AND key = ?",
                (identity_id, key),
            ).fetchone()
        return row["value"] if row else None

    def list_memories(self, identity_id: int) -> Dict[str, str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT key, value FROM memories WHERE identity_id = ? ORDER BY key",
                (identity_id,),
            ).fetchall()
        return {r["key"]: r["value"] for r in rows}

    # =========================================================================
    # Async wrappers
    # =========================================================================

    async def afind_identity_by_name(self, name: str) -> Optional[Identity]:
        return await self._run(self.find_identity_by_name, name)

    async def acreate_identity(self, name: str, code: str) -> Tuple[Identity, bool]:
        return await self._run(self.create_identity, name, code)

    async def acreate_session(self, token: str, identity_id: int, expires_at: datetime) -> None:
        await self._run(self.create_session, token, identity_id, expires_at)

    async def aresolve_session(self, token: str) -> Optional[Identity]:
        return await self._run(self.resolve_session, token)

    async def adelete_session(self, token: str) -> bool:
        return await self._run(self.delete_session, token)

    async def aappend_message(self, role: str, content: str, identity_id: Optional[int] = None) -> int:
        return await self._run(self.append_message, role, content, identity_id)

    async def alast_messages(self, identity_id: int, limit: int = 20) -> List[MessageRecord]:
        return await self._run(self.last_messages, identity_id, limit)

    async def aupsert_memory(self, identity_id: int, key: str, value: str) -> None:
        await self._run(self.upsert_memory, identity_id, key, value)

    async def aget_memory(self, identity_id: int, key: str) -> Optional[str]:
        return await self._run(self.get_memory, identity_id, key)

    async def alist_memories(self, identity_id: int) -> Dict[str, str]:
        return await self._run(self.list_memories, identity_id)
