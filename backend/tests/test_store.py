"""
Tests for the SQLite record store, the session manager and memory key
normalization.
"""

import asyncio
from datetime import timedelta

import pytest

from routers.chat_executors.common import normalize_key
from services.store import utcnow


class TestIdentities:
    """Identity creation is idempotent on case-insensitive names."""

    def test_create_and_find(self, store):
        identity, created = store.create_identity("Ana", "1234")
        assert created is True
        assert identity.display_name == "Ana"

        found = store.find_identity_by_name("ana")
        assert found == identity

    def test_duplicate_name_returns_existing(self, store):
        first, _ = store.create_identity("Ana", "1234")
        second, created = store.create_identity("  ANA ", "9999")

        assert created is False
        assert second.id == first.id
        assert second.secret_code == "1234"

    def test_accented_names_fold_case(self, store):
        first, created_first = store.create_identity("Ángela", "1111")
        second, created_second = store.create_identity("ángela", "2222")

        assert created_first is True
        assert created_second is False
        assert second.id == first.id
        assert store.find_identity_by_name("ÁNGELA") == first
        assert store.find_identity_by_name("  ángela ") == first

    def test_decomposed_accents_match(self, store):
        # "Ñandú" typed with combining marks instead of precomposed letters
        identity, _ = store.create_identity("\u00d1and\u00fa", "1")
        assert store.find_identity_by_name("\u00f1andu\u0301") == identity

    def test_secret_code_not_in_repr(self, store):
        identity, _ = store.create_identity("Ana", "s3cr3t")
        assert "s3cr3t" not in repr(identity)

    def test_concurrent_creates_converge(self, store):
        async def create_many():
            return await asyncio.gather(*(store.acreate_identity("Bruno", str(i)) for i in range(5)))

        results = asyncio.run(create_many())

        assert len({identity.id for identity, _ in results}) == 1
        assert sum(1 for _, created in results if created) == 1

    def test_vector_store_id(self, store):
        identity, _ = store.create_identity("Ana", "1234")
        assert store.set_vector_store_id(identity.id, "vs_123") is True
        assert store.get_identity(identity.id).vector_store_id == "vs_123"


class TestSessionsTable:
    """Session rows expire and are removed on sight."""

    def test_resolve_live_session(self, store):
        identity, _ = store.create_identity("Ana", "1234")
        store.create_session("tok-live", identity.id, utcnow() + timedelta(days=1))
        assert store.resolve_session("tok-live") == identity

    def test_expired_session_is_purged(self, store):
        identity, _ = store.create_identity("Ana", "1234")
        store.create_session("tok-old", identity.id, utcnow() - timedelta(seconds=1))

        assert store.resolve_session("tok-old") is None
        assert store.delete_session("tok-old") is False

    def test_purge_expired_sessions(self, store):
        identity, _ = store.create_identity("Ana", "1234")
        store.create_session("a", identity.id, utcnow() - timedelta(days=1))
        store.create_session("b", identity.id, utcnow() + timedelta(days=1))

        assert store.purge_expired_sessions() == 1
        assert store.resolve_session("b") == identity

    def test_unknown_token(self, store):
        assert store.resolve_session("nope") is None


class TestMessages:
    """Append-only log, read back oldest first."""

    def test_last_messages_order_and_limit(self, store):
        identity, _ = store.create_identity("Ana", "1234")
        for i in range(5):
            store.append_message("user" if i % 2 == 0 else "assistant", f"m{i}", identity.id)

        records = store.last_messages(identity.id, limit=3)

        assert [r.content for r in records] == ["m2", "m3", "m4"]
        assert records[0].to_dict()["role"] == "user"

    def test_anonymous_messages_not_in_history(self, store):
        identity, _ = store.create_identity("Ana", "1234")
        store.append_message("user", "anónimo", None)
        assert store.last_messages(identity.id) == []

    def test_zero_limit(self, store):
        identity, _ = store.create_identity("Ana", "1234")
        store.append_message("user", "hola", identity.id)
        assert store.last_messages(identity.id, limit=0) == []

    def test_invalid_role_rejected(self, store):
        from errors import StoreError

        with pytest.raises(StoreError):
            store.append_message("system", "nope", None)


class TestMemories:
    """One value per (identity, key); last write wins."""

    def test_upsert_last_write_wins(self, store):
        identity, _ = store.create_identity("Ana", "1234")
        store.upsert_memory(identity.id, "perro_nombre", "Toby")
        store.upsert_memory(identity.id, "perro_nombre", "Rex")

        assert store.get_memory(identity.id, "perro_nombre") == "Rex"
        assert store.list_memories(identity.id) == {"perro_nombre": "Rex"}

    def test_memories_are_per_identity(self, store):
        ana, _ = store.create_identity("Ana", "1")
        bruno, _ = store.create_identity("Bruno", "2")
        store.upsert_memory(ana.id, "usuario_color_favorito", "azul")

        assert store.get_memory(bruno.id, "usuario_color_favorito") is None

    def test_ping(self, store):
        assert store.ping() is True


class TestSessionManager:
    """Token issuance, resolution and revocation."""

    def test_issue_resolve_revoke(self, store, sessions):
        identity, _ = store.create_identity("Ana", "1234")

        async def flow():
            issued = await sessions.issue(identity.id)
            resolved = await sessions.resolve(issued.token)
            revoked = await sessions.revoke(issued.token)
            after = await sessions.resolve(issued.token)
            return issued, resolved, revoked, after

        issued, resolved, revoked, after = asyncio.run(flow())

        assert resolved == identity
        assert revoked is True
        assert after is None
        assert issued.expires_at > utcnow() + timedelta(days=29)

    def test_tokens_are_unique(self, store, sessions):
        identity, _ = store.create_identity("Ana", "1234")

        async def issue_two():
            return await asyncio.gather(sessions.issue(identity.id), sessions.issue(identity.id))

        a, b = asyncio.run(issue_two())
        assert a.token != b.token

    @pytest.mark.parametrize("token", [None, "", "short", "has spaces in it!!!", "x" * 500])
    def test_malformed_tokens_resolve_to_none(self, sessions, token):
        assert asyncio.run(sessions.resolve(token)) is None


class TestNormalizeKey:
    """Deterministic, idempotent key normalization."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("tio.auto_color", "tio_auto_color"),
            ("  Tío.Auto Color ", "tio_auto_color"),
            ("usuario.COLOR--favorito", "usuario_color_favorito"),
            ("__perro__", "perro"),
            ("ñandú", "nandu"),
            ("", ""),
        ],
    )
    def test_examples(self, raw, expected):
        assert normalize_key(raw) == expected

    @pytest.mark.parametrize("raw", ["Tío.Auto Color", "a..b", "  X  ", "hermano.color_favorito", "¿qué?"])
    def test_idempotent(self, raw):
        once = normalize_key(raw)
        assert normalize_key(once) == once
