"""Unit tests for the in-memory session store."""

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from blueprints_mcp.rpc.sessions import (
    DEFAULT_SESSION_TTL,
    SessionStore,
    generate_session_id,
    is_well_formed_session_id,
)


class TestSessionCreate:
    """Tests for SessionStore.create."""

    def test_create_sets_timestamps_and_scopes(self, clock) -> None:
        store = SessionStore(clock=clock)

        session = store.create("demo-user", ["read", "write"])

        assert session.user_id == "demo-user"
        assert session.scopes == frozenset({"read", "write"})
        assert session.created_at == clock.now
        assert session.last_activity == clock.now
        assert session.expires_at == clock.now + timedelta(minutes=30)
        assert session.id in store

    def test_default_ttl_is_thirty_minutes(self) -> None:
        assert DEFAULT_SESSION_TTL == timedelta(minutes=30)
        assert SessionStore().ttl == timedelta(minutes=30)

    def test_empty_scopes_rejected(self, clock) -> None:
        store = SessionStore(clock=clock)

        with pytest.raises(ValueError, match="at least one scope"):
            store.create("demo-user", [])

        assert len(store) == 0

    def test_ids_are_unique(self, clock) -> None:
        store = SessionStore(clock=clock)

        ids = {store.create("u", ["read"]).id for _ in range(50)}

        assert len(ids) == 50
        assert len(store) == 50

    def test_colliding_id_is_regenerated(self, clock) -> None:
        candidates = iter(["same", "same", "other"])
        store = SessionStore(clock=clock, id_factory=lambda: next(candidates))

        first = store.create("u", ["read"])
        second = store.create("u", ["read"])

        assert first.id == "same"
        assert second.id == "other"

    def test_non_positive_ttl_rejected(self) -> None:
        with pytest.raises(ValueError):
            SessionStore(ttl=timedelta(0))


class TestSessionValidate:
    """Tests for SessionStore.validate expiry semantics."""

    def test_unknown_id_returns_none(self, clock) -> None:
        store = SessionStore(clock=clock)
        assert store.validate("does-not-exist") is None

    def test_validate_touches_last_activity(self, clock) -> None:
        store = SessionStore(clock=clock)
        session = store.create("u", ["read"])

        clock.advance(minutes=10)
        validated = store.validate(session.id)

        assert validated is not None
        assert validated.last_activity == clock.now
        # Expiry is absolute; activity does not extend it
        assert validated.expires_at == session.created_at + timedelta(minutes=30)

    def test_valid_at_exactly_thirty_minutes(self, clock) -> None:
        store = SessionStore(clock=clock)
        session = store.create("u", ["read"])

        clock.advance(minutes=30)

        assert store.validate(session.id) is not None

    def test_invalid_just_after_thirty_minutes(self, clock) -> None:
        store = SessionStore(clock=clock)
        session = store.create("u", ["read"])

        clock.advance(minutes=30, microseconds=1)

        assert store.validate(session.id) is None
        assert session.id not in store

    def test_activity_does_not_extend_lifetime(self, clock) -> None:
        store = SessionStore(clock=clock)
        session = store.create("u", ["read"])

        for _ in range(5):
            clock.advance(minutes=5)
            assert store.validate(session.id) is not None

        clock.advance(minutes=6)
        assert store.validate(session.id) is None


class TestSessionGetDestroySweep:
    """Tests for get, destroy and sweep."""

    def test_get_does_not_touch_or_reap(self, clock) -> None:
        store = SessionStore(clock=clock)
        session = store.create("u", ["read"])

        clock.advance(minutes=31)
        fetched = store.get(session.id)

        assert fetched is session
        assert fetched.last_activity == session.created_at
        assert session.id in store

    def test_destroy_removes_session(self, clock) -> None:
        store = SessionStore(clock=clock)
        session = store.create("u", ["read"])

        store.destroy(session.id)

        assert store.validate(session.id) is None
        assert len(store) == 0

    def test_destroy_is_idempotent(self, clock) -> None:
        store = SessionStore(clock=clock)
        store.destroy("never-existed")
        store.destroy("never-existed")
        assert len(store) == 0

    def test_sweep_removes_only_expired(self, clock) -> None:
        store = SessionStore(clock=clock)
        old = store.create("old", ["read"])
        clock.advance(minutes=20)
        fresh = store.create("fresh", ["read"])
        clock.advance(minutes=15)

        removed = store.sweep()

        assert removed == 1
        assert old.id not in store
        assert fresh.id in store

    def test_sweep_on_empty_store(self, clock) -> None:
        assert SessionStore(clock=clock).sweep() == 0


class TestSessionIdFormat:
    """Tests for session id generation and shape checks."""

    def test_generated_ids_are_well_formed(self) -> None:
        for _ in range(20):
            assert is_well_formed_session_id(generate_session_id())

    @pytest.mark.parametrize(
        "session_id",
        ["", None, "has space", "semi;colon", "../etc/passwd", "x" * 257, "ünïcode"],
    )
    def test_malformed_ids_rejected(self, session_id) -> None:
        assert not is_well_formed_session_id(session_id)

    def test_max_length_accepted(self) -> None:
        assert is_well_formed_session_id("a" * 256)


class TestSessionStoreThreadSafety:
    """Concurrent create, validate, sweep and destroy from worker threads."""

    def test_concurrent_operations_leave_store_consistent(self, clock) -> None:
        store = SessionStore(clock=clock)
        old = [store.create(f"old-{i}", ["read"]).id for i in range(100)]
        clock.advance(minutes=20)
        fresh = [store.create(f"fresh-{i}", ["read"]).id for i in range(100)]
        clock.advance(minutes=15)

        doomed = fresh[::2]
        kept = fresh[1::2]

        jobs = []
        with ThreadPoolExecutor(max_workers=8) as pool:
            for sid in old + fresh:
                jobs.append(pool.submit(store.validate, sid))
            for _ in range(20):
                jobs.append(pool.submit(store.sweep))
            for sid in doomed:
                jobs.append(pool.submit(store.destroy, sid))
            created = [pool.submit(store.create, f"new-{i}", ["write"]) for i in range(50)]

        # result() re-raises anything a worker hit
        results = [job.result() for job in jobs]
        new_ids = [future.result().id for future in created]

        assert all(r is None for r in results[: len(old)])
        swept = [r for r in results if isinstance(r, int)]
        assert sum(swept) <= len(old)

        assert not any(sid in store for sid in old)
        assert not any(sid in store for sid in doomed)
        assert all(sid in store for sid in kept)
        assert all(sid in store for sid in new_ids)
        assert len(set(new_ids)) == 50
        assert len(store) == len(kept) + len(new_ids)
        assert all(store.validate(sid) is not None for sid in kept)
