"""Tests for runtime.store.session_store.SessionStore."""

import threading
from datetime import timedelta

import pytest

from exceptions.exceptions import SessionNotFound
from runtime.models.session_models import utcnow
from runtime.store.session_store import SessionStore


class TestLifecycle:
    def test_create_and_get(self, session_store):
        session = session_store.create_session()
        assert session_store.get_session(session.session_id) is session
        assert session_store.require_session(session.session_id) is session
        assert len(session_store) == 1

    def test_unknown_session(self, session_store):
        assert session_store.get_session("nope") is None
        with pytest.raises(SessionNotFound):
            session_store.require_session("nope")

    def test_delete(self, session_store):
        session = session_store.create_session()
        session_store.delete_session(session.session_id)
        assert session_store.get_session(session.session_id) is None
        with pytest.raises(SessionNotFound):
            session_store.delete_session(session.session_id)

    def test_ids_are_unique(self, session_store):
        ids = [session_store.create_session().session_id for _ in range(20)]
        assert len(set(ids)) == 20
        assert sorted(session_store.list_session_ids()) == sorted(ids)


class TestSessionLock:
    def test_yields_session_and_releases(self, session_store):
        session = session_store.create_session()
        with session_store.session_lock(session.session_id) as locked:
            assert locked is session
        # Re-acquirable once released.
        with session_store.session_lock(session.session_id):
            pass

    def test_released_on_exception(self, session_store):
        session = session_store.create_session()
        with pytest.raises(RuntimeError):
            with session_store.session_lock(session.session_id):
                raise RuntimeError("turn failed")
        with session_store.session_lock(session.session_id):
            pass

    def test_unknown_session(self, session_store):
        with pytest.raises(SessionNotFound):
            with session_store.session_lock("nope"):
                pass

    def test_serializes_same_session(self, session_store):
        session = session_store.create_session()
        inside = threading.Event()
        release = threading.Event()
        order = []

        def first():
            with session_store.session_lock(session.session_id):
                inside.set()
                release.wait(timeout=5)
                order.append("first")

        def second():
            with session_store.session_lock(session.session_id):
                order.append("second")

        t1 = threading.Thread(target=first)
        t1.start()
        assert inside.wait(timeout=5)
        t2 = threading.Thread(target=second)
        t2.start()
        t2.join(timeout=0.2)
        assert order == []
        release.set()
        t1.join(timeout=5)
        t2.join(timeout=5)
        assert order == ["first", "second"]

    def test_different_sessions_do_not_block(self, session_store):
        a = session_store.create_session()
        b = session_store.create_session()
        with session_store.session_lock(a.session_id):
            done = threading.Event()

            def other():
                with session_store.session_lock(b.session_id):
                    done.set()

            t = threading.Thread(target=other)
            t.start()
            assert done.wait(timeout=5)
            t.join(timeout=5)


class TestEviction:
    def test_purge_idle_sessions(self):
        now = utcnow()
        clock = {"now": now}
        evicted = []
        store = SessionStore(
            max_idle_seconds=60,
            on_evict=evicted.append,
            clock=lambda: clock["now"],
        )
        stale = store.create_session()
        fresh = store.create_session()
        stale.touch(now - timedelta(seconds=120))
        fresh.touch(now)

        assert store.purge_expired() == [stale.session_id]
        assert store.get_session(stale.session_id) is None
        assert store.get_session(fresh.session_id) is fresh
        assert evicted == [stale]

    def test_purge_skips_locked_sessions(self):
        now = utcnow()
        store = SessionStore(max_idle_seconds=60, clock=lambda: now)
        session = store.create_session()
        session.last_activity = now - timedelta(hours=1)
        with store.session_lock(session.session_id):
            session.last_activity = now - timedelta(hours=1)
            assert store.purge_expired() == []
        assert store.get_session(session.session_id) is session

    def test_idle_eviction_disabled(self):
        store = SessionStore(max_idle_seconds=0)
        session = store.create_session()
        session.last_activity = utcnow() - timedelta(days=30)
        assert store.purge_expired() == []

    def test_cap_evicts_least_recently_active(self):
        now = utcnow()
        store = SessionStore(max_sessions=2)
        older = store.create_session()
        newer = store.create_session()
        older.touch(now - timedelta(minutes=10))
        newer.touch(now - timedelta(minutes=1))

        third = store.create_session()

        assert store.get_session(older.session_id) is None
        assert store.get_session(newer.session_id) is newer
        assert store.get_session(third.session_id) is third
        assert len(store) == 2

    def test_evicted_id_is_not_reissued(self):
        store = SessionStore(max_sessions=1)
        first = store.create_session()
        second = store.create_session()
        assert store.get_session(first.session_id) is None
        assert second.session_id != first.session_id

    def test_evict_callback_errors_are_logged(self):
        def boom(session):
            raise RuntimeError("callback failed")

        store = SessionStore(max_sessions=1, on_evict=boom)
        store.create_session()
        # Creation still succeeds.
        assert store.create_session() is not None
        assert len(store) == 1
