"""
Storage fault handling: transient retry with backoff, immediate surfacing
of non-transient faults, and no partial writes.
"""
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from roomstore.core.exceptions import NotFoundError, StorageError
from roomstore.services.session_store import SessionStore


def _connection_reset():
    return OperationalError("SELECT 1", {}, Exception("server closed the connection unexpectedly"))


class FlakySessionFactory:
    """Hands out broken sessions for the first ``failures`` calls."""

    def __init__(self, real_factory, failures):
        self.real_factory = real_factory
        self.failures = failures
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            broken = MagicMock()
            broken.begin.side_effect = _connection_reset()
            return broken
        return self.real_factory()


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []
    monkeypatch.setattr("roomstore.services.session_store.time.sleep", recorded.append)
    return recorded


class TestTransientRetry:

    def test_recovers_within_retry_budget(self, session_factory, settings, sleeps):
        flaky = FlakySessionFactory(session_factory, failures=2)
        store = SessionStore(flaky, settings.model_copy(update={"retry_backoff": 0.5}))

        room = store.create_room("alice")

        assert room.id is not None
        assert flaky.calls == 3
        assert sleeps == [0.5, 1.0]

    def test_gives_up_after_budget(self, session_factory, settings, sleeps):
        flaky = FlakySessionFactory(session_factory, failures=10)
        store = SessionStore(flaky, settings)

        with pytest.raises(StorageError) as exc_info:
            store.get_room(1)

        assert exc_info.value.transient is True
        assert exc_info.value.operation == "get_room"
        assert flaky.calls == settings.retry_attempts

    def test_single_attempt_means_no_retry(self, session_factory, settings, sleeps):
        flaky = FlakySessionFactory(session_factory, failures=1)
        store = SessionStore(flaky, settings.model_copy(update={"retry_attempts": 1}))

        with pytest.raises(StorageError):
            store.create_user("bob")

        assert flaky.calls == 1
        assert sleeps == []

    def test_validation_helpers_surface_storage_errors(self, session_factory, settings, sleeps):
        store = SessionStore(FlakySessionFactory(session_factory, failures=10), settings)

        with pytest.raises(StorageError):
            store.validate_room_token(1, "token")


class TestNonTransientFaults:

    def test_constraint_violation_not_retried(self, store, sleeps):
        existing = store.create_user("bob")

        with pytest.raises(StorageError) as exc_info:
            store.create_user("impostor", user_id=existing.id)

        assert exc_info.value.transient is False
        assert sleeps == []
        assert store.get_user(existing.id).username == "bob"

    def test_failed_write_leaves_no_trace(self, store):
        room = store.create_room("alice")

        with pytest.raises(NotFoundError):
            store.reassign_host(room.id + 100, "bob")

        assert [r.host for r in store.list_rooms()] == ["alice"]

    def test_error_kinds_are_distinct(self):
        from roomstore.core.exceptions import SessionStoreError, ValidationError

        kinds = (ValidationError, NotFoundError, StorageError)
        for kind in kinds:
            assert issubclass(kind, SessionStoreError)
            assert not any(issubclass(kind, other) for other in kinds if other is not kind)
