import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from roomstore.core.config import Settings
from roomstore.core.database import init_db, make_session_factory
from roomstore.services.session_store import SessionStore


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", retry_attempts=3, retry_backoff=0.0, token_hash_rounds=4, _env_file=None)


@pytest.fixture
def engine():
    """In-memory SQLite shared by every session of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def store(session_factory, settings):
    return SessionStore(session_factory, settings)
