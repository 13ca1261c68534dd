import pytest

from extensions import db
from models import User, UserSession
from utils.errors import ConfigurationError
from utils.session_store import (
    DatabaseSessionStore,
    InMemorySessionStore,
    bearer_token,
    build_session_store,
)


def _citizen_id():
    return User.query.filter_by(email="citizen@nagarseva.com").one().id


def test_memory_store_round_trip():
    store = InMemorySessionStore()

    token = store.issue(42)

    assert store.get(token) == 42
    assert len(store) == 1
    store.delete(token)
    store.delete(token)
    assert store.get(token) is None
    assert len(store) == 0


def test_issued_tokens_are_distinct():
    store = InMemorySessionStore()

    assert store.issue(1) != store.issue(1)


def test_database_store_persists_sessions(ctx):
    store = DatabaseSessionStore()
    user_id = _citizen_id()

    token = store.issue(user_id)

    assert db.session.get(UserSession, token).user_id == user_id
    assert DatabaseSessionStore().get(token) == user_id
    store.delete(token)
    assert store.get(token) is None
    store.delete("never-issued")


@pytest.mark.parametrize("kind, backend", [("memory", InMemorySessionStore), ("DATABASE", DatabaseSessionStore), (None, DatabaseSessionStore)])
def test_build_session_store(kind, backend):
    assert isinstance(build_session_store(kind), backend)


def test_unknown_session_store_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        build_session_store("redis")


def test_unknown_session_store_fails_app_startup(tmp_path):
    from app import create_app

    with pytest.raises(ConfigurationError):
        create_app(
            "testing",
            overrides={"SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'x.db'}", "SESSION_STORE": "redis"},
        )


class _Request:
    def __init__(self, header):
        self.headers = {"Authorization": header} if header is not None else {}


@pytest.mark.parametrize(
    "header, expected",
    [
        ("Bearer abc123", "abc123"),
        ("bearer   abc123  ", "abc123"),
        ("Basic abc123", None),
        ("Bearer ", None),
        (None, None),
    ],
)
def test_bearer_token(header, expected):
    assert bearer_token(_Request(header)) == expected
