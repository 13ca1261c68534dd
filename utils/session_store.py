"""Bearer-token session stores.

Tokens are opaque strings handed out at login. A store only maps a token to
the user id that owns it; resolving the user row is left to the caller.
"""
import threading
from typing import Dict, Optional

from flask import current_app

from extensions import db
from models import UserSession
from utils.errors import ConfigurationError
from utils.security import generate_token


class SessionStore:
    """Interface shared by the session backends."""

    def get(self, token: str) -> Optional[int]:
        raise NotImplementedError

    def put(self, token: str, user_id: int) -> None:
        raise NotImplementedError

    def delete(self, token: str) -> None:
        raise NotImplementedError

    def issue(self, user_id: int) -> str:
        token = generate_token()
        self.put(token, user_id)
        return token


class InMemorySessionStore(SessionStore):
    """Process-local map. Sessions vanish on restart."""

    def __init__(self):
        self._sessions: Dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, token: str) -> Optional[int]:
        with self._lock:
            return self._sessions.get(token)

    def put(self, token: str, user_id: int) -> None:
        with self._lock:
            self._sessions[token] = user_id

    def delete(self, token: str) -> None:
        with self._lock:
            self._sessions.pop(token, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


class DatabaseSessionStore(SessionStore):
    """Sessions persisted in ``user_sessions`` so they survive restarts."""

    def get(self, token: str) -> Optional[int]:
        row = db.session.get(UserSession, token)
        return row.user_id if row else None

    def put(self, token: str, user_id: int) -> None:
        db.session.merge(UserSession(token=token, user_id=user_id))
        db.session.commit()

    def delete(self, token: str) -> None:
        row = db.session.get(UserSession, token)
        if row is None:
            return
        db.session.delete(row)
        db.session.commit()


SESSION_BACKENDS = {
    "memory": InMemorySessionStore,
    "database": DatabaseSessionStore,
}


def build_session_store(kind: str) -> SessionStore:
    try:
        backend = SESSION_BACKENDS[(kind or "database").lower()]
    except KeyError as exc:
        raise ConfigurationError(f"Unknown SESSION_STORE '{kind}'") from exc
    return backend()


def get_session_store() -> SessionStore:
    return current_app.extensions["session_store"]


def bearer_token(req) -> Optional[str]:
    header = req.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
