"""In-process storage for development and tests (fallback when Postgres is not configured)."""

from __future__ import annotations

import threading
import uuid
from datetime import timedelta
from typing import Dict, List, Optional, Tuple

from signin.auth.errors import StorageError
from signin.auth.models import Account, RequestContext, Session, User, UserWithAccounts
from signin.auth.util import random_token, utcnow


class InMemoryStorage:
    """Dict-backed AuthStorage. State is lost on restart."""

    def __init__(self, session_max_age: int = 7 * 24 * 3600):
        self._session_max_age = timedelta(seconds=session_max_age)
        self._users: Dict[str, User] = {}
        self._users_by_email: Dict[str, str] = {}
        self._accounts: Dict[str, List[Account]] = {}
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def find_user_by_email(self, email: str) -> Optional[UserWithAccounts]:
        with self._lock:
            user_id = self._users_by_email.get(email)
            if user_id is None:
                return None
            return UserWithAccounts(user=self._users[user_id], accounts=list(self._accounts.get(user_id, [])))

    def create_user(self, email: str, name: Optional[str] = None) -> User:
        with self._lock:
            if email in self._users_by_email:
                raise StorageError(f"User already exists: {email}")
            user = User(id=uuid.uuid4().hex, email=email, name=name, created_at=utcnow())
            self._users[user.id] = user
            self._users_by_email[email] = user.id
            return user

    def link_account(self, user_id: str, provider_id: str, password_hash: Optional[str] = None) -> Account:
        with self._lock:
            if user_id not in self._users:
                raise StorageError(f"Unknown user: {user_id}")
            account = Account(id=uuid.uuid4().hex, user_id=user_id, provider_id=provider_id, password_hash=password_hash)
            self._accounts.setdefault(user_id, []).append(account)
            return account

    def create_session(self, user_id: str, ctx: RequestContext) -> Session:
        now = utcnow()
        session = Session(
            id=random_token(32),
            user_id=user_id,
            created_at=now,
            expires_at=now + self._session_max_age,
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
        )
        with self._lock:
            if user_id not in self._users:
                raise StorageError(f"Unknown user: {user_id}")
            self._sessions[session.id] = session
        return session

    def find_session(self, session_id: str) -> Optional[Tuple[Session, User]]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if session.is_expired(utcnow()):
                del self._sessions[session_id]
                return None
            user = self._users.get(session.user_id)
            if user is None:
                return None
            return session, user

    def delete_session(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)
