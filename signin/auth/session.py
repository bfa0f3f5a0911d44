from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional, Tuple

from signin.auth.config import AuthConfig
from signin.auth.cookies import SESSION_TOKEN, SignedCookieJar, cookie_name, session_cookie_options
from signin.auth.errors import InvalidSignature
from signin.auth.models import RequestContext, Session, User
from signin.storage.base import AuthStorage

logger = logging.getLogger(__name__)


def session_cookie_name(cfg: AuthConfig) -> str:
    return cookie_name(cfg, SESSION_TOKEN)


class SessionIssuer:
    """Creates sessions in storage and binds them to the signed session cookie."""

    def __init__(self, cfg: AuthConfig, storage: AuthStorage):
        self._cfg = cfg
        self._storage = storage

    def create(self, user_id: str, ctx: RequestContext) -> Session:
        # StorageError propagates; retry policy belongs to the storage adapter.
        return self._storage.create_session(user_id, ctx)

    def bind_to_cookie(self, jar: SignedCookieJar, session: Session, remember_me: bool) -> None:
        options = session_cookie_options(self._cfg)
        if not remember_me:
            options = replace(options, max_age=None)
        jar.set(session_cookie_name(self._cfg), session.id, self._cfg.secret, options)

    def clear_cookie(self, jar: SignedCookieJar) -> None:
        jar.delete(session_cookie_name(self._cfg), session_cookie_options(self._cfg))


def read_session_id(cfg: AuthConfig, jar: SignedCookieJar) -> Optional[str]:
    try:
        return jar.get(session_cookie_name(cfg), cfg.secret) or None
    except InvalidSignature:
        return None


def read_current_session(cfg: AuthConfig, jar: SignedCookieJar, storage: AuthStorage) -> Optional[Tuple[Session, User]]:
    """
    Return (session, user) for the request's session cookie, or None.

    Missing, tampered and expired cookies all read as "no session".
    """
    session_id = read_session_id(cfg, jar)
    if session_id is None:
        return None
    found = storage.find_session(session_id)
    if found is None:
        logger.debug("Session cookie verified but session is unknown or expired")
    return found
