from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from signin.auth.config import AuthConfig
from signin.auth.cookies import SignedCookieJar
from signin.auth.errors import BadRequest, Unauthorized
from signin.auth.models import RequestContext
from signin.auth.password import PasswordHasher
from signin.auth.session import SessionIssuer, read_current_session
from signin.storage.base import AuthStorage

logger = logging.getLogger(__name__)

# Shared by every credential failure so callers cannot tell which check failed.
INVALID_CREDENTIALS = "Invalid email or password"


def _sign_in_response(user: Any, session: Any, callback_url: Optional[str]) -> Dict[str, Any]:
    return {
        "user": user,
        "session": session,
        "redirect": bool(callback_url),
        "url": callback_url,
    }


class CredentialAuthenticator:
    """
    Email/password sign-in.

    FeatureCheck -> SessionShortCircuit -> UserLookup -> AccountLookup -> PasswordVerify
    -> SessionCreate -> CookieBind.

    Unknown email, missing password digest and wrong password all raise the same Unauthorized;
    only the server log says which one happened. Each of them costs exactly one argon2 verify.
    """

    def __init__(self, cfg: AuthConfig, storage: AuthStorage, hasher: PasswordHasher, sessions: SessionIssuer):
        self._cfg = cfg
        self._storage = storage
        self._hasher = hasher
        self._sessions = sessions

    def authenticate(
        self,
        jar: SignedCookieJar,
        email: str,
        password: str,
        *,
        callback_url: Optional[str] = None,
        dont_remember_me: bool = False,
        ctx: Optional[RequestContext] = None,
    ) -> Dict[str, Any]:
        if not self._cfg.email_password_enabled:
            logger.error("Email and password is not enabled")
            raise BadRequest("Email and password is not enabled")

        current = read_current_session(self._cfg, jar, self._storage)
        if current is not None:
            session, user = current
            return _sign_in_response(user, session, callback_url)

        found = self._storage.find_user_by_email(email)
        if found is None:
            self._hasher.dummy_verify(password)
            logger.warning("Credential sign-in failed: user not found (email=%s)", email)
            raise Unauthorized(INVALID_CREDENTIALS)

        account = found.credential_account()
        digest = account.password_hash if account is not None else None
        if not digest:
            self._hasher.dummy_verify(password)
            logger.warning("Credential sign-in failed: no password set (email=%s)", email)
            raise Unauthorized(INVALID_CREDENTIALS)

        if not self._hasher.verify(digest, password):
            logger.warning("Credential sign-in failed: invalid password (email=%s)", email)
            raise Unauthorized(INVALID_CREDENTIALS)

        session = self._sessions.create(found.user.id, ctx or RequestContext())
        # `dont_remember_me` drops Max-Age so the cookie ends with the browser session.
        self._sessions.bind_to_cookie(jar, session, remember_me=not dont_remember_me)
        logger.info("Credential sign-in succeeded (user_id=%s)", found.user.id)
        return _sign_in_response(found.user, session, callback_url)
