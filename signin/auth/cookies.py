from __future__ import annotations

import hashlib
from dataclasses import dataclass, replace
from typing import List, Mapping, Optional, Tuple

from itsdangerous import BadSignature, Signer
from starlette.responses import Response

from signin.auth.config import AuthConfig
from signin.auth.errors import CookieWriteError, InvalidSignature

COOKIE_SALT = "signin-cookie-v1"
COOKIE_SEP = "."

SESSION_TOKEN = "session_token"
OAUTH_STATE = "state"
PKCE_CODE_VERIFIER = "pk_code_verifier"


@dataclass(frozen=True)
class CookieOptions:
    # None -> no Max-Age/Expires attribute: the cookie dies with the browser session.
    max_age: Optional[int] = None
    path: str = "/"
    http_only: bool = True
    secure: bool = False
    same_site: str = "lax"


def cookie_name(cfg: AuthConfig, key: str) -> str:
    name = f"{cfg.cookie_prefix}.{key}"
    # `__Secure-` requires the Secure attribute; browsers reject it on HTTP.
    return f"__Secure-{name}" if cfg.cookie_secure else name


def oauth_cookie_options(cfg: AuthConfig) -> CookieOptions:
    return CookieOptions(max_age=cfg.oauth_cookie_ttl, secure=cfg.cookie_secure)


def session_cookie_options(cfg: AuthConfig) -> CookieOptions:
    return CookieOptions(max_age=cfg.session_max_age, secure=cfg.cookie_secure)


def _signer(secret: str) -> Signer:
    return Signer(secret, salt=COOKIE_SALT, sep=COOKIE_SEP, digest_method=hashlib.sha256)


def sign_value(plaintext: str, secret: str) -> str:
    return _signer(secret).sign(plaintext).decode("utf-8")


def unsign_value(value: str, secret: str) -> str:
    """Return the plaintext of a signed wire value, or raise InvalidSignature."""
    if not value or COOKIE_SEP not in value:
        raise InvalidSignature("malformed signed value")
    try:
        # itsdangerous compares signatures with hmac.compare_digest.
        return _signer(secret).unsign(value).decode("utf-8")
    except (BadSignature, UnicodeDecodeError) as e:
        raise InvalidSignature(str(e)) from e


class SignedCookieJar:
    """
    Signed cookies for one request/response exchange.

    Incoming cookies are read from the request; outgoing cookies are buffered and only written
    to the response by `flush()`. After a flush the jar is closed and further writes fail.
    """

    def __init__(self, incoming: Optional[Mapping[str, str]] = None):
        self._incoming = dict(incoming or {})
        self._outgoing: List[Tuple[str, str, CookieOptions]] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> List[Tuple[str, str, CookieOptions]]:
        return list(self._outgoing)

    def set(self, name: str, plaintext: str, secret: str, options: CookieOptions) -> None:
        if self._closed:
            raise CookieWriteError(f"cannot set cookie {name!r}: response already sent")
        self._outgoing.append((name, sign_value(plaintext, secret), options))

    def get(self, name: str, secret: str) -> str:
        value = self._incoming.get(name)
        if value is None:
            raise InvalidSignature(f"cookie {name!r} not present")
        return unsign_value(value, secret)

    def delete(self, name: str, options: CookieOptions) -> None:
        if self._closed:
            raise CookieWriteError(f"cannot delete cookie {name!r}: response already sent")
        self._outgoing.append((name, "", replace(options, max_age=0)))

    def flush(self, response: Response) -> None:
        if self._closed:
            raise CookieWriteError("cookie jar already flushed")
        for name, value, opts in self._outgoing:
            response.set_cookie(
                key=name,
                value=value,
                max_age=opts.max_age,
                path=opts.path,
                secure=opts.secure,
                httponly=opts.http_only,
                samesite=opts.same_site,
            )
        self._outgoing.clear()
        self._closed = True
