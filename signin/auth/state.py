from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import urlparse

from signin.auth.util import b64url, b64url_decode, random_token

# 24 random bytes -> 32 base64url chars (192 bits).
BINDER_BYTES = 24


@dataclass(frozen=True)
class AuthState:
    """
    OAuth state for one authorization request.

    `state` is round-tripped through the provider and stored verbatim in the signed state cookie.
    `binder` is its random part; `redirect_target` is where the user lands after login.
    """

    state: str
    binder: str
    redirect_target: str


def origin_of(url: Optional[str]) -> Optional[str]:
    """Return `scheme://host[:port]` for an absolute http(s) URL, else None."""
    if not url:
        return None
    try:
        parsed = urlparse(url.strip())
        port = parsed.port
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return None
    host = parsed.hostname
    if ":" in host:
        host = f"[{host}]"
    return f"{parsed.scheme}://{host}:{port}" if port else f"{parsed.scheme}://{host}"


def resolve_redirect_target(callback_url: Optional[str], current_url: Optional[str], base_url: str) -> str:
    """Explicit callback URL, else the current page's origin, else the service base URL."""
    return (callback_url or "").strip() or origin_of(current_url) or base_url


def generate_state(
    callback_url: Optional[str],
    current_url: Optional[str] = None,
    *,
    base_url: str,
) -> AuthState:
    redirect_target = resolve_redirect_target(callback_url, current_url, base_url)
    binder = random_token(BINDER_BYTES)
    payload = json.dumps(
        {"callbackURL": redirect_target, "currentURL": current_url},
        separators=(",", ":"),
    )
    state = f"{binder}.{b64url(payload.encode('utf-8'))}"
    return AuthState(state=state, binder=binder, redirect_target=redirect_target)


def decode_state(state: str) -> Tuple[str, str, Optional[str]]:
    """
    Split a state value into (binder, redirect_target, current_url).

    The OAuth callback handler uses this to recover the redirect target after comparing the
    returned state with the signed state cookie.

    Raises ValueError for anything not produced by `generate_state`.
    """
    binder, sep, encoded = (state or "").partition(".")
    if not binder or not sep or not encoded:
        raise ValueError("Malformed OAuth state")
    data = json.loads(b64url_decode(encoded).decode("utf-8"))
    if not isinstance(data, dict) or not isinstance(data.get("callbackURL"), str):
        raise ValueError("Malformed OAuth state")
    current = data.get("currentURL")
    return binder, data["callbackURL"], current if isinstance(current, str) else None
