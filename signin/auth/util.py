from __future__ import annotations

import base64
import secrets
from datetime import datetime, timezone


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64url_decode(value: str) -> bytes:
    return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))


def random_token(nbytes: int = 32) -> str:
    return b64url(secrets.token_bytes(nbytes))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
