from __future__ import annotations

import hashlib

from signin.auth.util import b64url, random_token


def generate_code_verifier() -> str:
    # 32 random bytes -> 43 base64url chars.
    return random_token(32)


def pkce_challenge(verifier: str) -> str:
    """
    Generate PKCE challenge from verifier using SHA256.
    """
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return b64url(digest)
