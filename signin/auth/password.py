from __future__ import annotations

import argon2
from argon2.exceptions import InvalidHash, VerificationError

from signin.auth.config import AuthConfig

# Fixed input for the timing-equalization digest; never matches a real login.
_DUMMY_PASSWORD = "signin-dummy-password"


class PasswordHasher:
    """
    Argon2id password hashing with process-wide cost parameters.

    Hashing is deliberately slow. Callers on an event loop must run `hash`/`verify` in a worker
    thread; a timeout belongs before `verify`, the computation itself cannot be aborted safely.
    """

    def __init__(self, *, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 4):
        self._hasher = argon2.PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            type=argon2.Type.ID,
        )
        # Computed up front so the first no-digest request costs the same as any other.
        self._dummy_digest = self._hasher.hash(_DUMMY_PASSWORD)

    @classmethod
    def from_config(cls, cfg: AuthConfig) -> "PasswordHasher":
        return cls(
            time_cost=cfg.argon2_time_cost,
            memory_cost=cfg.argon2_memory_cost,
            parallelism=cfg.argon2_parallelism,
        )

    def hash(self, password: str) -> str:
        """
        Hash password with a fresh random salt.

        Returns:
            PHC-format string (`$argon2id$v=19$m=...,t=...,p=...$salt$hash`)
        """
        return self._hasher.hash(password)

    def verify(self, digest: str, password: str) -> bool:
        """
        Return True only if `password` matches `digest`.

        Mismatch and malformed/foreign digests share the same False return.
        """
        try:
            return self._hasher.verify(digest, password)
        except (VerificationError, InvalidHash):
            return False

    def dummy_verify(self, password: str) -> bool:
        """Spend one verification's worth of work on a path that has no real digest."""
        return self.verify(self._dummy_digest, password)
