from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

# Auth routes are served under this prefix; provider redirect URIs point back here.
API_PREFIX = "/api/auth"


class ConfigError(ValueError):
    """Raised when required authentication settings are missing or invalid."""


@dataclass(frozen=True)
class AuthConfig:
    # Signing
    secret: str

    # Service addressing
    base_url: str  # Public origin, e.g. https://auth.example.com

    # Cookies
    cookie_prefix: str
    cookie_secure: bool
    session_max_age: int  # seconds; used when the user asks to be remembered
    oauth_cookie_ttl: int  # seconds; state + PKCE verifier cookies

    # Email/password sign-in
    email_password_enabled: bool

    # Argon2id cost parameters (fixed per process, not per call)
    argon2_time_cost: int
    argon2_memory_cost: int  # KiB
    argon2_parallelism: int

    # Provider catalog (YAML)
    providers_file: Optional[str]

    # Client IP comes from X-Forwarded-For only behind a trusted reverse proxy
    trust_proxy_headers: bool = False

    @property
    def callback_base(self) -> str:
        return f"{self.base_url}{API_PREFIX}/callback"


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name, "") or default).strip()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "y", "on")


def _env_int(name: str, default: int, *, minimum: int = 1) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        value = int(float(raw)) if raw else default
    except (ValueError, OverflowError):
        raise ConfigError(f"{name} must be an integer (got {raw!r})")
    return max(value, minimum)


@lru_cache(maxsize=1)
def load_auth_config() -> AuthConfig:
    """
    Load authentication configuration from environment variables.

    The result is immutable and shared by every request; call `load_auth_config.cache_clear()`
    after changing the environment (tests do this).
    """
    secret = _env_str("AUTH_SECRET")
    if not secret:
        raise ConfigError("AUTH_SECRET is required for cookie signing")

    base_url = _env_str("AUTH_BASE_URL", "http://localhost:8080").rstrip("/")

    cookie_secure_env = _env_str("AUTH_COOKIE_SECURE").lower()
    if cookie_secure_env in ("1", "true", "yes", "on"):
        cookie_secure = True
    elif cookie_secure_env in ("0", "false", "no", "off"):
        cookie_secure = False
    else:
        # Default: secure cookies when base URL is https; otherwise allow local dev.
        cookie_secure = base_url.startswith("https://")

    time_cost = _env_int("AUTH_ARGON2_TIME_COST", 3)
    memory_cost = _env_int("AUTH_ARGON2_MEMORY_COST", 65536, minimum=8)
    parallelism = _env_int("AUTH_ARGON2_PARALLELISM", 4)
    # argon2 needs at least 8 KiB of memory per lane.
    if memory_cost < 8 * parallelism:
        raise ConfigError(
            f"AUTH_ARGON2_MEMORY_COST must be at least 8 * AUTH_ARGON2_PARALLELISM "
            f"(got {memory_cost} KiB for {parallelism} lanes)"
        )

    return AuthConfig(
        secret=secret,
        base_url=base_url,
        cookie_prefix=_env_str("AUTH_COOKIE_PREFIX", "signin"),
        cookie_secure=cookie_secure,
        session_max_age=_env_int("AUTH_SESSION_MAX_AGE_SECONDS", 7 * 24 * 3600, minimum=60),
        oauth_cookie_ttl=_env_int("AUTH_OAUTH_COOKIE_TTL_SECONDS", 10 * 60, minimum=60),
        email_password_enabled=_env_bool("AUTH_EMAIL_PASSWORD_ENABLED", False),
        argon2_time_cost=time_cost,
        argon2_memory_cost=memory_cost,
        argon2_parallelism=parallelism,
        providers_file=_env_str("AUTH_PROVIDERS_FILE", "config/auth-providers.yaml") or None,
        trust_proxy_headers=_env_bool("AUTH_TRUST_PROXY_HEADERS", False),
    )
