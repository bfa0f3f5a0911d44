"""
Pytest config.

Local imports like `import signin` rely on the repo root being on sys.path. When a global
`pytest` entrypoint is used without installing the package, that doesn't happen reliably during
collection, so we pin it here.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

TEST_SECRET = "test-secret-key-for-testing-purposes-only"

PROVIDERS_YAML = """
providers:
  - id: github
    kind: oauth2
    client_id: gh-client
    authorization_endpoint: https://github.com/login/oauth/authorize
    scopes: [read:user, user:email]
  - id: acme
    kind: oauth2
    client_id: acme-client
    discovery_url: https://id.acme.test/.well-known/openid-configuration
  - id: corp-saml
    kind: other
"""


def _clear_caches() -> None:
    from signin.api.server import get_runtime
    from signin.auth.config import load_auth_config
    from signin.storage.config import load_storage_config

    load_auth_config.cache_clear()
    load_storage_config.cache_clear()
    get_runtime.cache_clear()


@pytest.fixture(autouse=True)
def auth_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """
    Baseline environment for every test: a signing secret, cheap argon2 parameters (real cost
    makes the suite slow), in-memory storage and a small provider catalog.
    """
    providers_file = tmp_path / "auth-providers.yaml"
    providers_file.write_text(PROVIDERS_YAML)

    monkeypatch.setenv("AUTH_SECRET", TEST_SECRET)
    monkeypatch.setenv("AUTH_BASE_URL", "http://localhost:8080")
    monkeypatch.setenv("AUTH_EMAIL_PASSWORD_ENABLED", "true")
    monkeypatch.setenv("AUTH_ARGON2_TIME_COST", "1")
    monkeypatch.setenv("AUTH_ARGON2_MEMORY_COST", "8")
    monkeypatch.setenv("AUTH_ARGON2_PARALLELISM", "1")
    monkeypatch.setenv("AUTH_PROVIDERS_FILE", str(providers_file))
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    for name in (
        "AUTH_COOKIE_SECURE",
        "AUTH_COOKIE_PREFIX",
        "AUTH_SESSION_MAX_AGE_SECONDS",
        "AUTH_TRUST_PROXY_HEADERS",
        "POSTGRES_DSN",
    ):
        monkeypatch.delenv(name, raising=False)
    _clear_caches()
    yield providers_file
    _clear_caches()


@pytest.fixture
def cfg():
    from signin.auth.config import load_auth_config

    return load_auth_config()


@pytest.fixture
def hasher(cfg):
    from signin.auth.password import PasswordHasher

    return PasswordHasher.from_config(cfg)
