from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


@dataclass(frozen=True)
class StorageConfig:
    backend: str  # memory|postgres

    # Postgres connection (either dsn or parts)
    postgres_dsn: Optional[str]
    postgres_host: Optional[str]
    postgres_port: int
    postgres_db: Optional[str]
    postgres_user: Optional[str]
    postgres_password: Optional[str]


@lru_cache(maxsize=1)
def load_storage_config() -> StorageConfig:
    backend = (os.getenv("STORAGE_BACKEND") or "").strip().lower() or "memory"
    if backend not in ("memory", "postgres"):
        raise ValueError(f"Unsupported STORAGE_BACKEND: {backend}")
    port_raw = (os.getenv("POSTGRES_PORT") or "").strip() or "5432"
    try:
        port = int(port_raw)
    except ValueError:
        port = 5432
    return StorageConfig(
        backend=backend,
        postgres_dsn=(os.getenv("POSTGRES_DSN") or "").strip() or None,
        postgres_host=(os.getenv("POSTGRES_HOST") or "").strip() or None,
        postgres_port=port,
        postgres_db=(os.getenv("POSTGRES_DB") or "").strip() or None,
        postgres_user=(os.getenv("POSTGRES_USER") or "").strip() or None,
        postgres_password=(os.getenv("POSTGRES_PASSWORD") or "").strip() or None,
    )


def build_postgres_dsn(cfg: StorageConfig) -> Optional[str]:
    if cfg.postgres_dsn:
        return cfg.postgres_dsn
    if not (cfg.postgres_host and cfg.postgres_db and cfg.postgres_user and cfg.postgres_password):
        return None
    # psycopg's conninfo builder quotes/escapes special characters in passwords.
    from psycopg.conninfo import make_conninfo

    return make_conninfo(
        host=cfg.postgres_host,
        port=cfg.postgres_port,
        dbname=cfg.postgres_db,
        user=cfg.postgres_user,
        password=cfg.postgres_password,
    )


def build_storage(cfg: StorageConfig, *, session_max_age: int):
    """Construct the configured AuthStorage backend."""
    if cfg.backend == "postgres":
        from signin.storage.pg_store import PostgresStorage

        dsn = build_postgres_dsn(cfg)
        if not dsn:
            raise ValueError("STORAGE_BACKEND=postgres requires POSTGRES_DSN or POSTGRES_* env vars")
        return PostgresStorage(dsn=dsn, session_max_age=session_max_age)

    from signin.storage.memory_store import InMemoryStorage

    return InMemoryStorage(session_max_age=session_max_age)
