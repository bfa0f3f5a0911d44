#!/usr/bin/env python3
"""
Sign-in service CLI.

Runs the HTTP server and a few operator helpers (password hashing, user bootstrap, schema).
"""

import argparse
import getpass
import logging
import sys
from typing import List, Optional

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

#
# NOTE: Keep signin imports lazy (inside functions) so `--hash-password` does not need
# FastAPI/psycopg importable, and so `--help` works without configuration.
#


def _read_password(prompt: str = "Password: ") -> str:
    """Read a password from the terminal, or the first line of stdin when piped."""
    if sys.stdin.isatty():
        password = getpass.getpass(prompt)
    else:
        password = sys.stdin.readline().rstrip("\r\n")
    if not password:
        raise ValueError("Empty password")
    return password


def hash_password_cmd() -> int:
    from signin.auth.config import load_auth_config
    from signin.auth.password import PasswordHasher

    hasher = PasswordHasher.from_config(load_auth_config())
    print(hasher.hash(_read_password()))
    return 0


def create_user_cmd(email: str, name: Optional[str]) -> int:
    """Create a user with a credential account (invite-only, no self-registration)."""
    from signin.auth.config import load_auth_config
    from signin.auth.models import CREDENTIAL_PROVIDER_ID
    from signin.auth.password import PasswordHasher
    from signin.storage.config import build_storage, load_storage_config

    cfg = load_auth_config()
    storage = build_storage(load_storage_config(), session_max_age=cfg.session_max_age)
    password_hash = PasswordHasher.from_config(cfg).hash(_read_password())
    user = storage.create_user(email, name)
    storage.link_account(user.id, CREDENTIAL_PROVIDER_ID, password_hash)
    print(f"Created user {user.email} (id={user.id})")
    return 0


def migrate_cmd() -> int:
    from signin.storage.config import build_postgres_dsn, load_storage_config
    from signin.storage.pg_store import PostgresStorage

    dsn = build_postgres_dsn(load_storage_config())
    if not dsn:
        print("Postgres not configured (set POSTGRES_DSN or POSTGRES_* env vars).", file=sys.stderr)
        return 2
    PostgresStorage(dsn=dsn).ensure_schema()
    print("Auth schema is up to date.")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Sign-in service (OAuth2 initiation + email/password sign-in)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve the HTTP API
  AUTH_SECRET=... python main.py --serve --port 8080

  # Hash a password read from stdin
  echo 'hunter2' | AUTH_SECRET=... python main.py --hash-password

  # Bootstrap a user in Postgres
  STORAGE_BACKEND=postgres POSTGRES_DSN=... python main.py --migrate
  STORAGE_BACKEND=postgres POSTGRES_DSN=... python main.py --create-user admin@example.com
        """,
    )
    parser.add_argument("--serve", action="store_true", help="Run the sign-in HTTP server")
    parser.add_argument("--host", default="0.0.0.0", help="Server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Server listen port (default: 8080)")
    parser.add_argument("--hash-password", action="store_true", help="Print an argon2id digest for a password")
    parser.add_argument("--create-user", metavar="EMAIL", help="Create a user with a credential account")
    parser.add_argument("--name", help="Display name for --create-user")
    parser.add_argument("--migrate", action="store_true", help="Create the auth tables in Postgres")

    args = parser.parse_args(argv)

    try:
        if args.serve:
            from signin.api.server import run

            run(host=args.host, port=args.port)
            return 0

        if args.hash_password:
            return hash_password_cmd()

        if args.migrate:
            return migrate_cmd()

        if args.create_user:
            return create_user_cmd(args.create_user, args.name)

        parser.print_help()
        return 1

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        raise


if __name__ == "__main__":
    raise SystemExit(main())
