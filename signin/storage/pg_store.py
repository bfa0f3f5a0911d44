from __future__ import annotations

import uuid
from datetime import timedelta
from typing import Optional, Tuple

import psycopg

from signin.auth.errors import StorageError
from signin.auth.models import Account, RequestContext, Session, User, UserWithAccounts
from signin.auth.util import random_token, utcnow

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS auth_users (
  id text PRIMARY KEY,
  email text NOT NULL UNIQUE,
  name text,
  email_verified boolean NOT NULL DEFAULT FALSE,
  created_at timestamptz NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS auth_accounts (
  id text PRIMARY KEY,
  user_id text NOT NULL REFERENCES auth_users(id) ON DELETE CASCADE,
  provider_id text NOT NULL,
  password_hash text,
  created_at timestamptz NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS auth_accounts_user_id_idx ON auth_accounts(user_id);

CREATE TABLE IF NOT EXISTS auth_sessions (
  id text PRIMARY KEY,
  user_id text NOT NULL REFERENCES auth_users(id) ON DELETE CASCADE,
  created_at timestamptz NOT NULL,
  expires_at timestamptz NOT NULL,
  ip_address text,
  user_agent text
);
CREATE INDEX IF NOT EXISTS auth_sessions_user_id_idx ON auth_sessions(user_id);
"""


class PostgresStorage:
    """
    AuthStorage on PostgreSQL.

    One connection per operation; pooling, retries and replication are left to the deployment.
    """

    def __init__(self, dsn: str, session_max_age: int = 7 * 24 * 3600):
        self._dsn = dsn
        self._session_max_age = timedelta(seconds=session_max_age)

    def _connect(self) -> psycopg.Connection:
        try:
            return psycopg.connect(self._dsn)
        except psycopg.Error as e:
            raise StorageError(f"Postgres connection failed: {e.__class__.__name__}") from e

    def ensure_schema(self) -> None:
        """Create the auth tables if they do not exist."""
        try:
            with self._connect() as conn:
                conn.execute(SCHEMA_SQL)
        except psycopg.Error as e:
            raise StorageError(f"Schema migration failed: {e}") from e

    def find_user_by_email(self, email: str) -> Optional[UserWithAccounts]:
        try:
            with self._connect() as conn, conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT id, email, name, email_verified, created_at
                    FROM auth_users
                    WHERE email = %s
                    """,
                    (email,),
                )
                row = cur.fetchone()
                if not row:
                    return None
                user = User(id=row[0], email=row[1], name=row[2], email_verified=bool(row[3]), created_at=row[4])

                cur.execute(
                    """
                    SELECT id, user_id, provider_id, password_hash
                    FROM auth_accounts
                    WHERE user_id = %s
                    ORDER BY created_at
                    """,
                    (user.id,),
                )
                accounts = [
                    Account(id=r[0], user_id=r[1], provider_id=r[2], password_hash=r[3]) for r in cur.fetchall()
                ]
                return UserWithAccounts(user=user, accounts=accounts)
        except psycopg.Error as e:
            raise StorageError(f"User lookup failed: {e.__class__.__name__}") from e

    def create_user(self, email: str, name: Optional[str] = None) -> User:
        user_id = uuid.uuid4().hex
        try:
            with self._connect() as conn, conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO auth_users (id, email, name)
                    VALUES (%s, %s, %s)
                    RETURNING id, email, name, email_verified, created_at
                    """,
                    (user_id, email, name),
                )
                row = cur.fetchone()
        except psycopg.IntegrityError as e:
            raise StorageError(f"User already exists: {email}") from e
        except psycopg.Error as e:
            raise StorageError(f"User creation failed: {e.__class__.__name__}") from e
        if not row:
            raise StorageError("Failed to create user")
        return User(id=row[0], email=row[1], name=row[2], email_verified=bool(row[3]), created_at=row[4])

    def link_account(self, user_id: str, provider_id: str, password_hash: Optional[str] = None) -> Account:
        account_id = uuid.uuid4().hex
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO auth_accounts (id, user_id, provider_id, password_hash)
                    VALUES (%s, %s, %s, %s)
                    """,
                    (account_id, user_id, provider_id, password_hash),
                )
        except psycopg.Error as e:
            raise StorageError(f"Account creation failed: {e.__class__.__name__}") from e
        return Account(id=account_id, user_id=user_id, provider_id=provider_id, password_hash=password_hash)

    def create_session(self, user_id: str, ctx: RequestContext) -> Session:
        now = utcnow()
        session = Session(
            id=random_token(32),
            user_id=user_id,
            created_at=now,
            expires_at=now + self._session_max_age,
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
        )
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO auth_sessions (id, user_id, created_at, expires_at, ip_address, user_agent)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    """,
                    (
                        session.id,
                        session.user_id,
                        session.created_at,
                        session.expires_at,
                        session.ip_address,
                        session.user_agent,
                    ),
                )
        except psycopg.Error as e:
            raise StorageError(f"Session creation failed: {e.__class__.__name__}") from e
        return session

    def find_session(self, session_id: str) -> Optional[Tuple[Session, User]]:
        try:
            with self._connect() as conn, conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT s.id, s.user_id, s.created_at, s.expires_at, s.ip_address, s.user_agent,
                           u.email, u.name, u.email_verified, u.created_at
                    FROM auth_sessions s
                    JOIN auth_users u ON u.id = s.user_id
                    WHERE s.id = %s AND s.expires_at > now()
                    """,
                    (session_id,),
                )
                row = cur.fetchone()
        except psycopg.Error as e:
            raise StorageError(f"Session lookup failed: {e.__class__.__name__}") from e
        if not row:
            return None
        session = Session(
            id=row[0],
            user_id=row[1],
            created_at=row[2],
            expires_at=row[3],
            ip_address=row[4],
            user_agent=row[5],
        )
        user = User(id=row[1], email=row[6], name=row[7], email_verified=bool(row[8]), created_at=row[9])
        return session, user

    def delete_session(self, session_id: str) -> None:
        try:
            with self._connect() as conn:
                conn.execute("DELETE FROM auth_sessions WHERE id = %s", (session_id,))
        except psycopg.Error as e:
            raise StorageError(f"Session delete failed: {e.__class__.__name__}") from e
