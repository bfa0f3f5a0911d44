from __future__ import annotations

from typing import Optional, Protocol, Tuple

from signin.auth.models import Account, RequestContext, Session, User, UserWithAccounts


class AuthStorage(Protocol):
    """
    Minimal persistence interface consumed by the auth core.

    Implementations raise `signin.auth.errors.StorageError` when the backend fails; they own
    their own locking/consistency and retry policy.
    """

    def find_user_by_email(self, email: str) -> Optional[UserWithAccounts]:
        """Exact (case-sensitive) email match, with all linked accounts."""

    def create_session(self, user_id: str, ctx: RequestContext) -> Session:
        """Persist and return a new session for `user_id`."""

    def find_session(self, session_id: str) -> Optional[Tuple[Session, User]]:
        """Return the session and its user, or None if unknown or expired."""

    def delete_session(self, session_id: str) -> None:
        """Remove a session; unknown ids are ignored."""

    def create_user(self, email: str, name: Optional[str] = None) -> User:
        """Create a user; raises StorageError if the email is taken."""

    def link_account(self, user_id: str, provider_id: str, password_hash: Optional[str] = None) -> Account:
        """Attach a provider account to an existing user."""
