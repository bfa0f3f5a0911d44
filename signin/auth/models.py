from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

CREDENTIAL_PROVIDER_ID = "credential"


@dataclass(frozen=True)
class RequestContext:
    """Request metadata recorded on a new session."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class User:
    id: str
    email: str
    name: Optional[str] = None
    email_verified: bool = False
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "emailVerified": self.email_verified,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class Account:
    """Link between a user and a sign-in provider; credential accounts carry the password digest."""

    id: str
    user_id: str
    provider_id: str
    password_hash: Optional[str] = None


@dataclass(frozen=True)
class UserWithAccounts:
    user: User
    accounts: List[Account] = field(default_factory=list)

    def credential_account(self) -> Optional[Account]:
        for a in self.accounts:
            if a.provider_id == CREDENTIAL_PROVIDER_ID:
                return a
        return None


@dataclass(frozen=True)
class Session:
    id: str
    user_id: str
    created_at: datetime
    expires_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "createdAt": self.created_at.isoformat(),
            "expiresAt": self.expires_at.isoformat(),
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
        }
