"""Value types exchanged between an authentication provider and its subscribers."""

import enum
from dataclasses import dataclass
from typing import Any, Optional


class AuthEvent(str, enum.Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_UP = "SIGNED_UP"
    SESSION_RESTORED = "SESSION_RESTORED"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    SIGNED_OUT = "SIGNED_OUT"

    @property
    def establishes_session(self) -> bool:
        return self in (AuthEvent.SIGNED_IN, AuthEvent.SIGNED_UP, AuthEvent.SESSION_RESTORED)


@dataclass(frozen=True)
class AuthIdentity:
    """Who the authentication provider says the user is."""

    id: str
    email: str
    email_verified: bool = False

    @classmethod
    def from_user(cls, user: Any) -> "AuthIdentity":
        # The local provider does not attest email ownership itself.
        return cls(id=str(user.pk), email=user.email)


@dataclass(frozen=True)
class AuthSession:
    identity: AuthIdentity
    access_token: str = ""
    refresh_token: str = ""


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a user-initiated auth operation; ``error`` is shown to the user as-is."""

    success: bool
    error: Optional[str] = None
    session: Optional[AuthSession] = None


__all__ = ["AuthEvent", "AuthIdentity", "AuthSession", "AuthResult"]
