"""
Account and Identity Models

An Account is the persisted record. An Identity is what the
Authentication Gate hands to every later check: the account id, its
role, and the session token it was resolved from. Identities are frozen
and passed explicitly; nothing reads "the current user" from ambient state.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Coarse permission tier used by the Authorization Policy."""
    STANDARD = "standard"
    ADMIN = "admin"


class Account(BaseModel):
    """
    A registered account.

    `email` is globally unique. `password_hash` never leaves the core:
    use `public_view()` when handing an account to a presentation layer.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique account ID"
    )
    email: str = Field(
        ...,
        min_length=3,
        max_length=254,
        description="Login email (globally unique)"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    password_hash: str = Field(
        ...,
        min_length=1,
        description="Salted one-way password digest"
    )
    role: Role = Field(
        default=Role.STANDARD,
        description="Permission tier"
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def public_view(self) -> dict:
        """Account fields that are safe to show to a client."""
        return {
            "id": str(self.id),
            "email": self.email,
            "name": self.name,
            "role": self.role.value,
        }


class Identity(BaseModel):
    """The authenticated requester, as resolved from a session."""
    model_config = ConfigDict(frozen=True)

    account_id: UUID
    role: Role
    session_token: Optional[str] = Field(
        default=None,
        description="Token this identity was resolved from"
    )

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def owns(self, owner_id: UUID) -> bool:
        return self.account_id == owner_id


class Session(BaseModel):
    """A server-tracked binding from an opaque token to an account."""
    model_config = ConfigDict(frozen=True)

    token: str = Field(
        ...,
        min_length=1,
        description="Opaque session token"
    )
    account_id: Optional[UUID] = Field(
        default=None,
        description="Bound account; None for an anonymous session"
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.utcnow()) >= self.expires_at


class ProfilePatch(BaseModel):
    """
    Requested changes to the caller's own account.

    Every field is optional. `new_password` requires `current_password`.
    Passwords are kept byte-for-byte; no whitespace stripping here.
    """

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, min_length=3, max_length=254)
    current_password: Optional[str] = None
    new_password: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return (
            self.name is None
            and self.email is None
            and self.new_password is None
        )
