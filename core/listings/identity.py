"""
Caller identity as supplied by the authentication provider.

The provider is trusted for who the caller is; role and ownership are
still checked here before any admin-only or owner-only action.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from core.listings.errors import AuthorizationError


class UserRole(Enum):
    ADMIN = "admin"
    USER = "user"


@dataclass(frozen=True)
class Identity:
    """The authenticated caller."""

    id: str
    email: str
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def to_dict(self) -> dict:
        return {"id": self.id, "email": self.email, "role": self.role.value}

    @classmethod
    def from_dict(cls, data: dict) -> "Identity":
        return cls(id=data["id"], email=data["email"], role=UserRole(data.get("role", "user")))


def require_admin(identity: Optional[Identity]) -> Identity:
    """
    Ensure the caller is an admin.

    Raises:
        AuthorizationError: If the caller is anonymous or not an admin
    """
    if identity is None or not identity.is_admin:
        raise AuthorizationError("Admin role required")
    return identity


def require_user(identity: Optional[Identity]) -> Identity:
    """Ensure the caller is signed in."""
    if identity is None:
        raise AuthorizationError("You must be signed in")
    return identity


def require_owner(identity: Optional[Identity], owner_id: Optional[str], allow_admin: bool = True) -> Identity:
    """
    Ensure the caller owns the record (admins pass when allowed).

    Raises:
        AuthorizationError: If the caller is neither owner nor permitted admin
    """
    identity = require_user(identity)
    if allow_admin and identity.is_admin:
        return identity
    if owner_id is None or identity.id != owner_id:
        raise AuthorizationError("Only the owner can perform this action")
    return identity
