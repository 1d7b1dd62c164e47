"""Auth data models."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class User:
    """A registered user, without credentials."""

    id: str
    name: str
    email: str
    created_at: str
    phone: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class StoredUser:
    """Repository row: a user plus its password hash."""

    user: User
    password_hash: str


@dataclass(frozen=True)
class AuthResponse:
    success: bool
    user: Optional[User] = None
    token: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        out: dict = {"success": self.success}
        if self.user is not None:
            out["user"] = self.user.to_dict()
        if self.token is not None:
            out["token"] = self.token
        if self.message is not None:
            out["message"] = self.message
        if self.error is not None:
            out["error"] = self.error
        return out
