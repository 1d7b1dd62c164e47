"""User repository — storage interface plus the in-memory backing."""

from datetime import datetime, timezone
from typing import Optional, Protocol, runtime_checkable

from tradechain.auth.models import StoredUser, User


@runtime_checkable
class UserRepository(Protocol):
    """Storage used by ``AuthService``."""

    def find_by_email(self, email: str) -> Optional[StoredUser]:
        ...

    def find_by_id(self, user_id: str) -> Optional[StoredUser]:
        ...

    def create(
        self, name: str, email: str, password_hash: str, phone: Optional[str] = None,
    ) -> StoredUser:
        ...


class InMemoryUserRepository:
    """Process-local user store.  Emails are matched case-insensitively."""

    def __init__(self) -> None:
        self._users: list[StoredUser] = []

    # ── Read ─────────────────────────────────────────────────────────────

    def find_by_email(self, email: str) -> Optional[StoredUser]:
        email = email.lower()
        for row in self._users:
            if row.user.email.lower() == email:
                return row
        return None

    def find_by_id(self, user_id: str) -> Optional[StoredUser]:
        for row in self._users:
            if row.user.id == user_id:
                return row
        return None

    # ── Write ────────────────────────────────────────────────────────────

    def create(
        self, name: str, email: str, password_hash: str, phone: Optional[str] = None,
    ) -> StoredUser:
        """Store a new user and return it; ids are sequential strings."""
        row = StoredUser(
            user=User(
                id=str(len(self._users) + 1),
                name=name,
                email=email.lower(),
                phone=phone,
                created_at=datetime.now(timezone.utc).isoformat(),
            ),
            password_hash=password_hash,
        )
        self._users.append(row)
        return row

    def __len__(self) -> int:
        return len(self._users)
