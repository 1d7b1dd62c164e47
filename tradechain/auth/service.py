"""Authentication service — login, registration and signed session tokens.

Passwords are stored as PBKDF2-SHA256 hashes.  Tokens are
``<base64url(claims)>.<base64url(hmac-sha256)>`` with a 7-day expiry.
"""

import base64
import hashlib
import hmac
import json
import logging
import re
import secrets
import time
from typing import Optional

from tradechain.auth.models import AuthResponse, User
from tradechain.auth.repository import InMemoryUserRepository, UserRepository

logger = logging.getLogger("tradechain")

TOKEN_TTL_SECONDS = 7 * 24 * 3600
_PBKDF2_ITERATIONS = 100_000
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

DEMO_USER = {
    "name": "Demo User",
    "email": "demo@trading.com",
    "phone": "+62812345678",
    "password": "demo123",
}


def hash_password(password: str, salt: Optional[str] = None) -> str:
    """Return ``pbkdf2_sha256$<iterations>$<salt>$<hex digest>``."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode(), salt.encode(), _PBKDF2_ITERATIONS,
    )
    return f"pbkdf2_sha256${_PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        _, iterations, salt, expected = stored.split("$")
        digest = hashlib.pbkdf2_hmac(
            "sha256", password.encode(), salt.encode(), int(iterations),
        )
    except ValueError:
        return False
    return hmac.compare_digest(digest.hex(), expected)


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def seeded_repository() -> InMemoryUserRepository:
    """In-memory repository holding the demo account."""
    repo = InMemoryUserRepository()
    repo.create(
        DEMO_USER["name"],
        DEMO_USER["email"],
        hash_password(DEMO_USER["password"]),
        DEMO_USER["phone"],
    )
    return repo


class AuthService:
    """Login and registration against a ``UserRepository``.

    Args:
        repo: User storage.
        secret: Key used to sign session tokens.
        token_ttl: Token lifetime in seconds.
    """

    def __init__(
        self,
        repo: UserRepository,
        secret: str,
        token_ttl: int = TOKEN_TTL_SECONDS,
    ) -> None:
        self._repo = repo
        self._secret = secret.encode()
        self._ttl = token_ttl

    # ── Tokens ───────────────────────────────────────────────────────────

    def _sign(self, body: str) -> str:
        return _b64encode(hmac.new(self._secret, body.encode(), hashlib.sha256).digest())

    def generate_token(self, user: User) -> str:
        claims = {
            "userId": user.id,
            "email": user.email,
            "name": user.name,
            "exp": int(time.time()) + self._ttl,
        }
        body = _b64encode(json.dumps(claims, separators=(",", ":")).encode())
        return f"{body}.{self._sign(body)}"

    def verify_token(self, token: str) -> Optional[dict]:
        """Return the token claims, or ``None`` if forged, malformed or expired."""
        body, _, signature = token.partition(".")
        if not body or not hmac.compare_digest(signature, self._sign(body)):
            return None
        try:
            claims = json.loads(_b64decode(body))
        except ValueError:
            return None
        if claims.get("exp", 0) < time.time():
            return None
        return claims

    def user_from_token(self, token: str) -> Optional[User]:
        claims = self.verify_token(token)
        if claims is None:
            return None
        row = self._repo.find_by_id(str(claims.get("userId")))
        return row.user if row else None

    # ── Operations ───────────────────────────────────────────────────────

    def login(self, email: str, password: str) -> AuthResponse:
        row = self._repo.find_by_email(email)
        if row is None:
            return AuthResponse(success=False, error="Email not found")
        if not verify_password(password, row.password_hash):
            return AuthResponse(success=False, error="Incorrect password")

        logger.info("User %s logged in", row.user.id)
        return AuthResponse(
            success=True,
            user=row.user,
            token=self.generate_token(row.user),
            message="Login successful",
        )

    def register(
        self,
        name: str,
        email: str,
        password: str,
        phone: Optional[str] = None,
    ) -> AuthResponse:
        """Create an account.

        Checks run in order: duplicate email, name of at least 2
        characters, email format, password of at least 6 characters.
        """
        if self._repo.find_by_email(email) is not None:
            return AuthResponse(success=False, error="Email already registered")
        if not name or len(name) < 2:
            return AuthResponse(success=False, error="Name must be at least 2 characters")
        if not is_valid_email(email):
            return AuthResponse(success=False, error="Invalid email format")
        if not password or len(password) < 6:
            return AuthResponse(success=False, error="Password must be at least 6 characters")

        row = self._repo.create(name, email, hash_password(password), phone)
        logger.info("Registered user %s", row.user.id)
        return AuthResponse(
            success=True,
            user=row.user,
            token=self.generate_token(row.user),
            message="Registration successful",
        )
