"""Signed session tokens.

The caller's identity comes only from an HS256-signed token; unsigned
client-supplied claims are never trusted.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from ..errors import AuthenticationError
from ..models import Role, User

ALGORITHM = "HS256"
TOKEN_TYPE = "session"


class SessionManager:
    """Issues and verifies session tokens."""

    def __init__(self, secret: str | None, ttl_minutes: int = 60 * 12):
        if not secret:
            raise ValueError("SESSION_SECRET environment variable not set")
        self._secret = secret
        self._ttl = timedelta(minutes=ttl_minutes)

    def issue(self, user: User, expires_delta: timedelta | None = None) -> str:
        """Create a token for user."""
        expire = datetime.now(timezone.utc) + (expires_delta or self._ttl)
        claims: dict[str, Any] = {
            "sub": user.id,
            "role": user.role.value,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "type": TOKEN_TYPE,
            "exp": expire,
        }
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str | None) -> User:
        """Return the User a token was issued for.

        Raises AuthenticationError for missing, tampered, expired or
        malformed tokens.
        """
        if not token:
            raise AuthenticationError("Authentication required")

        try:
            claims = jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except ExpiredSignatureError:
            raise AuthenticationError("Session expired", code="session_expired")
        except JWTError:
            raise AuthenticationError("Invalid session", code="invalid_session")

        if claims.get("type") != TOKEN_TYPE or not claims.get("sub"):
            raise AuthenticationError("Invalid session", code="invalid_session")

        try:
            role = Role(claims.get("role"))
        except ValueError:
            raise AuthenticationError("Invalid session", code="invalid_session")

        return User(
            id=claims["sub"],
            first_name=claims.get("first_name", ""),
            last_name=claims.get("last_name", ""),
            role=role,
        )
