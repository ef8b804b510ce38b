"""Request-scoped dependencies shared by the routers."""

from typing import Awaitable, Callable

from fastapi import Cookie, Header

from ..app import IApplication
from ..errors import AuthenticationError, ValidationError
from ..models import Role, User

SESSION_COOKIE = "session"


def create_current_user(
    app: IApplication,
) -> Callable[..., Awaitable[User]]:
    """Build the dependency that resolves the caller from a session token."""

    async def current_user(
        authorization: str | None = Header(None),
        session: str | None = Cookie(None, alias=SESSION_COOKIE),
    ) -> User:
        token = session
        if authorization:
            scheme, _, credentials = authorization.partition(" ")
            if scheme.lower() != "bearer" or not credentials.strip():
                raise AuthenticationError(
                    "Invalid authorization header", code="invalid_session"
                )
            token = credentials.strip()
        return app.sessions.verify(token)

    return current_user


def parse_role(value: str | None, field: str) -> Role:
    """Turn a form value into a Role or raise ValidationError."""
    if not value:
        raise ValidationError(f"{field} is required", field=field)
    try:
        return Role(value.strip().lower())
    except ValueError:
        raise ValidationError(
            f"{field} must be one of: {', '.join(r.value for r in Role)}",
            field=field,
        )
