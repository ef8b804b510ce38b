"""Authentication module."""

from .session import SessionManager

__all__ = ["SessionManager"]
