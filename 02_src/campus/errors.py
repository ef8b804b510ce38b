"""Error taxonomy shared by services and the HTTP layer."""

from typing import Any


class CampusError(Exception):
    """Base class for errors surfaced to API callers.

    `code` is a stable machine-readable reason the UI can switch on;
    `message` is human-readable.
    """

    status_code: int = 500
    default_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(CampusError):
    """Missing or malformed input (400)."""

    status_code = 400
    default_code = "validation_error"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = dict(details or {})
        if field:
            details.setdefault("field", field)
        super().__init__(message, code=code, details=details)
        self.field = field


class AuthenticationError(CampusError):
    """No session or an invalid one (401)."""

    status_code = 401
    default_code = "not_authenticated"


class PermissionDenied(CampusError):
    """Caller's role may not perform the operation (403)."""

    status_code = 403
    default_code = "forbidden"


class NotFoundError(CampusError):
    """Conversation, recipient, class or message absent (404)."""

    status_code = 404
    default_code = "not_found"


class AttachmentRejected(CampusError):
    """Attachment violates the sender's attachment policy (400)."""

    status_code = 400
    default_code = "attachment_rejected"


class PersistenceError(CampusError):
    """Database or file storage failure (500)."""

    status_code = 500
    default_code = "persistence_error"
