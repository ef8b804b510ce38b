"""Attachment size and type limits per sender role."""

from dataclasses import dataclass
from typing import Iterable, Protocol

from ..config import MB
from ..errors import AttachmentRejected
from ..models import Role

STUDENT_ALLOWED_CONTENT_TYPES = frozenset(
    {
        "text/plain",
        "image/jpeg",
        "image/jpg",
        "image/png",
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    }
)

STUDENT_REJECTED_TYPE_REASON = (
    "Students can only send text, images (JPG, PNG), PDF, Word, Excel, "
    "and PowerPoint files"
)


class FileMeta(Protocol):
    """Anything with a name, a size and a content type."""

    file_name: str
    content_type: str

    @property
    def size(self) -> int: ...


@dataclass(frozen=True)
class AttachmentDecision:
    allowed: bool
    reason: str | None = None


def _format_mb(size: int) -> str:
    return f"{size / MB:g}MB"


class AttachmentPolicy:
    """Evaluates files against the limits for the sender's role."""

    def __init__(
        self,
        student_max_bytes: int = 20 * MB,
        max_bytes: int = 100 * MB,
        student_content_types: Iterable[str] = STUDENT_ALLOWED_CONTENT_TYPES,
    ):
        if student_max_bytes > max_bytes:
            raise ValueError("student_max_bytes cannot exceed max_bytes")
        self._student_max_bytes = student_max_bytes
        self._max_bytes = max_bytes
        self._student_types = frozenset(t.lower() for t in student_content_types)

        self._size_limits: dict[Role, int] = {
            Role.OFFICE: max_bytes,
            Role.TEACHER: max_bytes,
            Role.STUDENT: student_max_bytes,
        }
        missing = set(Role) - set(self._size_limits)
        if missing:
            raise RuntimeError(f"No attachment size limit for roles: {missing}")

    def max_bytes_for(self, role: Role) -> int:
        return self._size_limits[role]

    def is_allowed(self, sender_role: Role, file: FileMeta) -> AttachmentDecision:
        """Check one file; never raises."""
        if sender_role is Role.STUDENT:
            content_type = (file.content_type or "").split(";")[0].strip().lower()
            if content_type not in self._student_types:
                return AttachmentDecision(False, STUDENT_REJECTED_TYPE_REASON)

        limit = self._size_limits[sender_role]
        if file.size > limit:
            return AttachmentDecision(
                False, f"File size exceeds {_format_mb(limit)} limit"
            )

        return AttachmentDecision(True)

    def validate_attachments(self, sender_role: Role, files: Iterable[FileMeta]) -> None:
        """Raise AttachmentRejected on the first file that is not allowed."""
        for file in files:
            decision = self.is_allowed(sender_role, file)
            if not decision.allowed:
                raise AttachmentRejected(
                    f"{file.file_name}: {decision.reason}",
                    details={"file_name": file.file_name, "reason": decision.reason},
                )
