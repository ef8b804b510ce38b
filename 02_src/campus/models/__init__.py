"""Core data models for the campus service."""

from .attendance import (
    AcademicStatus,
    AcademicStatusResult,
    AttendanceCounts,
    AttendanceRecord,
    AttendanceStatus,
    PERIODS_PER_DAY,
)
from .audit import AuditEvent
from .messaging import (
    DEFAULT_CATEGORY,
    Attachment,
    AttachmentUpload,
    BroadcastFailure,
    BroadcastResult,
    Conversation,
    ConversationSummary,
    Message,
    Notification,
    Participant,
    SendMessageRequest,
)
from .users import ClassInfo, OfficeStaff, Role, Student, Teacher, User

__all__ = [
    # Users
    "Role",
    "User",
    "Student",
    "Teacher",
    "OfficeStaff",
    "ClassInfo",
    # Messaging
    "DEFAULT_CATEGORY",
    "Participant",
    "Conversation",
    "ConversationSummary",
    "Message",
    "Attachment",
    "AttachmentUpload",
    "SendMessageRequest",
    "BroadcastFailure",
    "BroadcastResult",
    "Notification",
    # Attendance
    "PERIODS_PER_DAY",
    "AttendanceStatus",
    "AttendanceRecord",
    "AttendanceCounts",
    "AcademicStatus",
    "AcademicStatusResult",
    # Audit
    "AuditEvent",
]
