"""Campus messaging and attendance service."""

from .app import Application, IApplication
from .attendance import AttendanceRecords, IAttendanceRecords
from .audit import AuditLog, IAuditLog
from .auth import SessionManager
from .errors import (
    AttachmentRejected,
    AuthenticationError,
    CampusError,
    NotFoundError,
    PermissionDenied,
    PersistenceError,
    ValidationError,
)
from .messaging import IMessagingService, MessagingService
from .models import (
    AcademicStatus,
    AcademicStatusResult,
    Attachment,
    AttendanceRecord,
    AttendanceStatus,
    BroadcastResult,
    ClassInfo,
    Conversation,
    Message,
    Notification,
    OfficeStaff,
    Role,
    Student,
    Teacher,
    User,
)
from .notifications import INotificationAggregator, NotificationAggregator
from .policy import AttachmentPolicy
from .storage import IFileStore, IStorage, LocalFileStore, Storage

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Models
    "Role",
    "User",
    "Student",
    "Teacher",
    "OfficeStaff",
    "ClassInfo",
    "Conversation",
    "Message",
    "Attachment",
    "BroadcastResult",
    "Notification",
    "AttendanceStatus",
    "AttendanceRecord",
    "AcademicStatus",
    "AcademicStatusResult",
    # Errors
    "CampusError",
    "ValidationError",
    "AuthenticationError",
    "PermissionDenied",
    "NotFoundError",
    "AttachmentRejected",
    "PersistenceError",
    # Components
    "IStorage",
    "Storage",
    "IFileStore",
    "LocalFileStore",
    "IAuditLog",
    "AuditLog",
    "SessionManager",
    "AttachmentPolicy",
    "IMessagingService",
    "MessagingService",
    "INotificationAggregator",
    "NotificationAggregator",
    "IAttendanceRecords",
    "AttendanceRecords",
]
