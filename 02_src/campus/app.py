"""Application bootstrap and lifecycle management."""

import os
from typing import Protocol

from .attendance import AttendanceRecords, IAttendanceRecords
from .audit import AuditLog, IAuditLog
from .auth import SessionManager
from .config import Settings
from .logging_config import get_logger
from .messaging import IMessagingService, MessagingService
from .notifications import INotificationAggregator, NotificationAggregator
from .policy import AttachmentPolicy
from .storage import IFileStore, IStorage, LocalFileStore, Storage

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Reset data between test runs."""
        ...

    @property
    def settings(self) -> Settings: ...

    @property
    def storage(self) -> IStorage: ...

    @property
    def sessions(self) -> SessionManager: ...

    @property
    def messaging(self) -> IMessagingService: ...

    @property
    def notifications(self) -> INotificationAggregator: ...

    @property
    def attendance(self) -> IAttendanceRecords: ...


class Application:
    """Main application bootstrap."""

    def __init__(self, db_path: str | None = None, settings: Settings | None = None):
        self._settings = settings or Settings.from_env()
        if db_path is None:
            db_path = self._settings.database_url or os.getenv("DATABASE_URL")
        self._db_path = db_path

        # Components (initialized in start())
        self._storage: IStorage | None = None
        self._file_store: IFileStore | None = None
        self._audit_log: IAuditLog | None = None
        self._sessions: SessionManager | None = None
        self._messaging: IMessagingService | None = None
        self._notifications: INotificationAggregator | None = None
        self._attendance: IAttendanceRecords | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")
        settings = self._settings

        # 1. Session verification fails fast without a secret
        self._sessions = SessionManager(
            settings.session_secret, ttl_minutes=settings.session_ttl_minutes
        )

        # 2. Storage and blob store (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        self._file_store = LocalFileStore(settings.attachments_dir)
        logger.info("File store at %s", settings.attachments_dir)

        # 3. Audit log (depends on Storage)
        self._audit_log = AuditLog(self._storage, enabled=settings.audit_log_enabled)

        # 4. Services
        policy = AttachmentPolicy(
            student_max_bytes=settings.student_max_attachment_bytes,
            max_bytes=settings.max_attachment_bytes,
        )
        self._messaging = MessagingService(
            storage=self._storage,
            file_store=self._file_store,
            attachment_policy=policy,
            audit_log=self._audit_log,
        )
        self._notifications = NotificationAggregator(self._storage)
        self._attendance = AttendanceRecords(
            self._storage,
            mahroom_threshold=settings.mahroom_threshold,
            tasdiq_threshold=settings.tasdiq_threshold,
        )
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        self._messaging = None
        self._notifications = None
        self._attendance = None
        if self._storage:
            await self._storage.close()
            self._storage = None
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Reset data between test runs."""
        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def file_store(self) -> IFileStore:
        if not self._file_store:
            raise RuntimeError("Application not started")
        return self._file_store

    @property
    def audit_log(self) -> IAuditLog:
        if not self._audit_log:
            raise RuntimeError("Application not started")
        return self._audit_log

    @property
    def sessions(self) -> SessionManager:
        if not self._sessions:
            raise RuntimeError("Application not started")
        return self._sessions

    @property
    def messaging(self) -> IMessagingService:
        """Get messaging service instance."""
        if not self._messaging:
            raise RuntimeError("Application not started")
        return self._messaging

    @property
    def notifications(self) -> INotificationAggregator:
        if not self._notifications:
            raise RuntimeError("Application not started")
        return self._notifications

    @property
    def attendance(self) -> IAttendanceRecords:
        if not self._attendance:
            raise RuntimeError("Application not started")
        return self._attendance
