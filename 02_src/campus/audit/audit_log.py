"""Audit log for user-visible side effects."""

import uuid
from datetime import datetime, timezone
from typing import Protocol

from ..logging_config import get_logger
from ..models import AuditEvent, User
from ..storage import IStorage

logger = get_logger(__name__)


class IAuditLog(Protocol):
    """Records AuditEvents when enabled."""

    @property
    def enabled(self) -> bool: ...

    async def record(self, action: str, actor: User, data: dict) -> None:
        """Create an AuditEvent and save it to Storage."""
        ...


class AuditLog:
    """Writes AuditEvents to Storage; a disabled log records nothing.

    Failures are logged and swallowed so auditing never fails the
    operation being audited.
    """

    def __init__(self, storage: IStorage, enabled: bool = True):
        self._storage = storage
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def record(self, action: str, actor: User, data: dict) -> None:
        if not self._enabled:
            return

        event = AuditEvent(
            id=str(uuid.uuid4()),
            action=action,
            actor_id=actor.id,
            actor_role=actor.role.value,
            data=data,
            timestamp=datetime.now(timezone.utc),
        )
        try:
            await self._storage.save_audit_event(event)
        except Exception:
            logger.error(
                "Audit event %s not recorded",
                action,
                exc_info=True,
                extra={"context": {"actor_id": actor.id, "data": data}},
            )
