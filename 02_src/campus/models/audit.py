"""Audit data models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class AuditEvent:
    """A single audited action."""

    id: str
    action: str  # e.g. "message_sent", "broadcast_sent"
    actor_id: str
    actor_role: str
    data: dict
    timestamp: datetime
