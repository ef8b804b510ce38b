"""Messaging policy: permission matrix and attachment limits."""

from .attachments import AttachmentDecision, AttachmentPolicy, FileMeta
from .permissions import (
    allowed_recipient_roles,
    can_broadcast,
    can_send,
    check_can_broadcast,
    check_can_send,
)

__all__ = [
    "AttachmentDecision",
    "AttachmentPolicy",
    "FileMeta",
    "allowed_recipient_roles",
    "can_broadcast",
    "can_send",
    "check_can_broadcast",
    "check_can_send",
]
