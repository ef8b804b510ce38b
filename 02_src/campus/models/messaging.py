"""Messaging data models."""

from dataclasses import dataclass, field
from datetime import datetime

from .users import Role

DEFAULT_CATEGORY = "general"


@dataclass(frozen=True)
class Participant:
    """One side of a conversation."""

    id: str
    role: Role

    def sort_key(self) -> tuple[str, str]:
        return (self.role.value, self.id)


@dataclass
class Conversation:
    """A two-party conversation. At most one exists per unordered pair."""

    id: str
    participant_a: Participant
    participant_b: Participant
    created_at: datetime
    last_message_at: datetime | None = None
    last_message_preview: str | None = None

    @property
    def participants(self) -> tuple[Participant, Participant]:
        return (self.participant_a, self.participant_b)

    def has_participant(self, user_id: str, role: Role) -> bool:
        return Participant(user_id, role) in self.participants

    def other_participant(self, user_id: str, role: Role) -> Participant:
        """Return the participant that is not (user_id, role)."""
        me = Participant(user_id, role)
        if me == self.participant_a:
            return self.participant_b
        if me == self.participant_b:
            return self.participant_a
        raise ValueError(f"{role.value}:{user_id} is not in conversation {self.id}")


@dataclass
class AttachmentUpload:
    """A file submitted with a message, before it is stored."""

    file_name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class Attachment:
    """A stored file attached to a message."""

    id: str
    message_id: str
    file_name: str
    size: int
    content_type: str
    storage_ref: str
    uploaded_at: datetime


@dataclass
class Message:
    """A single message in a conversation."""

    id: str
    conversation_id: str
    sender_id: str
    sender_role: Role
    sender_name: str
    content: str
    created_at: datetime
    category: str = DEFAULT_CATEGORY
    attachments: list[Attachment] = field(default_factory=list)
    is_read: bool = False  # from the viewer's side
    is_forwarded: bool = False
    forwarded_from_id: str | None = None
    original_sender_name: str | None = None


@dataclass
class SendMessageRequest:
    """Input for a direct send."""

    recipient_id: str | None
    recipient_role: Role | None
    content: str
    category: str = DEFAULT_CATEGORY
    attachments: list[AttachmentUpload] = field(default_factory=list)
    conversation_id: str | None = None


@dataclass
class ConversationSummary:
    """A row of a user's conversation list."""

    id: str
    other_participant_id: str
    other_participant_role: Role
    other_participant_name: str
    last_message_at: datetime | None
    last_message_preview: str | None
    unread_count: int = 0


@dataclass
class BroadcastFailure:
    """A student a broadcast could not reach, and why."""

    recipient_id: str
    recipient_name: str
    code: str
    reason: str


@dataclass
class BroadcastResult:
    """Outcome of a send-to-class. Partial success is a normal result."""

    class_id: str
    total_recipients: int
    sent_count: int = 0
    message_ids: list[str] = field(default_factory=list)
    failures: list[BroadcastFailure] = field(default_factory=list)


@dataclass
class Notification:
    """An unread message as it appears in the notification feed."""

    message_id: str
    conversation_id: str
    sender_id: str
    sender_role: Role
    sender_name: str
    category: str
    preview: str
    created_at: datetime
