"""Unread-message notifications derived from read receipts."""

from typing import Protocol

from ..errors import NotFoundError, PermissionDenied, ValidationError
from ..logging_config import get_logger
from ..models import Notification, Participant, User
from ..storage import IStorage
from ..storage.storage import PREVIEW_LENGTH

logger = get_logger(__name__)

MAX_NOTIFICATIONS = 100


class INotificationAggregator(Protocol):
    """Unread counts and read acknowledgements for a user."""

    async def unread_count(self, user: User) -> int: ...

    async def list_notifications(
        self, user: User, limit: int = 50
    ) -> list[Notification]: ...

    async def mark_read(self, message_id: str, user: User) -> None: ...

    async def mark_conversation_read(self, conversation_id: str, user: User) -> int: ...

    async def mark_all_read(self, user: User) -> int: ...


class NotificationAggregator:
    """Counts and lists messages a user has received but not read.

    A message is unread for a participant until they mark it read. Own
    messages never count.
    """

    def __init__(self, storage: IStorage):
        self._storage = storage

    async def unread_count(self, user: User) -> int:
        return await self._storage.unread_count(Participant(user.id, user.role))

    async def list_notifications(
        self, user: User, limit: int = 50
    ) -> list[Notification]:
        """Unread messages across all conversations, newest first."""
        if not 1 <= limit <= MAX_NOTIFICATIONS:
            raise ValidationError(
                f"limit must be between 1 and {MAX_NOTIFICATIONS}", field="limit"
            )

        messages = await self._storage.get_unread_messages(
            Participant(user.id, user.role), limit=limit
        )
        return [
            Notification(
                message_id=m.id,
                conversation_id=m.conversation_id,
                sender_id=m.sender_id,
                sender_role=m.sender_role,
                sender_name=m.sender_name,
                category=m.category,
                preview=m.content[:PREVIEW_LENGTH],
                created_at=m.created_at,
            )
            for m in messages
        ]

    async def mark_read(self, message_id: str, user: User) -> None:
        """Mark one message read. Repeated calls are no-ops."""
        message = await self._storage.get_message(message_id)
        if message is None:
            raise NotFoundError("Message not found", code="message_not_found")

        conversation = await self._storage.get_conversation(message.conversation_id)
        if conversation is None or not conversation.has_participant(user.id, user.role):
            raise PermissionDenied(
                "You do not have access to this message", code="not_a_participant"
            )

        if message.sender_id == user.id and message.sender_role is user.role:
            return

        if await self._storage.mark_read(message_id, Participant(user.id, user.role)):
            logger.debug("Message %s read by %s", message_id, user.id)

    async def mark_conversation_read(self, conversation_id: str, user: User) -> int:
        conversation = await self._storage.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found", code="conversation_not_found")
        if not conversation.has_participant(user.id, user.role):
            raise PermissionDenied(
                "You do not have access to this conversation",
                code="not_a_participant",
            )
        return await self._storage.mark_conversation_read(
            conversation_id, Participant(user.id, user.role)
        )

    async def mark_all_read(self, user: User) -> int:
        marked = await self._storage.mark_all_read(Participant(user.id, user.role))
        logger.info("Marked %d messages read for %s", marked, user.id)
        return marked
