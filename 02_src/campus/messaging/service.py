"""Messaging service: conversations, direct sends, broadcasts, forwards."""

import uuid
from datetime import datetime, timezone
from typing import Protocol

from ..audit import IAuditLog
from ..errors import (
    CampusError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from ..logging_config import get_logger
from ..models import (
    DEFAULT_CATEGORY,
    Attachment,
    AttachmentUpload,
    BroadcastFailure,
    BroadcastResult,
    Conversation,
    ConversationSummary,
    Message,
    Participant,
    Role,
    SendMessageRequest,
    User,
)
from ..policy import (
    AttachmentPolicy,
    allowed_recipient_roles,
    check_can_broadcast,
    check_can_send,
)
from ..storage import IFileStore, IStorage, sanitize_file_name

logger = get_logger(__name__)

MAX_CATEGORY_LENGTH = 50
MAX_PAGE_SIZE = 200


def _participant(user: User) -> Participant:
    return Participant(user.id, user.role)


def _clean_content(content: str | None) -> str:
    cleaned = (content or "").strip()
    if not cleaned:
        raise ValidationError("Message content cannot be empty", field="content")
    return cleaned


def _clean_category(category: str | None) -> str:
    cleaned = (category or "").strip() or DEFAULT_CATEGORY
    if len(cleaned) > MAX_CATEGORY_LENGTH:
        raise ValidationError(
            f"Category cannot exceed {MAX_CATEGORY_LENGTH} characters",
            field="category",
        )
    return cleaned


class IMessagingService(Protocol):
    """Conversations and messages between office, teachers and students."""

    async def get_conversations(self, user: User) -> list[ConversationSummary]:
        """User's conversations, most recent activity first."""
        ...

    async def get_messages(
        self, conversation_id: str, user: User, limit: int = 50, offset: int = 0
    ) -> list[Message]:
        """Messages of a conversation the user participates in."""
        ...

    async def send_message(self, sender: User, request: SendMessageRequest) -> Message:
        """Validate, resolve the conversation, persist and return the message."""
        ...

    async def broadcast_to_class(
        self,
        sender: User,
        class_id: str,
        content: str,
        category: str = DEFAULT_CATEGORY,
        attachments: list[AttachmentUpload] | None = None,
    ) -> BroadcastResult:
        """Send one message per active student of a class."""
        ...

    async def forward_message(
        self, sender: User, message_id: str, recipient_id: str, recipient_role: Role
    ) -> Message:
        """Re-send an existing message's content to another user."""
        ...

    async def list_recipients(self, user: User) -> list[User]:
        """Users the permission matrix lets `user` message."""
        ...

    async def search_messages(
        self, user: User, query: str, limit: int = 50
    ) -> list[Message]:
        """Messages in the user's conversations containing query, newest first."""
        ...

    async def get_attachment(
        self, attachment_id: str, user: User
    ) -> tuple[Attachment, bytes]:
        """An attachment's metadata and bytes, for conversation participants."""
        ...


class MessagingService:
    """Orchestrates permission checks, attachment policy and persistence."""

    def __init__(
        self,
        storage: IStorage,
        file_store: IFileStore,
        attachment_policy: AttachmentPolicy,
        audit_log: IAuditLog,
    ):
        self._storage = storage
        self._files = file_store
        self._policy = attachment_policy
        self._audit = audit_log

    async def get_conversations(self, user: User) -> list[ConversationSummary]:
        rows = await self._storage.list_conversations(_participant(user))

        summaries = []
        for conversation, unread in rows:
            other = conversation.other_participant(user.id, user.role)
            other_user = await self._storage.get_user(other.id, other.role)
            summaries.append(
                ConversationSummary(
                    id=conversation.id,
                    other_participant_id=other.id,
                    other_participant_role=other.role,
                    other_participant_name=(
                        other_user.display_name if other_user else "Unknown"
                    ),
                    last_message_at=conversation.last_message_at,
                    last_message_preview=conversation.last_message_preview,
                    unread_count=unread,
                )
            )
        return summaries

    async def get_messages(
        self, conversation_id: str, user: User, limit: int = 50, offset: int = 0
    ) -> list[Message]:
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(
                f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit"
            )
        if offset < 0:
            raise ValidationError("offset cannot be negative", field="offset")

        await self._participant_conversation(conversation_id, user)
        return await self._storage.get_messages(
            conversation_id, _participant(user), limit=limit, offset=offset
        )

    async def send_message(self, sender: User, request: SendMessageRequest) -> Message:
        # Everything that can be rejected is rejected before any write.
        content = _clean_content(request.content)
        category = _clean_category(request.category)
        if not request.recipient_id:
            raise ValidationError("Recipient is required", field="recipientId")
        if request.recipient_role is None:
            raise ValidationError("Recipient type is required", field="recipientType")

        check_can_send(sender.role, request.recipient_role)
        self._policy.validate_attachments(sender.role, request.attachments)

        conversation = await self._resolve_conversation(
            sender,
            Participant(request.recipient_id, request.recipient_role),
            request.conversation_id,
        )
        message = await self._deliver(
            sender, conversation, content, category, request.attachments
        )

        logger.info(
            "Message sent",
            extra={
                "context": {
                    "message_id": message.id,
                    "conversation_id": conversation.id,
                    "sender_role": sender.role.value,
                    "recipient_role": request.recipient_role.value,
                    "attachments": len(message.attachments),
                }
            },
        )
        await self._audit.record(
            "message_sent",
            sender,
            {
                "message_id": message.id,
                "conversation_id": conversation.id,
                "recipient_id": request.recipient_id,
                "recipient_role": request.recipient_role.value,
                "attachment_count": len(message.attachments),
            },
        )
        return message

    async def broadcast_to_class(
        self,
        sender: User,
        class_id: str,
        content: str,
        category: str = DEFAULT_CATEGORY,
        attachments: list[AttachmentUpload] | None = None,
    ) -> BroadcastResult:
        check_can_broadcast(sender.role)
        check_can_send(sender.role, Role.STUDENT)

        content = _clean_content(content)
        category = _clean_category(category)
        uploads = list(attachments or [])
        self._policy.validate_attachments(sender.role, uploads)
        if not class_id:
            raise ValidationError("Class is required", field="classId")

        class_info = await self._storage.get_class(class_id)
        if class_info is None:
            raise NotFoundError("Class not found", code="class_not_found")

        students = await self._storage.list_class_students(class_id)
        result = BroadcastResult(class_id=class_id, total_recipients=len(students))
        me = _participant(sender)

        # No cross-recipient transaction: each student is an independent send.
        for student in students:
            try:
                conversation = await self._storage.get_or_create_conversation(
                    me, _participant(student)
                )
                message = await self._deliver(
                    sender, conversation, content, category, uploads
                )
            except CampusError as e:
                logger.warning(
                    "Broadcast to %s failed: %s",
                    student.id,
                    e.message,
                    extra={"context": {"class_id": class_id, "code": e.code}},
                )
                result.failures.append(
                    BroadcastFailure(
                        recipient_id=student.id,
                        recipient_name=student.display_name,
                        code=e.code,
                        reason=e.message,
                    )
                )
                continue

            result.sent_count += 1
            result.message_ids.append(message.id)

        logger.info(
            "Broadcast to class %s: %d/%d delivered",
            class_id,
            result.sent_count,
            result.total_recipients,
        )
        await self._audit.record(
            "broadcast_sent",
            sender,
            {
                "class_id": class_id,
                "class_name": class_info.name,
                "total_recipients": result.total_recipients,
                "sent_count": result.sent_count,
                "failed_recipients": [f.recipient_id for f in result.failures],
            },
        )
        return result

    async def forward_message(
        self, sender: User, message_id: str, recipient_id: str, recipient_role: Role
    ) -> Message:
        original = await self._storage.get_message(message_id)
        if original is None:
            raise NotFoundError("Original message not found", code="message_not_found")
        await self._participant_conversation(original.conversation_id, sender)

        check_can_send(sender.role, recipient_role)
        conversation = await self._resolve_conversation(
            sender, Participant(recipient_id, recipient_role), None
        )
        message = await self._deliver(
            sender,
            conversation,
            original.content,
            original.category,
            [],
            forwarded_from=original,
        )

        await self._audit.record(
            "message_forwarded",
            sender,
            {
                "message_id": message.id,
                "forwarded_from_id": original.id,
                "recipient_id": recipient_id,
                "recipient_role": recipient_role.value,
            },
        )
        return message

    async def list_recipients(self, user: User) -> list[User]:
        allowed = allowed_recipient_roles(user.role)
        recipients: list[User] = []
        for role in Role:
            if role not in allowed:
                continue
            for candidate in await self._storage.list_users(role):
                if candidate.id == user.id and candidate.role is user.role:
                    continue
                recipients.append(candidate)
        return recipients

    async def search_messages(
        self, user: User, query: str, limit: int = 50
    ) -> list[Message]:
        cleaned = (query or "").strip()
        if not cleaned:
            raise ValidationError("Search query cannot be empty", field="q")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(
                f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit"
            )

        return await self._storage.search_messages(
            _participant(user), cleaned, limit=limit
        )

    async def get_attachment(
        self, attachment_id: str, user: User
    ) -> tuple[Attachment, bytes]:
        attachment = await self._storage.get_attachment(attachment_id)
        if attachment is None:
            raise NotFoundError("Attachment not found", code="attachment_not_found")

        message = await self._storage.get_message(attachment.message_id)
        if message is None:
            raise NotFoundError("Attachment not found", code="attachment_not_found")
        await self._participant_conversation(message.conversation_id, user)

        data = await self._files.read(attachment.storage_ref)
        return attachment, data

    async def _participant_conversation(
        self, conversation_id: str, user: User
    ) -> Conversation:
        conversation = await self._storage.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found", code="conversation_not_found")
        if not conversation.has_participant(user.id, user.role):
            raise PermissionDenied(
                "You do not have access to this conversation",
                code="not_a_participant",
            )
        return conversation

    async def _resolve_conversation(
        self, sender: User, recipient: Participant, conversation_id: str | None
    ) -> Conversation:
        if recipient == _participant(sender):
            raise ValidationError(
                "You cannot message yourself", field="recipientId", code="self_message"
            )

        if conversation_id:
            conversation = await self._participant_conversation(conversation_id, sender)
            if conversation.other_participant(sender.id, sender.role) != recipient:
                raise ValidationError(
                    "Recipient is not part of this conversation",
                    field="recipientId",
                    code="recipient_mismatch",
                )
            return conversation

        if await self._storage.get_user(recipient.id, recipient.role) is None:
            raise NotFoundError("Recipient not found", code="recipient_not_found")
        return await self._storage.get_or_create_conversation(
            _participant(sender), recipient
        )

    async def _deliver(
        self,
        sender: User,
        conversation: Conversation,
        content: str,
        category: str,
        uploads: list[AttachmentUpload],
        forwarded_from: Message | None = None,
    ) -> Message:
        """Upload blobs, then write message and attachment rows together.

        Blobs of a message that was not persisted are deleted again, also
        when the request is cancelled mid-write.
        """
        message_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        stamp = int(now.timestamp() * 1000)
        attachments: list[Attachment] = []

        try:
            for index, upload in enumerate(uploads):
                path = (
                    f"messages/{message_id}/"
                    f"{stamp}_{index}_{sanitize_file_name(upload.file_name)}"
                )
                ref = await self._files.save(path, upload.data, upload.content_type)
                attachments.append(
                    Attachment(
                        id=str(uuid.uuid4()),
                        message_id=message_id,
                        file_name=upload.file_name,
                        size=upload.size,
                        content_type=upload.content_type,
                        storage_ref=ref,
                        uploaded_at=now,
                    )
                )

            message = Message(
                id=message_id,
                conversation_id=conversation.id,
                sender_id=sender.id,
                sender_role=sender.role,
                sender_name=sender.display_name,
                content=content,
                category=category,
                created_at=now,
                attachments=attachments,
                is_read=True,
                is_forwarded=forwarded_from is not None,
                forwarded_from_id=forwarded_from.id if forwarded_from else None,
                original_sender_name=(
                    forwarded_from.sender_name if forwarded_from else None
                ),
            )
            await self._storage.save_message(message)
        except BaseException:
            await self._discard(attachments)
            raise

        return message

    async def _discard(self, attachments: list[Attachment]) -> None:
        for attachment in attachments:
            try:
                await self._files.delete(attachment.storage_ref)
            except OSError:
                logger.warning(
                    "Could not remove orphaned blob %s",
                    attachment.storage_ref,
                    exc_info=True,
                )
