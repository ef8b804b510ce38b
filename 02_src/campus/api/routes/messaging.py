"""Messaging API routes."""

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile

from ...app import IApplication
from ...models import AttachmentUpload, SendMessageRequest, User
from ...storage import sanitize_file_name
from ..dependencies import create_current_user, parse_role
from ..schemas import (
    BroadcastResponse,
    ConversationResponse,
    ForwardRequest,
    MarkedResponse,
    MessageResponse,
)


async def _read_uploads(files: list[UploadFile] | None) -> list[AttachmentUpload]:
    uploads = []
    for f in files or []:
        # Browsers send an empty part when no file was picked.
        if not f.filename:
            continue
        uploads.append(
            AttachmentUpload(
                file_name=f.filename,
                content_type=f.content_type or "application/octet-stream",
                data=await f.read(),
            )
        )
    return uploads


def create_messaging_router(app: IApplication) -> APIRouter:
    """Create messaging router."""
    router = APIRouter(prefix="/api", tags=["messaging"])
    current_user = create_current_user(app)

    @router.get("/conversations", response_model=list[ConversationResponse])
    async def get_conversations(
        user: User = Depends(current_user),
    ) -> list[ConversationResponse]:
        """Caller's conversations, most recent activity first."""
        summaries = await app.messaging.get_conversations(user)
        return [ConversationResponse.from_summary(s) for s in summaries]

    @router.get(
        "/conversations/{conversation_id}/messages",
        response_model=list[MessageResponse],
    )
    async def get_messages(
        conversation_id: str,
        limit: int = Query(50, ge=1, le=200),
        offset: int = Query(0, ge=0),
        user: User = Depends(current_user),
    ) -> list[MessageResponse]:
        messages = await app.messaging.get_messages(
            conversation_id, user, limit=limit, offset=offset
        )
        return [MessageResponse.from_message(m) for m in messages]

    @router.post(
        "/conversations/{conversation_id}/read", response_model=MarkedResponse
    )
    async def mark_conversation_read(
        conversation_id: str,
        user: User = Depends(current_user),
    ) -> MarkedResponse:
        marked = await app.notifications.mark_conversation_read(conversation_id, user)
        return MarkedResponse(marked=marked)

    @router.post("/messages", response_model=MessageResponse, status_code=201)
    async def send_message(
        recipient_id: str | None = Form(None, alias="recipientId"),
        recipient_type: str | None = Form(None, alias="recipientType"),
        content: str | None = Form(None),
        category: str | None = Form(None),
        conversation_id: str | None = Form(None, alias="conversationId"),
        attachments: list[UploadFile] | None = File(None),
        user: User = Depends(current_user),
    ) -> MessageResponse:
        """Send a direct message with optional attachments (multipart)."""
        request = SendMessageRequest(
            recipient_id=recipient_id,
            recipient_role=parse_role(recipient_type, "recipientType"),
            content=content or "",
            category=category or "",
            attachments=await _read_uploads(attachments),
            conversation_id=conversation_id or None,
        )
        message = await app.messaging.send_message(user, request)
        return MessageResponse.from_message(message)

    @router.post(
        "/messages/broadcast", response_model=BroadcastResponse, status_code=201
    )
    async def broadcast(
        class_id: str | None = Form(None, alias="classId"),
        content: str | None = Form(None),
        category: str | None = Form(None),
        attachments: list[UploadFile] | None = File(None),
        user: User = Depends(current_user),
    ) -> BroadcastResponse:
        """Send the same message to every active student of a class."""
        result = await app.messaging.broadcast_to_class(
            user,
            class_id or "",
            content or "",
            category=category or "",
            attachments=await _read_uploads(attachments),
        )
        return BroadcastResponse.from_result(result)

    @router.get("/messages/search", response_model=list[MessageResponse])
    async def search_messages(
        q: str = Query(..., min_length=1),
        limit: int = Query(50, ge=1, le=200),
        user: User = Depends(current_user),
    ) -> list[MessageResponse]:
        """Messages in the caller's conversations containing `q`, newest first."""
        messages = await app.messaging.search_messages(user, q, limit=limit)
        return [MessageResponse.from_message(m) for m in messages]

    @router.get("/attachments/{attachment_id}")
    async def download_attachment(
        attachment_id: str,
        user: User = Depends(current_user),
    ) -> Response:
        attachment, data = await app.messaging.get_attachment(attachment_id, user)
        return Response(
            content=data,
            media_type=attachment.content_type,
            headers={
                "Content-Disposition": (
                    f'attachment; filename="{sanitize_file_name(attachment.file_name)}"'
                )
            },
        )

    @router.post(
        "/messages/{message_id}/forward",
        response_model=MessageResponse,
        status_code=201,
    )
    async def forward_message(
        message_id: str,
        request: ForwardRequest,
        user: User = Depends(current_user),
    ) -> MessageResponse:
        message = await app.messaging.forward_message(
            user, message_id, request.recipient_id, request.recipient_type
        )
        return MessageResponse.from_message(message)

    return router
