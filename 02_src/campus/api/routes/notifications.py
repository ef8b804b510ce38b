"""Notification API routes."""

from fastapi import APIRouter, Depends, Query

from ...app import IApplication
from ...models import User
from ..dependencies import create_current_user
from ..schemas import (
    MarkedResponse,
    NotificationResponse,
    StatusResponse,
    UnreadCountResponse,
)


def create_notifications_router(app: IApplication) -> APIRouter:
    """Create notifications router."""
    router = APIRouter(prefix="/api/notifications", tags=["notifications"])
    current_user = create_current_user(app)

    @router.get("", response_model=list[NotificationResponse])
    async def list_notifications(
        limit: int = Query(50, ge=1, le=100),
        user: User = Depends(current_user),
    ) -> list[NotificationResponse]:
        """Unread messages, newest first."""
        notifications = await app.notifications.list_notifications(user, limit=limit)
        return [NotificationResponse.from_notification(n) for n in notifications]

    @router.get("/unread-count", response_model=UnreadCountResponse)
    async def unread_count(user: User = Depends(current_user)) -> UnreadCountResponse:
        return UnreadCountResponse(count=await app.notifications.unread_count(user))

    @router.post("/read-all", response_model=MarkedResponse)
    async def mark_all_read(user: User = Depends(current_user)) -> MarkedResponse:
        return MarkedResponse(marked=await app.notifications.mark_all_read(user))

    @router.post("/{message_id}/read", response_model=StatusResponse)
    async def mark_read(
        message_id: str,
        user: User = Depends(current_user),
    ) -> StatusResponse:
        await app.notifications.mark_read(message_id, user)
        return StatusResponse(status="ok")

    return router
