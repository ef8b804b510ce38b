"""Directory and health API routes."""

from fastapi import APIRouter, Depends

from ...app import IApplication
from ...models import User
from ..dependencies import create_current_user
from ..schemas import (
    ClassResponse,
    DepartmentsResponse,
    StatusResponse,
    UserResponse,
)


def create_directory_router(app: IApplication) -> APIRouter:
    """Create directory router."""
    router = APIRouter(prefix="/api", tags=["directory"])
    current_user = create_current_user(app)

    @router.get("/health", response_model=StatusResponse)
    async def health() -> StatusResponse:
        return StatusResponse(status="ok")

    @router.get("/recipients", response_model=list[UserResponse])
    async def list_recipients(
        user: User = Depends(current_user),
    ) -> list[UserResponse]:
        """Everyone the caller is allowed to message."""
        recipients = await app.messaging.list_recipients(user)
        return [UserResponse.from_user(r) for r in recipients]

    @router.get("/classes", response_model=list[ClassResponse])
    async def list_classes(
        user: User = Depends(current_user),
    ) -> list[ClassResponse]:
        classes = await app.storage.list_classes()
        return [ClassResponse.from_class(c) for c in classes]

    @router.get("/departments/list", response_model=DepartmentsResponse)
    async def list_departments(
        user: User = Depends(current_user),
    ) -> DepartmentsResponse:
        return DepartmentsResponse(departments=await app.storage.list_departments())

    return router
