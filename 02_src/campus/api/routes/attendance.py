"""Attendance API routes."""

from datetime import date

from fastapi import APIRouter, Depends, Query

from ...app import IApplication
from ...attendance import count_periods
from ...errors import PermissionDenied
from ...models import Role, User
from ..dependencies import create_current_user
from ..schemas import (
    AcademicStatusResponse,
    AttendanceRecordResponse,
    AttendanceResponse,
    AttendanceSummaryResponse,
)


def _check_can_view(user: User, student_id: str) -> None:
    if user.role is Role.STUDENT and user.id != student_id:
        raise PermissionDenied(
            "Students can only view their own attendance", code="not_own_record"
        )


def create_attendance_router(app: IApplication) -> APIRouter:
    """Create attendance router."""
    router = APIRouter(prefix="/api/students", tags=["attendance"])
    current_user = create_current_user(app)

    @router.get("/{student_id}/attendance", response_model=AttendanceResponse)
    async def get_attendance(
        student_id: str,
        start: date | None = Query(None, description="Inclusive start date"),
        end: date | None = Query(None, description="Inclusive end date"),
        user: User = Depends(current_user),
    ) -> AttendanceResponse:
        """Attendance records (newest first) with period counts."""
        _check_can_view(user, student_id)
        records = await app.attendance.get_records(student_id, start, end)
        return AttendanceResponse(
            student_id=student_id,
            records=[AttendanceRecordResponse.from_record(r) for r in records],
            summary=AttendanceSummaryResponse.from_counts(count_periods(records)),
        )

    @router.get(
        "/{student_id}/academic-status", response_model=AcademicStatusResponse
    )
    async def get_academic_status(
        student_id: str,
        start: date | None = Query(None),
        end: date | None = Query(None),
        user: User = Depends(current_user),
    ) -> AcademicStatusResponse:
        _check_can_view(user, student_id)
        result = await app.attendance.academic_status(student_id, start, end)
        return AcademicStatusResponse.from_result(student_id, result)

    return router
