"""Attendance record access and aggregation."""

from datetime import date
from typing import Protocol

from ..errors import NotFoundError, ValidationError
from ..models import (
    AcademicStatusResult,
    AttendanceCounts,
    AttendanceRecord,
    AttendanceStatus,
)
from ..storage import IStorage
from .status import (
    DEFAULT_MAHROOM_THRESHOLD,
    DEFAULT_TASDIQ_THRESHOLD,
    evaluate_counts,
)


def count_periods(records: list[AttendanceRecord]) -> AttendanceCounts:
    """Flatten per-period statuses into counters. NOT_MARKED is skipped."""
    counts = AttendanceCounts()
    for record in records:
        for status in record.periods:
            if status is AttendanceStatus.PRESENT:
                counts.present += 1
            elif status is AttendanceStatus.ABSENT:
                counts.absent += 1
            elif status is AttendanceStatus.SICK:
                counts.sick += 1
            elif status is AttendanceStatus.LEAVE:
                counts.leave += 1
    return counts


class IAttendanceRecords(Protocol):
    """Read access to a student's attendance."""

    async def get_records(
        self, student_id: str, start: date | None = None, end: date | None = None
    ) -> list[AttendanceRecord]: ...

    async def summarize(
        self, student_id: str, start: date | None = None, end: date | None = None
    ) -> AttendanceCounts: ...

    async def academic_status(
        self, student_id: str, start: date | None = None, end: date | None = None
    ) -> AcademicStatusResult: ...


class AttendanceRecords:
    """Reads attendance rows and derives counters and standing."""

    def __init__(
        self,
        storage: IStorage,
        mahroom_threshold: float = DEFAULT_MAHROOM_THRESHOLD,
        tasdiq_threshold: float = DEFAULT_TASDIQ_THRESHOLD,
    ):
        self._storage = storage
        self._mahroom_threshold = mahroom_threshold
        self._tasdiq_threshold = tasdiq_threshold

    async def get_records(
        self, student_id: str, start: date | None = None, end: date | None = None
    ) -> list[AttendanceRecord]:
        """Records for a student in the inclusive range, newest first."""
        if start and end and start > end:
            raise ValidationError("start must not be after end", field="start")
        await self._require_student(student_id)
        return await self._storage.get_attendance_records(student_id, start, end)

    async def summarize(
        self, student_id: str, start: date | None = None, end: date | None = None
    ) -> AttendanceCounts:
        return count_periods(await self.get_records(student_id, start, end))

    async def academic_status(
        self, student_id: str, start: date | None = None, end: date | None = None
    ) -> AcademicStatusResult:
        counts = await self.summarize(student_id, start, end)
        return evaluate_counts(
            counts,
            mahroom_threshold=self._mahroom_threshold,
            tasdiq_threshold=self._tasdiq_threshold,
        )

    async def _require_student(self, student_id: str) -> None:
        if await self._storage.get_student(student_id) is None:
            raise NotFoundError("Student not found", code="student_not_found")
