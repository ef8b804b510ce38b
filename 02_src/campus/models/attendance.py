"""Attendance and academic standing data models."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

PERIODS_PER_DAY = 6


class AttendanceStatus(str, Enum):
    """Status of one period for one student."""

    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    SICK = "SICK"
    LEAVE = "LEAVE"
    NOT_MARKED = "NOT_MARKED"


class AcademicStatus(str, Enum):
    """Attendance standing, declared from least to most severe."""

    GOOD_STANDING = "good-standing"
    WARNING = "warning"
    TASDIQ = "tasdiq"
    MAHROOM = "mahroom"

    @property
    def severity(self) -> int:
        return list(AcademicStatus).index(self)


@dataclass
class AttendanceRecord:
    """One student's six periods on one day."""

    id: str
    student_id: str
    class_id: str
    date: date
    periods: list[AttendanceStatus] = field(
        default_factory=lambda: [AttendanceStatus.NOT_MARKED] * PERIODS_PER_DAY
    )
    marked_by: str | None = None


@dataclass
class AttendanceCounts:
    """Period counts by status; NOT_MARKED periods are not counted."""

    present: int = 0
    absent: int = 0
    sick: int = 0
    leave: int = 0

    @property
    def total(self) -> int:
        return self.present + self.absent + self.sick + self.leave

    @property
    def attendance_rate(self) -> float:
        # No classes held yet is not penalised.
        if self.total == 0:
            return 100.0
        return self.present / self.total * 100


@dataclass
class AcademicStatusResult:
    """Derived standing. Recomputed on every request."""

    status: AcademicStatus
    attendance_rate: float
    remaining_absences: int
    remaining_absences_before_tasdiq: int
    remaining_absences_before_mahroom: int
    message: str
