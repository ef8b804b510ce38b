"""Attendance module."""

from .records import AttendanceRecords, IAttendanceRecords, count_periods
from .status import (
    action_message,
    evaluate,
    evaluate_counts,
    max_absences_for,
    requires_immediate_action,
    status_explanation,
)

__all__ = [
    "AttendanceRecords",
    "IAttendanceRecords",
    "count_periods",
    "action_message",
    "evaluate",
    "evaluate_counts",
    "max_absences_for",
    "requires_immediate_action",
    "status_explanation",
]
