"""Academic standing from attendance counters.

Tiers, lower bound inclusive:

- good-standing: rate >= 90
- warning:       tasdiq_threshold <= rate < 90
- tasdiq:        mahroom_threshold <= rate < tasdiq_threshold
- mahroom:       rate < mahroom_threshold
"""

import math

from ..errors import ValidationError
from ..models import AcademicStatus, AcademicStatusResult, AttendanceCounts

DEFAULT_MAHROOM_THRESHOLD = 75.0
DEFAULT_TASDIQ_THRESHOLD = 85.0
GOOD_STANDING_THRESHOLD = 90.0


def max_absences_for(total_count: int, threshold: float) -> int:
    """Absences allowed out of total_count while staying at or above threshold."""
    if total_count <= 0:
        return 0
    return math.floor(total_count * (100 - threshold) / 100)


def evaluate(
    attendance_rate: float,
    absent_count: int,
    total_count: int,
    mahroom_threshold: float = DEFAULT_MAHROOM_THRESHOLD,
    tasdiq_threshold: float = DEFAULT_TASDIQ_THRESHOLD,
) -> AcademicStatusResult:
    """Map an attendance rate and thresholds to a standing tier."""
    if not 0 <= mahroom_threshold <= tasdiq_threshold <= GOOD_STANDING_THRESHOLD:
        raise ValidationError(
            "Thresholds must satisfy 0 <= mahroom <= tasdiq <= "
            f"{GOOD_STANDING_THRESHOLD:g}",
            field="thresholds",
        )
    if absent_count < 0 or total_count < 0:
        raise ValidationError("Counts cannot be negative", field="counts")

    if total_count == 0:
        attendance_rate = 100.0

    before_mahroom = max(0, max_absences_for(total_count, mahroom_threshold) - absent_count)
    before_tasdiq = max(0, max_absences_for(total_count, tasdiq_threshold) - absent_count)
    rate = f"{attendance_rate:.1f}%"

    if attendance_rate < mahroom_threshold:
        status = AcademicStatus.MAHROOM
        remaining = 0
        message = (
            "Critical: You have exceeded the maximum allowed absences. "
            f"Your attendance rate is {rate}, which is below the required "
            f"{mahroom_threshold:g}%."
        )
    elif attendance_rate < tasdiq_threshold:
        status = AcademicStatus.TASDIQ
        remaining = before_mahroom
        message = (
            f"Warning: Your attendance rate is {rate}, which is below "
            f"{tasdiq_threshold:g}%. You need to submit medical certificates."
        )
    elif attendance_rate < GOOD_STANDING_THRESHOLD:
        status = AcademicStatus.WARNING
        remaining = before_tasdiq
        message = (
            f"Caution: Your attendance rate is {rate}. You have {before_tasdiq} "
            "absence(s) remaining before requiring certification."
        )
    else:
        status = AcademicStatus.GOOD_STANDING
        remaining = before_tasdiq
        message = (
            f"Excellent: Your attendance rate is {rate}. "
            "You're in good standing!"
        )

    return AcademicStatusResult(
        status=status,
        attendance_rate=attendance_rate,
        remaining_absences=remaining,
        remaining_absences_before_tasdiq=before_tasdiq,
        remaining_absences_before_mahroom=before_mahroom,
        message=message,
    )


def evaluate_counts(
    counts: AttendanceCounts,
    mahroom_threshold: float = DEFAULT_MAHROOM_THRESHOLD,
    tasdiq_threshold: float = DEFAULT_TASDIQ_THRESHOLD,
) -> AcademicStatusResult:
    """evaluate() on aggregated counters."""
    return evaluate(
        counts.attendance_rate,
        counts.absent,
        counts.total,
        mahroom_threshold=mahroom_threshold,
        tasdiq_threshold=tasdiq_threshold,
    )


_EXPLANATIONS = {
    AcademicStatus.GOOD_STANDING: (
        "You are in good standing with excellent attendance. Keep up the great work!"
    ),
    AcademicStatus.WARNING: (
        "Your attendance needs attention. Please maintain good attendance to "
        "avoid complications."
    ),
    AcademicStatus.TASDIQ: (
        "Tasdiq means \"Certification Required\": you need to submit medical "
        "certificates to restore your exam eligibility."
    ),
    AcademicStatus.MAHROOM: (
        "Mahroom means \"Disqualified\": you have exceeded the maximum allowed "
        "absences and are not eligible for final exams. Contact your teacher "
        "immediately."
    ),
}

_ACTIONS = {
    AcademicStatus.GOOD_STANDING: "Continue maintaining excellent attendance!",
    AcademicStatus.WARNING: (
        "Monitor your attendance closely and avoid unnecessary absences."
    ),
    AcademicStatus.TASDIQ: (
        "Upload medical certificates as soon as possible to restore eligibility."
    ),
    AcademicStatus.MAHROOM: (
        "Contact your teacher or office immediately to discuss your options."
    ),
}

for _table in (_EXPLANATIONS, _ACTIONS):
    _missing = set(AcademicStatus) - set(_table)
    if _missing:
        raise RuntimeError(
            f"No text for statuses: {sorted(s.value for s in _missing)}"
        )


def status_explanation(status: AcademicStatus) -> str:
    return _EXPLANATIONS[status]


def action_message(status: AcademicStatus) -> str:
    return _ACTIONS[status]


def requires_immediate_action(status: AcademicStatus) -> bool:
    return status in (AcademicStatus.MAHROOM, AcademicStatus.TASDIQ)
