"""Request and response models. JSON field names are camelCase."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..attendance import action_message, requires_immediate_action, status_explanation
from ..models import (
    AcademicStatus,
    AcademicStatusResult,
    Attachment,
    AttendanceCounts,
    AttendanceRecord,
    AttendanceStatus,
    BroadcastResult,
    ClassInfo,
    ConversationSummary,
    Message,
    Notification,
    Role,
    User,
)


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Requests


class ForwardRequest(CamelModel):
    """Request model for forwarding a message."""

    recipient_id: str
    recipient_type: Role


# Responses


class StatusResponse(CamelModel):
    status: str


class UserResponse(CamelModel):
    id: str
    first_name: str
    last_name: str
    name: str
    role: Role

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            name=user.display_name,
            role=user.role,
        )


class ConversationResponse(CamelModel):
    """One row of the conversation list."""

    id: str
    other_participant_id: str
    other_participant_type: Role
    other_participant_name: str
    last_message_at: datetime | None
    last_message_preview: str | None
    unread_count: int

    @classmethod
    def from_summary(cls, s: ConversationSummary) -> "ConversationResponse":
        return cls(
            id=s.id,
            other_participant_id=s.other_participant_id,
            other_participant_type=s.other_participant_role,
            other_participant_name=s.other_participant_name,
            last_message_at=s.last_message_at,
            last_message_preview=s.last_message_preview,
            unread_count=s.unread_count,
        )


class AttachmentResponse(CamelModel):
    id: str
    file_name: str
    file_size: int
    file_type: str
    file_url: str
    uploaded_at: datetime

    @classmethod
    def from_attachment(cls, a: Attachment) -> "AttachmentResponse":
        return cls(
            id=a.id,
            file_name=a.file_name,
            file_size=a.size,
            file_type=a.content_type,
            file_url=f"/api/attachments/{a.id}",
            uploaded_at=a.uploaded_at,
        )


class MessageResponse(CamelModel):
    id: str
    conversation_id: str
    sender_id: str
    sender_type: Role
    sender_name: str
    content: str
    category: str
    created_at: datetime
    is_read: bool
    is_forwarded: bool
    original_sender_name: str | None = None
    attachments: list[AttachmentResponse] = []

    @classmethod
    def from_message(cls, m: Message) -> "MessageResponse":
        return cls(
            id=m.id,
            conversation_id=m.conversation_id,
            sender_id=m.sender_id,
            sender_type=m.sender_role,
            sender_name=m.sender_name,
            content=m.content,
            category=m.category,
            created_at=m.created_at,
            is_read=m.is_read,
            is_forwarded=m.is_forwarded,
            original_sender_name=m.original_sender_name,
            attachments=[AttachmentResponse.from_attachment(a) for a in m.attachments],
        )


class BroadcastFailureResponse(CamelModel):
    recipient_id: str
    recipient_name: str
    code: str
    reason: str


class BroadcastResponse(CamelModel):
    """Outcome of a send-to-class; failures are listed, not raised."""

    class_id: str
    total_recipients: int
    sent_count: int
    failed_count: int
    message_ids: list[str]
    failures: list[BroadcastFailureResponse]

    @classmethod
    def from_result(cls, r: BroadcastResult) -> "BroadcastResponse":
        return cls(
            class_id=r.class_id,
            total_recipients=r.total_recipients,
            sent_count=r.sent_count,
            failed_count=len(r.failures),
            message_ids=r.message_ids,
            failures=[
                BroadcastFailureResponse(
                    recipient_id=f.recipient_id,
                    recipient_name=f.recipient_name,
                    code=f.code,
                    reason=f.reason,
                )
                for f in r.failures
            ],
        )


class NotificationResponse(CamelModel):
    message_id: str
    conversation_id: str
    sender_id: str
    sender_type: Role
    sender_name: str
    category: str
    preview: str
    created_at: datetime

    @classmethod
    def from_notification(cls, n: Notification) -> "NotificationResponse":
        return cls(
            message_id=n.message_id,
            conversation_id=n.conversation_id,
            sender_id=n.sender_id,
            sender_type=n.sender_role,
            sender_name=n.sender_name,
            category=n.category,
            preview=n.preview,
            created_at=n.created_at,
        )


class UnreadCountResponse(CamelModel):
    count: int


class MarkedResponse(CamelModel):
    marked: int


class AttendanceSummaryResponse(CamelModel):
    total: int
    present: int
    absent: int
    sick: int
    leave: int
    attendance_rate: float

    @classmethod
    def from_counts(cls, c: AttendanceCounts) -> "AttendanceSummaryResponse":
        return cls(
            total=c.total,
            present=c.present,
            absent=c.absent,
            sick=c.sick,
            leave=c.leave,
            attendance_rate=round(c.attendance_rate, 2),
        )


class AttendanceRecordResponse(CamelModel):
    id: str
    student_id: str
    class_id: str
    attendance_date: date = Field(alias="date")
    periods: list[AttendanceStatus]
    marked_by: str | None = None

    @classmethod
    def from_record(cls, r: AttendanceRecord) -> "AttendanceRecordResponse":
        return cls(
            id=r.id,
            student_id=r.student_id,
            class_id=r.class_id,
            attendance_date=r.date,
            periods=r.periods,
            marked_by=r.marked_by,
        )


class AttendanceResponse(CamelModel):
    student_id: str
    records: list[AttendanceRecordResponse]
    summary: AttendanceSummaryResponse


class AcademicStatusResponse(CamelModel):
    student_id: str
    status: AcademicStatus
    attendance_rate: float
    remaining_absences: int
    remaining_absences_before_tasdiq: int
    remaining_absences_before_mahroom: int
    message: str
    explanation: str
    requires_action: bool
    action_message: str

    @classmethod
    def from_result(
        cls, student_id: str, r: AcademicStatusResult
    ) -> "AcademicStatusResponse":
        return cls(
            student_id=student_id,
            status=r.status,
            attendance_rate=round(r.attendance_rate, 2),
            remaining_absences=r.remaining_absences,
            remaining_absences_before_tasdiq=r.remaining_absences_before_tasdiq,
            remaining_absences_before_mahroom=r.remaining_absences_before_mahroom,
            message=r.message,
            explanation=status_explanation(r.status),
            requires_action=requires_immediate_action(r.status),
            action_message=action_message(r.status),
        )


class ClassResponse(CamelModel):
    id: str
    name: str
    session: str
    major: str | None
    semester: int
    student_count: int

    @classmethod
    def from_class(cls, c: ClassInfo) -> "ClassResponse":
        return cls(
            id=c.id,
            name=c.name,
            session=c.session,
            major=c.major,
            semester=c.semester,
            student_count=c.student_count,
        )


class DepartmentsResponse(CamelModel):
    departments: list[str]
