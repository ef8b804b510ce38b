"""SQLite storage implementation."""

import asyncio
import functools
import json
import uuid
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..errors import PersistenceError
from ..logging_config import get_logger
from ..models import (
    PERIODS_PER_DAY,
    Attachment,
    AttendanceRecord,
    AttendanceStatus,
    AuditEvent,
    ClassInfo,
    Conversation,
    Message,
    OfficeStaff,
    Participant,
    Role,
    Student,
    Teacher,
    User,
)

logger = get_logger(__name__)

PREVIEW_LENGTH = 100

_PERIOD_COLUMNS = ", ".join(
    f"period_{i}_status" for i in range(1, PERIODS_PER_DAY + 1)
)


def _ts(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_ts(value: str | None) -> datetime | None:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _canonical(p1: Participant, p2: Participant) -> tuple[Participant, Participant]:
    return (p1, p2) if p1.sort_key() <= p2.sort_key() else (p2, p1)


def _serialized(method):
    """Run a Storage coroutine under the connection lock.

    Any exit by exception, cancellation included, rolls back the open
    transaction before the lock is released. sqlite errors are re-raised
    as PersistenceError; everything else propagates unchanged.
    """

    @functools.wraps(method)
    async def wrapper(self: "Storage", *args, **kwargs):
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        async with self._lock:
            try:
                return await method(self, *args, **kwargs)
            except aiosqlite.Error as e:
                await self._conn.rollback()
                logger.error(
                    "Storage operation %s failed: %s",
                    method.__name__,
                    e,
                    exc_info=True,
                )
                raise PersistenceError(
                    f"Storage operation failed: {method.__name__}"
                ) from e
            except BaseException:
                await self._conn.rollback()
                logger.warning(
                    "Storage operation %s interrupted, rolled back",
                    method.__name__,
                )
                raise

    return wrapper


class IStorage(Protocol):
    """Persistent storage for all system data (SQLite)."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Directory
    async def save_class(self, class_info: ClassInfo) -> None: ...

    async def get_class(self, class_id: str) -> ClassInfo | None: ...

    async def list_classes(self) -> list[ClassInfo]: ...

    async def save_student(self, student: Student) -> None: ...

    async def save_teacher(self, teacher: Teacher) -> None: ...

    async def save_office_staff(self, staff: OfficeStaff) -> None: ...

    async def get_user(self, user_id: str, role: Role) -> User | None: ...

    async def get_student(self, student_id: str) -> Student | None: ...

    async def list_users(self, role: Role) -> list[User]: ...

    async def list_class_students(
        self, class_id: str, active_only: bool = True
    ) -> list[Student]: ...

    async def list_departments(self) -> list[str]: ...

    # Attendance
    async def save_attendance_record(self, record: AttendanceRecord) -> None: ...

    async def get_attendance_records(
        self,
        student_id: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[AttendanceRecord]: ...

    # Conversations
    async def get_conversation(self, conversation_id: str) -> Conversation | None: ...

    async def get_or_create_conversation(
        self, p1: Participant, p2: Participant
    ) -> Conversation: ...

    async def list_conversations(
        self, participant: Participant
    ) -> list[tuple[Conversation, int]]: ...

    # Messages
    async def save_message(self, message: Message) -> None: ...

    async def get_message(self, message_id: str) -> Message | None: ...

    async def get_messages(
        self,
        conversation_id: str,
        viewer: Participant,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Message]: ...

    async def search_messages(
        self, viewer: Participant, query: str, limit: int = 50
    ) -> list[Message]: ...

    async def get_attachment(self, attachment_id: str) -> Attachment | None: ...

    # Read state
    async def mark_read(self, message_id: str, reader: Participant) -> bool: ...

    async def mark_conversation_read(
        self, conversation_id: str, reader: Participant
    ) -> int: ...

    async def mark_all_read(self, reader: Participant) -> int: ...

    async def unread_count(self, reader: Participant) -> int: ...

    async def get_unread_messages(
        self, reader: Participant, limit: int = 50
    ) -> list[Message]: ...

    # Audit
    async def save_audit_event(self, event: AuditEvent) -> None: ...

    async def get_audit_events(
        self,
        action: str | None = None,
        actor_id: str | None = None,
        limit: int = 100,
    ) -> list[AuditEvent]: ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


class Storage:
    """SQLite storage implementation.

    One connection per process; statements are serialized by an asyncio lock
    so a multi-statement write is never interleaved with another request.
    """

    def __init__(self, db_path: str | Path | None = None):
        self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA foreign_keys = ON")

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()
        logger.info("Storage initialized at %s", self._db_path)

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    # Directory

    @_serialized
    async def save_class(self, class_info: ClassInfo) -> None:
        await self._conn.execute(
            """
            INSERT OR REPLACE INTO classes (id, name, session, major, semester)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                class_info.id,
                class_info.name,
                class_info.session,
                class_info.major,
                class_info.semester,
            ),
        )
        await self._conn.commit()

    @_serialized
    async def get_class(self, class_id: str) -> ClassInfo | None:
        cursor = await self._conn.execute(
            """
            SELECT c.id, c.name, c.session, c.major, c.semester,
                   (SELECT COUNT(*) FROM students s
                    WHERE s.class_id = c.id AND s.status = 'ACTIVE') AS student_count
            FROM classes c
            WHERE c.id = ?
            """,
            (class_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_class(row) if row else None

    @_serialized
    async def list_classes(self) -> list[ClassInfo]:
        cursor = await self._conn.execute(
            """
            SELECT c.id, c.name, c.session, c.major, c.semester,
                   (SELECT COUNT(*) FROM students s
                    WHERE s.class_id = c.id AND s.status = 'ACTIVE') AS student_count
            FROM classes c
            ORDER BY c.name, c.session
            """
        )
        return [self._row_to_class(row) for row in await cursor.fetchall()]

    @_serialized
    async def save_student(self, student: Student) -> None:
        await self._conn.execute(
            """
            INSERT OR REPLACE INTO students
                (id, first_name, last_name, student_number, class_id, programs, status)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                student.id,
                student.first_name,
                student.last_name,
                student.student_number,
                student.class_id,
                student.programs,
                student.status,
            ),
        )
        await self._conn.commit()

    @_serialized
    async def save_teacher(self, teacher: Teacher) -> None:
        await self._conn.execute(
            """
            INSERT OR REPLACE INTO teachers
                (id, first_name, last_name, departments, subjects, status)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                teacher.id,
                teacher.first_name,
                teacher.last_name,
                json.dumps(teacher.departments),
                json.dumps(teacher.subjects),
                teacher.status,
            ),
        )
        await self._conn.commit()

    @_serialized
    async def save_office_staff(self, staff: OfficeStaff) -> None:
        await self._conn.execute(
            """
            INSERT OR REPLACE INTO office_staff (id, first_name, last_name)
            VALUES (?, ?, ?)
            """,
            (staff.id, staff.first_name, staff.last_name),
        )
        await self._conn.commit()

    @_serialized
    async def get_user(self, user_id: str, role: Role) -> User | None:
        """Look a user up in the table that holds accounts of `role`."""
        return await self._fetch_user(user_id, role)

    @_serialized
    async def get_student(self, student_id: str) -> Student | None:
        return await self._fetch_user(student_id, Role.STUDENT)

    @_serialized
    async def list_users(self, role: Role) -> list[User]:
        query = {
            Role.STUDENT: "SELECT * FROM students WHERE status = 'ACTIVE' ORDER BY first_name, last_name",
            Role.TEACHER: "SELECT * FROM teachers WHERE status = 'ACTIVE' ORDER BY first_name, last_name",
            Role.OFFICE: "SELECT * FROM office_staff ORDER BY first_name, last_name",
        }[role]
        cursor = await self._conn.execute(query)
        return [self._row_to_user(row, role) for row in await cursor.fetchall()]

    @_serialized
    async def list_class_students(
        self, class_id: str, active_only: bool = True
    ) -> list[Student]:
        query = "SELECT * FROM students WHERE class_id = ?"
        if active_only:
            query += " AND status = 'ACTIVE'"
        query += " ORDER BY first_name, last_name, id"
        cursor = await self._conn.execute(query, (class_id,))
        return [
            self._row_to_user(row, Role.STUDENT) for row in await cursor.fetchall()
        ]

    @_serialized
    async def list_departments(self) -> list[str]:
        """Distinct departments across teachers and class majors."""
        departments: set[str] = set()

        cursor = await self._conn.execute("SELECT departments FROM teachers")
        for row in await cursor.fetchall():
            departments.update(d.strip() for d in json.loads(row[0]) if d.strip())

        cursor = await self._conn.execute(
            "SELECT DISTINCT major FROM classes WHERE major IS NOT NULL AND major != ''"
        )
        departments.update(row[0] for row in await cursor.fetchall())

        return sorted(departments)

    async def _fetch_user(self, user_id: str, role: Role) -> User | None:
        table = {
            Role.STUDENT: "students",
            Role.TEACHER: "teachers",
            Role.OFFICE: "office_staff",
        }[role]
        cursor = await self._conn.execute(
            f"SELECT * FROM {table} WHERE id = ?", (user_id,)
        )
        row = await cursor.fetchone()
        return self._row_to_user(row, role) if row else None

    # Attendance

    @_serialized
    async def save_attendance_record(self, record: AttendanceRecord) -> None:
        """Insert or replace the (student, class, date) row."""
        if len(record.periods) != PERIODS_PER_DAY:
            raise ValueError(f"Expected {PERIODS_PER_DAY} periods, got {len(record.periods)}")

        record.id = record.id or str(uuid.uuid4())
        await self._conn.execute(
            f"""
            INSERT INTO attendance_records
                (id, student_id, class_id, date, {_PERIOD_COLUMNS}, marked_by)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (student_id, class_id, date) DO UPDATE SET
                period_1_status = excluded.period_1_status,
                period_2_status = excluded.period_2_status,
                period_3_status = excluded.period_3_status,
                period_4_status = excluded.period_4_status,
                period_5_status = excluded.period_5_status,
                period_6_status = excluded.period_6_status,
                marked_by = excluded.marked_by
            """,
            (
                record.id,
                record.student_id,
                record.class_id,
                record.date.isoformat(),
                *(status.value for status in record.periods),
                record.marked_by,
            ),
        )
        await self._conn.commit()

    @_serialized
    async def get_attendance_records(
        self,
        student_id: str,
        start: date | None = None,
        end: date | None = None,
    ) -> list[AttendanceRecord]:
        """Records for a student in [start, end], newest first."""
        conditions = ["student_id = ?"]
        params: list = [student_id]

        if start:
            conditions.append("date >= ?")
            params.append(start.isoformat())
        if end:
            conditions.append("date <= ?")
            params.append(end.isoformat())

        cursor = await self._conn.execute(
            f"""
            SELECT id, student_id, class_id, date, {_PERIOD_COLUMNS}, marked_by
            FROM attendance_records
            WHERE {' AND '.join(conditions)}
            ORDER BY date DESC
            """,
            params,
        )
        rows = await cursor.fetchall()

        return [
            AttendanceRecord(
                id=row["id"],
                student_id=row["student_id"],
                class_id=row["class_id"],
                date=date.fromisoformat(row["date"]),
                periods=[
                    AttendanceStatus(row[f"period_{i}_status"])
                    for i in range(1, PERIODS_PER_DAY + 1)
                ],
                marked_by=row["marked_by"],
            )
            for row in rows
        ]

    # Conversations

    @_serialized
    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        cursor = await self._conn.execute(
            "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
        )
        row = await cursor.fetchone()
        return self._row_to_conversation(row) if row else None

    @_serialized
    async def get_or_create_conversation(
        self, p1: Participant, p2: Participant
    ) -> Conversation:
        """Return the pair's conversation, creating it on first contact.

        A unique-constraint conflict means another request created it first;
        the existing row is re-read.
        """
        if p1 == p2:
            raise ValueError("A conversation needs two distinct participants")

        a, b = _canonical(p1, p2)
        existing = await self._find_conversation(a, b)
        if existing:
            return existing

        conversation = Conversation(
            id=str(uuid.uuid4()),
            participant_a=a,
            participant_b=b,
            created_at=datetime.now(timezone.utc),
        )
        try:
            await self._conn.execute(
                """
                INSERT INTO conversations
                    (id, participant_a_id, participant_a_role,
                     participant_b_id, participant_b_role, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    conversation.id,
                    a.id,
                    a.role.value,
                    b.id,
                    b.role.value,
                    _ts(conversation.created_at),
                ),
            )
            await self._conn.commit()
        except aiosqlite.IntegrityError:
            await self._conn.rollback()
            existing = await self._find_conversation(a, b)
            if existing is None:
                raise
            logger.info("Conversation created concurrently, re-read %s", existing.id)
            return existing

        return conversation

    @_serialized
    async def list_conversations(
        self, participant: Participant
    ) -> list[tuple[Conversation, int]]:
        """The participant's conversations with their unread counts, newest first.

        Conversations that never received a message are left out.
        """
        cursor = await self._conn.execute(
            """
            SELECT c.*,
                   (SELECT COUNT(*) FROM messages m
                    WHERE m.conversation_id = c.id
                      AND NOT (m.sender_id = :uid AND m.sender_role = :role)
                      AND NOT EXISTS (
                          SELECT 1 FROM message_reads r
                          WHERE r.message_id = m.id
                            AND r.user_id = :uid AND r.user_role = :role
                      )) AS unread_count
            FROM conversations c
            WHERE ((c.participant_a_id = :uid AND c.participant_a_role = :role)
                OR (c.participant_b_id = :uid AND c.participant_b_role = :role))
              AND c.last_message_at IS NOT NULL
            ORDER BY c.last_message_at DESC, c.rowid DESC
            """,
            {"uid": participant.id, "role": participant.role.value},
        )
        rows = await cursor.fetchall()
        return [(self._row_to_conversation(row), row["unread_count"]) for row in rows]

    async def _find_conversation(
        self, a: Participant, b: Participant
    ) -> Conversation | None:
        cursor = await self._conn.execute(
            """
            SELECT * FROM conversations
            WHERE participant_a_role = ? AND participant_a_id = ?
              AND participant_b_role = ? AND participant_b_id = ?
            """,
            (a.role.value, a.id, b.role.value, b.id),
        )
        row = await cursor.fetchone()
        return self._row_to_conversation(row) if row else None

    # Messages

    @_serialized
    async def save_message(self, message: Message) -> None:
        """Persist a message, its attachments and the conversation activity.

        All rows are written in one transaction; on failure nothing is kept.
        """
        message.id = message.id or str(uuid.uuid4())

        await self._conn.execute(
            """
            INSERT INTO messages
                (id, conversation_id, sender_id, sender_role, sender_name, content,
                 category, created_at, is_forwarded, forwarded_from_id, original_sender_name)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message.id,
                message.conversation_id,
                message.sender_id,
                message.sender_role.value,
                message.sender_name,
                message.content,
                message.category,
                _ts(message.created_at),
                int(message.is_forwarded),
                message.forwarded_from_id,
                message.original_sender_name,
            ),
        )

        for attachment in message.attachments:
            attachment.id = attachment.id or str(uuid.uuid4())
            attachment.message_id = message.id
            await self._conn.execute(
                """
                INSERT INTO attachments
                    (id, message_id, file_name, size, content_type, storage_ref, uploaded_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    attachment.id,
                    message.id,
                    attachment.file_name,
                    attachment.size,
                    attachment.content_type,
                    attachment.storage_ref,
                    _ts(attachment.uploaded_at),
                ),
            )

        cursor = await self._conn.execute(
            """
            UPDATE conversations
            SET last_message_at = ?, last_message_preview = ?
            WHERE id = ?
            """,
            (
                _ts(message.created_at),
                message.content[:PREVIEW_LENGTH],
                message.conversation_id,
            ),
        )
        if cursor.rowcount != 1:
            raise aiosqlite.IntegrityError(
                f"Conversation {message.conversation_id} does not exist"
            )

        await self._conn.commit()

    @_serialized
    async def get_message(self, message_id: str) -> Message | None:
        cursor = await self._conn.execute(
            "SELECT * FROM messages WHERE id = ?", (message_id,)
        )
        row = await cursor.fetchone()
        if not row:
            return None
        message = self._row_to_message(row)
        message.attachments = (await self._attachments_for([message.id])).get(
            message.id, []
        )
        return message

    @_serialized
    async def get_messages(
        self,
        conversation_id: str,
        viewer: Participant,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Message]:
        """Messages of a conversation in chronological order."""
        cursor = await self._conn.execute(
            """
            SELECT m.*,
                   (m.sender_id = :uid AND m.sender_role = :role)
                   OR EXISTS (
                       SELECT 1 FROM message_reads r
                       WHERE r.message_id = m.id
                         AND r.user_id = :uid AND r.user_role = :role
                   ) AS is_read
            FROM messages m
            WHERE m.conversation_id = :cid
            ORDER BY m.created_at ASC, m.rowid ASC
            LIMIT :limit OFFSET :offset
            """,
            {
                "uid": viewer.id,
                "role": viewer.role.value,
                "cid": conversation_id,
                "limit": limit,
                "offset": offset,
            },
        )
        rows = await cursor.fetchall()
        messages = [self._row_to_message(row) for row in rows]

        attachments = await self._attachments_for([m.id for m in messages])
        for message in messages:
            message.attachments = attachments.get(message.id, [])

        return messages

    @_serialized
    async def search_messages(
        self, viewer: Participant, query: str, limit: int = 50
    ) -> list[Message]:
        """Messages in the viewer's conversations whose content contains query.

        Case-insensitive substring match, newest first.
        """
        pattern = (
            query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        )
        cursor = await self._conn.execute(
            """
            SELECT m.*,
                   (m.sender_id = :uid AND m.sender_role = :role)
                   OR EXISTS (
                       SELECT 1 FROM message_reads r
                       WHERE r.message_id = m.id
                         AND r.user_id = :uid AND r.user_role = :role
                   ) AS is_read
            FROM messages m
            JOIN conversations c ON c.id = m.conversation_id
            WHERE ((c.participant_a_id = :uid AND c.participant_a_role = :role)
                OR (c.participant_b_id = :uid AND c.participant_b_role = :role))
              AND m.content LIKE '%' || :pattern || '%' ESCAPE '\\'
            ORDER BY m.created_at DESC, m.rowid DESC
            LIMIT :limit
            """,
            {
                "uid": viewer.id,
                "role": viewer.role.value,
                "pattern": pattern,
                "limit": limit,
            },
        )
        messages = [self._row_to_message(row) for row in await cursor.fetchall()]

        attachments = await self._attachments_for([m.id for m in messages])
        for message in messages:
            message.attachments = attachments.get(message.id, [])

        return messages

    @_serialized
    async def get_attachment(self, attachment_id: str) -> Attachment | None:
        cursor = await self._conn.execute(
            "SELECT * FROM attachments WHERE id = ?", (attachment_id,)
        )
        row = await cursor.fetchone()
        return self._row_to_attachment(row) if row else None

    async def _attachments_for(
        self, message_ids: list[str]
    ) -> dict[str, list[Attachment]]:
        if not message_ids:
            return {}

        placeholders = ",".join("?" * len(message_ids))
        cursor = await self._conn.execute(
            f"""
            SELECT * FROM attachments
            WHERE message_id IN ({placeholders})
            ORDER BY rowid
            """,
            message_ids,
        )
        result: dict[str, list[Attachment]] = {}
        for row in await cursor.fetchall():
            result.setdefault(row["message_id"], []).append(
                self._row_to_attachment(row)
            )
        return result

    # Read state

    @_serialized
    async def mark_read(self, message_id: str, reader: Participant) -> bool:
        """Record a read. Returns False when it was already read."""
        cursor = await self._conn.execute(
            """
            INSERT OR IGNORE INTO message_reads (message_id, user_id, user_role, read_at)
            VALUES (?, ?, ?, ?)
            """,
            (message_id, reader.id, reader.role.value, _ts(datetime.now(timezone.utc))),
        )
        await self._conn.commit()
        return cursor.rowcount == 1

    @_serialized
    async def mark_conversation_read(
        self, conversation_id: str, reader: Participant
    ) -> int:
        cursor = await self._conn.execute(
            """
            INSERT OR IGNORE INTO message_reads (message_id, user_id, user_role, read_at)
            SELECT m.id, :uid, :role, :now
            FROM messages m
            WHERE m.conversation_id = :cid
              AND NOT (m.sender_id = :uid AND m.sender_role = :role)
            """,
            {
                "uid": reader.id,
                "role": reader.role.value,
                "now": _ts(datetime.now(timezone.utc)),
                "cid": conversation_id,
            },
        )
        await self._conn.commit()
        return cursor.rowcount

    @_serialized
    async def mark_all_read(self, reader: Participant) -> int:
        cursor = await self._conn.execute(
            """
            INSERT OR IGNORE INTO message_reads (message_id, user_id, user_role, read_at)
            SELECT m.id, :uid, :role, :now
            FROM messages m
            JOIN conversations c ON c.id = m.conversation_id
            WHERE ((c.participant_a_id = :uid AND c.participant_a_role = :role)
                OR (c.participant_b_id = :uid AND c.participant_b_role = :role))
              AND NOT (m.sender_id = :uid AND m.sender_role = :role)
            """,
            {
                "uid": reader.id,
                "role": reader.role.value,
                "now": _ts(datetime.now(timezone.utc)),
            },
        )
        await self._conn.commit()
        return cursor.rowcount

    @_serialized
    async def unread_count(self, reader: Participant) -> int:
        cursor = await self._conn.execute(
            f"SELECT COUNT(*) FROM ({self._UNREAD_SQL})",
            {"uid": reader.id, "role": reader.role.value},
        )
        row = await cursor.fetchone()
        return row[0]

    @_serialized
    async def get_unread_messages(
        self, reader: Participant, limit: int = 50
    ) -> list[Message]:
        """Unread messages across all of the reader's conversations, newest first."""
        cursor = await self._conn.execute(
            f"""
            {self._UNREAD_SQL}
            ORDER BY m.created_at DESC, m.rowid DESC
            LIMIT :limit
            """,
            {"uid": reader.id, "role": reader.role.value, "limit": limit},
        )
        return [self._row_to_message(row) for row in await cursor.fetchall()]

    _UNREAD_SQL = """
        SELECT m.*, 0 AS is_read
        FROM messages m
        JOIN conversations c ON c.id = m.conversation_id
        WHERE ((c.participant_a_id = :uid AND c.participant_a_role = :role)
            OR (c.participant_b_id = :uid AND c.participant_b_role = :role))
          AND NOT (m.sender_id = :uid AND m.sender_role = :role)
          AND NOT EXISTS (
              SELECT 1 FROM message_reads r
              WHERE r.message_id = m.id
                AND r.user_id = :uid AND r.user_role = :role
          )
    """

    # Audit

    @_serialized
    async def save_audit_event(self, event: AuditEvent) -> None:
        await self._conn.execute(
            """
            INSERT INTO audit_events (id, action, actor_id, actor_role, data, timestamp)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                event.id or str(uuid.uuid4()),
                event.action,
                event.actor_id,
                event.actor_role,
                json.dumps(event.data, default=str),
                _ts(event.timestamp),
            ),
        )
        await self._conn.commit()

    @_serialized
    async def get_audit_events(
        self,
        action: str | None = None,
        actor_id: str | None = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Audit events with optional filters, newest first."""
        conditions = []
        params: list = []

        if action:
            conditions.append("action = ?")
            params.append(action)
        if actor_id:
            conditions.append("actor_id = ?")
            params.append(actor_id)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        params.append(limit)

        cursor = await self._conn.execute(
            f"""
            SELECT id, action, actor_id, actor_role, data, timestamp
            FROM audit_events
            {where_clause}
            ORDER BY timestamp DESC, rowid DESC
            LIMIT ?
            """,
            params,
        )
        return [
            AuditEvent(
                id=row["id"],
                action=row["action"],
                actor_id=row["actor_id"],
                actor_role=row["actor_role"],
                data=json.loads(row["data"]),
                timestamp=_parse_ts(row["timestamp"]),
            )
            for row in await cursor.fetchall()
        ]

    # Lifecycle

    @_serialized
    async def clear(self) -> None:
        """Clear all data."""
        tables = [
            "message_reads",
            "attachments",
            "messages",
            "conversations",
            "attendance_records",
            "audit_events",
            "students",
            "teachers",
            "office_staff",
            "classes",
        ]
        for table in tables:
            await self._conn.execute(f"DELETE FROM {table}")
        await self._conn.commit()

    # Row mapping

    @staticmethod
    def _row_to_class(row: aiosqlite.Row) -> ClassInfo:
        return ClassInfo(
            id=row["id"],
            name=row["name"],
            session=row["session"],
            major=row["major"],
            semester=row["semester"],
            student_count=row["student_count"],
        )

    @staticmethod
    def _row_to_user(row: aiosqlite.Row, role: Role) -> User:
        if role is Role.STUDENT:
            return Student(
                id=row["id"],
                first_name=row["first_name"],
                last_name=row["last_name"],
                student_number=row["student_number"],
                class_id=row["class_id"],
                programs=row["programs"],
                status=row["status"],
            )
        if role is Role.TEACHER:
            return Teacher(
                id=row["id"],
                first_name=row["first_name"],
                last_name=row["last_name"],
                departments=json.loads(row["departments"]),
                subjects=json.loads(row["subjects"]),
                status=row["status"],
            )
        return OfficeStaff(
            id=row["id"],
            first_name=row["first_name"],
            last_name=row["last_name"],
        )

    @staticmethod
    def _row_to_conversation(row: aiosqlite.Row) -> Conversation:
        return Conversation(
            id=row["id"],
            participant_a=Participant(row["participant_a_id"], Role(row["participant_a_role"])),
            participant_b=Participant(row["participant_b_id"], Role(row["participant_b_role"])),
            created_at=_parse_ts(row["created_at"]),
            last_message_at=_parse_ts(row["last_message_at"]),
            last_message_preview=row["last_message_preview"],
        )

    @staticmethod
    def _row_to_attachment(row: aiosqlite.Row) -> Attachment:
        return Attachment(
            id=row["id"],
            message_id=row["message_id"],
            file_name=row["file_name"],
            size=row["size"],
            content_type=row["content_type"],
            storage_ref=row["storage_ref"],
            uploaded_at=_parse_ts(row["uploaded_at"]),
        )

    @staticmethod
    def _row_to_message(row: aiosqlite.Row) -> Message:
        keys = row.keys()
        return Message(
            id=row["id"],
            conversation_id=row["conversation_id"],
            sender_id=row["sender_id"],
            sender_role=Role(row["sender_role"]),
            sender_name=row["sender_name"],
            content=row["content"],
            category=row["category"],
            created_at=_parse_ts(row["created_at"]),
            is_read=bool(row["is_read"]) if "is_read" in keys else False,
            is_forwarded=bool(row["is_forwarded"]),
            forwarded_from_id=row["forwarded_from_id"],
            original_sender_name=row["original_sender_name"],
        )
