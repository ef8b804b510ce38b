"""Tests for Storage."""

import asyncio
from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from campus.errors import PersistenceError
from campus.models import (
    Attachment,
    AttendanceRecord,
    AttendanceStatus,
    AuditEvent,
    ClassInfo,
    Message,
    Participant,
    Role,
    Student,
    Teacher,
)

OFFICE = Participant("office-1", Role.OFFICE)
TEACHER = Participant("teacher-1", Role.TEACHER)
STUDENT = Participant("student-1", Role.STUDENT)


def make_message(conversation_id, sender: Participant, content="Hello", **kwargs):
    return Message(
        id=kwargs.pop("id", None),
        conversation_id=conversation_id,
        sender_id=sender.id,
        sender_role=sender.role,
        sender_name=kwargs.pop("sender_name", "Sender"),
        content=content,
        created_at=kwargs.pop("created_at", datetime.now(timezone.utc)),
        **kwargs,
    )


class TestStorageInit:
    """Tests for Storage initialization."""

    async def test_init_creates_tables(self, storage):
        """Test that init creates all tables."""
        async with storage._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ) as cursor:
            tables = {row[0] for row in await cursor.fetchall()}

        assert {
            "classes",
            "students",
            "teachers",
            "office_staff",
            "attendance_records",
            "conversations",
            "messages",
            "attachments",
            "message_reads",
            "audit_events",
        } <= tables

    async def test_uninitialized_storage_raises(self):
        from campus.storage import Storage

        st = Storage(":memory:")
        with pytest.raises(RuntimeError):
            await st.list_classes()


class TestStorageDirectory:
    """Tests for users and classes."""

    async def test_get_user_by_role(self, storage, seeded):
        teacher = await storage.get_user("teacher-1", Role.TEACHER)

        assert isinstance(teacher, Teacher)
        assert teacher.departments == ["Computer Science", "Mathematics"]
        assert teacher.display_name == "Tom Teacher"

    async def test_get_user_wrong_role_is_none(self, storage, seeded):
        assert await storage.get_user("teacher-1", Role.STUDENT) is None

    async def test_get_student(self, storage, seeded):
        student = await storage.get_student("student-1")

        assert isinstance(student, Student)
        assert student.class_id == "class-cs"
        assert student.role is Role.STUDENT

    async def test_list_users_skips_inactive(self, storage, seeded):
        students = await storage.list_users(Role.STUDENT)

        assert {s.id for s in students} == {"student-1", "student-2"}

    async def test_list_class_students(self, storage, seeded):
        active = await storage.list_class_students("class-cs")
        everyone = await storage.list_class_students("class-cs", active_only=False)

        assert len(active) == 2
        assert len(everyone) == 3

    async def test_list_classes_counts_active_students(self, storage, seeded):
        classes = {c.id: c for c in await storage.list_classes()}

        assert classes["class-cs"].student_count == 2
        assert classes["class-en"].student_count == 0

    async def test_list_departments(self, storage, seeded):
        departments = await storage.list_departments()

        assert departments == ["Computer Science", "English", "Mathematics"]


class TestStorageAttendance:
    """Tests for attendance records."""

    async def test_upsert_same_day(self, storage, seeded):
        day = date(2024, 3, 1)
        first = AttendanceRecord(
            id="r1", student_id="student-1", class_id="class-cs", date=day
        )
        await storage.save_attendance_record(first)

        second = AttendanceRecord(
            id="r2",
            student_id="student-1",
            class_id="class-cs",
            date=day,
            periods=[AttendanceStatus.PRESENT] * 6,
        )
        await storage.save_attendance_record(second)

        records = await storage.get_attendance_records("student-1")
        assert len(records) == 1
        assert records[0].id == "r1"
        assert records[0].periods == [AttendanceStatus.PRESENT] * 6

    async def test_wrong_period_count_rejected(self, storage, seeded):
        bad = AttendanceRecord(
            id="r1",
            student_id="student-1",
            class_id="class-cs",
            date=date(2024, 3, 1),
            periods=[AttendanceStatus.PRESENT] * 5,
        )
        with pytest.raises(ValueError):
            await storage.save_attendance_record(bad)


class TestStorageConversations:
    """Tests for conversation resolution."""

    async def test_same_conversation_both_directions(self, storage):
        first = await storage.get_or_create_conversation(TEACHER, STUDENT)
        second = await storage.get_or_create_conversation(STUDENT, TEACHER)

        assert first.id == second.id

    async def test_canonical_order(self, storage):
        conversation = await storage.get_or_create_conversation(TEACHER, OFFICE)

        assert conversation.participant_a == OFFICE
        assert conversation.participant_b == TEACHER

    async def test_same_id_different_roles_are_distinct(self, storage):
        a = await storage.get_or_create_conversation(
            TEACHER, Participant("x", Role.STUDENT)
        )
        b = await storage.get_or_create_conversation(
            TEACHER, Participant("x", Role.OFFICE)
        )

        assert a.id != b.id

    async def test_self_conversation_rejected(self, storage):
        with pytest.raises(ValueError):
            await storage.get_or_create_conversation(TEACHER, TEACHER)

    async def test_concurrent_creation_yields_one_row(self, storage):
        results = await asyncio.gather(
            *(storage.get_or_create_conversation(TEACHER, STUDENT) for _ in range(5)),
            *(storage.get_or_create_conversation(STUDENT, TEACHER) for _ in range(5)),
        )

        assert len({c.id for c in results}) == 1
        async with storage._conn.execute("SELECT COUNT(*) FROM conversations") as cursor:
            assert (await cursor.fetchone())[0] == 1

    async def test_list_skips_conversations_without_messages(self, storage):
        await storage.get_or_create_conversation(TEACHER, OFFICE)
        active = await storage.get_or_create_conversation(TEACHER, STUDENT)
        await storage.save_message(make_message(active.id, STUDENT))

        rows = await storage.list_conversations(TEACHER)

        assert [c.id for c, _ in rows] == [active.id]
        assert await storage.list_conversations(OFFICE) == []

    async def test_list_conversations_newest_first(self, storage):
        older = await storage.get_or_create_conversation(TEACHER, STUDENT)
        newer = await storage.get_or_create_conversation(TEACHER, OFFICE)
        now = datetime.now(timezone.utc)

        await storage.save_message(
            make_message(newer.id, OFFICE, created_at=now - timedelta(minutes=5))
        )
        await storage.save_message(make_message(older.id, STUDENT, created_at=now))

        rows = await storage.list_conversations(TEACHER)

        assert [c.id for c, _ in rows] == [older.id, newer.id]
        assert [unread for _, unread in rows] == [1, 1]


class TestStorageMessages:
    """Tests for Message storage."""

    async def test_save_message_updates_conversation(self, storage):
        conversation = await storage.get_or_create_conversation(TEACHER, STUDENT)
        msg = make_message(conversation.id, TEACHER, content="x" * 150)

        await storage.save_message(msg)

        stored = await storage.get_conversation(conversation.id)
        assert msg.id is not None
        assert stored.last_message_preview == "x" * 100
        assert stored.last_message_at == msg.created_at

    async def test_save_message_with_attachments(self, storage):
        conversation = await storage.get_or_create_conversation(TEACHER, STUDENT)
        now = datetime.now(timezone.utc)
        msg = make_message(
            conversation.id,
            TEACHER,
            id="m1",
            attachments=[
                Attachment(
                    id="a1",
                    message_id="m1",
                    file_name="notes.pdf",
                    size=3,
                    content_type="application/pdf",
                    storage_ref="messages/m1/notes.pdf",
                    uploaded_at=now,
                )
            ],
        )
        await storage.save_message(msg)

        stored = await storage.get_message("m1")
        assert [a.file_name for a in stored.attachments] == ["notes.pdf"]

    async def test_unknown_conversation_rolls_back(self, storage):
        msg = make_message("missing", TEACHER, id="m1")

        with pytest.raises(PersistenceError):
            await storage.save_message(msg)

        assert await storage.get_message("m1") is None

    async def test_cancelled_write_leaves_nothing_behind(self, storage):
        conversation = await storage.get_or_create_conversation(TEACHER, STUDENT)
        msg = make_message(
            conversation.id,
            TEACHER,
            id="m1",
            attachments=[
                Attachment(
                    id="a1",
                    message_id="m1",
                    file_name="notes.pdf",
                    size=3,
                    content_type="application/pdf",
                    storage_ref="messages/m1/notes.pdf",
                    uploaded_at=datetime.now(timezone.utc),
                )
            ],
        )
        real_execute = storage._conn.execute

        def execute(sql, *args, **kwargs):
            if "INSERT INTO attachments" in sql:
                raise asyncio.CancelledError()
            return real_execute(sql, *args, **kwargs)

        with patch.object(storage._conn, "execute", new=execute):
            with pytest.raises(asyncio.CancelledError):
                await storage.save_message(msg)

        # A later commit on the shared connection must not publish the message.
        await storage.save_class(ClassInfo(id="c1", name="CS-101", session="MORNING"))

        async with storage._conn.execute("SELECT COUNT(*) FROM messages") as cursor:
            messages = (await cursor.fetchone())[0]
        async with storage._conn.execute("SELECT COUNT(*) FROM attachments") as cursor:
            attachments = (await cursor.fetchone())[0]
        assert (messages, attachments) == (0, 0)
        assert (await storage.get_conversation(conversation.id)).last_message_at is None

    async def test_get_attachment(self, storage):
        conversation = await storage.get_or_create_conversation(TEACHER, STUDENT)
        await storage.save_message(
            make_message(
                conversation.id,
                TEACHER,
                id="m1",
                attachments=[
                    Attachment(
                        id="a1",
                        message_id="m1",
                        file_name="notes.pdf",
                        size=3,
                        content_type="application/pdf",
                        storage_ref="messages/m1/notes.pdf",
                        uploaded_at=datetime.now(timezone.utc),
                    )
                ],
            )
        )

        attachment = await storage.get_attachment("a1")

        assert attachment.message_id == "m1"
        assert attachment.storage_ref == "messages/m1/notes.pdf"
        assert await storage.get_attachment("missing") is None

    async def test_get_messages_chronological_with_read_flag(self, storage):
        conversation = await storage.get_or_create_conversation(TEACHER, STUDENT)
        now = datetime.now(timezone.utc)
        await storage.save_message(
            make_message(conversation.id, TEACHER, "first", id="m1", created_at=now)
        )
        await storage.save_message(
            make_message(
                conversation.id,
                STUDENT,
                "second",
                id="m2",
                created_at=now + timedelta(seconds=1),
            )
        )

        as_teacher = await storage.get_messages(conversation.id, TEACHER)
        as_student = await storage.get_messages(conversation.id, STUDENT)

        assert [m.content for m in as_teacher] == ["first", "second"]
        assert [m.is_read for m in as_teacher] == [True, False]
        assert [m.is_read for m in as_student] == [False, True]

    async def test_get_messages_pagination(self, storage):
        conversation = await storage.get_or_create_conversation(TEACHER, STUDENT)
        now = datetime.now(timezone.utc)
        for i in range(5):
            await storage.save_message(
                make_message(
                    conversation.id,
                    TEACHER,
                    f"m{i}",
                    created_at=now + timedelta(seconds=i),
                )
            )

        page = await storage.get_messages(conversation.id, TEACHER, limit=2, offset=2)

        assert [m.content for m in page] == ["m2", "m3"]


class TestStorageSearch:
    """Tests for message search."""

    async def test_only_viewer_conversations_newest_first(self, storage):
        mine = await storage.get_or_create_conversation(TEACHER, STUDENT)
        other = await storage.get_or_create_conversation(OFFICE, STUDENT)
        now = datetime.now(timezone.utc)
        await storage.save_message(
            make_message(
                mine.id,
                TEACHER,
                "Exam on Monday",
                id="m1",
                created_at=now - timedelta(minutes=1),
            )
        )
        await storage.save_message(
            make_message(mine.id, STUDENT, "Which EXAM room?", id="m2", created_at=now)
        )
        await storage.save_message(make_message(other.id, OFFICE, "Exam fees", id="m3"))

        found = await storage.search_messages(TEACHER, "exam")

        assert [m.id for m in found] == ["m2", "m1"]
        assert [m.is_read for m in found] == [False, True]

    async def test_wildcards_are_literal(self, storage):
        conversation = await storage.get_or_create_conversation(TEACHER, STUDENT)
        await storage.save_message(make_message(conversation.id, TEACHER, "100% done", id="m1"))
        await storage.save_message(make_message(conversation.id, TEACHER, "100 done", id="m2"))

        found = await storage.search_messages(STUDENT, "0%")

        assert [m.id for m in found] == ["m1"]

    async def test_limit(self, storage):
        conversation = await storage.get_or_create_conversation(TEACHER, STUDENT)
        for i in range(3):
            await storage.save_message(make_message(conversation.id, TEACHER, f"note {i}"))

        assert len(await storage.search_messages(STUDENT, "note", limit=2)) == 2


class TestStorageReadState:
    """Tests for read receipts."""

    async def test_mark_read_is_idempotent(self, storage):
        conversation = await storage.get_or_create_conversation(TEACHER, STUDENT)
        await storage.save_message(make_message(conversation.id, TEACHER, id="m1"))

        assert await storage.unread_count(STUDENT) == 1
        assert await storage.mark_read("m1", STUDENT) is True
        assert await storage.mark_read("m1", STUDENT) is False
        assert await storage.unread_count(STUDENT) == 0

    async def test_own_messages_never_unread(self, storage):
        conversation = await storage.get_or_create_conversation(TEACHER, STUDENT)
        await storage.save_message(make_message(conversation.id, TEACHER))

        assert await storage.unread_count(TEACHER) == 0

    async def test_mark_conversation_and_all_read(self, storage):
        c1 = await storage.get_or_create_conversation(TEACHER, STUDENT)
        c2 = await storage.get_or_create_conversation(OFFICE, STUDENT)
        await storage.save_message(make_message(c1.id, TEACHER))
        await storage.save_message(make_message(c1.id, TEACHER))
        await storage.save_message(make_message(c2.id, OFFICE))

        assert await storage.mark_conversation_read(c1.id, STUDENT) == 2
        assert await storage.unread_count(STUDENT) == 1
        assert await storage.mark_all_read(STUDENT) == 1
        assert await storage.mark_all_read(STUDENT) == 0
        assert await storage.unread_count(STUDENT) == 0

    async def test_get_unread_messages_newest_first(self, storage):
        conversation = await storage.get_or_create_conversation(TEACHER, STUDENT)
        now = datetime.now(timezone.utc)
        for i in range(3):
            await storage.save_message(
                make_message(
                    conversation.id,
                    TEACHER,
                    f"m{i}",
                    created_at=now + timedelta(seconds=i),
                )
            )

        unread = await storage.get_unread_messages(STUDENT, limit=2)

        assert [m.content for m in unread] == ["m2", "m1"]


class TestStorageAudit:
    """Tests for audit events."""

    async def test_save_and_filter(self, storage):
        now = datetime.now(timezone.utc)
        await storage.save_audit_event(
            AuditEvent(
                id="e1",
                action="message_sent",
                actor_id="teacher-1",
                actor_role="teacher",
                data={"message_id": "m1"},
                timestamp=now,
            )
        )
        await storage.save_audit_event(
            AuditEvent(
                id="e2",
                action="broadcast_sent",
                actor_id="office-1",
                actor_role="office",
                data={"class_id": "class-cs"},
                timestamp=now + timedelta(seconds=1),
            )
        )

        all_events = await storage.get_audit_events()
        sent = await storage.get_audit_events(action="message_sent")

        assert [e.id for e in all_events] == ["e2", "e1"]
        assert [e.data for e in sent] == [{"message_id": "m1"}]


class TestStorageClear:
    async def test_clear_removes_everything(self, storage, seeded):
        conversation = await storage.get_or_create_conversation(TEACHER, STUDENT)
        await storage.save_message(make_message(conversation.id, TEACHER))

        await storage.clear()

        assert await storage.list_classes() == []
        assert await storage.list_conversations(TEACHER) == []
        assert await storage.get_user("teacher-1", Role.TEACHER) is None
