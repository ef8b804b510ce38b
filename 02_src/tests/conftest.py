"""Pytest configuration and fixtures."""

import os
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

os.environ.setdefault("SESSION_SECRET", "test-session-secret")

from campus.models import ClassInfo, OfficeStaff, Student, Teacher  # noqa: E402


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from campus.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def file_store(tmp_path):
    """Blob store rooted in a temp directory."""
    from campus.storage import LocalFileStore

    return LocalFileStore(tmp_path / "attachments")


@pytest.fixture
def audit_log(storage):
    from campus.audit import AuditLog

    return AuditLog(storage)


@pytest.fixture
def attachment_policy():
    from campus.policy import AttachmentPolicy

    return AttachmentPolicy()


@pytest.fixture
def messaging(storage, file_store, attachment_policy, audit_log):
    """Create MessagingService wired to test storage."""
    from campus.messaging import MessagingService

    return MessagingService(
        storage=storage,
        file_store=file_store,
        attachment_policy=attachment_policy,
        audit_log=audit_log,
    )


@pytest.fixture
def notifications(storage):
    from campus.notifications import NotificationAggregator

    return NotificationAggregator(storage)


@pytest.fixture
def settings(tmp_path):
    """Settings that keep every side effect inside tmp_path."""
    from campus.config import Settings

    return Settings(
        database_url=":memory:",
        session_secret="test-session-secret",
        attachments_dir=tmp_path / "attachments",
        cors_origins=["http://testserver"],
    )


async def seed_directory(storage) -> SimpleNamespace:
    """Save a small school: two classes, office, two teachers, three students."""
    cs = ClassInfo(
        id="class-cs", name="CS-101", session="MORNING", major="Computer Science"
    )
    en = ClassInfo(
        id="class-en", name="EN-201", session="AFTERNOON", major="English", semester=3
    )
    office = OfficeStaff(id="office-1", first_name="Olivia", last_name="Office")
    teacher = Teacher(
        id="teacher-1",
        first_name="Tom",
        last_name="Teacher",
        departments=["Computer Science", "Mathematics"],
        subjects=["Algorithms"],
    )
    teacher2 = Teacher(
        id="teacher-2",
        first_name="Tina",
        last_name="Tutor",
        departments=["English"],
    )
    student = Student(
        id="student-1",
        first_name="Sara",
        last_name="Student",
        student_number="S001",
        class_id=cs.id,
    )
    student2 = Student(
        id="student-2",
        first_name="Sam",
        last_name="Scholar",
        student_number="S002",
        class_id=cs.id,
    )
    inactive = Student(
        id="student-3",
        first_name="Ivan",
        last_name="Inactive",
        student_number="S003",
        class_id=cs.id,
        status="INACTIVE",
    )

    for c in (cs, en):
        await storage.save_class(c)
    await storage.save_office_staff(office)
    for t in (teacher, teacher2):
        await storage.save_teacher(t)
    for s in (student, student2, inactive):
        await storage.save_student(s)

    return SimpleNamespace(
        cs=cs,
        en=en,
        office=office,
        teacher=teacher,
        teacher2=teacher2,
        student=student,
        student2=student2,
        inactive=inactive,
    )


@pytest_asyncio.fixture
async def seeded(storage):
    """Storage populated with the test directory."""
    return await seed_directory(storage)


@pytest_asyncio.fixture
async def application(settings):
    """Started Application on in-memory storage."""
    from campus.app import Application

    app = Application(db_path=":memory:", settings=settings)
    await app.start()
    yield app
    await app.stop()


@pytest_asyncio.fixture
async def directory(application):
    """The test directory saved into the application's storage."""
    return await seed_directory(application.storage)


@pytest_asyncio.fixture
async def client(application):
    """HTTP client bound to the FastAPI app (no network)."""
    import httpx

    from campus.api import create_fastapi_app

    fastapi_app = create_fastapi_app(application)
    transport = httpx.ASGITransport(app=fastapi_app, raise_app_exceptions=False)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://testserver"
    ) as ac:
        yield ac


@pytest.fixture
def auth(application):
    """Return Authorization headers for a user."""

    def _headers(user) -> dict[str, str]:
        return {"Authorization": f"Bearer {application.sessions.issue(user)}"}

    return _headers
