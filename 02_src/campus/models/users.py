"""User and directory data models."""

from dataclasses import dataclass, field
from enum import Enum


class Role(str, Enum):
    """Account roles. Adding a member breaks every role-keyed table at import."""

    OFFICE = "office"
    TEACHER = "teacher"
    STUDENT = "student"


@dataclass
class User:
    """An authenticated account of any role."""

    id: str
    first_name: str
    last_name: str
    role: Role

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or "Unknown"


@dataclass
class Student(User):
    """A student enrolled in (at most) one class."""

    role: Role = Role.STUDENT
    student_number: str | None = None
    class_id: str | None = None
    programs: str | None = None
    status: str = "ACTIVE"


@dataclass
class Teacher(User):
    """A teacher attached to one or more departments."""

    role: Role = Role.TEACHER
    departments: list[str] = field(default_factory=list)
    subjects: list[str] = field(default_factory=list)
    status: str = "ACTIVE"


@dataclass
class OfficeStaff(User):
    """An office (administration) account."""

    role: Role = Role.OFFICE


@dataclass
class ClassInfo:
    """A class section students are enrolled in."""

    id: str
    name: str
    session: str  # "MORNING" or "AFTERNOON"
    major: str | None = None
    semester: int = 1
    student_count: int = 0
