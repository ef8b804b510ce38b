"""Who may message whom."""

from ..errors import PermissionDenied
from ..models import Role

# sender -> recipients the sender may address
_SEND_MATRIX: dict[Role, frozenset[Role]] = {
    Role.OFFICE: frozenset({Role.OFFICE, Role.TEACHER, Role.STUDENT}),
    Role.TEACHER: frozenset({Role.OFFICE, Role.TEACHER, Role.STUDENT}),
    Role.STUDENT: frozenset({Role.TEACHER}),
}

_BROADCAST_ROLES: frozenset[Role] = frozenset({Role.OFFICE, Role.TEACHER})

_missing = set(Role) - set(_SEND_MATRIX)
if _missing:
    raise RuntimeError(
        f"Send matrix has no row for roles: {sorted(r.value for r in _missing)}"
    )


def can_send(sender_role: Role, recipient_role: Role) -> bool:
    """Return True when sender_role may message recipient_role."""
    return recipient_role in _SEND_MATRIX[sender_role]


def check_can_send(sender_role: Role, recipient_role: Role) -> None:
    """Raise PermissionDenied with a specific reason when the pair is denied."""
    if can_send(sender_role, recipient_role):
        return

    if sender_role is Role.STUDENT and recipient_role is Role.OFFICE:
        raise PermissionDenied(
            "Students cannot message office directly. Please contact your teacher.",
            code="student_to_office",
        )
    if sender_role is Role.STUDENT and recipient_role is Role.STUDENT:
        raise PermissionDenied(
            "Students cannot message other students.",
            code="student_to_student",
        )
    raise PermissionDenied("You do not have permission to message this user")


def can_broadcast(role: Role) -> bool:
    """Return True when role may broadcast to a class."""
    return role in _BROADCAST_ROLES


def check_can_broadcast(role: Role) -> None:
    if not can_broadcast(role):
        raise PermissionDenied(
            "Students cannot send broadcast messages",
            code="students_cannot_broadcast",
        )


def allowed_recipient_roles(sender_role: Role) -> frozenset[Role]:
    """Roles sender_role may message."""
    return _SEND_MATRIX[sender_role]
