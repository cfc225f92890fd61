'''
The lesson status state machine.

Every status change in the system is validated against ALLOWED_TRANSITIONS.
'''
from types import MappingProxyType

from ..common.exceptions import StateInvalidError
from ..database.db_enums import LessonStatus

ALLOWED_TRANSITIONS = MappingProxyType({
    LessonStatus.PENDING_CONFIRMATION: frozenset({LessonStatus.CONFIRMED}),
    LessonStatus.SCHEDULED: frozenset({
        LessonStatus.CONFIRMED,
        LessonStatus.COMPLETED,
        LessonStatus.CANCELLED,
        LessonStatus.NO_SHOW,
    }),
    LessonStatus.CONFIRMED: frozenset({
        LessonStatus.COMPLETED,
        LessonStatus.CANCELLED,
        LessonStatus.NO_SHOW,
    }),
    # "uncomplete" is the only backward transition
    LessonStatus.COMPLETED: frozenset({LessonStatus.CONFIRMED}),
    LessonStatus.CANCELLED: frozenset(),
    LessonStatus.NO_SHOW: frozenset(),
})

# Lessons in these statuses occupy their time slot.
BLOCKING_STATUSES = frozenset({
    LessonStatus.SCHEDULED,
    LessonStatus.CONFIRMED,
    LessonStatus.PENDING_CONFIRMATION,
})

# Only these may have their date, time or duration changed.
RESCHEDULABLE_STATUSES = frozenset({
    LessonStatus.SCHEDULED,
    LessonStatus.CONFIRMED,
})

TERMINAL_STATUSES = frozenset(status for status, targets in ALLOWED_TRANSITIONS.items() if not targets)


def can_transition(current: LessonStatus | str, target: LessonStatus | str) -> bool:
    return LessonStatus(target) in ALLOWED_TRANSITIONS[LessonStatus(current)]


def assert_transition(current: LessonStatus | str, target: LessonStatus | str) -> None:
    """Raises StateInvalidError if `current -> target` is not a legal transition."""
    current, target = LessonStatus(current), LessonStatus(target)
    if not can_transition(current, target):
        allowed = sorted(s.value for s in ALLOWED_TRANSITIONS[current])
        raise StateInvalidError(
            f"Cannot change lesson status from {current.value} to {target.value}.",
            details={"current_status": current.value, "target_status": target.value, "allowed": allowed}
        )


def assert_reschedulable(current: LessonStatus | str) -> None:
    current = LessonStatus(current)
    if current not in RESCHEDULABLE_STATUSES:
        raise StateInvalidError(
            f"A lesson in status {current.value} cannot be rescheduled.",
            details={"current_status": current.value}
        )
