"""Task instance status transitions.

Only persisted statuses take part: ``pending`` (or a stored ``missed``) may
move to ``completed``, ``skipped`` or ``cancelled``; those three are final.
Re-applying the status an instance already has is a no-op, which keeps
completion at-most-once per ``(task_definition_id, day)``.
"""

from recovery_os.timeline.exceptions import InvalidStatusTransitionError
from recovery_os.timeline.models import TaskStatus

TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.SKIPPED, TaskStatus.CANCELLED})

_ALLOWED: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: TERMINAL_STATUSES,
    TaskStatus.MISSED: TERMINAL_STATUSES,
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.SKIPPED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}


def can_transition(current: TaskStatus, requested: TaskStatus) -> bool:
    return requested in _ALLOWED.get(current, frozenset())


def check_transition(current: TaskStatus, requested: TaskStatus) -> bool:
    """Return True when the status must change, False for an idempotent repeat.

    Raises InvalidStatusTransitionError for anything else.
    """
    if current == requested and current in TERMINAL_STATUSES:
        return False
    if not can_transition(current, requested):
        raise InvalidStatusTransitionError(current.value, requested.value)
    return True
