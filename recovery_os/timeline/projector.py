"""Project a protocol onto a single recovery day."""

from datetime import date
from typing import Mapping, Optional

from recovery_os.timeline.models import Protocol, TaskInstance, TaskStatus
from recovery_os.timeline.phases import PhaseTable, STANDARD_PHASES
from recovery_os.timeline.recurrence import is_active_on
from recovery_os.timeline.status import TERMINAL_STATUSES

InstanceRecords = Mapping[tuple[str, int], TaskInstance]


def _status_for(record: Optional[TaskInstance], day: int, current_day: int) -> TaskStatus:
    if record is not None and record.status in TERMINAL_STATUSES:
        return record.status
    if day > current_day:
        return TaskStatus.UPCOMING
    if record is not None and record.status == TaskStatus.MISSED:
        return record.status
    return TaskStatus.PENDING


def tasks_for_day(
    protocol: Protocol,
    day: int,
    current_day: int,
    records: Optional[InstanceRecords] = None,
    phases: PhaseTable = STANDARD_PHASES,
    surgery_date: Optional[date] = None,
) -> list[TaskInstance]:
    """Return the task instances active on *day*, in protocol order.

    *records* maps ``(task_definition_id, day)`` to persisted instances.
    A missing record is normal and reads as ``pending``. Every
    non-final status after *current_day* reads as ``upcoming``, including a
    stored ``missed``. Persisted ``completed``/``skipped``/``cancelled``
    statuses are passed through untouched; nothing here infers ``missed``.
    """
    records = records or {}
    day_phase = phases.phase_for(day)
    instances: list[TaskInstance] = []

    for position, task in enumerate(protocol.tasks):
        if task.phase is not None and task.phase != day_phase:
            continue
        if not is_active_on(task, day, surgery_date):
            continue

        record = records.get((task.id, day))
        instances.append(
            TaskInstance(
                task_definition_id=task.id,
                day=day,
                status=_status_for(record, day, current_day),
                completed_at=record.completed_at if record else None,
                completion_data=record.completion_data if record else None,
                title=task.title,
                task_type=task.task_type,
                required=task.required,
                position=position,
            )
        )
    return instances
