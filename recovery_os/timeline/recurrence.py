"""Recurrence expansion for protocol task definitions."""

from datetime import date
from typing import Iterator, Optional

from recovery_os.timeline.clock import date_for
from recovery_os.timeline.exceptions import InvalidProtocolError, InvalidRecurrenceRuleError
from recovery_os.timeline.models import (
    Protocol,
    RecurrenceFrequency,
    RecurrenceRule,
    TaskDefinition,
)


def validate_rule(task_id: str, rule: RecurrenceRule, anchor_day: int) -> None:
    """Raise InvalidRecurrenceRuleError if *rule* cannot be expanded."""
    if rule.interval <= 0:
        raise InvalidRecurrenceRuleError(task_id, f"interval must be positive, got {rule.interval}")
    if rule.end_day < anchor_day:
        raise InvalidRecurrenceRuleError(
            task_id, f"end_day {rule.end_day} is before anchor_day {anchor_day}"
        )
    if rule.days_of_week:
        bad = sorted(d for d in rule.days_of_week if not 0 <= d <= 6)
        if bad:
            raise InvalidRecurrenceRuleError(task_id, f"invalid weekday indices {bad}")


def validate_protocol(protocol: Protocol) -> None:
    """Validate task ids and every recurrence rule; the first problem raises."""
    seen: set[str] = set()
    for task in protocol.tasks:
        if task.id in seen:
            raise InvalidProtocolError(f"Duplicate task id {task.id!r} in protocol {protocol.id!r}")
        seen.add(task.id)
        if task.recurrence is not None:
            validate_rule(task.id, task.recurrence, task.anchor_day)


def _matches_weekdays(
    rule: RecurrenceRule,
    offset: int,
    interval: int,
    day: int,
    surgery_date: date,
) -> bool:
    if (offset // 7) % interval != 0:
        return False
    return date_for(surgery_date, day).weekday() in rule.days_of_week


def is_active_on(
    task: TaskDefinition,
    day: int,
    surgery_date: Optional[date] = None,
) -> bool:
    """Return True if *task* has an occurrence on recovery *day*.

    The anchor day always matches. Later days match only inside the rule's
    window and on its cadence. Weekday filters need *surgery_date* to map
    recovery days onto the calendar; without it ``custom`` rules match only
    the anchor day and ``weekly`` rules use the plain 7-day cadence.
    ``monthly`` has no cadence beyond the anchor day.
    """
    if day == task.anchor_day:
        return True

    rule = task.recurrence
    if rule is None or day < task.anchor_day or day > rule.end_day:
        return False

    # Rules are validated at authoring time; guard anyway so a bad interval
    # never divides by zero.
    interval = rule.interval if rule.interval > 0 else 1
    offset = day - task.anchor_day

    if rule.frequency == RecurrenceFrequency.DAILY:
        return offset % interval == 0

    if rule.frequency == RecurrenceFrequency.WEEKLY:
        if rule.days_of_week and surgery_date is not None:
            return _matches_weekdays(rule, offset, interval, day, surgery_date)
        return offset % (7 * interval) == 0

    if rule.frequency == RecurrenceFrequency.CUSTOM:
        if rule.days_of_week and surgery_date is not None:
            return _matches_weekdays(rule, offset, interval, day, surgery_date)
        return False

    return False


def occurrences(
    task: TaskDefinition,
    start_day: int,
    end_day: int,
    surgery_date: Optional[date] = None,
) -> Iterator[int]:
    """Yield every day in ``[start_day, end_day]`` on which *task* is active."""
    for day in range(start_day, end_day + 1):
        if is_active_on(task, day, surgery_date):
            yield day
