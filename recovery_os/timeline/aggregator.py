"""Status roll-ups for task instances, days and ranges.

Missed status is inferred lazily: a required instance still ``pending`` on
a day before the current recovery day counts as missed without anything
having to rewrite the stored record. Optional tasks never become missed,
and nothing on a future day is ever missed.
"""

from typing import Iterable, Optional, Sequence

from recovery_os.timeline.models import (
    DayStatus,
    DaySummary,
    RangeSummary,
    TaskCounts,
    TaskInstance,
    TaskStatus,
)


def is_missed(instance: TaskInstance, day: int, current_day: int) -> bool:
    """Whether *instance* on *day* counts as missed when seen from *current_day*."""
    if day > current_day:
        return False
    if instance.status == TaskStatus.MISSED:
        return True
    return instance.status == TaskStatus.PENDING and instance.required and day < current_day


def summarize(instances: Iterable[TaskInstance], day: int, current_day: int) -> TaskCounts:
    """Count *instances* of a single *day* by effective status."""
    counts = TaskCounts()
    for inst in instances:
        counts.total += 1
        if inst.status == TaskStatus.COMPLETED:
            counts.completed += 1
        elif inst.status in (TaskStatus.SKIPPED, TaskStatus.CANCELLED):
            counts.skipped += 1
        elif is_missed(inst, day, current_day):
            counts.missed += 1
        else:
            counts.pending += 1
            if day > current_day:
                counts.upcoming += 1
    return counts


def day_status(counts: TaskCounts) -> DayStatus:
    if counts.total == 0:
        return DayStatus.NONE
    if counts.missed > 0:
        return DayStatus.MISSED
    if counts.completed == counts.total:
        return DayStatus.COMPLETED
    if counts.pending > 0:
        return DayStatus.PENDING
    return DayStatus.NONE


def missed_task_titles(
    instances: Iterable[TaskInstance],
    current_day: Optional[int] = None,
) -> list[str]:
    """Titles of missed instances, in protocol order.

    Without *current_day* only instances stored as ``missed`` are reported;
    with it the lazy inference rule applies as well.
    """
    missed = [
        inst
        for inst in instances
        if (
            is_missed(inst, inst.day, current_day)
            if current_day is not None
            else inst.status == TaskStatus.MISSED
        )
    ]
    missed.sort(key=lambda inst: (inst.day, inst.position))
    return [inst.title for inst in missed]


def summarize_range(days: Sequence[DaySummary], current_day: int) -> RangeSummary:
    """Aggregate day summaries and compute compliance over the days already due."""
    if not days:
        return RangeSummary(start_day=current_day, end_day=current_day)

    totals = TaskCounts()
    due = TaskCounts()
    for summary in days:
        totals = totals + summary.task_counts
        if summary.day <= current_day:
            due = due + summary.task_counts

    denominator = due.completed + due.missed + due.pending
    compliance = round(due.completed / denominator * 100, 1) if denominator else 0.0

    return RangeSummary(
        start_day=days[0].day,
        end_day=days[-1].day,
        task_counts=totals,
        compliance_pct=compliance,
        days_with_missed=[s.day for s in days if s.task_counts.missed > 0],
    )
