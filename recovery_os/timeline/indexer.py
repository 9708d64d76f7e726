"""Navigable day/week timeline for a patient's recovery."""

import logging
from datetime import tzinfo
from typing import Callable, Optional, Sequence

from recovery_os.timeline.aggregator import (
    day_status,
    missed_task_titles,
    summarize,
    summarize_range,
)
from recovery_os.timeline.clock import DateLike, date_for, day_for, day_label
from recovery_os.timeline.exceptions import DayOutOfRangeError
from recovery_os.timeline.models import (
    DaySummary,
    Protocol,
    RangeSummary,
    SurgeryAnchor,
    TaskCounts,
    TaskInstance,
    WeekSummary,
)
from recovery_os.timeline.phases import PhaseTable, STANDARD_PHASES
from recovery_os.timeline.projector import InstanceRecords, tasks_for_day

logger = logging.getLogger(__name__)


def _week_label(week_key: int) -> str:
    if week_key < 0:
        return f"Pre-Op Week {-week_key}"
    return f"Week {week_key + 1}"


def group_by_week(days: Sequence[DaySummary], current_day: int) -> list[WeekSummary]:
    """Partition day summaries into 7-day windows.

    Windows are aligned so day 0 opens a week (days 0-6, 7-13, ... and
    -7..-1, -14..-8, ...). Windows at the ends of the range may be short.
    """
    weeks: list[WeekSummary] = []
    current_key: Optional[int] = None

    for summary in sorted(days, key=lambda s: s.day):
        key = summary.day // 7
        if key != current_key:
            weeks.append(
                WeekSummary(
                    week_number=len(weeks) + 1,
                    start_day=summary.day,
                    end_day=summary.day,
                    label=_week_label(key),
                )
            )
            current_key = key
        week = weeks[-1]
        week.days.append(summary)
        week.end_day = summary.day
        week.task_counts = week.task_counts + summary.task_counts
        if summary.task_counts.pending > 0 and summary.day <= current_day:
            week.has_notifications = True

    return weeks


class Timeline:
    """Day and week summaries for ``[start_day, end_day]`` with lookups."""

    def __init__(
        self,
        days: list[DaySummary],
        current_day: int,
        instances: Optional[dict[int, list[TaskInstance]]] = None,
    ):
        if not days:
            raise ValueError("A timeline needs at least one day")
        self.days = days
        self.current_day = current_day
        self._instances = instances or {}
        self.start_day = days[0].day
        self.end_day = days[-1].day
        self.weeks = group_by_week(days, current_day)
        self._week_by_day: dict[int, WeekSummary] = {
            d.day: week for week in self.weeks for d in week.days
        }

    def _check_range(self, day: int) -> None:
        if not self.start_day <= day <= self.end_day:
            raise DayOutOfRangeError(day, self.start_day, self.end_day)

    def find_day(self, day: int) -> DaySummary:
        self._check_range(day)
        return self.days[day - self.start_day]

    def tasks_on(self, day: int) -> list[TaskInstance]:
        """Task instances projected for *day* when the timeline was built."""
        self._check_range(day)
        return self._instances.get(day, [])

    def find_week_containing(self, day: int) -> WeekSummary:
        self._check_range(day)
        return self._week_by_day[day]

    def week(self, week_number: int) -> WeekSummary:
        if not 1 <= week_number <= len(self.weeks):
            raise IndexError(f"No week {week_number}; timeline has {len(self.weeks)} weeks")
        return self.weeks[week_number - 1]

    def current_week(self) -> Optional[WeekSummary]:
        return self._week_by_day.get(self.current_day)

    def filter_days(
        self,
        missed: bool = False,
        completed: bool = False,
        show_future: bool = True,
    ) -> list[DaySummary]:
        """Sidebar filter; with both flags set a day matching either is kept."""
        result = []
        for d in self.days:
            if not show_future and d.day > self.current_day:
                continue
            if missed or completed:
                has_missed = d.task_counts.missed > 0
                has_completed = d.task_counts.completed > 0
                if not ((missed and has_missed) or (completed and has_completed)):
                    continue
            result.append(d)
        return result

    def summary(self) -> RangeSummary:
        return summarize_range(self.days, self.current_day)

    def catch_up(self) -> list[DaySummary]:
        """Days up to today that still have missed tasks, oldest first."""
        return [d for d in self.days if d.day <= self.current_day and d.missed_task_titles]


def build_timeline(
    protocol: Protocol,
    anchor: SurgeryAnchor,
    start_day: int,
    end_day: int,
    as_of: Optional[DateLike] = None,
    records: Optional[InstanceRecords] = None,
    has_conversation: Optional[Callable[[int], bool]] = None,
    phases: PhaseTable = STANDARD_PHASES,
    tz: Optional[tzinfo] = None,
) -> Timeline:
    """Build the timeline for every day in ``[start_day, end_day]``.

    The current recovery day comes from *as_of* (default: today in *tz*).
    *has_conversation* answers whether a day has chat messages; the
    timeline never computes that itself.
    """
    if start_day > end_day:
        raise ValueError(f"start_day {start_day} is after end_day {end_day}")

    surgery_date = anchor.surgery_date
    current_day = day_for(surgery_date, as_of, tz)
    logger.debug(
        "Building timeline for protocol %s: days %d..%d, current day %d",
        protocol.id, start_day, end_day, current_day,
    )

    days: list[DaySummary] = []
    instances_by_day: dict[int, list[TaskInstance]] = {}
    for day in range(start_day, end_day + 1):
        instances = tasks_for_day(
            protocol, day, current_day,
            records=records, phases=phases, surgery_date=surgery_date,
        )
        instances_by_day[day] = instances
        counts: TaskCounts = summarize(instances, day, current_day)
        days.append(
            DaySummary(
                day=day,
                date=date_for(surgery_date, day),
                label=day_label(day),
                phase=phases.phase_for(day),
                task_counts=counts,
                day_status=day_status(counts),
                has_conversation=bool(has_conversation(day)) if has_conversation else False,
                is_today=day == current_day,
                is_future=day > current_day,
                missed_task_titles=missed_task_titles(instances, current_day),
            )
        )

    return Timeline(days, current_day, instances_by_day)
