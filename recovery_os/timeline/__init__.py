"""Recovery-day and task scheduling for RecoveryOS."""

from recovery_os.timeline.aggregator import (
    day_status,
    missed_task_titles,
    summarize,
    summarize_range,
)
from recovery_os.timeline.clock import date_for, day_for, day_label, today_in
from recovery_os.timeline.exceptions import (
    DayOutOfRangeError,
    InvalidPhaseTableError,
    InvalidProtocolError,
    InvalidRecurrenceRuleError,
    InvalidStatusTransitionError,
    TimelineError,
)
from recovery_os.timeline.indexer import Timeline, build_timeline, group_by_week
from recovery_os.timeline.models import (
    DayStatus,
    DaySummary,
    Protocol,
    RangeSummary,
    RecoveryPhase,
    RecurrenceFrequency,
    RecurrenceRule,
    SurgeryAnchor,
    TaskCounts,
    TaskDefinition,
    TaskInstance,
    TaskStatus,
    TaskType,
    WeekSummary,
)
from recovery_os.timeline.phases import (
    FINE_PHASES,
    PHASE_TABLES,
    STANDARD_PHASES,
    PhaseRange,
    PhaseRegistry,
    PhaseTable,
    phase_for,
    phase_label,
)
from recovery_os.timeline.projector import tasks_for_day
from recovery_os.timeline.recurrence import (
    is_active_on,
    occurrences,
    validate_protocol,
    validate_rule,
)
from recovery_os.timeline.status import TERMINAL_STATUSES, can_transition, check_transition

__all__ = [
    "DayOutOfRangeError",
    "DayStatus",
    "DaySummary",
    "FINE_PHASES",
    "InvalidPhaseTableError",
    "InvalidProtocolError",
    "InvalidRecurrenceRuleError",
    "InvalidStatusTransitionError",
    "PHASE_TABLES",
    "PhaseRange",
    "PhaseRegistry",
    "PhaseTable",
    "Protocol",
    "RangeSummary",
    "RecoveryPhase",
    "RecurrenceFrequency",
    "RecurrenceRule",
    "STANDARD_PHASES",
    "SurgeryAnchor",
    "TERMINAL_STATUSES",
    "TaskCounts",
    "TaskDefinition",
    "TaskInstance",
    "TaskStatus",
    "TaskType",
    "Timeline",
    "TimelineError",
    "WeekSummary",
    "build_timeline",
    "can_transition",
    "check_transition",
    "date_for",
    "day_for",
    "day_label",
    "day_status",
    "group_by_week",
    "is_active_on",
    "missed_task_titles",
    "occurrences",
    "phase_for",
    "phase_label",
    "summarize",
    "summarize_range",
    "tasks_for_day",
    "today_in",
    "validate_protocol",
    "validate_rule",
]
