"""Pydantic models for the recovery timeline."""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class RecoveryPhase(str, Enum):
    """Named segments of the recovery-day axis."""

    PRE_SURGERY = "pre_surgery"
    IMMEDIATE_POST_OP = "immediate_post_op"
    EARLY_RECOVERY = "early_recovery"
    ACTIVE_RECOVERY = "active_recovery"
    LATE_RECOVERY = "late_recovery"
    MAINTENANCE = "maintenance"


class TaskType(str, Enum):
    MESSAGE = "message"
    VIDEO = "video"
    FORM = "form"
    EXERCISE = "exercise"
    ASSESSMENT = "assessment"
    MEDICATION = "medication"
    EDUCATION = "education"


class TaskStatus(str, Enum):
    """Task instance lifecycle statuses.

    ``UPCOMING`` is never persisted; it marks instances on days after the
    patient's current recovery day.
    """

    PENDING = "pending"
    COMPLETED = "completed"
    MISSED = "missed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"
    UPCOMING = "upcoming"


class DayStatus(str, Enum):
    COMPLETED = "completed"
    MISSED = "missed"
    PENDING = "pending"
    NONE = "none"


class RecurrenceFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class SurgeryAnchor(BaseModel):
    """Day 0 of a patient's recovery."""

    model_config = ConfigDict(frozen=True)

    surgery_date: date


class RecurrenceRule(BaseModel):
    """How a task repeats after its anchor day.

    ``end_day`` is inclusive. ``days_of_week`` uses 0=Monday .. 6=Sunday.
    """

    frequency: RecurrenceFrequency = RecurrenceFrequency.DAILY
    interval: int = 1
    end_day: int
    days_of_week: Optional[set[int]] = None


class TaskDefinition(BaseModel):
    """A protocol-authored task template."""

    id: str
    anchor_day: int
    task_type: TaskType = TaskType.MESSAGE
    title: str
    description: Optional[str] = None
    content: Optional[Any] = None
    required: bool = True
    phase: Optional[RecoveryPhase] = Field(
        default=None,
        description="Restrict the task to days classified in this phase",
    )
    recurrence: Optional[RecurrenceRule] = None


class Protocol(BaseModel):
    """A surgery-type recovery protocol: an ordered list of task definitions."""

    id: str
    surgery_type: str
    name: Optional[str] = None
    tasks: list[TaskDefinition] = []


class TaskInstance(BaseModel):
    """One occurrence of a task definition on a concrete recovery day."""

    task_definition_id: str
    day: int
    status: TaskStatus = TaskStatus.PENDING
    completed_at: Optional[datetime] = None
    completion_data: Optional[Any] = None
    title: str = ""
    task_type: TaskType = TaskType.MESSAGE
    required: bool = True
    position: int = 0

    @property
    def key(self) -> tuple[str, int]:
        return (self.task_definition_id, self.day)


class TaskCounts(BaseModel):
    """Per-status tallies for a day or a range of days.

    ``pending`` includes ``upcoming`` instances; ``skipped`` includes
    cancelled ones. Both still count toward ``total``.
    """

    total: int = 0
    completed: int = 0
    missed: int = 0
    pending: int = 0
    skipped: int = 0
    upcoming: int = 0

    def __add__(self, other: "TaskCounts") -> "TaskCounts":
        return TaskCounts(
            total=self.total + other.total,
            completed=self.completed + other.completed,
            missed=self.missed + other.missed,
            pending=self.pending + other.pending,
            skipped=self.skipped + other.skipped,
            upcoming=self.upcoming + other.upcoming,
        )


class DaySummary(BaseModel):
    """Derived view of a single recovery day."""

    day: int
    date: date
    label: str
    phase: RecoveryPhase
    task_counts: TaskCounts = Field(default_factory=TaskCounts)
    day_status: DayStatus = DayStatus.NONE
    has_conversation: bool = False
    is_today: bool = False
    is_future: bool = False
    missed_task_titles: list[str] = []


class WeekSummary(BaseModel):
    """Seven-day window of the timeline (shorter at range edges)."""

    week_number: int
    start_day: int
    end_day: int
    label: str
    days: list[DaySummary] = []
    task_counts: TaskCounts = Field(default_factory=TaskCounts)
    has_notifications: bool = False


class RangeSummary(BaseModel):
    """Roll-up across a span of days."""

    start_day: int
    end_day: int
    task_counts: TaskCounts = Field(default_factory=TaskCounts)
    compliance_pct: float = 0.0
    days_with_missed: list[int] = []
