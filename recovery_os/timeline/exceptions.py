"""Exceptions raised by the recovery timeline."""


class TimelineError(Exception):
    """Base exception for timeline errors."""

    pass


class InvalidProtocolError(TimelineError):
    """A protocol cannot be assigned to patients."""

    pass


class InvalidRecurrenceRuleError(InvalidProtocolError):
    """A task's recurrence rule cannot be expanded."""

    def __init__(self, task_id: str, reason: str):
        self.task_id = task_id
        self.reason = reason
        super().__init__(f"Task {task_id!r}: {reason}")


class InvalidPhaseTableError(TimelineError):
    """Phase ranges overlap, leave gaps, or are out of order."""

    pass


class DayOutOfRangeError(TimelineError, LookupError):
    """A lookup asked for a day outside the built timeline."""

    def __init__(self, day: int, start_day: int, end_day: int):
        self.day = day
        self.start_day = start_day
        self.end_day = end_day
        super().__init__(f"Day {day} is outside the timeline range [{start_day}, {end_day}]")


class InvalidStatusTransitionError(TimelineError):
    """A task instance cannot move from its current status to the requested one."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change task status from {current!r} to {requested!r}")
