"""Pytest configuration and fixtures."""

from datetime import date

import pytest

from recovery_os.timeline.models import (
    Protocol,
    RecoveryPhase,
    RecurrenceFrequency,
    RecurrenceRule,
    SurgeryAnchor,
    TaskDefinition,
    TaskType,
)


SURGERY_DATE = date(2024, 1, 15)  # a Monday


def make_task(
    task_id: str,
    anchor_day: int,
    frequency: RecurrenceFrequency | None = None,
    interval: int = 1,
    end_day: int | None = None,
    days_of_week: set[int] | None = None,
    **kwargs,
) -> TaskDefinition:
    """Build a task definition; a frequency adds a recurrence rule."""
    recurrence = None
    if frequency is not None:
        recurrence = RecurrenceRule(
            frequency=frequency,
            interval=interval,
            end_day=end_day if end_day is not None else anchor_day,
            days_of_week=days_of_week,
        )
    kwargs.setdefault("title", task_id.replace("-", " ").title())
    return TaskDefinition(id=task_id, anchor_day=anchor_day, recurrence=recurrence, **kwargs)


@pytest.fixture
def surgery_date() -> date:
    return SURGERY_DATE


@pytest.fixture
def anchor(surgery_date) -> SurgeryAnchor:
    return SurgeryAnchor(surgery_date=surgery_date)


@pytest.fixture
def knee_protocol() -> Protocol:
    """A small total-knee protocol covering each scheduling shape."""
    return Protocol(
        id="tka-standard",
        surgery_type="TKA",
        name="Total Knee Standard",
        tasks=[
            make_task("prehab-education", -14, task_type=TaskType.EDUCATION),
            make_task("surgery-checkin", 0, task_type=TaskType.MESSAGE),
            make_task(
                "daily-exercises", 1,
                frequency=RecurrenceFrequency.DAILY, end_day=30,
                task_type=TaskType.EXERCISE,
            ),
            make_task(
                "weekly-assessment", 0,
                frequency=RecurrenceFrequency.WEEKLY, interval=2, end_day=90,
                task_type=TaskType.ASSESSMENT,
            ),
            make_task(
                "pain-diary", 1,
                frequency=RecurrenceFrequency.DAILY, end_day=14,
                task_type=TaskType.FORM, required=False,
            ),
            make_task(
                "early-video", 1,
                frequency=RecurrenceFrequency.DAILY, end_day=60,
                task_type=TaskType.VIDEO, phase=RecoveryPhase.EARLY_RECOVERY,
            ),
        ],
    )


@pytest.fixture
def protocol_json(knee_protocol) -> dict:
    return knee_protocol.model_dump(mode="json")
