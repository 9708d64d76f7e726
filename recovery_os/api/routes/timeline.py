"""Timeline endpoints: recovery days, weeks and task status changes."""

import logging
from datetime import date, datetime
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from recovery_os.api.dependencies import PatientContext, get_patient_context
from recovery_os.config import get_settings
from recovery_os.core.database import get_db
from recovery_os.core.repository import (
    MessageRepository,
    TaskInstanceRepository,
)
from recovery_os.timeline.exceptions import DayOutOfRangeError, InvalidStatusTransitionError
from recovery_os.timeline.indexer import Timeline, build_timeline
from recovery_os.timeline.models import (
    DaySummary,
    RangeSummary,
    RecoveryPhase,
    TaskInstance,
    TaskStatus,
    WeekSummary,
)
from recovery_os.timeline.projector import tasks_for_day

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/patients/{patient_id}")


# ---------------------------------------------------------------------------
# Pydantic request/response schemas
# ---------------------------------------------------------------------------

class TimelineResponse(BaseModel):
    patient_id: str
    surgery_date: date
    current_day: int
    current_phase: RecoveryPhase
    current_week_number: Optional[int] = None
    days: list[DaySummary] = []
    weeks: list[WeekSummary] = []
    summary: RangeSummary


class DayDetailResponse(BaseModel):
    summary: DaySummary
    tasks: list[TaskInstance] = []


class StatusUpdate(BaseModel):
    status: Literal["completed", "skipped", "cancelled"]
    completion_data: Optional[dict[str, Any]] = None


class StatusUpdateResponse(BaseModel):
    task_definition_id: str
    day: int
    status: TaskStatus
    completed_at: Optional[datetime] = None
    changed: bool


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _build(
    ctx: PatientContext,
    db: AsyncSession,
    start_day: int,
    end_day: int,
) -> Timeline:
    pid = ctx.patient.id
    records = await TaskInstanceRepository(db).records_for_range(pid, start_day, end_day)
    message_days = await MessageRepository(db).days_with_messages(pid, start_day, end_day)
    return build_timeline(
        ctx.protocol,
        ctx.anchor,
        start_day,
        end_day,
        records=records,
        has_conversation=message_days.__contains__,
        phases=ctx.phases,
        tz=ctx.tz,
    )


# ---------------------------------------------------------------------------
# Timeline
# ---------------------------------------------------------------------------

@router.get("/timeline", response_model=TimelineResponse)
async def get_timeline(
    start: Optional[int] = Query(None, description="First recovery day (default: configured start)"),
    end: Optional[int] = Query(None, description="Last recovery day (default: configured end)"),
    ctx: PatientContext = Depends(get_patient_context),
    db: AsyncSession = Depends(get_db),
) -> TimelineResponse:
    """Every day in range with phase, task counts, status and conversation flag."""
    settings = get_settings()
    start_day = settings.timeline_start_day if start is None else start
    end_day = settings.timeline_end_day if end is None else end
    if start_day > end_day:
        raise HTTPException(status_code=400, detail="start must not be after end")

    timeline = await _build(ctx, db, start_day, end_day)
    current_week = timeline.current_week()
    return TimelineResponse(
        patient_id=str(ctx.patient.id),
        surgery_date=ctx.anchor.surgery_date,
        current_day=timeline.current_day,
        current_phase=ctx.phases.phase_for(timeline.current_day),
        current_week_number=current_week.week_number if current_week else None,
        days=timeline.days,
        weeks=timeline.weeks,
        summary=timeline.summary(),
    )


@router.get("/timeline/weeks/{day}", response_model=WeekSummary)
async def get_week_containing(
    day: int,
    ctx: PatientContext = Depends(get_patient_context),
    db: AsyncSession = Depends(get_db),
) -> WeekSummary:
    settings = get_settings()
    timeline = await _build(ctx, db, settings.timeline_start_day, settings.timeline_end_day)
    try:
        return timeline.find_week_containing(day)
    except DayOutOfRangeError:
        raise HTTPException(status_code=404, detail=f"No data for day {day}")


@router.get("/catch-up", response_model=list[DaySummary])
async def get_catch_up(
    ctx: PatientContext = Depends(get_patient_context),
    db: AsyncSession = Depends(get_db),
) -> list[DaySummary]:
    """Past days with missed tasks, for 'catch up' prompts."""
    settings = get_settings()
    end_day = min(ctx.current_day, settings.timeline_end_day)
    if end_day < settings.timeline_start_day:
        return []
    timeline = await _build(ctx, db, settings.timeline_start_day, end_day)
    return timeline.catch_up()


# ---------------------------------------------------------------------------
# Single day
# ---------------------------------------------------------------------------

@router.get("/days/{day}", response_model=DayDetailResponse)
async def get_day(
    day: int,
    ctx: PatientContext = Depends(get_patient_context),
    db: AsyncSession = Depends(get_db),
) -> DayDetailResponse:
    """Task instances active on *day* merged with their recorded status."""
    timeline = await _build(ctx, db, day, day)
    return DayDetailResponse(summary=timeline.find_day(day), tasks=timeline.tasks_on(day))


@router.post(
    "/tasks/{task_id}/days/{day}/status",
    response_model=StatusUpdateResponse,
)
async def update_task_status(
    task_id: str,
    day: int,
    body: StatusUpdate,
    ctx: PatientContext = Depends(get_patient_context),
    db: AsyncSession = Depends(get_db),
) -> StatusUpdateResponse:
    """Complete, skip or cancel one task occurrence.

    Repeating a completion is accepted and reported with ``changed=false``.
    Days after the patient's current day cannot be changed yet (409).
    """
    task = next((t for t in ctx.protocol.tasks if t.id == task_id), None)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task {task_id!r} is not in the patient's protocol")
    current_day = ctx.current_day
    scheduled = tasks_for_day(
        ctx.protocol, day, current_day,
        phases=ctx.phases, surgery_date=ctx.anchor.surgery_date,
    )
    if not any(i.task_definition_id == task_id for i in scheduled):
        raise HTTPException(status_code=404, detail=f"Task {task_id!r} is not scheduled on day {day}")
    if day > current_day:
        raise HTTPException(
            status_code=409,
            detail=f"Day {day} is after the current recovery day {current_day}",
        )

    repo = TaskInstanceRepository(db)
    try:
        row, changed = await repo.record_status(
            ctx.patient.id, task_id, day, TaskStatus(body.status),
            completion_data=body.completion_data,
        )
    except InvalidStatusTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if changed:
        logger.info("Patient %s task %s day %d -> %s", ctx.patient.id, task_id, day, body.status)

    return StatusUpdateResponse(
        task_definition_id=row.task_definition_id,
        day=row.day,
        status=TaskStatus(row.status),
        completed_at=row.completed_at,
        changed=changed,
    )
