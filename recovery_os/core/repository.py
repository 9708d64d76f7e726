"""CRUD repositories for patients, protocols, task records and chat messages."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from recovery_os.core.models import (
    ChatMessage,
    Patient,
    ProtocolDB,
    ProtocolTaskDB,
    TaskInstanceDB,
)
from recovery_os.timeline.models import (
    Protocol,
    RecoveryPhase,
    RecurrenceFrequency,
    RecurrenceRule,
    TaskDefinition,
    TaskInstance,
    TaskStatus,
    TaskType,
)
from recovery_os.timeline.status import check_transition

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Row <-> timeline model conversion
# ---------------------------------------------------------------------------

def definition_from_row(row: ProtocolTaskDB) -> TaskDefinition:
    recurrence = None
    if row.recurrence_frequency:
        recurrence = RecurrenceRule(
            frequency=RecurrenceFrequency(row.recurrence_frequency),
            interval=row.recurrence_interval if row.recurrence_interval is not None else 1,
            end_day=row.recurrence_end_day if row.recurrence_end_day is not None else row.anchor_day,
            days_of_week=set(row.recurrence_days_of_week) if row.recurrence_days_of_week else None,
        )
    return TaskDefinition(
        id=row.task_key,
        anchor_day=row.anchor_day,
        task_type=TaskType(row.task_type),
        title=row.title,
        description=row.description,
        content=row.content,
        required=row.required,
        phase=RecoveryPhase(row.phase) if row.phase else None,
        recurrence=recurrence,
    )


def row_from_definition(task: TaskDefinition, position: int) -> ProtocolTaskDB:
    rule = task.recurrence
    return ProtocolTaskDB(
        task_key=task.id,
        position=position,
        anchor_day=task.anchor_day,
        task_type=task.task_type.value,
        title=task.title,
        description=task.description,
        content=task.content,
        required=task.required,
        phase=task.phase.value if task.phase else None,
        recurrence_frequency=rule.frequency.value if rule else None,
        recurrence_interval=rule.interval if rule else None,
        recurrence_end_day=rule.end_day if rule else None,
        recurrence_days_of_week=sorted(rule.days_of_week) if rule and rule.days_of_week else None,
    )


def protocol_to_model(protocol: ProtocolDB) -> Protocol:
    return Protocol(
        id=str(protocol.id),
        surgery_type=protocol.surgery_type,
        name=protocol.name,
        tasks=[definition_from_row(t) for t in sorted(protocol.tasks, key=lambda t: t.position)],
    )


def instance_to_model(row: TaskInstanceDB) -> TaskInstance:
    return TaskInstance(
        task_definition_id=row.task_definition_id,
        day=row.day,
        status=TaskStatus(row.status),
        completed_at=row.completed_at,
        completion_data=row.completion_data,
    )


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------

class ProtocolRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        name: str,
        surgery_type: str,
        tasks: Sequence[TaskDefinition],
        description: Optional[str] = None,
    ) -> ProtocolDB:
        protocol = ProtocolDB(
            name=name,
            surgery_type=surgery_type,
            description=description,
            tasks=[row_from_definition(t, i) for i, t in enumerate(tasks)],
        )
        self.session.add(protocol)
        await self.session.flush()
        return protocol

    async def get_by_id(self, protocol_id: uuid.UUID) -> Optional[ProtocolDB]:
        return await self.session.get(ProtocolDB, protocol_id)

    async def list(self, surgery_type: Optional[str] = None, active_only: bool = True) -> Sequence[ProtocolDB]:
        stmt = select(ProtocolDB)
        if active_only:
            stmt = stmt.where(ProtocolDB.active.is_(True))
        if surgery_type:
            stmt = stmt.where(ProtocolDB.surgery_type == surgery_type)
        stmt = stmt.order_by(ProtocolDB.name)
        result = await self.session.execute(stmt)
        return result.scalars().all()


class PatientRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Patient:
        patient = Patient(**kwargs)
        self.session.add(patient)
        await self.session.flush()
        return patient

    async def get_by_id(self, patient_id: uuid.UUID) -> Optional[Patient]:
        return await self.session.get(Patient, patient_id)

    async def list(self, offset: int = 0, limit: int = 50, active_only: bool = True) -> Sequence[Patient]:
        stmt = select(Patient)
        if active_only:
            stmt = stmt.where(Patient.active.is_(True))
        stmt = stmt.order_by(Patient.last_name, Patient.first_name).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def assign_protocol(self, patient_id: uuid.UUID, protocol_id: uuid.UUID) -> Optional[Patient]:
        patient = await self.get_by_id(patient_id)
        if not patient:
            return None
        patient.protocol_id = protocol_id
        patient.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        await self.session.refresh(patient, attribute_names=["protocol"])
        return patient


class TaskInstanceRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, patient_id: uuid.UUID, task_definition_id: str, day: int) -> Optional[TaskInstanceDB]:
        stmt = select(TaskInstanceDB).where(
            TaskInstanceDB.patient_id == patient_id,
            TaskInstanceDB.task_definition_id == task_definition_id,
            TaskInstanceDB.day == day,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_range(self, patient_id: uuid.UUID, start_day: int, end_day: int) -> Sequence[TaskInstanceDB]:
        stmt = (
            select(TaskInstanceDB)
            .where(
                TaskInstanceDB.patient_id == patient_id,
                TaskInstanceDB.day >= start_day,
                TaskInstanceDB.day <= end_day,
            )
            .order_by(TaskInstanceDB.day)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def records_for_range(
        self, patient_id: uuid.UUID, start_day: int, end_day: int
    ) -> dict[tuple[str, int], TaskInstance]:
        """Persisted instances keyed by ``(task_definition_id, day)``."""
        rows = await self.list_for_range(patient_id, start_day, end_day)
        return {(r.task_definition_id, r.day): instance_to_model(r) for r in rows}

    async def record_status(
        self,
        patient_id: uuid.UUID,
        task_definition_id: str,
        day: int,
        status: TaskStatus,
        completion_data: Optional[dict[str, Any]] = None,
    ) -> tuple[TaskInstanceDB, bool]:
        """Apply a status change, returning the row and whether it changed.

        Repeating the status a row already holds is a no-op. Raises
        InvalidStatusTransitionError for disallowed changes.
        """
        row = await self.get(patient_id, task_definition_id, day)
        if row is not None:
            return await self._apply(row, status, completion_data)

        check_transition(TaskStatus.PENDING, status)
        row = TaskInstanceDB(
            patient_id=patient_id,
            task_definition_id=task_definition_id,
            day=day,
            status=status.value,
            completed_at=datetime.now(timezone.utc) if status == TaskStatus.COMPLETED else None,
            completion_data=completion_data,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(row)
                await self.session.flush()
        except IntegrityError:
            # A concurrent writer recorded this occurrence first
            logger.info(
                "Task instance %s/%s day %d already recorded; re-checking",
                patient_id, task_definition_id, day,
            )
            existing = await self.get(patient_id, task_definition_id, day)
            return await self._apply(existing, status, completion_data)
        return row, True

    async def _apply(
        self,
        row: TaskInstanceDB,
        status: TaskStatus,
        completion_data: Optional[dict[str, Any]],
    ) -> tuple[TaskInstanceDB, bool]:
        if not check_transition(TaskStatus(row.status), status):
            return row, False
        row.status = status.value
        if status == TaskStatus.COMPLETED:
            row.completed_at = datetime.now(timezone.utc)
        if completion_data is not None:
            row.completion_data = completion_data
        await self.session.flush()
        return row, True


class MessageRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, patient_id: uuid.UUID, recovery_day: int, content: str, sender: str = "patient") -> ChatMessage:
        msg = ChatMessage(patient_id=patient_id, recovery_day=recovery_day, content=content, sender=sender)
        self.session.add(msg)
        await self.session.flush()
        return msg

    async def days_with_messages(
        self,
        patient_id: uuid.UUID,
        start_day: Optional[int] = None,
        end_day: Optional[int] = None,
    ) -> set[int]:
        stmt = select(ChatMessage.recovery_day).where(ChatMessage.patient_id == patient_id).distinct()
        if start_day is not None:
            stmt = stmt.where(ChatMessage.recovery_day >= start_day)
        if end_day is not None:
            stmt = stmt.where(ChatMessage.recovery_day <= end_day)
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def list_for_day(self, patient_id: uuid.UUID, recovery_day: int) -> Sequence[ChatMessage]:
        stmt = (
            select(ChatMessage)
            .where(ChatMessage.patient_id == patient_id, ChatMessage.recovery_day == recovery_day)
            .order_by(ChatMessage.created_at)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
