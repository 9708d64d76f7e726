"""Patient endpoints: enrollment, protocol assignment and chat-day records."""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from recovery_os.api.dependencies import (
    PatientContext,
    get_clinic_timezone,
    get_patient_context,
    get_phase_registry,
    parse_uuid,
)
from recovery_os.core.database import get_db
from recovery_os.core.models import Patient
from recovery_os.core.repository import (
    MessageRepository,
    PatientRepository,
    ProtocolRepository,
    protocol_to_model,
)
from recovery_os.timeline.clock import day_for, day_label
from recovery_os.timeline.exceptions import InvalidProtocolError
from recovery_os.timeline.models import RecoveryPhase
from recovery_os.timeline.recurrence import validate_protocol

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/patients")


class PatientCreate(BaseModel):
    first_name: str
    last_name: str
    surgery_date: date
    surgery_type: str
    email: Optional[str] = None
    protocol_id: Optional[str] = None


class PatientResponse(BaseModel):
    id: str
    first_name: str
    last_name: str
    surgery_date: date
    surgery_type: str
    email: Optional[str] = None
    protocol_id: Optional[str] = None
    current_day: int
    current_day_label: str
    current_phase: RecoveryPhase


class ProtocolAssignment(BaseModel):
    protocol_id: str


class MessageCreate(BaseModel):
    content: str
    sender: str = "patient"
    recovery_day: Optional[int] = None


class MessageResponse(BaseModel):
    id: str
    patient_id: str
    recovery_day: int
    sender: str
    content: str
    created_at: Optional[datetime] = None


def _patient_to_response(patient: Patient) -> PatientResponse:
    current = day_for(patient.surgery_date, tz=get_clinic_timezone())
    phases = get_phase_registry().table_for(patient.surgery_type)
    return PatientResponse(
        id=str(patient.id),
        first_name=patient.first_name,
        last_name=patient.last_name,
        surgery_date=patient.surgery_date,
        surgery_type=patient.surgery_type,
        email=patient.email,
        protocol_id=str(patient.protocol_id) if patient.protocol_id else None,
        current_day=current,
        current_day_label=day_label(current),
        current_phase=phases.phase_for(current),
    )


async def _load_valid_protocol(db: AsyncSession, protocol_id: str):
    """Fetch a protocol and re-validate it before it is assigned to anyone."""
    pid = parse_uuid(protocol_id, "protocol_id")
    protocol = await ProtocolRepository(db).get_by_id(pid)
    if not protocol:
        raise HTTPException(status_code=404, detail="Protocol not found")
    try:
        validate_protocol(protocol_to_model(protocol))
    except InvalidProtocolError as e:
        logger.warning("Blocked assignment of protocol %s: %s", protocol_id, e)
        raise HTTPException(status_code=422, detail=str(e))
    return protocol


@router.post("", response_model=PatientResponse, status_code=201)
async def create_patient(
    body: PatientCreate,
    db: AsyncSession = Depends(get_db),
) -> PatientResponse:
    protocol_id = None
    if body.protocol_id:
        protocol_id = (await _load_valid_protocol(db, body.protocol_id)).id

    patient = await PatientRepository(db).create(
        first_name=body.first_name,
        last_name=body.last_name,
        surgery_date=body.surgery_date,
        surgery_type=body.surgery_type,
        email=body.email,
        protocol_id=protocol_id,
    )
    return _patient_to_response(patient)


@router.get("", response_model=list[PatientResponse])
async def list_patients(
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> list[PatientResponse]:
    patients = await PatientRepository(db).list(offset=offset, limit=limit)
    return [_patient_to_response(p) for p in patients]


@router.get("/{patient_id}", response_model=PatientResponse)
async def get_patient(ctx: PatientContext = Depends(get_patient_context)) -> PatientResponse:
    return _patient_to_response(ctx.patient)


@router.put("/{patient_id}/protocol", response_model=PatientResponse)
async def assign_protocol(
    patient_id: str,
    body: ProtocolAssignment,
    db: AsyncSession = Depends(get_db),
) -> PatientResponse:
    """Assign a protocol to a patient. Invalid protocols block assignment."""
    pid = parse_uuid(patient_id, "patient_id")
    protocol = await _load_valid_protocol(db, body.protocol_id)
    patient = await PatientRepository(db).assign_protocol(pid, protocol.id)
    if not patient:
        raise HTTPException(status_code=404, detail="Patient not found")
    return _patient_to_response(patient)


@router.post("/{patient_id}/messages", response_model=MessageResponse, status_code=201)
async def record_message(
    body: MessageCreate,
    ctx: PatientContext = Depends(get_patient_context),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Record a chat message against a recovery day (today by default)."""
    day = body.recovery_day if body.recovery_day is not None else ctx.current_day
    msg = await MessageRepository(db).add(ctx.patient.id, day, body.content, sender=body.sender)
    return MessageResponse(
        id=str(msg.id),
        patient_id=str(msg.patient_id),
        recovery_day=msg.recovery_day,
        sender=msg.sender,
        content=msg.content,
        created_at=msg.created_at,
    )
