"""Shared FastAPI dependencies for the recovery timeline routes."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo

from fastapi import Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from recovery_os.config import get_settings
from recovery_os.core.database import get_db
from recovery_os.core.models import Patient
from recovery_os.core.repository import PatientRepository, protocol_to_model
from recovery_os.timeline.clock import day_for
from recovery_os.timeline.models import Protocol, SurgeryAnchor
from recovery_os.timeline.phases import PhaseRegistry, PhaseTable


def parse_uuid(value: str, name: str = "ID") -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name}: {value}")


@lru_cache
def get_phase_registry() -> PhaseRegistry:
    """Phase tables per surgery type, defaulting to the configured granularity."""
    settings = get_settings()
    return PhaseRegistry.from_names(settings.phase_granularity, settings.surgery_phase_granularity)


def get_clinic_timezone() -> tzinfo:
    return ZoneInfo(get_settings().clinic_timezone)


@dataclass
class PatientContext:
    """Everything the timeline needs for one patient."""

    patient: Patient
    protocol: Protocol
    anchor: SurgeryAnchor
    phases: PhaseTable
    tz: tzinfo

    @property
    def current_day(self) -> int:
        return day_for(self.anchor.surgery_date, tz=self.tz)


async def get_patient_context(
    patient_id: str,
    db: AsyncSession = Depends(get_db),
) -> PatientContext:
    """Load a patient and the protocol assigned to them.

    A patient without a protocol gets an empty one so their timeline still
    renders (every day reads as having no tasks).
    """
    pid = parse_uuid(patient_id, "patient_id")
    patient = await PatientRepository(db).get_by_id(pid)
    if not patient:
        raise HTTPException(status_code=404, detail="Patient not found")

    if patient.protocol is not None:
        protocol = protocol_to_model(patient.protocol)
    else:
        protocol = Protocol(id="unassigned", surgery_type=patient.surgery_type, tasks=[])

    return PatientContext(
        patient=patient,
        protocol=protocol,
        anchor=SurgeryAnchor(surgery_date=patient.surgery_date),
        phases=get_phase_registry().table_for(patient.surgery_type),
        tz=get_clinic_timezone(),
    )
