"""Protocol endpoints: validate, store and read recovery protocols."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from recovery_os.api.dependencies import parse_uuid
from recovery_os.core.database import get_db
from recovery_os.core.repository import ProtocolRepository, protocol_to_model
from recovery_os.timeline.exceptions import InvalidProtocolError
from recovery_os.timeline.models import Protocol, TaskDefinition
from recovery_os.timeline.recurrence import validate_protocol

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/protocols")


class ProtocolCreate(BaseModel):
    name: str
    surgery_type: str
    description: Optional[str] = None
    tasks: list[TaskDefinition] = []


class ValidationResult(BaseModel):
    valid: bool
    error: Optional[str] = None
    task_id: Optional[str] = None


def _check(body: ProtocolCreate) -> ValidationResult:
    draft = Protocol(id="draft", surgery_type=body.surgery_type, name=body.name, tasks=body.tasks)
    try:
        validate_protocol(draft)
    except InvalidProtocolError as e:
        return ValidationResult(valid=False, error=str(e), task_id=getattr(e, "task_id", None))
    return ValidationResult(valid=True)


@router.post("/validate", response_model=ValidationResult)
async def validate_protocol_definition(body: ProtocolCreate) -> ValidationResult:
    """Check a protocol's task ids and recurrence rules without storing it."""
    return _check(body)


@router.post("", response_model=Protocol, status_code=201)
async def create_protocol(
    body: ProtocolCreate,
    db: AsyncSession = Depends(get_db),
) -> Protocol:
    """Validate then store a protocol. Invalid rules never reach the database."""
    result = _check(body)
    if not result.valid:
        logger.warning("Rejected protocol %r: %s", body.name, result.error)
        raise HTTPException(status_code=422, detail=result.error)

    repo = ProtocolRepository(db)
    protocol = await repo.create(
        name=body.name,
        surgery_type=body.surgery_type,
        tasks=body.tasks,
        description=body.description,
    )
    return protocol_to_model(protocol)


@router.get("", response_model=list[Protocol])
async def list_protocols(
    surgery_type: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> list[Protocol]:
    repo = ProtocolRepository(db)
    return [protocol_to_model(p) for p in await repo.list(surgery_type=surgery_type)]


@router.get("/{protocol_id}", response_model=Protocol)
async def get_protocol(
    protocol_id: str,
    db: AsyncSession = Depends(get_db),
) -> Protocol:
    pid = parse_uuid(protocol_id, "protocol_id")
    protocol = await ProtocolRepository(db).get_by_id(pid)
    if not protocol:
        raise HTTPException(status_code=404, detail="Protocol not found")
    return protocol_to_model(protocol)
