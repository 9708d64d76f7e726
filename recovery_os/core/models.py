"""SQLAlchemy 2.0 async models for patients, protocols and task records."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.types import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class Base(DeclarativeBase):
    pass


class ProtocolDB(Base):
    __tablename__ = "protocols"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    surgery_type: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    tasks: Mapped[list[ProtocolTaskDB]] = relationship(
        back_populates="protocol",
        lazy="selectin",
        order_by="ProtocolTaskDB.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_protocols_surgery_type", "surgery_type"),
    )


class ProtocolTaskDB(Base):
    __tablename__ = "protocol_tasks"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    protocol_id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("protocols.id", ondelete="CASCADE"), nullable=False)
    task_key: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    anchor_day: Mapped[int] = mapped_column(Integer, nullable=False)
    task_type: Mapped[str] = mapped_column(String(20), nullable=False, default="message")
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    content: Mapped[dict | None] = mapped_column(JSON)
    required: Mapped[bool] = mapped_column(Boolean, default=True)
    phase: Mapped[str | None] = mapped_column(String(30))

    # Recurrence (all null for one-off tasks)
    recurrence_frequency: Mapped[str | None] = mapped_column(String(20))
    recurrence_interval: Mapped[int | None] = mapped_column(Integer)
    recurrence_end_day: Mapped[int | None] = mapped_column(Integer)
    recurrence_days_of_week: Mapped[list | None] = mapped_column(JSON)

    protocol: Mapped[ProtocolDB] = relationship(back_populates="tasks")

    __table_args__ = (
        UniqueConstraint("protocol_id", "task_key", name="uq_protocol_task_key"),
        Index("ix_protocol_tasks_protocol_id", "protocol_id"),
    )


class Patient(Base):
    __tablename__ = "patients"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    protocol_id: Mapped[uuid.UUID | None] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("protocols.id", ondelete="SET NULL"))
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    surgery_date: Mapped[date] = mapped_column(Date, nullable=False)
    surgery_type: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    protocol: Mapped[ProtocolDB | None] = relationship(lazy="selectin")

    __table_args__ = (
        Index("ix_patients_last_name", "last_name"),
        Index("ix_patients_surgery_date", "surgery_date"),
        Index("ix_patients_protocol_id", "protocol_id"),
    )


class TaskInstanceDB(Base):
    """Durable status record for one task occurrence.

    Rows exist only once something happened to an occurrence; an absent row
    reads as pending.
    """

    __tablename__ = "task_instances"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    patient_id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    task_definition_id: Mapped[str] = mapped_column(String(100), nullable=False)
    day: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completion_data: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("patient_id", "task_definition_id", "day", name="uq_task_instance_key"),
        Index("ix_task_instances_patient_day", "patient_id", "day"),
    )


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    patient_id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    recovery_day: Mapped[int] = mapped_column(Integer, nullable=False)
    sender: Mapped[str] = mapped_column(String(20), nullable=False, default="patient")
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        Index("ix_chat_messages_patient_day", "patient_id", "recovery_day"),
    )
