from __future__ import annotations

import enum
import uuid
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Integer, String, Text, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def new_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PatientType(str, enum.Enum):
    PRIVATE = "private"
    NDIS = "ndis"
    MEDICARE = "medicare"
    OTHER = "other"


class PatientStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ServiceType(str, enum.Enum):
    ASSESSMENT = "assessment"
    THERAPY = "therapy"
    CONSULTATION = "consultation"
    REVIEW = "review"


class SessionLocation(str, enum.Enum):
    CLINIC = "clinic"
    HOME_VISIT = "home_visit"
    TELEHEALTH = "telehealth"


def _in(column: str, enum_cls: type[enum.Enum]) -> str:
    values = ", ".join(f"'{m.value}'" for m in enum_cls)
    return f"{column} IN ({values})"


def minutes_between(start: time, end: time) -> int:
    delta = datetime.combine(date.min, end) - datetime.combine(date.min, start)
    return delta // timedelta(minutes=1)


def _duration_default(context) -> int:
    # colonna derivata: calcolata dal gateway all'inserimento, mai dal client
    params = context.get_current_parameters()
    return minutes_between(params["start_time"], params["end_time"])


class PatientRow(Base):
    __tablename__ = "patients"
    __table_args__ = (
        CheckConstraint(_in("patient_type", PatientType), name="ck_patients_type"),
        CheckConstraint(_in("status", PatientStatus), name="ck_patients_status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    dob: Mapped[date | None] = mapped_column(Date, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    email: Mapped[str | None] = mapped_column(String(160), nullable=True)
    patient_type: Mapped[str] = mapped_column(String(20), nullable=False, default=PatientType.PRIVATE.value)
    ndis_participant_number: Mapped[str | None] = mapped_column(String(40), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PatientStatus.ACTIVE.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    sessions: Mapped[list["SessionRow"]] = relationship(back_populates="patient")

    def __repr__(self) -> str:
        return f"PatientRow({self.name}, {self.patient_type})"


class SessionRow(Base):
    __tablename__ = "sessions"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_sessions_time_range"),
        CheckConstraint(_in("service_type", ServiceType), name="ck_sessions_service"),
        CheckConstraint(_in("location", SessionLocation), name="ck_sessions_location"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    patient_id: Mapped[str] = mapped_column(ForeignKey("patients.id"), nullable=False)

    session_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=_duration_default)

    service_type: Mapped[str] = mapped_column(String(20), nullable=False, default=ServiceType.THERAPY.value)
    location: Mapped[str] = mapped_column(String(20), nullable=False, default=SessionLocation.CLINIC.value)
    billing_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    patient: Mapped["PatientRow"] = relationship(back_populates="sessions")
