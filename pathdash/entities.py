from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Mapping

from .errors import PersistenceError
from .models import PatientStatus, PatientType, ServiceType, SessionLocation


def parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_time(value: Any) -> time | None:
    """Accetta 'HH:MM' e 'HH:MM:SS' (Postgres restituisce sempre i secondi)."""
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    return time.fromisoformat(str(value))


def parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


@dataclass(frozen=True)
class Patient:
    id: str
    name: str
    dob: date | None
    phone: str | None
    email: str | None
    patient_type: PatientType
    ndis_participant_number: str | None
    status: PatientStatus
    created_at: datetime | None

    @property
    def is_active(self) -> bool:
        return self.status is PatientStatus.ACTIVE

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Patient":
        return cls(
            id=str(row["id"]),
            name=row["name"],
            dob=parse_date(row.get("dob")),
            phone=row.get("phone") or None,
            email=row.get("email") or None,
            patient_type=PatientType(row.get("patient_type") or PatientType.PRIVATE.value),
            ndis_participant_number=row.get("ndis_participant_number") or None,
            status=PatientStatus(row.get("status") or PatientStatus.ACTIVE.value),
            created_at=parse_datetime(row.get("created_at")),
        )


@dataclass(frozen=True)
class Session:
    id: str
    patient_id: str
    session_date: date
    start_time: time
    end_time: time
    duration_minutes: int
    service_type: ServiceType
    location: SessionLocation
    billing_code: str | None
    created_at: datetime | None

    @classmethod
    def _fields_from_row(cls, row: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "id": str(row["id"]),
            "patient_id": str(row["patient_id"]),
            "session_date": parse_date(row["session_date"]),
            "start_time": parse_time(row["start_time"]),
            "end_time": parse_time(row["end_time"]),
            "duration_minutes": int(row.get("duration_minutes") or 0),
            "service_type": ServiceType(row["service_type"]),
            "location": SessionLocation(row["location"]),
            "billing_code": row.get("billing_code") or None,
            "created_at": parse_datetime(row.get("created_at")),
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Session":
        return cls(**cls._fields_from_row(row))


@dataclass(frozen=True)
class SessionWithPatient(Session):
    patient: Patient

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SessionWithPatient":
        # join sessions -> patients: il paziente arriva annidato sotto "patient"
        patient = row.get("patient")
        if patient is None:
            raise PersistenceError(f"Session {row.get('id')} without patient")
        return cls(**cls._fields_from_row(row), patient=Patient.from_row(patient))
