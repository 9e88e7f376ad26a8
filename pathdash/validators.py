from __future__ import annotations

import re
from datetime import date, time
from typing import Annotated, Any, Literal, Mapping, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .models import PatientStatus, PatientType, ServiceType, SessionLocation

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


# i form HTML mandano stringhe vuote per i campi non compilati
def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


REQUIRED_MESSAGES = {
    "name": "Name is required",
    "dob": "Date of birth is required",
    "ndis_participant_number": "NDIS participant number is required",
    "patient_id": "Patient is required",
    "session_date": "Date is required",
    "start_time": "Start time is required",
    "end_time": "End time is required",
}


def _require(value: Any, field: str) -> Any:
    value = _blank_to_none(value)
    if value is None:
        raise ValueError(REQUIRED_MESSAGES[field])
    return value


# =========================
# Pazienti
# =========================
class _PatientBase(BaseModel):
    name: str
    dob: date
    phone: str | None = None
    email: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _name_required(cls, v: Any) -> Any:
        return _require(v, "name")

    @field_validator("dob", mode="before")
    @classmethod
    def _dob_required(cls, v: Any) -> Any:
        return _require(v, "dob")

    @field_validator("phone", mode="before")
    @classmethod
    def _phone_optional(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("email", mode="before")
    @classmethod
    def _email_format(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        if v is None:
            return None
        if not isinstance(v, str) or not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email")
        return v

    def to_row(self) -> dict[str, Any]:
        """Riga pronta per l'inserimento: lo stato e' sempre 'active'."""
        row = self.model_dump(mode="json")
        row.setdefault("ndis_participant_number", None)
        row["status"] = PatientStatus.ACTIVE.value
        return row


class NdisPatientInput(_PatientBase):
    patient_type: Literal["ndis"]
    ndis_participant_number: str

    @field_validator("ndis_participant_number", mode="before")
    @classmethod
    def _participant_number_required(cls, v: Any) -> Any:
        return _require(v, "ndis_participant_number")


class StandardPatientInput(_PatientBase):
    # nessun identificativo di programma: se arriva dal form viene scartato
    patient_type: Literal["private", "medicare", "other"] = "private"


PatientInput = Annotated[
    Union[NdisPatientInput, StandardPatientInput],
    Field(discriminator="patient_type"),
]
_patient_adapter: TypeAdapter[PatientInput] = TypeAdapter(PatientInput)

PATIENT_INPUT_TYPES = (NdisPatientInput, StandardPatientInput)


# =========================
# Sedute
# =========================
_SESSION_DEFAULTS: dict[str, Any] = {
    "service_type": ServiceType.THERAPY,
    "location": SessionLocation.CLINIC,
}


# orari locali HH:MM, senza fuso
def _local_time(value: time) -> time:
    if value.tzinfo is not None:
        raise ValueError("Time must be HH:MM")
    return value


class SessionInput(BaseModel):
    patient_id: str
    session_date: date
    start_time: time
    end_time: time
    service_type: ServiceType = ServiceType.THERAPY
    location: SessionLocation = SessionLocation.CLINIC
    billing_code: str | None = None

    @field_validator("patient_id", mode="before")
    @classmethod
    def _patient_required(cls, v: Any) -> Any:
        return _require(v, "patient_id")

    @field_validator("session_date", mode="before")
    @classmethod
    def _date_required(cls, v: Any) -> Any:
        return _require(v, "session_date")

    @field_validator("start_time", mode="before")
    @classmethod
    def _start_required(cls, v: Any) -> Any:
        return _require(v, "start_time")

    @field_validator("end_time", mode="before")
    @classmethod
    def _end_required(cls, v: Any) -> Any:
        return _require(v, "end_time")

    @field_validator("start_time")
    @classmethod
    def _start_is_local(cls, v: time) -> time:
        return _local_time(v)

    @field_validator("end_time")
    @classmethod
    def _end_after_start(cls, v: time, info: ValidationInfo) -> time:
        v = _local_time(v)
        # start_time manca da info.data se a sua volta non e' valido
        start = info.data.get("start_time")
        if start is not None and v <= start:
            raise ValueError("End time must be after start time")
        return v

    @field_validator("service_type", "location", mode="before")
    @classmethod
    def _blank_means_default(cls, v: Any, info: ValidationInfo) -> Any:
        v = _blank_to_none(v)
        if v is None:
            return _SESSION_DEFAULTS[info.field_name]
        return v

    @field_validator("billing_code", mode="before")
    @classmethod
    def _billing_optional(cls, v: Any) -> Any:
        return _blank_to_none(v)

    def to_row(self) -> dict[str, Any]:
        # duration_minutes non si invia: e' una colonna derivata del backend
        row = self.model_dump(mode="json")
        row["start_time"] = self.start_time.strftime("%H:%M")
        row["end_time"] = self.end_time.strftime("%H:%M")
        return row


# =========================
# Entry point
# =========================
def _field_errors(exc: PydanticValidationError, tags: tuple[str, ...], default_field: str) -> dict[str, str]:
    errors: dict[str, str] = {}
    for err in exc.errors():
        # nelle union discriminate il primo elemento di loc e' il tag
        path = [p for p in err["loc"] if isinstance(p, str) and p not in tags]
        field = path[-1] if path else default_field
        ctx_error = (err.get("ctx") or {}).get("error")
        if err["type"] == "missing":
            message = REQUIRED_MESSAGES.get(field, err["msg"])
        elif isinstance(ctx_error, ValueError):
            message = str(ctx_error)
        else:
            message = err["msg"]
        errors.setdefault(field, message)
    return errors


def validate_patient(data: Mapping[str, Any]) -> NdisPatientInput | StandardPatientInput:
    payload = dict(data)
    patient_type = _blank_to_none(payload.get("patient_type"))
    if isinstance(patient_type, PatientType):
        patient_type = patient_type.value
    payload["patient_type"] = patient_type or PatientType.PRIVATE.value

    if payload["patient_type"] not in {t.value for t in PatientType}:
        raise ValidationError({"patient_type": f"Unknown patient type: {payload['patient_type']}"})

    try:
        return _patient_adapter.validate_python(payload)
    except PydanticValidationError as e:
        tags = tuple(t.value for t in PatientType)
        raise ValidationError(_field_errors(e, tags, "patient_type")) from e


def validate_session(data: Mapping[str, Any]) -> SessionInput:
    try:
        return SessionInput.model_validate(dict(data))
    except PydanticValidationError as e:
        raise ValidationError(_field_errors(e, (), "session")) from e
