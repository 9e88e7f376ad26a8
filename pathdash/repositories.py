from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable, Mapping

from .entities import Patient, Session, SessionWithPatient
from .gateway import Gateway, Select
from .models import PatientStatus
from .validators import (
    PATIENT_INPUT_TYPES,
    NdisPatientInput,
    SessionInput,
    StandardPatientInput,
    validate_patient,
    validate_session,
)

logger = logging.getLogger(__name__)

PATIENTS = "patients"
SESSIONS = "sessions"


def _matches(value: str | None, term: str) -> bool:
    return bool(value) and term in value.lower()


def filter_patients(patients: Iterable[Patient], term: str | None) -> list[Patient]:
    """
    Filtro lato client (dopo il fetch): sottostringa case-insensitive
    su nome, email e telefono. Termine vuoto = nessun filtro.
    """
    needle = (term or "").strip().lower()
    if not needle:
        return list(patients)
    return [
        p for p in patients
        if _matches(p.name, needle) or _matches(p.email, needle) or _matches(p.phone, needle)
    ]


class PatientRepository:
    def __init__(self, gateway: Gateway):
        self.gateway = gateway

    def create_patient(
        self, data: Mapping[str, Any] | NdisPatientInput | StandardPatientInput
    ) -> Patient:
        """
        Valida e inserisce un paziente.
        Lo stato e' sempre 'active', qualunque cosa arrivi dal chiamante.
        Input non valido -> ValidationError, nessuna scrittura.
        """
        payload = data if isinstance(data, PATIENT_INPUT_TYPES) else validate_patient(data)
        row = self.gateway.insert(PATIENTS, payload.to_row())
        patient = Patient.from_row(row)
        logger.info("Created patient %s (%s)", patient.id, patient.patient_type.value)
        return patient

    def list_patients(self, search: str | None = None) -> list[Patient]:
        rows = self.gateway.fetch(Select(PATIENTS).order_by("name"))
        return filter_patients((Patient.from_row(r) for r in rows), search)

    def list_active_patients(self, search: str | None = None) -> list[Patient]:
        """Pazienti attivi per il selettore del form seduta (filtro solo sul nome)."""
        q = Select(PATIENTS).where("status", "eq", PatientStatus.ACTIVE).order_by("name")
        patients = [Patient.from_row(r) for r in self.gateway.fetch(q)]
        needle = (search or "").strip().lower()
        if not needle:
            return patients
        return [p for p in patients if needle in p.name.lower()]


class SessionRepository:
    def __init__(self, gateway: Gateway):
        self.gateway = gateway

    def create_session(self, data: Mapping[str, Any] | SessionInput) -> Session:
        payload = data if isinstance(data, SessionInput) else validate_session(data)
        row = self.gateway.insert(SESSIONS, payload.to_row())
        session = Session.from_row(row)
        logger.info("Logged session %s for patient %s", session.id, session.patient_id)
        return session

    def list_today_sessions(self, today: date | None = None) -> list[SessionWithPatient]:
        """Sedute del giorno corrente (ora locale) con paziente, per ora di inizio."""
        day = today or date.today()
        q = (
            Select(SESSIONS)
            .embed("patient", PATIENTS, "patient_id")
            .where("session_date", "gte", day)
            .where("session_date", "lte", day)
            .order_by("start_time")
        )
        return [SessionWithPatient.from_row(r) for r in self.gateway.fetch(q)]

    def list_sessions_between(
        self, start: date, end: date, patient_id: str | None = None
    ) -> list[SessionWithPatient]:
        if end < start:
            raise ValueError("End date must not be before start date")

        q = (
            Select(SESSIONS)
            .embed("patient", PATIENTS, "patient_id")
            .where("session_date", "gte", start)
            .where("session_date", "lte", end)
        )
        if patient_id:
            q = q.where("patient_id", "eq", patient_id)
        q = q.order_by("session_date").order_by("start_time")
        return [SessionWithPatient.from_row(r) for r in self.gateway.fetch(q)]
