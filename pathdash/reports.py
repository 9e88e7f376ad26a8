from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, time
from typing import Iterable

from .entities import Patient, Session, parse_time
from .models import ServiceType, SessionLocation


@dataclass(frozen=True)
class DailyStats:
    total_hours: float
    patients_seen: int
    total_sessions: int


def daily_stats(sessions: Iterable[Session]) -> DailyStats:
    sessions = list(sessions)
    total_minutes = sum(s.duration_minutes for s in sessions)
    return DailyStats(
        # arrotondamento a un decimale, mezzo verso l'alto (1.25 -> 1.3)
        total_hours=math.floor(total_minutes / 60 * 10 + 0.5) / 10,
        patients_seen=len({s.patient_id for s in sessions}),
        total_sessions=len(sessions),
    )


def format_time(value: time | str) -> str:
    """'14:30' -> '2:30 PM'"""
    t = parse_time(value)
    hour = t.hour % 12 or 12
    suffix = "AM" if t.hour < 12 else "PM"
    return f"{hour}:{t.minute:02d} {suffix}"


def format_duration(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def format_location(location: SessionLocation) -> str:
    return location.value.replace("_", " ")


# =========================
# Bozza fattura (solo visualizzazione)
# =========================
@dataclass(frozen=True)
class InvoiceLine:
    session_id: str
    session_date: date
    service_type: ServiceType
    location: SessionLocation
    minutes: int
    billing_code: str | None


@dataclass(frozen=True)
class InvoiceDraft:
    patient: Patient
    period_start: date
    period_end: date
    lines: tuple[InvoiceLine, ...]

    @property
    def total_minutes(self) -> int:
        return sum(line.minutes for line in self.lines)

    @property
    def missing_billing_codes(self) -> int:
        return sum(1 for line in self.lines if not line.billing_code)


def build_invoice_draft(
    patient: Patient, sessions: Iterable[Session], start: date, end: date
) -> InvoiceDraft:
    """
    Raccoglie le sedute del paziente nel periodo [start, end].
    Le sedute di altri pazienti o fuori periodo vengono ignorate.
    """
    lines = tuple(
        InvoiceLine(
            session_id=s.id,
            session_date=s.session_date,
            service_type=s.service_type,
            location=s.location,
            minutes=s.duration_minutes,
            billing_code=s.billing_code,
        )
        for s in sorted(sessions, key=lambda s: (s.session_date, s.start_time))
        if s.patient_id == patient.id and start <= s.session_date <= end
    )
    return InvoiceDraft(patient=patient, period_start=start, period_end=end, lines=lines)
