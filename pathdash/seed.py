from __future__ import annotations

import logging
from datetime import date

from .gateway import Gateway
from .repositories import PatientRepository, SessionRepository

logger = logging.getLogger(__name__)

DEMO_PATIENTS = [
    {"name": "Sarah Johnson", "dob": "2016-03-14", "phone": "0412 345 678",
     "email": "sarah.johnson@example.com", "patient_type": "private"},
    {"name": "Mike Chen", "dob": "2012-11-02", "phone": "0423 456 789",
     "email": "mike.chen@example.com", "patient_type": "ndis", "ndis_participant_number": "NDIS431234567"},
    {"name": "Emma Davis", "dob": "1958-07-21", "phone": "0434 567 890",
     "patient_type": "medicare"},
]

# (paziente, inizio, fine, servizio, luogo, codice)
DEMO_SESSIONS = [
    ("Sarah Johnson", "09:00", "09:45", "therapy", "clinic", "15_622_0128_1_3"),
    ("Mike Chen", "11:00", "12:00", "assessment", "home_visit", "15_620_0128_1_3"),
    ("Sarah Johnson", "14:00", "14:30", "review", "telehealth", None),
]


def seed_demo(gateway: Gateway, today: date | None = None) -> int:
    """
    Popola dati demo (idempotente sul nome paziente):
    - pazienti
    - sedute di oggi, solo per i pazienti appena creati
    Ritorna il numero di pazienti creati.
    """
    patients = PatientRepository(gateway)
    sessions = SessionRepository(gateway)
    day = today or date.today()

    existing = {p.name for p in patients.list_patients()}
    created: dict[str, str] = {}
    for data in DEMO_PATIENTS:
        if data["name"] in existing:
            continue
        created[data["name"]] = patients.create_patient(data).id

    for name, start, end, service, location, code in DEMO_SESSIONS:
        if name not in created:
            continue
        sessions.create_session(
            {
                "patient_id": created[name],
                "session_date": day.isoformat(),
                "start_time": start,
                "end_time": end,
                "service_type": service,
                "location": location,
                "billing_code": code,
            }
        )

    if created:
        logger.info("Seeded %d demo patients", len(created))
    return len(created)
