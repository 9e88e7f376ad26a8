"""
Fixture comuni: gateway SQL in memoria e repository collegati.
"""
from datetime import date

import pytest

from pathdash.gateway import SqlGateway, reset_gateway
from pathdash.repositories import PatientRepository, SessionRepository

TODAY = date(2025, 8, 7)


@pytest.fixture
def gateway():
    gw = SqlGateway("sqlite+pysqlite:///:memory:")
    yield gw
    gw.engine.dispose()


@pytest.fixture
def patients(gateway):
    return PatientRepository(gateway)


@pytest.fixture
def sessions(gateway):
    return SessionRepository(gateway)


@pytest.fixture
def sarah(patients):
    return patients.create_patient(
        {"name": "Sarah Johnson", "dob": "2016-03-14", "email": "sarah.j@example.com",
         "phone": "0412 345 678", "patient_type": "private"}
    )


@pytest.fixture
def mike(patients):
    return patients.create_patient(
        {"name": "Mike Chen", "dob": "2012-11-02", "phone": "0423 456 789",
         "patient_type": "ndis", "ndis_participant_number": "NDIS431234567"}
    )


@pytest.fixture
def log_session(sessions):
    """Helper: registra una seduta con valori di default ragionevoli."""
    def _log(patient, start, end, day=TODAY, **extra):
        data = {
            "patient_id": patient.id,
            "session_date": day.isoformat(),
            "start_time": start,
            "end_time": end,
        }
        data.update(extra)
        return sessions.create_session(data)
    return _log


@pytest.fixture(autouse=True)
def _clean_gateway_cache():
    reset_gateway()
    yield
    reset_gateway()
