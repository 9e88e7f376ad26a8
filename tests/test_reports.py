"""
Unit tests for dashboard stats, display formatting and invoice drafts.
"""

from datetime import date, datetime, time

import pytest

from pathdash.entities import Patient, Session
from pathdash.models import PatientStatus, PatientType, ServiceType, SessionLocation
from pathdash.reports import (
    build_invoice_draft,
    daily_stats,
    format_duration,
    format_location,
    format_time,
)


def _patient(pid="p1", name="Sarah Johnson"):
    return Patient(
        id=pid, name=name, dob=date(2016, 3, 14), phone=None, email=None,
        patient_type=PatientType.PRIVATE, ndis_participant_number=None,
        status=PatientStatus.ACTIVE, created_at=datetime(2025, 1, 1),
    )


def _session(sid, patient_id, minutes, day=date(2025, 8, 7), start=time(9, 0), code=None):
    return Session(
        id=sid, patient_id=patient_id, session_date=day, start_time=start, end_time=time(23, 0),
        duration_minutes=minutes, service_type=ServiceType.THERAPY,
        location=SessionLocation.CLINIC, billing_code=code, created_at=None,
    )


class TestDailyStats:
    def test_empty_day(self):
        stats = daily_stats([])
        assert (stats.total_hours, stats.patients_seen, stats.total_sessions) == (0, 0, 0)

    def test_hours_and_unique_patients(self):
        stats = daily_stats([
            _session("s1", "p1", 45),
            _session("s2", "p2", 60),
            _session("s3", "p1", 30),
        ])

        assert stats.total_hours == 2.3
        assert stats.patients_seen == 2
        assert stats.total_sessions == 3

    def test_half_rounds_up(self):
        # 75 minuti = 1.25 ore -> 1.3
        assert daily_stats([_session("s1", "p1", 75)]).total_hours == 1.3


class TestFormatting:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("14:30", "2:30 PM"),
            ("09:05:00", "9:05 AM"),
            (time(0, 15), "12:15 AM"),
            (time(12, 0), "12:00 PM"),
        ],
    )
    def test_format_time(self, value, expected):
        assert format_time(value) == expected

    @pytest.mark.parametrize("minutes, expected", [(45, "45m"), (60, "1h 0m"), (65, "1h 5m"), (0, "0m")])
    def test_format_duration(self, minutes, expected):
        assert format_duration(minutes) == expected

    def test_format_location(self):
        assert format_location(SessionLocation.HOME_VISIT) == "home visit"


class TestInvoiceDraft:
    def test_lines_for_patient_and_period_only(self):
        sarah = _patient()
        sessions = [
            _session("s2", "p1", 45, day=date(2025, 8, 7), code="15_622"),
            _session("s1", "p1", 30, day=date(2025, 8, 1)),
            _session("s3", "p2", 60, day=date(2025, 8, 7)),
            _session("s4", "p1", 60, day=date(2025, 9, 1)),
        ]

        draft = build_invoice_draft(sarah, sessions, date(2025, 8, 1), date(2025, 8, 31))

        assert [line.session_id for line in draft.lines] == ["s1", "s2"]
        assert draft.total_minutes == 75
        assert draft.missing_billing_codes == 1

    def test_empty_period(self):
        draft = build_invoice_draft(_patient(), [], date(2025, 8, 1), date(2025, 8, 31))

        assert draft.lines == ()
        assert draft.total_minutes == 0
