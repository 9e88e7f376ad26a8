"""
Unit tests for patient and session input validation.
"""

from datetime import date, time

import pytest

from pathdash.errors import ValidationError
from pathdash.models import ServiceType, SessionLocation
from pathdash.validators import (
    NdisPatientInput,
    StandardPatientInput,
    validate_patient,
    validate_session,
)


def _patient(**overrides):
    data = {"name": "Sarah Johnson", "dob": "2016-03-14"}
    data.update(overrides)
    return data


def _session(**overrides):
    data = {
        "patient_id": "p-1",
        "session_date": "2025-08-07",
        "start_time": "14:00",
        "end_time": "15:00",
    }
    data.update(overrides)
    return data


# =============================================================================
# validate_patient
# =============================================================================

class TestValidatePatient:
    """Field and cross-field rules for new patients."""

    def test_minimal_input_defaults_to_private(self):
        result = validate_patient(_patient())

        assert isinstance(result, StandardPatientInput)
        assert result.patient_type == "private"
        assert result.dob == date(2016, 3, 14)

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_empty_name_is_rejected(self, name):
        with pytest.raises(ValidationError) as exc:
            validate_patient(_patient(name=name))

        assert exc.value.errors["name"] == "Name is required"

    def test_missing_name_uses_same_message(self):
        data = _patient()
        del data["name"]

        with pytest.raises(ValidationError) as exc:
            validate_patient(data)

        assert exc.value.errors["name"] == "Name is required"

    def test_missing_dob_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_patient(_patient(dob=""))

        assert exc.value.errors["dob"] == "Date of birth is required"

    def test_invalid_email_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_patient(_patient(email="not-an-email"))

        assert exc.value.errors == {"email": "Invalid email"}

    def test_blank_contact_fields_become_none(self):
        result = validate_patient(_patient(email="  ", phone=""))

        assert result.email is None
        assert result.phone is None

    def test_valid_email_is_kept(self):
        result = validate_patient(_patient(email="sarah.j@example.com"))
        assert result.email == "sarah.j@example.com"

    def test_unknown_patient_type_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_patient(_patient(patient_type="veteran"))

        assert "patient_type" in exc.value.errors

    def test_ndis_requires_participant_number(self):
        with pytest.raises(ValidationError) as exc:
            validate_patient(_patient(patient_type="ndis"))

        assert exc.value.errors["ndis_participant_number"] == "NDIS participant number is required"

    def test_ndis_with_participant_number(self):
        result = validate_patient(_patient(patient_type="ndis", ndis_participant_number=" NDIS123 "))

        assert isinstance(result, NdisPatientInput)
        assert result.ndis_participant_number == "NDIS123"

    @pytest.mark.parametrize("patient_type", ["private", "medicare", "other"])
    def test_other_types_do_not_need_program_identifiers(self, patient_type):
        result = validate_patient(_patient(patient_type=patient_type))
        assert result.to_row()["ndis_participant_number"] is None

    def test_stale_participant_number_is_dropped_for_private(self):
        result = validate_patient(_patient(patient_type="private", ndis_participant_number="NDIS999"))
        assert result.to_row()["ndis_participant_number"] is None

    def test_errors_are_collected_per_field(self):
        with pytest.raises(ValidationError) as exc:
            validate_patient({"name": "", "dob": "", "email": "bad"})

        assert set(exc.value.errors) == {"name", "dob", "email"}

    def test_row_forces_active_status(self):
        row = validate_patient(_patient(status="inactive")).to_row()

        assert row["status"] == "active"
        assert row["dob"] == "2016-03-14"
        assert row["patient_type"] == "private"

    def test_validation_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            validate_patient(_patient(name=""))


# =============================================================================
# validate_session
# =============================================================================

class TestValidateSession:
    """Field and time-range rules for logged sessions."""

    def test_valid_session_with_defaults(self):
        result = validate_session(_session())

        assert result.start_time == time(14, 0)
        assert result.end_time == time(15, 0)
        assert result.service_type is ServiceType.THERAPY
        assert result.location is SessionLocation.CLINIC
        assert result.billing_code is None

    def test_end_before_start_is_rejected_on_end_time(self):
        with pytest.raises(ValidationError) as exc:
            validate_session(_session(start_time="14:00", end_time="13:00"))

        assert exc.value.errors == {"end_time": "End time must be after start time"}

    def test_end_equal_to_start_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_session(_session(start_time="14:00", end_time="14:00"))

        assert "end_time" in exc.value.errors

    def test_one_minute_session_is_accepted(self):
        result = validate_session(_session(start_time="14:00", end_time="14:01"))
        assert result.end_time == time(14, 1)

    @pytest.mark.parametrize(
        "field, message",
        [
            ("patient_id", "Patient is required"),
            ("session_date", "Date is required"),
            ("start_time", "Start time is required"),
            ("end_time", "End time is required"),
        ],
    )
    def test_required_fields(self, field, message):
        with pytest.raises(ValidationError) as exc:
            validate_session(_session(**{field: ""}))

        assert exc.value.errors[field] == message

    def test_missing_start_does_not_add_range_error(self):
        with pytest.raises(ValidationError) as exc:
            validate_session(_session(start_time=""))

        assert set(exc.value.errors) == {"start_time"}

    def test_malformed_time_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_session(_session(start_time="25:00"))

        assert "start_time" in exc.value.errors

    def test_end_time_with_offset_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_session(_session(start_time="14:00", end_time="15:00Z"))

        assert exc.value.errors == {"end_time": "Time must be HH:MM"}

    def test_both_times_with_offset_are_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_session(_session(start_time="14:00+10:00", end_time="15:00+10:00"))

        assert exc.value.errors == {
            "start_time": "Time must be HH:MM",
            "end_time": "Time must be HH:MM",
        }

    def test_blank_enums_fall_back_to_defaults(self):
        result = validate_session(_session(service_type="", location=None))

        assert result.service_type is ServiceType.THERAPY
        assert result.location is SessionLocation.CLINIC

    def test_unknown_location_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_session(_session(location="garden"))

        assert "location" in exc.value.errors

    def test_row_has_no_duration_and_short_times(self):
        row = validate_session(
            _session(service_type="assessment", location="home_visit", billing_code=" 15_622 ")
        ).to_row()

        assert "duration_minutes" not in row
        assert row["start_time"] == "14:00"
        assert row["end_time"] == "15:00"
        assert row["session_date"] == "2025-08-07"
        assert row["service_type"] == "assessment"
        assert row["location"] == "home_visit"
        assert row["billing_code"] == "15_622"
