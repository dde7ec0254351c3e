"""
Unit tests for principal registration and resolution.
"""

import pytest

from core.constants import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT, PATIENT_CREATED_BY_SELF
from core.exceptions import ConflictError, PrincipalNotFoundError, ValidationError
from models import PatientRecord
from services.principal_service import PrincipalService, normalize_email


class TestRegisterPrincipal:
    """Test registration of authenticated identities."""

    def test_register_patient_creates_patient_record(self, db_session):
        principal = PrincipalService.register_principal(
            db_session, "patient-1", "Pat@Example.com ", ROLE_PATIENT, first_name="Pat", last_name="Lee"
        )

        assert principal.role == ROLE_PATIENT
        assert principal.email == "pat@example.com"
        record = db_session.query(PatientRecord).filter(PatientRecord.principal_id == "patient-1").one()
        assert record.created_by_type == PATIENT_CREATED_BY_SELF
        assert record.first_name == "Pat"
        assert not record.is_placeholder

    def test_register_doctor_creates_no_role_record(self, db_session):
        principal = PrincipalService.register_principal(db_session, "doc-1", "doc@example.com", ROLE_DOCTOR)

        assert principal.doctor_record is None
        assert principal.patient_record is None

    def test_register_twice_is_conflict(self, db_session):
        PrincipalService.register_principal(db_session, "doc-1", "doc@example.com", ROLE_DOCTOR)

        with pytest.raises(ConflictError):
            PrincipalService.register_principal(db_session, "doc-1", "other@example.com", ROLE_DOCTOR)

    def test_duplicate_email_is_conflict_case_insensitive(self, db_session):
        PrincipalService.register_principal(db_session, "doc-1", "doc@example.com", ROLE_DOCTOR)

        with pytest.raises(ConflictError):
            PrincipalService.register_principal(db_session, "doc-2", "DOC@example.com", ROLE_DOCTOR)

    def test_invalid_role_is_validation_error(self, db_session):
        with pytest.raises(ValidationError):
            PrincipalService.register_principal(db_session, "x-1", "x@example.com", "nurse")

    def test_empty_email_is_validation_error(self, db_session):
        with pytest.raises(ValidationError):
            PrincipalService.register_principal(db_session, "x-1", "   ", ROLE_ADMIN)


class TestResolve:

    def test_resolve_returns_declared_role(self, db_session):
        PrincipalService.register_principal(db_session, "admin-1", "ops@example.com", ROLE_ADMIN)

        assert PrincipalService.resolve(db_session, "admin-1").role == ROLE_ADMIN

    def test_resolve_unknown_principal(self, db_session):
        with pytest.raises(PrincipalNotFoundError) as exc_info:
            PrincipalService.resolve(db_session, "nobody")
        assert exc_info.value.status_code == 404
        assert exc_info.value.principal_id == "nobody"

    def test_get_profile_loads_patient_record(self, db_session):
        PrincipalService.register_principal(db_session, "patient-1", "pat@example.com", ROLE_PATIENT)

        profile = PrincipalService.get_profile(db_session, "patient-1")

        assert profile.patient_record is not None
        assert profile.full_name == "pat@example.com"

    def test_find_by_email(self, db_session):
        PrincipalService.register_principal(db_session, "doc-1", "doc@example.com", ROLE_DOCTOR)

        assert PrincipalService.find_by_email(db_session, " Doc@Example.com").id == "doc-1"
        assert PrincipalService.find_by_email(db_session, "missing@example.com") is None


def test_normalize_email():
    assert normalize_email("  A.B@Example.COM ") == "a.b@example.com"
