"""
Unit tests for practice CRUD, search and the operator checks.
"""

import pytest

from core.constants import STAFF_ROLE_NURSE, STATUS_ACTIVE
from core.exceptions import NotFoundError, ValidationError
from models import (
    PatientAssignment, PhysicianPatientRequest, Practice, PracticeJoinRequest, StaffInvitation, StaffMembership,
)
from services.join_request_service import JoinRequestService
from services.patient_assignment_service import PatientAssignmentService
from services.practice_service import PracticeService
from services.staff_invitation_service import StaffInvitationService
from services.staff_service import StaffService
from tests.conftest import create_patient, create_practice_with_owner, create_principal, get_membership


class TestCreatePractice:

    def test_create_practice_has_no_members(self, db_session):
        practice = PracticeService.create_practice(db_session, "  Harbor Health  ", phone=" 555-0100 ")

        assert practice.name == "Harbor Health"
        assert practice.phone == "555-0100"
        assert practice.address is None
        assert db_session.query(StaffMembership).filter(StaffMembership.practice_id == practice.id).count() == 0

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_create_practice_requires_name(self, db_session, name):
        with pytest.raises(ValidationError):
            PracticeService.create_practice(db_session, name)
        assert db_session.query(Practice).count() == 0


class TestUpdatePractice:

    def test_update_changes_only_given_fields(self, db_session):
        practice = PracticeService.create_practice(db_session, "Harbor Health", address="1 Dock Rd")

        updated = PracticeService.update_practice(db_session, practice.id, phone="555-0101")

        assert updated.name == "Harbor Health"
        assert updated.address == "1 Dock Rd"
        assert updated.phone == "555-0101"

    def test_update_rejects_empty_name(self, db_session):
        practice = PracticeService.create_practice(db_session, "Harbor Health")

        with pytest.raises(ValidationError):
            PracticeService.update_practice(db_session, practice.id, name=" ")

    def test_update_missing_practice(self, db_session):
        with pytest.raises(NotFoundError):
            PracticeService.update_practice(db_session, 999, name="Ghost")


class TestDeletePractice:

    def test_delete_removes_all_dependents(self, db_session):
        practice = create_practice_with_owner(db_session)
        create_principal(db_session, "nurse-1")
        StaffService.add_staff_member(db_session, "doctor-owner", practice.id, STAFF_ROLE_NURSE, principal_id="nurse-1")
        create_patient(db_session, "patient-1", email="p1@example.com")
        record_two = create_patient(db_session, "patient-2", email="p2@example.com")
        PatientAssignmentService.assign_patient_direct(db_session, "doctor-owner", practice.id, "p1@example.com")
        PatientAssignmentService.create_request(db_session, "doctor-owner", practice.id, record_two.id)
        StaffInvitationService.create_invitation(db_session, "doctor-owner", practice.id, "new@example.com", "nurse")
        create_principal(db_session, "doc-j")
        JoinRequestService.create_join_request(db_session, "doc-j", practice.id, "doctor")

        assert PracticeService.delete_practice(db_session, practice.id) is True

        assert db_session.get(Practice, practice.id) is None
        for model in (StaffMembership, PatientAssignment, PhysicianPatientRequest, StaffInvitation, PracticeJoinRequest):
            assert db_session.query(model).filter(model.practice_id == practice.id).count() == 0

    def test_delete_twice_is_noop(self, db_session):
        practice = create_practice_with_owner(db_session)

        assert PracticeService.delete_practice(db_session, practice.id) is True
        assert PracticeService.delete_practice(db_session, practice.id) is False

    def test_delete_keeps_other_practices(self, db_session):
        practice = create_practice_with_owner(db_session)
        other = create_practice_with_owner(db_session, owner_id="doctor-two", practice_name="Other Clinic")

        PracticeService.delete_practice(db_session, practice.id)

        assert db_session.get(Practice, other.id) is not None
        assert get_membership(db_session, "doctor-two", other.id).status == STATUS_ACTIVE


class TestSearchAndSummary:

    def test_search_matches_name_or_email(self, db_session):
        PracticeService.create_practice(db_session, "Acme Clinic", email="front@acme.test")
        PracticeService.create_practice(db_session, "Harbor Health", email="desk@harbor.test")

        assert [p.name for p in PracticeService.search_practices(db_session, "ACME")] == ["Acme Clinic"]
        assert [p.name for p in PracticeService.search_practices(db_session, "harbor.test")] == ["Harbor Health"]
        assert len(PracticeService.search_practices(db_session, "")) == 2

    def test_summary_counts_active_rows(self, db_session):
        practice = create_practice_with_owner(db_session)
        create_patient(db_session, "patient-1", email="p1@example.com")
        assignment = PatientAssignmentService.assign_patient_direct(
            db_session, "doctor-owner", practice.id, "p1@example.com"
        )
        PatientAssignmentService.create_placeholder_patient(db_session, "doctor-owner", practice.id, "Walk", "In")
        PatientAssignmentService.remove_patient_from_practice(db_session, "doctor-owner", assignment.id)

        summary = PracticeService.get_practice_summary(db_session, practice.id)

        assert summary.active_staff_count == 1
        assert summary.active_patient_count == 1

    def test_list_memberships_empty_for_unaffiliated(self, db_session):
        create_principal(db_session, "doc-e")

        assert PracticeService.list_memberships(db_session, "doc-e") == []

    def test_list_memberships(self, db_session):
        practice = create_practice_with_owner(db_session)

        memberships = PracticeService.list_memberships(db_session, "doctor-owner")

        assert [m.practice.name for m in memberships] == [practice.name]


def test_find_practices_without_admin(db_session):
    create_practice_with_owner(db_session)
    orphan = PracticeService.create_practice(db_session, "Orphan Clinic")

    assert [p.id for p in PracticeService.find_practices_without_admin(db_session)] == [orphan.id]
