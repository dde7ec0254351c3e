"""
Unit tests for staff invitations.
"""

from datetime import timedelta

import pytest

from core.constants import (
    STAFF_ROLE_NURSE, INVITATION_STATUS_ACCEPTED, INVITATION_STATUS_REVOKED, DEFAULT_ROLE_PERMISSIONS,
)
from core.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from services.staff_invitation_service import StaffInvitationService, build_accept_url
from services.staff_service import StaffService
from utils.datetime_utils import utc_now
from tests.conftest import create_practice_with_owner, create_principal


@pytest.fixture
def practice(db_session):
    return create_practice_with_owner(db_session)


def test_accept_creates_membership(db_session, practice):
    invitation = StaffInvitationService.create_invitation(
        db_session, "doctor-owner", practice.id, "Nina@Example.com", STAFF_ROLE_NURSE, department="Ward 2"
    )
    create_principal(db_session, "nurse-1", email="nina@example.com")

    membership = StaffInvitationService.accept_invitation(db_session, "nurse-1", invitation.invitation_token)

    assert membership.practice_id == practice.id
    assert membership.role == STAFF_ROLE_NURSE
    assert membership.department == "Ward 2"
    assert membership.permissions == DEFAULT_ROLE_PERMISSIONS[STAFF_ROLE_NURSE]
    assert invitation.status == INVITATION_STATUS_ACCEPTED
    assert invitation.accepted_at is not None


def test_token_is_single_use(db_session, practice):
    invitation = StaffInvitationService.create_invitation(
        db_session, "doctor-owner", practice.id, "nina@example.com", STAFF_ROLE_NURSE
    )
    create_principal(db_session, "nurse-1", email="nina@example.com")
    StaffInvitationService.accept_invitation(db_session, "nurse-1", invitation.invitation_token)

    with pytest.raises(NotFoundError):
        StaffInvitationService.accept_invitation(db_session, "nurse-1", invitation.invitation_token)


def test_accept_with_other_email_is_denied(db_session, practice):
    invitation = StaffInvitationService.create_invitation(
        db_session, "doctor-owner", practice.id, "nina@example.com", STAFF_ROLE_NURSE
    )
    create_principal(db_session, "someone-else", email="else@example.com")

    with pytest.raises(PermissionDeniedError):
        StaffInvitationService.accept_invitation(db_session, "someone-else", invitation.invitation_token)


def test_expired_invitation(db_session, practice):
    invitation = StaffInvitationService.create_invitation(
        db_session, "doctor-owner", practice.id, "nina@example.com", STAFF_ROLE_NURSE
    )
    invitation.expires_at = utc_now() - timedelta(minutes=1)
    db_session.commit()
    create_principal(db_session, "nurse-1", email="nina@example.com")

    with pytest.raises(NotFoundError):
        StaffInvitationService.accept_invitation(db_session, "nurse-1", invitation.invitation_token)
    assert StaffInvitationService.list_invitations(db_session, "doctor-owner", practice.id) == []


def test_revoke(db_session, practice):
    invitation = StaffInvitationService.create_invitation(
        db_session, "doctor-owner", practice.id, "nina@example.com", STAFF_ROLE_NURSE
    )

    revoked = StaffInvitationService.revoke_invitation(db_session, "doctor-owner", invitation.id)

    assert revoked.status == INVITATION_STATUS_REVOKED
    with pytest.raises(ConflictError):
        StaffInvitationService.revoke_invitation(db_session, "doctor-owner", invitation.id)


def test_inviting_existing_member_is_conflict(db_session, practice):
    create_principal(db_session, "nurse-1", email="nina@example.com")
    StaffService.add_staff_member(db_session, "doctor-owner", practice.id, STAFF_ROLE_NURSE, principal_id="nurse-1")

    with pytest.raises(ConflictError):
        StaffInvitationService.create_invitation(
            db_session, "doctor-owner", practice.id, "nina@example.com", STAFF_ROLE_NURSE
        )


def test_invite_requires_manage_staff(db_session, practice):
    create_principal(db_session, "outsider")

    with pytest.raises(PermissionDeniedError):
        StaffInvitationService.create_invitation(
            db_session, "outsider", practice.id, "nina@example.com", STAFF_ROLE_NURSE
        )


def test_invite_rejects_invalid_role(db_session, practice):
    with pytest.raises(ValidationError):
        StaffInvitationService.create_invitation(db_session, "doctor-owner", practice.id, "nina@example.com", "chef")


def test_list_invitations(db_session, practice):
    StaffInvitationService.create_invitation(db_session, "doctor-owner", practice.id, "a@example.com", STAFF_ROLE_NURSE)
    StaffInvitationService.create_invitation(db_session, "doctor-owner", practice.id, "b@example.com", STAFF_ROLE_NURSE)

    invitations = StaffInvitationService.list_invitations(db_session, "doctor-owner", practice.id)

    assert sorted(i.email for i in invitations) == ["a@example.com", "b@example.com"]


def test_build_accept_url():
    assert build_accept_url("abc").endswith("/staff/invitations/accept?token=abc")
