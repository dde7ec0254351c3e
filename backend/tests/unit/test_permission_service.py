"""
Unit tests for membership-based authorization.
"""

import pytest

from core.constants import (
    STAFF_ROLE_NURSE, STAFF_ROLE_RECEPTIONIST, PERMISSION_MANAGE_STAFF, PERMISSION_SCHEDULE_APPOINTMENTS,
    PERMISSION_VIEW_PATIENTS, FULL_PERMISSION_SET,
)
from core.exceptions import PermissionDeniedError
from services.permission_service import PermissionService
from services.staff_service import StaffService
from tests.conftest import create_practice_with_owner, create_principal, get_membership


class TestAuthorize:

    def test_admin_is_allowed_every_action(self, db_session):
        practice = create_practice_with_owner(db_session)
        membership = get_membership(db_session, "doctor-owner", practice.id)
        # Stored permissions do not matter for admins
        membership.permissions = []
        db_session.commit()

        for action in FULL_PERMISSION_SET + ["export_everything"]:
            assert PermissionService.authorize(db_session, "doctor-owner", practice.id, action) is True

    def test_non_member_is_denied(self, db_session):
        practice = create_practice_with_owner(db_session)
        create_principal(db_session, "outsider")

        assert PermissionService.authorize(db_session, "outsider", practice.id, PERMISSION_VIEW_PATIENTS) is False

    def test_member_of_other_practice_is_denied(self, db_session):
        practice = create_practice_with_owner(db_session)
        create_practice_with_owner(db_session, owner_id="doctor-two", practice_name="Other Clinic")

        assert PermissionService.authorize(db_session, "doctor-two", practice.id, PERMISSION_VIEW_PATIENTS) is False

    def test_explicit_permissions_decide_for_non_admins(self, db_session):
        practice = create_practice_with_owner(db_session)
        create_principal(db_session, "nurse-1")
        StaffService.add_staff_member(
            db_session, "doctor-owner", practice.id, STAFF_ROLE_NURSE,
            principal_id="nurse-1", permissions=[PERMISSION_SCHEDULE_APPOINTMENTS],
        )

        assert PermissionService.authorize(db_session, "nurse-1", practice.id, PERMISSION_SCHEDULE_APPOINTMENTS)
        assert not PermissionService.authorize(db_session, "nurse-1", practice.id, PERMISSION_VIEW_PATIENTS)
        assert not PermissionService.authorize(db_session, "nurse-1", practice.id, "export_everything")

    def test_permission_change_applies_to_next_call(self, db_session):
        practice = create_practice_with_owner(db_session)
        create_principal(db_session, "reception-1")
        membership = StaffService.add_staff_member(
            db_session, "doctor-owner", practice.id, STAFF_ROLE_RECEPTIONIST, principal_id="reception-1"
        )
        assert not PermissionService.authorize(db_session, "reception-1", practice.id, PERMISSION_MANAGE_STAFF)

        StaffService.update_staff_permissions(
            db_session, "doctor-owner", membership.id, [PERMISSION_MANAGE_STAFF]
        )

        assert PermissionService.authorize(db_session, "reception-1", practice.id, PERMISSION_MANAGE_STAFF)

    def test_removed_member_is_denied(self, db_session):
        practice = create_practice_with_owner(db_session)
        create_principal(db_session, "nurse-1")
        membership = StaffService.add_staff_member(
            db_session, "doctor-owner", practice.id, STAFF_ROLE_NURSE, principal_id="nurse-1"
        )

        StaffService.remove_staff_member(db_session, "doctor-owner", membership.id)

        assert not PermissionService.authorize(db_session, "nurse-1", practice.id, PERMISSION_VIEW_PATIENTS)


def test_require_permission_raises_permission_denied(db_session):
    practice = create_practice_with_owner(db_session)
    create_principal(db_session, "outsider")

    with pytest.raises(PermissionDeniedError) as exc_info:
        PermissionService.require_permission(db_session, "outsider", practice.id, PERMISSION_MANAGE_STAFF)
    assert exc_info.value.status_code == 403
