"""
Permission service: answers "may this principal do this in this practice".

Every call re-reads the current active memberships; decisions are never
cached, so a permission change made through staff management applies to the
very next request.
"""

import logging
from typing import List

from sqlalchemy.orm import Session

from core.constants import STATUS_ACTIVE
from core.exceptions import PermissionDeniedError
from models import StaffMembership
from utils.retry import retry_on_store_error

logger = logging.getLogger(__name__)


class PermissionService:
    """
    Service class for membership-based authorization.
    """

    @staticmethod
    def get_active_memberships(db: Session, principal_id: str, practice_id: int) -> List[StaffMembership]:
        """Active memberships of a principal in one practice (normally zero or one)."""
        return db.query(StaffMembership).filter(
            StaffMembership.principal_id == principal_id,
            StaffMembership.practice_id == practice_id,
            StaffMembership.status == STATUS_ACTIVE,
        ).all()

    @staticmethod
    @retry_on_store_error()
    def authorize(db: Session, principal_id: str, practice_id: int, action: str) -> bool:
        """
        Decide whether a principal may perform an action on a practice.

        Admin memberships are allowed every action, including actions not in
        the permission set; other memberships are allowed only the actions
        listed in their stored permissions.

        Args:
            db: Database session
            principal_id: Acting principal
            practice_id: Practice the action targets
            action: Permission name, e.g. 'manage_staff'

        Returns:
            True for Allow, False for Deny
        """
        memberships = PermissionService.get_active_memberships(db, principal_id, practice_id)
        if not memberships:
            return False
        if any(membership.is_admin for membership in memberships):
            return True
        return any(action in (membership.permissions or []) for membership in memberships)

    @staticmethod
    def require_permission(db: Session, principal_id: str, practice_id: int, action: str) -> None:
        """
        Raise PermissionDeniedError unless authorize() allows the action.
        """
        if not PermissionService.authorize(db, principal_id, practice_id, action):
            logger.info(f"Denied {action} on practice {practice_id} for principal {principal_id}")
            raise PermissionDeniedError(f"You do not have the '{action}' permission for this practice")

    @staticmethod
    def is_member(db: Session, principal_id: str, practice_id: int) -> bool:
        return bool(PermissionService.get_active_memberships(db, principal_id, practice_id))
