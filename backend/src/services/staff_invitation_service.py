"""
Staff invitation service.

Staff with manage_staff invite someone by email. The invitee signs up (or
signs in) and accepts with the token; accepting creates their membership.
Tokens are single-use and expire after STAFF_INVITATION_EXPIRE_DAYS.
"""

import logging
import secrets
from typing import List, Optional

from sqlalchemy.orm import Session

from core.config import FRONTEND_URL, STAFF_INVITATION_EXPIRE_DAYS
from core.constants import (
    INVITATION_STATUS_PENDING, INVITATION_STATUS_ACCEPTED, INVITATION_STATUS_REVOKED,
    PERMISSION_MANAGE_STAFF,
)
from core.database import commit_or_conflict
from core.exceptions import NotFoundError, PermissionDeniedError, ValidationError, ConflictError
from models import StaffInvitation, StaffMembership
from services.permission_service import PermissionService
from services.practice_service import PracticeService
from services.principal_service import PrincipalService, normalize_email
from services.staff_service import (
    DUPLICATE_MEMBERSHIP_MESSAGE, build_membership, validate_staff_role,
)
from utils.datetime_utils import utc_now, utc_after, is_expired
from utils.retry import retry_on_store_error

logger = logging.getLogger(__name__)


def build_accept_url(token: str) -> str:
    return f"{FRONTEND_URL}/staff/invitations/accept?token={token}"


class StaffInvitationService:
    """
    Service class for staff invitations.
    """

    @staticmethod
    @retry_on_store_error()
    def create_invitation(
        db: Session,
        actor_id: str,
        practice_id: int,
        email: str,
        role: str,
        department: Optional[str] = None,
    ) -> StaffInvitation:
        """
        Invite an email address to join the practice's staff.

        Raises:
            PermissionDeniedError: Actor lacks manage_staff
            ValidationError: Empty email or invalid role
            ConflictError: The email already belongs to an active staff member
        """
        PermissionService.require_permission(db, actor_id, practice_id, PERMISSION_MANAGE_STAFF)
        PracticeService.get_practice(db, practice_id)
        validate_staff_role(role)
        if not email or not email.strip():
            raise ValidationError("Email is required")

        existing = PrincipalService.find_by_email(db, email)
        if existing is not None and PermissionService.is_member(db, existing.id, practice_id):
            raise ConflictError(DUPLICATE_MEMBERSHIP_MESSAGE)

        invitation = StaffInvitation(
            practice_id=practice_id,
            email=normalize_email(email),
            role=role,
            department=(department or "").strip() or None,
            invitation_token=secrets.token_urlsafe(32),
            invited_by=actor_id,
            status=INVITATION_STATUS_PENDING,
            expires_at=utc_after(days=STAFF_INVITATION_EXPIRE_DAYS),
        )
        db.add(invitation)
        db.commit()
        db.refresh(invitation)
        logger.info(f"Principal {actor_id} invited {invitation.email} to practice {practice_id} as {role}")
        return invitation

    @staticmethod
    @retry_on_store_error()
    def list_invitations(db: Session, actor_id: str, practice_id: int) -> List[StaffInvitation]:
        """Pending, unexpired invitations of a practice."""
        PermissionService.require_permission(db, actor_id, practice_id, PERMISSION_MANAGE_STAFF)
        invitations = db.query(StaffInvitation).filter(
            StaffInvitation.practice_id == practice_id,
            StaffInvitation.status == INVITATION_STATUS_PENDING,
        ).order_by(StaffInvitation.created_at.desc()).all()
        return [invitation for invitation in invitations if not is_expired(invitation.expires_at)]

    @staticmethod
    @retry_on_store_error()
    def revoke_invitation(db: Session, actor_id: str, invitation_id: int) -> StaffInvitation:
        invitation = db.get(StaffInvitation, invitation_id)
        if invitation is None:
            raise NotFoundError("Invitation not found")
        PermissionService.require_permission(db, actor_id, invitation.practice_id, PERMISSION_MANAGE_STAFF)
        if invitation.status != INVITATION_STATUS_PENDING:
            raise ConflictError(f"Invitation is already {invitation.status}")
        invitation.status = INVITATION_STATUS_REVOKED
        db.commit()
        logger.info(f"Principal {actor_id} revoked invitation {invitation_id}")
        return invitation

    @staticmethod
    @retry_on_store_error()
    def accept_invitation(db: Session, principal_id: str, token: str) -> StaffMembership:
        """
        Accept an invitation on behalf of the signed-in principal.

        The invitation and the new membership are committed together.

        Raises:
            NotFoundError: Unknown, expired, revoked or already used token
            PermissionDeniedError: The invitation was addressed to another email
            ConflictError: The principal is already active staff of the practice
        """
        invitation = db.query(StaffInvitation).filter(
            StaffInvitation.invitation_token == token
        ).first()
        if (
            invitation is None
            or invitation.status != INVITATION_STATUS_PENDING
            or is_expired(invitation.expires_at)
        ):
            raise NotFoundError("Invitation not found or expired")

        principal = PrincipalService.resolve(db, principal_id)
        if normalize_email(principal.email) != invitation.email:
            raise PermissionDeniedError("This invitation was sent to a different email address")

        membership = build_membership(
            db, principal, invitation.practice_id, invitation.role, invitation.department
        )
        invitation.status = INVITATION_STATUS_ACCEPTED
        invitation.accepted_at = utc_now()
        commit_or_conflict(db, DUPLICATE_MEMBERSHIP_MESSAGE)
        db.refresh(membership)
        logger.info(
            f"Principal {principal_id} accepted invitation {invitation.id} "
            f"and joined practice {invitation.practice_id} as {invitation.role}"
        )
        return membership
