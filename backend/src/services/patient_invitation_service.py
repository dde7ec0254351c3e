"""
Patient invitation service.

Direct add only works for patients who already have an account. Staff with
manage_patients can instead invite an email address; the invitee registers
as a patient with that email and accepts with the token, which assigns them
to the practice. Sending the email is left to the caller.
"""

import logging
import re
import secrets
from typing import List

from sqlalchemy.orm import Session

from core.config import FRONTEND_URL, PATIENT_INVITATION_EXPIRE_DAYS
from core.constants import (
    INVITATION_STATUS_PENDING, INVITATION_STATUS_ACCEPTED, INVITATION_STATUS_REVOKED,
    PERMISSION_MANAGE_PATIENTS, REQUEST_STATUS_CANCELLED, ROLE_PATIENT, STATUS_ACTIVE,
)
from core.database import commit_or_conflict
from core.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from models import PatientAssignment, PatientInvitation
from services.patient_assignment_service import (
    ALREADY_ASSIGNED_MESSAGE, PatientAssignmentService, get_active_assignment, get_pending_request,
)
from services.permission_service import PermissionService
from services.practice_service import PracticeService
from services.principal_service import PrincipalService, normalize_email
from utils.datetime_utils import utc_now, utc_after, is_expired
from utils.retry import retry_on_store_error

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PENDING_INVITATION_MESSAGE = "An invitation to this email is already pending"


def build_patient_accept_url(token: str) -> str:
    return f"{FRONTEND_URL}/patient-invitations/accept?token={token}"


class PatientInvitationService:
    """
    Service class for patient invitations.
    """

    @staticmethod
    @retry_on_store_error()
    def create_patient_invitation(
        db: Session, actor_id: str, practice_id: int, email: str
    ) -> PatientInvitation:
        """
        Invite an email address to become a patient of the practice.

        An expired pending invitation to the same email is revoked and
        replaced.

        Args:
            db: Database session
            actor_id: Staff principal sending the invitation
            practice_id: Practice the patient is invited to
            email: Address of the invitee

        Returns:
            The pending PatientInvitation with its token

        Raises:
            PermissionDeniedError: Actor lacks manage_patients
            ValidationError: Missing or malformed email, or the email belongs to a non-patient account
            ConflictError: The patient is already assigned, or an invitation is already pending
        """
        PermissionService.require_permission(db, actor_id, practice_id, PERMISSION_MANAGE_PATIENTS)
        PracticeService.get_practice(db, practice_id)
        if not email or not EMAIL_PATTERN.match(email.strip()):
            raise ValidationError("A valid email address is required")
        email = normalize_email(email)

        existing = PrincipalService.find_by_email(db, email)
        if existing is not None:
            if existing.role != ROLE_PATIENT:
                raise ValidationError("This email belongs to an account that is not a patient")
            record = existing.patient_record
            if record is not None and get_active_assignment(db, record.id, practice_id) is not None:
                raise ConflictError(ALREADY_ASSIGNED_MESSAGE)

        pending = db.query(PatientInvitation).filter(
            PatientInvitation.practice_id == practice_id,
            PatientInvitation.email == email,
            PatientInvitation.status == INVITATION_STATUS_PENDING,
        ).first()
        if pending is not None:
            if not is_expired(pending.expires_at):
                raise ConflictError(PENDING_INVITATION_MESSAGE)
            pending.status = INVITATION_STATUS_REVOKED
            db.flush()

        invitation = PatientInvitation(
            practice_id=practice_id,
            email=email,
            invitation_token=secrets.token_urlsafe(32),
            invited_by=actor_id,
            status=INVITATION_STATUS_PENDING,
            expires_at=utc_after(days=PATIENT_INVITATION_EXPIRE_DAYS),
        )
        db.add(invitation)
        commit_or_conflict(db, PENDING_INVITATION_MESSAGE)
        db.refresh(invitation)
        logger.info(f"Principal {actor_id} invited patient {email} to practice {practice_id}")
        return invitation

    @staticmethod
    @retry_on_store_error()
    def list_patient_invitations(db: Session, actor_id: str, practice_id: int) -> List[PatientInvitation]:
        """Pending, unexpired patient invitations of a practice."""
        PermissionService.require_permission(db, actor_id, practice_id, PERMISSION_MANAGE_PATIENTS)
        invitations = db.query(PatientInvitation).filter(
            PatientInvitation.practice_id == practice_id,
            PatientInvitation.status == INVITATION_STATUS_PENDING,
        ).order_by(PatientInvitation.created_at.desc()).all()
        return [invitation for invitation in invitations if not is_expired(invitation.expires_at)]

    @staticmethod
    @retry_on_store_error()
    def revoke_patient_invitation(db: Session, actor_id: str, invitation_id: int) -> PatientInvitation:
        invitation = db.get(PatientInvitation, invitation_id)
        if invitation is None:
            raise NotFoundError("Invitation not found")
        PermissionService.require_permission(db, actor_id, invitation.practice_id, PERMISSION_MANAGE_PATIENTS)
        if invitation.status != INVITATION_STATUS_PENDING:
            raise ConflictError(f"Invitation is already {invitation.status}")
        invitation.status = INVITATION_STATUS_REVOKED
        db.commit()
        logger.info(f"Principal {actor_id} revoked patient invitation {invitation_id}")
        return invitation

    @staticmethod
    @retry_on_store_error()
    def accept_patient_invitation(db: Session, principal_id: str, token: str) -> PatientAssignment:
        """
        Accept a patient invitation on behalf of the signed-in patient.

        The invitation and the assignment are committed together. If the
        patient was assigned to the practice in the meantime, that assignment
        is returned and the invitation is still marked accepted. A pending
        physician request for the same practice is cancelled.

        Raises:
            NotFoundError: Unknown, expired, revoked or already used token
            PermissionDeniedError: The principal is not a patient, or the invitation was sent to another email
            PatientRecordMissingError: The patient has no PatientRecord
        """
        invitation = db.query(PatientInvitation).filter(
            PatientInvitation.invitation_token == token
        ).first()
        if (
            invitation is None
            or invitation.status != INVITATION_STATUS_PENDING
            or is_expired(invitation.expires_at)
        ):
            raise NotFoundError("Invitation not found or expired")

        principal = PrincipalService.resolve(db, principal_id)
        if principal.role != ROLE_PATIENT:
            raise PermissionDeniedError("Only patients can accept a patient invitation")
        if normalize_email(principal.email) != invitation.email:
            raise PermissionDeniedError("This invitation was sent to a different email address")
        record = PatientAssignmentService.get_patient_record_for_principal(db, principal_id)

        now = utc_now()
        assignment = get_active_assignment(db, record.id, invitation.practice_id)
        if assignment is None:
            assignment = PatientAssignment(
                patient_id=record.id,
                practice_id=invitation.practice_id,
                assigned_by=invitation.invited_by,
                assigned_date=now,
                status=STATUS_ACTIVE,
            )
            db.add(assignment)

        pending = get_pending_request(db, record.id, invitation.practice_id)
        if pending is not None:
            pending.status = REQUEST_STATUS_CANCELLED
            pending.reviewed_at = now

        invitation.status = INVITATION_STATUS_ACCEPTED
        invitation.accepted_at = now
        invitation.assignment = assignment
        commit_or_conflict(db, ALREADY_ASSIGNED_MESSAGE)
        db.refresh(assignment)
        logger.info(
            f"Patient {principal_id} accepted invitation {invitation.id} "
            f"and is assigned to practice {invitation.practice_id}"
        )
        return assignment
