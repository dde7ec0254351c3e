"""
Practice join request service.

Lets an unaffiliated doctor (or other staff principal) ask to join an
existing practice instead of waiting to be found by its admin. Staff with
manage_staff approve or reject; approval creates the membership.
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session, joinedload

from core.constants import (
    JOIN_REQUEST_STATUS_PENDING, JOIN_REQUEST_STATUS_APPROVED, JOIN_REQUEST_STATUS_REJECTED,
    PERMISSION_MANAGE_STAFF,
)
from core.database import commit_or_conflict
from core.exceptions import ConflictError, NotFoundError
from models import PracticeJoinRequest, StaffMembership
from services.permission_service import PermissionService
from services.practice_service import PracticeService
from services.principal_service import PrincipalService
from services.staff_service import (
    DUPLICATE_MEMBERSHIP_MESSAGE, build_membership, check_staff_eligibility, validate_staff_role,
)
from utils.datetime_utils import utc_now
from utils.retry import retry_on_store_error

logger = logging.getLogger(__name__)


class JoinRequestService:
    """
    Service class for practice join requests.
    """

    @staticmethod
    @retry_on_store_error()
    def create_join_request(
        db: Session,
        principal_id: str,
        practice_id: int,
        requested_role: str,
        message: Optional[str] = None,
    ) -> PracticeJoinRequest:
        """
        Ask to join a practice.

        Raises:
            ValidationError: Invalid role, or a patient asking to be staff
            ConflictError: Already a member, or a request is already pending
        """
        principal = PrincipalService.resolve(db, principal_id)
        PracticeService.get_practice(db, practice_id)
        validate_staff_role(requested_role)
        check_staff_eligibility(principal, requested_role)

        if PermissionService.is_member(db, principal_id, practice_id):
            raise ConflictError("You are already a member of this practice")
        pending = db.query(PracticeJoinRequest).filter(
            PracticeJoinRequest.principal_id == principal_id,
            PracticeJoinRequest.practice_id == practice_id,
            PracticeJoinRequest.status == JOIN_REQUEST_STATUS_PENDING,
        ).first()
        if pending is not None:
            raise ConflictError("A request to join this practice is already pending")

        join_request = PracticeJoinRequest(
            practice_id=practice_id,
            principal_id=principal_id,
            requested_role=requested_role,
            message=(message or "").strip() or None,
            status=JOIN_REQUEST_STATUS_PENDING,
        )
        db.add(join_request)
        commit_or_conflict(db, "A request to join this practice is already pending")
        db.refresh(join_request)
        logger.info(f"Principal {principal_id} asked to join practice {practice_id} as {requested_role}")
        return join_request

    @staticmethod
    @retry_on_store_error()
    def list_join_requests(db: Session, actor_id: str, practice_id: int) -> List[PracticeJoinRequest]:
        """Pending join requests of a practice, oldest first."""
        PermissionService.require_permission(db, actor_id, practice_id, PERMISSION_MANAGE_STAFF)
        return db.query(PracticeJoinRequest).options(
            joinedload(PracticeJoinRequest.principal)
        ).filter(
            PracticeJoinRequest.practice_id == practice_id,
            PracticeJoinRequest.status == JOIN_REQUEST_STATUS_PENDING,
        ).order_by(PracticeJoinRequest.created_at).all()

    @staticmethod
    @retry_on_store_error()
    def review_join_request(
        db: Session,
        actor_id: str,
        request_id: int,
        approve: bool,
        permissions: Optional[Iterable[str]] = None,
    ) -> Optional[StaffMembership]:
        """
        Approve or reject a pending join request.

        Returns:
            The new membership when approved, None when rejected

        Raises:
            NotFoundError: Unknown request
            PermissionDeniedError: Actor lacks manage_staff
            ConflictError: Request already reviewed, or requester already a member
        """
        join_request = db.get(PracticeJoinRequest, request_id)
        if join_request is None:
            raise NotFoundError("Join request not found")
        PermissionService.require_permission(db, actor_id, join_request.practice_id, PERMISSION_MANAGE_STAFF)
        if join_request.status != JOIN_REQUEST_STATUS_PENDING:
            raise ConflictError(f"Join request is already {join_request.status}")

        if not approve:
            join_request.status = JOIN_REQUEST_STATUS_REJECTED
            join_request.reviewed_at = utc_now()
            join_request.reviewed_by = actor_id
            db.commit()
            logger.info(f"Principal {actor_id} rejected join request {request_id}")
            return None

        membership = build_membership(
            db,
            PrincipalService.resolve(db, join_request.principal_id),
            join_request.practice_id,
            join_request.requested_role,
            permissions=permissions,
        )
        join_request.status = JOIN_REQUEST_STATUS_APPROVED
        join_request.reviewed_at = utc_now()
        join_request.reviewed_by = actor_id
        commit_or_conflict(db, DUPLICATE_MEMBERSHIP_MESSAGE)
        db.refresh(membership)
        logger.info(
            f"Principal {actor_id} approved join request {request_id}; "
            f"{join_request.principal_id} joined practice {join_request.practice_id}"
        )
        return membership
