"""
Practice service.

This module contains business logic for practice CRUD, search, the
per-principal membership list and the operator view of practices that lost
their last admin.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, joinedload

from core.constants import PRACTICE_SEARCH_LIMIT, STAFF_ROLE_ADMIN, STATUS_ACTIVE
from core.exceptions import NotFoundError, ValidationError
from models import (
    Practice, StaffMembership, PatientAssignment, PhysicianPatientRequest,
    StaffInvitation, PracticeJoinRequest, PatientInvitation,
)
from utils.retry import retry_on_store_error

logger = logging.getLogger(__name__)


@dataclass
class PracticeSummary:
    """Counts shown on the practice dashboard."""
    practice: Practice
    active_staff_count: int
    active_patient_count: int


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def validate_practice_name(name: Optional[str]) -> str:
    """Return the trimmed name or raise ValidationError if it is empty."""
    cleaned = _clean(name)
    if not cleaned:
        raise ValidationError("Practice name is required")
    return cleaned


class PracticeService:
    """
    Service class for practice operations.
    """

    @staticmethod
    def build_practice(
        name: Optional[str],
        address: Optional[str] = None,
        phone: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Practice:
        """Validate fields and build an unsaved Practice."""
        return Practice(
            name=validate_practice_name(name),
            address=_clean(address),
            phone=_clean(phone),
            email=_clean(email),
        )

    @staticmethod
    @retry_on_store_error()
    def create_practice(
        db: Session,
        name: Optional[str],
        address: Optional[str] = None,
        phone: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Practice:
        """
        Create a practice.

        No membership is created; making someone its admin is the job of
        owner onboarding or of staff management.

        Raises:
            ValidationError: If the name is empty or whitespace-only
        """
        practice = PracticeService.build_practice(name, address, phone, email)
        db.add(practice)
        db.commit()
        db.refresh(practice)
        logger.info(f"Created practice {practice.id} ({practice.name})")
        return practice

    @staticmethod
    @retry_on_store_error()
    def get_practice(db: Session, practice_id: int) -> Practice:
        """
        Get a practice by id.

        Raises:
            NotFoundError: If the practice does not exist
        """
        practice = db.get(Practice, practice_id)
        if practice is None:
            raise NotFoundError("Practice not found")
        return practice

    @staticmethod
    @retry_on_store_error()
    def update_practice(
        db: Session,
        practice_id: int,
        name: Optional[str] = None,
        address: Optional[str] = None,
        phone: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Practice:
        """
        Update the given practice fields. Fields left as None are unchanged.

        Raises:
            NotFoundError: If the practice does not exist
            ValidationError: If a new name is empty
        """
        practice = PracticeService.get_practice(db, practice_id)
        if name is not None:
            practice.name = validate_practice_name(name)
        if address is not None:
            practice.address = _clean(address)
        if phone is not None:
            practice.phone = _clean(phone)
        if email is not None:
            practice.email = _clean(email)
        db.commit()
        db.refresh(practice)
        logger.info(f"Updated practice {practice_id}")
        return practice

    @staticmethod
    @retry_on_store_error()
    def delete_practice(db: Session, practice_id: int) -> bool:
        """
        Delete a practice and everything that references it.

        Dependents are removed in a fixed order inside one transaction so the
        practice never exists with dangling references and a failure leaves
        everything in place. Deleting a practice that does not exist is a
        no-op.

        Returns:
            True if a practice was deleted, False if it was already absent
        """
        practice = db.get(Practice, practice_id)
        if practice is None:
            logger.info(f"Practice {practice_id} already absent, nothing to delete")
            return False

        try:
            # Patient invitations point at assignments, so they go first
            db.query(PatientInvitation).filter(
                PatientInvitation.practice_id == practice_id
            ).delete(synchronize_session=False)
            assignments = db.query(PatientAssignment).filter(
                PatientAssignment.practice_id == practice_id
            ).delete(synchronize_session=False)
            requests = db.query(PhysicianPatientRequest).filter(
                PhysicianPatientRequest.practice_id == practice_id
            ).delete(synchronize_session=False)
            db.query(StaffInvitation).filter(
                StaffInvitation.practice_id == practice_id
            ).delete(synchronize_session=False)
            db.query(PracticeJoinRequest).filter(
                PracticeJoinRequest.practice_id == practice_id
            ).delete(synchronize_session=False)
            memberships = db.query(StaffMembership).filter(
                StaffMembership.practice_id == practice_id
            ).delete(synchronize_session=False)
            db.delete(practice)
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.expire_all()
        logger.info(
            f"Deleted practice {practice_id} with {assignments} assignments, "
            f"{requests} patient requests and {memberships} memberships"
        )
        return True

    @staticmethod
    @retry_on_store_error()
    def search_practices(db: Session, term: str) -> List[Practice]:
        """Case-insensitive search on practice name or email."""
        term = (term or "").strip()
        query = db.query(Practice)
        if term:
            pattern = f"%{term.lower()}%"
            query = query.filter(or_(
                func.lower(Practice.name).like(pattern),
                func.lower(Practice.email).like(pattern),
            ))
        return query.order_by(Practice.name).limit(PRACTICE_SEARCH_LIMIT).all()

    @staticmethod
    @retry_on_store_error()
    def get_practice_summary(db: Session, practice_id: int) -> PracticeSummary:
        practice = PracticeService.get_practice(db, practice_id)
        staff_count = db.query(func.count(StaffMembership.id)).filter(
            StaffMembership.practice_id == practice_id,
            StaffMembership.status == STATUS_ACTIVE,
        ).scalar() or 0
        patient_count = db.query(func.count(PatientAssignment.id)).filter(
            PatientAssignment.practice_id == practice_id,
            PatientAssignment.status == STATUS_ACTIVE,
        ).scalar() or 0
        return PracticeSummary(
            practice=practice,
            active_staff_count=staff_count,
            active_patient_count=patient_count,
        )

    @staticmethod
    @retry_on_store_error()
    def list_memberships(db: Session, principal_id: str) -> List[StaffMembership]:
        """
        Active memberships of a principal, with their practices loaded.

        An empty list is the normal state of a doctor who joined no practice
        yet; callers must not treat it as an error.
        """
        return db.query(StaffMembership).options(
            joinedload(StaffMembership.practice)
        ).filter(
            StaffMembership.principal_id == principal_id,
            StaffMembership.status == STATUS_ACTIVE,
        ).order_by(StaffMembership.id).all()

    @staticmethod
    @retry_on_store_error()
    def find_practices_without_admin(db: Session) -> List[Practice]:
        """Practices with no active admin membership, for operators to repair."""
        admin_practice_ids = select(StaffMembership.practice_id).where(
            StaffMembership.role == STAFF_ROLE_ADMIN,
            StaffMembership.status == STATUS_ACTIVE,
        )
        practices = db.query(Practice).filter(
            Practice.id.not_in(admin_practice_ids)
        ).order_by(Practice.id).all()
        for practice in practices:
            logger.warning(f"Practice {practice.id} ({practice.name}) has no active admin")
        return practices
