"""
Doctor onboarding service.

A newly registered doctor either creates a practice (owner) or records their
professional details and waits to be added by an existing practice
(employee). The onboarding state is derived from current rows every time it
is asked for; nothing about onboarding progress is stored.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from core.constants import (
    ROLE_DOCTOR, STATUS_ACTIVE, STAFF_ROLE_ADMIN, FULL_PERMISSION_SET, OWNER_DEPARTMENT,
)
from core.database import commit_or_conflict
from core.exceptions import ConflictError, PermissionDeniedError, ValidationError
from models import DoctorRecord, Practice, StaffMembership
from services.practice_service import PracticeService
from services.principal_service import PrincipalService
from utils.retry import retry_on_store_error

logger = logging.getLogger(__name__)


class OnboardingState(str, Enum):
    """Where a principal stands in doctor onboarding."""
    UNSET = "unset"                          # Not a doctor; onboarding does not apply
    AWAITING_CHOICE = "awaiting_choice"      # Doctor with no details and no practice
    CREATING_PRACTICE = "creating_practice"  # Only inside the owner transaction
    JOINING_EXISTING = "joining_existing"    # Details recorded, waiting to be added
    COMPLETE = "complete"                    # Has an active membership somewhere


class OnboardingChoice(str, Enum):
    OWNER = "owner"
    EMPLOYEE = "employee"


@dataclass
class OnboardingFields:
    """Fields submitted on the onboarding screen."""
    specialty: Optional[str] = None
    license_number: Optional[str] = None
    practice_name: Optional[str] = None
    practice_address: Optional[str] = None
    practice_phone: Optional[str] = None
    practice_email: Optional[str] = None


def _has_active_membership(db: Session, principal_id: str) -> bool:
    return db.query(StaffMembership.id).filter(
        StaffMembership.principal_id == principal_id,
        StaffMembership.status == STATUS_ACTIVE,
    ).first() is not None


def _get_doctor_record(db: Session, principal_id: str) -> Optional[DoctorRecord]:
    return db.query(DoctorRecord).filter(DoctorRecord.principal_id == principal_id).first()


class OnboardingService:
    """
    Service class for the doctor onboarding flow.
    """

    @staticmethod
    @retry_on_store_error()
    def needs_practice_setup(db: Session, principal_id: str) -> bool:
        """
        True iff the principal is a doctor with no active membership anywhere.

        Recomputed on every call so it follows staff changes immediately.
        """
        principal = PrincipalService.resolve(db, principal_id)
        if principal.role != ROLE_DOCTOR:
            return False
        return not _has_active_membership(db, principal_id)

    @staticmethod
    @retry_on_store_error()
    def get_onboarding_state(db: Session, principal_id: str) -> OnboardingState:
        principal = PrincipalService.resolve(db, principal_id)
        if principal.role != ROLE_DOCTOR:
            return OnboardingState.UNSET
        if _has_active_membership(db, principal_id):
            return OnboardingState.COMPLETE
        if _get_doctor_record(db, principal_id) is not None:
            return OnboardingState.JOINING_EXISTING
        return OnboardingState.AWAITING_CHOICE

    @staticmethod
    @retry_on_store_error()
    def complete_onboarding(
        db: Session,
        principal_id: str,
        choice: OnboardingChoice,
        fields: OnboardingFields,
    ) -> Optional[Practice]:
        """
        Apply the doctor's onboarding choice.

        owner: creates the practice, the DoctorRecord (if absent) and an
        admin membership with the full permission set, all in one
        transaction. employee: creates only the DoctorRecord (if absent).

        Args:
            db: Database session
            principal_id: The onboarding doctor
            choice: owner or employee
            fields: Submitted professional and practice details

        Returns:
            The created Practice for owner, None for employee

        Raises:
            PermissionDeniedError: If the principal is not a doctor
            ConflictError: If the doctor already belongs to a practice
            ValidationError: If a required field is missing
        """
        state = OnboardingService.get_onboarding_state(db, principal_id)
        if state == OnboardingState.UNSET:
            raise PermissionDeniedError("Only doctors go through practice onboarding")
        if state == OnboardingState.COMPLETE:
            raise ConflictError("Onboarding is already complete")

        doctor_record = _get_doctor_record(db, principal_id)
        if doctor_record is None:
            specialty = (fields.specialty or "").strip()
            license_number = (fields.license_number or "").strip()
            if not specialty or not license_number:
                raise ValidationError("Specialty and license number are required")

        if choice == OnboardingChoice.EMPLOYEE:
            if doctor_record is None:
                db.add(DoctorRecord(
                    principal_id=principal_id,
                    specialty=specialty,
                    license_number=license_number,
                ))
                commit_or_conflict(db, "Doctor details were already recorded")
                logger.info(f"Doctor {principal_id} chose employee onboarding; waiting to be added to a practice")
            return None

        return OnboardingService._create_owned_practice(db, principal_id, doctor_record, fields)

    @staticmethod
    def _create_owned_practice(
        db: Session,
        principal_id: str,
        doctor_record: Optional[DoctorRecord],
        fields: OnboardingFields,
    ) -> Practice:
        """The CREATING_PRACTICE step: every write lands together or not at all."""
        practice = PracticeService.build_practice(
            fields.practice_name,
            address=fields.practice_address,
            phone=fields.practice_phone,
            email=fields.practice_email,
        )
        try:
            db.add(practice)
            db.flush()  # Assign practice.id for the membership

            if doctor_record is None:
                db.add(DoctorRecord(
                    principal_id=principal_id,
                    specialty=(fields.specialty or "").strip(),
                    license_number=(fields.license_number or "").strip(),
                ))

            db.add(StaffMembership(
                principal_id=principal_id,
                practice_id=practice.id,
                role=STAFF_ROLE_ADMIN,
                department=OWNER_DEPARTMENT,
                permissions=list(FULL_PERMISSION_SET),
                status=STATUS_ACTIVE,
                is_owner=True,
            ))
            commit_or_conflict(db, "Onboarding was completed concurrently")
        except ConflictError:
            raise
        except Exception:
            db.rollback()
            logger.exception(f"Owner onboarding failed for doctor {principal_id}; nothing was saved")
            raise

        db.refresh(practice)
        logger.info(f"Doctor {principal_id} created practice {practice.id} ({practice.name}) as owner")
        return practice
