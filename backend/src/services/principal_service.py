"""
Principal service: role resolution and registration.

Resolves an authenticated identity to its directory record and declared
role, and creates that record at signup. A patient principal gets its
PatientRecord in the same transaction so the patient screens never see a
patient without clinical identity.
"""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from core.constants import PRINCIPAL_ROLES, ROLE_PATIENT, PATIENT_CREATED_BY_SELF
from core.database import commit_or_conflict
from core.exceptions import ConflictError, PrincipalNotFoundError, ValidationError
from models import Principal, PatientRecord
from utils.retry import retry_on_store_error

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """Emails are stored and compared lower-cased without surrounding whitespace."""
    return email.strip().lower()


class PrincipalService:
    """
    Service class for principal lookups and registration.
    """

    @staticmethod
    @retry_on_store_error()
    def resolve(db: Session, principal_id: str) -> Principal:
        """
        Resolve an authenticated principal id to its directory record.

        Args:
            db: Database session
            principal_id: Subject identifier from the identity provider

        Returns:
            The Principal with its declared role

        Raises:
            PrincipalNotFoundError: If registration was never completed
        """
        principal = db.get(Principal, principal_id)
        if principal is None:
            raise PrincipalNotFoundError(principal_id)
        return principal

    @staticmethod
    @retry_on_store_error()
    def get_profile(db: Session, principal_id: str) -> Principal:
        """Resolve a principal with its DoctorRecord/PatientRecord loaded."""
        principal = db.query(Principal).options(
            selectinload(Principal.doctor_record),
            selectinload(Principal.patient_record),
        ).filter(Principal.id == principal_id).first()
        if principal is None:
            raise PrincipalNotFoundError(principal_id)
        return principal

    @staticmethod
    def find_by_email(db: Session, email: str) -> Optional[Principal]:
        """Case-insensitive lookup of a principal by email."""
        return db.query(Principal).filter(
            func.lower(Principal.email) == normalize_email(email)
        ).first()

    @staticmethod
    @retry_on_store_error()
    def register_principal(
        db: Session,
        principal_id: str,
        email: str,
        role: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Principal:
        """
        Create the directory record for an authenticated identity.

        Raises:
            ValidationError: Unknown role or empty email
            ConflictError: The principal id or email is already registered
        """
        if role not in PRINCIPAL_ROLES:
            raise ValidationError(f"Invalid role '{role}'")
        if not email or not email.strip():
            raise ValidationError("Email is required")

        if db.get(Principal, principal_id) is not None:
            raise ConflictError("This account is already registered")
        if PrincipalService.find_by_email(db, email) is not None:
            raise ConflictError("This email is already registered")

        principal = Principal(
            id=principal_id,
            email=normalize_email(email),
            role=role,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
        )
        db.add(principal)

        if role == ROLE_PATIENT:
            db.add(PatientRecord(
                principal_id=principal_id,
                first_name=first_name,
                last_name=last_name,
                phone=phone,
                created_by_type=PATIENT_CREATED_BY_SELF,
            ))

        commit_or_conflict(db, "This account is already registered")
        db.refresh(principal)
        logger.info(f"Registered principal {principal_id} with role {role}")
        return principal
