"""
Patient assignment service.

This module contains business logic for linking patients to practices:
direct adds by staff, placeholder patients, physician requests the patient
accepts or rejects, removal, and the reconciliation that repairs an accepted
request whose assignment never landed.
"""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from core.constants import (
    ROLE_PATIENT, STATUS_ACTIVE, STATUS_INACTIVE,
    REQUEST_STATUS_PENDING, REQUEST_STATUS_ACCEPTED, REQUEST_STATUS_REJECTED, REQUEST_STATUS_CANCELLED,
    PERMISSION_MANAGE_PATIENTS, PERMISSION_VIEW_PATIENTS, PATIENT_CREATED_BY_STAFF,
)
from core.database import commit_or_conflict
from core.exceptions import (
    ConflictError, NotFoundError, PatientRecordMissingError, PermissionDeniedError,
    ValidationError, PartialFailureDetected,
)
from models import PatientAssignment, PatientRecord, PhysicianPatientRequest
from services.permission_service import PermissionService
from services.practice_service import PracticeService
from services.principal_service import PrincipalService
from utils.datetime_utils import utc_now
from utils.retry import retry_on_store_error

logger = logging.getLogger(__name__)

ALREADY_ASSIGNED_MESSAGE = "This patient is already assigned to the practice"
PENDING_REQUEST_MESSAGE = "A request to this patient is already pending"


def get_active_assignment(db: Session, patient_id: int, practice_id: int) -> Optional[PatientAssignment]:
    return db.query(PatientAssignment).filter(
        PatientAssignment.patient_id == patient_id,
        PatientAssignment.practice_id == practice_id,
        PatientAssignment.status == STATUS_ACTIVE,
    ).first()


def get_pending_request(db: Session, patient_id: int, practice_id: int) -> Optional[PhysicianPatientRequest]:
    return db.query(PhysicianPatientRequest).filter(
        PhysicianPatientRequest.patient_id == patient_id,
        PhysicianPatientRequest.practice_id == practice_id,
        PhysicianPatientRequest.status == REQUEST_STATUS_PENDING,
    ).first()


class PatientAssignmentService:
    """
    Service class for patient-to-practice assignment operations.
    """

    @staticmethod
    def get_patient_record_for_principal(db: Session, principal_id: str) -> PatientRecord:
        """
        The PatientRecord owned by a patient principal.

        Raises:
            PatientRecordMissingError: If the principal has no PatientRecord
        """
        record = db.query(PatientRecord).filter(PatientRecord.principal_id == principal_id).first()
        if record is None:
            raise PatientRecordMissingError()
        return record

    @staticmethod
    @retry_on_store_error()
    def assign_patient_direct(
        db: Session, actor_id: str, practice_id: int, patient_email: str
    ) -> PatientAssignment:
        """
        Assign a registered patient, found by email, to a practice.

        A pending request for the same pair is cancelled in the same
        transaction, since the direct add supersedes it.

        Args:
            db: Database session
            actor_id: Staff principal performing the add
            practice_id: Practice to assign to
            patient_email: Email of the patient principal

        Returns:
            The new active PatientAssignment

        Raises:
            PermissionDeniedError: Actor lacks manage_patients
            NotFoundError: No patient principal with this email
            PatientRecordMissingError: The patient has no PatientRecord
            ConflictError: The patient is already assigned to the practice
        """
        PermissionService.require_permission(db, actor_id, practice_id, PERMISSION_MANAGE_PATIENTS)
        PracticeService.get_practice(db, practice_id)

        principal = PrincipalService.find_by_email(db, patient_email or "")
        if principal is None or principal.role != ROLE_PATIENT:
            raise NotFoundError("No patient found with this email")
        record = PatientAssignmentService.get_patient_record_for_principal(db, principal.id)

        if get_active_assignment(db, record.id, practice_id) is not None:
            raise ConflictError(ALREADY_ASSIGNED_MESSAGE)

        pending = get_pending_request(db, record.id, practice_id)
        if pending is not None:
            pending.status = REQUEST_STATUS_CANCELLED
            pending.reviewed_at = utc_now()

        assignment = PatientAssignment(
            patient_id=record.id,
            practice_id=practice_id,
            assigned_by=actor_id,
            assigned_date=utc_now(),
            status=STATUS_ACTIVE,
        )
        db.add(assignment)
        commit_or_conflict(db, ALREADY_ASSIGNED_MESSAGE)
        db.refresh(assignment)
        logger.info(
            f"Principal {actor_id} assigned patient {record.id} to practice {practice_id} directly"
            + (f", superseding request {pending.id}" if pending is not None else "")
        )
        return assignment

    @staticmethod
    @retry_on_store_error()
    def create_placeholder_patient(
        db: Session,
        actor_id: str,
        practice_id: int,
        first_name: str,
        last_name: str,
        date_of_birth: Optional[date] = None,
        phone: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> PatientAssignment:
        """
        Create a PatientRecord with no owning principal and assign it to the practice.

        Used when staff book a patient who has no portal account.

        Raises:
            PermissionDeniedError: Actor lacks manage_patients
            ValidationError: Missing first or last name
        """
        PermissionService.require_permission(db, actor_id, practice_id, PERMISSION_MANAGE_PATIENTS)
        PracticeService.get_practice(db, practice_id)
        first_name = (first_name or "").strip()
        last_name = (last_name or "").strip()
        if not first_name or not last_name:
            raise ValidationError("First and last name are required")

        record = PatientRecord(
            principal_id=None,
            first_name=first_name,
            last_name=last_name,
            date_of_birth=date_of_birth,
            phone=(phone or "").strip() or None,
            medical_history=(notes or "").strip() or None,
            created_by_type=PATIENT_CREATED_BY_STAFF,
        )
        db.add(record)
        db.flush()

        assignment = PatientAssignment(
            patient_id=record.id,
            practice_id=practice_id,
            assigned_by=actor_id,
            assigned_date=utc_now(),
            status=STATUS_ACTIVE,
        )
        db.add(assignment)
        db.commit()
        db.refresh(assignment)
        logger.info(f"Principal {actor_id} created placeholder patient {record.id} in practice {practice_id}")
        return assignment

    @staticmethod
    @retry_on_store_error()
    def create_request(
        db: Session,
        actor_id: str,
        practice_id: int,
        patient_id: int,
        message: Optional[str] = None,
    ) -> PhysicianPatientRequest:
        """
        Offer a patient to join the practice's care.

        Raises:
            PermissionDeniedError: Actor lacks manage_patients
            NotFoundError: Unknown patient record
            ValidationError: The patient record has no account to answer with
            ConflictError: Already assigned, or a request is already pending
        """
        PermissionService.require_permission(db, actor_id, practice_id, PERMISSION_MANAGE_PATIENTS)
        PracticeService.get_practice(db, practice_id)

        record = db.get(PatientRecord, patient_id)
        if record is None:
            raise NotFoundError("Patient not found")
        if record.principal_id is None:
            raise ValidationError("This patient has no portal account to answer a request")

        if get_active_assignment(db, patient_id, practice_id) is not None:
            raise ConflictError(ALREADY_ASSIGNED_MESSAGE)
        if get_pending_request(db, patient_id, practice_id) is not None:
            raise ConflictError(PENDING_REQUEST_MESSAGE)

        request = PhysicianPatientRequest(
            practice_id=practice_id,
            patient_id=patient_id,
            requested_by=actor_id,
            message=(message or "").strip() or None,
            status=REQUEST_STATUS_PENDING,
        )
        db.add(request)
        commit_or_conflict(db, PENDING_REQUEST_MESSAGE)
        db.refresh(request)
        logger.info(f"Principal {actor_id} requested patient {patient_id} for practice {practice_id}")
        return request

    @staticmethod
    @retry_on_store_error()
    def cancel_request(db: Session, actor_id: str, request_id: int) -> PhysicianPatientRequest:
        request = db.get(PhysicianPatientRequest, request_id)
        if request is None:
            raise NotFoundError("Request not found")
        PermissionService.require_permission(db, actor_id, request.practice_id, PERMISSION_MANAGE_PATIENTS)
        if request.status != REQUEST_STATUS_PENDING:
            raise ConflictError(f"Request is already {request.status}")
        request.status = REQUEST_STATUS_CANCELLED
        request.reviewed_at = utc_now()
        db.commit()
        logger.info(f"Principal {actor_id} cancelled patient request {request_id}")
        return request

    @staticmethod
    @retry_on_store_error()
    def respond_to_request(
        db: Session, principal_id: str, request_id: int, accept: bool
    ) -> Optional[PatientAssignment]:
        """
        The patient accepts or rejects a pending request.

        Accepting marks the request accepted and creates the assignment in one
        commit, so an accepted request without its assignment can only come
        from a failure outside this transaction (and is repaired by
        reconcile_accepted_requests).

        Args:
            db: Database session
            principal_id: The responding patient principal
            request_id: Request to answer
            accept: True to accept, False to reject

        Returns:
            The active PatientAssignment when accepted, None when rejected

        Raises:
            NotFoundError: Unknown request
            PermissionDeniedError: The request was made to another patient
            ConflictError: The request is no longer pending
        """
        request = db.get(PhysicianPatientRequest, request_id)
        if request is None:
            raise NotFoundError("Request not found")
        record = db.get(PatientRecord, request.patient_id)
        if record is None or record.principal_id != principal_id:
            raise PermissionDeniedError("You can only respond to your own requests")
        if request.status != REQUEST_STATUS_PENDING:
            raise ConflictError(f"Request is already {request.status}")

        if not accept:
            request.status = REQUEST_STATUS_REJECTED
            request.reviewed_at = utc_now()
            db.commit()
            logger.info(f"Patient {principal_id} rejected request {request_id} from practice {request.practice_id}")
            return None

        request.status = REQUEST_STATUS_ACCEPTED
        request.reviewed_at = utc_now()
        assignment = get_active_assignment(db, request.patient_id, request.practice_id)
        if assignment is None:
            assignment = PatientAssignment(
                patient_id=request.patient_id,
                practice_id=request.practice_id,
                assigned_by=principal_id,
                assigned_date=utc_now(),
                status=STATUS_ACTIVE,
                source_request_id=request.id,
            )
            db.add(assignment)
        elif assignment.source_request_id is None:
            assignment.source_request_id = request.id
        commit_or_conflict(db, ALREADY_ASSIGNED_MESSAGE)
        db.refresh(assignment)
        logger.info(
            f"Patient {principal_id} accepted request {request_id}; "
            f"assignment {assignment.id} to practice {request.practice_id} is active"
        )
        return assignment

    @staticmethod
    @retry_on_store_error()
    def remove_patient_from_practice(db: Session, actor_id: str, assignment_id: int) -> PatientAssignment:
        """
        Deactivate an assignment. The row is kept; removing twice is a no-op.

        Raises:
            NotFoundError: Unknown assignment
            PermissionDeniedError: Actor lacks manage_patients
        """
        assignment = db.get(PatientAssignment, assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment not found")
        PermissionService.require_permission(db, actor_id, assignment.practice_id, PERMISSION_MANAGE_PATIENTS)
        if assignment.status == STATUS_INACTIVE:
            return assignment
        assignment.status = STATUS_INACTIVE
        db.commit()
        db.refresh(assignment)
        logger.info(
            f"Principal {actor_id} removed patient {assignment.patient_id} "
            f"from practice {assignment.practice_id}"
        )
        return assignment

    @staticmethod
    @retry_on_store_error()
    def list_practice_patients(db: Session, actor_id: str, practice_id: int) -> List[PatientAssignment]:
        """Active assignments of a practice with patient records loaded."""
        PermissionService.require_permission(db, actor_id, practice_id, PERMISSION_VIEW_PATIENTS)
        return db.query(PatientAssignment).options(
            joinedload(PatientAssignment.patient).joinedload(PatientRecord.principal)
        ).filter(
            PatientAssignment.practice_id == practice_id,
            PatientAssignment.status == STATUS_ACTIVE,
        ).order_by(PatientAssignment.assigned_date.desc()).all()

    @staticmethod
    @retry_on_store_error()
    def list_patient_assignments(db: Session, principal_id: str) -> List[PatientAssignment]:
        """
        Active assignments of the signed-in patient, after repairing any
        accepted request that lost its assignment.
        """
        record = PatientAssignmentService.get_patient_record_for_principal(db, principal_id)
        PatientAssignmentService.reconcile_accepted_requests(db, patient_id=record.id)
        return db.query(PatientAssignment).options(
            joinedload(PatientAssignment.practice)
        ).filter(
            PatientAssignment.patient_id == record.id,
            PatientAssignment.status == STATUS_ACTIVE,
        ).order_by(PatientAssignment.assigned_date.desc()).all()

    @staticmethod
    @retry_on_store_error()
    def list_pending_requests(db: Session, principal_id: str) -> List[PhysicianPatientRequest]:
        """Pending requests addressed to the signed-in patient."""
        record = PatientAssignmentService.get_patient_record_for_principal(db, principal_id)
        PatientAssignmentService.reconcile_accepted_requests(db, patient_id=record.id)
        return db.query(PhysicianPatientRequest).options(
            joinedload(PhysicianPatientRequest.practice)
        ).filter(
            PhysicianPatientRequest.patient_id == record.id,
            PhysicianPatientRequest.status == REQUEST_STATUS_PENDING,
        ).order_by(PhysicianPatientRequest.created_at.desc()).all()

    @staticmethod
    @retry_on_store_error()
    def reconcile_accepted_requests(db: Session, patient_id: Optional[int] = None) -> List[PatientAssignment]:
        """
        Heal accepted requests that have no assignment.

        An accepted request is satisfied when an assignment references it, or
        when its pair already has an active assignment (which then gets linked
        to the request). Otherwise the missing assignment is created. Each
        repair is logged as a detected partial failure.

        Args:
            db: Database session
            patient_id: Limit the scan to one patient record; all when None

        Returns:
            Assignments created or linked by the repair
        """
        query = db.query(PhysicianPatientRequest).outerjoin(
            PatientAssignment, PatientAssignment.source_request_id == PhysicianPatientRequest.id
        ).filter(
            PhysicianPatientRequest.status == REQUEST_STATUS_ACCEPTED,
            PatientAssignment.id.is_(None),
        )
        if patient_id is not None:
            query = query.filter(PhysicianPatientRequest.patient_id == patient_id)
        orphaned = query.all()
        if not orphaned:
            return []

        healed: List[PatientAssignment] = []
        for request in orphaned:
            assignment = get_active_assignment(db, request.patient_id, request.practice_id)
            if assignment is not None and assignment.source_request_id is not None:
                # The pair is already served by another request's assignment
                continue

            failure = PartialFailureDetected(
                f"Request {request.id} is accepted but has no patient assignment"
            )
            logger.warning(f"PartialFailureDetected: {failure.detail}; repairing")
            if assignment is not None:
                assignment.source_request_id = request.id
                healed.append(assignment)
                continue

            record = db.get(PatientRecord, request.patient_id)
            assignment = PatientAssignment(
                patient_id=request.patient_id,
                practice_id=request.practice_id,
                assigned_by=record.principal_id if record is not None else None,
                assigned_date=request.reviewed_at or utc_now(),
                status=STATUS_ACTIVE,
                source_request_id=request.id,
            )
            db.add(assignment)
            healed.append(assignment)

        if not healed:
            return []
        commit_or_conflict(db, ALREADY_ASSIGNED_MESSAGE)
        logger.info(f"Reconciliation repaired {len(healed)} accepted request(s)")
        return healed

