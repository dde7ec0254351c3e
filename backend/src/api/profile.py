# pyright: reportMissingTypeStubs=false
"""
Signed-in principal endpoints.

Profile, doctor onboarding, the practices the principal belongs to, a
patient's own assignments and pending requests, and a doctor's own
availability.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.constants import ROLE_DOCTOR, ROLE_PATIENT
from core.database import get_db
from auth.dependencies import PrincipalContext, get_current_principal
from auth.permissions import require_role
from services.availability_service import AvailabilityService, get_availability_broker
from services.onboarding_service import (
    OnboardingChoice, OnboardingFields, OnboardingService, OnboardingState,
)
from services.patient_assignment_service import PatientAssignmentService
from services.practice_service import PracticeService
from services.principal_service import PrincipalService
from api.responses import (
    AvailabilityResponse, MembershipListResponse, PatientAssignmentListResponse,
    PatientAssignmentResponse, PatientRequestListResponse, PracticeResponse, ProfileResponse,
    assignment_response, doctor_record_response, membership_response, patient_record_response,
    patient_request_response, practice_response, principal_response,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class OnboardingStatusResponse(BaseModel):
    """Derived onboarding status of the signed-in principal."""
    state: OnboardingState
    needs_practice_setup: bool


class OnboardingRequest(BaseModel):
    """Request model for completing doctor onboarding."""
    choice: OnboardingChoice
    specialty: Optional[str] = None
    license_number: Optional[str] = None
    practice_name: Optional[str] = None  # Required for "owner"
    practice_address: Optional[str] = None
    practice_phone: Optional[str] = None
    practice_email: Optional[str] = None


class OnboardingResponse(BaseModel):
    state: OnboardingState
    needs_practice_setup: bool
    practice: Optional[PracticeResponse] = None  # Set for "owner"


class RespondToRequestRequest(BaseModel):
    accept: bool


class RespondToRequestResponse(BaseModel):
    request_id: int
    status: str
    assignment: Optional[PatientAssignmentResponse] = None


class AvailabilityUpdateRequest(BaseModel):
    status: str  # "active" or "away"


@router.get("/me", summary="Get the signed-in principal's profile")
async def get_me(
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> ProfileResponse:
    """Profile with the role record (DoctorRecord or PatientRecord) if it exists."""
    profile = PrincipalService.get_profile(db, principal.principal_id)
    return ProfileResponse(
        principal=principal_response(profile),
        doctor_record=doctor_record_response(profile.doctor_record) if profile.doctor_record else None,
        patient_record=patient_record_response(profile.patient_record) if profile.patient_record else None,
    )


@router.get("/me/onboarding", summary="Get onboarding status")
async def get_onboarding_status(
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> OnboardingStatusResponse:
    return OnboardingStatusResponse(
        state=OnboardingService.get_onboarding_state(db, principal.principal_id),
        needs_practice_setup=OnboardingService.needs_practice_setup(db, principal.principal_id),
    )


@router.post("/me/onboarding", summary="Complete doctor onboarding")
async def complete_onboarding(
    request: OnboardingRequest,
    principal: PrincipalContext = Depends(require_role(ROLE_DOCTOR)),
    db: Session = Depends(get_db)
) -> OnboardingResponse:
    """
    Apply the doctor's owner/employee choice.

    owner creates the practice and makes the doctor its admin; employee only
    records professional details and leaves the doctor unaffiliated.
    """
    practice = OnboardingService.complete_onboarding(
        db,
        principal.principal_id,
        request.choice,
        OnboardingFields(
            specialty=request.specialty,
            license_number=request.license_number,
            practice_name=request.practice_name,
            practice_address=request.practice_address,
            practice_phone=request.practice_phone,
            practice_email=request.practice_email,
        ),
    )
    return OnboardingResponse(
        state=OnboardingService.get_onboarding_state(db, principal.principal_id),
        needs_practice_setup=OnboardingService.needs_practice_setup(db, principal.principal_id),
        practice=practice_response(practice) if practice is not None else None,
    )


@router.get("/me/memberships", summary="List the practices the principal belongs to")
async def list_my_memberships(
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> MembershipListResponse:
    memberships = PracticeService.list_memberships(db, principal.principal_id)
    return MembershipListResponse(
        memberships=[membership_response(m) for m in memberships],
        has_practice=bool(memberships),
    )


@router.get("/me/assignments", summary="List the patient's practices")
async def list_my_assignments(
    principal: PrincipalContext = Depends(require_role(ROLE_PATIENT)),
    db: Session = Depends(get_db)
) -> PatientAssignmentListResponse:
    assignments = PatientAssignmentService.list_patient_assignments(db, principal.principal_id)
    return PatientAssignmentListResponse(assignments=[assignment_response(a) for a in assignments])


@router.get("/me/patient-requests", summary="List pending practice requests for the patient")
async def list_my_patient_requests(
    principal: PrincipalContext = Depends(require_role(ROLE_PATIENT)),
    db: Session = Depends(get_db)
) -> PatientRequestListResponse:
    requests = PatientAssignmentService.list_pending_requests(db, principal.principal_id)
    return PatientRequestListResponse(requests=[patient_request_response(r) for r in requests])


@router.post("/patient-requests/{request_id}/respond", summary="Accept or reject a practice request")
async def respond_to_patient_request(
    request_id: int,
    request: RespondToRequestRequest,
    principal: PrincipalContext = Depends(require_role(ROLE_PATIENT)),
    db: Session = Depends(get_db)
) -> RespondToRequestResponse:
    assignment = PatientAssignmentService.respond_to_request(
        db, principal.principal_id, request_id, request.accept
    )
    return RespondToRequestResponse(
        request_id=request_id,
        status="accepted" if request.accept else "rejected",
        assignment=assignment_response(assignment) if assignment is not None else None,
    )


@router.put("/me/availability", summary="Set the doctor's own availability")
async def set_my_availability(
    request: AvailabilityUpdateRequest,
    principal: PrincipalContext = Depends(require_role(ROLE_DOCTOR)),
    db: Session = Depends(get_db)
) -> AvailabilityResponse:
    broker = get_availability_broker()
    record = AvailabilityService.set_availability(db, principal.principal_id, request.status, broker=broker)
    return AvailabilityResponse(
        doctor_id=record.id,
        status=record.availability_status,
        sequence=broker.current_sequence(record.id),
    )
