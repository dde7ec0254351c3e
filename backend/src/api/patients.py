# pyright: reportMissingTypeStubs=false
"""
Practice patient API endpoints.

Staff-side assignment workflow: list a practice's patients, add a patient
directly by email, create placeholder patients, invite patients who have no account yet,
send and cancel requests, and remove patients from the practice.
"""

import logging
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.database import get_db
from auth.dependencies import PrincipalContext, get_current_principal
from services.patient_assignment_service import PatientAssignmentService
from services.patient_invitation_service import PatientInvitationService, build_patient_accept_url
from api.responses import (
    PatientAssignmentListResponse, PatientAssignmentResponse, PatientInvitationResponse, PatientRequestResponse,
    assignment_response, patient_invitation_response, patient_request_response,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class DirectAssignRequest(BaseModel):
    """Request model for assigning a registered patient by email."""
    patient_email: str


class PlaceholderPatientRequest(BaseModel):
    """Request model for a patient without a portal account."""
    first_name: str
    last_name: str
    date_of_birth: Optional[date] = None
    phone: Optional[str] = None
    notes: Optional[str] = None


class PatientRequestCreateRequest(BaseModel):
    patient_id: int
    message: Optional[str] = None


class PatientInviteRequest(BaseModel):
    """Request model for inviting a patient who may not have an account yet."""
    email: str


class PatientInviteResponse(BaseModel):
    invitation_id: int
    accept_url: str
    token: str
    expires_at: datetime


class PatientInvitationAcceptRequest(BaseModel):
    token: str


class PatientInvitationListResponse(BaseModel):
    invitations: List[PatientInvitationResponse]


@router.get("/practices/{practice_id}/patients", summary="List practice patients")
async def list_practice_patients(
    practice_id: int,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> PatientAssignmentListResponse:
    assignments = PatientAssignmentService.list_practice_patients(db, principal.principal_id, practice_id)
    return PatientAssignmentListResponse(assignments=[assignment_response(a) for a in assignments])


@router.post("/practices/{practice_id}/patients", summary="Assign a patient directly", status_code=status.HTTP_201_CREATED)
async def assign_patient_direct(
    practice_id: int,
    request: DirectAssignRequest,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> PatientAssignmentResponse:
    """
    Assign a registered patient found by email.

    404 when no patient has this email, 404 when the patient has no record
    yet, 409 when the patient is already assigned to the practice.
    """
    assignment = PatientAssignmentService.assign_patient_direct(
        db, principal.principal_id, practice_id, request.patient_email
    )
    return assignment_response(assignment)


@router.post(
    "/practices/{practice_id}/patients/placeholder",
    summary="Create a patient without an account",
    status_code=status.HTTP_201_CREATED,
)
async def create_placeholder_patient(
    practice_id: int,
    request: PlaceholderPatientRequest,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> PatientAssignmentResponse:
    assignment = PatientAssignmentService.create_placeholder_patient(
        db,
        principal.principal_id,
        practice_id,
        request.first_name,
        request.last_name,
        date_of_birth=request.date_of_birth,
        phone=request.phone,
        notes=request.notes,
    )
    return assignment_response(assignment)


@router.delete("/assignments/{assignment_id}", summary="Remove a patient from a practice")
async def remove_patient_from_practice(
    assignment_id: int,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> PatientAssignmentResponse:
    assignment = PatientAssignmentService.remove_patient_from_practice(db, principal.principal_id, assignment_id)
    return assignment_response(assignment)


@router.post(
    "/practices/{practice_id}/patient-requests",
    summary="Ask a patient to join the practice",
    status_code=status.HTTP_201_CREATED,
)
async def create_patient_request(
    practice_id: int,
    request: PatientRequestCreateRequest,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> PatientRequestResponse:
    patient_request = PatientAssignmentService.create_request(
        db, principal.principal_id, practice_id, request.patient_id, request.message
    )
    return patient_request_response(patient_request)


@router.delete("/patient-requests/{request_id}", summary="Cancel a pending patient request")
async def cancel_patient_request(
    request_id: int,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> PatientRequestResponse:
    patient_request = PatientAssignmentService.cancel_request(db, principal.principal_id, request_id)
    return patient_request_response(patient_request)


@router.get("/practices/{practice_id}/patient-invitations", summary="List pending patient invitations")
async def list_patient_invitations(
    practice_id: int,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> PatientInvitationListResponse:
    invitations = PatientInvitationService.list_patient_invitations(db, principal.principal_id, practice_id)
    return PatientInvitationListResponse(invitations=[patient_invitation_response(i) for i in invitations])


@router.post(
    "/practices/{practice_id}/patient-invitations",
    summary="Invite a patient by email",
    status_code=status.HTTP_201_CREATED,
)
async def invite_patient(
    practice_id: int,
    request: PatientInviteRequest,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> PatientInviteResponse:
    """
    Invite an email address that may not belong to a registered patient yet.

    The caller delivers the accept URL; no email is sent from here.
    """
    invitation = PatientInvitationService.create_patient_invitation(
        db, principal.principal_id, practice_id, request.email
    )
    return PatientInviteResponse(
        invitation_id=invitation.id,
        accept_url=build_patient_accept_url(invitation.invitation_token),
        token=invitation.invitation_token,
        expires_at=invitation.expires_at,
    )


@router.delete("/patient-invitations/{invitation_id}", summary="Revoke a patient invitation")
async def revoke_patient_invitation(
    invitation_id: int,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> PatientInvitationResponse:
    invitation = PatientInvitationService.revoke_patient_invitation(db, principal.principal_id, invitation_id)
    return patient_invitation_response(invitation)


@router.post("/patient-invitations/accept", summary="Accept a patient invitation")
async def accept_patient_invitation(
    request: PatientInvitationAcceptRequest,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> PatientAssignmentResponse:
    assignment = PatientInvitationService.accept_patient_invitation(db, principal.principal_id, request.token)
    return assignment_response(assignment)
