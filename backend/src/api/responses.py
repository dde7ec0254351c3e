"""
Shared response models for API endpoints.

This module contains Pydantic response models that are shared across
multiple API endpoints to ensure consistency and reduce duplication, plus
the helpers that build them from ORM objects.
"""

from datetime import datetime, date
from typing import List, Optional

from pydantic import BaseModel

from models import (
    Principal, DoctorRecord, PatientRecord, Practice, StaffMembership,
    PatientAssignment, PhysicianPatientRequest, StaffInvitation, PracticeJoinRequest, PatientInvitation,
)
from utils.datetime_utils import ensure_utc


class PrincipalResponse(BaseModel):
    """Response model for a principal's directory record."""
    id: str
    email: str
    role: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    full_name: str


class DoctorRecordResponse(BaseModel):
    id: int
    specialty: Optional[str] = None
    license_number: Optional[str] = None
    availability_status: str


class PatientRecordResponse(BaseModel):
    id: int
    principal_id: Optional[str] = None  # None for placeholder patients created by staff
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: str
    date_of_birth: Optional[date] = None
    phone: Optional[str] = None
    created_by_type: str


class ProfileResponse(BaseModel):
    """Principal with whichever role record it has."""
    principal: PrincipalResponse
    doctor_record: Optional[DoctorRecordResponse] = None
    patient_record: Optional[PatientRecordResponse] = None


class PracticeResponse(BaseModel):
    id: int
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    created_at: datetime


class PracticeListResponse(BaseModel):
    practices: List[PracticeResponse]


class PracticeSummaryResponse(BaseModel):
    practice: PracticeResponse
    active_staff_count: int
    active_patient_count: int


class StaffMemberResponse(BaseModel):
    """Response model for a staff membership."""
    id: int
    principal_id: str
    practice_id: int
    role: str
    department: Optional[str] = None
    permissions: List[str]
    status: str
    is_owner: bool
    full_name: Optional[str] = None
    email: Optional[str] = None


class StaffListResponse(BaseModel):
    staff: List[StaffMemberResponse]


class MembershipResponse(BaseModel):
    """A practice the signed-in principal belongs to."""
    membership_id: int
    practice_id: int
    practice_name: str
    role: str
    department: Optional[str] = None
    permissions: List[str]
    is_owner: bool


class MembershipListResponse(BaseModel):
    memberships: List[MembershipResponse]
    has_practice: bool  # False is the normal "not part of any practice yet" state


class PatientAssignmentResponse(BaseModel):
    id: int
    patient_id: int
    practice_id: int
    practice_name: Optional[str] = None
    patient_name: Optional[str] = None
    assigned_by: Optional[str] = None
    assigned_date: datetime
    status: str
    source_request_id: Optional[int] = None


class PatientAssignmentListResponse(BaseModel):
    assignments: List[PatientAssignmentResponse]


class PatientRequestResponse(BaseModel):
    """Response model for a physician-patient request."""
    id: int
    practice_id: int
    practice_name: Optional[str] = None
    patient_id: int
    requested_by: Optional[str] = None
    message: Optional[str] = None
    status: str
    created_at: datetime
    reviewed_at: Optional[datetime] = None


class PatientRequestListResponse(BaseModel):
    requests: List[PatientRequestResponse]


class StaffInvitationResponse(BaseModel):
    id: int
    practice_id: int
    email: str
    role: str
    department: Optional[str] = None
    status: str
    expires_at: datetime


class PatientInvitationResponse(BaseModel):
    id: int
    practice_id: int
    email: str
    status: str
    expires_at: datetime
    assignment_id: Optional[int] = None


class JoinRequestResponse(BaseModel):
    id: int
    practice_id: int
    principal_id: str
    requester_name: Optional[str] = None
    requested_role: str
    message: Optional[str] = None
    status: str
    created_at: datetime
    reviewed_at: Optional[datetime] = None


class JoinRequestListResponse(BaseModel):
    join_requests: List[JoinRequestResponse]


class AvailabilityResponse(BaseModel):
    doctor_id: int
    status: str
    sequence: int


def principal_response(principal: Principal) -> PrincipalResponse:
    return PrincipalResponse(
        id=principal.id,
        email=principal.email,
        role=principal.role,
        first_name=principal.first_name,
        last_name=principal.last_name,
        phone=principal.phone,
        full_name=principal.full_name,
    )


def doctor_record_response(record: DoctorRecord) -> DoctorRecordResponse:
    return DoctorRecordResponse(
        id=record.id,
        specialty=record.specialty,
        license_number=record.license_number,
        availability_status=record.availability_status,
    )


def patient_record_response(record: PatientRecord) -> PatientRecordResponse:
    return PatientRecordResponse(
        id=record.id,
        principal_id=record.principal_id,
        first_name=record.first_name,
        last_name=record.last_name,
        display_name=record.display_name,
        date_of_birth=record.date_of_birth,
        phone=record.phone,
        created_by_type=record.created_by_type,
    )


def practice_response(practice: Practice) -> PracticeResponse:
    return PracticeResponse(
        id=practice.id,
        name=practice.name,
        address=practice.address,
        phone=practice.phone,
        email=practice.email,
        created_at=ensure_utc(practice.created_at),
    )


def staff_member_response(membership: StaffMembership) -> StaffMemberResponse:
    principal = membership.principal
    return StaffMemberResponse(
        id=membership.id,
        principal_id=membership.principal_id,
        practice_id=membership.practice_id,
        role=membership.role,
        department=membership.department,
        permissions=list(membership.permissions or []),
        status=membership.status,
        is_owner=membership.is_owner,
        full_name=principal.full_name if principal is not None else None,
        email=principal.email if principal is not None else None,
    )


def membership_response(membership: StaffMembership) -> MembershipResponse:
    return MembershipResponse(
        membership_id=membership.id,
        practice_id=membership.practice_id,
        practice_name=membership.practice.name,
        role=membership.role,
        department=membership.department,
        permissions=list(membership.permissions or []),
        is_owner=membership.is_owner,
    )


def assignment_response(assignment: PatientAssignment) -> PatientAssignmentResponse:
    return PatientAssignmentResponse(
        id=assignment.id,
        patient_id=assignment.patient_id,
        practice_id=assignment.practice_id,
        practice_name=assignment.practice.name if assignment.practice is not None else None,
        patient_name=assignment.patient.display_name if assignment.patient is not None else None,
        assigned_by=assignment.assigned_by,
        assigned_date=ensure_utc(assignment.assigned_date),
        status=assignment.status,
        source_request_id=assignment.source_request_id,
    )


def patient_request_response(request: PhysicianPatientRequest) -> PatientRequestResponse:
    return PatientRequestResponse(
        id=request.id,
        practice_id=request.practice_id,
        practice_name=request.practice.name if request.practice is not None else None,
        patient_id=request.patient_id,
        requested_by=request.requested_by,
        message=request.message,
        status=request.status,
        created_at=ensure_utc(request.created_at),
        reviewed_at=ensure_utc(request.reviewed_at),
    )


def invitation_response(invitation: StaffInvitation) -> StaffInvitationResponse:
    return StaffInvitationResponse(
        id=invitation.id,
        practice_id=invitation.practice_id,
        email=invitation.email,
        role=invitation.role,
        department=invitation.department,
        status=invitation.status,
        expires_at=ensure_utc(invitation.expires_at),
    )


def patient_invitation_response(invitation: PatientInvitation) -> PatientInvitationResponse:
    return PatientInvitationResponse(
        id=invitation.id,
        practice_id=invitation.practice_id,
        email=invitation.email,
        status=invitation.status,
        expires_at=ensure_utc(invitation.expires_at),
        assignment_id=invitation.assignment_id,
    )


def join_request_response(join_request: PracticeJoinRequest) -> JoinRequestResponse:
    requester = join_request.principal
    return JoinRequestResponse(
        id=join_request.id,
        practice_id=join_request.practice_id,
        principal_id=join_request.principal_id,
        requester_name=requester.full_name if requester is not None else None,
        requested_role=join_request.requested_role,
        message=join_request.message,
        status=join_request.status,
        created_at=ensure_utc(join_request.created_at),
        reviewed_at=ensure_utc(join_request.reviewed_at),
    )
