# pyright: reportMissingTypeStubs=false
"""
Staff Management API endpoints.

Staff memberships, email invitations and join requests. Permission checks
(manage_staff) happen in the services so every entry point shares them.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.database import get_db
from auth.dependencies import PrincipalContext, get_current_principal
from auth.permissions import require_practice_member
from services.join_request_service import JoinRequestService
from services.staff_invitation_service import StaffInvitationService, build_accept_url
from services.staff_service import StaffService
from api.responses import (
    JoinRequestListResponse, JoinRequestResponse, StaffInvitationResponse, StaffListResponse,
    StaffMemberResponse, invitation_response, join_request_response, staff_member_response,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class StaffAddRequest(BaseModel):
    """Request model for adding a staff member. Give principal_id or email."""
    role: str
    principal_id: Optional[str] = None
    email: Optional[str] = None
    department: Optional[str] = None
    permissions: Optional[List[str]] = None  # Role default when omitted


class StaffRoleUpdateRequest(BaseModel):
    role: str


class StaffPermissionsUpdateRequest(BaseModel):
    permissions: List[str]


class StaffInviteRequest(BaseModel):
    """Request model for inviting a new staff member."""
    email: str
    role: str
    department: Optional[str] = None


class StaffInviteResponse(BaseModel):
    """Response model for staff invitation."""
    invitation_id: int
    accept_url: str
    token: str
    expires_at: datetime


class InvitationAcceptRequest(BaseModel):
    token: str


class InvitationListResponse(BaseModel):
    invitations: List[StaffInvitationResponse]


class JoinRequestCreateRequest(BaseModel):
    requested_role: str
    message: Optional[str] = None


class JoinRequestReviewRequest(BaseModel):
    approve: bool
    permissions: Optional[List[str]] = None


class JoinRequestReviewResponse(BaseModel):
    join_request_id: int
    approved: bool
    membership: Optional[StaffMemberResponse] = None


@router.get("/practices/{practice_id}/staff", summary="List practice staff")
async def list_staff(
    practice_id: int,
    principal: PrincipalContext = Depends(require_practice_member()),
    db: Session = Depends(get_db)
) -> StaffListResponse:
    memberships = StaffService.list_staff(db, practice_id)
    return StaffListResponse(staff=[staff_member_response(m) for m in memberships])


@router.post("/practices/{practice_id}/staff", summary="Add a staff member", status_code=status.HTTP_201_CREATED)
async def add_staff_member(
    practice_id: int,
    request: StaffAddRequest,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> StaffMemberResponse:
    membership = StaffService.add_staff_member(
        db,
        principal.principal_id,
        practice_id,
        request.role,
        principal_id=request.principal_id,
        email=request.email,
        department=request.department,
        permissions=request.permissions,
    )
    return staff_member_response(membership)


@router.put("/staff/{staff_id}/role", summary="Change a staff member's role")
async def update_staff_role(
    staff_id: int,
    request: StaffRoleUpdateRequest,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> StaffMemberResponse:
    """Fails with 409 when it would leave the practice without an active admin."""
    membership = StaffService.update_staff_role(db, principal.principal_id, staff_id, request.role)
    return staff_member_response(membership)


@router.put("/staff/{staff_id}/permissions", summary="Change a staff member's permissions")
async def update_staff_permissions(
    staff_id: int,
    request: StaffPermissionsUpdateRequest,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> StaffMemberResponse:
    membership = StaffService.update_staff_permissions(db, principal.principal_id, staff_id, request.permissions)
    return staff_member_response(membership)


@router.delete("/staff/{staff_id}", summary="Remove a staff member")
async def remove_staff_member(
    staff_id: int,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> StaffMemberResponse:
    membership = StaffService.remove_staff_member(db, principal.principal_id, staff_id)
    return staff_member_response(membership)


@router.get("/practices/{practice_id}/invitations", summary="List pending staff invitations")
async def list_invitations(
    practice_id: int,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> InvitationListResponse:
    invitations = StaffInvitationService.list_invitations(db, principal.principal_id, practice_id)
    return InvitationListResponse(invitations=[invitation_response(i) for i in invitations])


@router.post("/practices/{practice_id}/invitations", summary="Invite a staff member", status_code=status.HTTP_201_CREATED)
async def invite_staff_member(
    practice_id: int,
    request: StaffInviteRequest,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> StaffInviteResponse:
    invitation = StaffInvitationService.create_invitation(
        db, principal.principal_id, practice_id, request.email, request.role, request.department
    )
    return StaffInviteResponse(
        invitation_id=invitation.id,
        accept_url=build_accept_url(invitation.invitation_token),
        token=invitation.invitation_token,
        expires_at=invitation.expires_at,
    )


@router.delete("/invitations/{invitation_id}", summary="Revoke a staff invitation")
async def revoke_invitation(
    invitation_id: int,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> StaffInvitationResponse:
    invitation = StaffInvitationService.revoke_invitation(db, principal.principal_id, invitation_id)
    return invitation_response(invitation)


@router.post("/invitations/accept", summary="Accept a staff invitation")
async def accept_invitation(
    request: InvitationAcceptRequest,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> StaffMemberResponse:
    membership = StaffInvitationService.accept_invitation(db, principal.principal_id, request.token)
    return staff_member_response(membership)


@router.get("/practices/{practice_id}/join-requests", summary="List pending join requests")
async def list_join_requests(
    practice_id: int,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> JoinRequestListResponse:
    join_requests = JoinRequestService.list_join_requests(db, principal.principal_id, practice_id)
    return JoinRequestListResponse(join_requests=[join_request_response(r) for r in join_requests])


@router.post("/practices/{practice_id}/join-requests", summary="Ask to join a practice", status_code=status.HTTP_201_CREATED)
async def create_join_request(
    practice_id: int,
    request: JoinRequestCreateRequest,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> JoinRequestResponse:
    join_request = JoinRequestService.create_join_request(
        db, principal.principal_id, practice_id, request.requested_role, request.message
    )
    return join_request_response(join_request)


@router.post("/join-requests/{join_request_id}/review", summary="Approve or reject a join request")
async def review_join_request(
    join_request_id: int,
    request: JoinRequestReviewRequest,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> JoinRequestReviewResponse:
    membership = JoinRequestService.review_join_request(
        db, principal.principal_id, join_request_id, request.approve, request.permissions
    )
    return JoinRequestReviewResponse(
        join_request_id=join_request_id,
        approved=request.approve,
        membership=staff_member_response(membership) if membership is not None else None,
    )
