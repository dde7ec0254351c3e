# pyright: reportMissingTypeStubs=false
"""
Practice API endpoints.

Search, CRUD, the dashboard summary and an authorization check the frontend
uses to decide which screens to show.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.constants import ROLE_ADMIN, PERMISSION_MANAGE_PRACTICE
from core.database import get_db
from core.exceptions import PermissionDeniedError
from auth.dependencies import PrincipalContext, get_current_principal
from auth.permissions import require_practice_member, require_practice_permission, require_role
from services.permission_service import PermissionService
from services.practice_service import PracticeService
from api.responses import (
    PracticeListResponse, PracticeResponse, PracticeSummaryResponse, practice_response,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class PracticeCreateRequest(BaseModel):
    """Request model for creating a practice."""
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class PracticeUpdateRequest(BaseModel):
    """Request model for updating a practice. Omitted fields are unchanged."""
    name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class AuthorizeResponse(BaseModel):
    practice_id: int
    action: str
    allowed: bool


class DeletePracticeResponse(BaseModel):
    practice_id: int
    deleted: bool  # False when the practice was already gone


@router.get("/practices", summary="Search practices")
async def search_practices(
    q: str = Query("", description="Matches practice name or email"),
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> PracticeListResponse:
    practices = PracticeService.search_practices(db, q)
    return PracticeListResponse(practices=[practice_response(p) for p in practices])


@router.post("/practices", summary="Create a practice", status_code=status.HTTP_201_CREATED)
async def create_practice(
    request: PracticeCreateRequest,
    principal: PrincipalContext = Depends(require_role(ROLE_ADMIN)),
    db: Session = Depends(get_db)
) -> PracticeResponse:
    """
    Create a practice without any staff.

    Portal admins only; doctors create their practice through onboarding.
    """
    practice = PracticeService.create_practice(
        db, request.name, address=request.address, phone=request.phone, email=request.email
    )
    return practice_response(practice)


@router.get("/practices/without-admin", summary="List practices with no active admin")
async def list_practices_without_admin(
    principal: PrincipalContext = Depends(require_role(ROLE_ADMIN)),
    db: Session = Depends(get_db)
) -> PracticeListResponse:
    practices = PracticeService.find_practices_without_admin(db)
    return PracticeListResponse(practices=[practice_response(p) for p in practices])


@router.get("/practices/{practice_id}", summary="Get a practice")
async def get_practice(
    practice_id: int,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> PracticeResponse:
    return practice_response(PracticeService.get_practice(db, practice_id))


@router.put("/practices/{practice_id}", summary="Update a practice")
async def update_practice(
    practice_id: int,
    request: PracticeUpdateRequest,
    principal: PrincipalContext = Depends(require_practice_permission(PERMISSION_MANAGE_PRACTICE)),
    db: Session = Depends(get_db)
) -> PracticeResponse:
    practice = PracticeService.update_practice(
        db,
        practice_id,
        name=request.name,
        address=request.address,
        phone=request.phone,
        email=request.email,
    )
    return practice_response(practice)


@router.delete("/practices/{practice_id}", summary="Delete a practice")
async def delete_practice(
    practice_id: int,
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> DeletePracticeResponse:
    """
    Delete a practice with all its memberships, assignments and requests.

    Allowed for portal admins and for staff holding manage_practice.
    Deleting an already deleted practice succeeds with deleted=false.
    """
    if not principal.is_portal_admin() and not PermissionService.authorize(
        db, principal.principal_id, practice_id, PERMISSION_MANAGE_PRACTICE
    ):
        raise PermissionDeniedError("Access denied: 'manage_practice' permission required")

    deleted = PracticeService.delete_practice(db, practice_id)
    return DeletePracticeResponse(practice_id=practice_id, deleted=deleted)


@router.get("/practices/{practice_id}/summary", summary="Get practice counts")
async def get_practice_summary(
    practice_id: int,
    principal: PrincipalContext = Depends(require_practice_member()),
    db: Session = Depends(get_db)
) -> PracticeSummaryResponse:
    summary = PracticeService.get_practice_summary(db, practice_id)
    return PracticeSummaryResponse(
        practice=practice_response(summary.practice),
        active_staff_count=summary.active_staff_count,
        active_patient_count=summary.active_patient_count,
    )


@router.get("/practices/{practice_id}/authorize", summary="Check a permission")
async def authorize_action(
    practice_id: int,
    action: str = Query(..., description="Permission name, e.g. manage_staff"),
    principal: PrincipalContext = Depends(get_current_principal),
    db: Session = Depends(get_db)
) -> AuthorizeResponse:
    """Whether the signed-in principal may perform `action` on the practice."""
    allowed = PermissionService.authorize(db, principal.principal_id, practice_id, action)
    return AuthorizeResponse(practice_id=practice_id, action=action, allowed=allowed)
