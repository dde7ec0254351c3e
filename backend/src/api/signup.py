# pyright: reportMissingTypeStubs=false
"""
Signup API endpoints.

Creates the directory record for an identity that the identity provider
already authenticated. The principal id is always the token's subject; the
client only chooses the role and fills in its name.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from core.constants import PRINCIPAL_ROLES, ROLE_ADMIN
from core.database import get_db
from core.exceptions import PermissionDeniedError, ValidationError
from auth.dependencies import get_authenticated_identity
from services.jwt_service import TokenPayload
from services.principal_service import PrincipalService
from api.responses import ProfileResponse, principal_response, patient_record_response

logger = logging.getLogger(__name__)

router = APIRouter()


class SignupRequest(BaseModel):
    """Request model for completing registration."""
    role: str  # "patient" or "doctor"; portal admins are provisioned by operators
    email: Optional[str] = None  # Used only when the token carries no email claim
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None

    @field_validator('role')
    @classmethod
    def validate_role(cls, v: str) -> str:
        if v not in PRINCIPAL_ROLES:
            raise ValueError(f"role must be one of {', '.join(PRINCIPAL_ROLES)}")
        return v


@router.post("", summary="Register the authenticated identity", status_code=status.HTTP_201_CREATED)
async def register(
    request: SignupRequest,
    identity: TokenPayload = Depends(get_authenticated_identity),
    db: Session = Depends(get_db)
) -> ProfileResponse:
    """
    Complete registration for the signed-in identity.

    Patients get their PatientRecord immediately. Doctors are sent through
    practice onboarding next.
    """
    if request.role == ROLE_ADMIN:
        raise PermissionDeniedError("Admin accounts cannot be created through signup")
    email = identity.email or request.email
    if not email:
        raise ValidationError("Email is required")

    principal = PrincipalService.register_principal(
        db,
        principal_id=identity.sub,
        email=email,
        role=request.role,
        first_name=request.first_name,
        last_name=request.last_name,
        phone=request.phone,
    )
    return ProfileResponse(
        principal=principal_response(principal),
        patient_record=patient_record_response(principal.patient_record) if principal.patient_record else None,
    )
