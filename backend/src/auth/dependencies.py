# pyright: reportMissingTypeStubs=false
"""
Authentication dependencies for FastAPI.

Tokens come from the external identity provider. A request is
authenticated when its bearer token verifies; it is resolved when the
token's subject also has a directory record. The two failures are kept
apart: no or bad token is 401, a verified identity without a record is 404
(registration was never completed).
"""

import logging
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from core.constants import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT
from core.database import get_db
from services.jwt_service import jwt_service, TokenPayload
from services.principal_service import PrincipalService

logger = logging.getLogger(__name__)


class PrincipalContext:
    """Resolved principal, passed explicitly to every handler that needs it."""

    def __init__(
        self,
        principal_id: str,
        email: str,
        role: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ):
        self.principal_id = principal_id
        self.email = email
        self.role = role  # "patient", "doctor" or "admin"
        self.first_name = first_name
        self.last_name = last_name

    def is_patient(self) -> bool:
        return self.role == ROLE_PATIENT

    def is_doctor(self) -> bool:
        return self.role == ROLE_DOCTOR

    def is_portal_admin(self) -> bool:
        """Portal-level admin principal (not a practice admin membership)."""
        return self.role == ROLE_ADMIN

    def __repr__(self) -> str:
        return f"PrincipalContext(principal_id='{self.principal_id}', email='{self.email}', role='{self.role}')"


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenPayload]:
    """Extract and validate JWT token payload."""
    if not credentials:
        return None
    return jwt_service.verify_token(credentials.credentials)


def get_authenticated_identity(
    payload: Optional[TokenPayload] = Depends(get_token_payload),
) -> TokenPayload:
    """Verified identity that may not have a directory record yet (used by signup)."""
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication credentials not provided",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload


def get_current_principal(
    identity: TokenPayload = Depends(get_authenticated_identity),
    db: Session = Depends(get_db)
) -> PrincipalContext:
    """
    Resolve the authenticated identity to its directory record.

    Raises:
        HTTPException: 401 without a valid token
        PrincipalNotFoundError: 404 when the identity never finished registration
    """
    principal = PrincipalService.resolve(db, identity.sub)
    return PrincipalContext(
        principal_id=principal.id,
        email=principal.email,
        role=principal.role,
        first_name=principal.first_name,
        last_name=principal.last_name,
    )
