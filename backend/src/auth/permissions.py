# pyright: reportMissingTypeStubs=false
"""
Route guards.

Thin dependency factories over the principal role and the membership
engine. Practice guards read the `practice_id` path parameter and ask
PermissionService.authorize on every request.
"""

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from auth.dependencies import PrincipalContext, get_current_principal
from core.database import get_db
from services.permission_service import PermissionService


def require_role(*roles: str):
    """
    Dependency that ensures the principal has one of the given roles.

    Args:
        roles: Accepted principal roles ('patient', 'doctor', 'admin')

    Returns:
        Dependency function that can be used with FastAPI Depends()
    """
    def dependency(principal: PrincipalContext = Depends(get_current_principal)) -> PrincipalContext:
        if principal.role in roles:
            return principal
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied: this page is not available for your account type"
        )

    return dependency


def require_practice_permission(permission: str):
    """
    Dependency that ensures the principal may perform `permission` on the
    practice named by the `practice_id` path parameter.
    """
    def dependency(
        practice_id: int,
        principal: PrincipalContext = Depends(get_current_principal),
        db: Session = Depends(get_db),
    ) -> PrincipalContext:
        if PermissionService.authorize(db, principal.principal_id, practice_id, permission):
            return principal
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Access denied: '{permission}' permission required"
        )

    return dependency


def require_practice_member():
    """Dependency that ensures the principal is active staff of the practice."""
    def dependency(
        practice_id: int,
        principal: PrincipalContext = Depends(get_current_principal),
        db: Session = Depends(get_db),
    ) -> PrincipalContext:
        if principal.is_portal_admin() or PermissionService.is_member(db, principal.principal_id, practice_id):
            return principal
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied: you are not a member of this practice"
        )

    return dependency
