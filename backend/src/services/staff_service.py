"""
Staff management service.

Adds, changes and removes staff memberships. Every mutation requires the
acting principal to hold manage_staff on the practice (admins always do),
and no mutation may leave a practice without an active admin.
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session, joinedload

from core.constants import (
    STAFF_ROLES, STAFF_ROLE_ADMIN, STAFF_ROLE_DOCTOR, ROLE_DOCTOR, ROLE_PATIENT,
    STATUS_ACTIVE, STATUS_INACTIVE, FULL_PERMISSION_SET, DEFAULT_ROLE_PERMISSIONS,
    PERMISSION_MANAGE_STAFF,
)
from core.database import commit_or_conflict
from core.exceptions import ConflictError, NotFoundError, ValidationError
from models import Principal, StaffMembership
from services.permission_service import PermissionService
from services.practice_service import PracticeService
from services.principal_service import PrincipalService
from utils.retry import retry_on_store_error

logger = logging.getLogger(__name__)

DUPLICATE_MEMBERSHIP_MESSAGE = "This person is already an active staff member of the practice"


def validate_staff_role(role: str) -> str:
    if role not in STAFF_ROLES:
        raise ValidationError(f"Invalid staff role '{role}'")
    return role


def resolve_permissions(role: str, permissions: Optional[Iterable[str]]) -> List[str]:
    """
    Permission list to store for a membership.

    Admins always store the full set. Otherwise the given permissions are
    validated against the known set, or the role default is used when none
    are given.
    """
    if role == STAFF_ROLE_ADMIN:
        return list(FULL_PERMISSION_SET)
    if permissions is None:
        return list(DEFAULT_ROLE_PERMISSIONS[role])
    requested = list(dict.fromkeys(permissions))
    unknown = [p for p in requested if p not in FULL_PERMISSION_SET]
    if unknown:
        raise ValidationError(f"Unknown permissions: {', '.join(unknown)}")
    # Keep the canonical order
    return [p for p in FULL_PERMISSION_SET if p in requested]


def check_staff_eligibility(principal: Principal, role: str) -> None:
    """Patients cannot be staff; the doctor staff role needs a doctor principal."""
    if principal.role == ROLE_PATIENT:
        raise ValidationError("Patients cannot be added as practice staff")
    if role == STAFF_ROLE_DOCTOR and principal.role != ROLE_DOCTOR:
        raise ValidationError("Only doctor accounts can hold the doctor staff role")


def count_active_admins(db: Session, practice_id: int) -> int:
    """Count active admins, locking their rows so concurrent demotions serialize."""
    return len(db.query(StaffMembership).filter(
        StaffMembership.practice_id == practice_id,
        StaffMembership.role == STAFF_ROLE_ADMIN,
        StaffMembership.status == STATUS_ACTIVE,
    ).with_for_update().all())


def build_membership(
    db: Session,
    principal: Principal,
    practice_id: int,
    role: str,
    department: Optional[str] = None,
    permissions: Optional[Iterable[str]] = None,
) -> StaffMembership:
    """
    Validate and add (without committing) a new active membership.

    Shared by direct adds, accepted invitations and approved join requests.

    Raises:
        ValidationError: Invalid role, permissions or principal role
        ConflictError: The principal already has an active membership here
    """
    validate_staff_role(role)
    check_staff_eligibility(principal, role)
    stored_permissions = resolve_permissions(role, permissions)

    if PermissionService.get_active_memberships(db, principal.id, practice_id):
        raise ConflictError(DUPLICATE_MEMBERSHIP_MESSAGE)

    membership = StaffMembership(
        principal_id=principal.id,
        practice_id=practice_id,
        role=role,
        department=(department or "").strip() or None,
        permissions=stored_permissions,
        status=STATUS_ACTIVE,
        is_owner=False,
    )
    db.add(membership)
    return membership


class StaffService:
    """
    Service class for staff membership operations.
    """

    @staticmethod
    def _get_active_membership(db: Session, staff_id: int) -> StaffMembership:
        membership = db.get(StaffMembership, staff_id)
        if membership is None or membership.status != STATUS_ACTIVE:
            raise NotFoundError("Staff member not found")
        return membership

    @staticmethod
    @retry_on_store_error()
    def list_staff(db: Session, practice_id: int) -> List[StaffMembership]:
        """Active memberships of a practice with their principals loaded."""
        PracticeService.get_practice(db, practice_id)
        return db.query(StaffMembership).options(
            joinedload(StaffMembership.principal)
        ).filter(
            StaffMembership.practice_id == practice_id,
            StaffMembership.status == STATUS_ACTIVE,
        ).order_by(StaffMembership.id).all()

    @staticmethod
    @retry_on_store_error()
    def add_staff_member(
        db: Session,
        actor_id: str,
        practice_id: int,
        role: str,
        principal_id: Optional[str] = None,
        email: Optional[str] = None,
        department: Optional[str] = None,
        permissions: Optional[Iterable[str]] = None,
    ) -> StaffMembership:
        """
        Add a principal to a practice's staff.

        The target is given either by principal id or by email.

        Args:
            db: Database session
            actor_id: Principal performing the change
            practice_id: Practice to add to
            role: Staff role (admin, doctor, nurse, receptionist)
            principal_id: Target principal id
            email: Target email, used when principal_id is not given
            department: Optional department name
            permissions: Explicit permissions; role default when None

        Returns:
            The new active StaffMembership

        Raises:
            PermissionDeniedError: Actor lacks manage_staff
            NotFoundError: Practice or target principal does not exist
            ValidationError: Invalid role/permissions, or the target cannot be staff
            ConflictError: Target already has an active membership here
        """
        PermissionService.require_permission(db, actor_id, practice_id, PERMISSION_MANAGE_STAFF)
        PracticeService.get_practice(db, practice_id)

        if principal_id:
            principal = db.get(Principal, principal_id)
        elif email:
            principal = PrincipalService.find_by_email(db, email)
        else:
            raise ValidationError("A user id or email is required")
        if principal is None:
            raise NotFoundError("No registered user found for this staff member")

        membership = build_membership(db, principal, practice_id, role, department, permissions)
        commit_or_conflict(db, DUPLICATE_MEMBERSHIP_MESSAGE)
        db.refresh(membership)
        logger.info(
            f"Principal {actor_id} added {principal.id} to practice {practice_id} as {role}"
        )
        return membership

    @staticmethod
    @retry_on_store_error()
    def update_staff_role(db: Session, actor_id: str, staff_id: int, new_role: str) -> StaffMembership:
        """
        Change a membership's staff role.

        Promotion to admin stores the full permission set; leaving admin resets
        the permissions to the new role's default.

        Raises:
            ConflictError: If the change would leave the practice with no active admin
        """
        membership = StaffService._get_active_membership(db, staff_id)
        PermissionService.require_permission(db, actor_id, membership.practice_id, PERMISSION_MANAGE_STAFF)
        validate_staff_role(new_role)
        check_staff_eligibility(membership.principal, new_role)

        if membership.role == new_role:
            return membership

        if membership.is_admin and count_active_admins(db, membership.practice_id) <= 1:
            db.rollback()
            raise ConflictError("A practice must keep at least one active admin")

        old_role = membership.role
        membership.role = new_role
        if new_role == STAFF_ROLE_ADMIN:
            membership.permissions = list(FULL_PERMISSION_SET)
        elif old_role == STAFF_ROLE_ADMIN:
            membership.permissions = list(DEFAULT_ROLE_PERMISSIONS[new_role])
        db.commit()
        db.refresh(membership)
        logger.info(
            f"Principal {actor_id} changed staff {staff_id} role from {old_role} to {new_role} "
            f"in practice {membership.practice_id}"
        )
        return membership

    @staticmethod
    @retry_on_store_error()
    def update_staff_permissions(
        db: Session, actor_id: str, staff_id: int, permissions: Iterable[str]
    ) -> StaffMembership:
        """Replace a membership's explicit permission set. Admins keep the full set."""
        membership = StaffService._get_active_membership(db, staff_id)
        PermissionService.require_permission(db, actor_id, membership.practice_id, PERMISSION_MANAGE_STAFF)
        membership.permissions = resolve_permissions(membership.role, list(permissions))
        db.commit()
        db.refresh(membership)
        logger.info(f"Principal {actor_id} updated permissions of staff {staff_id}: {membership.permissions}")
        return membership

    @staticmethod
    @retry_on_store_error()
    def remove_staff_member(db: Session, actor_id: str, staff_id: int) -> StaffMembership:
        """
        Soft-delete a membership by setting it inactive.

        Removing an already inactive membership is a no-op.

        Raises:
            NotFoundError: If the membership does not exist
            ConflictError: If it is the practice's last active admin
        """
        membership = db.get(StaffMembership, staff_id)
        if membership is None:
            raise NotFoundError("Staff member not found")
        PermissionService.require_permission(db, actor_id, membership.practice_id, PERMISSION_MANAGE_STAFF)

        if membership.status == STATUS_INACTIVE:
            return membership

        if membership.is_admin and count_active_admins(db, membership.practice_id) <= 1:
            db.rollback()
            raise ConflictError("Cannot remove the last active admin of a practice")

        membership.status = STATUS_INACTIVE
        db.commit()
        db.refresh(membership)
        logger.info(f"Principal {actor_id} removed staff {staff_id} from practice {membership.practice_id}")
        return membership
