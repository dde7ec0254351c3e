"""
StaffMembership model: a principal's affiliation with one practice.

Memberships carry a practice-specific staff role and an explicit permission
set. Admin memberships are granted every permission regardless of the stored
set. Memberships are soft-deleted by setting status to 'inactive', so the
store keeps at most one *active* membership per (principal, practice) while
inactive history rows may accumulate.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, TIMESTAMP, Boolean, ForeignKey, Index, CheckConstraint, text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import STAFF_ROLE_ADMIN, STATUS_ACTIVE
from core.database import Base
from models.base import JSONType


class StaffMembership(Base):
    """Join entity granting a principal rights within one practice."""

    __tablename__ = "staff_memberships"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    principal_id: Mapped[str] = mapped_column(ForeignKey("principals.id", ondelete="CASCADE"))
    practice_id: Mapped[int] = mapped_column(ForeignKey("practices.id", ondelete="CASCADE"))
    role: Mapped[str] = mapped_column(String(30))
    """Staff role within the practice: admin, doctor, nurse or receptionist."""

    department: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    permissions: Mapped[list[str]] = mapped_column(JSONType, default=list)
    """Explicit permission names. Ignored for admin memberships."""

    status: Mapped[str] = mapped_column(String(20), default=STATUS_ACTIVE, server_default=STATUS_ACTIVE)
    is_owner: Mapped[bool] = mapped_column(Boolean, default=False, server_default=text("false"))
    """True only for the membership created by owner onboarding."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    principal = relationship("Principal", back_populates="staff_memberships")
    practice = relationship("Practice", back_populates="staff_memberships")

    __table_args__ = (
        CheckConstraint("status IN ('active', 'inactive')", name="ck_staff_memberships_status"),
        # One active membership per (principal, practice); inactive history is unconstrained
        Index(
            'uq_staff_memberships_active_pair',
            'principal_id', 'practice_id',
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        # One original owner per practice
        Index(
            'uq_staff_memberships_owner',
            'practice_id',
            unique=True,
            postgresql_where=text("is_owner = TRUE"),
            sqlite_where=text("is_owner = 1"),
        ),
        Index('idx_staff_memberships_practice_status', 'practice_id', 'status'),
        Index('idx_staff_memberships_principal_status', 'principal_id', 'status'),
    )

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    @property
    def is_admin(self) -> bool:
        return self.role == STAFF_ROLE_ADMIN

    def has_permission(self, permission: str) -> bool:
        """Admins hold every permission; everyone else only what is stored."""
        return self.is_admin or permission in (self.permissions or [])

    def __repr__(self) -> str:
        return (
            f"<StaffMembership(id={self.id}, principal_id='{self.principal_id}', "
            f"practice_id={self.practice_id}, role='{self.role}', status='{self.status}')>"
        )
