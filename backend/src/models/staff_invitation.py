"""
StaffInvitation model for inviting people to join a practice's staff.

An invitation is addressed to an email and carries the staff role and
department the invitee will receive. The token is single-use: accepting it
creates the membership and moves the invitation to 'accepted'.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, TIMESTAMP, ForeignKey, Index, CheckConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import INVITATION_STATUS_PENDING
from core.database import Base


class StaffInvitation(Base):
    """Pending offer of a staff membership, addressed to an email."""

    __tablename__ = "staff_invitations"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    practice_id: Mapped[int] = mapped_column(ForeignKey("practices.id", ondelete="CASCADE"))
    email: Mapped[str] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(30))
    department: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    invitation_token: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    invited_by: Mapped[Optional[str]] = mapped_column(
        ForeignKey("principals.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(20), default=INVITATION_STATUS_PENDING, server_default=INVITATION_STATUS_PENDING)
    expires_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    accepted_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    practice = relationship("Practice")

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'accepted', 'revoked')", name="ck_staff_invitations_status"),
        Index('idx_staff_invitations_practice_status', 'practice_id', 'status'),
    )

    def __repr__(self) -> str:
        return f"<StaffInvitation(id={self.id}, practice_id={self.practice_id}, email='{self.email}', status='{self.status}')>"
