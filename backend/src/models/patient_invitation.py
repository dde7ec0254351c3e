"""
PatientInvitation model for inviting someone who has no patient account yet.

Staff invite an email address; the invitee registers as a patient with that
email and accepts with the token, which assigns them to the practice. Only
one pending invitation may exist per (practice, email).
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, TIMESTAMP, ForeignKey, Index, CheckConstraint, text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import INVITATION_STATUS_PENDING
from core.database import Base


class PatientInvitation(Base):
    """Pending offer to become a patient of a practice, addressed to an email."""

    __tablename__ = "patient_invitations"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    practice_id: Mapped[int] = mapped_column(ForeignKey("practices.id", ondelete="CASCADE"))
    email: Mapped[str] = mapped_column(String(255))
    invitation_token: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    invited_by: Mapped[Optional[str]] = mapped_column(
        ForeignKey("principals.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(20), default=INVITATION_STATUS_PENDING, server_default=INVITATION_STATUS_PENDING)
    expires_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    accepted_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    # Assignment created when the invitation was accepted
    assignment_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("patient_assignments.id", ondelete="SET NULL"), nullable=True
    )

    practice = relationship("Practice")
    assignment = relationship("PatientAssignment")

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'accepted', 'revoked')", name="ck_patient_invitations_status"),
        Index(
            'uq_patient_invitations_pending_email',
            'practice_id', 'email',
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<PatientInvitation(id={self.id}, practice_id={self.practice_id}, email='{self.email}', status='{self.status}')>"
