"""
PracticeJoinRequest model: a doctor or staff principal asking to join a practice.

Reviewed by a staff member holding manage_staff. Approval creates the staff
membership with the requested role.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, TIMESTAMP, ForeignKey, Index, CheckConstraint, text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import JOIN_REQUEST_STATUS_PENDING
from core.database import Base


class PracticeJoinRequest(Base):
    __tablename__ = "practice_join_requests"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    practice_id: Mapped[int] = mapped_column(ForeignKey("practices.id", ondelete="CASCADE"))
    principal_id: Mapped[str] = mapped_column(ForeignKey("principals.id", ondelete="CASCADE"))
    requested_role: Mapped[str] = mapped_column(String(30))
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=JOIN_REQUEST_STATUS_PENDING, server_default=JOIN_REQUEST_STATUS_PENDING)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    reviewed_by: Mapped[Optional[str]] = mapped_column(
        ForeignKey("principals.id", ondelete="SET NULL"), nullable=True
    )

    practice = relationship("Practice")
    principal = relationship("Principal", foreign_keys=[principal_id])

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_practice_join_requests_status"),
        Index(
            'uq_practice_join_requests_pending_pair',
            'principal_id', 'practice_id',
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<PracticeJoinRequest(id={self.id}, practice_id={self.practice_id}, "
            f"principal_id='{self.principal_id}', status='{self.status}')>"
        )
