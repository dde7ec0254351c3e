"""
PhysicianPatientRequest model: a practice asking a patient to join its care.

Lifecycle: pending -> accepted | rejected | cancelled. Terminal states are
final. Only one pending request may exist per (patient, practice).
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, TIMESTAMP, ForeignKey, Index, CheckConstraint, text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import REQUEST_STATUS_PENDING
from core.database import Base


class PhysicianPatientRequest(Base):
    __tablename__ = "physician_patient_requests"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    practice_id: Mapped[int] = mapped_column(ForeignKey("practices.id", ondelete="CASCADE"))
    patient_id: Mapped[int] = mapped_column(ForeignKey("patient_records.id", ondelete="CASCADE"))
    requested_by: Mapped[Optional[str]] = mapped_column(
        ForeignKey("principals.id", ondelete="SET NULL"), nullable=True
    )
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=REQUEST_STATUS_PENDING, server_default=REQUEST_STATUS_PENDING)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    practice = relationship("Practice")
    patient = relationship("PatientRecord")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected', 'cancelled')",
            name="ck_physician_patient_requests_status",
        ),
        Index(
            'uq_physician_patient_requests_pending_pair',
            'patient_id', 'practice_id',
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index('idx_physician_patient_requests_patient_status', 'patient_id', 'status'),
    )

    @property
    def is_pending(self) -> bool:
        return self.status == REQUEST_STATUS_PENDING

    def __repr__(self) -> str:
        return (
            f"<PhysicianPatientRequest(id={self.id}, practice_id={self.practice_id}, "
            f"patient_id={self.patient_id}, status='{self.status}')>"
        )
