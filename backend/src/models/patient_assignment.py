"""
PatientAssignment model: a patient under a practice's care.

Assignments are never hard-deleted by ordinary operations; removal sets
status to 'inactive'. At most one active assignment exists per
(patient, practice). When an assignment was produced by an accepted
physician request, source_request_id points back at that request, which is
how reconciliation detects an accepted request whose assignment is missing.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, TIMESTAMP, ForeignKey, Index, CheckConstraint, text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import STATUS_ACTIVE
from core.database import Base


class PatientAssignment(Base):
    """Links a patient record to a practice."""

    __tablename__ = "patient_assignments"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patient_records.id", ondelete="CASCADE"))
    practice_id: Mapped[int] = mapped_column(ForeignKey("practices.id", ondelete="CASCADE"))
    assigned_by: Mapped[Optional[str]] = mapped_column(
        ForeignKey("principals.id", ondelete="SET NULL"), nullable=True
    )
    """Principal who created the assignment (staff member, or the accepting patient)."""

    source_request_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("physician_patient_requests.id", ondelete="SET NULL"), nullable=True
    )
    """The accepted request this assignment came from, if any."""

    assigned_date: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    status: Mapped[str] = mapped_column(String(20), default=STATUS_ACTIVE, server_default=STATUS_ACTIVE)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    patient = relationship("PatientRecord", back_populates="assignments")
    practice = relationship("Practice", back_populates="patient_assignments")

    __table_args__ = (
        CheckConstraint("status IN ('active', 'inactive')", name="ck_patient_assignments_status"),
        Index(
            'uq_patient_assignments_active_pair',
            'patient_id', 'practice_id',
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index('idx_patient_assignments_practice_status', 'practice_id', 'status'),
        Index('idx_patient_assignments_source_request', 'source_request_id'),
    )

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def __repr__(self) -> str:
        return (
            f"<PatientAssignment(id={self.id}, patient_id={self.patient_id}, "
            f"practice_id={self.practice_id}, status='{self.status}')>"
        )
