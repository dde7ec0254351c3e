"""
PatientRecord model: clinical identity of a patient.

Normally owned by a patient principal and created at signup. Staff may also
create a placeholder record with no owning principal (e.g. for a walk-in
booked only for an appointment), so principal_id is optional.
"""

from datetime import datetime, date
from typing import Optional

from sqlalchemy import String, Text, Date, TIMESTAMP, ForeignKey, Index, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class PatientRecord(Base):
    """Clinical identity of a patient."""

    __tablename__ = "patient_records"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    principal_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("principals.id", ondelete="SET NULL"), nullable=True, unique=True
    )
    """Owning patient principal. NULL for placeholder records created by staff."""

    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    insurance_provider: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    insurance_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    emergency_contact_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    emergency_contact_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    allergies: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    medical_history: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_by_type: Mapped[str] = mapped_column(String(20), nullable=False, default="self")
    """'self' when created at patient signup, 'staff' for placeholder records."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    principal = relationship("Principal", back_populates="patient_record")
    assignments = relationship("PatientAssignment", back_populates="patient")

    __table_args__ = (
        Index('idx_patient_records_created_by_type', 'created_by_type'),
    )

    @property
    def is_placeholder(self) -> bool:
        return self.principal_id is None

    @property
    def display_name(self) -> str:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        if name:
            return name
        if self.principal is not None:
            return self.principal.full_name
        return f"Patient #{self.id}"

    def __repr__(self) -> str:
        return f"<PatientRecord(id={self.id}, principal_id={self.principal_id!r})>"
