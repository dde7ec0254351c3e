"""
DoctorRecord model: professional identity of a doctor principal.

Created once, when the doctor completes onboarding, and one-to-one with its
principal. availability_status is the authoritative value behind the
real-time availability channel.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import String, TIMESTAMP, ForeignKey, CheckConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class DoctorRecord(Base):
    """Professional identity of a doctor principal."""

    __tablename__ = "doctor_records"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    principal_id: Mapped[str] = mapped_column(ForeignKey("principals.id", ondelete="CASCADE"), unique=True)
    specialty: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    license_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    availability_status: Mapped[str] = mapped_column(String(20), default="active", server_default="active")
    """'active' or 'away'. Only the doctor may change it."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    principal = relationship("Principal", back_populates="doctor_record")

    __table_args__ = (
        CheckConstraint("availability_status IN ('active', 'away')", name="ck_doctor_records_availability"),
    )

    def __repr__(self) -> str:
        return f"<DoctorRecord(id={self.id}, principal_id='{self.principal_id}', status='{self.availability_status}')>"
