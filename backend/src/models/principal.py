"""
Principal model for authenticated portal users.

A principal is the directory record of an identity issued by the external
identity provider. Its id is the provider's stable subject identifier, and its
role (patient, doctor or admin) is fixed for its lifetime and decides which
role record (PatientRecord or DoctorRecord) may exist for it.
"""

from typing import Optional
from datetime import datetime
from sqlalchemy import String, TIMESTAMP, CheckConstraint, Index, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class Principal(Base):
    """Directory record of an authenticated user."""

    __tablename__ = "principals"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    """Subject identifier supplied by the identity provider."""

    email: Mapped[str] = mapped_column(String(255), unique=True)
    """Lower-cased email, used to look up staff and patients."""

    role: Mapped[str] = mapped_column(String(20))
    """Declared role: 'patient', 'doctor' or 'admin'. Immutable after creation."""

    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    doctor_record = relationship("DoctorRecord", back_populates="principal", uselist=False)
    patient_record = relationship("PatientRecord", back_populates="principal", uselist=False)
    staff_memberships = relationship("StaffMembership", back_populates="principal")

    __table_args__ = (
        CheckConstraint("role IN ('patient', 'doctor', 'admin')", name="ck_principals_role"),
        Index("idx_principals_role", "role"),
    )

    @property
    def full_name(self) -> str:
        """First and last name joined, falling back to the email."""
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or self.email

    def __repr__(self) -> str:
        return f"<Principal(id='{self.id}', email='{self.email}', role='{self.role}')>"
