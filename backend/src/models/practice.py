"""
Practice model representing a medical practice.

A practice owns its staff memberships, patient assignments and the
requests/invitations leading to them. Practices are created by a doctor
choosing "owner" during onboarding or by a portal admin, and are only removed
by an explicit delete which first removes every dependent row.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, TIMESTAMP, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from core.constants import MAX_STRING_LENGTH


class Practice(Base):
    """A medical practice/organization."""

    __tablename__ = "practices"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    # No ORM cascade: PracticeService.delete_practice removes dependents in a fixed order
    staff_memberships = relationship("StaffMembership", back_populates="practice", passive_deletes=True)
    patient_assignments = relationship("PatientAssignment", back_populates="practice", passive_deletes=True)

    def __repr__(self) -> str:
        return f"<Practice(id={self.id}, name='{self.name}')>"
