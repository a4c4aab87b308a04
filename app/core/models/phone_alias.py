"""Learned payer phone numbers per student."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class StudentPhoneAlias(Base):
    """
    A normalized phone number that paid for a student through a phone-based match, registered
    numbers included. One row per student and number; never removed automatically.
    """

    __tablename__ = "student_phone_aliases"
    __table_args__ = (
        UniqueConstraint("student_id", "phone_number", name="uq_student_phone_alias"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    phone_number = Column(String(30), nullable=False, index=True)  # normalized, e.g. 254712345678
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("Student", back_populates="phone_aliases")
