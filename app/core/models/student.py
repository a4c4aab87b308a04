"""Student directory record. username is the public reference payers type into bill references."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class Student(Base):
    __tablename__ = "students"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Public identifier, e.g. admission number "51029"
    username = Column(String(50), nullable=False, unique=True)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(30), nullable=True, index=True)
    guardian_id = Column(Uuid(as_uuid=True), ForeignKey("guardians.id", ondelete="SET NULL"), nullable=True, index=True)
    class_name = Column(String(100), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    guardian = relationship("Guardian", back_populates="students")
    phone_aliases = relationship("StudentPhoneAlias", back_populates="student", cascade="all, delete-orphan")
