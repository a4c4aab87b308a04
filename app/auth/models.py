import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, JSON, String, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class User(Base):
    """Staff or parent account with role-based access to the finance modules."""

    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    # ADMIN, ACCOUNTANT, PARENT
    role = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default="ACTIVE")
    # Set for PARENT users only: the guardian whose students this user may pay for
    guardian_id = Column(Uuid(as_uuid=True), ForeignKey("guardians.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    guardian = relationship("Guardian")


class Role(Base):
    """Role with JSON permissions."""

    __tablename__ = "roles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    # Example shape:
    # {
    #   "fees": {"create": true, "read": true, "update": false},
    #   "mpesa_review": {"read": true, "update": true}
    # }
    permissions = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
