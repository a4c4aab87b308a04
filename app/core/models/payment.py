"""Payment: an applied money movement against exactly one student fee ledger line."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class Payment(Base):
    """Immutable once created. client_request_id is globally unique (manual entry retry key)."""

    __tablename__ = "payments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_fee_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("student_fees.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    amount_minor = Column(Integer, nullable=False)
    method = Column(String(20), nullable=False)  # CASH, BANK_TRANSFER, POS, ONLINE, MPESA
    reference = Column(String(100), nullable=True)
    paid_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    client_request_id = Column(String(100), nullable=True, unique=True)
    created_from_offline = Column(Boolean, nullable=False, default=False)
    recorded_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student_fee = relationship("StudentFee", backref="payments")
    recorded_by_user = relationship("User", foreign_keys=[recorded_by])
