"""M-Pesa transaction journal: one row per inbound C2B notification, matched or not."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, JSON, String, Text, Uuid
from sqlalchemy.orm import relationship

from app.core.enums import MpesaTransactionStatus
from app.db.session import Base


class MpesaTransaction(Base):
    """
    Journal row. mpesa_receipt_number (TransID) is the natural de-duplication key and is unique
    at the storage level so concurrent duplicate deliveries cannot both insert.
    SUCCESS rows are never updated; PENDING rows are updated only by manual review.
    """

    __tablename__ = "mpesa_transactions"
    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING','SUCCESS','FAILED')",
            name="chk_mpesa_transaction_status",
        ),
        CheckConstraint(
            "review_reason IS NULL OR review_reason IN ('NO_STUDENT','MULTIPLE_STUDENTS','NO_FEES','OTHER')",
            name="chk_mpesa_transaction_review_reason",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_fee_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("student_fees.id", ondelete="SET NULL"),
        nullable=True,
    )
    payment_id = Column(Uuid(as_uuid=True), ForeignKey("payments.id", ondelete="SET NULL"), nullable=True)
    phone_number = Column(String(30), nullable=False)
    amount_minor = Column(Integer, nullable=False)
    mpesa_receipt_number = Column(String(50), nullable=False, unique=True)
    business_short_code = Column(String(20), nullable=True)
    bill_ref_number = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default=MpesaTransactionStatus.PENDING.value)
    review_reason = Column(String(30), nullable=True)
    review_note = Column(Text, nullable=True)
    raw_payload = Column(JSON, nullable=True)
    resolved_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student_fee = relationship("StudentFee")
    payment = relationship("Payment")
