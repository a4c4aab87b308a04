"""Student fee ledger line: one expected charge for one student, fee category and term/year."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.core.enums import StudentFeeStatus
from app.db.session import Base


class StudentFee(Base):
    """
    Ledger line. status is derived from (amount_due, amount_paid) on every payment.
    Once locked (overpaid), catalog re-application no longer changes base_amount/amount_due.
    """

    __tablename__ = "student_fees"
    __table_args__ = (
        CheckConstraint("amount_paid >= 0", name="chk_student_fee_amount_paid_non_negative"),
        CheckConstraint(
            "status IN ('unpaid','partially_paid','paid')",
            name="chk_student_fee_status",
        ),
        UniqueConstraint(
            "student_id",
            "fee_category_id",
            "term",
            "academic_year",
            name="uq_student_fee_student_category_period",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_category_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("fee_categories.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    term = Column(String(10), nullable=True)  # NULL = yearly
    academic_year = Column(Integer, nullable=True)

    # Money in minor units
    base_amount = Column(Integer, nullable=True)
    amount_due = Column(Integer, nullable=False)
    amount_paid = Column(Integer, nullable=False, default=0)

    locked = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default=StudentFeeStatus.unpaid.value)
    source_structure_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("class_fee_structures.id", ondelete="SET NULL"),
        nullable=True,
    )
    due_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
    fee_category = relationship("FeeCategory")
    source_structure = relationship("ClassFeeStructure")
