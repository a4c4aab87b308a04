"""Class fee structure: expected amount per class, fee category, term and academic year."""

import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class ClassFeeStructure(Base):
    """Catalog row that ledger lines are (re)generated from. term NULL means a yearly fee."""

    __tablename__ = "class_fee_structures"
    __table_args__ = (
        UniqueConstraint(
            "class_name",
            "fee_category_id",
            "term",
            "academic_year",
            name="uq_class_fee_structure_class_category_period",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    class_name = Column(String(100), nullable=False, index=True)
    fee_category_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("fee_categories.id", ondelete="RESTRICT"),
        nullable=False,
    )
    term = Column(String(10), nullable=True)  # TERM1, TERM2, TERM3; NULL = yearly
    academic_year = Column(Integer, nullable=False)
    amount = Column(Integer, nullable=False)  # minor units
    due_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    fee_category = relationship("FeeCategory")
