from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel


class StudentFeeResponse(BaseModel):
    id: UUID
    student_id: UUID
    fee_category_id: Optional[UUID] = None
    term: Optional[str] = None
    academic_year: Optional[int] = None
    base_amount: Optional[int] = None
    amount_due: int
    amount_paid: int
    locked: bool
    status: str
    source_structure_id: Optional[UUID] = None
    due_date: Optional[date] = None
    created_at: datetime

    class Config:
        from_attributes = True


class StudentFeeListResponse(BaseModel):
    data: List[StudentFeeResponse]


class StudentFeeSummaryResponse(BaseModel):
    """Amounts in minor units. year is None when the student has no ledger lines."""

    term: Optional[str] = None
    year: Optional[int] = None
    total_due: int = 0
    total_paid_raw: int = 0
    past_credit: int = 0
    effective_paid: int = 0
    balance: int = 0
    rollover_forward: int = 0
