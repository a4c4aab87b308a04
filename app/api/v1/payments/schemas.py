from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import PaymentMethod


class PaymentCreate(BaseModel):
    student_fee_id: UUID
    amount: Decimal = Field(..., gt=0, description="Major currency units, e.g. 1500.50")
    method: PaymentMethod
    reference: Optional[str] = Field(None, max_length=100)
    client_request_id: Optional[str] = Field(
        None,
        max_length=100,
        description="Caller-generated retry key; a repeated key returns the original payment",
    )
    paid_at: Optional[datetime] = None


class PaymentResponse(BaseModel):
    id: UUID
    student_fee_id: UUID
    amount_minor: int
    method: str
    reference: Optional[str] = None
    paid_at: datetime
    client_request_id: Optional[str] = None
    created_from_offline: bool = False
    recorded_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentListResponse(BaseModel):
    data: List[PaymentResponse]
