"""M-Pesa schemas: Daraja C2B callbacks, acknowledgements and the manual review queue."""

from datetime import datetime
from typing import List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


# --- C2B callbacks ---
class C2BConfirmation(BaseModel):
    """Daraja C2B confirmation body. Only TransID and BusinessShortCode are required."""

    trans_id: str = Field(..., alias="TransID", min_length=1)
    trans_amount: Union[str, float, int, None] = Field(None, alias="TransAmount")
    business_short_code: str = Field(..., alias="BusinessShortCode", min_length=1)
    bill_ref_number: Optional[str] = Field(None, alias="BillRefNumber")
    msisdn: Optional[str] = Field(None, alias="MSISDN")
    trans_time: Optional[str] = Field(None, alias="TransTime")
    first_name: Optional[str] = Field(None, alias="FirstName")
    middle_name: Optional[str] = Field(None, alias="MiddleName")
    last_name: Optional[str] = Field(None, alias="LastName")

    @field_validator("trans_id", "business_short_code", "bill_ref_number", "msisdn", "trans_time", mode="before")
    @classmethod
    def _coerce_str(cls, v):
        # Daraja sends some of these as JSON numbers depending on the channel
        if v is None or isinstance(v, bool):
            return v
        if isinstance(v, (int, float)):
            return str(v)
        return v.strip() if isinstance(v, str) else v

    class Config:
        populate_by_name = True
        extra = "allow"


class C2BAcknowledgement(BaseModel):
    ResultCode: str = "0"
    ResultDesc: str = "Received"


# --- Review queue ---
class MpesaReviewItem(BaseModel):
    id: UUID
    student_fee_id: Optional[UUID] = None
    payment_id: Optional[UUID] = None
    amount_minor: int
    phone_number: str
    mpesa_receipt_number: str
    business_short_code: Optional[str] = None
    bill_ref_number: Optional[str] = None
    status: str
    review_reason: Optional[str] = None
    review_note: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MpesaReviewListResponse(BaseModel):
    data: List[MpesaReviewItem]


class MpesaResolveRequest(BaseModel):
    student_fee_id: UUID
    note: Optional[str] = Field(None, max_length=500)


class MpesaRejectRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)
