"""Manual/direct payments: staff or guardian entry against a ledger line, with client retry keys."""

from datetime import date, datetime, timezone
from typing import Optional, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import can_act_for_guardian
from app.auth.schemas import CurrentUser
from app.core.enums import PaymentMethod
from app.core.exceptions import ServiceError, StudentFeeNotFoundError
from app.core.hooks import PostCommitHooks
from app.core.ledger import apply_student_fee_payment
from app.core.repositories import PaymentRepository, StudentDirectory, StudentFeeRepository
from app.core.services import to_minor_units

from .schemas import PaymentCreate, PaymentListResponse, PaymentResponse


def generate_cash_reference(student_fee_id: UUID, today: Optional[date] = None) -> str:
    """CASH-YYYYMMDD-<last 6 chars of the ledger line id>."""
    today = today or datetime.now(timezone.utc).date()
    return f"CASH-{today.strftime('%Y%m%d')}-{str(student_fee_id)[-6:]}"


def resolve_reference(method: PaymentMethod, reference: Optional[str], student_fee_id: UUID) -> str:
    trimmed = (reference or "").strip()
    if method == PaymentMethod.CASH:
        return trimmed or generate_cash_reference(student_fee_id)
    if not trimmed:
        raise ServiceError("Reference is required for non-cash payments", status.HTTP_400_BAD_REQUEST)
    return trimmed


async def _ensure_can_access_fee(db: AsyncSession, student_fee_id: UUID, current_user: CurrentUser) -> None:
    fee = await StudentFeeRepository(db).get(student_fee_id)
    if fee is None:
        raise StudentFeeNotFoundError()
    student = await StudentDirectory(db).get_student(fee.student_id)
    if not can_act_for_guardian(current_user, student.guardian_id if student else None):
        raise ServiceError("Not allowed to act on this student's fees", status.HTTP_403_FORBIDDEN)


async def create_payment(
    db: AsyncSession,
    payload: PaymentCreate,
    current_user: CurrentUser,
) -> Tuple[PaymentResponse, bool]:
    """Returns (payment, created). created is False when client_request_id was seen before."""
    reference = resolve_reference(payload.method, payload.reference, payload.student_fee_id)
    await _ensure_can_access_fee(db, payload.student_fee_id, current_user)

    client_request_id = (payload.client_request_id or "").strip() or None
    application = await apply_student_fee_payment(
        db,
        payload.student_fee_id,
        to_minor_units(payload.amount),
        payload.method,
        reference=reference,
        client_request_id=client_request_id,
        created_from_offline=bool(client_request_id),
        recorded_by=current_user.id,
        paid_at=payload.paid_at,
        hooks=PostCommitHooks(db),
    )
    return PaymentResponse.model_validate(application.payment), application.created


async def list_payments(
    db: AsyncSession,
    student_fee_id: UUID,
    current_user: CurrentUser,
) -> PaymentListResponse:
    await _ensure_can_access_fee(db, student_fee_id, current_user)
    payments = await PaymentRepository(db).list_for_student_fee(student_fee_id)
    return PaymentListResponse(data=[PaymentResponse.model_validate(p) for p in payments])
