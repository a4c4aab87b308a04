"""
Ledger application: the single write path for money landing on a student fee line.

Shared by the M-Pesa journal, manual review resolution and direct/manual payment entry.
Status, locking and the Payment row change together in one transaction under a row lock.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from fastapi import status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import PaymentMethod, StudentFeeStatus
from app.core.exceptions import ServiceError, StudentFeeNotFoundError
from app.core.hooks import PostCommitHooks, fee_audit_hook
from app.core.logging_config import get_logger
from app.core.models import Payment, StudentFee
from app.core.repositories import PaymentRepository, StudentFeeRepository

logger = get_logger("core.ledger")


def compute_fee_status(amount_due: int, amount_paid: int) -> StudentFeeStatus:
    if amount_paid >= amount_due:
        return StudentFeeStatus.paid
    if amount_paid > 0:
        return StudentFeeStatus.partially_paid
    return StudentFeeStatus.unpaid


@dataclass
class LedgerApplication:
    payment: Payment
    student_fee: Optional[StudentFee]
    created: bool


async def apply_student_fee_payment(
    db: AsyncSession,
    student_fee_id: UUID,
    amount_minor: int,
    method: PaymentMethod,
    reference: Optional[str] = None,
    client_request_id: Optional[str] = None,
    created_from_offline: bool = False,
    recorded_by: Optional[UUID] = None,
    paid_at: Optional[datetime] = None,
    hooks: Optional[PostCommitHooks] = None,
    commit: bool = True,
) -> LedgerApplication:
    """
    Apply amount_minor to a ledger line and record the Payment.

    With a client_request_id that already exists, the existing Payment is returned unchanged.
    With commit=False the caller owns the transaction (the journal commits the payment together
    with its own row); hooks then run only if the caller runs them after its commit.
    """
    payments = PaymentRepository(db)
    lines = StudentFeeRepository(db)

    if client_request_id:
        existing = await payments.get_by_client_request_id(client_request_id)
        if existing is not None:
            logger.info(
                "ledger_payment_replayed",
                extra={"client_request_id": client_request_id, "payment_id": existing.id},
            )
            return LedgerApplication(payment=existing, student_fee=await lines.get(existing.student_fee_id), created=False)

    if amount_minor <= 0:
        raise ServiceError("Payment amount must be greater than zero", status.HTTP_400_BAD_REQUEST)

    fee = await lines.get_for_update(student_fee_id)
    if fee is None:
        raise StudentFeeNotFoundError()

    old_paid = fee.amount_paid or 0
    old_status = fee.status
    new_paid = old_paid + amount_minor
    fee.amount_paid = new_paid
    fee.status = compute_fee_status(fee.amount_due, new_paid).value
    if new_paid > fee.amount_due and not fee.locked:
        # Overpayment is kept in full; lock the due amount against catalog re-application
        fee.locked = True
        logger.info(
            "ledger_line_locked_on_overpayment",
            extra={"student_fee_id": fee.id, "amount_due": fee.amount_due, "amount_paid": new_paid},
        )

    payment = Payment(
        student_fee_id=fee.id,
        amount_minor=amount_minor,
        method=PaymentMethod(method).value,
        reference=(reference or "").strip() or None,
        paid_at=paid_at or datetime.now(timezone.utc),
        client_request_id=client_request_id or None,
        created_from_offline=created_from_offline,
        recorded_by=recorded_by,
    )
    payments.add(payment)
    await db.flush()

    if hooks is not None:
        hooks.add(
            "fee_audit_payment",
            fee_audit_hook(
                "payments",
                payment.id,
                "CREATE",
                {"amount_paid": old_paid, "status": old_status},
                {
                    "amount_paid": new_paid,
                    "status": fee.status,
                    "locked": fee.locked,
                    "payment_amount": amount_minor,
                    "method": payment.method,
                    "student_fee_id": str(fee.id),
                },
                recorded_by,
            ),
        )

    if commit:
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            if hooks is not None:
                hooks.discard()
            if client_request_id:
                # Lost a race against a concurrent retry with the same key
                existing = await payments.get_by_client_request_id(client_request_id)
                if existing is not None:
                    return LedgerApplication(
                        payment=existing,
                        student_fee=await lines.get(existing.student_fee_id),
                        created=False,
                    )
            raise
        await db.refresh(payment)
        await db.refresh(fee)
        if hooks is not None:
            await hooks.run(reload=(payment, fee))

    logger.info(
        "ledger_payment_applied",
        extra={
            "student_fee_id": fee.id,
            "payment_id": payment.id,
            "amount_minor": amount_minor,
            "method": payment.method,
            "status": fee.status,
        },
    )
    return LedgerApplication(payment=payment, student_fee=fee, created=True)


@dataclass(frozen=True)
class StructureChange:
    amount_due: int
    amount_paid: int
    locked: bool
    status: StudentFeeStatus
    changed: bool


def apply_structure_change(existing: Optional[StudentFee], new_amount_due: int) -> StructureChange:
    """Decide the ledger line values when a catalog amount is (re)applied to it."""
    if existing is None:
        return StructureChange(
            amount_due=new_amount_due,
            amount_paid=0,
            locked=False,
            status=compute_fee_status(new_amount_due, 0),
            changed=True,
        )

    paid = existing.amount_paid or 0
    if existing.locked:
        return StructureChange(
            amount_due=existing.amount_due,
            amount_paid=paid,
            locked=True,
            status=StudentFeeStatus(existing.status),
            changed=False,
        )

    if paid > new_amount_due:
        return StructureChange(
            amount_due=new_amount_due,
            amount_paid=paid,
            locked=True,
            status=StudentFeeStatus.paid,
            changed=True,
        )

    next_status = compute_fee_status(new_amount_due, paid)
    return StructureChange(
        amount_due=new_amount_due,
        amount_paid=paid,
        locked=False,
        status=next_status,
        changed=existing.amount_due != new_amount_due or existing.status != next_status.value,
    )
