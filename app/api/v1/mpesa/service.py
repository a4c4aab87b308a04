"""
M-Pesa service: C2B ingestion into the transaction journal, and the manual review queue.

Ingestion always acknowledges. Every notification with a receipt number ends as exactly one
journal row: SUCCESS (payment applied in the same transaction) or PENDING with a review reason.
"""

from typing import Any, List, Optional
from uuid import UUID

from fastapi import status
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import MpesaReviewReason, MpesaTransactionStatus, PaymentMethod
from app.core.exceptions import ServiceError
from app.core.hooks import PostCommitHooks, fee_audit_hook
from app.core.ledger import apply_student_fee_payment
from app.core.logging_config import get_logger
from app.core.models import MpesaTransaction
from app.core.repositories import MpesaTransactionRepository
from app.core.services import to_minor_units

from .phone_resolver import normalize_msisdn, phone_alias_hook
from .routing import ROUTING_TABLE, RoutingTable, match_notification, parse_bill_reference
from .schemas import (
    C2BAcknowledgement,
    C2BConfirmation,
    MpesaRejectRequest,
    MpesaResolveRequest,
    MpesaReviewItem,
)

logger = get_logger("mpesa.service")

REVIEW_TAKE_DEFAULT = 50
REVIEW_TAKE_MAX = 200
_PHONE_MAX_LENGTH = 30


# --- C2B ---
def acknowledge_validation(body: Any) -> C2BAcknowledgement:
    """Validation URL: every transaction is accepted."""
    return C2BAcknowledgement(ResultDesc="Accepted")


async def ingest_c2b_confirmation(
    db: AsyncSession,
    body: Any,
    routing_table: Optional[RoutingTable] = None,
) -> C2BAcknowledgement:
    try:
        notification = C2BConfirmation.model_validate(body)
    except ValidationError as e:
        logger.warning(
            "mpesa_c2b_malformed_payload",
            extra={"error_count": e.error_count(), "raw_payload": body},
        )
        return C2BAcknowledgement()

    try:
        await _journal_notification(db, notification, body, routing_table or ROUTING_TABLE)
    except Exception:
        # The log entry is the record of last resort
        await db.rollback()
        logger.exception(
            "mpesa_c2b_journal_write_failed",
            extra={"receipt": notification.trans_id, "raw_payload": body},
        )
    return C2BAcknowledgement()


def _journal_row(notification: C2BConfirmation, raw: Any) -> MpesaTransaction:
    normalized = normalize_msisdn(notification.msisdn)
    phone_for_storage = normalized or notification.msisdn or "UNKNOWN"
    return MpesaTransaction(
        phone_number=phone_for_storage[:_PHONE_MAX_LENGTH],
        amount_minor=to_minor_units(notification.trans_amount),
        mpesa_receipt_number=notification.trans_id,
        business_short_code=notification.business_short_code,
        bill_ref_number=(notification.bill_ref_number or "").strip() or None,
        raw_payload=raw,
    )


async def _journal_notification(
    db: AsyncSession,
    notification: C2BConfirmation,
    raw: Any,
    routing_table: RoutingTable,
) -> None:
    journal = MpesaTransactionRepository(db)
    receipt = notification.trans_id

    if await journal.get_by_receipt(receipt) is not None:
        logger.info("mpesa_c2b_duplicate_receipt", extra={"receipt": receipt})
        return

    normalized = normalize_msisdn(notification.msisdn)
    bill_ref = parse_bill_reference(notification.bill_ref_number)
    strategy = routing_table.strategy_for(notification.business_short_code)
    outcome = await match_notification(db, strategy, bill_ref, normalized)

    if not outcome.matched:
        await _record_pending(db, _journal_row(notification, raw), outcome.review_reason, None)
        return

    hooks = PostCommitHooks(db)
    row = _journal_row(notification, raw)
    try:
        application = await apply_student_fee_payment(
            db,
            outcome.student_fee_id,
            row.amount_minor,
            PaymentMethod.MPESA,
            reference=receipt,
            hooks=hooks,
            commit=False,
        )
        row.student_fee_id = outcome.student_fee_id
        row.payment_id = application.payment.id
        row.status = MpesaTransactionStatus.SUCCESS.value
        journal.add(row)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        hooks.discard()
        if await journal.get_by_receipt(receipt) is not None:
            # A concurrent delivery of the same receipt committed first; its payment stands alone
            logger.warning("mpesa_c2b_concurrent_duplicate", extra={"receipt": receipt})
            return
        logger.exception("mpesa_c2b_apply_failed", extra={"receipt": receipt, "student_fee_id": outcome.student_fee_id})
        await _record_pending(db, _journal_row(notification, raw), MpesaReviewReason.OTHER, outcome.student_fee_id)
        return
    except Exception:
        await db.rollback()
        hooks.discard()
        logger.exception("mpesa_c2b_apply_failed", extra={"receipt": receipt, "student_fee_id": outcome.student_fee_id})
        await _record_pending(db, _journal_row(notification, raw), MpesaReviewReason.OTHER, outcome.student_fee_id)
        return

    logger.info(
        "mpesa_c2b_applied",
        extra={
            "receipt": receipt,
            "student_fee_id": outcome.student_fee_id,
            "payment_id": row.payment_id,
            "amount_minor": row.amount_minor,
        },
    )
    if outcome.matched_by_phone and normalized:
        hooks.add("learn_phone_alias", phone_alias_hook(outcome.student_id, normalized))
    await hooks.run()


async def _record_pending(
    db: AsyncSession,
    row: MpesaTransaction,
    reason: Optional[MpesaReviewReason],
    student_fee_id: Optional[UUID],
) -> None:
    journal = MpesaTransactionRepository(db)
    row.status = MpesaTransactionStatus.PENDING.value
    row.review_reason = (reason or MpesaReviewReason.OTHER).value
    row.student_fee_id = student_fee_id
    journal.add(row)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        if await journal.get_by_receipt(row.mpesa_receipt_number) is None:
            raise
        logger.warning("mpesa_c2b_concurrent_duplicate", extra={"receipt": row.mpesa_receipt_number})
        return
    logger.info(
        "mpesa_c2b_pending_review",
        extra={
            "receipt": row.mpesa_receipt_number,
            "review_reason": row.review_reason,
            "business_short_code": row.business_short_code,
            "amount_minor": row.amount_minor,
        },
    )


# --- Review queue ---
def clamp_take(take: Optional[int]) -> int:
    if not take:
        return REVIEW_TAKE_DEFAULT
    return min(max(take, 1), REVIEW_TAKE_MAX)


async def list_pending_transactions(db: AsyncSession, take: Optional[int] = None) -> List[MpesaReviewItem]:
    rows = await MpesaTransactionRepository(db).list_pending(clamp_take(take))
    return [MpesaReviewItem.model_validate(r) for r in rows]


async def _get_pending_for_update(journal: MpesaTransactionRepository, transaction_id: UUID) -> MpesaTransaction:
    txn = await journal.get_for_update(transaction_id)
    if txn is None:
        raise ServiceError("M-Pesa transaction not found", status.HTTP_404_NOT_FOUND)
    if txn.status != MpesaTransactionStatus.PENDING.value:
        raise ServiceError("Only pending transactions can be reviewed", status.HTTP_409_CONFLICT)
    return txn


async def resolve_pending_transaction(
    db: AsyncSession,
    transaction_id: UUID,
    payload: MpesaResolveRequest,
    resolved_by: Optional[UUID],
) -> MpesaReviewItem:
    """Apply a pending notification to an operator-chosen ledger line and mark it SUCCESS."""
    journal = MpesaTransactionRepository(db)
    hooks = PostCommitHooks(db)
    try:
        txn = await _get_pending_for_update(journal, transaction_id)
        application = await apply_student_fee_payment(
            db,
            payload.student_fee_id,
            txn.amount_minor,
            PaymentMethod.MPESA,
            reference=txn.mpesa_receipt_number,
            recorded_by=resolved_by,
            hooks=hooks,
            commit=False,
        )
    except ServiceError:
        await db.rollback()
        raise

    old_value = {"status": txn.status, "review_reason": txn.review_reason, "student_fee_id": str(txn.student_fee_id) if txn.student_fee_id else None}
    txn.student_fee_id = payload.student_fee_id
    txn.payment_id = application.payment.id
    txn.status = MpesaTransactionStatus.SUCCESS.value
    txn.review_note = payload.note
    txn.resolved_by = resolved_by
    hooks.add(
        "fee_audit_mpesa_resolve",
        fee_audit_hook(
            "mpesa_transactions",
            txn.id,
            "RESOLVE",
            old_value,
            {"status": txn.status, "student_fee_id": str(payload.student_fee_id), "payment_id": str(application.payment.id)},
            resolved_by,
            payload.note,
        ),
    )
    await db.commit()
    await db.refresh(txn)
    await hooks.run(reload=(txn,))
    logger.info(
        "mpesa_review_resolved",
        extra={"transaction_id": txn.id, "student_fee_id": payload.student_fee_id, "payment_id": txn.payment_id},
    )
    return MpesaReviewItem.model_validate(txn)


async def reject_pending_transaction(
    db: AsyncSession,
    transaction_id: UUID,
    payload: MpesaRejectRequest,
    resolved_by: Optional[UUID],
) -> MpesaReviewItem:
    """Close a pending notification without touching the ledger (settled outside the system)."""
    journal = MpesaTransactionRepository(db)
    try:
        txn = await _get_pending_for_update(journal, transaction_id)
    except ServiceError:
        await db.rollback()
        raise
    txn.status = MpesaTransactionStatus.FAILED.value
    txn.review_note = payload.reason
    txn.resolved_by = resolved_by
    hooks = PostCommitHooks(db)
    hooks.add(
        "fee_audit_mpesa_reject",
        fee_audit_hook(
            "mpesa_transactions",
            txn.id,
            "REJECT",
            {"status": MpesaTransactionStatus.PENDING.value},
            {"status": txn.status},
            resolved_by,
            payload.reason,
        ),
    )
    await db.commit()
    await db.refresh(txn)
    await hooks.run(reload=(txn,))
    logger.info("mpesa_review_rejected", extra={"transaction_id": txn.id})
    return MpesaReviewItem.model_validate(txn)
