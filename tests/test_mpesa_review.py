import uuid
from datetime import date

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.mpesa.service import clamp_take
from app.core.models import FeeAuditLog, MpesaTransaction, Payment, StudentFee

ACCOUNTANT_PERMISSIONS = {
    "fees": {"create": True, "read": True, "update": True},
    "mpesa_review": {"read": True, "update": True},
}


async def _pending(db: AsyncSession, receipt: str, amount_minor: int = 200000, reason: str = "NO_STUDENT") -> MpesaTransaction:
    txn = MpesaTransaction(
        phone_number="254799000000",
        amount_minor=amount_minor,
        mpesa_receipt_number=receipt,
        business_short_code="529914",
        bill_ref_number="UNKNOWN-REF",
        status="PENDING",
        review_reason=reason,
        raw_payload={"TransID": receipt},
    )
    db.add(txn)
    await db.commit()
    return txn


@pytest.mark.parametrize(
    "take, expected",
    [(None, 50), (0, 50), (10, 10), (-5, 1), (500, 200), (200, 200)],
)
def test_clamp_take(take, expected) -> None:
    assert clamp_take(take) == expected


@pytest.mark.asyncio
async def test_review_queue_lists_pending_only(
    client: AsyncClient, db_session: AsyncSession, auth_headers
) -> None:
    await _pending(db_session, "QREV000001")
    done = await _pending(db_session, "QREV000002")
    done.status = "FAILED"
    await db_session.commit()
    headers = await auth_headers("ACCOUNTANT", ACCOUNTANT_PERMISSIONS)

    response = await client.get("/api/v1/mpesa/review", headers=headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert [item["mpesa_receipt_number"] for item in data] == ["QREV000001"]
    assert data[0]["review_reason"] == "NO_STUDENT"


@pytest.mark.asyncio
async def test_review_queue_respects_take(
    client: AsyncClient, db_session: AsyncSession, auth_headers
) -> None:
    for i in range(3):
        await _pending(db_session, f"QREV00010{i}")
    headers = await auth_headers()

    response = await client.get("/api/v1/mpesa/review", params={"take": 2}, headers=headers)

    assert response.status_code == 200
    assert len(response.json()["data"]) == 2


@pytest.mark.asyncio
async def test_review_queue_requires_auth(client: AsyncClient, db_session: AsyncSession) -> None:
    response = await client.get("/api/v1/mpesa/review")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_parent_cannot_see_review_queue(
    client: AsyncClient, db_session: AsyncSession, auth_headers
) -> None:
    headers = await auth_headers("PARENT", {"fees": {"read": True, "create": True}})

    response = await client.get("/api/v1/mpesa/review", headers=headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_resolve_applies_payment_to_chosen_line(
    client: AsyncClient,
    db_session: AsyncSession,
    auth_headers,
    make_student,
    make_category,
    make_fee,
) -> None:
    student = await make_student("51029")
    line = await make_fee(student, await make_category("Tuition"), 500000, due_date=date(2025, 1, 10))
    line_id = line.id
    txn = await _pending(db_session, "QREV000003")
    txn_id = txn.id
    headers = await auth_headers("ACCOUNTANT", ACCOUNTANT_PERMISSIONS)

    response = await client.post(
        f"/api/v1/mpesa/review/{txn_id}/resolve",
        json={"student_fee_id": str(line_id), "note": "Parent called; paid for 51029"},
        headers=headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "SUCCESS"
    assert body["student_fee_id"] == str(line_id)
    assert body["payment_id"] is not None
    assert body["review_note"] == "Parent called; paid for 51029"

    fee = await db_session.get(StudentFee, line_id)
    await db_session.refresh(fee)
    assert fee.amount_paid == 200000
    payment = await db_session.get(Payment, uuid.UUID(body["payment_id"]))
    assert payment.reference == "QREV000003"
    assert payment.method == "MPESA"

    audit = (
        await db_session.execute(select(FeeAuditLog).where(FeeAuditLog.reference_table == "mpesa_transactions"))
    ).scalars().all()
    assert [a.action_type for a in audit] == ["RESOLVE"]


@pytest.mark.asyncio
async def test_resolve_twice_conflicts(
    client: AsyncClient, db_session: AsyncSession, auth_headers, make_student, make_category, make_fee
) -> None:
    student = await make_student("51029")
    line = await make_fee(student, await make_category("Tuition"), 500000)
    payload = {"student_fee_id": str(line.id)}
    txn = await _pending(db_session, "QREV000004")
    url = f"/api/v1/mpesa/review/{txn.id}/resolve"
    headers = await auth_headers()

    first = await client.post(url, json=payload, headers=headers)
    second = await client.post(url, json=payload, headers=headers)

    assert first.status_code == 200
    assert second.status_code == 409


@pytest.mark.asyncio
async def test_resolve_to_unknown_line_keeps_pending(
    client: AsyncClient, db_session: AsyncSession, auth_headers
) -> None:
    txn = await _pending(db_session, "QREV000005")
    txn_id = txn.id
    headers = await auth_headers()

    response = await client.post(
        f"/api/v1/mpesa/review/{txn_id}/resolve",
        json={"student_fee_id": str(uuid.uuid4())},
        headers=headers,
    )

    assert response.status_code == 404
    refreshed = await db_session.get(MpesaTransaction, txn_id)
    await db_session.refresh(refreshed)
    assert refreshed.status == "PENDING"


@pytest.mark.asyncio
async def test_resolve_unknown_transaction(client: AsyncClient, db_session: AsyncSession, auth_headers) -> None:
    headers = await auth_headers()

    response = await client.post(
        f"/api/v1/mpesa/review/{uuid.uuid4()}/resolve",
        json={"student_fee_id": str(uuid.uuid4())},
        headers=headers,
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_reject_marks_failed_without_payment(
    client: AsyncClient, db_session: AsyncSession, auth_headers
) -> None:
    txn = await _pending(db_session, "QREV000006")
    headers = await auth_headers()

    response = await client.post(
        f"/api/v1/mpesa/review/{txn.id}/reject",
        json={"reason": "Refunded by the bank"},
        headers=headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "FAILED"
    assert body["payment_id"] is None
    assert body["review_note"] == "Refunded by the bank"
