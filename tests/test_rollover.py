from datetime import datetime

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.student_fees.rollover import LedgerLineSnapshot, resolve_as_of_year, summarize
from app.core.enums import Term


def line(due: int, paid: int, term=None, year=2024, created_at=None) -> LedgerLineSnapshot:
    return LedgerLineSnapshot(amount_due=due, amount_paid=paid, term=term, academic_year=year, created_at=created_at)


def test_past_term_surplus_reduces_current_balance() -> None:
    lines = [line(500, 800, "TERM1"), line(1000, 0, "TERM2")]

    summary = summarize(lines, Term.TERM2, 2024)

    assert summary.total_due == 1000
    assert summary.total_paid_raw == 0
    assert summary.past_credit == 300
    assert summary.effective_paid == 300
    assert summary.balance == 700
    assert summary.rollover_forward == 0


def test_past_shortfall_is_not_charged_forward() -> None:
    lines = [line(1000, 200, "TERM1"), line(1000, 500, "TERM2")]

    summary = summarize(lines, Term.TERM2, 2024)

    assert summary.past_credit == 0
    assert summary.balance == 500


def test_surplus_beyond_current_due_rolls_forward() -> None:
    lines = [line(500, 2000, "TERM1"), line(1000, 0, "TERM2")]

    summary = summarize(lines, Term.TERM2, 2024)

    assert summary.balance == 0
    assert summary.rollover_forward == 500


def test_later_terms_and_years_are_ignored() -> None:
    lines = [
        line(1000, 0, "TERM2"),
        line(500, 900, "TERM3"),
        line(500, 900, "TERM1", year=2025),
    ]

    summary = summarize(lines, Term.TERM2, 2024)

    assert summary.total_due == 1000
    assert summary.past_credit == 0


def test_earlier_year_counts_as_past_for_any_term() -> None:
    lines = [line(500, 700, "TERM3", year=2023), line(1000, 0, "TERM1")]

    summary = summarize(lines, Term.TERM1, 2024)

    assert summary.past_credit == 200
    assert summary.balance == 800


def test_yearly_line_counts_as_term1_by_default() -> None:
    lines = [line(1000, 0, None), line(400, 0, "TERM1")]

    summary = summarize(lines, Term.TERM1, 2024)

    assert summary.total_due == 1400


def test_yearly_line_ranks_before_term1_when_unmapped() -> None:
    lines = [line(1000, 1200, None), line(400, 0, "TERM1")]

    summary = summarize(lines, Term.TERM1, 2024, null_term_as=None)

    assert summary.total_due == 400
    assert summary.past_credit == 200
    assert summary.balance == 200


def test_without_term_the_whole_year_is_current() -> None:
    lines = [line(500, 800, "TERM1"), line(1000, 0, "TERM2"), line(300, 500, "TERM1", year=2023)]

    summary = summarize(lines, None, 2024)

    assert summary.total_due == 1500
    assert summary.total_paid_raw == 800
    assert summary.past_credit == 200
    assert summary.balance == 500


def test_missing_year_falls_back_to_creation_year() -> None:
    lines = [line(1000, 0, "TERM1", year=None, created_at=datetime(2024, 2, 1))]

    summary = summarize(lines, Term.TERM1, 2024)

    assert summary.total_due == 1000


def test_resolve_as_of_year() -> None:
    lines = [line(100, 0, "TERM1", year=2023), line(100, 0, "TERM2", year=2024)]

    assert resolve_as_of_year(lines, Term.TERM1) == 2023
    assert resolve_as_of_year(lines, Term.TERM3) == 2024
    assert resolve_as_of_year(lines, None) == 2024
    assert resolve_as_of_year([], Term.TERM1) is None


# --- Summary endpoint ---
@pytest.mark.asyncio
async def test_summary_endpoint(
    client: AsyncClient, db_session: AsyncSession, auth_headers, make_student, make_category, make_fee
) -> None:
    student = await make_student("51029")
    tuition = await make_category("Tuition")
    await make_fee(student, tuition, 50000, amount_paid=80000, term="TERM1", academic_year=2024)
    await make_fee(student, tuition, 100000, term="TERM2", academic_year=2024)
    headers = await auth_headers()

    response = await client.get(
        f"/api/v1/student-fees/by-student/{student.id}/summary",
        params={"term": "TERM2"},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json() == {
        "term": "TERM2",
        "year": 2024,
        "total_due": 100000,
        "total_paid_raw": 0,
        "past_credit": 30000,
        "effective_paid": 30000,
        "balance": 70000,
        "rollover_forward": 0,
    }


@pytest.mark.asyncio
async def test_summary_for_student_without_fees(
    client: AsyncClient, db_session: AsyncSession, auth_headers, make_student
) -> None:
    student = await make_student("51030")
    headers = await auth_headers()

    response = await client.get(f"/api/v1/student-fees/by-student/{student.id}/summary", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["year"] is None
    assert body["total_due"] == 0
    assert body["balance"] == 0


@pytest.mark.asyncio
async def test_summary_rejects_invalid_term(
    client: AsyncClient, db_session: AsyncSession, auth_headers, make_student
) -> None:
    student = await make_student("51031")
    headers = await auth_headers()

    response = await client.get(
        f"/api/v1/student-fees/by-student/{student.id}/summary",
        params={"term": "TERM9"},
        headers=headers,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid term"
