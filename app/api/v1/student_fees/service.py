"""Student fee ledger reads: lines per student and the rollover balance summary."""

from typing import Optional
from uuid import UUID

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import can_act_for_guardian
from app.auth.schemas import CurrentUser
from app.core.config import settings
from app.core.enums import Term
from app.core.exceptions import ServiceError
from app.core.repositories import StudentDirectory, StudentFeeRepository

from .rollover import LedgerLineSnapshot, resolve_as_of_year, summarize
from .schemas import StudentFeeListResponse, StudentFeeResponse, StudentFeeSummaryResponse


def parse_term(term: Optional[str]) -> Optional[Term]:
    if term is None or term == "":
        return None
    try:
        return Term(term)
    except ValueError:
        raise ServiceError("Invalid term", status.HTTP_400_BAD_REQUEST)


def _null_term_as() -> Optional[Term]:
    return Term(settings.rollover_null_term_as) if settings.rollover_null_term_as else None


async def _ensure_can_view_student(db: AsyncSession, student_id: UUID, current_user: CurrentUser) -> None:
    student = await StudentDirectory(db).get_student(student_id)
    if student is None:
        raise ServiceError("Student not found", status.HTTP_404_NOT_FOUND)
    if not can_act_for_guardian(current_user, student.guardian_id):
        raise ServiceError("Not allowed to view this student's fees", status.HTTP_403_FORBIDDEN)


async def list_student_fees(
    db: AsyncSession,
    student_id: UUID,
    current_user: CurrentUser,
) -> StudentFeeListResponse:
    await _ensure_can_view_student(db, student_id, current_user)
    lines = await StudentFeeRepository(db).list_for_student(student_id)
    return StudentFeeListResponse(data=[StudentFeeResponse.model_validate(line) for line in lines])


async def get_student_fee_summary(
    db: AsyncSession,
    student_id: UUID,
    current_user: CurrentUser,
    term: Optional[str] = None,
    year: Optional[int] = None,
) -> StudentFeeSummaryResponse:
    current_term = parse_term(term)
    await _ensure_can_view_student(db, student_id, current_user)

    rows = await StudentFeeRepository(db).list_for_student(student_id)
    lines = [
        LedgerLineSnapshot(
            amount_due=r.amount_due,
            amount_paid=r.amount_paid or 0,
            term=r.term,
            academic_year=r.academic_year,
            created_at=r.created_at,
        )
        for r in rows
    ]
    term_value = current_term.value if current_term else None
    as_of_year = year if year is not None else resolve_as_of_year(lines, current_term)
    if not lines or as_of_year is None:
        return StudentFeeSummaryResponse(term=term_value, year=None)

    summary = summarize(lines, current_term, as_of_year, null_term_as=_null_term_as())
    return StudentFeeSummaryResponse(
        term=term_value,
        year=as_of_year,
        total_due=summary.total_due,
        total_paid_raw=summary.total_paid_raw,
        past_credit=summary.past_credit,
        effective_paid=summary.effective_paid,
        balance=summary.balance,
        rollover_forward=summary.rollover_forward,
    )
