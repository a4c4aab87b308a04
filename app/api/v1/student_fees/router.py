"""Student fees router: ledger lines and balance summary per student."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import StudentFeeListResponse, StudentFeeSummaryResponse
from . import service

router = APIRouter(prefix="/api/v1/student-fees", tags=["student-fees"])


@router.get(
    "/by-student/{student_id}",
    response_model=StudentFeeListResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_student_fees(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeListResponse:
    try:
        return await service.list_student_fees(db, student_id, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/by-student/{student_id}/summary",
    response_model=StudentFeeSummaryResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_student_fee_summary(
    student_id: UUID,
    term: Optional[str] = Query(None, description="TERM1, TERM2 or TERM3"),
    year: Optional[int] = Query(None, description="Academic year; defaults to the latest year with fees"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeSummaryResponse:
    try:
        return await service.get_student_fee_summary(db, student_id, current_user, term=term, year=year)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
