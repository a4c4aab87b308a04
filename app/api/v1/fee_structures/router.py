"""Fee structures router: catalog re-application to ledger lines."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import FeeStructureApplyRequest, FeeStructureApplyResponse
from . import service

router = APIRouter(prefix="/api/v1/fee-structures", tags=["fee-structures"])


@router.post(
    "/apply",
    response_model=FeeStructureApplyResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def apply_fee_structures(
    payload: FeeStructureApplyRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeStructureApplyResponse:
    try:
        return await service.apply_fee_structures(db, payload, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
