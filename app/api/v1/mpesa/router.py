"""M-Pesa router: Daraja C2B validation/confirmation callbacks and the manual review queue."""

from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.core.logging_config import get_logger
from app.db.session import get_db

from .schemas import (
    C2BAcknowledgement,
    MpesaRejectRequest,
    MpesaResolveRequest,
    MpesaReviewItem,
    MpesaReviewListResponse,
)
from . import service

logger = get_logger("mpesa.router")

router = APIRouter(prefix="/api/v1/mpesa", tags=["mpesa"])


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        logger.warning("mpesa_callback_unparseable_body", extra={"path": request.url.path})
        return None


# --- C2B callbacks (called by the payment network; no bearer auth) ---
@router.post("/c2b/validate", response_model=C2BAcknowledgement)
async def c2b_validate(request: Request) -> C2BAcknowledgement:
    return service.acknowledge_validation(await _read_json(request))


@router.post("/c2b/confirm", response_model=C2BAcknowledgement)
async def c2b_confirm(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> C2BAcknowledgement:
    return await service.ingest_c2b_confirmation(db, await _read_json(request))


# --- Review queue ---
@router.get(
    "/review",
    response_model=MpesaReviewListResponse,
    dependencies=[Depends(check_permission("mpesa_review", "read"))],
)
async def list_review_queue(
    take: Optional[int] = Query(None, description="Max rows (default 50, clamped to 1..200)"),
    db: AsyncSession = Depends(get_db),
) -> MpesaReviewListResponse:
    return MpesaReviewListResponse(data=await service.list_pending_transactions(db, take))


@router.post(
    "/review/{transaction_id}/resolve",
    response_model=MpesaReviewItem,
    dependencies=[Depends(check_permission("mpesa_review", "update"))],
)
async def resolve_review_item(
    transaction_id: UUID,
    payload: MpesaResolveRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> MpesaReviewItem:
    try:
        return await service.resolve_pending_transaction(db, transaction_id, payload, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/review/{transaction_id}/reject",
    response_model=MpesaReviewItem,
    dependencies=[Depends(check_permission("mpesa_review", "update"))],
)
async def reject_review_item(
    transaction_id: UUID,
    payload: MpesaRejectRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> MpesaReviewItem:
    try:
        return await service.reject_pending_transaction(db, transaction_id, payload, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
