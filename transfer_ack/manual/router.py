"""Manual transfer routes for operators and admins."""

from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from transfer_ack.auth.security import Operator, get_current_operator, require_admin
from transfer_ack.claims.arbiter import ClaimsConfig
from transfer_ack.claims.router import get_claims_config, parse_day, storage_unavailable
from transfer_ack.core.errors import StorageError
from transfer_ack.db.base import get_session_factory
from transfer_ack.manual.models import (
    ManualTransferCreate,
    ManualTransferDecision,
    ManualTransferListResponse,
    ManualTransferOut,
)
from transfer_ack.manual.service import ManualTransferService

router = APIRouter(prefix="/api/transfers", tags=["manual"])


def get_manual_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    config: ClaimsConfig = Depends(get_claims_config),
) -> ManualTransferService:
    return ManualTransferService(session_factory, config)


@router.post("/manual", response_model=ManualTransferOut)
async def create_manual(
    request: ManualTransferCreate,
    operator: Operator = Depends(get_current_operator),
    service: ManualTransferService = Depends(get_manual_service),
):
    """Record a payment received outside the provider feed."""
    try:
        return await service.create(operator.username, request.payer_name, request.amount)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except StorageError as exc:
        raise storage_unavailable(exc)


@router.get("/manual/mine/today", response_model=ManualTransferListResponse)
async def my_manual_today(
    operator: Operator = Depends(get_current_operator),
    service: ManualTransferService = Depends(get_manual_service),
):
    try:
        items = await service.list_mine(operator.username)
    except StorageError as exc:
        raise storage_unavailable(exc)
    return ManualTransferListResponse(count=len(items), items=items)


@router.get("/admin/manual/pending", response_model=ManualTransferListResponse)
async def admin_manual_pending(
    date: Optional[str] = Query(default=None, description="Local day, defaults to today"),
    admin: Operator = Depends(require_admin),
    service: ManualTransferService = Depends(get_manual_service),
):
    day = parse_day(date)
    try:
        items = await service.list_pending(day)
    except StorageError as exc:
        raise storage_unavailable(exc)
    return ManualTransferListResponse(count=len(items), items=items)


async def _decide(
    service: ManualTransferService,
    manual_id: int,
    approve: bool,
    admin: Operator,
    decision: Optional[ManualTransferDecision],
) -> ManualTransferOut:
    note = decision.note if decision else None
    try:
        result = await service.decide(manual_id, approve, admin.username, note)
    except StorageError as exc:
        raise storage_unavailable(exc)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Manual transfer {manual_id} does not exist or is no longer pending",
        )
    return result


@router.post("/admin/manual/{manual_id}/approve", response_model=ManualTransferOut)
async def approve_manual(
    manual_id: int,
    decision: Optional[ManualTransferDecision] = Body(default=None),
    admin: Operator = Depends(require_admin),
    service: ManualTransferService = Depends(get_manual_service),
):
    return await _decide(service, manual_id, True, admin, decision)


@router.post("/admin/manual/{manual_id}/reject", response_model=ManualTransferOut)
async def reject_manual(
    manual_id: int,
    decision: Optional[ManualTransferDecision] = Body(default=None),
    admin: Operator = Depends(require_admin),
    service: ManualTransferService = Depends(get_manual_service),
):
    return await _decide(service, manual_id, False, admin, decision)
