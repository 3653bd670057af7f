"""
Operator and admin routes for claiming transfers and reviewing claims.

Operators only see and claim transfers of the provider account assigned to
them; admins see every account.
"""

from datetime import date, datetime
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from transfer_ack.auth.security import Operator, get_current_operator, require_admin
from transfer_ack.claims.arbiter import AckArbiter, ClaimsConfig
from transfer_ack.claims.models import (
    AccountInfo,
    AssignAccountRequest,
    ClaimedDayResponse,
    ClaimOutcome,
    ClaimResponse,
    ClaimResult,
    OperatorInfo,
    PendingResponse,
)
from transfer_ack.core.clock import utc_now
from transfer_ack.core.config import get_settings
from transfer_ack.core.errors import StorageError, TransferNotFoundError
from transfer_ack.db.base import STORAGE_ERRORS, get_session_factory
from transfer_ack.db.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/transfers", tags=["transfers"])
admin_router = APIRouter(prefix="/api/transfers/admin", tags=["admin"])


def get_claims_config() -> ClaimsConfig:
    return ClaimsConfig.from_settings(get_settings())


def get_arbiter(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    config: ClaimsConfig = Depends(get_claims_config),
) -> AckArbiter:
    return AckArbiter(session_factory, config)


def parse_day(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD query value; 400 when malformed."""
    if value is None or not value.strip():
        return None
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid date {value!r}, expected YYYY-MM-DD",
        )


def require_day(value: Optional[str]) -> date:
    """Like parse_day, but a blank value is also a 400."""
    day = parse_day(value)
    if day is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing date, expected YYYY-MM-DD",
        )
    return day


def operator_scope(operator: Operator) -> Optional[int]:
    """
    Account an operator's reads and claims are restricted to.

    Admins are unrestricted; a branch operator without an assigned account
    cannot work on transfers at all.
    """
    if operator.is_admin:
        return operator.account_id
    if operator.account_id is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"User {operator.username!r} has no provider account assigned",
        )
    return operator.account_id


def storage_unavailable(exc: StorageError) -> HTTPException:
    logger.error("api.storage_unavailable", error=str(exc))
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Transfer store unavailable, retry shortly",
    )


def claim_response(result: ClaimResult) -> JSONResponse:
    if result.outcome == ClaimOutcome.WON:
        message = "Transfer acknowledged"
    elif result.outcome == ClaimOutcome.ALREADY_OWNED:
        message = "Transfer was already acknowledged by you"
    else:
        message = f"Transfer already acknowledged by {result.owner}"

    body = ClaimResponse(
        ok=result.ok,
        outcome=result.outcome,
        transfer_id=result.transfer_id,
        payment_id=result.payment_id,
        owner=result.owner,
        message=message,
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK if result.ok else status.HTTP_409_CONFLICT,
        content=body.model_dump(mode="json"),
    )


# ============================================================================
# Operator routes
# ============================================================================


@router.get("/ping")
async def ping(
    operator: Operator = Depends(get_current_operator),
    config: ClaimsConfig = Depends(get_claims_config),
):
    now = utc_now()
    return {
        "ok": True,
        "user": operator.username,
        "utc": now.strftime("%Y-%m-%d %H:%M:%S"),
        "local": now.astimezone(config.tz).strftime("%Y-%m-%d %H:%M:%S"),
    }


@router.get("/pending", response_model=PendingResponse)
async def pending(
    limit: int = 20,
    operator: Operator = Depends(get_current_operator),
    arbiter: AckArbiter = Depends(get_arbiter),
):
    """Unclaimed recent transfers on the operator's account (limit clamped to 1..200)."""
    account_id = operator_scope(operator)
    try:
        items = await arbiter.list_unclaimed(limit=limit, account_id=account_id)
    except StorageError as exc:
        raise storage_unavailable(exc)
    return PendingResponse(account_id=account_id, count=len(items), items=items)


@router.get("/last", response_model=PendingResponse)
async def last(
    limit: int = 20,
    operator: Operator = Depends(require_admin),
    arbiter: AckArbiter = Depends(get_arbiter),
):
    """Most recently ingested transfers on every account (debug)."""
    try:
        items = await arbiter.list_recent(limit)
    except StorageError as exc:
        raise storage_unavailable(exc)
    return PendingResponse(account_id=None, count=len(items), items=items)


@router.post("/{transfer_id}/ack", response_model=ClaimResponse)
async def ack_by_id(
    transfer_id: int,
    operator: Operator = Depends(get_current_operator),
    arbiter: AckArbiter = Depends(get_arbiter),
):
    """Claim a transfer by its id. 409 names the operator holding it."""
    try:
        result = await arbiter.claim_by_id(
            transfer_id, operator.username, operator_scope(operator)
        )
    except TransferNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except StorageError as exc:
        raise storage_unavailable(exc)
    return claim_response(result)


@router.post("/payment/{payment_id}/ack", response_model=ClaimResponse)
async def ack_by_payment_id(
    payment_id: str,
    operator: Operator = Depends(get_current_operator),
    arbiter: AckArbiter = Depends(get_arbiter),
):
    """Claim a transfer by its provider payment id."""
    try:
        result = await arbiter.claim_by_payment_id(
            payment_id, operator.username, operator_scope(operator)
        )
    except TransferNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except StorageError as exc:
        raise storage_unavailable(exc)
    return claim_response(result)


@router.get("/accepted/today", response_model=ClaimedDayResponse)
async def accepted_today(
    operator: Operator = Depends(get_current_operator),
    arbiter: AckArbiter = Depends(get_arbiter),
):
    account_id = operator_scope(operator)
    try:
        claimed = await arbiter.list_claimed_by(
            operator.username, arbiter.today(), account_id
        )
    except StorageError as exc:
        raise storage_unavailable(exc)
    return ClaimedDayResponse(**claimed.model_dump())


@router.get("/accepted/by-day", response_model=ClaimedDayResponse)
async def accepted_by_day(
    date: str = Query(..., description="Local day, YYYY-MM-DD"),
    operator: Operator = Depends(get_current_operator),
    arbiter: AckArbiter = Depends(get_arbiter),
):
    day = require_day(date)
    account_id = operator_scope(operator)
    try:
        claimed = await arbiter.list_claimed_by(operator.username, day, account_id)
    except StorageError as exc:
        raise storage_unavailable(exc)
    return ClaimedDayResponse(**claimed.model_dump())


@router.get("/me/account", response_model=AccountInfo)
async def my_account(
    operator: Operator = Depends(get_current_operator),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    if operator.account_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No provider account assigned",
        )
    async with UnitOfWork(session_factory=session_factory) as uow:
        account = await uow.accounts.get_by_id(operator.account_id)
    if account is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No provider account assigned",
        )
    return AccountInfo(
        id=account.id,
        name=account.name,
        alias=account.alias or "",
        cvu=account.cvu or "",
        is_active=account.is_active,
    )


# ============================================================================
# Admin routes
# ============================================================================


@admin_router.get("/accepted/by-day", response_model=ClaimedDayResponse)
async def admin_accepted_by_day(
    date: str = Query(..., description="Local day, YYYY-MM-DD"),
    operator: Optional[str] = Query(default=None, description="Filter by username"),
    admin: Operator = Depends(require_admin),
    arbiter: AckArbiter = Depends(get_arbiter),
):
    day = require_day(date)
    claimant = operator.strip() if operator and operator.strip() else None
    try:
        claimed = await arbiter.list_claimed_on(day, claimant)
    except StorageError as exc:
        raise storage_unavailable(exc)
    return ClaimedDayResponse(**claimed.model_dump())


@admin_router.get("/operators", response_model=List[OperatorInfo])
async def list_operators(
    admin: Operator = Depends(require_admin),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    async with UnitOfWork(session_factory=session_factory) as uow:
        users = await uow.users.list_operators()
        accounts = {a.id: a.name for a in await uow.accounts.list_ordered()}
    return [
        OperatorInfo(
            username=u.username,
            role=u.role,
            account_id=u.account_id,
            account_name=accounts.get(u.account_id) if u.account_id else None,
        )
        for u in users
    ]


@admin_router.get("/accounts", response_model=List[AccountInfo])
async def list_accounts(
    admin: Operator = Depends(require_admin),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    async with UnitOfWork(session_factory=session_factory) as uow:
        accounts = await uow.accounts.list_ordered()
    return [
        AccountInfo(
            id=a.id,
            name=a.name,
            alias=a.alias or "",
            cvu=a.cvu or "",
            is_active=a.is_active,
        )
        for a in accounts
    ]


@admin_router.post("/assign-account")
async def assign_account(
    request: AssignAccountRequest,
    admin: Operator = Depends(require_admin),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Point an operator at a provider account (or clear it with null)."""
    try:
        async with UnitOfWork(session_factory=session_factory) as uow:
            if request.account_id is not None:
                if await uow.accounts.get_by_id(request.account_id) is None:
                    raise HTTPException(
                        status_code=status.HTTP_404_NOT_FOUND,
                        detail=f"Account {request.account_id} not found",
                    )
            updated = await uow.users.assign_account(
                request.username.strip(), request.account_id
            )
            if not updated:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail=f"User {request.username!r} not found",
                )
    except STORAGE_ERRORS as exc:
        raise storage_unavailable(StorageError(str(exc)))

    logger.info(
        "admin.account_assigned",
        username=request.username,
        account_id=request.account_id,
        admin=admin.username,
    )
    return {"ok": True, "username": request.username, "account_id": request.account_id}
