"""
Transfer poller API routes.

Admin-only endpoints to run a tick on demand and to inspect the
in-memory run history. All of them answer 503 when the app was started
without a poller.
"""

from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from transfer_ack.auth.security import Operator, require_admin
from transfer_ack.polling.clients.mock_client import MockProviderClient
from transfer_ack.polling.poller import TransferPoller

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/poller", tags=["poller"])


class PollTriggerResponse(BaseModel):
    """Result of an on-demand tick."""

    run_id: str
    status: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class PollerStatusResponse(BaseModel):
    """Loop state plus the last 24 hours of runs."""

    running: bool
    enabled: bool
    last_poll_time: Optional[str]
    current_run: Optional[Dict[str, Any]]
    last_run: Optional[Dict[str, Any]]
    metrics_24h: Dict[str, Any]
    success_rate_24h: float
    config: Dict[str, Any]


class MetricsResponse(BaseModel):
    enabled: bool
    aggregate: Dict[str, Any]
    success_rate: float
    recent_runs: list[Dict[str, Any]]


def get_poller(request: Request) -> TransferPoller:
    """Poller created by the application lifespan."""
    poller = getattr(request.app.state, "poller", None)
    if poller is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Poller is not configured",
        )
    return poller


@router.post("/poll", response_model=PollTriggerResponse)
async def trigger_poll(
    poller: TransferPoller = Depends(get_poller),
    operator: Operator = Depends(require_admin),
):
    """
    Manually trigger a polling run.

    Waits for a scheduled tick in progress to finish first.
    """
    logger.info("poller.manual_trigger", requested_by=operator.username)
    result = await poller.poll_once()

    if isinstance(poller.client, MockProviderClient):
        result["data_source"] = "mock"
        message = f"Poll {result['status']} (MOCK DATA)"
    else:
        result["data_source"] = poller.client.get_source_name()
        message = f"Poll {result['status']}"

    return PollTriggerResponse(
        run_id=result["run_id"],
        status=result["status"],
        message=message,
        details=result,
    )


@router.get("/status", response_model=PollerStatusResponse)
async def get_status(
    poller: TransferPoller = Depends(get_poller),
    operator: Operator = Depends(require_admin),
):
    return poller.get_status()


@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics(
    hours: Optional[int] = Query(None, ge=1, le=24 * 30),
    poller: TransferPoller = Depends(get_poller),
    operator: Operator = Depends(require_admin),
):
    """Aggregate counters over the last ``hours``, or all kept history."""
    return poller.get_metrics(hours=hours)
