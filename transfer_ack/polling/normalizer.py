"""Turn raw provider payment elements into transfer rows."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

import structlog
from pydantic import BaseModel

from transfer_ack.polling.clients.base import RawPayment

logger = structlog.get_logger(__name__)

CENTS = Decimal("0.01")
ZERO_AMOUNT = Decimal("0.00")
# largest magnitude a Numeric(18, 2) column holds
MAX_AMOUNT = Decimal("9999999999999999.99")


class NormalizedTransfer(BaseModel):
    """Column values for one transfers row."""

    account_id: int
    payment_id: str
    occurred_at: datetime
    amount: Decimal
    status: str = ""
    payment_type: str = ""
    raw_payload: str

    def to_row(self) -> dict[str, Any]:
        return self.model_dump()


# ============================================================================
# Field Normalization
# ============================================================================


def normalize_payment_id(value: Any) -> Optional[str]:
    """Provider id as a string; None when missing or blank."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def parse_provider_instant(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    The offset (or trailing Z) is respected; a timestamp without one is taken
    to be UTC. Returns None when the value is missing or unparseable.

    Examples:
        "2026-01-08T10:00:00.000-03:00" -> 2026-01-08 13:00:00+00:00
        "2026-01-08T13:00:00Z"          -> 2026-01-08 13:00:00+00:00
    """
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_amount(value: Any) -> Decimal:
    """
    Amount as a Decimal with two places, rounded half up.

    Only JSON numbers that fit the amount column are accepted; anything
    else becomes 0.00.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return ZERO_AMOUNT
    try:
        # str() keeps floats like 0.1 from dragging binary noise along
        amount = Decimal(str(value))
        if not amount.is_finite():
            return ZERO_AMOUNT
        amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # too many digits to quantize
        return ZERO_AMOUNT
    if abs(amount) > MAX_AMOUNT:
        return ZERO_AMOUNT
    return amount


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


# ============================================================================
# Element Normalization
# ============================================================================


def normalize_payment(raw: RawPayment) -> Optional[NormalizedTransfer]:
    """
    Build a transfer row from a provider element.

    Returns:
        The normalized transfer, or None if the element lacks an id or a
        usable creation date and must be skipped
    """
    payload = raw.payload

    payment_id = normalize_payment_id(payload.get("id"))
    if payment_id is None:
        logger.debug("normalize.skipped", account_id=raw.account_id, reason="missing id")
        return None

    occurred_at = parse_provider_instant(payload.get("date_created"))
    if occurred_at is None:
        logger.debug(
            "normalize.skipped",
            account_id=raw.account_id,
            payment_id=payment_id,
            reason="missing or invalid date_created",
        )
        return None

    return NormalizedTransfer(
        account_id=raw.account_id,
        payment_id=payment_id,
        occurred_at=occurred_at,
        amount=normalize_amount(payload.get("transaction_amount")),
        status=_text(payload.get("status")),
        payment_type=_text(payload.get("payment_type_id")),
        raw_payload=json.dumps(payload, default=str, ensure_ascii=False),
    )
