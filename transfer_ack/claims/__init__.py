"""Claims: single-winner acknowledgment of transfers and the daily listings."""

from transfer_ack.claims.arbiter import AckArbiter, ClaimsConfig
from transfer_ack.claims.models import ClaimOutcome, ClaimResult

__all__ = ["AckArbiter", "ClaimsConfig", "ClaimOutcome", "ClaimResult"]
