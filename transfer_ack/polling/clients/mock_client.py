"""
Mock provider client for development.

Generates search results shaped like the provider's so the poller, dedup and
claim flow can be exercised without real credentials.
"""

import asyncio
import random
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from transfer_ack.accounts.directory import ProviderAccount
from transfer_ack.polling.clients.base import (
    BaseProviderClient,
    ProviderError,
    RawPayment,
)

PAYMENT_TYPES = ["bank_transfer", "account_money", "bank_transfer", "debit_card"]
STATUSES = ["approved", "approved", "approved", "pending", "rejected"]

# Provider timestamps carry the account's local offset
LOCAL_OFFSET = timezone(timedelta(hours=-3))


class MockProviderClient(BaseProviderClient):
    """
    Mock client returning synthetic payments inside the requested window.

    Ids are stable per (account, minute) slot, so repeated ticks over an
    overlapping window return the same payments again and exercise dedup.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        page_size: int = 50,
        failure_rate: float = 0.0,
        latency_ms: int = 100,
        events_per_window: int = 5,
    ):
        """
        Initialize mock client.

        Args:
            base_url: Ignored
            timeout: Ignored
            page_size: Maximum results per call
            failure_rate: Probability of a simulated failure (0.0 to 1.0)
            latency_ms: Simulated network latency in milliseconds
            events_per_window: Payments generated per call (capped by page_size)
        """
        super().__init__(base_url, timeout, page_size)
        self.failure_rate = failure_rate
        self.latency_ms = latency_ms
        self.events_per_window = events_per_window

    def get_source_name(self) -> str:
        return "mock"

    async def search(
        self, account: ProviderAccount, window_start: datetime, window_end: datetime
    ) -> List[RawPayment]:
        await self._simulate_latency()

        if random.random() < self.failure_rate:
            raise ProviderError(503, "Simulated provider failure")

        span_minutes = max(int((window_end - window_start).total_seconds() // 60), 1)
        count = min(self.events_per_window, self.page_size)
        slots = sorted(random.sample(range(span_minutes), min(count, span_minutes)))

        first_minute = window_start.replace(second=0, microsecond=0)
        if first_minute < window_start:
            first_minute += timedelta(minutes=1)

        payments = []
        for slot in slots:
            occurred = first_minute + timedelta(minutes=slot)
            if occurred >= window_end:
                continue
            payments.append(
                RawPayment(
                    account_id=account.id,
                    payload=self._generate_payment(account.id, occurred),
                )
            )

        payments.sort(key=lambda p: p.payload["date_created"], reverse=True)
        return payments

    def _generate_payment(self, account_id: int, occurred: datetime) -> dict:
        """Generate one provider-shaped payment element."""
        slot_id = int(occurred.timestamp() // 60)
        rng = random.Random(f"{account_id}-{slot_id}")
        local = occurred.astimezone(LOCAL_OFFSET)

        return {
            "id": int(f"{account_id}{slot_id:010d}"[-12:]),
            "date_created": local.isoformat(timespec="milliseconds"),
            "transaction_amount": round(rng.uniform(1000, 250000), 2),
            "status": rng.choice(STATUSES),
            "payment_type_id": rng.choice(PAYMENT_TYPES),
            "currency_id": "ARS",
        }

    async def _simulate_latency(self):
        """Simulate network latency."""
        if self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000.0)
