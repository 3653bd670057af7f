"""
Tests for transfer poller functionality.

Tests deduplication across ticks, per-account failure isolation, window
coverage after a failed tick, metrics collection and the polling loop.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional

import pytest
from pydantic import ValidationError

from transfer_ack.accounts.directory import AccountDirectory, ProviderAccount
from transfer_ack.core.errors import ConfigurationError
from transfer_ack.db.unit_of_work import UnitOfWork
from transfer_ack.polling.clients.base import BaseProviderClient, ProviderError, RawPayment
from transfer_ack.polling.clients.mock_client import MockProviderClient
from transfer_ack.polling.config import MIN_POLL_INTERVAL_SECONDS, PollerConfig
from transfer_ack.polling.metrics import PollStatus
from transfer_ack.polling.normalizer import (
    normalize_amount,
    normalize_payment,
    parse_provider_instant,
)
from transfer_ack.polling.poller import TransferPoller

from tests.factories import count_transfers, make_account

T0 = datetime(2026, 1, 8, 13, 0, tzinfo=timezone.utc)


def provider_payment(payment_id, occurred: datetime, amount=1500.0, **extra) -> dict:
    payload = {
        "id": payment_id,
        "date_created": occurred.astimezone(timezone(timedelta(hours=-3))).isoformat(
            timespec="milliseconds"
        ),
        "transaction_amount": amount,
        "status": "approved",
        "payment_type_id": "bank_transfer",
    }
    payload.update(extra)
    return payload


class ScriptedClient(BaseProviderClient):
    """
    Provider double serving fixed payments per account.

    Payments are filtered by the requested window like the real search, and
    accounts listed in ``failing`` raise a provider error.
    """

    def __init__(self, page_size: int = 50):
        super().__init__(page_size=page_size)
        self.payments: Dict[int, List[dict]] = {}
        self.failing: set = set()
        self.calls: List[tuple] = []

    def get_source_name(self) -> str:
        return "scripted"

    async def search(self, account, window_start, window_end):
        self.calls.append((account.id, window_start, window_end))
        if account.id in self.failing:
            raise ProviderError(503, "upstream unavailable")
        result = []
        for payload in self.payments.get(account.id, []):
            occurred = parse_provider_instant(payload.get("date_created"))
            if occurred is None or window_start <= occurred < window_end:
                result.append(RawPayment(account_id=account.id, payload=payload))
        return result[: self.page_size]


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int):
        self.now += timedelta(seconds=seconds)


def make_poller(test_db, client, clock: Optional[FakeClock] = None, **config) -> TransferPoller:
    settings = dict(poll_interval_seconds=10, lookback_minutes=5, enabled=True)
    settings.update(config)
    return TransferPoller(
        directory=AccountDirectory(session_factory=test_db),
        client=client,
        config=PollerConfig(**settings),
        session_factory=test_db,
        clock=clock or FakeClock(T0),
    )


class TestPollerConfig:
    """Tests for poller configuration rules."""

    def test_interval_is_floored(self):
        config = PollerConfig(poll_interval_seconds=1, lookback_minutes=5)
        assert config.poll_interval_seconds == MIN_POLL_INTERVAL_SECONDS

    def test_lookback_must_cover_three_intervals(self):
        with pytest.raises(ValidationError):
            PollerConfig(poll_interval_seconds=60, lookback_minutes=2)

        config = PollerConfig(poll_interval_seconds=60, lookback_minutes=3)
        assert config.get_lookback_timedelta() == timedelta(minutes=3)


class TestNormalizer:
    """Tests for provider element normalization."""

    def test_offset_timestamp_converted_to_utc(self):
        parsed = parse_provider_instant("2026-01-08T10:00:00.000-03:00")
        assert parsed == datetime(2026, 1, 8, 13, 0, tzinfo=timezone.utc)

    def test_naive_timestamp_taken_as_utc(self):
        parsed = parse_provider_instant("2026-01-08T13:00:00")
        assert parsed == datetime(2026, 1, 8, 13, 0, tzinfo=timezone.utc)

    def test_invalid_timestamps(self):
        assert parse_provider_instant("not a date") is None
        assert parse_provider_instant(None) is None
        assert parse_provider_instant("") is None

    def test_amounts(self):
        assert normalize_amount(1500) == Decimal("1500.00")
        assert normalize_amount(10.005) == Decimal("10.01")
        assert normalize_amount("1500") == Decimal("0.00")
        assert normalize_amount(None) == Decimal("0.00")
        assert normalize_amount(True) == Decimal("0.00")

    def test_out_of_range_amounts_become_zero(self):
        assert normalize_amount(1e30) == Decimal("0.00")
        assert normalize_amount(float("inf")) == Decimal("0.00")
        assert normalize_amount(float("nan")) == Decimal("0.00")
        assert normalize_amount(10**16) == Decimal("0.00")
        assert normalize_amount(9999999999999999) == Decimal("9999999999999999.00")

    def test_numeric_id_becomes_string(self):
        transfer = normalize_payment(
            RawPayment(account_id=7, payload=provider_payment(139322351059, T0))
        )
        assert transfer is not None
        assert transfer.payment_id == "139322351059"
        assert transfer.account_id == 7
        assert transfer.occurred_at == T0
        assert transfer.payment_type == "bank_transfer"

    def test_elements_without_id_or_date_are_skipped(self):
        no_id = provider_payment(None, T0)
        no_date = provider_payment(1, T0)
        no_date["date_created"] = None

        assert normalize_payment(RawPayment(account_id=1, payload=no_id)) is None
        assert normalize_payment(RawPayment(account_id=1, payload=no_date)) is None


class TestMockClient:
    """Tests for MockProviderClient."""

    @pytest.mark.asyncio
    async def test_results_inside_window(self):
        client = MockProviderClient(latency_ms=0, events_per_window=5)
        account = ProviderAccount(id=3, name="Lomas", access_token="x")
        end = datetime.now(timezone.utc)
        start = end - timedelta(minutes=60)

        payments = await client.search(account, start, end)

        assert len(payments) <= 5
        ids = [p.payload["id"] for p in payments]
        assert len(ids) == len(set(ids))
        for payment in payments:
            occurred = parse_provider_instant(payment.payload["date_created"])
            assert start <= occurred < end

    def test_ids_stable_per_slot(self):
        client = MockProviderClient(latency_ms=0)
        first = client._generate_payment(3, T0)
        second = client._generate_payment(3, T0)
        other = client._generate_payment(4, T0)

        assert first == second
        assert first["id"] != other["id"]

    @pytest.mark.asyncio
    async def test_failure_simulation(self):
        client = MockProviderClient(latency_ms=0, failure_rate=1.0)
        account = ProviderAccount(id=1, name="Banfield", access_token="x")

        with pytest.raises(ProviderError):
            await client.search(account, T0 - timedelta(minutes=5), T0)


class TestTransferPoller:
    """Tests for TransferPoller."""

    @pytest.mark.asyncio
    async def test_dedup_across_ticks(self, test_db):
        """The same payment returned on consecutive ticks is stored once."""
        account_id = await make_account(test_db, "Banfield")
        client = ScriptedClient()
        client.payments[account_id] = [
            provider_payment(139322351059, T0 - timedelta(minutes=1))
        ]
        clock = FakeClock(T0)
        poller = make_poller(test_db, client, clock)

        first = await poller.poll_once()
        clock.advance(10)
        second = await poller.poll_once()

        assert first["status"] == "success"
        assert first["events_inserted"] == 1
        assert second["events_inserted"] == 0
        assert second["events_duplicate"] == 1
        assert await count_transfers(test_db, payment_id="139322351059") == 1

    @pytest.mark.asyncio
    async def test_oversized_amount_does_not_block_account(self, test_db):
        """An amount too large to store is zeroed and the rest of the page lands."""
        account_id = await make_account(test_db, "Banfield")
        client = ScriptedClient()
        client.payments[account_id] = [
            provider_payment(1, T0 - timedelta(minutes=1), amount=1e30),
            provider_payment(2, T0 - timedelta(minutes=2)),
            provider_payment(3, T0 - timedelta(minutes=3)),
        ]
        poller = make_poller(test_db, client)

        result = await poller.poll_once()

        assert result["status"] == "success"
        assert result["events_inserted"] == 3
        assert await count_transfers(test_db, account_id=account_id) == 3
        async with UnitOfWork(session_factory=test_db) as uow:
            stored = await uow.transfers.get_by_payment_id("1", account_id=account_id)
        assert stored.amount == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_failed_account_does_not_block_others(self, test_db):
        broken = await make_account(test_db, "Banfield")
        healthy = await make_account(test_db, "Adrogue")
        client = ScriptedClient()
        client.failing.add(broken)
        client.payments[healthy] = [
            provider_payment(1001, T0 - timedelta(minutes=1)),
            provider_payment(1002, T0 - timedelta(minutes=2)),
        ]
        poller = make_poller(test_db, client)

        result = await poller.poll_once()

        assert result["status"] == "partial"
        assert result["accounts_failed"] == 1
        assert result["accounts_processed"] == 1
        assert await count_transfers(test_db, account_id=healthy) == 2
        assert await count_transfers(test_db, account_id=broken) == 0
        assert poller.metrics.get_last_run().failed_account_ids == [broken]
        assert poller.get_metrics()["aggregate"]["failing_account_ids"] == [broken]

    @pytest.mark.asyncio
    async def test_all_accounts_failing(self, test_db):
        account_id = await make_account(test_db, "Banfield")
        client = ScriptedClient()
        client.failing.add(account_id)
        poller = make_poller(test_db, client)

        result = await poller.poll_once()

        assert result["status"] == "failed"
        assert poller.metrics.get_last_run().errors

    @pytest.mark.asyncio
    async def test_payment_recovered_after_failed_tick(self, test_db):
        """A payment missed while the provider was down is picked up next tick."""
        account_id = await make_account(test_db, "Banfield")
        client = ScriptedClient()
        client.payments[account_id] = [provider_payment(42, T0 - timedelta(seconds=5))]
        client.failing.add(account_id)
        clock = FakeClock(T0)
        poller = make_poller(test_db, client, clock)

        assert (await poller.poll_once())["status"] == "failed"

        client.failing.clear()
        clock.advance(10)
        result = await poller.poll_once()

        assert result["events_inserted"] == 1
        _, window_start, window_end = client.calls[-1]
        assert window_end == T0 + timedelta(seconds=10)
        assert window_start <= T0 - timedelta(seconds=5)

    @pytest.mark.asyncio
    async def test_placeholder_accounts_skipped(self, test_db):
        await make_account(test_db, "Banfield", access_token="PENDING")
        client = ScriptedClient()
        poller = make_poller(test_db, client)

        result = await poller.poll_once()

        assert result["status"] == "skipped"
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_directory_failure(self, test_db):
        class BrokenDirectory(AccountDirectory):
            async def list_active_accounts(self):
                raise ConfigurationError("Account directory unavailable")

        poller = TransferPoller(
            directory=BrokenDirectory(),
            client=ScriptedClient(),
            config=PollerConfig(poll_interval_seconds=10, lookback_minutes=5),
            session_factory=test_db,
        )

        result = await poller.poll_once()

        assert result["status"] == "failed"
        assert "unavailable" in result["error"]

    @pytest.mark.asyncio
    async def test_refused_connection_fails_tick_cleanly(self):
        def refused():
            raise ConnectionRefusedError(111, "Connection refused")

        poller = TransferPoller(
            directory=AccountDirectory(session_factory=refused),
            client=ScriptedClient(),
            config=PollerConfig(poll_interval_seconds=10, lookback_minutes=5),
            session_factory=refused,
        )

        result = await poller.poll_once()

        assert result["status"] == "failed"
        assert "Connection refused" in result["error"]
        assert poller.metrics.get_current_run() is None

    @pytest.mark.asyncio
    async def test_malformed_elements_skipped(self, test_db):
        account_id = await make_account(test_db, "Banfield")
        bad = provider_payment(7, T0 - timedelta(minutes=1))
        bad["date_created"] = "yesterday"
        client = ScriptedClient()
        client.payments[account_id] = [
            bad,
            provider_payment(8, T0 - timedelta(minutes=1)),
        ]
        poller = make_poller(test_db, client)

        result = await poller.poll_once()

        assert result["events_seen"] == 2
        assert result["events_inserted"] == 1
        assert result["events_skipped"] == 1

    @pytest.mark.asyncio
    async def test_stored_fields(self, test_db):
        account_id = await make_account(test_db, "Banfield")
        client = ScriptedClient()
        client.payments[account_id] = [
            provider_payment(139322351059, T0 - timedelta(minutes=1), amount=2500.5)
        ]
        poller = make_poller(test_db, client)

        await poller.poll_once()

        async with UnitOfWork(session_factory=test_db) as uow:
            stored = await uow.transfers.get_by_payment_id("139322351059", account_id)

        assert stored.amount == Decimal("2500.50")
        assert stored.status == "approved"
        assert stored.payment_type == "bank_transfer"
        assert '"id": 139322351059' in stored.raw_payload

    @pytest.mark.asyncio
    async def test_status_and_metrics(self, test_db):
        account_id = await make_account(test_db, "Banfield")
        client = ScriptedClient()
        client.payments[account_id] = [provider_payment(1, T0 - timedelta(minutes=1))]
        poller = make_poller(test_db, client)

        await poller.poll_once()
        status = poller.get_status()
        metrics = poller.get_metrics()

        assert status["running"] is False
        assert status["last_run"]["status"] == "success"
        assert status["config"]["source"] == "scripted"
        assert metrics["aggregate"]["total_runs"] == 1
        assert metrics["aggregate"]["total_events_inserted"] == 1
        assert metrics["success_rate"] == 1.0

    @pytest.mark.asyncio
    async def test_start_and_stop(self, test_db):
        """The loop ticks on startup and stops cleanly."""
        await make_account(test_db, "Banfield")
        poller = make_poller(test_db, ScriptedClient())

        await poller.start()
        assert poller.running
        for _ in range(200):
            if poller.metrics.get_last_run() is not None:
                break
            await asyncio.sleep(0.01)
        await poller.stop()

        assert not poller.running
        assert poller.metrics.get_last_run().status == PollStatus.SUCCESS
