"""
Transfer poller service.

Periodically queries the payment provider for every active account over a
sliding look-back window and stores each payment exactly once.
"""

import asyncio
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from transfer_ack.accounts.directory import AccountDirectory, ProviderAccount
from transfer_ack.core.clock import utc_now
from transfer_ack.core.config import Settings
from transfer_ack.core.errors import ConfigurationError, StorageError
from transfer_ack.db.base import STORAGE_ERRORS
from transfer_ack.db.unit_of_work import UnitOfWork
from transfer_ack.polling.clients import BaseProviderClient, create_provider_client
from transfer_ack.polling.clients.base import ProviderError
from transfer_ack.polling.config import PollerConfig
from transfer_ack.polling.metrics import PollerMetrics, PollStatus
from transfer_ack.polling.normalizer import normalize_payment

logger = structlog.get_logger(__name__)


class TransferPoller:
    """
    Main transfer polling service.

    Ticks are serialized by a lock, so a manual trigger during a scheduled
    tick waits for it instead of overlapping. Accounts are processed one
    after another and a failure in one never affects the others.
    """

    def __init__(
        self,
        directory: AccountDirectory,
        client: BaseProviderClient,
        config: PollerConfig,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        session: Optional[AsyncSession] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Wire the poller to its collaborators; nothing runs until start().

        Args:
            directory: Source of the accounts to poll on each tick
            client: Provider API client
            config: Poller configuration
            session_factory: Factory for the per-account write transactions
            session: Shared session for every write, used by tests
            clock: Returns the current UTC instant
        """
        self.directory = directory
        self.client = client
        self.config = config
        self.metrics = PollerMetrics(history_size=config.history_size)
        self._session_factory = session_factory
        self._session = session
        self._clock = clock

        self._tick_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._last_poll_time: Optional[datetime] = None

        logger.info(
            "poller.initialized",
            client_type=self.client.get_source_name(),
            poll_interval_seconds=self.config.poll_interval_seconds,
            lookback_minutes=self.config.lookback_minutes,
            enabled=self.config.enabled,
        )

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self):
        """
        Start the polling loop in the background.

        The first tick runs immediately when run_on_startup is set.
        """
        if self.running:
            logger.warning("poller.already_running")
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._polling_loop(), name="transfer-poller")
        logger.info(
            "poller.started",
            interval_seconds=self.config.poll_interval_seconds,
            run_on_startup=self.config.run_on_startup,
        )

    async def stop(self):
        """
        Stop the polling loop.

        A tick in progress is allowed to finish; no tick is interrupted
        halfway through its writes.
        """
        if not self.running:
            logger.debug("poller.not_running")
            return

        logger.info("poller.stopping")
        self._stop_event.set()
        assert self._task is not None
        await self._task
        self._task = None
        logger.info("poller.stopped")

    async def _wait_for_stop(self) -> bool:
        """Sleep one interval; return True if stop was requested meanwhile."""
        try:
            await asyncio.wait_for(
                self._stop_event.wait(), timeout=self.config.poll_interval_seconds
            )
        except asyncio.TimeoutError:
            return False
        return True

    async def _polling_loop(self):
        """Tick once per interval until stop() is requested."""
        if not self.config.run_on_startup and await self._wait_for_stop():
            return

        while not self._stop_event.is_set():
            if self.config.enabled:
                try:
                    await self.poll_once()
                except Exception as e:
                    logger.error(
                        "poller.tick_crashed",
                        error=str(e),
                        error_type=type(e).__name__,
                        exc_info=True,
                    )
            else:
                logger.debug("poller.disabled_skip")

            if await self._wait_for_stop():
                break

    async def poll_once(self) -> Dict[str, Any]:
        """
        Execute a single polling run over every active account.

        Returns:
            Dictionary with the run id, status and counters
        """
        async with self._tick_lock:
            return await self._tick()

    async def _tick(self) -> Dict[str, Any]:
        run_id = self.metrics.start_run()
        logger.info("poll.started", run_id=run_id, source=self.client.get_source_name())

        try:
            accounts = await self.directory.list_active_accounts()
        except ConfigurationError as e:
            logger.error("poll.directory_unavailable", run_id=run_id, error=str(e))
            self.metrics.record_error(str(e))
            return self._finish(run_id, PollStatus.FAILED, error=str(e))

        if not accounts:
            logger.info("poll.no_active_accounts", run_id=run_id)
            return self._finish(run_id, PollStatus.SKIPPED)

        window_end = self._clock()
        window_start = window_end - self.config.get_lookback_timedelta()
        self.metrics.record_window(window_start, window_end)

        failed = 0
        for account in accounts:
            try:
                await self._poll_account(run_id, account, window_start, window_end)
            except ProviderError as e:
                failed += 1
                self.metrics.record_account_failure(account.id, str(e))
                logger.warning(
                    "poll.account_failed",
                    run_id=run_id,
                    account_id=account.id,
                    account=account.name,
                    reason="provider",
                    status_code=e.status_code,
                    error=str(e),
                )
            except StorageError as e:
                failed += 1
                self.metrics.record_account_failure(account.id, str(e))
                logger.error(
                    "poll.account_failed",
                    run_id=run_id,
                    account_id=account.id,
                    account=account.name,
                    reason="storage",
                    error=str(e),
                )
            except Exception as e:
                failed += 1
                self.metrics.record_account_failure(account.id, str(e))
                logger.error(
                    "poll.account_failed",
                    run_id=run_id,
                    account_id=account.id,
                    account=account.name,
                    reason="unexpected",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )

        if failed == 0:
            status = PollStatus.SUCCESS
        elif failed == len(accounts):
            status = PollStatus.FAILED
        else:
            status = PollStatus.PARTIAL
        return self._finish(run_id, status)

    async def _poll_account(
        self,
        run_id: str,
        account: ProviderAccount,
        window_start: datetime,
        window_end: datetime,
    ) -> None:
        """Fetch one account's page and store what is new, in one transaction."""
        api_start = time.perf_counter()
        try:
            payments = await self.client.search(account, window_start, window_end)
        finally:
            self.metrics.record_api_call(time.perf_counter() - api_start)

        if len(payments) >= self.client.page_size:
            # older events in the window may not have been returned
            logger.warning(
                "poll.page_full",
                run_id=run_id,
                account_id=account.id,
                page_size=self.client.page_size,
            )

        inserted = duplicate = skipped = 0
        try:
            async with UnitOfWork(
                session=self._session, session_factory=self._session_factory
            ) as uow:
                for payment in payments:
                    transfer = normalize_payment(payment)
                    if transfer is None:
                        skipped += 1
                        continue

                    new_id = await uow.transfers.add_if_new(**transfer.to_row())
                    if new_id is None:
                        duplicate += 1
                    else:
                        inserted += 1
                        logger.debug(
                            "poll.transfer_stored",
                            run_id=run_id,
                            account_id=account.id,
                            payment_id=transfer.payment_id,
                            transfer_id=new_id,
                        )

                await uow.commit()
        except STORAGE_ERRORS as e:
            raise StorageError(f"Failed to store transfers: {e}") from e

        self.metrics.record_account(
            seen=len(payments), inserted=inserted, duplicate=duplicate, skipped=skipped
        )
        logger.info(
            "poll.account_completed",
            run_id=run_id,
            account_id=account.id,
            seen=len(payments),
            inserted=inserted,
            duplicate=duplicate,
            skipped=skipped,
        )

    def _finish(
        self, run_id: str, status: PollStatus, error: Optional[str] = None
    ) -> Dict[str, Any]:
        run = self.metrics.end_run(status)
        self._last_poll_time = utc_now()

        result: Dict[str, Any] = {"run_id": run_id, "status": status.value}
        if run is not None:
            result.update(
                accounts_processed=run.accounts_processed,
                accounts_failed=run.accounts_failed,
                events_seen=run.events_seen,
                events_inserted=run.events_inserted,
                events_duplicate=run.events_duplicate,
                events_skipped=run.events_skipped,
                duration_seconds=run.duration_seconds,
            )
        if error:
            result["error"] = error

        log = logger.warning if status == PollStatus.FAILED else logger.info
        log("poll.completed", **result)
        return result

    def get_status(self) -> Dict[str, Any]:
        """
        Loop state, the open and last run, and the 24 hour aggregate.

        Returns:
            JSON-friendly dictionary for the status endpoint
        """
        current_run = self.metrics.get_current_run()
        last_run = self.metrics.get_last_run()
        aggregate = self.metrics.get_aggregate_metrics(hours=24)

        return {
            "running": self.running,
            "enabled": self.config.enabled,
            "last_poll_time": (
                self._last_poll_time.isoformat() if self._last_poll_time else None
            ),
            "current_run": current_run.to_dict() if current_run else None,
            "last_run": last_run.to_dict() if last_run else None,
            "metrics_24h": aggregate.to_dict(),
            "success_rate_24h": self.metrics.get_success_rate(hours=24),
            "config": {
                "poll_interval_seconds": self.config.poll_interval_seconds,
                "lookback_minutes": self.config.lookback_minutes,
                "page_size": self.config.page_size,
                "source": self.client.get_source_name(),
            },
        }

    def get_metrics(self, hours: Optional[int] = None) -> Dict[str, Any]:
        """
        Aggregate counters plus the ten most recent runs.

        Args:
            hours: Limit to last N hours (None = all history)
        """
        aggregate = self.metrics.get_aggregate_metrics(hours)
        return {
            "enabled": self.config.enabled,
            "aggregate": aggregate.to_dict(),
            "success_rate": self.metrics.get_success_rate(hours),
            "recent_runs": [r.to_dict() for r in self.metrics.get_history(limit=10)],
        }


def build_poller(
    settings: Settings,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    client: Optional[BaseProviderClient] = None,
) -> TransferPoller:
    """Wire a poller from settings: directory, provider client and config."""
    config = PollerConfig.from_settings(settings)
    directory = AccountDirectory(
        session_factory=session_factory, placeholders=settings.TOKEN_PLACEHOLDERS
    )
    return TransferPoller(
        directory=directory,
        client=client or create_provider_client(settings),
        config=config,
        session_factory=session_factory,
    )
