"""
Transfer poller CLI commands.

Provides a command-line interface for running a single poll, running the
poller continuously, and listing the accounts it would query.
"""

import asyncio
import sys
from typing import Optional

import structlog

from transfer_ack.core.config import get_settings
from transfer_ack.core.logging import configure_logging
from transfer_ack.polling.poller import TransferPoller, build_poller

logger = structlog.get_logger()


def print_result(result: dict):
    """Pretty print one poll result."""
    print("\nPoll completed!")
    print(f"Run ID: {result['run_id']}")
    print(f"Status: {result['status']}")
    if "accounts_processed" in result:
        print(f"Accounts: {result['accounts_processed']} ok, {result['accounts_failed']} failed")
        print(f"Seen: {result['events_seen']}")
        print(f"Inserted: {result['events_inserted']}")
        print(f"Duplicates: {result['events_duplicate']}")
        if result["events_skipped"]:
            print(f"Skipped: {result['events_skipped']}")
        print(f"Duration: {result['duration_seconds']:.2f}s")
    if result.get("error"):
        print(f"Error: {result['error']}")


def print_metrics(metrics: dict, hours: Optional[int] = None):
    """Pretty print metrics."""
    print("\n=== Transfer Poller Metrics ===")
    print(f"(Last {hours} hours)\n" if hours else "(All history)\n")

    agg = metrics["aggregate"]
    print(f"Total Runs: {agg['total_runs']}")
    print(f"Successful: {agg['successful_runs']}")
    print(f"Partial: {agg['partial_runs']}")
    print(f"Failed: {agg['failed_runs']}")
    print(f"Skipped: {agg['skipped_runs']}")
    print(f"Success Rate: {metrics['success_rate']:.1%}")
    print(f"\nEvents Seen: {agg['total_events_seen']}")
    print(f"Inserted: {agg['total_events_inserted']}")
    print(f"Duplicates: {agg['total_duplicates']}")
    print(f"Account Failures: {agg['total_account_failures']}")
    print()


async def poll_command(poller: TransferPoller) -> int:
    """Run a single poll manually."""
    print("Starting manual poll...")
    result = await poller.poll_once()
    print_result(result)
    return 0 if result["status"] in ("success", "skipped") else 1


async def accounts_command(poller: TransferPoller) -> int:
    """List the accounts the next tick would query."""
    accounts = await poller.directory.list_active_accounts()
    if not accounts:
        print("No active accounts with a configured token.")
        return 0
    for account in accounts:
        print(f"{account.id:>4}  {account.name}")
    return 0


async def run_command(poller: TransferPoller) -> int:
    """Run the poller until interrupted."""
    print("Starting transfer poller...")
    print(f"Poll interval: {poller.config.poll_interval_seconds} seconds")
    print(f"Lookback: {poller.config.lookback_minutes} minutes")
    print("Press Ctrl+C to stop\n")

    await poller.start()
    try:
        while poller.running:
            await asyncio.sleep(1)
    finally:
        await poller.stop()
        print_metrics(poller.get_metrics())
    return 0


async def _run(command: str) -> int:
    settings = get_settings()
    poller = build_poller(settings)
    try:
        if command == "poll":
            return await poll_command(poller)
        if command == "accounts":
            return await accounts_command(poller)
        return await run_command(poller)
    finally:
        await poller.client.aclose()


def main():
    """Main CLI entry point."""
    if len(sys.argv) < 2 or sys.argv[1] not in ("poll", "accounts", "run"):
        print("Usage: python -m transfer_ack.polling.cli <command>")
        print("\nCommands:")
        print("  poll       Run a single poll manually")
        print("  accounts   List the accounts the poller would query")
        print("  run        Run poller continuously")
        return 1

    command = sys.argv[1]
    configure_logging(get_settings().ENV)

    try:
        return asyncio.run(_run(command))
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130
    except Exception as e:
        print(f"Error: {str(e)}")
        logger.exception("cli_error", command=command)
        return 1


if __name__ == "__main__":
    sys.exit(main())
