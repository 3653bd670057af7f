"""
Transfer polling module.

Fetches payments for every active provider account over a sliding window,
normalizes them, and stores each one exactly once.
"""

from transfer_ack.polling.config import PollerConfig
from transfer_ack.polling.metrics import PollerMetrics, PollStatus
from transfer_ack.polling.poller import TransferPoller, build_poller

__all__ = [
    "PollerConfig",
    "PollerMetrics",
    "PollStatus",
    "TransferPoller",
    "build_poller",
]
