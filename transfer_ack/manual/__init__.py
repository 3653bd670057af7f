"""Manual transfers: payments recorded by operators and decided by an admin."""

from transfer_ack.manual.service import ManualTransferService

__all__ = ["ManualTransferService"]
