"""Repository exports."""

from .account_repository import AccountRepository
from .transfer_repository import TransferRepository
from .ack_repository import AckRepository
from .user_repository import UserRepository
from .manual_transfer_repository import ManualTransferRepository

__all__ = [
    "AccountRepository",
    "TransferRepository",
    "AckRepository",
    "UserRepository",
    "ManualTransferRepository",
]
