"""Database models for the transfer acknowledgment service."""

from .account import Account
from .transfer import Transfer
from .transfer_ack import TransferAck
from .app_user import AppUser
from .manual_transfer import ManualTransfer

__all__ = ["Account", "Transfer", "TransferAck", "AppUser", "ManualTransfer"]
