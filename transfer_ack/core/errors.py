"""Domain exceptions shared by the poller, the arbiter and the HTTP layer."""

from typing import Optional


class TransferAckError(Exception):
    """Base exception for the service."""

    pass


class ConfigurationError(TransferAckError):
    """Raised when the account directory is unreachable or malformed."""

    pass


class StorageError(TransferAckError):
    """Raised when the event store cannot complete an operation."""

    pass


class TransferNotFoundError(TransferAckError):
    """Raised when a claim references a transfer that does not exist."""

    def __init__(self, reference: str, account_id: Optional[int] = None):
        self.reference = reference
        self.account_id = account_id
        scope = f" for account {account_id}" if account_id is not None else ""
        super().__init__(f"Transfer {reference!r} not found{scope}")
