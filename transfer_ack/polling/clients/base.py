"""
Base provider client interface.

Defines the contract every payment provider integration implements: one
time-windowed search returning one page of raw payment elements.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from transfer_ack.accounts.directory import ProviderAccount


class RawPayment(BaseModel):
    """One provider result element before normalization."""

    account_id: int
    payload: Dict[str, Any]


class BaseProviderClient(ABC):
    """
    Abstract base class for payment provider clients.

    Implementations do not deduplicate and do not retry; the next poll tick
    re-queries the same window.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        page_size: int = 50,
    ):
        """
        Initialize the client.

        Args:
            base_url: Base URL for the API
            timeout: Request timeout in seconds
            page_size: Results requested per search call
        """
        self.base_url = base_url
        self.timeout = timeout
        self.page_size = page_size

    @abstractmethod
    async def search(
        self, account: ProviderAccount, window_start: datetime, window_end: datetime
    ) -> List[RawPayment]:
        """
        Fetch one page of payments created in [window_start, window_end).

        Args:
            account: Account whose credential authorizes the request
            window_start: Inclusive lower bound (UTC)
            window_end: Exclusive upper bound (UTC)

        Returns:
            Raw payment elements, newest first

        Raises:
            ProviderError: On transport failure or a non-2xx response
            ProviderResponseError: If the body is not the expected shape
        """
        pass

    @abstractmethod
    def get_source_name(self) -> str:
        """Source identifier (e.g. 'mercadopago', 'mock')."""
        pass

    async def aclose(self) -> None:
        """Release network resources held by the client."""
        return None


class ProviderError(Exception):
    """Raised when a provider request fails."""

    def __init__(self, status_code: Optional[int], body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Provider request failed (status={status_code}): {body[:200]}")


class ProviderResponseError(ProviderError):
    """Raised when the provider returns a body we cannot interpret."""

    pass
