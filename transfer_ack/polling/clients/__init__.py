"""Payment provider client implementations."""

from typing import Optional

import httpx

from transfer_ack.core.config import Settings
from transfer_ack.polling.clients.base import (
    BaseProviderClient,
    ProviderError,
    ProviderResponseError,
    RawPayment,
)
from transfer_ack.polling.clients.mercadopago import MercadoPagoClient
from transfer_ack.polling.clients.mock_client import MockProviderClient


def create_provider_client(
    settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
) -> BaseProviderClient:
    """Build the client selected by PROVIDER_CLIENT."""
    if settings.PROVIDER_CLIENT == "mock":
        return MockProviderClient(page_size=settings.PROVIDER_PAGE_SIZE)
    return MercadoPagoClient(
        base_url=settings.PROVIDER_BASE_URL,
        timeout=settings.PROVIDER_TIMEOUT_SECONDS,
        page_size=settings.PROVIDER_PAGE_SIZE,
        transport=transport,
    )


__all__ = [
    "BaseProviderClient",
    "ProviderError",
    "ProviderResponseError",
    "RawPayment",
    "MercadoPagoClient",
    "MockProviderClient",
    "create_provider_client",
]
