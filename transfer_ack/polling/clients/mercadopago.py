"""
MercadoPago payments search client.

Issues one ``v1/payments/search`` request per account and tick, newest first,
restricted to the poll window by ``date_created``.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import structlog

from transfer_ack.accounts.directory import ProviderAccount
from transfer_ack.polling.clients.base import (
    BaseProviderClient,
    ProviderError,
    ProviderResponseError,
    RawPayment,
)

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://api.mercadopago.com/"
SEARCH_PATH = "v1/payments/search"


def format_provider_instant(value: datetime) -> str:
    """
    Render an instant the way the search API expects it.

    Example: 2026-01-08T13:00:00.000Z
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class MercadoPagoClient(BaseProviderClient):
    """Provider client backed by httpx."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        page_size: int = 50,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API root, defaults to the public MercadoPago host
            timeout: Request timeout in seconds
            page_size: Results requested per search call
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        super().__init__(base_url or DEFAULT_BASE_URL, timeout, page_size)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,  # type: ignore[arg-type]
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def get_source_name(self) -> str:
        return "mercadopago"

    def build_params(self, window_start: datetime, window_end: datetime) -> Dict[str, Any]:
        return {
            "sort": "date_created",
            "criteria": "desc",
            "limit": self.page_size,
            "range": "date_created",
            "begin_date": format_provider_instant(window_start),
            "end_date": format_provider_instant(window_end),
        }

    async def search(
        self, account: ProviderAccount, window_start: datetime, window_end: datetime
    ) -> List[RawPayment]:
        try:
            response = await self._client.get(
                SEARCH_PATH,
                params=self.build_params(window_start, window_end),
                headers={"Authorization": f"Bearer {account.access_token}"},
            )
        except httpx.HTTPError as exc:
            raise ProviderError(None, f"{type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            raise ProviderError(response.status_code, response.text)

        try:
            body = response.json()
        except ValueError as exc:
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors
            raise ProviderResponseError(response.status_code, "body is not JSON") from exc

        results = body.get("results") if isinstance(body, dict) else None
        if not isinstance(results, list):
            raise ProviderResponseError(response.status_code, "missing results array")

        payments = [
            RawPayment(account_id=account.id, payload=item)
            for item in results
            if isinstance(item, dict)
        ]
        if len(payments) != len(results):
            logger.warning(
                "provider.non_object_results",
                account_id=account.id,
                dropped=len(results) - len(payments),
            )
        return payments

    async def aclose(self) -> None:
        await self._client.aclose()
