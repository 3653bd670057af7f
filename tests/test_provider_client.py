"""Tests for the MercadoPago search client against a mocked transport."""

from datetime import datetime, timezone

import httpx
import pytest

from transfer_ack.accounts.directory import ProviderAccount
from transfer_ack.core.config import Settings
from transfer_ack.polling.clients import (
    MercadoPagoClient,
    MockProviderClient,
    ProviderError,
    ProviderResponseError,
    create_provider_client,
)
from transfer_ack.polling.clients.mercadopago import format_provider_instant

ACCOUNT = ProviderAccount(id=7, name="Banfield", access_token="APP_USR-secret")
START = datetime(2026, 1, 8, 12, 0, tzinfo=timezone.utc)
END = datetime(2026, 1, 8, 13, 0, 0, 250000, tzinfo=timezone.utc)


def client_for(handler, page_size: int = 50) -> MercadoPagoClient:
    return MercadoPagoClient(
        base_url="https://provider.test/",
        page_size=page_size,
        transport=httpx.MockTransport(handler),
    )


def test_format_provider_instant():
    assert format_provider_instant(END) == "2026-01-08T13:00:00.250Z"
    assert format_provider_instant(datetime(2026, 1, 8, 13, 0)) == "2026-01-08T13:00:00.000Z"


@pytest.mark.asyncio
async def test_search_request_shape():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(
            200,
            json={
                "results": [
                    {"id": 139322351059, "date_created": "2026-01-08T09:59:00.000-03:00"},
                    "garbage",
                ]
            },
        )

    client = client_for(handler, page_size=25)
    try:
        payments = await client.search(ACCOUNT, START, END)
    finally:
        await client.aclose()

    assert seen["path"] == "/v1/payments/search"
    assert seen["auth"] == "Bearer APP_USR-secret"
    assert seen["params"] == {
        "sort": "date_created",
        "criteria": "desc",
        "limit": "25",
        "range": "date_created",
        "begin_date": "2026-01-08T12:00:00.000Z",
        "end_date": "2026-01-08T13:00:00.250Z",
    }
    # non-object elements are dropped
    assert len(payments) == 1
    assert payments[0].account_id == 7
    assert payments[0].payload["id"] == 139322351059


@pytest.mark.asyncio
async def test_non_success_status_raises():
    client = client_for(lambda request: httpx.Response(401, text="invalid token"))
    try:
        with pytest.raises(ProviderError) as exc_info:
            await client.search(ACCOUNT, START, END)
    finally:
        await client.aclose()

    assert exc_info.value.status_code == 401
    assert "invalid token" in exc_info.value.body


@pytest.mark.asyncio
async def test_missing_results_raises():
    client = client_for(lambda request: httpx.Response(200, json={"paging": {}}))
    try:
        with pytest.raises(ProviderResponseError):
            await client.search(ACCOUNT, START, END)
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_non_json_body_raises():
    client = client_for(lambda request: httpx.Response(200, text="<html>"))
    try:
        with pytest.raises(ProviderResponseError):
            await client.search(ACCOUNT, START, END)
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_undecodable_body_raises():
    client = client_for(
        lambda request: httpx.Response(200, content=b'{"results": [\xff]}')
    )
    try:
        with pytest.raises(ProviderResponseError):
            await client.search(ACCOUNT, START, END)
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_transport_error_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = client_for(handler)
    try:
        with pytest.raises(ProviderError) as exc_info:
            await client.search(ACCOUNT, START, END)
    finally:
        await client.aclose()

    assert exc_info.value.status_code is None


def test_token_not_in_account_repr():
    assert "APP_USR-secret" not in repr(ACCOUNT)


def test_create_provider_client():
    assert isinstance(
        create_provider_client(Settings(PROVIDER_CLIENT="mock")), MockProviderClient
    )
    client = create_provider_client(
        Settings(PROVIDER_CLIENT="mercadopago", PROVIDER_PAGE_SIZE=10)
    )
    assert isinstance(client, MercadoPagoClient)
    assert client.page_size == 10
