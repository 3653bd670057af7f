"""HTTP API tests: authentication, claims, listings and manual transfers."""

import httpx
import pytest
import pytest_asyncio

from transfer_ack.accounts.directory import AccountDirectory
from transfer_ack.claims.arbiter import ClaimsConfig
from transfer_ack.claims.router import get_claims_config
from transfer_ack.db.base import get_session_factory
from transfer_ack.main import app
from transfer_ack.polling.clients.mock_client import MockProviderClient
from transfer_ack.polling.config import PollerConfig
from transfer_ack.polling.poller import TransferPoller

from tests.factories import TEST_PASSWORD, make_account, make_transfer, make_user

ADMIN = ("admin", TEST_PASSWORD)
BANFIELD = ("Banfield", TEST_PASSWORD)
ADROGUE = ("Adrogue", TEST_PASSWORD)
LOMAS = ("Lomas", TEST_PASSWORD)


@pytest_asyncio.fixture
async def world(test_db):
    """Two accounts, an admin and three operators (Lomas unassigned)."""
    main = await make_account(test_db, "Banfield", access_token="APP_USR-1")
    second = await make_account(test_db, "Adrogue", access_token="APP_USR-2")
    await make_user(test_db, "admin", role="admin")
    await make_user(test_db, "Banfield", account_id=main)
    await make_user(test_db, "Adrogue", account_id=main)
    await make_user(test_db, "Lomas")
    return {"factory": test_db, "main": main, "second": second}


@pytest_asyncio.fixture
async def client(world):
    app.dependency_overrides[get_session_factory] = lambda: world["factory"]
    app.dependency_overrides[get_claims_config] = lambda: ClaimsConfig(
        pending_max_age_minutes=0
    )
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


class TestAuth:
    @pytest.mark.asyncio
    async def test_missing_credentials(self, client):
        response = await client.get("/api/transfers/pending")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Basic"

    @pytest.mark.asyncio
    async def test_wrong_password(self, client):
        response = await client.get("/api/transfers/pending", auth=("Banfield", "nope"))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_admin_routes_forbidden_for_operators(self, client):
        response = await client.get("/api/transfers/admin/operators", auth=BANFIELD)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_ping(self, client):
        response = await client.get("/api/transfers/ping", auth=BANFIELD)
        assert response.status_code == 200
        assert response.json()["user"] == "Banfield"

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.json() == {"status": "ok"}
        assert "x-request-id" in response.headers


class TestClaimRoutes:
    @pytest.mark.asyncio
    async def test_claim_then_conflict(self, client, world):
        transfer_id = await make_transfer(world["factory"], world["main"], "139322351059")

        won = await client.post(f"/api/transfers/{transfer_id}/ack", auth=BANFIELD)
        lost = await client.post(
            "/api/transfers/payment/139322351059/ack", auth=ADROGUE
        )
        again = await client.post(f"/api/transfers/{transfer_id}/ack", auth=BANFIELD)

        assert won.status_code == 200
        assert won.json()["outcome"] == "won"
        assert lost.status_code == 409
        assert lost.json()["owner"] == "Banfield"
        assert "Banfield" in lost.json()["message"]
        assert again.status_code == 200
        assert again.json()["outcome"] == "already_owned"

    @pytest.mark.asyncio
    async def test_claim_unknown_transfer(self, client):
        response = await client.post("/api/transfers/4242/ack", auth=BANFIELD)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_claim_on_other_account_not_found(self, client, world):
        transfer_id = await make_transfer(world["factory"], world["second"], "777")
        response = await client.post(f"/api/transfers/{transfer_id}/ack", auth=BANFIELD)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_operator_without_account(self, client):
        response = await client.get("/api/transfers/pending", auth=LOMAS)
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_pending_scoped_to_account(self, client, world):
        mine = await make_transfer(world["factory"], world["main"], "1")
        await make_transfer(world["factory"], world["second"], "2")

        response = await client.get("/api/transfers/pending?limit=500", auth=BANFIELD)

        body = response.json()
        assert response.status_code == 200
        assert body["account_id"] == world["main"]
        assert [i["id"] for i in body["items"]] == [mine]
        assert body["items"][0]["amount"] == 1500.0

    @pytest.mark.asyncio
    async def test_accepted_today(self, client, world):
        transfer_id = await make_transfer(world["factory"], world["main"], "1")
        await client.post(f"/api/transfers/{transfer_id}/ack", auth=BANFIELD)

        response = await client.get("/api/transfers/accepted/today", auth=BANFIELD)

        body = response.json()
        assert body["count"] == 1
        assert body["total"] == 1500.0
        assert body["items"][0]["accepted_by"] == "Banfield"
        assert body["items"][0]["account_name"] == "Banfield"

    @pytest.mark.asyncio
    async def test_bad_date(self, client):
        response = await client.get(
            "/api/transfers/accepted/by-day?date=08/01/2026", auth=BANFIELD
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_blank_date_is_bad_request(self, client):
        mine = await client.get("/api/transfers/accepted/by-day?date=%20", auth=BANFIELD)
        admin = await client.get(
            "/api/transfers/admin/accepted/by-day?date=%20", auth=ADMIN
        )
        assert mine.status_code == 400
        assert admin.status_code == 400

    @pytest.mark.asyncio
    async def test_admin_by_day(self, client, world):
        transfer_id = await make_transfer(world["factory"], world["main"], "1")
        await client.post(f"/api/transfers/{transfer_id}/ack", auth=ADROGUE)
        today = (await client.get("/api/transfers/accepted/today", auth=ADROGUE)).json()[
            "day"
        ]

        everyone = await client.get(
            f"/api/transfers/admin/accepted/by-day?date={today}", auth=ADMIN
        )
        filtered = await client.get(
            f"/api/transfers/admin/accepted/by-day?date={today}&operator=Banfield",
            auth=ADMIN,
        )

        assert everyone.json()["count"] == 1
        assert filtered.json()["count"] == 0


class TestAdminRoutes:
    @pytest.mark.asyncio
    async def test_operators_and_accounts(self, client, world):
        operators = await client.get("/api/transfers/admin/operators", auth=ADMIN)
        accounts = await client.get("/api/transfers/admin/accounts", auth=ADMIN)

        assert [o["username"] for o in operators.json()] == ["Adrogue", "Banfield", "Lomas"]
        assert [a["name"] for a in accounts.json()] == ["Banfield", "Adrogue"]

    @pytest.mark.asyncio
    async def test_assign_account(self, client, world):
        response = await client.post(
            "/api/transfers/admin/assign-account",
            json={"username": "Lomas", "account_id": world["second"]},
            auth=ADMIN,
        )
        assert response.status_code == 200

        me = await client.get("/api/transfers/me/account", auth=LOMAS)
        assert me.json()["name"] == "Adrogue"

    @pytest.mark.asyncio
    async def test_assign_unknown_user_or_account(self, client, world):
        unknown_user = await client.post(
            "/api/transfers/admin/assign-account",
            json={"username": "nobody", "account_id": world["main"]},
            auth=ADMIN,
        )
        unknown_account = await client.post(
            "/api/transfers/admin/assign-account",
            json={"username": "Lomas", "account_id": 999},
            auth=ADMIN,
        )
        assert unknown_user.status_code == 404
        assert unknown_account.status_code == 404


class TestManualRoutes:
    @pytest.mark.asyncio
    async def test_manual_flow(self, client):
        created = await client.post(
            "/api/transfers/manual",
            json={"payer_name": "Juan Perez", "amount": "2500"},
            auth=BANFIELD,
        )
        assert created.status_code == 200
        manual_id = created.json()["id"]
        assert created.json()["status"] == "pending_admin"

        pending = await client.get("/api/transfers/admin/manual/pending", auth=ADMIN)
        assert [m["id"] for m in pending.json()["items"]] == [manual_id]

        approved = await client.post(
            f"/api/transfers/admin/manual/{manual_id}/approve",
            json={"note": "checked"},
            auth=ADMIN,
        )
        twice = await client.post(
            f"/api/transfers/admin/manual/{manual_id}/reject", auth=ADMIN
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"
        assert approved.json()["admin_note"] == "checked"
        assert twice.status_code == 409

        mine = await client.get("/api/transfers/manual/mine/today", auth=BANFIELD)
        assert mine.json()["items"][0]["status"] == "approved"

        today = await client.get("/api/transfers/accepted/today", auth=BANFIELD)
        assert today.json()["items"][0]["payment_id"] == f"MANUAL-{manual_id}"
        assert today.json()["total"] == 2500.0

    @pytest.mark.asyncio
    async def test_manual_rejects_non_positive_amount(self, client):
        response = await client.post(
            "/api/transfers/manual",
            json={"payer_name": "Juan Perez", "amount": 0},
            auth=BANFIELD,
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_manual_decisions_are_admin_only(self, client):
        response = await client.post(
            "/api/transfers/admin/manual/1/approve", auth=BANFIELD
        )
        assert response.status_code == 403


class TestPollerRoutes:
    @pytest.mark.asyncio
    async def test_poller_not_configured(self, client):
        app.state.poller = None
        response = await client.get("/poller/status", auth=ADMIN)
        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_trigger_poll(self, client, world):
        app.state.poller = TransferPoller(
            directory=AccountDirectory(session_factory=world["factory"]),
            client=MockProviderClient(latency_ms=0),
            config=PollerConfig(poll_interval_seconds=10, lookback_minutes=60),
            session_factory=world["factory"],
        )
        try:
            triggered = await client.post("/poller/poll", auth=ADMIN)
            status = await client.get("/poller/status", auth=ADMIN)
            forbidden = await client.post("/poller/poll", auth=BANFIELD)
        finally:
            app.state.poller = None

        assert triggered.status_code == 200
        assert triggered.json()["status"] == "success"
        assert triggered.json()["details"]["data_source"] == "mock"
        assert status.json()["last_run"]["accounts_processed"] == 2
        assert forbidden.status_code == 403

