"""
Integration tests for the HTTP API.

Runs the aiohttp application in-process against the test database.
"""

from decimal import Decimal

import pytest
from aiohttp import test_utils

from mlm_api.app import create_app
from mlm_ledger import __version__
from mlm_ledger.config.business_constants import AccountRole, LedgerEntryType, OrderStatus
from mlm_ledger.models import Account, Order
from mlm_ledger.repositories.ledger_repository import LedgerRepository
from mlm_ledger.utils.security import sign_token


SECRET = "api-test-secret-key-with-32-bytes!"


def auth(account_id: int) -> dict[str, str]:
    return {"Authorization": f"Bearer {sign_token(account_id, SECRET)}"}


@pytest.fixture
async def client(session_maker):
    """Test client for an app bound to the test database."""
    app = create_app(session_maker=session_maker, secret_key=SECRET)
    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        yield client


@pytest.fixture
async def admin(make_account):
    account = await make_account("admin", role=AccountRole.ADMIN)
    return account.id


@pytest.fixture
async def member(make_account):
    account = await make_account(
        "member", sponsor="admin", personal_points=60, group_points=10, balance=28000
    )
    return account.id


class TestHealthAndAuth:

    @pytest.mark.asyncio
    async def test_health_is_public(self, client):
        resp = await client.get("/health")

        assert resp.status == 200
        data = await resp.json()
        assert data == {"status": "healthy", "database": True, "version": __version__}

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        resp = await client.post("/api/orders/confirm", json={"orderId": 1})

        assert resp.status == 401
        data = await resp.json()
        assert data["success"] is False
        assert data["code"] == "unauthenticated"

    @pytest.mark.asyncio
    async def test_forged_token(self, client, admin):
        headers = {"Authorization": f"Bearer {admin}.9999999999.deadbeef"}

        resp = await client.post("/api/orders/confirm", json={"orderId": 1}, headers=headers)

        assert resp.status == 401

    @pytest.mark.asyncio
    async def test_token_for_deleted_account(self, client):
        resp = await client.post("/api/orders/confirm", json={"orderId": 1}, headers=auth(999))

        assert resp.status == 401

    @pytest.mark.asyncio
    async def test_admin_only_endpoint(self, client, member):
        resp = await client.post(
            "/api/orders/confirm", json={"orderId": 1}, headers=auth(member)
        )

        assert resp.status == 403
        assert (await resp.json())["code"] == "forbidden"


class TestOrderEndpoints:

    @pytest.mark.asyncio
    async def test_confirm_with_quick_start(
        self, client, admin, chain, make_account, make_order, reload
    ):
        s1_id = chain["s1"].id
        buyer = await make_account("buyer", sponsor="s1")
        order = await make_order(buyer, 50)
        order_id = order.id

        resp = await client.post(
            "/api/orders/confirm",
            json={"orderId": order_id, "action": "confirm"},
            headers=auth(admin),
        )

        assert resp.status == 200
        data = await resp.json()
        assert data["success"] is True
        assert data["message"] == "Orden confirmada con Quick Start"
        assert data["quickStartApplied"] is True
        assert data["levelsPaid"] == 5
        assert data["totalAmountDistributed"] == 70000.0
        assert (await reload(Account, s1_id)).balance == Decimal("58800")

        again = await client.post(
            "/api/orders/confirm", json={"orderId": str(order_id)}, headers=auth(admin)
        )
        assert again.status == 409
        assert (await again.json())["code"] == "already_confirmed"

    @pytest.mark.asyncio
    async def test_reject(self, client, admin, make_account, make_order, reload):
        buyer = await make_account("buyer")
        order = await make_order(buyer, 10)
        order_id = order.id

        resp = await client.post(
            "/api/orders/confirm",
            json={"orderId": order_id, "action": "reject"},
            headers=auth(admin),
        )

        assert resp.status == 200
        data = await resp.json()
        assert data["message"] == "Orden rechazada"
        assert data["status"] == OrderStatus.REJECTED
        assert (await reload(Order, order_id)).status == OrderStatus.REJECTED

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"orderId": "abc"},
            {"orderId": True},
            {"orderId": 1, "action": "delete"},
        ],
    )
    async def test_invalid_payloads(self, client, admin, payload):
        resp = await client.post("/api/orders/confirm", json=payload, headers=auth(admin))

        assert resp.status == 400
        assert (await resp.json())["code"] == "invalid_request"

    @pytest.mark.asyncio
    async def test_malformed_json(self, client, admin):
        resp = await client.post(
            "/api/orders/confirm", data="{not json", headers=auth(admin)
        )

        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_unknown_order(self, client, admin):
        resp = await client.post(
            "/api/orders/confirm", json={"orderId": 12345}, headers=auth(admin)
        )

        assert resp.status == 404
        assert (await resp.json())["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_confirm_all_by_username(
        self, client, admin, chain, make_account, make_order, reload
    ):
        s1_id = chain["s1"].id
        buyer = await make_account("buyer", sponsor="s1")
        await make_order(buyer, 25)
        await make_order(buyer, 25)

        resp = await client.post(
            "/api/orders/confirm-all-quick-start",
            json={"buyerUid": "buyer"},
            headers=auth(admin),
        )

        assert resp.status == 200
        data = await resp.json()
        assert data["message"] == "2 ordenes confirmadas con Quick Start"
        assert data["packages"] == 1
        assert (await reload(Account, s1_id)).group_points == Decimal("21")

    @pytest.mark.asyncio
    async def test_confirm_all_unknown_buyer(self, client, admin):
        resp = await client.post(
            "/api/orders/confirm-all-quick-start",
            json={"buyerUid": "nobody"},
            headers=auth(admin),
        )

        assert resp.status == 404

    @pytest.mark.asyncio
    async def test_confirm_all_below_threshold(self, client, admin, chain, make_account, make_order):
        buyer = await make_account("buyer", sponsor="s1")
        await make_order(buyer, 30)

        resp = await client.post(
            "/api/orders/confirm-all-quick-start",
            json={"buyerId": buyer.id},
            headers=auth(admin),
        )

        assert resp.status == 400
        assert (await resp.json())["code"] == "insufficient_points"

    @pytest.mark.asyncio
    async def test_resume_of_complete_distribution(
        self, client, admin, chain, make_account, make_order
    ):
        buyer = await make_account("buyer", sponsor="s1")
        order = await make_order(buyer, 10)
        order_id = order.id
        await client.post("/api/orders/confirm", json={"orderId": order_id}, headers=auth(admin))

        resp = await client.post(
            "/api/orders/resume-distribution",
            json={"orderId": order_id},
            headers=auth(admin),
        )

        assert resp.status == 409
        data = await resp.json()
        assert data["code"] == "already_distributed"
        assert data["levels"] == [1, 2, 3, 4, 5]


class TestPurgeEndpoint:

    @pytest.mark.asyncio
    async def test_preview(self, client, admin):
        resp = await client.post(
            "/api/commissions/purge",
            json={"year": 2026, "month": 8, "mode": "preview"},
            headers=auth(admin),
        )

        assert resp.status == 200
        data = await resp.json()
        assert data["message"] == "Vista previa de purga"
        assert data["mode"] == "preview"
        assert data["executedBy"] == "admin"

    @pytest.mark.asyncio
    async def test_year_without_month(self, client, admin):
        resp = await client.post(
            "/api/commissions/purge", json={"year": 2026}, headers=auth(admin)
        )

        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_invalid_mode(self, client, admin):
        resp = await client.post(
            "/api/commissions/purge",
            json={"year": 2026, "month": 8, "mode": "everything"},
            headers=auth(admin),
        )

        assert resp.status == 400


class TestCoinEndpoint:

    @pytest.mark.asyncio
    async def test_earn_until_limit(self, client, member):
        first = await client.post(
            "/api/coins/monthly-limit",
            json={"action": "earn", "coins": 19000, "gameType": "memory", "level": 2},
            headers=auth(member),
        )
        assert first.status == 200
        assert (await first.json())["message"] == "Monedas registradas"

        second = await client.post(
            "/api/coins/monthly-limit",
            json={"action": "earn", "coins": 5000},
            headers=auth(member),
        )
        data = await second.json()
        assert data["message"] == "Limite mensual alcanzado"
        assert data["approved"] == 1000
        assert data["blocked"] is True

        status = await client.post(
            "/api/coins/monthly-limit", json={"action": "status"}, headers=auth(member)
        )
        assert (await status.json())["earned"] == 20000

    @pytest.mark.asyncio
    async def test_zero_coins_rejected(self, client, member):
        resp = await client.post(
            "/api/coins/monthly-limit",
            json={"action": "earn", "coins": 0},
            headers=auth(member),
        )

        assert resp.status == 400
        assert (await resp.json())["code"] == "invalid_request"

    @pytest.mark.asyncio
    async def test_unknown_action(self, client, member):
        resp = await client.post(
            "/api/coins/monthly-limit", json={"action": "spend"}, headers=auth(member)
        )

        assert resp.status == 400


class TestAccountEndpoints:

    @pytest.mark.asyncio
    async def test_recalculate_dry_run(self, client, admin, member, reload):
        resp = await client.post(
            "/api/accounts/recalculate",
            json={"accountId": member, "apply": False},
            headers=auth(admin),
        )

        assert resp.status == 200
        data = await resp.json()
        assert data["message"] == "Recalculo simulado"
        assert data["after"]["balance"] == 0.0
        assert (await reload(Account, member)).balance == Decimal("28000")

    @pytest.mark.asyncio
    async def test_recalculate_rejects_non_boolean_apply(self, client, admin, member):
        resp = await client.post(
            "/api/accounts/recalculate",
            json={"accountId": member, "apply": "yes"},
            headers=auth(admin),
        )

        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_activation_of_self(self, client, session, member):
        await LedgerRepository(session).append(
            member, LedgerEntryType.PURCHASE, "Compra confirmada", points=Decimal("10")
        )
        await session.commit()

        resp = await client.get(f"/api/accounts/{member}/activation", headers=auth(member))

        assert resp.status == 200
        data = await resp.json()
        assert data["message"] == "Cuenta activa"
        assert data["monthlyPoints"] == 10.0
        assert data["missingPoints"] == 0.0

    @pytest.mark.asyncio
    async def test_activation_of_past_month(self, client, admin, member):
        resp = await client.get(
            f"/api/accounts/{member}/activation",
            params={"year": "2020", "month": "1"},
            headers=auth(admin),
        )

        data = await resp.json()
        assert data["message"] == "Cuenta inactiva"
        assert data["missingPoints"] == 10.0

    @pytest.mark.asyncio
    async def test_activation_of_other_account_forbidden(self, client, admin, member):
        resp = await client.get(f"/api/accounts/{admin}/activation", headers=auth(member))

        assert resp.status == 403

    @pytest.mark.asyncio
    async def test_activation_invalid_month(self, client, member):
        resp = await client.get(
            f"/api/accounts/{member}/activation",
            params={"month": "13"},
            headers=auth(member),
        )

        assert resp.status == 400


class TestWithdrawalEndpoint:

    @pytest.mark.asyncio
    async def test_withdraw(self, client, member, reload):
        resp = await client.post(
            "/api/withdrawals", json={"amount": 28000}, headers=auth(member)
        )

        assert resp.status == 200
        data = await resp.json()
        assert data["message"] == "Cobro realizado"
        assert data["pointsUsed"] == 10.0
        account = await reload(Account, member)
        assert account.balance == Decimal("0")
        assert account.wallet_balance == Decimal("28000")

    @pytest.mark.asyncio
    async def test_non_numeric_amount(self, client, member):
        resp = await client.post(
            "/api/withdrawals", json={"amount": "lots"}, headers=auth(member)
        )

        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, client, member):
        resp = await client.post(
            "/api/withdrawals", json={"amount": 50000}, headers=auth(member)
        )

        assert resp.status == 400
        assert (await resp.json())["code"] == "insufficient_balance"
