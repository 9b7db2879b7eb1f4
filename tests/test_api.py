"""Tests for the FastAPI API."""

import pytest
from fastapi.testclient import TestClient

from ordersub.api import app, get_bot, get_settings
from ordersub.bot import OrderBot
from ordersub.catalog import PlanCatalog
from ordersub.errors import StoreError
from ordersub.models import Flow, FormData, OrderKind
from ordersub.settings import Settings

from .conftest import NOW, USER_CHAT

SECRET = "hook-secret"


@pytest.fixture
def bot(engine, sweep, gateway, orders):
    return OrderBot(engine, sweep, gateway, orders)


@pytest.fixture
def api_client(bot, temp_dir):
    """Create test client with the bot and settings overridden."""
    app.dependency_overrides[get_bot] = lambda: bot
    app.dependency_overrides[get_settings] = lambda: Settings(data_dir=temp_dir, webhook_secret=SECRET)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def two_orders(store, orders):
    catalog = PlanCatalog(store)
    form = FormData(full_name="Sara Ahmadi", email="sara@gmail.com")
    first = orders.create(USER_CHAT, form, catalog.require_plan(Flow.NEW, "m30"), OrderKind.NEW, NOW)
    orders.approve(first, NOW)
    orders.create("77", FormData(full_name="Reza Karimi"), catalog.require_plan(Flow.NEW, "m90"), OrderKind.NEW, NOW)


class TestHealthCheck:
    def test_liveness(self, api_client):
        response = api_client.get("/")
        assert response.status_code == 200
        assert response.text == "OK"

    def test_health(self, api_client):
        response = api_client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "pending_count": 0}


class TestWebhook:
    def test_update_is_processed_after_ack(self, api_client, gateway, content):
        response = api_client.post(
            "/webhook",
            json={"update_id": 1, "message": {"message_id": 1, "chat": {"id": 42}, "text": "/start"}},
            headers={"X-Telegram-Bot-Api-Secret-Token": SECRET},
        )

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert gateway.texts_to("42") == [content.message("welcome_start")]

    def test_wrong_secret_rejected(self, api_client, gateway):
        response = api_client.post(
            "/webhook",
            json={"update_id": 1, "message": {"chat": {"id": 42}, "text": "/start"}},
            headers={"X-Telegram-Bot-Api-Secret-Token": "guess"},
        )

        assert response.status_code == 403
        assert gateway.sent == []

    def test_missing_secret_rejected(self, api_client):
        response = api_client.post("/webhook", json={"update_id": 1})
        assert response.status_code == 403

    def test_no_secret_configured(self, api_client, temp_dir):
        app.dependency_overrides[get_settings] = lambda: Settings(data_dir=temp_dir)

        response = api_client.post("/webhook", json={"update_id": 1})

        assert response.status_code == 200

    def test_processing_failure_still_acks(self, api_client, engine, monkeypatch):
        def failing_handle(event):
            raise StoreError("list", "config", "timed out")

        monkeypatch.setattr(engine, "handle", failing_handle)

        response = api_client.post(
            "/webhook",
            json={"message": {"chat": {"id": 42}, "text": "hi"}},
            headers={"X-Telegram-Bot-Api-Secret-Token": SECRET},
        )

        assert response.status_code == 200


class TestCron:
    @pytest.mark.parametrize("method", ["GET", "POST"])
    def test_sweep_ok(self, api_client, method):
        response = api_client.request(method, "/cron/daily")
        assert response.status_code == 200
        assert response.text == "OK"

    def test_sweep_error(self, api_client, orders, monkeypatch):
        def failing_active_orders():
            raise StoreError("list", "registrations", "timed out")

        monkeypatch.setattr(orders, "active_orders", failing_active_orders)

        response = api_client.get("/cron/daily")

        assert response.status_code == 500
        assert response.text == "ERR"


class TestOrders:
    def test_list_orders(self, api_client, two_orders):
        response = api_client.get("/api/orders")

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert {o["order_id"] for o in data["orders"]} == {"N-1001", "N-1002"}

    def test_filter_by_status(self, api_client, two_orders):
        data = api_client.get("/api/orders", params={"status": "active"}).json()

        assert [o["order_id"] for o in data["orders"]] == ["N-1001"]
        assert data["orders"][0]["end_date"] == "2025-02-14"

    def test_filter_by_receipt_status_and_user(self, api_client, two_orders):
        data = api_client.get("/api/orders", params={"receipt_status": "Pending", "user_id": "77"}).json()

        assert [o["order_id"] for o in data["orders"]] == ["N-1002"]

    def test_invalid_status(self, api_client):
        response = api_client.get("/api/orders", params={"status": "deleted"})
        assert response.status_code == 422

    def test_get_order(self, api_client, two_orders):
        response = api_client.get("/api/orders/N-1001")

        assert response.status_code == 200
        data = response.json()
        assert data["full_name"] == "Sara Ahmadi"
        assert data["user_id"] == USER_CHAT
        assert data["plan_days"] == 30

    def test_get_unknown_order(self, api_client):
        response = api_client.get("/api/orders/N-9999")

        assert response.status_code == 404
        assert response.json()["error_type"] == "OrderNotFoundError"
