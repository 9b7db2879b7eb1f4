"""Pytest fixtures for ordersub tests."""

import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from ordersub.approvals import ApprovalCoordinator
from ordersub.catalog import PlanCatalog
from ordersub.content import ContentProvider
from ordersub.engine import ConversationEngine
from ordersub.errors import GatewayError
from ordersub.json_store import JsonRecordStore
from ordersub.models import InboundEvent
from ordersub.order_store import OrderStore
from ordersub.query import Query
from ordersub.sequencer import OrderSequencer
from ordersub.session_store import SessionStore
from ordersub.sweep import ExpirySweep

NOW = datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)
ADMIN_CHAT = "-100500"
USER_CHAT = "42"

SEED = {
    "config": [
        {"key": "trial_allowed_once", "value": "Y"},
        {"key": "auto_deactivate_on_zero_days", "value": "Y"},
        {"key": "expire_warn_days", "value": "5"},
        {"key": "admin_group_id", "value": ADMIN_CHAT},
        {"key": "card_number", "value": "6037-1111-2222-3333"},
        {"key": "card_name", "value": "Test Holder"},
        {"key": "support_username", "value": "@help_desk"},
        {"key": "channel_url", "value": "https://t.me/test_channel"},
        {"key": "order_counter_start", "value": "1000"},
    ],
    "provinces": [{"name": "Tehran"}, {"name": "Fars"}, {"name": "Gilan"}],
    "plans_new": [
        {"id": "t3", "key": "trial_3", "plan_type": "Trial", "days": 3, "price": 0, "label": "Trial 3 days", "active": True},
        {"id": "m30", "key": "mobile_30", "plan_type": "Mobile", "days": 30, "price": 150000, "label": "Mobile 30 days", "active": True},
        {"id": "m90", "key": "mobile_90", "plan_type": "Mobile", "days": 90, "price": 400000, "label": "Mobile 90 days", "active": True},
        {"id": "l30", "key": "laptop_30", "plan_type": "Laptop", "days": 30, "price": 200000, "label": "Laptop 30 days", "active": False},
    ],
    "plans_renew": [
        {"id": "rm30", "key": "mobile_30", "plan_type": "Mobile", "days": 30, "price": 140000, "label": "Mobile renewal 30 days", "active": True},
    ],
}


class FakeGateway:
    """Records every call instead of talking to Telegram."""

    def __init__(self):
        self.sent: list[tuple[str, str, object]] = []
        self.edits: list[tuple[str, int, str]] = []
        self.answered: list[str] = []
        self.fail_chats: set[str] = set()
        self.file_urls: dict[str, str | None] = {}

    def send_message(self, chat_id, text, keyboard=None):
        if chat_id in self.fail_chats:
            raise GatewayError("sendMessage", "Forbidden: bot was blocked by the user")
        self.sent.append((chat_id, text, keyboard))
        return len(self.sent)

    def edit_message(self, chat_id, message_id, text):
        self.edits.append((chat_id, message_id, text))

    def get_file_url(self, file_id):
        return self.file_urls.get(file_id, f"https://files.test/{file_id}")

    def answer_callback(self, callback_id):
        self.answered.append(callback_id)

    def texts_to(self, chat_id: str) -> list[str]:
        return [text for chat, text, _ in self.sent if chat == chat_id]


def text(chat_id: str, body: str) -> InboundEvent:
    return InboundEvent(chat_id=chat_id, text=body)


def press(chat_id: str, data: str, message_id: int | None = None) -> InboundEvent:
    return InboundEvent(
        chat_id=chat_id, callback_data=data, callback_id=f"cb-{data}", message_id=message_id
    )


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store(temp_dir):
    """JsonRecordStore seeded with config, provinces and plans."""
    store = JsonRecordStore(temp_dir / "data")
    for collection, records in SEED.items():
        for record in records:
            store.create(collection, record)
    return store


@pytest.fixture
def set_config(store):
    """Change a config record in the seeded store."""

    def _set(key: str, value: str) -> None:
        records = store.list("config", Query().eq("key", key))
        if records:
            store.update("config", records[0]["id"], {"value": value})
        else:
            store.create("config", {"key": key, "value": value})

    return _set


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def content(store):
    return ContentProvider(store)


@pytest.fixture
def orders(store, content):
    return OrderStore(store, OrderSequencer(store, content))


@pytest.fixture
def sessions():
    return SessionStore()


@pytest.fixture
def approvals(content, orders, clock):
    return ApprovalCoordinator(content, orders, clock=clock)


@pytest.fixture
def engine(store, content, orders, sessions, approvals, gateway, clock):
    return ConversationEngine(
        content=content,
        catalog=PlanCatalog(store),
        orders=orders,
        sessions=sessions,
        approvals=approvals,
        gateway=gateway,
        clock=clock,
    )


@pytest.fixture
def sweep(content, orders, gateway, clock):
    return ExpirySweep(content, orders, gateway, clock=clock)


@pytest.fixture
def at_plan_step(engine):
    """Drive a user through the signup form up to plan selection."""

    def _fill(chat_id: str = USER_CHAT) -> None:
        labels = engine.content.labels()
        for body in (
            labels["label_start"],
            "Sara Ahmadi",
            "Acme Ltd",
            "09123456789",
            "Tehran",
            "sara.ahmadi@gmail.com",
        ):
            engine.handle(text(chat_id, body))

    return _fill
