"""Wiring of the bot components and the update dispatcher."""

import logging
from typing import Any

from .approvals import ApprovalCoordinator
from .catalog import PlanCatalog
from .content import ContentProvider
from .engine import ConversationEngine
from .errors import GatewayError, OrdersubError, SettingsError
from .gateway import MessagingGateway, TelegramGateway
from .json_store import JsonRecordStore
from .models import Outbound
from .order_store import OrderStore
from .pocketbase_store import PocketBaseRecordStore
from .record_store import RecordStore
from .sequencer import OrderSequencer
from .session_store import SessionStore
from .settings import Settings
from .sweep import ExpirySweep, SweepReport
from .updates import parse_update

logger = logging.getLogger(__name__)


class OrderBot:
    """Feeds Telegram updates through the engine and delivers the replies."""

    def __init__(
        self,
        engine: ConversationEngine,
        sweep: ExpirySweep,
        gateway: MessagingGateway,
        orders: OrderStore,
    ):
        self.engine = engine
        self.sweep = sweep
        self.gateway = gateway
        self.orders = orders

    def process_update(self, update: dict[str, Any]) -> bool:
        """
        Handle one Telegram update end to end.

        Never raises: failures are logged and the update is dropped, so the
        webhook caller always gets its acknowledgement. Returns True when
        the update was handled.
        """
        event = parse_update(update)
        if event is None:
            logger.debug("Ignoring update %s", update.get("update_id"))
            return False

        if event.callback_id:
            try:
                self.gateway.answer_callback(event.callback_id)
            except GatewayError as e:
                logger.warning("Could not answer callback: %s", e)

        # Replies go out before the next update from the same chat is handled.
        with self.engine.sessions.lock(event.chat_id):
            try:
                replies = self.engine.handle(event)
            except OrdersubError as e:
                logger.warning("Update from chat %s dropped: %s", event.chat_id, e)
                return False
            except Exception:
                logger.exception("Unexpected error handling update from chat %s", event.chat_id)
                return False

            self.deliver(replies)
        return True

    def deliver(self, replies: list[Outbound]) -> int:
        """Send or edit each reply; returns how many were delivered."""
        delivered = 0
        for reply in replies:
            try:
                if reply.edit_message_id is not None:
                    self.gateway.edit_message(reply.chat_id, reply.edit_message_id, reply.text)
                else:
                    self.gateway.send_message(reply.chat_id, reply.text, reply.keyboard)
                delivered += 1
            except GatewayError as e:
                logger.warning("Delivery to chat %s failed: %s", reply.chat_id, e)
        return delivered

    def run_sweep(self) -> SweepReport:
        return self.sweep.run()


def build_store(settings: Settings) -> RecordStore:
    if settings.store == "pocketbase":
        return PocketBaseRecordStore(
            settings.pocketbase_url,
            admin_email=settings.pb_admin_email or None,
            admin_password=settings.pb_admin_password or None,
            timeout=settings.http_timeout,
            cache_ttl=settings.cache_ttl,
        )
    return JsonRecordStore(settings.data_dir)


def build_bot(
    settings: Settings,
    store: RecordStore | None = None,
    gateway: MessagingGateway | None = None,
) -> OrderBot:
    """
    Assemble an OrderBot from settings.

    Raises:
        SettingsError: If no Telegram token is configured and no gateway is given.
    """
    store = store if store is not None else build_store(settings)
    content = ContentProvider(store)

    if gateway is None:
        token = settings.telegram_token or content.config("telegram_token")
        if not token:
            raise SettingsError("TELEGRAM_TOKEN", "not set and no telegram_token config record")
        gateway = TelegramGateway(token, timeout=settings.http_timeout)

    orders = OrderStore(store, OrderSequencer(store, content))
    approvals = ApprovalCoordinator(content, orders)
    engine = ConversationEngine(
        content=content,
        catalog=PlanCatalog(store),
        orders=orders,
        sessions=SessionStore(ttl=settings.session_ttl),
        approvals=approvals,
        gateway=gateway,
    )
    sweep = ExpirySweep(content, orders, gateway)
    logger.info("Bot assembled with %s store", settings.store)
    return OrderBot(engine, sweep, gateway, orders)
