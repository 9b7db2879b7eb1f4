"""Admin review of payment receipts."""

import logging
from datetime import datetime
from typing import Callable

from . import keyboards
from .content import ContentProvider
from .errors import OrderStateError
from .models import Decision, Order, Outbound, ReceiptStatus
from .order_store import OrderStore
from .utils import format_amount, format_timestamp, utc_now

logger = logging.getLogger(__name__)

DIGEST_LIMIT = 50
RECEIPT_PREVIEW_CHARS = 200

DIGEST_COMMANDS: dict[str, ReceiptStatus] = {
    "/pending": ReceiptStatus.PENDING,
    "/approved": ReceiptStatus.SUCCESSFUL,
    "/rejected": ReceiptStatus.FAILED,
}


class ApprovalCoordinator:
    """
    Routes receipts to the admin chat and applies admin decisions.

    Only the chat configured as ``admin_group_id`` can decide or list orders.
    Decisions are idempotent: a second decision on an order that is no
    longer pending leaves the order untouched.
    """

    def __init__(
        self,
        content: ContentProvider,
        orders: OrderStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.content = content
        self.orders = orders
        self.clock = clock

    def admin_chat_id(self) -> str:
        return self.content.config("admin_group_id")

    def is_admin(self, chat_id: str) -> bool:
        admin = self.admin_chat_id()
        return bool(admin) and chat_id == admin

    def review_request(self, order: Order) -> Outbound | None:
        """Build the admin notification for a newly submitted receipt."""
        admin = self.admin_chat_id()
        if not admin:
            logger.warning("No admin_group_id configured; receipt for %s not forwarded", order.order_id)
            return None

        header = self.content.message("admin_notify_new_receipt", full_name=order.form.full_name)
        lines = [
            header,
            f"Order: {order.order_id}",
            f"Plan: {order.plan_label}",
            f"Amount: {format_amount(order.amount)}",
            f"User: {order.user_id}",
            f"Phone: {order.form.phone}",
            f"Email: {order.form.email}",
            f"Previous paid orders: {order.paid_count}",
            f"Receipt: {order.receipt_url[:RECEIPT_PREVIEW_CHARS]}",
        ]
        labels = self.content.labels()
        return Outbound(admin, "\n".join(lines), keyboards.review_controls(order.order_id, labels))

    def decide(
        self,
        order_id: str,
        decision: Decision,
        chat_id: str,
        message_id: int | None = None,
    ) -> list[Outbound]:
        """
        Apply an admin decision to a pending order.

        Returns the edit of the admin's review message plus the notice to
        the user. Unknown orders produce no output; orders that were already
        decided only get the admin message updated.
        """
        order = self.orders.get(order_id)
        if order is None:
            logger.info("Decision on unknown order %s ignored", order_id)
            return []

        now = self.clock()
        try:
            if decision is Decision.APPROVE:
                order = self.orders.approve(order, now)
            else:
                order = self.orders.reject(order)
        except OrderStateError as e:
            logger.info("Decision not applied: %s", e)
            text = self.content.message(
                "admin_already_processed", order_id=order.order_id, status=order.status.value
            )
            return [Outbound(chat_id, text, edit_message_id=message_id)]

        stamp = now.strftime("%Y-%m-%d %H:%M UTC")
        if decision is Decision.APPROVE:
            logger.info("Order %s approved until %s", order.order_id, order.end_date)
            admin_text = self.content.message("admin_approved", order_id=order.order_id, timestamp=stamp)
            user_text = self.content.message("receipt_verified_user")
        else:
            logger.info("Order %s receipt rejected", order.order_id)
            admin_text = self.content.message("admin_rejected", order_id=order.order_id, timestamp=stamp)
            user_text = self.content.message(
                "receipt_rejected_user",
                support_username=self.content.config("support_username"),
            )

        return [
            Outbound(chat_id, admin_text, edit_message_id=message_id),
            Outbound(order.user_id, user_text),
        ]

    @staticmethod
    def command_name(text: str) -> str:
        """Strip arguments and any bot mention: ``/pending@bot x`` -> ``/pending``."""
        words = text.split()
        return words[0].split("@")[0] if words else ""

    def is_digest_command(self, text: str) -> bool:
        return self.command_name(text) in DIGEST_COMMANDS

    def handle_command(self, chat_id: str, text: str) -> list[Outbound]:
        receipt_status = DIGEST_COMMANDS.get(self.command_name(text))
        if receipt_status is None:
            return []
        return [Outbound(chat_id, self.digest(receipt_status))]

    def digest(self, receipt_status: ReceiptStatus, limit: int = DIGEST_LIMIT) -> str:
        """One line per order with the given receipt status, newest first."""
        orders = self.orders.find(receipt_status=receipt_status, limit=limit)
        if not orders:
            return self.content.message("admin_list_empty")
        return "\n".join(
            " — ".join(
                [
                    order.form.full_name,
                    order.order_id,
                    order.plan_label,
                    format_amount(order.amount),
                    format_timestamp(order.timestamp),
                ]
            )
            for order in orders
        )
