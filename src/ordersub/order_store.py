"""Order storage and lifecycle transitions."""

import logging
from datetime import datetime
from typing import Any

from .errors import OrderNotFoundError, OrderStateError
from .models import (
    FormData,
    Order,
    OrderKind,
    OrderStatus,
    Plan,
    ReceiptStatus,
    _utc_now,
)
from .query import Query
from .record_store import RecordStore, first
from .sequencer import OrderSequencer
from .utils import plus_days_ymd, ymd

logger = logging.getLogger(__name__)

ORDERS_COLLECTION = "registrations"


class OrderStore:
    """Manages order records in the ``registrations`` collection."""

    def __init__(self, store: RecordStore, sequencer: OrderSequencer):
        self.store = store
        self.sequencer = sequencer

    # --- Queries ---

    def get(self, order_id: str) -> Order | None:
        record = first(self.store, ORDERS_COLLECTION, Query().eq("order_id", order_id))
        return Order.from_dict(record) if record else None

    def require(self, order_id: str) -> Order:
        """
        Get an order by order ID.

        Raises:
            OrderNotFoundError: If the order doesn't exist.
        """
        order = self.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def find(
        self,
        user_id: str | None = None,
        status: OrderStatus | None = None,
        receipt_status: ReceiptStatus | None = None,
        limit: int | None = None,
    ) -> list[Order]:
        """List orders newest first, optionally filtered."""
        query = Query().order_by("-timestamp")
        if user_id is not None:
            query = query.eq("chat_id", user_id)
        if status is not None:
            query = query.eq("status", status.value)
        if receipt_status is not None:
            query = query.eq("receipt_status", receipt_status.value)
        if limit is not None:
            query = query.take(limit)
        return [Order.from_dict(r) for r in self.store.list(ORDERS_COLLECTION, query)]

    def trial_used(self, user_id: str) -> bool:
        query = Query().eq("chat_id", user_id).eq("kind", OrderKind.TRIAL.value)
        return first(self.store, ORDERS_COLLECTION, query) is not None

    def paid_order_count(self, user_id: str) -> int:
        query = Query().eq("chat_id", user_id).where("kind", "!=", OrderKind.TRIAL.value)
        return len(self.store.list(ORDERS_COLLECTION, query))

    def latest(self, user_id: str) -> Order | None:
        orders = self.find(user_id=user_id, limit=1)
        return orders[0] if orders else None

    def latest_active(self, user_id: str) -> Order | None:
        orders = self.find(user_id=user_id, status=OrderStatus.ACTIVE, limit=1)
        return orders[0] if orders else None

    def active_orders(self) -> list[Order]:
        return self.find(status=OrderStatus.ACTIVE)

    # --- Writes ---

    def create(
        self,
        user_id: str,
        form: FormData,
        plan: Plan,
        kind: OrderKind,
        now: datetime,
    ) -> Order:
        """
        Create an order for a plan.

        Trials are auto-approved and start active; paid orders start pending
        until an admin reviews the receipt.

        Raises:
            UniqueConstraintError: If the user already has a trial order.
        """
        paid_count = 0 if kind is OrderKind.TRIAL else self.paid_order_count(user_id)
        order_id = self.sequencer.next(kind)
        timestamp = _utc_now()

        order = Order(
            id="",
            order_id=order_id,
            user_id=user_id,
            kind=kind,
            form=form,
            plan_key=plan.key,
            plan_label=plan.label,
            plan_days=plan.days,
            amount=plan.price,
            paid_count=paid_count,
            timestamp=timestamp,
            last_update=timestamp,
        )
        if kind is OrderKind.TRIAL:
            order.status = OrderStatus.ACTIVE
            order.receipt_status = ReceiptStatus.SUCCESSFUL
            order.start_date = ymd(now)
            order.end_date = plus_days_ymd(now, plan.days)
            order.days_left = plan.days

        record = self.store.create(ORDERS_COLLECTION, order.to_dict())
        logger.info("Created order %s (%s) for user %s", order_id, plan.key, user_id)
        return Order.from_dict(record)

    def patch(self, order: Order, fields: dict[str, Any]) -> Order:
        """Write only the given fields of an order."""
        fields = {**fields, "last_update": _utc_now()}
        record = self.store.update(ORDERS_COLLECTION, order.id, fields)
        return Order.from_dict(record)

    def attach_receipt(self, order: Order, receipt_url: str) -> Order:
        return self.patch(
            order,
            {"receipt_url": receipt_url, "receipt_status": ReceiptStatus.PENDING.value},
        )

    def approve(self, order: Order, now: datetime) -> Order:
        """
        Activate a pending order for the duration of its plan.

        Raises:
            OrderStateError: If the order isn't pending or has no plan duration.
        """
        if order.status is not OrderStatus.PENDING:
            raise OrderStateError(order.order_id, f"cannot approve a {order.status.value} order")
        if order.plan_days <= 0:
            raise OrderStateError(order.order_id, "plan duration is unknown")
        return self.patch(
            order,
            {
                "receipt_status": ReceiptStatus.SUCCESSFUL.value,
                "status": OrderStatus.ACTIVE.value,
                "start_date": ymd(now),
                "end_date": plus_days_ymd(now, order.plan_days),
                "days_left": order.plan_days,
                "warned": False,
            },
        )

    def reject(self, order: Order) -> Order:
        """
        Mark a pending order's receipt as failed. The order stays pending.

        Raises:
            OrderStateError: If the order isn't pending.
        """
        if order.status is not OrderStatus.PENDING:
            raise OrderStateError(order.order_id, f"cannot reject a {order.status.value} order")
        return self.patch(
            order,
            {"receipt_status": ReceiptStatus.FAILED.value, "status": OrderStatus.PENDING.value},
        )
