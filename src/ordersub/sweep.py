"""Daily expiry sweep over active orders."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from .content import ContentProvider
from .gateway import MessagingGateway
from .models import Order, OrderStatus
from .order_store import OrderStore
from .utils import days_left, utc_now

logger = logging.getLogger(__name__)

DEFAULT_WARN_DAYS = 5


@dataclass
class SweepReport:
    """Counts for one sweep run."""

    checked: int = 0
    updated: int = 0
    warned: int = 0
    expired: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "checked": self.checked,
            "updated": self.updated,
            "warned": self.warned,
            "expired": self.expired,
            "failed": self.failed,
            "errors": list(self.errors),
        }


class ExpirySweep:
    """
    Recomputes ``days_left`` for every active order.

    Sends the expiry warning once per order, when exactly ``expire_warn_days``
    days remain, and deactivates orders that reach zero days when
    ``auto_deactivate_on_zero_days`` is enabled. A failure on one order is
    logged and counted; the rest of the batch still runs.
    """

    def __init__(
        self,
        content: ContentProvider,
        orders: OrderStore,
        gateway: MessagingGateway,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.content = content
        self.orders = orders
        self.gateway = gateway
        self.clock = clock

    def run(self, now: datetime | None = None) -> SweepReport:
        """
        Run one sweep.

        Raises:
            StoreError: If the active orders can't be listed.
        """
        now = now or self.clock()
        warn_days = self.content.config_int("expire_warn_days", DEFAULT_WARN_DAYS)
        auto_deactivate = self.content.flag("auto_deactivate_on_zero_days")

        report = SweepReport()
        for order in self.orders.active_orders():
            report.checked += 1
            try:
                self._sweep_order(order, now, warn_days, auto_deactivate, report)
            except Exception as e:
                logger.exception("Sweep failed for order %s", order.order_id)
                report.failed += 1
                report.errors.append(f"{order.order_id}: {e}")

        logger.info(
            "Sweep done: %d checked, %d updated, %d warned, %d expired, %d failed",
            report.checked,
            report.updated,
            report.warned,
            report.expired,
            report.failed,
        )
        return report

    def _sweep_order(
        self,
        order: Order,
        now: datetime,
        warn_days: int,
        auto_deactivate: bool,
        report: SweepReport,
    ) -> None:
        if not order.end_date:
            logger.warning("Active order %s has no end date", order.order_id)
            return

        left = days_left(order.end_date, now)
        patch: dict[str, Any] = {}
        if left != order.days_left:
            patch["days_left"] = left

        # Notify before persisting so a failed send is retried on the next run.
        if left == warn_days and not order.warned:
            text = self.content.message(
                "expire_warning_template",
                full_name=order.form.full_name,
                plan_label=order.plan_label,
                warn_days_left=warn_days,
            )
            self.gateway.send_message(order.user_id, text)
            patch["warned"] = True
            report.warned += 1

        if left <= 0 and auto_deactivate:
            self.gateway.send_message(order.user_id, self.content.message("auto_deactivated_on_zero"))
            patch["status"] = OrderStatus.EXPIRED.value
            report.expired += 1

        if patch:
            self.orders.patch(order, patch)
            report.updated += 1
