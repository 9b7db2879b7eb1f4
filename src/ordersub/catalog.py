"""Plan catalog lookups."""

from .errors import PlanNotFoundError
from .models import Flow, Plan, Tier
from .query import Query
from .record_store import RecordStore

PLAN_COLLECTIONS: dict[Flow, str] = {
    Flow.NEW: "plans_new",
    Flow.RENEW: "plans_renew",
}


class PlanCatalog:
    """Read-only view of the active plans, one collection per category."""

    def __init__(self, store: RecordStore):
        self.store = store

    def plans(self, category: Flow, tier: Tier) -> list[Plan]:
        """Active plans of a tier in a category, shortest duration first."""
        query = (
            Query()
            .eq("active", True)
            .eq("plan_type", tier.value)
            .order_by("days")
        )
        records = self.store.list(PLAN_COLLECTIONS[category], query)
        plans = [Plan.from_dict(r, category) for r in records]
        return sorted(plans, key=lambda p: p.days)

    def get_plan(self, category: Flow, plan_id: str) -> Plan | None:
        record = self.store.get(PLAN_COLLECTIONS[category], plan_id)
        if record is None:
            return None
        return Plan.from_dict(record, category)

    def require_plan(self, category: Flow, plan_id: str) -> Plan:
        """
        Get an active plan.

        Raises:
            PlanNotFoundError: If the plan doesn't exist or is inactive.
        """
        plan = self.get_plan(category, plan_id)
        if plan is None or not plan.active:
            raise PlanNotFoundError(plan_id, category.value)
        return plan
