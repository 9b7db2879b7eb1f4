"""Inline button callback tokens.

Grammar::

    back_main
    back_step
    cat:{category}:{tier}
    plan:{category}:{plan_id}
    admin_approve:{order_id}
    admin_reject:{order_id}
"""

from dataclasses import dataclass

from .errors import InvalidCallbackError
from .models import Decision, Flow, Tier

BACK_MAIN = "back_main"
BACK_STEP = "back_step"


@dataclass(frozen=True)
class BackMain:
    pass


@dataclass(frozen=True)
class BackStep:
    pass


@dataclass(frozen=True)
class ChooseTier:
    category: Flow
    tier: Tier


@dataclass(frozen=True)
class ChoosePlan:
    category: Flow
    plan_id: str


@dataclass(frozen=True)
class AdminDecision:
    decision: Decision
    order_id: str


Callback = BackMain | BackStep | ChooseTier | ChoosePlan | AdminDecision


def parse_callback(data: str) -> Callback:
    """
    Parse a callback token.

    Raises:
        InvalidCallbackError: If the token doesn't match the grammar.
    """
    if data == BACK_MAIN:
        return BackMain()
    if data == BACK_STEP:
        return BackStep()

    head, _, rest = data.partition(":")
    try:
        if head == "cat":
            category, tier = rest.split(":")
            return ChooseTier(Flow(category), Tier(tier))
        if head == "plan":
            category, plan_id = rest.split(":", 1)
            if plan_id:
                return ChoosePlan(Flow(category), plan_id)
        if head in ("admin_approve", "admin_reject") and rest:
            decision = Decision.APPROVE if head == "admin_approve" else Decision.REJECT
            return AdminDecision(decision, rest)
    except ValueError:
        pass
    raise InvalidCallbackError(data)


def tier_token(category: Flow, tier: Tier) -> str:
    return f"cat:{category.value}:{tier.value}"


def plan_token(category: Flow, plan_id: str) -> str:
    return f"plan:{category.value}:{plan_id}"


def admin_token(decision: Decision, order_id: str) -> str:
    return f"admin_{decision.value}:{order_id}"
