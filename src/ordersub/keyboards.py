"""Keyboard builders. Button texts come from the UI label map."""

from .callbacks import BACK_MAIN, BACK_STEP, admin_token, plan_token, tier_token
from .models import (
    PAID_TIERS,
    Decision,
    Flow,
    InlineButton,
    InlineKeyboard,
    Plan,
    ReplyKeyboard,
    Tier,
)


def main_menu(labels: dict[str, str]) -> ReplyKeyboard:
    return ReplyKeyboard(
        rows=[
            [labels["label_start"]],
            [labels["label_info"], labels["label_status"]],
            [labels["label_about"]],
            [labels["label_channel"], labels["label_support"]],
            [labels["label_renew"]],
        ]
    )


def back_main_button(labels: dict[str, str]) -> InlineButton:
    return InlineButton(labels["label_back_main"], BACK_MAIN)


def step_back_menu(labels: dict[str, str]) -> InlineKeyboard:
    return InlineKeyboard(
        rows=[
            [InlineButton(labels["label_back_step"], BACK_STEP)],
            [back_main_button(labels)],
        ]
    )


def province_keyboard(provinces: list[str], labels: dict[str, str]) -> ReplyKeyboard:
    rows = [[name] for name in provinces]
    rows.append([labels["label_back_main"]])
    return ReplyKeyboard(rows=rows)


def tier_choices(flow: Flow, labels: dict[str, str], trial_eligible: bool) -> InlineKeyboard:
    """Plan types for a flow; renewals never offer the trial."""
    tiers: list[Tier] = []
    if flow is Flow.NEW and trial_eligible:
        tiers.append(Tier.TRIAL)
    tiers.extend(PAID_TIERS)

    rows = [
        [InlineButton(labels.get(f"label_tier_{tier.value}", tier.value), tier_token(flow, tier))]
        for tier in tiers
    ]
    rows.append([back_main_button(labels)])
    return InlineKeyboard(rows=rows)


def plan_choices(plans: list[Plan], labels: dict[str, str]) -> InlineKeyboard:
    rows = [[InlineButton(plan.label, plan_token(plan.category, plan.id))] for plan in plans]
    rows.append([back_main_button(labels)])
    return InlineKeyboard(rows=rows)


def review_controls(order_id: str, labels: dict[str, str]) -> InlineKeyboard:
    return InlineKeyboard(
        rows=[
            [
                InlineButton(labels["label_approve"], admin_token(Decision.APPROVE, order_id)),
                InlineButton(labels["label_reject"], admin_token(Decision.REJECT, order_id)),
            ]
        ]
    )


def back_main_only(labels: dict[str, str]) -> InlineKeyboard:
    return InlineKeyboard(rows=[[back_main_button(labels)]])
