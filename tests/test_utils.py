"""Tests for validators, rendering and date helpers."""

from datetime import datetime, timezone

import pytest

from ordersub.callbacks import (
    AdminDecision,
    BackMain,
    BackStep,
    ChoosePlan,
    ChooseTier,
    parse_callback,
    plan_token,
    tier_token,
)
from ordersub.errors import InvalidCallbackError
from ordersub.models import Decision, Flow, Tier
from ordersub.utils import (
    days_left,
    format_amount,
    format_timestamp,
    is_full_name,
    is_valid_email,
    is_valid_phone,
    plus_days_ymd,
    render,
)


class TestValidators:
    @pytest.mark.parametrize("phone", ["09123456789", "09000000000"])
    def test_valid_phone(self, phone):
        assert is_valid_phone(phone)

    @pytest.mark.parametrize("phone", ["0912345678", "091234567890", "19123456789", "0912345678a", "", "09۱۲۳۴۵۶۷۸۹"])
    def test_invalid_phone(self, phone):
        assert not is_valid_phone(phone)

    @pytest.mark.parametrize("email", ["sara@gmail.com", "sara.ahmadi+x@gmail.com"])
    def test_valid_email(self, email):
        assert is_valid_email(email)

    @pytest.mark.parametrize("email", ["sara@yahoo.com", "sara@gmail.co", "@gmail.com", "sara@gmail.com.evil"])
    def test_invalid_email(self, email):
        assert not is_valid_email(email)

    def test_full_name(self):
        assert is_full_name("Sara Ahmadi")
        assert not is_full_name("Sara")
        assert not is_full_name("  Sara  ")


class TestRender:
    def test_substitutes_fields(self):
        assert render("Hi {name}, {n} days", name="Sara", n=5) == "Hi Sara, 5 days"

    def test_unknown_placeholder_left_intact(self):
        assert render("Hi {name} {unknown}", name="Sara") == "Hi Sara {unknown}"

    def test_none_renders_empty(self):
        assert render("[{x}]", x=None) == "[]"


class TestDates:
    def test_days_left_ten(self):
        assert days_left("2025-01-25", datetime(2025, 1, 15, 0, 0, tzinfo=timezone.utc)) == 10

    def test_days_left_rounds_partial_day_up(self):
        assert days_left("2025-01-25", datetime(2025, 1, 24, 18, 0, tzinfo=timezone.utc)) == 1

    def test_days_left_zero_at_end_date(self):
        assert days_left("2025-01-25", datetime(2025, 1, 25, 0, 0, tzinfo=timezone.utc)) == 0

    def test_days_left_negative_after_end(self):
        assert days_left("2025-01-25", datetime(2025, 1, 27, 12, 0, tzinfo=timezone.utc)) <= 0

    def test_plus_days(self):
        assert plus_days_ymd(datetime(2025, 1, 30, 23, 0, tzinfo=timezone.utc), 30) == "2025-03-01"

    def test_format_timestamp(self):
        assert format_timestamp("2025-01-15T09:15:42.123Z") == "2025-01-15 09:15"

    def test_format_amount(self):
        assert format_amount(150000.0) == "150000"
        assert format_amount(99.5) == "99.5"


class TestCallbacks:
    def test_simple_tokens(self):
        assert parse_callback("back_main") == BackMain()
        assert parse_callback("back_step") == BackStep()

    def test_tier_token_round_trip(self):
        token = tier_token(Flow.RENEW, Tier.VIP)

        assert token == "cat:renew:Vip"
        assert parse_callback(token) == ChooseTier(Flow.RENEW, Tier.VIP)

    def test_plan_token(self):
        assert parse_callback(plan_token(Flow.NEW, "m30")) == ChoosePlan(Flow.NEW, "m30")

    def test_admin_tokens(self):
        assert parse_callback("admin_approve:N-1001") == AdminDecision(Decision.APPROVE, "N-1001")
        assert parse_callback("admin_reject:R-1002") == AdminDecision(Decision.REJECT, "R-1002")

    @pytest.mark.parametrize(
        "data",
        ["", "cat:new", "cat:old:Mobile", "cat:new:Spaceship", "plan:new:", "admin_approve:", "admin_delete:N-1"],
    )
    def test_invalid_tokens(self, data):
        with pytest.raises(InvalidCallbackError):
            parse_callback(data)
