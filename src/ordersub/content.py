"""Prompts, labels and configuration scalars sourced from the record store."""

import logging

from .query import Query
from .record_store import RecordStore, first
from .utils import render

logger = logging.getLogger(__name__)

CONFIG_COLLECTION = "config"
MESSAGES_COLLECTION = "messages"
UI_COLLECTION = "ui"
PROVINCES_COLLECTION = "provinces"

# Used when the store has no text for a key.
DEFAULT_MESSAGES: dict[str, str] = {
    "welcome_start": "Welcome! Choose an option from the menu.",
    "main_menu": "Main menu:",
    "cancelled": "Cancelled. Continue from the menu.",
    "invalid_option": "Please choose an option from the menu.",
    "ask_fullname": "Please send your full name (first and last name).",
    "ask_company": "Company or organization name?",
    "ask_phone": "Mobile number (11 digits, starting with 09)?",
    "ask_province": "Choose your province:",
    "ask_email": "Your Gmail address?",
    "ask_plan": "Choose a plan type:",
    "ask_receipt": "Please send the payment receipt as a photo or file.",
    "name_invalid": "Please send both first and last name.",
    "phone_invalid": "The number must be 11 digits and start with 09.",
    "province_invalid": "Please use one of the options below.",
    "email_invalid": "Only @gmail.com addresses are accepted.",
    "receipt_invalid": "Please send the receipt as a photo, file or text note.",
    "plans_for_tier": "{tier} options:",
    "no_plans": "No plans are available in this category right now.",
    "plan_not_found": "Plan not found!",
    "order_not_found": "Order not found!",
    "session_expired": "This menu has expired. Please start again.",
    "trial_blocked": "The free trial is not available for your account.",
    "trial_success": "Your trial is active. Enjoy!",
    "pay_msg": (
        "Dear {full_name}, your order {order_id} for {plan_label} was created "
        "on {date} at {time}.\nAmount: {price}\n"
        "Card: {card_number} ({card_name})"
    ),
    "receipt_waiting": "Receipt received. It is under review.",
    "admin_notify_new_receipt": "New receipt from {full_name}",
    "admin_approved": "Order {order_id} approved - {timestamp}",
    "admin_rejected": "Order {order_id} rejected - {timestamp}",
    "admin_already_processed": "Order {order_id} was already processed ({status}).",
    "admin_list_empty": "No items.",
    "receipt_verified_user": "Your payment was verified and your subscription is active.",
    "receipt_rejected_user": "Your receipt could not be verified. Please contact {support_username}.",
    "expire_warning_template": "{full_name}, your {plan_label} subscription expires in {warn_days_left} days.",
    "auto_deactivated_on_zero": "Your subscription has expired.",
    "profile_empty": "No registration found yet.",
    "profile_template": "Name: {full_name}\nCompany: {company}\nPhone: {phone}\nProvince: {province}\nEmail: {email}",
    "no_active_subscription": "You have no active subscription.",
    "status_template": "Plan: {plan_label}\nUntil: {end_date}\nDays left: {days_left}",
    "about_text": "Subscriptions for mobile, laptop and V.I.P use. See the channel for details.",
}

DEFAULT_LABELS: dict[str, str] = {
    "label_start": "📝 Start signup",
    "label_info": "ℹ️ My info",
    "label_status": "🔐 My subscription",
    "label_about": "📖 About",
    "label_channel": "📣 Channel",
    "label_support": "🆘 Support",
    "label_renew": "🔄 Renew subscription",
    "label_back_step": "↩️ Previous step",
    "label_back_main": "🏠 Main menu",
    "label_tier_Trial": "Trial plan",
    "label_tier_Mobile": "Mobile plan",
    "label_tier_Laptop": "Laptop plan",
    "label_tier_Vip": "V.I.P plan",
    "label_approve": "✅ Approve",
    "label_reject": "❌ Reject",
}


class ContentProvider:
    """Key lookups over the config, messages, ui and provinces collections."""

    def __init__(self, store: RecordStore):
        self.store = store

    def config(self, key: str, default: str = "") -> str:
        record = first(self.store, CONFIG_COLLECTION, Query().eq("key", key))
        if record is None or record.get("value") in (None, ""):
            return default
        return str(record["value"])

    def flag(self, key: str) -> bool:
        """Config toggles are stored as 'Y'/'N'."""
        return self.config(key) == "Y"

    def config_int(self, key: str, default: int) -> int:
        raw = self.config(key)
        try:
            return int(raw) if raw else default
        except ValueError:
            logger.warning("Config %s is not an integer: %r", key, raw)
            return default

    def template(self, key: str) -> str:
        """Unrendered message text, falling back to the built-in default."""
        record = first(self.store, MESSAGES_COLLECTION, Query().eq("key", key))
        text = record.get("text") if record else None
        return text or DEFAULT_MESSAGES.get(key, "")

    def message(self, key: str, **fields: object) -> str:
        return render(self.template(key), **fields)

    def labels(self) -> dict[str, str]:
        labels = dict(DEFAULT_LABELS)
        for record in self.store.list(UI_COLLECTION, Query().order_by("key")):
            if record.get("key") and record.get("value"):
                labels[record["key"]] = record["value"]
        return labels

    def label(self, key: str) -> str:
        return self.labels().get(key, key)

    def provinces(self) -> list[str]:
        records = self.store.list(PROVINCES_COLLECTION, Query().order_by("name"))
        return [r["name"] for r in records if r.get("name")]
