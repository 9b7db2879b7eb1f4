"""Data models for ordersub."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
import uuid

from .utils import parse_bool


def _utc_now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _generate_id() -> str:
    """Generate a new record ID."""
    return uuid.uuid4().hex[:15]


def _as_number(value: Any) -> int | float:
    """Coerce a stored amount to int when it has no fractional part."""
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        return 0
    return int(number) if number.is_integer() else number


# Conversation enums


class Step(str, Enum):
    """Input the conversation currently expects from the user."""

    NONE = "NONE"
    NAME = "NAME"
    COMPANY = "COMPANY"
    PHONE = "PHONE"
    PROVINCE = "PROVINCE"
    EMAIL = "EMAIL"
    PLAN = "PLAN"
    RECEIPT = "RECEIPT"


STEP_ORDER: tuple[Step, ...] = (
    Step.NAME,
    Step.COMPANY,
    Step.PHONE,
    Step.PROVINCE,
    Step.EMAIL,
    Step.PLAN,
    Step.RECEIPT,
)


class Flow(str, Enum):
    """First-time signup or renewal. Doubles as the plan catalog category."""

    NEW = "new"
    RENEW = "renew"

    @property
    def entry_step(self) -> Step:
        # Renewals skip personal info, it is already on file.
        return Step.NAME if self is Flow.NEW else Step.EMAIL


class Tier(str, Enum):
    TRIAL = "Trial"
    MOBILE = "Mobile"
    LAPTOP = "Laptop"
    VIP = "Vip"


PAID_TIERS: tuple[Tier, ...] = (Tier.MOBILE, Tier.LAPTOP, Tier.VIP)


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


# Order enums


class OrderKind(str, Enum):
    """Order namespace; each kind has its own identifier prefix."""

    TRIAL = "trial"
    NEW = "new"
    RENEW = "renew"

    @property
    def prefix(self) -> str:
        return {"trial": "T", "new": "N", "renew": "R"}[self.value]

    @classmethod
    def for_plan(cls, flow: "Flow", tier: "Tier") -> "OrderKind":
        if tier is Tier.TRIAL:
            return cls.TRIAL
        return cls.RENEW if flow is Flow.RENEW else cls.NEW


class OrderStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"


class ReceiptStatus(str, Enum):
    PENDING = "Pending"
    SUCCESSFUL = "Successful"
    FAILED = "Failed"


# Conversation state


@dataclass
class FormData:
    """Registration fields collected during the signup dialogue."""

    full_name: str = ""
    company: str = ""
    phone: str = ""
    province: str = ""
    email: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "full_name": self.full_name,
            "company": self.company,
            "phone": self.phone,
            "province": self.province,
            "email": self.email,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FormData":
        return cls(
            full_name=data.get("full_name") or "",
            company=data.get("company") or "",
            phone=data.get("phone") or "",
            province=data.get("province") or "",
            email=data.get("email") or "",
        )


@dataclass
class Session:
    """Per-user dialogue state. Lives only in process memory."""

    step: Step = Step.NONE
    flow: Flow = Flow.NEW
    form: FormData = field(default_factory=FormData)
    pending_order_id: str | None = None

    @property
    def is_idle(self) -> bool:
        return self.step is Step.NONE


# Catalog


@dataclass(frozen=True)
class Plan:
    """A purchasable plan. Read-only from the bot's point of view."""

    id: str
    key: str
    category: Flow
    tier: Tier
    days: int
    price: int | float
    label: str
    active: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any], category: Flow) -> "Plan":
        days = int(data.get("days") or 0)
        price = _as_number(data.get("price"))
        return cls(
            id=data["id"],
            key=data.get("key") or data["id"],
            category=category,
            tier=Tier(data["plan_type"]),
            days=days,
            price=price,
            label=data.get("label") or f"{days} days - {price}",
            active=parse_bool(data.get("active", True)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "key": self.key,
            "category": self.category.value,
            "plan_type": self.tier.value,
            "days": self.days,
            "price": self.price,
            "label": self.label,
            "active": self.active,
        }


# Orders


@dataclass
class Order:
    """A registration/order record."""

    id: str  # store record ID
    order_id: str  # e.g. "N-1001"
    user_id: str
    kind: OrderKind
    form: FormData
    plan_key: str
    plan_label: str
    plan_days: int
    amount: int | float
    status: OrderStatus = OrderStatus.PENDING
    receipt_status: ReceiptStatus = ReceiptStatus.PENDING
    receipt_url: str = ""
    start_date: str = ""
    end_date: str = ""
    days_left: int = 0
    warned: bool = False
    paid_count: int = 0
    timestamp: str = field(default_factory=_utc_now)
    last_update: str = field(default_factory=_utc_now)

    @property
    def trial_key(self) -> str | None:
        """Unique per user for trials, absent otherwise."""
        return self.user_id if self.kind is OrderKind.TRIAL else None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "order_id": self.order_id,
            "chat_id": self.user_id,
            "kind": self.kind.value,
            **self.form.to_dict(),
            "plan_key": self.plan_key,
            "plan_label": self.plan_label,
            "plan_days": self.plan_days,
            "amount": self.amount,
            "status": self.status.value,
            "receipt_status": self.receipt_status.value,
            "receipt_url": self.receipt_url,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "days_left": self.days_left,
            "warned": self.warned,
            "paid_count": self.paid_count,
            "timestamp": self.timestamp,
            "last_update": self.last_update,
            "trial_key": self.trial_key or "",
        }
        if self.id:
            result["id"] = self.id
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Order":
        return cls(
            id=data.get("id", ""),
            order_id=data["order_id"],
            user_id=str(data["chat_id"]),
            kind=OrderKind(data.get("kind") or "new"),
            form=FormData.from_dict(data),
            plan_key=data.get("plan_key", ""),
            plan_label=data.get("plan_label", ""),
            plan_days=int(data.get("plan_days") or 0),
            amount=_as_number(data.get("amount")),
            status=OrderStatus(data.get("status") or "pending"),
            receipt_status=ReceiptStatus(data.get("receipt_status") or "Pending"),
            receipt_url=data.get("receipt_url") or "",
            start_date=data.get("start_date") or "",
            end_date=data.get("end_date") or "",
            days_left=int(data.get("days_left") or 0),
            warned=bool(data.get("warned")),
            paid_count=int(data.get("paid_count") or 0),
            timestamp=data.get("timestamp", ""),
            last_update=data.get("last_update", ""),
        )


# Transport-level messages


@dataclass(frozen=True)
class InlineButton:
    label: str
    callback: str


@dataclass
class ReplyKeyboard:
    """Persistent keyboard of text buttons; a press sends the label as text."""

    rows: list[list[str]]


@dataclass
class InlineKeyboard:
    """Buttons attached to a message; a press sends a callback token."""

    rows: list[list[InlineButton]]


Keyboard = ReplyKeyboard | InlineKeyboard


@dataclass
class InboundEvent:
    """A normalized user action: text, media attachment, or button press."""

    chat_id: str
    text: str = ""
    file_id: str | None = None
    callback_data: str | None = None
    callback_id: str | None = None
    message_id: int | None = None

    @property
    def is_callback(self) -> bool:
        return self.callback_data is not None

    @property
    def has_media(self) -> bool:
        return self.file_id is not None


@dataclass
class Outbound:
    """A message to send, or an edit of an earlier message when edit_message_id is set."""

    chat_id: str
    text: str
    keyboard: Keyboard | None = None
    edit_message_id: int | None = None
