"""Conversation state machine for signup, renewal and receipt submission."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from . import keyboards
from .approvals import ApprovalCoordinator
from .callbacks import (
    AdminDecision,
    BackMain,
    BackStep,
    ChoosePlan,
    ChooseTier,
    parse_callback,
)
from .catalog import PlanCatalog
from .content import ContentProvider
from .errors import InvalidCallbackError, PlanNotFoundError, UniqueConstraintError
from .gateway import MessagingGateway
from .models import (
    STEP_ORDER,
    Flow,
    FormData,
    InboundEvent,
    InlineKeyboard,
    OrderKind,
    Outbound,
    ReplyKeyboard,
    Session,
    Step,
    Tier,
)
from .order_store import OrderStore
from .session_store import SessionStore
from .utils import (
    format_amount,
    is_full_name,
    is_valid_email,
    is_valid_phone,
    render,
    utc_now,
    ymd,
)

logger = logging.getLogger(__name__)

CANCEL_COMMANDS = frozenset({"cancel", "Cancel", "/cancel", "لغو"})
START_COMMAND = "/start"
TEXT_RECEIPT_PREFIX = "TEXT:"


@dataclass(frozen=True)
class TextStep:
    """Transition for a step that takes free text."""

    field: str
    next: Step
    invalid_key: str | None = None
    validate: Callable[[str], bool] | None = None


# Province membership depends on the live province list and is checked separately.
TEXT_STEPS: dict[Step, TextStep] = {
    Step.NAME: TextStep("full_name", Step.COMPANY, "name_invalid", is_full_name),
    Step.COMPANY: TextStep("company", Step.PHONE),
    Step.PHONE: TextStep("phone", Step.PROVINCE, "phone_invalid", is_valid_phone),
    Step.PROVINCE: TextStep("province", Step.EMAIL, "province_invalid"),
    Step.EMAIL: TextStep("email", Step.PLAN, "email_invalid", is_valid_email),
}

PROMPT_KEYS: dict[Step, str] = {
    Step.NAME: "ask_fullname",
    Step.COMPANY: "ask_company",
    Step.PHONE: "ask_phone",
    Step.PROVINCE: "ask_province",
    Step.EMAIL: "ask_email",
    Step.PLAN: "ask_plan",
    Step.RECEIPT: "ask_receipt",
}


def previous_step(step: Step, flow: Flow) -> Step:
    """The step before ``step``, never going below the flow's entry step."""
    if step is Step.NONE:
        return step
    floor = STEP_ORDER.index(flow.entry_step)
    index = STEP_ORDER.index(step)
    return STEP_ORDER[max(floor, index - 1)]


def _reset(session: Session) -> None:
    session.step = Step.NONE
    session.flow = Flow.NEW
    session.form = FormData()
    session.pending_order_id = None


class ConversationEngine:
    """
    Decides the replies and side effects for one inbound event.

    The user's session is read at the start of ``handle`` and written back
    only after the event has been fully handled. If a collaborator raises
    midway, the exception propagates and the stored session is unchanged.
    Events from the same chat are handled one at a time.
    """

    def __init__(
        self,
        content: ContentProvider,
        catalog: PlanCatalog,
        orders: OrderStore,
        sessions: SessionStore,
        approvals: ApprovalCoordinator,
        gateway: MessagingGateway,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.content = content
        self.catalog = catalog
        self.orders = orders
        self.sessions = sessions
        self.approvals = approvals
        self.gateway = gateway
        self.clock = clock

    def handle(self, event: InboundEvent) -> list[Outbound]:
        with self.sessions.lock(event.chat_id):
            session = self.sessions.get(event.chat_id)
            if event.is_callback:
                replies = self._on_callback(event, session)
            else:
                replies = self._on_message(event, session)

            if session == Session():
                self.sessions.clear(event.chat_id)
            else:
                self.sessions.set(event.chat_id, session)
            return replies

    # --- Helpers ---

    def _reply(self, event: InboundEvent, key: str, keyboard=None, **fields: object) -> Outbound:
        return Outbound(event.chat_id, self.content.message(key, **fields), keyboard)

    def _main_menu(self) -> ReplyKeyboard:
        return keyboards.main_menu(self.content.labels())

    def _step_back(self) -> InlineKeyboard:
        return keyboards.step_back_menu(self.content.labels())

    def _trial_allowed(self, session: Session, chat_id: str) -> bool:
        """Trials are for new signups, when enabled, once per user."""
        if session.flow is not Flow.NEW:
            return False
        if not self.content.flag("trial_allowed_once"):
            return False
        return not self.orders.trial_used(chat_id)

    def _prompt(self, event: InboundEvent, session: Session) -> list[Outbound]:
        step = session.step
        key = PROMPT_KEYS[step]
        if step is Step.PROVINCE:
            labels = self.content.labels()
            keyboard = keyboards.province_keyboard(self.content.provinces(), labels)
            return [self._reply(event, key, keyboard)]
        if step is Step.PLAN:
            labels = self.content.labels()
            eligible = self._trial_allowed(session, event.chat_id)
            keyboard = keyboards.tier_choices(session.flow, labels, eligible)
            return [self._reply(event, key, keyboard)]
        return [self._reply(event, key, self._step_back())]

    # --- Callbacks ---

    def _on_callback(self, event: InboundEvent, session: Session) -> list[Outbound]:
        try:
            callback = parse_callback(event.callback_data or "")
        except InvalidCallbackError as e:
            logger.warning("Ignoring callback from %s: %s", event.chat_id, e)
            return []

        if isinstance(callback, BackMain):
            _reset(session)
            return [self._reply(event, "main_menu", self._main_menu())]
        if isinstance(callback, BackStep):
            return self._back_step(event, session)
        if isinstance(callback, ChooseTier):
            return self._choose_tier(event, session, callback)
        if isinstance(callback, ChoosePlan):
            return self._choose_plan(event, session, callback)
        if isinstance(callback, AdminDecision):
            if not self.approvals.is_admin(event.chat_id):
                logger.warning("Admin callback from non-admin chat %s ignored", event.chat_id)
                return []
            return self.approvals.decide(
                callback.order_id, callback.decision, event.chat_id, event.message_id
            )
        return []

    def _back_step(self, event: InboundEvent, session: Session) -> list[Outbound]:
        if session.is_idle:
            return [self._reply(event, "main_menu", self._main_menu())]
        if session.step is Step.RECEIPT:
            session.pending_order_id = None
        session.step = previous_step(session.step, session.flow)
        return self._prompt(event, session)

    def _choose_tier(self, event: InboundEvent, session: Session, choice: ChooseTier) -> list[Outbound]:
        if session.step is not Step.PLAN or choice.category is not session.flow:
            return [self._reply(event, "session_expired", self._main_menu())]
        if choice.tier is Tier.TRIAL and not self._trial_allowed(session, event.chat_id):
            logger.info("Trial denied for %s", event.chat_id)
            return [self._reply(event, "trial_blocked")]

        plans = self.catalog.plans(choice.category, choice.tier)
        if not plans:
            return [self._reply(event, "no_plans")]

        labels = self.content.labels()
        tier_label = labels.get(f"label_tier_{choice.tier.value}", choice.tier.value)
        return [
            self._reply(
                event, "plans_for_tier", keyboards.plan_choices(plans, labels), tier=tier_label
            )
        ]

    def _choose_plan(self, event: InboundEvent, session: Session, choice: ChoosePlan) -> list[Outbound]:
        if session.step is not Step.PLAN or choice.category is not session.flow:
            return [self._reply(event, "session_expired", self._main_menu())]

        try:
            plan = self.catalog.require_plan(choice.category, choice.plan_id)
        except PlanNotFoundError as e:
            logger.info("%s", e)
            return [self._reply(event, "plan_not_found")]

        kind = OrderKind.for_plan(session.flow, plan.tier)
        now = self.clock()

        if kind is OrderKind.TRIAL:
            # Checked again here: the tier buttons may be stale.
            if not self._trial_allowed(session, event.chat_id):
                return [self._reply(event, "trial_blocked")]
            success = self._reply(event, "trial_success", self._main_menu())
            try:
                self.orders.create(event.chat_id, session.form, plan, kind, now)
            except UniqueConstraintError:
                logger.info("Concurrent trial for %s rejected by the store", event.chat_id)
                return [self._reply(event, "trial_blocked")]
            _reset(session)
            return [success]

        # Content is read before the order is written.
        pay_template = self.content.template("pay_msg")
        card_number = self.content.config("card_number")
        card_name = self.content.config("card_name")
        ask_receipt = self._reply(event, "ask_receipt", self._step_back())

        order = self.orders.create(event.chat_id, session.form, plan, kind, now)
        payment = render(
            pay_template,
            full_name=session.form.full_name,
            plan_label=plan.label,
            order_id=order.order_id,
            date=ymd(now),
            time=now.strftime("%H:%M"),
            price=format_amount(plan.price),
            card_number=card_number,
            card_name=card_name,
        )
        session.step = Step.RECEIPT
        session.pending_order_id = order.order_id
        return [Outbound(event.chat_id, payment), ask_receipt]

    # --- Messages ---

    def _on_message(self, event: InboundEvent, session: Session) -> list[Outbound]:
        text = event.text

        if self.approvals.is_digest_command(text) and self.approvals.is_admin(event.chat_id):
            return self.approvals.handle_command(event.chat_id, text)

        if text in CANCEL_COMMANDS:
            _reset(session)
            return [self._reply(event, "cancelled", self._main_menu())]

        labels = self.content.labels()
        if text == START_COMMAND or text == labels["label_back_main"]:
            _reset(session)
            return [self._reply(event, "welcome_start", self._main_menu())]

        menu_action = {
            labels["label_start"]: self._start_signup,
            labels["label_renew"]: self._start_renewal,
            labels["label_info"]: self._show_profile,
            labels["label_status"]: self._show_status,
            labels["label_about"]: self._show_about,
            labels["label_channel"]: self._show_channel,
            labels["label_support"]: self._show_support,
        }.get(text)
        if menu_action is not None and not event.has_media:
            return menu_action(event, session)

        if session.step is Step.RECEIPT:
            return self._submit_receipt(event, session)

        rule = TEXT_STEPS.get(session.step)
        if rule is None or event.has_media:
            return [self._reply(event, "invalid_option")]
        return self._on_text_step(event, session, rule)

    def _on_text_step(self, event: InboundEvent, session: Session, rule: TextStep) -> list[Outbound]:
        text = event.text
        if session.step is Step.PROVINCE:
            provinces = self.content.provinces()
            if text not in provinces:
                keyboard = keyboards.province_keyboard(provinces, self.content.labels())
                return [self._reply(event, "province_invalid", keyboard)]
        elif rule.validate is not None and not rule.validate(text):
            return [self._reply(event, rule.invalid_key, self._step_back())]

        setattr(session.form, rule.field, text)
        session.step = rule.next
        return self._prompt(event, session)

    def _submit_receipt(self, event: InboundEvent, session: Session) -> list[Outbound]:
        if event.has_media:
            receipt = self.gateway.get_file_url(event.file_id)
            if not receipt:
                return [self._reply(event, "receipt_invalid", self._step_back())]
        elif event.text and not event.text.startswith("/"):
            receipt = f"{TEXT_RECEIPT_PREFIX}{event.text}"
        else:
            return [self._reply(event, "receipt_invalid", self._step_back())]

        order = self.orders.get(session.pending_order_id) if session.pending_order_id else None
        if order is None:
            _reset(session)
            return [self._reply(event, "order_not_found", self._main_menu())]

        order = self.orders.attach_receipt(order, receipt)
        _reset(session)
        replies = [self._reply(event, "receipt_waiting", self._main_menu())]
        review = self.approvals.review_request(order)
        if review is not None:
            replies.append(review)
        return replies

    # --- Top-level menu ---

    def _start_signup(self, event: InboundEvent, session: Session) -> list[Outbound]:
        _reset(session)
        session.flow = Flow.NEW
        session.step = Flow.NEW.entry_step
        return self._prompt(event, session)

    def _start_renewal(self, event: InboundEvent, session: Session) -> list[Outbound]:
        _reset(session)
        session.flow = Flow.RENEW
        session.step = Flow.RENEW.entry_step
        return self._prompt(event, session)

    def _show_profile(self, event: InboundEvent, session: Session) -> list[Outbound]:
        latest = self.orders.latest(event.chat_id)
        if latest is None:
            return [self._reply(event, "profile_empty", self._main_menu())]
        labels = self.content.labels()
        return [
            self._reply(
                event, "profile_template", keyboards.back_main_only(labels), **latest.form.to_dict()
            )
        ]

    def _show_status(self, event: InboundEvent, session: Session) -> list[Outbound]:
        active = self.orders.latest_active(event.chat_id)
        if active is None:
            return [self._reply(event, "no_active_subscription")]
        return [
            self._reply(
                event,
                "status_template",
                plan_label=active.plan_label,
                end_date=active.end_date,
                days_left=active.days_left,
            )
        ]

    def _show_about(self, event: InboundEvent, session: Session) -> list[Outbound]:
        return [self._reply(event, "about_text", self._main_menu())]

    def _show_channel(self, event: InboundEvent, session: Session) -> list[Outbound]:
        channel = self.content.config("channel_url")
        if not channel:
            return [self._reply(event, "invalid_option")]
        return [Outbound(event.chat_id, channel)]

    def _show_support(self, event: InboundEvent, session: Session) -> list[Outbound]:
        support = self.content.config("support_username")
        if not support:
            return [self._reply(event, "invalid_option")]
        return [Outbound(event.chat_id, support)]
