"""FastAPI app: Telegram webhook, daily cron trigger and a read-only orders API."""

import logging
from typing import Any, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from .bot import OrderBot, build_bot
from .errors import (
    GatewayError,
    InvalidCallbackError,
    OrderNotFoundError,
    OrderStateError,
    OrdersubError,
    PlanNotFoundError,
    SettingsError,
    StoreError,
    UniqueConstraintError,
)
from .models import Order, OrderStatus, ReceiptStatus
from .settings import Settings

logger = logging.getLogger(__name__)


# --- Pydantic Schemas ---


class OrderSchema(BaseModel):
    order_id: str
    user_id: str
    kind: str
    full_name: str
    company: str
    phone: str
    province: str
    email: str
    plan_key: str
    plan_label: str
    plan_days: int
    amount: float
    status: str
    receipt_status: str
    receipt_url: str = ""
    start_date: str = ""
    end_date: str = ""
    days_left: int = 0
    warned: bool = False
    paid_count: int = 0
    timestamp: str
    last_update: str


class OrderListResponse(BaseModel):
    orders: list[OrderSchema]
    count: int


class WebhookAck(BaseModel):
    ok: bool


class ErrorResponse(BaseModel):
    detail: str
    error_type: str


# --- Helper Functions ---


def order_to_schema(order: Order) -> OrderSchema:
    """Convert an Order to its API schema."""
    return OrderSchema(
        order_id=order.order_id,
        user_id=order.user_id,
        kind=order.kind.value,
        **order.form.to_dict(),
        plan_key=order.plan_key,
        plan_label=order.plan_label,
        plan_days=order.plan_days,
        amount=order.amount,
        status=order.status.value,
        receipt_status=order.receipt_status.value,
        receipt_url=order.receipt_url,
        start_date=order.start_date,
        end_date=order.end_date,
        days_left=order.days_left,
        warned=order.warned,
        paid_count=order.paid_count,
        timestamp=order.timestamp,
        last_update=order.last_update,
    )


_settings: Optional[Settings] = None
_bot: Optional[OrderBot] = None


def get_settings() -> Settings:
    """Get the process Settings, read once from the environment."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def get_bot() -> OrderBot:
    """Get the global OrderBot, built on first use."""
    global _bot
    if _bot is None:
        _bot = build_bot(get_settings())
    return _bot


# --- FastAPI App ---


app = FastAPI(
    title="ordersub API",
    description="Telegram ordering bot with subscription lifecycle",
    version="0.1.0",
)


# --- Global Exception Handler ---


# Map exception types to HTTP status codes
ERROR_STATUS_CODES: dict[type, int] = {
    OrderNotFoundError: 404,
    PlanNotFoundError: 404,
    OrderStateError: 409,
    UniqueConstraintError: 409,
    InvalidCallbackError: 400,
    StoreError: 503,
    GatewayError: 502,
    SettingsError: 500,
}


@app.exception_handler(OrdersubError)
async def ordersub_error_handler(request: Request, exc: OrdersubError) -> JSONResponse:
    """Map OrdersubError subclasses to appropriate HTTP responses."""
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


# --- Endpoints ---


@app.get("/", response_class=PlainTextResponse)
def liveness():
    return "OK"


@app.get("/api/health")
def health_check(bot: OrderBot = Depends(get_bot)):
    """
    Health check endpoint.

    Reports whether the record store answers; never fails itself.
    """
    try:
        pending = bot.orders.find(status=OrderStatus.PENDING)
        return {"status": "ok", "pending_count": len(pending)}
    except OrdersubError as e:
        return {"status": "error", "detail": str(e)}


@app.post("/webhook", response_model=WebhookAck)
def telegram_webhook(
    update: dict[str, Any],
    background_tasks: BackgroundTasks,
    bot: OrderBot = Depends(get_bot),
    settings: Settings = Depends(get_settings),
    x_telegram_bot_api_secret_token: Optional[str] = Header(default=None),
):
    """
    Receive a Telegram update.

    The update is acknowledged right away and processed after the response
    is sent, so slow store or gateway calls never make Telegram retry.
    """
    if settings.webhook_secret and x_telegram_bot_api_secret_token != settings.webhook_secret:
        raise HTTPException(status_code=403, detail="Invalid webhook secret")
    background_tasks.add_task(bot.process_update, update)
    return WebhookAck(ok=True)


@app.api_route("/cron/daily", methods=["GET", "POST"], response_class=PlainTextResponse)
def cron_daily(bot: OrderBot = Depends(get_bot)):
    """Run the expiry sweep. Returns ERR when the active orders can't be read."""
    try:
        report = bot.run_sweep()
    except OrdersubError as e:
        logger.error("Daily sweep failed: %s", e)
        return PlainTextResponse("ERR", status_code=500)
    logger.info("Daily sweep report: %s", report.to_dict())
    return "OK"


@app.get("/api/orders", response_model=OrderListResponse)
def list_orders(
    status: Optional[OrderStatus] = Query(default=None),
    receipt_status: Optional[ReceiptStatus] = Query(default=None),
    user_id: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    bot: OrderBot = Depends(get_bot),
):
    """List orders newest first."""
    orders = bot.orders.find(
        user_id=user_id, status=status, receipt_status=receipt_status, limit=limit
    )
    return OrderListResponse(orders=[order_to_schema(o) for o in orders], count=len(orders))


@app.get("/api/orders/{order_id}", response_model=OrderSchema)
def get_order(order_id: str, bot: OrderBot = Depends(get_bot)):
    return order_to_schema(bot.orders.require(order_id))
