"""CLI interface for ordersub."""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from .bot import build_bot, build_store
from .content import ContentProvider
from .errors import OrdersubError
from .models import Order, OrderStatus, ReceiptStatus
from .order_store import OrderStore
from .seed import load_seed
from .sequencer import OrderSequencer
from .settings import Settings
from .utils import format_amount, format_timestamp


def get_settings(args: argparse.Namespace) -> Settings:
    """Settings from the environment, with command-line overrides applied."""
    settings = Settings.from_env()
    if getattr(args, "data_dir", None):
        settings.data_dir = Path(args.data_dir)
    return settings


def get_order_store(settings: Settings) -> OrderStore:
    store = build_store(settings)
    return OrderStore(store, OrderSequencer(store, ContentProvider(store)))


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def cmd_sweep(args: argparse.Namespace) -> int:
    """Run the expiry sweep once."""
    try:
        bot = build_bot(get_settings(args))
        report = bot.run_sweep()

        if args.json:
            print(json.dumps(report.to_dict(), indent=2))
        else:
            print(f"Checked: {report.checked}")
            print(f"Updated: {report.updated}")
            print(f"Warned:  {report.warned}")
            print(f"Expired: {report.expired}")
            print(f"Failed:  {report.failed}")
        return 1 if report.failed else 0

    except OrdersubError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_seed(args: argparse.Namespace) -> int:
    """Load records from a JSON seed file."""
    try:
        settings = get_settings(args)
        counts = load_seed(build_store(settings), Path(args.file))

        total = sum(counts.values())
        for collection, created in counts.items():
            print(f"  {collection}: {created}")
        print(f"Seeded {total} record(s)")
        return 0

    except OrdersubError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _order_line(order: Order) -> str:
    return (
        f"{order.order_id:<8} {order.status.value:<8} {order.receipt_status.value:<10} "
        f"{order.form.full_name} | {order.plan_label} | {format_amount(order.amount)} | "
        f"{format_timestamp(order.timestamp)}"
    )


def cmd_orders_list(args: argparse.Namespace) -> int:
    """List orders, newest first."""
    try:
        orders = get_order_store(get_settings(args)).find(
            user_id=args.user,
            status=OrderStatus(args.status) if args.status else None,
            receipt_status=ReceiptStatus(args.receipt_status) if args.receipt_status else None,
            limit=args.limit,
        )

        if args.json:
            print(json.dumps([o.to_dict() for o in orders], indent=2, ensure_ascii=False))
            return 0

        if not orders:
            print("No orders.")
            return 0

        for order in orders:
            print(_order_line(order))
        print(f"\n{len(orders)} order(s)")
        return 0

    except OrdersubError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_show(args: argparse.Namespace) -> int:
    """Show a single order."""
    try:
        order = get_order_store(get_settings(args)).require(args.order_id)

        if args.json:
            print(json.dumps(order.to_dict(), indent=2, ensure_ascii=False))
            return 0

        print(f"Order:    {order.order_id} ({order.kind.value})")
        print(f"User:     {order.user_id}")
        print(f"Name:     {order.form.full_name}")
        print(f"Company:  {order.form.company}")
        print(f"Phone:    {order.form.phone}")
        print(f"Province: {order.form.province}")
        print(f"Email:    {order.form.email}")
        print(f"Plan:     {order.plan_label} ({order.plan_days} days, {format_amount(order.amount)})")
        print(f"Status:   {order.status.value} / receipt {order.receipt_status.value}")
        if order.end_date:
            print(f"Period:   {order.start_date} -> {order.end_date} ({order.days_left} days left)")
        if order.receipt_url:
            print(f"Receipt:  {order.receipt_url}")
        return 0

    except OrdersubError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    try:
        import uvicorn

        settings = get_settings(args)
        if args.data_dir:
            # The app reads its settings from the environment
            os.environ["ORDERSUB_DATA_DIR"] = str(settings.data_dir)

        print("Starting ordersub API server...")
        print(f"Store: {settings.store}")
        print(f"API docs: http://{args.host}:{args.port}/docs")
        print()

        # When reload is enabled, uvicorn requires the app as an import string
        app_target = "ordersub.api:app" if args.reload else None
        if app_target is None:
            from .api import app
            app_target = app

        uvicorn.run(
            app_target,
            host=args.host,
            port=args.port,
            reload=args.reload,
            workers=1,  # Sessions live in process memory
        )
        return 0

    except OrdersubError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="ordersub",
        description="Telegram ordering bot with subscription lifecycle",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: ORDERSUB_LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Data directory for the JSON store (default: ORDERSUB_DATA_DIR)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    # sweep
    sweep_parser = subparsers.add_parser("sweep", help="Run the daily expiry sweep once")
    sweep_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # seed
    seed_parser = subparsers.add_parser("seed", help="Load records from a JSON seed file")
    seed_parser.add_argument("file", help="Seed file: {\"collection\": [records...]}")

    # orders
    orders_parser = subparsers.add_parser("orders", help="Inspect orders")
    orders_subparsers = orders_parser.add_subparsers(dest="orders_command")

    orders_list_parser = orders_subparsers.add_parser("list", help="List orders")
    orders_list_parser.add_argument(
        "--status", choices=[s.value for s in OrderStatus], help="Filter by order status"
    )
    orders_list_parser.add_argument(
        "--receipt-status",
        choices=[s.value for s in ReceiptStatus],
        help="Filter by receipt status",
    )
    orders_list_parser.add_argument("--user", help="Filter by user (chat) ID")
    orders_list_parser.add_argument("--limit", type=int, default=50, help="Maximum orders to show")
    orders_list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    orders_show_parser = orders_subparsers.add_parser("show", help="Show an order")
    orders_show_parser.add_argument("order_id", help="Order ID, e.g. N-1001")
    orders_show_parser.add_argument("--json", action="store_true", help="Output as JSON")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        log_level = args.log_level or Settings.from_env().log_level
    except OrdersubError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    configure_logging(log_level)

    if not args.command:
        parser.print_help()
        return 0

    # Handle orders subcommands
    if args.command == "orders":
        if not getattr(args, "orders_command", None):
            parser.parse_args(["orders", "--help"])
            return 0
        if args.orders_command == "list":
            return cmd_orders_list(args)
        elif args.orders_command == "show":
            return cmd_orders_show(args)

    commands = {
        "serve": cmd_serve,
        "sweep": cmd_sweep,
        "seed": cmd_seed,
    }

    cmd_func = commands.get(args.command)
    if cmd_func:
        return cmd_func(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
