"""Command-line interface for aquaflow."""

import argparse
import json
import sys
from datetime import date

from . import __version__
from .errors import AquaflowError, ValidationError
from .marketplace import Marketplace
from .models import ORDER_STATUSES, InventoryItem, MonthlyReport, Order, User


def get_marketplace() -> Marketplace:
    """Build the marketplace over the configured store."""
    return Marketplace.from_settings()


def _vendor(market: Marketplace, login: str) -> User:
    user = market.accounts.get_by_login(login)
    if not user.is_vendor:
        raise ValidationError("vendor", f"{login} is not a vendor account")
    return user


def format_item(item: InventoryItem) -> str:
    return f"  {item.id[:8]}  {item.name:<20} {item.price:>8}  stock {item.stock:>4} ({item.stock_level})"


def format_order(order: Order) -> str:
    cans = sum(i.quantity for i in order.items)
    invoice = f"  [{order.invoice_id}]" if order.invoice_id else ""
    return (
        f"  {order.id[:8]}  {order.status:<12} {order.delivery_date}  "
        f"{order.customer_name:<16} {cans:>3} cans  {order.total:>9}{invoice}"
    )


def format_report(report: MonthlyReport) -> str:
    lines = [
        f"{report.month_name} {report.year}: {report.total_orders} orders, revenue {report.total_revenue}"
    ]
    for totals in sorted(report.per_customer.values(), key=lambda t: t.amount, reverse=True):
        lines.append(f"  {totals.name:<20} {totals.orders:>3} orders  {totals.amount:>9}")
    return "\n".join(lines)


def cmd_areas_list(args: argparse.Namespace) -> int:
    """List service areas."""
    try:
        market = get_marketplace()
        areas = market.areas.list_areas()

        if not areas:
            print("No service areas found.")
            return 0

        if args.json:
            print(json.dumps([a.to_dict() for a in areas], indent=2))
        else:
            print(f"Service areas ({len(areas)}):")
            for area in areas:
                print(f"  {area.id[:8]}  {area.name:<24} {area.vendor_name}")
        return 0

    except AquaflowError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_inventory_list(args: argparse.Namespace) -> int:
    """List a vendor's inventory."""
    try:
        market = get_marketplace()
        vendor = _vendor(market, args.vendor)
        if args.command_name == "low-stock":
            items = market.inventory.low_stock(vendor.id)
        else:
            items = market.inventory.list(vendor.id)

        if args.json:
            print(json.dumps([i.to_dict() for i in items], indent=2))
            return 0
        if not items:
            print("No low-stock items." if args.command_name == "low-stock" else "No inventory items.")
            return 0

        print(f"Inventory for {vendor.name} ({len(items)}):")
        for item in items:
            print(format_item(item))
        return 0

    except AquaflowError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_list(args: argparse.Namespace) -> int:
    """List orders for a vendor or a customer."""
    try:
        market = get_marketplace()
        if args.vendor:
            vendor = _vendor(market, args.vendor)
            orders = market.orders.orders_for_vendor(vendor.id, status=args.status)
        else:
            customer = market.accounts.get_by_login(args.customer)
            orders = market.orders.orders_for_customer(customer.id)
            if args.status:
                orders = [o for o in orders if o.status == args.status]

        if args.json:
            print(json.dumps([o.to_dict() for o in orders], indent=2))
            return 0
        if not orders:
            print("No orders found.")
            return 0

        print(f"Orders ({len(orders)}):")
        for order in orders:
            print(format_order(order))
        return 0

    except AquaflowError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_report_monthly(args: argparse.Namespace) -> int:
    """Show a vendor's revenue for one month."""
    try:
        market = get_marketplace()
        vendor = _vendor(market, args.vendor)
        today = date.today()
        report = market.monthly_report(
            vendor.id, args.year or today.year, args.month or today.month
        )

        if args.json:
            print(json.dumps(report.to_dict(), indent=2))
        else:
            print(format_report(report))
        return 0

    except AquaflowError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_report_yearly(args: argparse.Namespace) -> int:
    """Show a vendor's revenue month by month for one year."""
    try:
        market = get_marketplace()
        vendor = _vendor(market, args.vendor)
        year = args.year or date.today().year
        reports = market.yearly_report(vendor.id, year)
        totals = market.reports.yearly_totals(reports)

        if args.json:
            data = {
                "year": year,
                "months": [r.to_dict() for r in reports],
                "total_orders": totals["total_orders"],
                "total_revenue": str(totals["total_revenue"]),
            }
            print(json.dumps(data, indent=2))
            return 0

        if not reports:
            print(f"No deliveries in {year}.")
            return 0
        print(f"{year}: {totals['total_orders']} orders, revenue {totals['total_revenue']}")
        print()
        for report in reports:
            print(format_report(report))
        return 0

    except AquaflowError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    try:
        import uvicorn

        settings = get_marketplace().settings
        print("Starting aquaflow API server...")
        print(f"Backend: {settings.backend}")
        print(f"API docs: http://{args.host}:{args.port}/docs")
        print()

        # When reload is enabled, uvicorn requires the app as an import string
        app_target = "aquaflow.api:app" if args.reload else None
        if app_target is None:
            from .api import app
            app_target = app

        uvicorn.run(
            app_target,
            host=args.host,
            port=args.port,
            reload=args.reload,
            workers=1,  # the JSON backend is a single file
        )
        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _add_json_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--json", action="store_true", help="Output as JSON")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="aquaflow",
        description="Water-can delivery marketplace: areas, inventory, orders and revenue reports.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", "-p", type=int, default=8000, help="Port to bind to (default: 8000)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )

    # areas
    areas_parser = subparsers.add_parser("areas", help="Service areas")
    areas_subparsers = areas_parser.add_subparsers(dest="areas_command")
    areas_list_parser = areas_subparsers.add_parser("list", help="List service areas")
    _add_json_flag(areas_list_parser)

    # inventory
    inventory_parser = subparsers.add_parser("inventory", help="Vendor inventory")
    inventory_subparsers = inventory_parser.add_subparsers(dest="inventory_command")
    for name, help_text in (("list", "List a vendor's items"), ("low-stock", "List items running low")):
        sub = inventory_subparsers.add_parser(name, help=help_text)
        sub.add_argument("--vendor", "-v", required=True, help="Vendor user ID")
        _add_json_flag(sub)
        sub.set_defaults(command_name=name)

    # orders
    orders_parser = subparsers.add_parser("orders", help="Orders")
    orders_subparsers = orders_parser.add_subparsers(dest="orders_command")
    orders_list_parser = orders_subparsers.add_parser("list", help="List orders")
    who = orders_list_parser.add_mutually_exclusive_group(required=True)
    who.add_argument("--vendor", "-v", help="Vendor user ID")
    who.add_argument("--customer", "-c", help="Customer user ID")
    orders_list_parser.add_argument("--status", "-s", choices=ORDER_STATUSES, help="Filter by status")
    _add_json_flag(orders_list_parser)

    # report
    report_parser = subparsers.add_parser("report", help="Revenue reports over delivered orders")
    report_subparsers = report_parser.add_subparsers(dest="report_command")
    monthly_parser = report_subparsers.add_parser("monthly", help="One month's revenue")
    monthly_parser.add_argument("--vendor", "-v", required=True, help="Vendor user ID")
    monthly_parser.add_argument("--year", "-y", type=int, help="Year (default: current)")
    monthly_parser.add_argument("--month", "-m", type=int, help="Month 1-12 (default: current)")
    _add_json_flag(monthly_parser)
    yearly_parser = report_subparsers.add_parser("yearly", help="Revenue by month for a year")
    yearly_parser.add_argument("--vendor", "-v", required=True, help="Vendor user ID")
    yearly_parser.add_argument("--year", "-y", type=int, help="Year (default: current)")
    _add_json_flag(yearly_parser)

    return parser


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    group_commands = {
        "areas": ("areas_command", {"list": cmd_areas_list}),
        "inventory": (
            "inventory_command",
            {"list": cmd_inventory_list, "low-stock": cmd_inventory_list},
        ),
        "orders": ("orders_command", {"list": cmd_orders_list}),
        "report": (
            "report_command",
            {"monthly": cmd_report_monthly, "yearly": cmd_report_yearly},
        ),
    }
    if args.command in group_commands:
        dest, handlers = group_commands[args.command]
        subcommand = getattr(args, dest, None)
        if not subcommand:
            parser.parse_args([args.command, "--help"])
            return 0
        return handlers[subcommand](args)

    commands = {
        "serve": cmd_serve,
    }

    cmd_func = commands.get(args.command)
    if cmd_func:
        return cmd_func(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
