#!/usr/bin/env python3
"""
Command line front end for the garage ledgers.

Commands:
  cars          - List the cars in the vehicle ledger
  status        - Show overdue and upcoming maintenance, expiring documents
                  and reminders
  stats         - Show cost and consumption totals for a car
  fuel          - Show monthly fuel trends for a car
  update-miles  - Record a new odometer reading
  invoices      - List invoices
  invoice-stats - Show revenue figures
"""

import argparse
import logging
import sys
from dataclasses import replace
from decimal import Decimal
from pathlib import Path
from tabulate import tabulate
from typing import List, Optional

from ledger import (
    BackgroundWriter,
    DocumentExpiry,
    InvoiceStatus,
    InvoicingLedger,
    LedgerError,
    MaintenanceDue,
    MileageRegressionError,
    Settings,
    SyncWriter,
    VehicleLedger,
    YamlStateStore,
    load_settings,
)

logger = logging.getLogger("garage")

# =============================================================================
# Formatting helpers
# =============================================================================


def format_km(km: Optional[float]) -> str:
    """Format a distance or odometer reading for display."""
    return f"{km:,.0f}" if km is not None else "-"


def format_cost(cost) -> str:
    """Format an amount of money for display."""
    return f"€{Decimal(str(cost)):,.2f}" if cost is not None else "-"


def format_consumption(value: Optional[float]) -> str:
    return f"{value:.1f} L/100km" if value is not None else "-"


def format_days(days: Optional[int]) -> str:
    """Format remaining days ('12d', or '-3d' when late)."""
    if days is None:
        return "-"
    return f"{days}d"


def truncate(text: Optional[str], max_len: int = 30) -> str:
    """Truncate text with ellipsis if too long."""
    if text is None:
        return "-"
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


# =============================================================================
# Ledger setup
# =============================================================================


def make_writer(store: YamlStateStore, settings: Settings):
    if settings.background_writes:
        return BackgroundWriter(store)
    return SyncWriter(store)


def open_vehicle_ledger(settings: Settings):
    """Open the vehicle ledger in the data directory. Returns (ledger, writer)."""
    store = YamlStateStore(settings.vehicles_file)
    writer = make_writer(store, settings)
    return VehicleLedger.open(store, writer=writer), writer


def open_invoicing_ledger(settings: Settings):
    """Open the invoicing ledger in the data directory. Returns (ledger, writer)."""
    store = YamlStateStore(settings.invoicing_file)
    writer = make_writer(store, settings)
    ledger = InvoicingLedger.open(
        store, writer=writer, number_prefix=settings.invoice_prefix
    )
    return ledger, writer


# =============================================================================
# Cars command
# =============================================================================


def make_cars_table(cars) -> List[List[str]]:
    rows = []
    for car in cars:
        rows.append(
            [
                car.id,
                car.name,
                car.license_plate,
                format_km(car.current_mileage),
                car.last_updated_mileage or "-",
                "yes" if car.is_active else "no",
            ]
        )
    return rows


def cmd_cars(args, settings: Settings):
    """List the cars in the vehicle ledger."""
    ledger, _ = open_vehicle_ledger(settings)
    cars = ledger.cars if args.all else ledger.active_cars

    if not cars:
        print("No cars found.")
        return 0

    headers = ["ID", "Car", "Plate", "Mileage", "Updated", "Active"]
    print(tabulate(make_cars_table(cars), headers=headers, tablefmt="simple"))
    return 0


# =============================================================================
# Status command
# =============================================================================


def make_maintenance_table(dues: List[MaintenanceDue], ledger) -> List[List[str]]:
    """Convert maintenance due list to table rows."""
    rows = []
    for due in dues:
        car = ledger.get_car(due.car_id)
        rows.append(
            [
                car.name if car else due.car_id,
                truncate(due.record.description),
                due.record.next_due_date or "-",
                format_km(due.record.next_due_mileage),
                format_days(due.days_remaining),
                format_km(due.km_remaining),
            ]
        )
    return rows


def make_documents_table(expiring: List[DocumentExpiry], ledger) -> List[List[str]]:
    rows = []
    for item in expiring:
        car = ledger.get_car(item.car_id)
        rows.append(
            [
                car.name if car else item.car_id,
                truncate(item.document.name),
                item.document.type.value,
                item.document.expiry_date,
                format_days(item.days_remaining),
            ]
        )
    return rows


def cmd_status(args, settings: Settings):
    """Show overdue and upcoming maintenance, expiring documents and reminders."""
    ledger, _ = open_vehicle_ledger(settings)
    days = args.days if args.days is not None else settings.due_soon_days

    if args.car and ledger.get_car(args.car) is None:
        print(f"Error: Unknown car '{args.car}'")
        return 1

    overdue = ledger.get_overdue_maintenance(args.car)
    upcoming = ledger.get_upcoming_maintenance(args.car, days_ahead=days)
    expiring = ledger.get_expiring_documents(args.car, days_ahead=days)
    overdue_reminders = ledger.get_overdue_reminders(args.car)
    reminders = ledger.get_active_reminders(args.car)

    headers = ["Car", "Maintenance", "Due (date)", "Due (km)", "Remaining", "Remaining (km)"]

    if overdue:
        print("OVERDUE:")
        print(tabulate(make_maintenance_table(overdue, ledger), headers=headers, tablefmt="simple"))
        print()

    if upcoming:
        print(f"DUE IN THE NEXT {days} DAYS:")
        print(tabulate(make_maintenance_table(upcoming, ledger), headers=headers, tablefmt="simple"))
        print()

    if expiring:
        print("EXPIRING DOCUMENTS:")
        print(
            tabulate(
                make_documents_table(expiring, ledger),
                headers=["Car", "Document", "Type", "Expires", "Remaining"],
                tablefmt="simple",
            )
        )
        print()

    if reminders:
        late = {r.id for r in overdue_reminders}
        print(f"REMINDERS ({len(late)} overdue):")
        for reminder in reminders:
            flag = "!" if reminder.id in late else " "
            parts = [reminder.due_date]
            if reminder.due_mileage is not None:
                parts.append(f"{format_km(reminder.due_mileage)} km")
            due = " / ".join(p for p in parts if p)
            print(f" {flag} {reminder.title}" + (f" (due {due})" if due else ""))
        print()

    if not (overdue or upcoming or expiring or reminders):
        print("Nothing due.")

    return 0


# =============================================================================
# Stats command
# =============================================================================


def cmd_stats(args, settings: Settings):
    """Show cost and consumption totals for a car."""
    ledger, _ = open_vehicle_ledger(settings)
    car = ledger.get_car(args.car_id)
    if car is None:
        print(f"Error: Unknown car '{args.car_id}'")
        return 1

    stats = ledger.get_car_stats(car.id)
    print(f"Car: {car.name} ({car.license_plate})")
    print(f"Current mileage: {format_km(car.current_mileage)}")
    print()

    rows = [
        ["Total expenses", format_cost(stats.total_expenses)],
        ["Fuel", format_cost(stats.total_fuel_cost)],
        ["Maintenance", format_cost(stats.total_maintenance_cost)],
        ["Maintenance records", stats.maintenance_count],
        ["Average consumption", format_consumption(stats.avg_fuel_consumption)],
        ["Km since last service", format_km(stats.km_since_last_maintenance)],
        ["Next service (date)", stats.next_maintenance_date or "-"],
        ["Next service (km)", format_km(stats.next_maintenance_mileage)],
    ]
    print(tabulate(rows, tablefmt="simple"))
    return 0


# =============================================================================
# Fuel command
# =============================================================================


def cmd_fuel(args, settings: Settings):
    """Show monthly fuel trends for a car."""
    ledger, _ = open_vehicle_ledger(settings)
    car = ledger.get_car(args.car_id)
    if car is None:
        print(f"Error: Unknown car '{args.car_id}'")
        return 1

    trends = ledger.get_fuel_trends(car.id, months=args.months)
    print(f"Car: {car.name}")
    print(f"Average consumption: {format_consumption(ledger.calculate_fuel_efficiency(car.id))}")
    print()

    if not trends:
        print("No fill-ups in this period.")
        return 0

    rows = [
        [
            t.month,
            t.fill_ups,
            f"{t.liters:,.2f}",
            format_cost(t.total_cost),
            format_consumption(t.avg_consumption),
        ]
        for t in trends
    ]
    headers = ["Month", "Fill-ups", "Liters", "Cost", "Consumption"]
    print(tabulate(rows, headers=headers, tablefmt="simple"))
    return 0


# =============================================================================
# Update Miles command
# =============================================================================


def cmd_update_miles(args, settings: Settings):
    """Record a new odometer reading."""
    ledger, writer = open_vehicle_ledger(settings)
    try:
        car = ledger.get_car(args.car_id)
        if car is None:
            print(f"Error: Unknown car '{args.car_id}'")
            return 1

        print(f"Car: {car.name}")
        print(f"Current mileage: {format_km(car.current_mileage)}")
        print(f"New mileage:     {format_km(args.mileage)}")
        print()

        if args.mileage < car.current_mileage and not args.force:
            print("Error: New mileage is lower than the current one (use --force to correct it)")
            return 1

        if args.dry_run:
            print("(dry run - no changes made)")
            return 0

        try:
            ledger.update_mileage(car.id, args.mileage, force=args.force)
            writer.flush()
        except MileageRegressionError as e:
            print(f"Error: {e.detail}")
            return 1
        except OSError as e:
            print(f"Error: Cannot save {settings.vehicles_file}: {e}")
            return 1
    finally:
        writer.close()
    print("Mileage updated.")
    return 0


# =============================================================================
# Invoices commands
# =============================================================================


def make_invoices_table(invoices) -> List[List[str]]:
    rows = []
    for invoice in invoices:
        rows.append(
            [
                invoice.number,
                invoice.issue_date,
                invoice.due_date,
                truncate(invoice.customer_name, 25),
                invoice.status.value,
                format_cost(invoice.total_amount),
            ]
        )
    return rows


def cmd_invoices(args, settings: Settings):
    """List invoices, newest number first."""
    ledger, _ = open_invoicing_ledger(settings)
    invoices = ledger.invoices
    if args.status:
        invoices = [i for i in invoices if i.status == InvoiceStatus(args.status)]

    if not invoices:
        print("No invoices found.")
        return 0

    invoices = sorted(invoices, key=lambda i: i.number, reverse=True)
    headers = ["Number", "Issued", "Due", "Customer", "Status", "Total"]
    print(tabulate(make_invoices_table(invoices), headers=headers, tablefmt="simple"))
    print()
    print(f"Next number: {ledger.peek_next_invoice_number()}")
    return 0


def cmd_invoice_stats(args, settings: Settings):
    """Show revenue figures."""
    ledger, _ = open_invoicing_ledger(settings)
    stats = ledger.get_invoice_stats()
    growth = stats.revenue_growth

    rows = [
        ["Invoices", stats.total_invoices],
        ["Revenue", format_cost(stats.total_revenue)],
        ["Pending", format_cost(stats.pending_amount)],
        ["Overdue", format_cost(stats.overdue_amount)],
        ["This month", format_cost(stats.this_month_revenue)],
        ["Last month", format_cost(stats.last_month_revenue)],
        ["Growth", f"{growth:+.1f}%" if growth is not None else "-"],
        ["Average invoice", format_cost(stats.average_invoice_value)],
    ]
    print(tabulate(rows, tablefmt="simple"))
    return 0


# =============================================================================
# Main
# =============================================================================

COMMANDS = {
    "cars": cmd_cars,
    "status": cmd_status,
    "stats": cmd_stats,
    "fuel": cmd_fuel,
    "update-miles": cmd_update_miles,
    "invoices": cmd_invoices,
    "invoice-stats": cmd_invoice_stats,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Garage vehicle and invoicing ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s cars
  %(prog)s status --days 60
  %(prog)s --data-dir ~/garage stats 5f0c...
  %(prog)s fuel 5f0c... --months 6
  %(prog)s update-miles 5f0c... 58000
  %(prog)s invoices --status sent
  %(prog)s invoice-stats
""",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        help="Directory holding vehicles.yaml and invoicing.yaml (default: $GARAGE_DATA_DIR or ./data)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        help="Logging level (default: $GARAGE_LOG_LEVEL or WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    cars_parser = subparsers.add_parser("cars", help="List cars")
    cars_parser.add_argument(
        "--all",
        action="store_true",
        help="Include inactive cars",
    )

    status_parser = subparsers.add_parser(
        "status", help="Show overdue and upcoming maintenance"
    )
    status_parser.add_argument("--car", type=str, help="Only show this car")
    status_parser.add_argument(
        "--days",
        type=int,
        help="Look-ahead window in days (default: $GARAGE_DUE_SOON_DAYS or 30)",
    )

    stats_parser = subparsers.add_parser("stats", help="Show totals for a car")
    stats_parser.add_argument("car_id", type=str, help="Car id")

    fuel_parser = subparsers.add_parser("fuel", help="Show monthly fuel trends")
    fuel_parser.add_argument("car_id", type=str, help="Car id")
    fuel_parser.add_argument(
        "--months",
        type=int,
        default=12,
        help="Number of calendar months to show (default: 12)",
    )

    update_miles_parser = subparsers.add_parser(
        "update-miles", help="Record a new odometer reading"
    )
    update_miles_parser.add_argument("car_id", type=str, help="Car id")
    update_miles_parser.add_argument("mileage", type=float, help="Current mileage")
    update_miles_parser.add_argument(
        "--force",
        action="store_true",
        help="Allow a reading lower than the current one",
    )
    update_miles_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be updated without saving",
    )

    invoices_parser = subparsers.add_parser("invoices", help="List invoices")
    invoices_parser.add_argument(
        "--status",
        choices=[s.value for s in InvoiceStatus],
        help="Only show invoices with this status",
    )

    subparsers.add_parser("invoice-stats", help="Show revenue figures")
    return parser


def main(argv=None, environ=None):
    args = build_parser().parse_args(argv)

    settings = load_settings(environ)
    if args.data_dir is not None:
        settings = replace(settings, data_dir=args.data_dir)
    level = (args.log_level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return COMMANDS[args.command](args, settings)
    except LedgerError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e.detail}")
        return 1


if __name__ == "__main__":
    sys.exit(main() or 0)
