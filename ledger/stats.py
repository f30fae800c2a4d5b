"""Dataclasses for the analytics returned by the ledgers."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass
class CarStats:
    """Per-car totals; the zeroed default is returned for unknown cars."""

    total_expenses: float = 0
    maintenance_count: int = 0
    total_fuel_cost: float = 0
    total_maintenance_cost: float = 0
    avg_fuel_consumption: Optional[float] = None
    km_since_last_maintenance: Optional[float] = None
    next_maintenance_date: Optional[str] = None
    next_maintenance_mileage: Optional[float] = None


@dataclass
class FleetStats:
    """Totals over the active cars."""

    total_cars: int = 0
    total_expenses: float = 0
    total_fuel_cost: float = 0
    total_maintenance_cost: float = 0
    overdue_maintenance_count: int = 0
    expiring_documents_count: int = 0
    active_reminders_count: int = 0
    cars_needing_attention: int = 0


@dataclass
class FuelTrend:
    """Fuel spending and consumption for one calendar month."""

    month: str
    total_cost: float = 0
    liters: float = 0
    fill_ups: int = 0
    avg_consumption: Optional[float] = None


@dataclass
class InvoiceStats:
    total_invoices: int = 0
    total_revenue: Decimal = Decimal(0)
    pending_amount: Decimal = Decimal(0)
    overdue_amount: Decimal = Decimal(0)
    this_month_revenue: Decimal = Decimal(0)
    last_month_revenue: Decimal = Decimal(0)
    average_invoice_value: Decimal = Decimal(0)

    @property
    def revenue_growth(self) -> Optional[float]:
        """Month-over-month revenue change in percent."""
        if not self.last_month_revenue:
            return None
        change = self.this_month_revenue - self.last_month_revenue
        return float(change / self.last_month_revenue * 100)
