"""Helper functions for invoice math, fuel consumption and due checks."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Sequence, Union

from dateutil.relativedelta import relativedelta

Number = Union[int, float, str, Decimal]

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")


# =============================================================================
# Money
# =============================================================================


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without picking up float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def round_money(value: Number) -> Decimal:
    """Round half-up to cents."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineAmounts:
    """Unrounded amounts for a single invoice line."""

    gross: Decimal
    discount_amount: Decimal
    net: Decimal
    vat: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    """The four derived monetary fields of an invoice."""

    subtotal: Decimal
    total_vat: Decimal
    total_amount: Decimal
    total_discount: Decimal


def price_line(
    quantity: Number,
    unit_price: Number,
    vat_rate: Number,
    discount: Optional[Number] = None,
) -> LineAmounts:
    """
    Price one invoice line.

    - gross = quantity * unit_price
    - discount_amount = gross * discount / 100
    - net = gross - discount_amount
    - vat = net * vat_rate / 100 (VAT applies to the discounted net)
    """
    gross = to_decimal(quantity) * to_decimal(unit_price)
    discount_amount = gross * to_decimal(discount or 0) / HUNDRED
    net = gross - discount_amount
    vat = net * to_decimal(vat_rate) / HUNDRED
    return LineAmounts(gross=gross, discount_amount=discount_amount, net=net, vat=vat)


def calculate_invoice_totals(items: Iterable) -> InvoiceTotals:
    """
    Compute subtotal, VAT, discount and grand total for invoice lines.

    Items only need quantity, unit_price, vat_rate and discount attributes.
    Lines are summed at full precision; each sum is then rounded half-up to
    cents and total_amount = subtotal + total_vat.
    """
    subtotal = Decimal(0)
    total_vat = Decimal(0)
    total_discount = Decimal(0)
    for item in items:
        line = price_line(item.quantity, item.unit_price, item.vat_rate, item.discount)
        subtotal += line.net
        total_vat += line.vat
        total_discount += line.discount_amount

    subtotal = round_money(subtotal)
    total_vat = round_money(total_vat)
    return InvoiceTotals(
        subtotal=subtotal,
        total_vat=total_vat,
        total_amount=subtotal + total_vat,
        total_discount=round_money(total_discount),
    )


# =============================================================================
# Fuel
# =============================================================================


def fuel_consumption_samples(records: Iterable) -> List[float]:
    """
    Consumption samples in L/100km from full-tank fill-ups.

    Only full-tank records count. They are sorted by mileage (stable) and
    each consecutive pair with a positive distance yields
    liters_of_later_fill * 100 / distance.
    """
    full = sorted((r for r in records if r.is_full_tank), key=lambda r: r.mileage)
    samples = []
    for previous, current in zip(full, full[1:]):
        distance = current.mileage - previous.mileage
        if distance > 0:
            samples.append(current.liters * 100 / distance)
    return samples


def average_consumption(records: Iterable) -> Optional[float]:
    """Mean of the consumption samples, None when there are none."""
    samples = fuel_consumption_samples(records)
    if not samples:
        return None
    return sum(samples) / len(samples)


# =============================================================================
# Dates and due thresholds
# =============================================================================


def parse_date(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    return date.fromisoformat(value[:10])


def month_key(value: str) -> str:
    """Calendar bucket 'YYYY-MM' of an ISO date."""
    return value[:7]


def month_start(day: date, months_back: int = 0) -> date:
    """First day of the month, optionally some months earlier."""
    return day.replace(day=1) - relativedelta(months=months_back)


def is_date_past(due_date: Optional[str], today: date) -> bool:
    """True when due_date is strictly before today."""
    due = parse_date(due_date)
    return due is not None and due < today


def is_mileage_reached(current: float, due_mileage: Optional[float]) -> bool:
    """True once the odometer has reached the due mileage."""
    return due_mileage is not None and current >= due_mileage


def is_within_window(value: Optional[str], today: date, days_ahead: int) -> bool:
    """True when today <= value <= today + days_ahead."""
    day = parse_date(value)
    if day is None:
        return False
    return today <= day <= today + relativedelta(days=days_ahead)


def days_between(start: date, end: Optional[str]) -> Optional[int]:
    day = parse_date(end)
    if day is None:
        return None
    return (day - start).days


def first_due(records: Sequence) -> Optional[object]:
    """
    Record with the earliest due threshold.

    Records with a next_due_date order by date; records with only a
    next_due_mileage come after them, ordered by mileage. Ties keep the
    original order.
    """
    candidates = [
        r for r in records
        if r.next_due_date is not None or r.next_due_mileage is not None
    ]
    if not candidates:
        return None

    def sort_key(record):
        if record.next_due_date is not None:
            return (0, record.next_due_date, 0)
        return (1, "", record.next_due_mileage)

    return sorted(candidates, key=sort_key)[0]
