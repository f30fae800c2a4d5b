"""Invoice and InvoiceItem classes."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from .calculations import calculate_invoice_totals, price_line, round_money, to_decimal
from .enums import InvoiceStatus, InvoiceType, PaymentMethod
from .validators import (
    coerce_enum,
    require_non_negative,
    require_percentage,
    require_positive,
)

# Fields computed from the line items; never accepted from callers.
DERIVED_TOTALS = ("subtotal", "total_vat", "total_amount", "total_discount")


@dataclass(frozen=True)
class InvoiceItem:
    """
    One invoice line.

    total is the discounted net amount and vat_amount the VAT on it, both
    rounded to cents.
    """

    id: str
    description: str
    quantity: Decimal
    unit_price: Decimal
    vat_rate: Decimal
    discount: Optional[Decimal] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    total: Decimal = field(init=False, default=Decimal(0))
    vat_amount: Decimal = field(init=False, default=Decimal(0))

    def __post_init__(self):
        for name in ("quantity", "unit_price", "vat_rate", "discount"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, to_decimal(value))
        require_positive("InvoiceItem", "quantity", self.quantity)
        require_non_negative("InvoiceItem", "unit_price", self.unit_price)
        require_non_negative("InvoiceItem", "vat_rate", self.vat_rate)
        require_percentage("InvoiceItem", "discount", self.discount)

        line = price_line(self.quantity, self.unit_price, self.vat_rate, self.discount)
        object.__setattr__(self, "total", round_money(line.net))
        object.__setattr__(self, "vat_amount", round_money(line.vat))


@dataclass(frozen=True)
class Invoice:
    """
    An issued (or draft) invoice.

    Customer fields are a snapshot taken when the invoice is created, so
    later edits to the customer do not change issued invoices. subtotal,
    total_vat, total_amount and total_discount are always recomputed from
    items.
    """

    id: str
    number: str
    customer_name: str
    issue_date: str
    due_date: str
    type: InvoiceType = InvoiceType.CUSTOMER
    status: InvoiceStatus = InvoiceStatus.DRAFT
    paid_date: Optional[str] = None
    customer_id: Optional[str] = None
    customer_email: Optional[str] = None
    customer_address: Optional[str] = None
    customer_vat_number: Optional[str] = None
    customer_fiscal_code: Optional[str] = None
    items: Tuple[InvoiceItem, ...] = field(default_factory=tuple)
    payment_method: Optional[PaymentMethod] = None
    payment_terms: Optional[str] = None
    bank_details: Optional[str] = None
    notes: Optional[str] = None
    internal_notes: Optional[str] = None
    car_id: Optional[str] = None
    repair_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    subtotal: Decimal = field(init=False, default=Decimal(0))
    total_vat: Decimal = field(init=False, default=Decimal(0))
    total_amount: Decimal = field(init=False, default=Decimal(0))
    total_discount: Decimal = field(init=False, default=Decimal(0))

    def __post_init__(self):
        coerce_enum(self, "type", InvoiceType)
        coerce_enum(self, "status", InvoiceStatus)
        coerce_enum(self, "payment_method", PaymentMethod)
        object.__setattr__(self, "items", tuple(self.items or ()))

        totals = calculate_invoice_totals(self.items)
        for name in DERIVED_TOTALS:
            object.__setattr__(self, name, getattr(totals, name))

    @property
    def sequence(self) -> int:
        """Progressive part of the invoice number."""
        return int(self.number.rsplit("-", 1)[-1])
