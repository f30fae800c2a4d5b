"""InvoiceTemplate class for reusable sets of invoice lines."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from .calculations import to_decimal
from .enums import InvoiceType
from .validators import (
    coerce_enum,
    require_non_negative,
    require_percentage,
    require_positive,
)


@dataclass(frozen=True)
class TemplateItem:
    """Shape of an invoice line without id or computed amounts."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    vat_rate: Decimal
    discount: Optional[Decimal] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("quantity", "unit_price", "vat_rate", "discount"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, to_decimal(value))
        require_positive("TemplateItem", "quantity", self.quantity)
        require_non_negative("TemplateItem", "unit_price", self.unit_price)
        require_non_negative("TemplateItem", "vat_rate", self.vat_rate)
        require_percentage("TemplateItem", "discount", self.discount)


@dataclass(frozen=True)
class InvoiceTemplate:
    """Named prototype used to seed the lines of a new invoice."""

    id: str
    name: str
    type: InvoiceType = InvoiceType.CUSTOMER
    items: Tuple[TemplateItem, ...] = field(default_factory=tuple)
    default_payment_terms: Optional[str] = None
    default_notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        coerce_enum(self, "type", InvoiceType)
        object.__setattr__(self, "items", tuple(self.items or ()))
