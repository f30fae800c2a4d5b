"""Conversion between ledger entities and the camelCase state blob."""

from dataclasses import fields, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from .car import Car
from .customer import Customer
from .document import Document
from .expense import Expense
from .fuel_record import FuelRecord
from .invoice import Invoice, InvoiceItem
from .invoice_template import InvoiceTemplate, TemplateItem
from .maintenance_record import MaintenanceRecord
from .reminder import Reminder

# Nested entity lists, per owning class.
_NESTED: Dict[type, Dict[str, type]] = {
    Car: {
        "maintenance_records": MaintenanceRecord,
        "expenses": Expense,
        "documents": Document,
        "fuel_records": FuelRecord,
        "reminders": Reminder,
    },
    Invoice: {"items": InvoiceItem},
    InvoiceTemplate: {"items": TemplateItem},
}


def camel_case(name: str) -> str:
    """Convert a snake_case attribute name to the camelCase key used on disk."""
    first, *rest = name.split("_")
    return first + "".join(part.capitalize() for part in rest)


def _dump_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_dump_value(v) for v in value]
    if is_dataclass(value):
        return entity_to_dict(value)
    return value


def _load_value(value: Any) -> Any:
    # Hand-edited YAML may contain unquoted dates.
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    if isinstance(value, date):
        return value.isoformat()
    return value


def entity_to_dict(entity: Any) -> Dict[str, Any]:
    """
    Serialize an entity to a dict with camelCase keys.

    None values are omitted. Derived fields are written for readers of the
    file but ignored when loading. Unknown fields kept in `extra` are
    written back unchanged.
    """
    d: Dict[str, Any] = {}
    for f in fields(entity):
        if f.name == "extra":
            continue
        value = getattr(entity, f.name)
        if value is None:
            continue
        d[camel_case(f.name)] = _dump_value(value)
    for key, value in getattr(entity, "extra", {}).items():
        d.setdefault(key, value)
    return d


def entity_from_dict(cls: Type, data: Dict[str, Any]) -> Any:
    """
    Build an entity of type cls from a camelCase dict.

    Keys that do not match a field go to `extra`; derived fields are
    skipped and recomputed by the constructor.
    """
    known = {camel_case(f.name): f for f in fields(cls) if f.name != "extra"}
    nested = _NESTED.get(cls, {})
    kwargs: Dict[str, Any] = {}
    extra: Dict[str, Any] = {}
    for key, value in data.items():
        f = known.get(key)
        if f is None:
            extra[key] = value
            continue
        if not f.init:
            continue
        if f.name in nested:
            value = [entity_from_dict(nested[f.name], v) for v in value or []]
        kwargs[f.name] = _load_value(value)
    kwargs["extra"] = extra
    return cls(**kwargs)


# =============================================================================
# State blobs
# =============================================================================


def dump_vehicle_state(cars: List[Car], version: int) -> Dict[str, Any]:
    return {
        "version": version,
        "kind": "vehicles",
        "cars": [entity_to_dict(car) for car in cars],
    }


def parse_vehicle_state(state: Dict[str, Any]) -> List[Car]:
    return [entity_from_dict(Car, c) for c in state.get("cars") or []]


def dump_invoicing_state(
    invoices: List[Invoice],
    customers: List[Customer],
    templates: List[InvoiceTemplate],
    next_invoice_number: int,
    invoice_number_year: Optional[int],
    version: int,
) -> Dict[str, Any]:
    state: Dict[str, Any] = {
        "version": version,
        "kind": "invoicing",
        "nextInvoiceNumber": next_invoice_number,
    }
    if invoice_number_year is not None:
        state["invoiceNumberYear"] = invoice_number_year
    state["invoices"] = [entity_to_dict(i) for i in invoices]
    state["customers"] = [entity_to_dict(c) for c in customers]
    state["templates"] = [entity_to_dict(t) for t in templates]
    return state


def parse_invoicing_state(state: Dict[str, Any]) -> Dict[str, Any]:
    """Keyword arguments for InvoicingLedger built from a state blob."""
    return {
        "invoices": [entity_from_dict(Invoice, i) for i in state.get("invoices") or []],
        "customers": [
            entity_from_dict(Customer, c) for c in state.get("customers") or []
        ],
        "templates": [
            entity_from_dict(InvoiceTemplate, t) for t in state.get("templates") or []
        ],
        "next_invoice_number": state.get("nextInvoiceNumber", 1),
        "invoice_number_year": state.get("invoiceNumberYear"),
    }
