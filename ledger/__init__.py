"""
Vehicle and invoicing ledgers for a small garage.

This package provides:
- VehicleLedger: Cars with their maintenance, expenses, documents, fill-ups
  and reminders, plus the analytics derived from them
- InvoicingLedger: Invoices with derived totals, customers, templates and
  yearly invoice numbering
- Entities: Frozen dataclasses for every record kind
- Stores: YAML and in-memory persistence with versioned, schema-checked state
- Writers: Synchronous and background persistence of snapshots
"""

from .enums import (
    DocumentType,
    ExpenseCategory,
    FuelType,
    InvoiceStatus,
    InvoiceType,
    MaintenanceStatus,
    MaintenanceType,
    PaymentMethod,
)
from .exceptions import (
    CustomerInUseError,
    InvalidStatusTransitionError,
    LedgerError,
    MileageRegressionError,
    StateLoadError,
    ValidationError,
)
from .car import Car
from .maintenance_record import MaintenanceRecord
from .expense import Expense
from .document import Document
from .fuel_record import FuelRecord
from .reminder import Reminder
from .customer import Customer
from .invoice import Invoice, InvoiceItem
from .invoice_template import InvoiceTemplate, TemplateItem
from .due import DocumentExpiry, MaintenanceDue
from .stats import CarStats, FleetStats, FuelTrend, InvoiceStats
from .calculations import InvoiceTotals, calculate_invoice_totals
from .config import Settings, load_settings
from .loader import (
    SCHEMA_VERSION,
    BackgroundWriter,
    MemoryStateStore,
    StateStore,
    SyncWriter,
    YamlStateStore,
    migrate_state,
)
from .vehicle_ledger import VehicleLedger
from .invoicing_ledger import InvoicingLedger

__all__ = [
    "DocumentType",
    "ExpenseCategory",
    "FuelType",
    "InvoiceStatus",
    "InvoiceType",
    "MaintenanceStatus",
    "MaintenanceType",
    "PaymentMethod",
    "CustomerInUseError",
    "InvalidStatusTransitionError",
    "LedgerError",
    "MileageRegressionError",
    "StateLoadError",
    "ValidationError",
    "Car",
    "MaintenanceRecord",
    "Expense",
    "Document",
    "FuelRecord",
    "Reminder",
    "Customer",
    "Invoice",
    "InvoiceItem",
    "InvoiceTemplate",
    "TemplateItem",
    "DocumentExpiry",
    "MaintenanceDue",
    "CarStats",
    "FleetStats",
    "FuelTrend",
    "InvoiceStats",
    "InvoiceTotals",
    "calculate_invoice_totals",
    "Settings",
    "load_settings",
    "SCHEMA_VERSION",
    "BackgroundWriter",
    "MemoryStateStore",
    "StateStore",
    "SyncWriter",
    "YamlStateStore",
    "migrate_state",
    "VehicleLedger",
    "InvoicingLedger",
]
