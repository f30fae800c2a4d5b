"""Closed value sets for status, category and type fields."""

from enum import Enum


class MaintenanceType(Enum):
    ROUTINE = "routine"
    REPAIR = "repair"
    INSPECTION = "inspection"
    OTHER = "other"


class MaintenanceStatus(Enum):
    """Stored state of a maintenance record."""

    COMPLETED = "completed"
    SCHEDULED = "scheduled"
    OVERDUE = "overdue"


class ExpenseCategory(Enum):
    FUEL = "fuel"
    MAINTENANCE = "maintenance"
    INSURANCE = "insurance"
    PARKING = "parking"
    TOLL = "toll"
    TAX = "tax"
    OTHER = "other"


class DocumentType(Enum):
    INSURANCE = "insurance"
    REGISTRATION = "registration"
    INSPECTION = "inspection"
    WARRANTY = "warranty"
    OTHER = "other"


class FuelType(Enum):
    GASOLINE = "gasoline"
    DIESEL = "diesel"
    ELECTRIC = "electric"
    HYBRID = "hybrid"
    LPG = "lpg"


class InvoiceType(Enum):
    CUSTOMER = "customer"
    SUPPLIER = "supplier"
    EXPENSE = "expense"
    OTHER = "other"


class InvoiceStatus(Enum):
    """
    Stored invoice status.

    OVERDUE is only stored when a caller sets it explicitly; the ledger
    reports sent invoices past their due date as overdue without changing
    their status.
    """

    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"

    @property
    def is_open(self) -> bool:
        return self in (InvoiceStatus.DRAFT, InvoiceStatus.SENT, InvoiceStatus.OVERDUE)


class PaymentMethod(Enum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    CHECK = "check"
    OTHER = "other"
