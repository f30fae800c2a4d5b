"""InvoicingLedger - invoices, customers, templates and invoice numbering."""

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from dateutil.relativedelta import relativedelta

from .calculations import (
    InvoiceTotals,
    calculate_invoice_totals,
    is_date_past,
    month_key,
    month_start,
    parse_date,
    round_money,
)
from .clock import Clock, IdFactory, new_id, system_clock, timestamp, today
from .customer import Customer
from .enums import InvoiceStatus
from .exceptions import (
    CustomerInUseError,
    InvalidStatusTransitionError,
    StateLoadError,
    ValidationError,
)
from .invoice import Invoice, InvoiceItem
from .invoice_template import InvoiceTemplate, TemplateItem
from .loader import SCHEMA_VERSION, StateStore, SyncWriter, read_state
from .serialization import dump_invoicing_state, parse_invoicing_state
from .stats import InvoiceStats
from .validators import clean_patch

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_DAYS = 30

# Customer fields copied onto an invoice when it is created.
_SNAPSHOT = {
    "customer_name": lambda c: c.name,
    "customer_email": lambda c: c.email,
    "customer_address": lambda c: c.full_address,
    "customer_vat_number": lambda c: c.vat_number,
    "customer_fiscal_code": lambda c: c.fiscal_code,
}

_LINE_FIELDS = ("description", "quantity", "unit_price", "vat_rate", "discount")


def _line_values(line) -> Dict[str, Any]:
    if isinstance(line, Mapping):
        missing = [k for k in _LINE_FIELDS[:4] if line.get(k) is None]
        if missing:
            raise ValidationError(
                f"Invoice line is missing {', '.join(missing)}",
                extra={"fields": missing},
            )
        values = {k: line.get(k) for k in _LINE_FIELDS}
        values["extra"] = dict(line.get("extra") or {})
        return values
    if isinstance(line, (InvoiceItem, TemplateItem)):
        values = {k: getattr(line, k) for k in _LINE_FIELDS}
        values["extra"] = dict(line.extra)
        return values
    raise TypeError(f"Cannot use {type(line).__name__} as an invoice line")


def _coerce_status(status) -> InvoiceStatus:
    try:
        return InvoiceStatus(status)
    except ValueError:
        raise ValidationError(
            f"Unknown invoice status {status!r}", extra={"status": str(status)}
        ) from None


class InvoicingLedger:
    """
    In-memory store of invoices, customers and invoice templates.

    Invoice numbers have the form <prefix>-<year>-<sequence> with a
    three-digit zero-padded sequence that restarts every calendar year.
    Totals are always derived from the lines.
    """

    def __init__(
        self,
        invoices: Optional[List[Invoice]] = None,
        customers: Optional[List[Customer]] = None,
        templates: Optional[List[InvoiceTemplate]] = None,
        next_invoice_number: int = 1,
        invoice_number_year: Optional[int] = None,
        number_prefix: str = "FAT",
        clock: Optional[Clock] = None,
        id_factory: Optional[IdFactory] = None,
        writer=None,
    ):
        self._invoices: List[Invoice] = list(invoices or [])
        self._customers: List[Customer] = list(customers or [])
        self._templates: List[InvoiceTemplate] = list(templates or [])
        self._next_number = next_invoice_number
        self._number_year = invoice_number_year
        self.number_prefix = number_prefix
        self._clock = clock or system_clock
        self._new_id = id_factory or new_id
        self._writer = writer

    @classmethod
    def open(
        cls,
        store: StateStore,
        writer=None,
        number_prefix: str = "FAT",
        clock: Optional[Clock] = None,
        id_factory: Optional[IdFactory] = None,
    ) -> "InvoicingLedger":
        """Load the ledger from a store; an empty store gives an empty ledger."""
        state = read_state(store, "invoicing")
        try:
            kwargs = parse_invoicing_state(state) if state else {}
        except (TypeError, ValidationError) as e:
            raise StateLoadError(f"Cannot build invoicing ledger from stored state: {e}") from e
        ledger = cls(
            number_prefix=number_prefix,
            clock=clock,
            id_factory=id_factory,
            writer=writer or SyncWriter(store),
            **kwargs,
        )
        logger.info(
            f"Loaded {len(ledger._invoices)} invoices, {len(ledger._customers)} customers"
        )
        return ledger

    # =========================================================================
    # State
    # =========================================================================

    def to_state(self) -> Dict[str, Any]:
        return dump_invoicing_state(
            self._invoices,
            self._customers,
            self._templates,
            self._next_number,
            self._number_year,
            SCHEMA_VERSION,
        )

    def _now(self) -> str:
        return timestamp(self._clock)

    def _commit(self) -> None:
        if self._writer is not None:
            self._writer.submit(self.to_state())

    def _make_items(self, lines: Iterable) -> List[InvoiceItem]:
        """Invoice items from dicts, invoice items or template items."""
        items = []
        for line in lines or []:
            item_id = line.get("id") if isinstance(line, Mapping) else getattr(line, "id", None)
            items.append(InvoiceItem(id=item_id or self._new_id(), **_line_values(line)))
        return items

    @staticmethod
    def _make_template_items(lines: Iterable) -> List[TemplateItem]:
        return [TemplateItem(**_line_values(line)) for line in lines or []]

    # =========================================================================
    # Invoice numbering
    # =========================================================================

    def _sequence_for(self, year: int) -> int:
        if self._number_year is not None and self._number_year != year:
            return 1
        return self._next_number

    def _format_number(self, year: int, sequence: int) -> str:
        return f"{self.number_prefix}-{year}-{sequence:03d}"

    def peek_next_invoice_number(self) -> str:
        """The number the next add_invoice will assign."""
        year = today(self._clock).year
        return self._format_number(year, self._sequence_for(year))

    # =========================================================================
    # Invoices
    # =========================================================================

    @property
    def invoices(self) -> List[Invoice]:
        return list(self._invoices)

    @staticmethod
    def calculate_invoice_totals(items: Iterable) -> InvoiceTotals:
        """Totals for lines given as dicts or item objects."""
        return calculate_invoice_totals(
            TemplateItem(**_line_values(i)) if isinstance(i, Mapping) else i for i in items
        )

    def get_invoice_by_id(self, invoice_id: str) -> Optional[Invoice]:
        for invoice in self._invoices:
            if invoice.id == invoice_id:
                return invoice
        return None

    def get_invoices_by_customer(self, customer_id: str) -> List[Invoice]:
        return [i for i in self._invoices if i.customer_id == customer_id]

    def get_invoices_by_repair(self, car_id: str, repair_id: str) -> List[Invoice]:
        return [
            i for i in self._invoices if i.car_id == car_id and i.repair_id == repair_id
        ]

    def add_invoice(
        self,
        customer_name: Optional[str] = None,
        items: Iterable = (),
        customer_id: Optional[str] = None,
        issue_date: Optional[str] = None,
        due_date: Optional[str] = None,
        **data,
    ) -> str:
        """
        Create an invoice and return its id.

        The invoice gets the next number of the current year. Totals passed
        by the caller are discarded and derived from the lines. When
        customer_id names a known customer, snapshot fields that are not
        given are copied from it. issue_date defaults to today and due_date
        to DEFAULT_PAYMENT_DAYS after the issue date.
        """
        data = clean_patch(Invoice, data, ("number",))
        data["customer_name"] = customer_name

        customer = self.get_customer_by_id(customer_id) if customer_id else None
        if customer is not None:
            for name, pick in _SNAPSHOT.items():
                if data.get(name) is None:
                    data[name] = pick(customer)
        elif customer_id:
            logger.warning(f"Invoice refers to unknown customer {customer_id}")
        if not data.get("customer_name"):
            raise ValidationError("Invoice needs a customer_name", extra={"field": "customer_name"})

        current_day = today(self._clock)
        issue_date = issue_date or current_day.isoformat()
        if due_date is None:
            due_date = (
                parse_date(issue_date) + relativedelta(days=DEFAULT_PAYMENT_DAYS)
            ).isoformat()

        year = current_day.year
        sequence = self._sequence_for(year)
        now = self._now()
        invoice = Invoice(
            id=self._new_id(),
            number=self._format_number(year, sequence),
            issue_date=issue_date,
            due_date=due_date,
            customer_id=customer_id,
            items=self._make_items(items),
            created_at=now,
            updated_at=now,
            **data,
        )
        if invoice.status == InvoiceStatus.PAID and invoice.paid_date is None:
            invoice = replace(invoice, paid_date=current_day.isoformat())

        self._invoices = self._invoices + [invoice]
        self._next_number = sequence + 1
        self._number_year = year
        self._commit()
        logger.info(f"Added invoice {invoice.number} ({invoice.total_amount})")
        return invoice.id

    def _check_transition(self, invoice: Invoice, status: InvoiceStatus) -> None:
        if invoice.status == InvoiceStatus.CANCELLED and status != InvoiceStatus.CANCELLED:
            raise InvalidStatusTransitionError(
                f"Invoice {invoice.number} is cancelled and cannot become {status.value}",
                extra={"invoice_id": invoice.id, "status": status.value},
            )

    def _paid_date_for(self, status: InvoiceStatus, paid_date: Optional[str]) -> Optional[str]:
        """paid_date of an invoice moving to status; only paid invoices keep one."""
        if status != InvoiceStatus.PAID:
            return None
        return paid_date or today(self._clock).isoformat()

    def _store_invoice(self, invoice: Invoice) -> Invoice:
        self._invoices = [invoice if i.id == invoice.id else i for i in self._invoices]
        self._commit()
        return invoice

    def update_invoice(self, invoice_id: str, **patch) -> Optional[Invoice]:
        """
        Merge-patch an invoice. New items replace the old ones and the
        totals are recomputed; the number can not be changed.
        """
        invoice = self.get_invoice_by_id(invoice_id)
        if invoice is None:
            logger.debug(f"update_invoice: unknown invoice {invoice_id}")
            return None
        patch = clean_patch(Invoice, patch, ("number",))
        if "items" in patch:
            patch["items"] = self._make_items(patch["items"])
        if "status" in patch:
            patch["status"] = _coerce_status(patch["status"])
            self._check_transition(invoice, patch["status"])
            patch["paid_date"] = self._paid_date_for(
                patch["status"], patch.get("paid_date") or invoice.paid_date
            )
        updated = self._store_invoice(replace(invoice, updated_at=self._now(), **patch))
        logger.info(f"Updated invoice {updated.number}")
        return updated

    def update_invoice_status(
        self, invoice_id: str, status, paid_date: Optional[str] = None
    ) -> Optional[Invoice]:
        """
        Move an invoice to a new status.

        Paying stamps paid_date (today unless given); leaving paid clears it.
        Cancelled invoices can not change status any more.
        """
        invoice = self.get_invoice_by_id(invoice_id)
        if invoice is None:
            logger.debug(f"update_invoice_status: unknown invoice {invoice_id}")
            return None
        status = _coerce_status(status)
        self._check_transition(invoice, status)

        updated = self._store_invoice(
            replace(
                invoice,
                status=status,
                paid_date=self._paid_date_for(status, paid_date),
                updated_at=self._now(),
            )
        )
        logger.info(f"Invoice {updated.number} is now {status.value}")
        return updated

    def delete_invoice(self, invoice_id: str) -> None:
        remaining = [i for i in self._invoices if i.id != invoice_id]
        if len(remaining) == len(self._invoices):
            logger.debug(f"delete_invoice: unknown invoice {invoice_id}")
            return
        self._invoices = remaining
        self._commit()
        logger.info(f"Deleted invoice {invoice_id}")

    def get_overdue_invoices(self) -> List[Invoice]:
        """Sent invoices past their due date, plus those marked overdue."""
        current_day = today(self._clock)
        return [
            i
            for i in self._invoices
            if i.status == InvoiceStatus.OVERDUE
            or (i.status == InvoiceStatus.SENT and is_date_past(i.due_date, current_day))
        ]

    def get_invoice_stats(self) -> InvoiceStats:
        """
        Revenue figures. Revenue counts paid invoices, bucketed by paid_date
        (issue_date when missing); cancelled invoices are ignored.
        """
        current_day = today(self._clock)
        this_month = month_key(current_day.isoformat())
        last_month = month_key(month_start(current_day, 1).isoformat())

        counted = [i for i in self._invoices if i.status != InvoiceStatus.CANCELLED]
        paid = [i for i in counted if i.status == InvoiceStatus.PAID]
        sent = [i for i in counted if i.status == InvoiceStatus.SENT]

        def total(invoices) -> Decimal:
            return sum((i.total_amount for i in invoices), Decimal(0))

        def revenue_in(month: str) -> Decimal:
            return total(i for i in paid if month_key(i.paid_date or i.issue_date) == month)

        revenue = total(paid)
        return InvoiceStats(
            total_invoices=len(counted),
            total_revenue=revenue,
            pending_amount=total(sent),
            overdue_amount=total(self.get_overdue_invoices()),
            this_month_revenue=revenue_in(this_month),
            last_month_revenue=revenue_in(last_month),
            average_invoice_value=round_money(revenue / len(paid)) if paid else Decimal(0),
        )

    # =========================================================================
    # Customers
    # =========================================================================

    @property
    def customers(self) -> List[Customer]:
        return list(self._customers)

    def get_customer_by_id(self, customer_id: str) -> Optional[Customer]:
        for customer in self._customers:
            if customer.id == customer_id:
                return customer
        return None

    def add_customer(self, name: str, is_company: bool = False, **details) -> str:
        details = clean_patch(Customer, details)
        now = self._now()
        customer = Customer(
            id=self._new_id(),
            name=name,
            is_company=is_company,
            created_at=now,
            updated_at=now,
            **details,
        )
        self._customers = self._customers + [customer]
        self._commit()
        logger.info(f"Added customer {customer.id} ({customer.name})")
        return customer.id

    def update_customer(self, customer_id: str, **patch) -> Optional[Customer]:
        """Merge-patch a customer. Issued invoices keep their snapshot."""
        customer = self.get_customer_by_id(customer_id)
        if customer is None:
            logger.debug(f"update_customer: unknown customer {customer_id}")
            return None
        updated = replace(customer, updated_at=self._now(), **clean_patch(Customer, patch))
        self._customers = [updated if c.id == customer_id else c for c in self._customers]
        self._commit()
        logger.info(f"Updated customer {customer_id}")
        return updated

    def delete_customer(self, customer_id: str) -> None:
        """
        Remove a customer. Raises CustomerInUseError while any of their
        invoices is still open (draft, sent or overdue).
        """
        if self.get_customer_by_id(customer_id) is None:
            logger.debug(f"delete_customer: unknown customer {customer_id}")
            return
        open_invoices = [
            i.number for i in self.get_invoices_by_customer(customer_id) if i.status.is_open
        ]
        if open_invoices:
            raise CustomerInUseError(
                f"Customer {customer_id} has open invoices: {', '.join(open_invoices)}",
                extra={"customer_id": customer_id, "invoices": open_invoices},
            )
        self._customers = [c for c in self._customers if c.id != customer_id]
        self._commit()
        logger.info(f"Deleted customer {customer_id}")

    # =========================================================================
    # Templates
    # =========================================================================

    @property
    def templates(self) -> List[InvoiceTemplate]:
        return list(self._templates)

    def get_template_by_id(self, template_id: str) -> Optional[InvoiceTemplate]:
        for template in self._templates:
            if template.id == template_id:
                return template
        return None

    def add_template(self, name: str, items: Iterable = (), **details) -> str:
        details = clean_patch(InvoiceTemplate, details)
        now = self._now()
        template = InvoiceTemplate(
            id=self._new_id(),
            name=name,
            items=self._make_template_items(items),
            created_at=now,
            updated_at=now,
            **details,
        )
        self._templates = self._templates + [template]
        self._commit()
        logger.info(f"Added template {template.id} ({template.name})")
        return template.id

    def update_template(self, template_id: str, **patch) -> Optional[InvoiceTemplate]:
        template = self.get_template_by_id(template_id)
        if template is None:
            logger.debug(f"update_template: unknown template {template_id}")
            return None
        patch = clean_patch(InvoiceTemplate, patch)
        if "items" in patch:
            patch["items"] = self._make_template_items(patch["items"])
        updated = replace(template, updated_at=self._now(), **patch)
        self._templates = [updated if t.id == template_id else t for t in self._templates]
        self._commit()
        logger.info(f"Updated template {template_id}")
        return updated

    def delete_template(self, template_id: str) -> None:
        remaining = [t for t in self._templates if t.id != template_id]
        if len(remaining) == len(self._templates):
            logger.debug(f"delete_template: unknown template {template_id}")
            return
        self._templates = remaining
        self._commit()
        logger.info(f"Deleted template {template_id}")

    def create_invoice_from_template(
        self, template_id: str, customer_name: Optional[str] = None, **data
    ) -> Optional[str]:
        """
        Create an invoice seeded with a template's lines, type and default
        payment terms and notes. Values in data take precedence.
        """
        template = self.get_template_by_id(template_id)
        if template is None:
            logger.warning(f"Cannot create invoice: unknown template {template_id}")
            return None
        data.setdefault("items", template.items)
        data.setdefault("type", template.type)
        if template.default_payment_terms is not None:
            data.setdefault("payment_terms", template.default_payment_terms)
        if template.default_notes is not None:
            data.setdefault("notes", template.default_notes)
        return self.add_invoice(customer_name=customer_name, **data)
