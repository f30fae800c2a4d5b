"""Car class, the aggregate root of the vehicle ledger."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .document import Document
from .expense import Expense
from .fuel_record import FuelRecord
from .maintenance_record import MaintenanceRecord
from .reminder import Reminder
from .validators import require_non_negative

# Collections owned by a car; they live and die with it.
OWNED_COLLECTIONS = (
    "maintenance_records",
    "expenses",
    "documents",
    "fuel_records",
    "reminders",
)


@dataclass(frozen=True)
class Car:
    """Vehicle identification, current state and every record it owns."""

    id: str
    make: str
    model: str
    year: int
    license_plate: str
    current_mileage: float = 0
    vin: Optional[str] = None
    color: Optional[str] = None
    last_updated_mileage: Optional[str] = None
    purchase_date: Optional[str] = None
    purchase_price: Optional[float] = None
    purchase_mileage: Optional[float] = None
    insurance_company: Optional[str] = None
    insurance_policy: Optional[str] = None
    insurance_expiry: Optional[str] = None
    is_active: bool = True
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    maintenance_records: Tuple[MaintenanceRecord, ...] = field(default_factory=tuple)
    expenses: Tuple[Expense, ...] = field(default_factory=tuple)
    documents: Tuple[Document, ...] = field(default_factory=tuple)
    fuel_records: Tuple[FuelRecord, ...] = field(default_factory=tuple)
    reminders: Tuple[Reminder, ...] = field(default_factory=tuple)
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        require_non_negative("Car", "current_mileage", self.current_mileage)
        require_non_negative("Car", "purchase_price", self.purchase_price)
        require_non_negative("Car", "purchase_mileage", self.purchase_mileage)
        for name in OWNED_COLLECTIONS:
            object.__setattr__(self, name, tuple(getattr(self, name) or ()))

    @property
    def name(self) -> str:
        """Human-readable vehicle name."""
        return f"{self.year} {self.make} {self.model}"
