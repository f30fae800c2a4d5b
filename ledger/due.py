"""Dataclasses describing maintenance and documents that need attention."""

from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .document import Document
    from .maintenance_record import MaintenanceRecord


@dataclass
class MaintenanceDue:
    """A maintenance record that is overdue or coming up, with its margins."""

    car_id: str
    record: "MaintenanceRecord"
    overdue_by_date: bool = False
    overdue_by_mileage: bool = False
    days_remaining: Optional[int] = None
    km_remaining: Optional[float] = None

    @property
    def is_overdue(self) -> bool:
        return self.overdue_by_date or self.overdue_by_mileage


@dataclass
class DocumentExpiry:
    """A document expiring inside the look-ahead window."""

    car_id: str
    document: "Document"
    days_remaining: int
