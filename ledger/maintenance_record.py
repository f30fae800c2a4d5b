"""MaintenanceRecord class for service work done or scheduled on a car."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .enums import MaintenanceStatus, MaintenanceType
from .validators import coerce_enum, require_non_negative


@dataclass(frozen=True)
class MaintenanceRecord:
    """
    A maintenance job, with optional next-due thresholds.

    The record is due when either next_due_date or next_due_mileage is
    crossed, whichever comes first.
    """

    id: str
    car_id: str
    type: MaintenanceType
    description: str
    date: str
    cost: float = 0
    mileage: Optional[float] = None
    status: MaintenanceStatus = MaintenanceStatus.COMPLETED
    next_due_date: Optional[str] = None
    next_due_mileage: Optional[float] = None
    workshop_name: Optional[str] = None
    parts: Tuple[str, ...] = field(default_factory=tuple)
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        coerce_enum(self, "type", MaintenanceType)
        coerce_enum(self, "status", MaintenanceStatus)
        require_non_negative("MaintenanceRecord", "cost", self.cost)
        require_non_negative("MaintenanceRecord", "mileage", self.mileage)
        require_non_negative(
            "MaintenanceRecord", "next_due_mileage", self.next_due_mileage
        )
        object.__setattr__(self, "parts", tuple(self.parts or ()))

    @property
    def is_completed(self) -> bool:
        return self.status == MaintenanceStatus.COMPLETED

    @property
    def has_due_threshold(self) -> bool:
        return self.next_due_date is not None or self.next_due_mileage is not None
