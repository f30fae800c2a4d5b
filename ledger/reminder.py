"""Reminder class for user-defined deadlines."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .validators import require_non_negative


@dataclass(frozen=True)
class Reminder:
    """A note to do something by a date and/or a mileage."""

    id: str
    car_id: str
    title: str
    description: Optional[str] = None
    due_date: Optional[str] = None
    due_mileage: Optional[float] = None
    is_active: bool = True
    completed_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        require_non_negative("Reminder", "due_mileage", self.due_mileage)

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None
