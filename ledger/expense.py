"""Expense class for running costs of a car."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .enums import ExpenseCategory
from .validators import coerce_enum, require_non_negative


@dataclass(frozen=True)
class Expense:
    """A cost paid for a car (parking, tolls, insurance, ...)."""

    id: str
    car_id: str
    category: ExpenseCategory
    amount: float
    date: str
    description: str = ""
    mileage: Optional[float] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        coerce_enum(self, "category", ExpenseCategory)
        require_non_negative("Expense", "amount", self.amount)
        require_non_negative("Expense", "mileage", self.mileage)
