"""FuelRecord class for fill-ups."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .calculations import round_money, to_decimal
from .enums import FuelType
from .validators import coerce_enum, require_non_negative


@dataclass(frozen=True)
class FuelRecord:
    """
    A fill-up at the pump.

    total_cost is always liters * cost_per_liter rounded to cents; it is
    not a constructor argument.
    """

    id: str
    car_id: str
    date: str
    mileage: float
    liters: float
    cost_per_liter: float
    fuel_type: FuelType = FuelType.GASOLINE
    is_full_tank: bool = True
    station_name: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    total_cost: float = field(init=False, default=0.0)

    def __post_init__(self):
        coerce_enum(self, "fuel_type", FuelType)
        require_non_negative("FuelRecord", "mileage", self.mileage)
        require_non_negative("FuelRecord", "liters", self.liters)
        require_non_negative("FuelRecord", "cost_per_liter", self.cost_per_liter)
        cost = round_money(to_decimal(self.liters) * to_decimal(self.cost_per_liter))
        object.__setattr__(self, "total_cost", float(cost))
