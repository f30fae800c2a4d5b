"""VehicleLedger - cars, the records they own and the analytics derived from them."""

import logging
from dataclasses import fields, replace
from typing import Any, Dict, List, Optional

from .calculations import (
    average_consumption,
    days_between,
    first_due,
    is_date_past,
    is_mileage_reached,
    is_within_window,
    month_key,
    month_start,
)
from .car import OWNED_COLLECTIONS, Car
from .clock import Clock, IdFactory, new_id, system_clock, timestamp, today
from .document import Document
from .due import DocumentExpiry, MaintenanceDue
from .enums import ExpenseCategory
from .exceptions import MileageRegressionError, StateLoadError, ValidationError
from .expense import Expense
from .fuel_record import FuelRecord
from .loader import SCHEMA_VERSION, StateStore, SyncWriter, read_state
from .maintenance_record import MaintenanceRecord
from .reminder import Reminder
from .serialization import dump_vehicle_state, parse_vehicle_state
from .stats import CarStats, FleetStats, FuelTrend
from .validators import clean_patch

logger = logging.getLogger(__name__)

# Look-ahead used when deciding whether a car needs attention.
ATTENTION_WINDOW_DAYS = 30


def _field_names(cls) -> frozenset:
    return frozenset(f.name for f in fields(cls))


class VehicleLedger:
    """
    In-memory store of cars and everything they own.

    Every mutation builds new immutable objects, swaps the snapshot and
    hands the serialized state to the writer. Analytics are recomputed from
    the current snapshot on each call. Unknown ids are never an error:
    writes are no-ops and reads return None or empty results.
    """

    def __init__(
        self,
        cars: Optional[List[Car]] = None,
        clock: Optional[Clock] = None,
        id_factory: Optional[IdFactory] = None,
        writer=None,
    ):
        self._cars: List[Car] = list(cars or [])
        self._clock = clock or system_clock
        self._new_id = id_factory or new_id
        self._writer = writer

    @classmethod
    def open(
        cls,
        store: StateStore,
        writer=None,
        clock: Optional[Clock] = None,
        id_factory: Optional[IdFactory] = None,
    ) -> "VehicleLedger":
        """
        Load the ledger from a store; an empty store gives an empty ledger.

        Mutations are saved back to the same store through a SyncWriter
        unless another writer is given.
        """
        state = read_state(store, "vehicles")
        try:
            cars = parse_vehicle_state(state) if state else []
        except (TypeError, ValidationError) as e:
            raise StateLoadError(f"Cannot build vehicle ledger from stored state: {e}") from e
        logger.info(f"Loaded {len(cars)} cars")
        return cls(cars, clock, id_factory, writer or SyncWriter(store))

    # =========================================================================
    # State
    # =========================================================================

    def to_state(self) -> Dict[str, Any]:
        return dump_vehicle_state(self._cars, SCHEMA_VERSION)

    def _now(self) -> str:
        return timestamp(self._clock)

    def _commit(self, cars: List[Car]) -> None:
        self._cars = cars
        if self._writer is not None:
            self._writer.submit(self.to_state())

    def _store_car(self, car: Car) -> Car:
        self._commit([car if c.id == car.id else c for c in self._cars])
        return car

    def _cars_for(self, car_id: Optional[str]) -> List[Car]:
        """A single car when car_id is given, otherwise the active cars."""
        if car_id is None:
            return self.active_cars
        car = self.get_car(car_id)
        return [car] if car else []

    # =========================================================================
    # Cars
    # =========================================================================

    @property
    def cars(self) -> List[Car]:
        return list(self._cars)

    @property
    def active_cars(self) -> List[Car]:
        return [c for c in self._cars if c.is_active]

    def get_car(self, car_id: str) -> Optional[Car]:
        for car in self._cars:
            if car.id == car_id:
                return car
        return None

    def add_car(
        self, make: str, model: str, year: int, license_plate: str, **details
    ) -> str:
        """Register a car and return its id. Owned collections start empty."""
        details = clean_patch(Car, details, OWNED_COLLECTIONS)
        now = self._now()
        car = Car(
            id=self._new_id(),
            make=make,
            model=model,
            year=year,
            license_plate=license_plate,
            created_at=now,
            updated_at=now,
            **details,
        )
        self._commit(self._cars + [car])
        logger.info(f"Added car {car.id} ({car.name})")
        return car.id

    def update_car(self, car_id: str, **patch) -> Optional[Car]:
        """Merge-patch a car. Owned records are changed through their own methods."""
        car = self.get_car(car_id)
        if car is None:
            logger.debug(f"update_car: unknown car {car_id}")
            return None
        patch = clean_patch(Car, patch, OWNED_COLLECTIONS)
        updated = self._store_car(replace(car, updated_at=self._now(), **patch))
        logger.info(f"Updated car {car_id}")
        return updated

    def delete_car(self, car_id: str) -> None:
        """Remove a car and every record it owns."""
        remaining = [c for c in self._cars if c.id != car_id]
        if len(remaining) == len(self._cars):
            logger.debug(f"delete_car: unknown car {car_id}")
            return
        self._commit(remaining)
        logger.info(f"Deleted car {car_id}")

    def update_mileage(
        self, car_id: str, mileage: float, force: bool = False
    ) -> Optional[Car]:
        """
        Record a new odometer reading and stamp it with today's date.

        A reading lower than the current one raises MileageRegressionError
        unless force is set (e.g. to correct a typo).
        """
        car = self.get_car(car_id)
        if car is None:
            logger.debug(f"update_mileage: unknown car {car_id}")
            return None
        if mileage < car.current_mileage:
            if not force:
                raise MileageRegressionError(
                    f"Mileage {mileage} is lower than the current "
                    f"{car.current_mileage} for car {car_id}",
                    extra={"car_id": car_id, "current": car.current_mileage},
                )
            logger.warning(
                f"Lowering mileage of car {car_id} from {car.current_mileage} to {mileage}"
            )
        updated = replace(
            car,
            current_mileage=mileage,
            last_updated_mileage=today(self._clock).isoformat(),
            updated_at=self._now(),
        )
        return self._store_car(updated)

    # =========================================================================
    # Owned records
    # =========================================================================

    def _add_owned(self, car_id: str, collection: str, cls, data: Dict[str, Any]) -> Optional[str]:
        car = self.get_car(car_id)
        if car is None:
            logger.warning(f"Cannot add {cls.__name__}: unknown car {car_id}")
            return None
        data = clean_patch(cls, data, ("car_id",))
        now = self._now()
        if "updated_at" in _field_names(cls):
            data["updated_at"] = now
        item = cls(id=self._new_id(), car_id=car_id, created_at=now, **data)
        items = getattr(car, collection) + (item,)
        self._store_car(replace(car, updated_at=now, **{collection: items}))
        logger.info(f"Added {cls.__name__} {item.id} to car {car_id}")
        return item.id

    def _find_owned(self, car_id: str, collection: str, item_id: str):
        car = self.get_car(car_id)
        if car is None:
            return None
        for item in getattr(car, collection):
            if item.id == item_id:
                return item
        return None

    def _update_owned(
        self, car_id: str, collection: str, item_id: str, patch: Dict[str, Any]
    ):
        item = self._find_owned(car_id, collection, item_id)
        if item is None:
            logger.debug(f"No {collection} entry {item_id} on car {car_id}")
            return None
        cls = type(item)
        patch = clean_patch(cls, patch, ("car_id",))
        now = self._now()
        if "updated_at" in _field_names(cls):
            patch["updated_at"] = now
        updated = replace(item, **patch)

        car = self.get_car(car_id)
        items = [updated if i.id == item_id else i for i in getattr(car, collection)]
        self._store_car(replace(car, updated_at=now, **{collection: items}))
        logger.info(f"Updated {cls.__name__} {item_id} on car {car_id}")
        return updated

    def _delete_owned(self, car_id: str, collection: str, item_id: str) -> None:
        if self._find_owned(car_id, collection, item_id) is None:
            logger.debug(f"No {collection} entry {item_id} on car {car_id}")
            return
        car = self.get_car(car_id)
        items = [i for i in getattr(car, collection) if i.id != item_id]
        self._store_car(replace(car, updated_at=self._now(), **{collection: items}))
        logger.info(f"Deleted {collection} entry {item_id} from car {car_id}")

    # Maintenance

    def add_maintenance_record(
        self, car_id: str, type, description: str, date: str, **details
    ) -> Optional[str]:
        return self._add_owned(
            car_id,
            "maintenance_records",
            MaintenanceRecord,
            dict(details, type=type, description=description, date=date),
        )

    def update_maintenance_record(
        self, car_id: str, record_id: str, **patch
    ) -> Optional[MaintenanceRecord]:
        return self._update_owned(car_id, "maintenance_records", record_id, patch)

    def delete_maintenance_record(self, car_id: str, record_id: str) -> None:
        self._delete_owned(car_id, "maintenance_records", record_id)

    # Expenses

    def add_expense(
        self, car_id: str, category, amount: float, date: str, **details
    ) -> Optional[str]:
        return self._add_owned(
            car_id,
            "expenses",
            Expense,
            dict(details, category=category, amount=amount, date=date),
        )

    def update_expense(self, car_id: str, expense_id: str, **patch) -> Optional[Expense]:
        return self._update_owned(car_id, "expenses", expense_id, patch)

    def delete_expense(self, car_id: str, expense_id: str) -> None:
        self._delete_owned(car_id, "expenses", expense_id)

    # Documents

    def add_document(
        self, car_id: str, type, name: str, issue_date: str, **details
    ) -> Optional[str]:
        return self._add_owned(
            car_id,
            "documents",
            Document,
            dict(details, type=type, name=name, issue_date=issue_date),
        )

    def update_document(self, car_id: str, document_id: str, **patch) -> Optional[Document]:
        return self._update_owned(car_id, "documents", document_id, patch)

    def delete_document(self, car_id: str, document_id: str) -> None:
        self._delete_owned(car_id, "documents", document_id)

    # Fuel

    def add_fuel_record(
        self,
        car_id: str,
        date: str,
        mileage: float,
        liters: float,
        cost_per_liter: float,
        **details,
    ) -> Optional[str]:
        """Log a fill-up. total_cost is derived from liters and price."""
        return self._add_owned(
            car_id,
            "fuel_records",
            FuelRecord,
            dict(
                details,
                date=date,
                mileage=mileage,
                liters=liters,
                cost_per_liter=cost_per_liter,
            ),
        )

    def update_fuel_record(self, car_id: str, record_id: str, **patch) -> Optional[FuelRecord]:
        return self._update_owned(car_id, "fuel_records", record_id, patch)

    def delete_fuel_record(self, car_id: str, record_id: str) -> None:
        self._delete_owned(car_id, "fuel_records", record_id)

    # Reminders

    def add_reminder(self, car_id: str, title: str, **details) -> Optional[str]:
        return self._add_owned(car_id, "reminders", Reminder, dict(details, title=title))

    def update_reminder(self, car_id: str, reminder_id: str, **patch) -> Optional[Reminder]:
        return self._update_owned(car_id, "reminders", reminder_id, patch)

    def delete_reminder(self, car_id: str, reminder_id: str) -> None:
        self._delete_owned(car_id, "reminders", reminder_id)

    def complete_reminder(self, car_id: str, reminder_id: str) -> Optional[Reminder]:
        """Deactivate a reminder. completed_at is only set the first time."""
        reminder = self._find_owned(car_id, "reminders", reminder_id)
        if reminder is None:
            logger.debug(f"complete_reminder: no reminder {reminder_id} on car {car_id}")
            return None
        if reminder.completed_at is not None:
            if not reminder.is_active:
                return reminder
            return self._update_owned(car_id, "reminders", reminder_id, {"is_active": False})
        return self._update_owned(
            car_id,
            "reminders",
            reminder_id,
            {"is_active": False, "completed_at": self._now()},
        )

    # =========================================================================
    # Analytics
    # =========================================================================

    def get_car_stats(self, car_id: str) -> CarStats:
        """
        Totals and next-due information for one car.

        Fill-ups and maintenance records are the source of truth for fuel
        and maintenance costs; expenses filed under the fuel or maintenance
        category are added on top. An unknown car gives zeroed stats.
        """
        car = self.get_car(car_id)
        if car is None:
            return CarStats()

        def expenses_in(category: ExpenseCategory) -> float:
            return sum(e.amount for e in car.expenses if e.category == category)

        fill_ups = sum(f.total_cost for f in car.fuel_records)
        services = sum(r.cost for r in car.maintenance_records)
        fuel_cost = fill_ups + expenses_in(ExpenseCategory.FUEL)
        maintenance_cost = services + expenses_in(ExpenseCategory.MAINTENANCE)
        total = sum(e.amount for e in car.expenses) + fill_ups + services

        serviced_at = [r.mileage for r in car.maintenance_records if r.mileage is not None]
        next_due = first_due(car.maintenance_records)

        return CarStats(
            total_expenses=round(total, 2),
            maintenance_count=len(car.maintenance_records),
            total_fuel_cost=round(fuel_cost, 2),
            total_maintenance_cost=round(maintenance_cost, 2),
            avg_fuel_consumption=average_consumption(car.fuel_records),
            km_since_last_maintenance=(
                car.current_mileage - max(serviced_at) if serviced_at else None
            ),
            next_maintenance_date=next_due.next_due_date if next_due else None,
            next_maintenance_mileage=next_due.next_due_mileage if next_due else None,
        )

    def get_all_cars_stats(self) -> FleetStats:
        """Totals over the active cars."""
        active = self.active_cars
        per_car = [self.get_car_stats(c.id) for c in active]
        overdue = self.get_overdue_maintenance()
        expiring = self.get_expiring_documents(days_ahead=ATTENTION_WINDOW_DAYS)
        needing_attention = {d.car_id for d in overdue} | {d.car_id for d in expiring}

        return FleetStats(
            total_cars=len(active),
            total_expenses=round(sum(s.total_expenses for s in per_car), 2),
            total_fuel_cost=round(sum(s.total_fuel_cost for s in per_car), 2),
            total_maintenance_cost=round(
                sum(s.total_maintenance_cost for s in per_car), 2
            ),
            overdue_maintenance_count=len(overdue),
            expiring_documents_count=len(expiring),
            active_reminders_count=len(self.get_active_reminders()),
            cars_needing_attention=len(needing_attention),
        )

    def _maintenance_due(
        self, car: Car, record: MaintenanceRecord, by_date: bool, by_mileage: bool
    ) -> MaintenanceDue:
        km_remaining = None
        if record.next_due_mileage is not None:
            km_remaining = record.next_due_mileage - car.current_mileage
        return MaintenanceDue(
            car_id=car.id,
            record=record,
            overdue_by_date=by_date,
            overdue_by_mileage=by_mileage,
            days_remaining=days_between(today(self._clock), record.next_due_date),
            km_remaining=km_remaining,
        )

    def get_overdue_maintenance(self, car_id: Optional[str] = None) -> List[MaintenanceDue]:
        """
        Open maintenance past its due date or due mileage.

        A record reached by mileage stays overdue until it is completed,
        whatever the date. Without car_id only active cars are checked.
        """
        current_day = today(self._clock)
        result = []
        for car in self._cars_for(car_id):
            for record in car.maintenance_records:
                if record.is_completed:
                    continue
                by_date = is_date_past(record.next_due_date, current_day)
                by_mileage = is_mileage_reached(car.current_mileage, record.next_due_mileage)
                if by_date or by_mileage:
                    result.append(self._maintenance_due(car, record, by_date, by_mileage))
        return result

    def get_upcoming_maintenance(
        self, car_id: Optional[str] = None, days_ahead: int = 30
    ) -> List[MaintenanceDue]:
        """
        Open maintenance due by date within the next days_ahead days.

        Records with only a due mileage never show up here; they appear in
        get_overdue_maintenance once the mileage is reached.
        """
        current_day = today(self._clock)
        result = []
        for car in self._cars_for(car_id):
            for record in car.maintenance_records:
                if record.is_completed:
                    continue
                if is_within_window(record.next_due_date, current_day, days_ahead):
                    result.append(self._maintenance_due(car, record, False, False))
        return sorted(result, key=lambda d: d.record.next_due_date)

    def get_expiring_documents(
        self, car_id: Optional[str] = None, days_ahead: int = 30
    ) -> List[DocumentExpiry]:
        current_day = today(self._clock)
        result = []
        for car in self._cars_for(car_id):
            for document in car.documents:
                if is_within_window(document.expiry_date, current_day, days_ahead):
                    result.append(
                        DocumentExpiry(
                            car_id=car.id,
                            document=document,
                            days_remaining=days_between(current_day, document.expiry_date),
                        )
                    )
        return sorted(result, key=lambda d: d.days_remaining)

    def get_active_reminders(self, car_id: Optional[str] = None) -> List[Reminder]:
        return [r for car in self._cars_for(car_id) for r in car.reminders if r.is_active]

    def get_overdue_reminders(self, car_id: Optional[str] = None) -> List[Reminder]:
        """Active reminders past their due date or due mileage."""
        current_day = today(self._clock)
        return [
            r
            for car in self._cars_for(car_id)
            for r in car.reminders
            if r.is_active
            and (
                is_date_past(r.due_date, current_day)
                or is_mileage_reached(car.current_mileage, r.due_mileage)
            )
        ]

    def calculate_fuel_efficiency(self, car_id: str) -> Optional[float]:
        """Average consumption in L/100km over full-tank fill-ups."""
        car = self.get_car(car_id)
        if car is None:
            return None
        return average_consumption(car.fuel_records)

    def get_fuel_trends(self, car_id: str, months: int = 12) -> List[FuelTrend]:
        """
        Monthly fuel spending for the last `months` calendar months.

        Consumption per month only uses full-tank pairs inside that month.
        """
        car = self.get_car(car_id)
        if car is None or months < 1:
            return []
        since = month_start(today(self._clock), months - 1).isoformat()

        buckets: Dict[str, List[FuelRecord]] = {}
        for record in car.fuel_records:
            if record.date >= since:
                buckets.setdefault(month_key(record.date), []).append(record)

        return [
            FuelTrend(
                month=month,
                total_cost=round(sum(r.total_cost for r in records), 2),
                liters=round(sum(r.liters for r in records), 2),
                fill_ups=len(records),
                avg_consumption=average_consumption(records),
            )
            for month, records in sorted(buckets.items())
        ]
