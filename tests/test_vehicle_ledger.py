#!/usr/bin/env python3
"""Tests for VehicleLedger."""

import logging
from datetime import datetime

import pytest

from ledger import (
    CarStats,
    ExpenseCategory,
    MaintenanceStatus,
    MemoryStateStore,
    MileageRegressionError,
    StateLoadError,
    SyncWriter,
    ValidationError,
    VehicleLedger,
    YamlStateStore,
)


@pytest.fixture
def car_id(vehicles):
    return vehicles.add_car("Fiat", "Panda", 2019, "AB123CD", current_mileage=45000)


def add_service(ledger, car_id, **details):
    values = dict(type="routine", description="Oil change", date="2025-01-10")
    values.update(details)
    return ledger.add_maintenance_record(car_id, **values)


class FailingStore(MemoryStateStore):
    def save(self, state):
        raise OSError("disk full")


# =============================================================================
# Cars
# =============================================================================


class TestCars:
    """Tests for car CRUD."""

    def test_add_car(self, vehicles, car_id):
        car = vehicles.get_car(car_id)
        assert car_id == "id-1"
        assert car.name == "2019 Fiat Panda"
        assert car.current_mileage == 45000
        assert car.created_at == "2025-06-15T10:30:00"
        assert car.updated_at == car.created_at
        assert car.maintenance_records == ()
        assert car.reminders == ()

    def test_add_car_ignores_owned_collections(self, vehicles):
        car_id = vehicles.add_car("Fiat", "Panda", 2019, "X", expenses=["bogus"])
        assert vehicles.get_car(car_id).expenses == ()

    def test_add_car_validates(self, vehicles):
        with pytest.raises(ValidationError):
            vehicles.add_car("Fiat", "Panda", 2019, "X", current_mileage=-1)
        assert vehicles.cars == []

    def test_unknown_car(self, vehicles):
        assert vehicles.get_car("nope") is None

    def test_update_car(self, vehicles, car_id, clock):
        clock.now = datetime(2025, 6, 20, 8, 0)
        updated = vehicles.update_car(car_id, color="red", notes="Garage 2")

        assert updated.color == "red"
        assert updated.make == "Fiat"
        assert updated.updated_at == "2025-06-20T08:00:00"
        assert updated.created_at == "2025-06-15T10:30:00"
        assert vehicles.get_car(car_id) == updated

    def test_update_car_keeps_id(self, vehicles, car_id):
        updated = vehicles.update_car(car_id, id="other", color="blue")
        assert updated.id == car_id
        assert updated.color == "blue"

    def test_update_unknown_car_is_noop(self, vehicles, store):
        assert vehicles.update_car("nope", color="red") is None
        assert store.saves == 0

    def test_update_car_validates(self, vehicles, car_id):
        with pytest.raises(ValidationError):
            vehicles.update_car(car_id, purchase_price=-100)
        assert vehicles.get_car(car_id).purchase_price is None

    def test_active_cars(self, vehicles, car_id):
        other = vehicles.add_car("Lancia", "Ypsilon", 2012, "ZZ999ZZ")
        vehicles.update_car(other, is_active=False)
        assert [c.id for c in vehicles.active_cars] == [car_id]
        assert len(vehicles.cars) == 2

    def test_delete_car_cascades(self, vehicles, car_id):
        add_service(vehicles, car_id, cost=80)
        vehicles.add_expense(car_id, "toll", 12, "2025-06-01")
        vehicles.delete_car(car_id)

        assert vehicles.get_car(car_id) is None
        assert vehicles.get_car_stats(car_id) == CarStats()
        assert vehicles.to_state()["cars"] == []

    def test_delete_unknown_car_is_noop(self, vehicles, car_id, store):
        saves = store.saves
        vehicles.delete_car("nope")
        assert store.saves == saves
        assert len(vehicles.cars) == 1

    def test_returned_car_can_not_change_the_ledger(self, vehicles, car_id):
        vehicles.add_reminder(car_id, "Tyres")
        car = vehicles.get_car(car_id)
        with pytest.raises(AttributeError):
            car.reminders.append("junk")
        assert [r.title for r in vehicles.get_active_reminders(car_id)] == ["Tyres"]


class TestUpdateMileage:
    """Tests for update_mileage."""

    def test_sets_mileage_and_date(self, vehicles, car_id):
        car = vehicles.update_mileage(car_id, 46000)
        assert car.current_mileage == 46000
        assert car.last_updated_mileage == "2025-06-15"

    def test_lower_reading_rejected(self, vehicles, car_id):
        with pytest.raises(MileageRegressionError) as exc_info:
            vehicles.update_mileage(car_id, 44000)
        assert exc_info.value.extra["current"] == 45000
        assert vehicles.get_car(car_id).current_mileage == 45000

    def test_force_allows_correction(self, vehicles, car_id, caplog):
        with caplog.at_level(logging.WARNING, logger="ledger.vehicle_ledger"):
            car = vehicles.update_mileage(car_id, 4500, force=True)
        assert car.current_mileage == 4500
        assert "Lowering mileage" in caplog.text

    def test_same_reading_allowed(self, vehicles, car_id):
        assert vehicles.update_mileage(car_id, 45000).current_mileage == 45000

    def test_unknown_car(self, vehicles):
        assert vehicles.update_mileage("nope", 1000) is None


# =============================================================================
# Owned records
# =============================================================================


class TestOwnedRecords:
    """Tests for nested add/update/delete."""

    def test_add_maintenance_record(self, vehicles, car_id):
        record_id = add_service(vehicles, car_id, cost=80, mileage=44000)
        record = vehicles.get_car(car_id).maintenance_records[0]
        assert record.id == record_id
        assert record.car_id == car_id
        assert record.status is MaintenanceStatus.COMPLETED
        assert record.created_at == "2025-06-15T10:30:00"
        assert record.updated_at == record.created_at

    def test_add_to_unknown_car_returns_none(self, vehicles, caplog):
        with caplog.at_level(logging.WARNING, logger="ledger.vehicle_ledger"):
            assert vehicles.add_expense("nope", "toll", 3, "2025-06-01") is None
        assert "unknown car nope" in caplog.text

    def test_add_ignores_caller_ids(self, vehicles, car_id):
        expense_id = vehicles.add_expense(car_id, "parking", 2, "2025-06-01", id="mine")
        expense = vehicles.get_car(car_id).expenses[0]
        assert expense.id == expense_id != "mine"
        assert expense.car_id == car_id

    def test_add_validates(self, vehicles, car_id):
        with pytest.raises(ValidationError):
            vehicles.add_expense(car_id, "parking", -2, "2025-06-01")
        assert vehicles.get_car(car_id).expenses == ()

    def test_update_record(self, vehicles, car_id, clock):
        record_id = add_service(vehicles, car_id)
        clock.now = datetime(2025, 6, 16, 9, 0)
        updated = vehicles.update_maintenance_record(car_id, record_id, cost=120)

        assert updated.cost == 120
        assert updated.description == "Oil change"
        assert updated.updated_at == "2025-06-16T09:00:00"
        assert updated.created_at == "2025-06-15T10:30:00"
        assert vehicles.get_car(car_id).maintenance_records == (updated,)
        assert vehicles.get_car(car_id).updated_at == "2025-06-16T09:00:00"

    def test_update_fuel_record_recomputes_cost(self, vehicles, car_id):
        record_id = vehicles.add_fuel_record(car_id, "2025-06-01", 45500, 40, 2)
        updated = vehicles.update_fuel_record(car_id, record_id, liters=30, total_cost=1)
        assert updated.total_cost == 60

    def test_update_record_of_other_car_is_ignored(self, vehicles, car_id, store):
        other = vehicles.add_car("Lancia", "Ypsilon", 2012, "ZZ999ZZ")
        expense_id = vehicles.add_expense(car_id, "toll", 5, "2025-06-01")
        saves = store.saves

        assert vehicles.update_expense(other, expense_id, amount=50) is None
        vehicles.delete_expense(other, expense_id)

        assert vehicles.get_car(car_id).expenses[0].amount == 5
        assert store.saves == saves

    def test_delete_record(self, vehicles, car_id):
        doc_id = vehicles.add_document(car_id, "insurance", "Policy", "2025-01-01")
        keep_id = vehicles.add_document(car_id, "registration", "Libretto", "2019-03-01")
        vehicles.delete_document(car_id, doc_id)
        assert [d.id for d in vehicles.get_car(car_id).documents] == [keep_id]

    def test_every_kind_is_stored_on_the_car(self, vehicles, car_id):
        add_service(vehicles, car_id)
        vehicles.add_expense(car_id, "tax", 150, "2025-02-01")
        vehicles.add_document(car_id, "inspection", "Revisione", "2025-03-01")
        vehicles.add_fuel_record(car_id, "2025-06-01", 45500, 40, 1.9)
        vehicles.add_reminder(car_id, "Winter tyres", due_date="2025-11-15")

        car = vehicles.get_car(car_id)
        assert len(car.maintenance_records) == 1
        assert len(car.expenses) == 1
        assert len(car.documents) == 1
        assert len(car.fuel_records) == 1
        assert len(car.reminders) == 1


class TestReminders:
    """Tests for complete_reminder."""

    def test_complete(self, vehicles, car_id):
        reminder_id = vehicles.add_reminder(car_id, "Tyres")
        reminder = vehicles.complete_reminder(car_id, reminder_id)
        assert reminder.is_active is False
        assert reminder.completed_at == "2025-06-15T10:30:00"
        assert vehicles.get_active_reminders(car_id) == []

    def test_complete_is_idempotent(self, vehicles, car_id, clock):
        reminder_id = vehicles.add_reminder(car_id, "Tyres")
        first = vehicles.complete_reminder(car_id, reminder_id)
        clock.now = datetime(2025, 7, 1, 12, 0)
        second = vehicles.complete_reminder(car_id, reminder_id)
        assert second.completed_at == first.completed_at
        assert second == first

    def test_complete_unknown(self, vehicles, car_id):
        assert vehicles.complete_reminder(car_id, "nope") is None

    def test_complete_after_reactivation(self, vehicles, car_id, clock):
        reminder_id = vehicles.add_reminder(car_id, "Tyres")
        first = vehicles.complete_reminder(car_id, reminder_id)
        vehicles.update_reminder(car_id, reminder_id, is_active=True)

        clock.now = datetime(2025, 7, 1, 12, 0)
        again = vehicles.complete_reminder(car_id, reminder_id)
        assert again.is_active is False
        assert again.completed_at == first.completed_at
        assert vehicles.get_active_reminders(car_id) == []


# =============================================================================
# Analytics
# =============================================================================


class TestCarStats:
    """Tests for get_car_stats."""

    def test_unknown_car_gives_zeroed_stats(self, vehicles):
        stats = vehicles.get_car_stats("nope")
        assert stats == CarStats()
        assert stats.avg_fuel_consumption is None

    def test_empty_car(self, vehicles, car_id):
        stats = vehicles.get_car_stats(car_id)
        assert stats.total_expenses == 0
        assert stats.maintenance_count == 0
        assert stats.km_since_last_maintenance is None
        assert stats.next_maintenance_date is None

    def test_totals(self, vehicles, car_id):
        add_service(vehicles, car_id, cost=80, mileage=40000)
        vehicles.add_expense(car_id, "maintenance", 20, "2025-03-01")
        vehicles.add_expense(car_id, "fuel", 10, "2025-03-01")
        vehicles.add_expense(car_id, "insurance", 400, "2025-01-01")
        vehicles.add_fuel_record(car_id, "2025-05-01", 44000, 0.5, 2)
        vehicles.add_fuel_record(car_id, "2025-06-01", 44500, 40, 2)

        stats = vehicles.get_car_stats(car_id)
        assert stats.total_fuel_cost == 91
        assert stats.total_maintenance_cost == 100
        assert stats.total_expenses == 591
        assert stats.maintenance_count == 1
        assert stats.avg_fuel_consumption == 8.0
        assert stats.km_since_last_maintenance == 5000

    def test_next_maintenance_prefers_dated_record(self, vehicles, car_id):
        add_service(vehicles, car_id, next_due_mileage=50000)
        add_service(vehicles, car_id, next_due_date="2025-09-01", next_due_mileage=60000)
        add_service(vehicles, car_id, next_due_date="2025-08-01")

        stats = vehicles.get_car_stats(car_id)
        assert stats.next_maintenance_date == "2025-08-01"
        assert stats.next_maintenance_mileage is None

    def test_next_maintenance_mileage_only(self, vehicles, car_id):
        add_service(vehicles, car_id, next_due_mileage=60000)
        add_service(vehicles, car_id, next_due_mileage=55000)
        stats = vehicles.get_car_stats(car_id)
        assert stats.next_maintenance_date is None
        assert stats.next_maintenance_mileage == 55000


class TestOverdueMaintenance:
    """Tests for get_overdue_maintenance and get_upcoming_maintenance."""

    def test_overdue_by_date(self, vehicles, car_id):
        record_id = add_service(vehicles, car_id, status="scheduled", next_due_date="2025-06-01")
        overdue = vehicles.get_overdue_maintenance()

        assert [d.record.id for d in overdue] == [record_id]
        assert overdue[0].overdue_by_date is True
        assert overdue[0].overdue_by_mileage is False
        assert overdue[0].days_remaining == -14
        assert overdue[0].is_overdue is True

    def test_overdue_by_mileage(self, vehicles, car_id):
        add_service(vehicles, car_id, status="scheduled", next_due_mileage=45000)
        overdue = vehicles.get_overdue_maintenance(car_id)
        assert overdue[0].overdue_by_mileage is True
        assert overdue[0].km_remaining == 0

    def test_completed_records_never_overdue(self, vehicles, car_id):
        add_service(vehicles, car_id, next_due_date="2020-01-01", next_due_mileage=1000)
        assert vehicles.get_overdue_maintenance() == []

    def test_due_today_is_not_overdue(self, vehicles, car_id):
        add_service(vehicles, car_id, status="scheduled", next_due_date="2025-06-15")
        assert vehicles.get_overdue_maintenance() == []

    def test_mileage_overdue_stays_overdue(self, vehicles, car_id):
        record_id = add_service(vehicles, car_id, status="scheduled", next_due_mileage=46000)
        assert vehicles.get_overdue_maintenance() == []

        vehicles.update_mileage(car_id, 46000)
        assert len(vehicles.get_overdue_maintenance()) == 1
        vehicles.update_mileage(car_id, 50000)
        assert len(vehicles.get_overdue_maintenance()) == 1

        vehicles.update_maintenance_record(car_id, record_id, status="completed")
        assert vehicles.get_overdue_maintenance() == []

    def test_inactive_cars_skipped_unless_asked(self, vehicles, car_id):
        add_service(vehicles, car_id, status="scheduled", next_due_date="2025-06-01")
        vehicles.update_car(car_id, is_active=False)
        assert vehicles.get_overdue_maintenance() == []
        assert len(vehicles.get_overdue_maintenance(car_id)) == 1

    def test_upcoming_window(self, vehicles, car_id):
        soon = add_service(vehicles, car_id, status="scheduled", next_due_date="2025-07-15")
        add_service(vehicles, car_id, status="scheduled", next_due_date="2025-07-16")
        today = add_service(vehicles, car_id, status="scheduled", next_due_date="2025-06-15")

        upcoming = vehicles.get_upcoming_maintenance(days_ahead=30)
        assert [d.record.id for d in upcoming] == [today, soon]
        assert upcoming[1].days_remaining == 30

    def test_mileage_only_is_never_upcoming(self, vehicles, car_id):
        add_service(vehicles, car_id, status="scheduled", next_due_mileage=45100)
        assert vehicles.get_upcoming_maintenance(days_ahead=365) == []


class TestDocumentsAndReminders:
    """Tests for expiring documents and reminder queries."""

    def test_expiring_documents(self, vehicles, car_id):
        vehicles.add_document(car_id, "insurance", "Policy", "2024-07-01", expiry_date="2025-07-01")
        vehicles.add_document(car_id, "registration", "Libretto", "2019-03-01")
        vehicles.add_document(car_id, "inspection", "Old", "2023-01-01", expiry_date="2025-06-14")

        expiring = vehicles.get_expiring_documents()
        assert [e.document.name for e in expiring] == ["Policy"]
        assert expiring[0].days_remaining == 16
        assert expiring[0].car_id == car_id

    def test_overdue_reminders(self, vehicles, car_id):
        late = vehicles.add_reminder(car_id, "Tax", due_date="2025-06-01")
        by_km = vehicles.add_reminder(car_id, "Belt", due_mileage=45000)
        vehicles.add_reminder(car_id, "Tyres", due_date="2025-11-01")
        done = vehicles.add_reminder(car_id, "Wash", due_date="2025-01-01")
        vehicles.complete_reminder(car_id, done)

        assert [r.id for r in vehicles.get_overdue_reminders()] == [late, by_km]
        assert len(vehicles.get_active_reminders()) == 3


class TestFleetStats:
    """Tests for get_all_cars_stats."""

    def test_only_active_cars(self, vehicles, car_id):
        other = vehicles.add_car("Lancia", "Ypsilon", 2012, "ZZ999ZZ", current_mileage=90000)
        parked = vehicles.add_car("Alfa", "147", 2005, "AA000AA")

        vehicles.add_expense(car_id, "parking", 10, "2025-06-01")
        vehicles.add_expense(other, "toll", 5.5, "2025-06-01")
        vehicles.add_expense(parked, "tax", 1000, "2025-06-01")
        add_service(vehicles, other, status="scheduled", next_due_mileage=85000)
        vehicles.add_document(car_id, "insurance", "Policy", "2024-07-01", expiry_date="2025-07-01")
        vehicles.add_reminder(car_id, "Tyres")
        vehicles.update_car(parked, is_active=False)

        fleet = vehicles.get_all_cars_stats()
        assert fleet.total_cars == 2
        assert fleet.total_expenses == 15.5
        assert fleet.overdue_maintenance_count == 1
        assert fleet.expiring_documents_count == 1
        assert fleet.active_reminders_count == 1
        assert fleet.cars_needing_attention == 2

    def test_empty(self, vehicles):
        fleet = vehicles.get_all_cars_stats()
        assert fleet.total_cars == 0
        assert fleet.cars_needing_attention == 0


class TestFuel:
    """Tests for calculate_fuel_efficiency and get_fuel_trends."""

    def test_efficiency(self, vehicles, car_id):
        vehicles.add_fuel_record(car_id, "2025-05-01", 1000, 30, 1.8)
        assert vehicles.calculate_fuel_efficiency(car_id) is None
        vehicles.add_fuel_record(car_id, "2025-05-20", 1500, 40, 1.8)
        assert vehicles.calculate_fuel_efficiency(car_id) == 8.0

    def test_efficiency_unknown_car(self, vehicles):
        assert vehicles.calculate_fuel_efficiency("nope") is None

    def test_trends_bucket_by_month(self, vehicles, car_id):
        vehicles.add_fuel_record(car_id, "2024-06-30", 500, 35, 1.7)
        vehicles.add_fuel_record(car_id, "2025-04-02", 1000, 30, 2)
        vehicles.add_fuel_record(car_id, "2025-04-20", 1500, 40, 2)
        vehicles.add_fuel_record(car_id, "2025-06-01", 2000, 20, 2, is_full_tank=False)

        trends = vehicles.get_fuel_trends(car_id, months=3)
        assert [t.month for t in trends] == ["2025-04", "2025-06"]

        april = trends[0]
        assert april.fill_ups == 2
        assert april.liters == 70
        assert april.total_cost == 140
        assert april.avg_consumption == 8.0
        assert trends[1].avg_consumption is None

    def test_trends_default_twelve_months(self, vehicles, car_id):
        vehicles.add_fuel_record(car_id, "2024-07-01", 500, 35, 1.7)
        vehicles.add_fuel_record(car_id, "2024-06-30", 400, 35, 1.7)
        assert [t.month for t in vehicles.get_fuel_trends(car_id)] == ["2024-07"]

    def test_trends_unknown_car(self, vehicles):
        assert vehicles.get_fuel_trends("nope") == []


# =============================================================================
# Persistence
# =============================================================================


class TestPersistence:
    """Tests for writer hand-off and reopening."""

    def test_every_mutation_is_saved(self, vehicles, store, car_id):
        assert store.saves == 1
        vehicles.add_expense(car_id, "toll", 3, "2025-06-01")
        assert store.saves == 2
        assert store.state["cars"][0]["expenses"][0]["category"] == "toll"

    def test_reopen(self, vehicles, store, car_id, clock):
        add_service(vehicles, car_id, next_due_date="2025-09-01")
        vehicles.add_fuel_record(car_id, "2025-06-01", 45500, 40, 1.9)

        reopened = VehicleLedger.open(store, clock=clock)
        assert reopened.cars == vehicles.cars
        assert reopened.get_car_stats(car_id) == vehicles.get_car_stats(car_id)

    def test_open_empty_store(self):
        ledger = VehicleLedger.open(MemoryStateStore())
        assert ledger.cars == []

    def test_open_yaml_file(self, tmp_path, clock, ids):
        path = tmp_path / "vehicles.yaml"
        ledger = VehicleLedger.open(YamlStateStore(path), clock=clock, id_factory=ids)
        car_id = ledger.add_car("Fiat", "Panda", 2019, "AB123CD")
        ledger.add_expense(car_id, ExpenseCategory.PARKING, 2.5, "2025-06-01")

        again = VehicleLedger.open(YamlStateStore(path))
        assert again.get_car(car_id).expenses[0].amount == 2.5

    def test_open_rejects_invalid_state(self):
        store = MemoryStateStore({"version": 2, "kind": "vehicles", "cars": [{"id": "c1"}]})
        with pytest.raises(StateLoadError):
            VehicleLedger.open(store)

    def test_without_writer(self, clock, ids):
        ledger = VehicleLedger(clock=clock, id_factory=ids)
        car_id = ledger.add_car("Fiat", "Panda", 2019, "X")
        assert ledger.to_state()["cars"][0]["id"] == car_id

    def test_writer_is_used(self, clock, ids):
        store = MemoryStateStore()
        ledger = VehicleLedger(clock=clock, id_factory=ids, writer=SyncWriter(store))
        ledger.add_car("Fiat", "Panda", 2019, "X")
        assert store.state["kind"] == "vehicles"

    def test_open_file_with_unquoted_dates(self, tmp_path, clock):
        path = tmp_path / "vehicles.yaml"
        path.write_text(
            "version: 2\n"
            "kind: vehicles\n"
            "cars:\n"
            "  - id: c1\n"
            "    make: Fiat\n"
            "    model: Panda\n"
            "    year: 2019\n"
            "    licensePlate: AB123CD\n"
            "    currentMileage: 45000\n"
            "    createdAt: 2025-01-02 08:15:00\n"
            "    maintenanceRecords:\n"
            "      - id: m1\n"
            "        carId: c1\n"
            "        type: routine\n"
            "        description: Oil change\n"
            "        date: 2025-01-15\n"
            "        status: scheduled\n"
            "        nextDueDate: 2025-06-01\n"
            "    expenses: []\n"
            "    documents: []\n"
            "    fuelRecords: []\n"
            "    reminders: []\n"
        )
        ledger = VehicleLedger.open(YamlStateStore(path), clock=clock)
        car = ledger.get_car("c1")
        assert car.created_at == "2025-01-02T08:15:00"
        assert car.maintenance_records[0].date == "2025-01-15"
        assert [d.record.id for d in ledger.get_overdue_maintenance()] == ["m1"]

    def test_failed_save_keeps_the_mutation(self, clock, ids, caplog):
        writer = SyncWriter(FailingStore())
        ledger = VehicleLedger(clock=clock, id_factory=ids, writer=writer)
        with caplog.at_level(logging.ERROR, logger="ledger.loader"):
            car_id = ledger.add_car("Fiat", "Panda", 2019, "X")
        assert car_id == "id-1"
        assert [c.id for c in ledger.cars] == [car_id]
        assert "Saving ledger state failed" in caplog.text
        with pytest.raises(OSError):
            writer.flush()
