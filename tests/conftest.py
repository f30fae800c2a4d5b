"""Shared fixtures: a settable clock and predictable ids."""

import itertools
from datetime import datetime

import pytest

from ledger import InvoicingLedger, MemoryStateStore, SyncWriter, VehicleLedger


class FakeClock:
    """Callable clock whose time tests can move."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def counting_ids(prefix: str = "id"):
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 6, 15, 10, 30))


@pytest.fixture
def ids():
    return counting_ids()


@pytest.fixture
def store():
    return MemoryStateStore()


@pytest.fixture
def vehicles(clock, ids, store):
    return VehicleLedger(clock=clock, id_factory=ids, writer=SyncWriter(store))


@pytest.fixture
def invoicing(clock, ids, store):
    return InvoicingLedger(clock=clock, id_factory=ids, writer=SyncWriter(store))
