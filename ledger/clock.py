"""Clock and id capabilities injected into the ledgers."""

import uuid
from datetime import date, datetime
from typing import Callable

Clock = Callable[[], datetime]
IdFactory = Callable[[], str]


def system_clock() -> datetime:
    return datetime.now()


def new_id() -> str:
    """Random UUID4 string."""
    return str(uuid.uuid4())


def today(clock: Clock) -> date:
    return clock().date()


def timestamp(clock: Clock) -> str:
    """ISO-8601 timestamp with second precision."""
    return clock().isoformat(timespec="seconds")
