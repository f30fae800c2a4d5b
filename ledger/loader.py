"""YAML persistence for ledger state: stores, versioning and writers."""

import copy
import logging
import os
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import yaml
from jsonschema import ValidationError as SchemaValidationError
from jsonschema import validate

from .exceptions import StateLoadError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2
SCHEMAS_DIR = Path(__file__).parent / "schemas"
STATE_KINDS = ("vehicles", "invoicing")

State = Dict[str, Any]


# =============================================================================
# Stores
# =============================================================================


class StateStore:
    """Durable home of one serialized ledger snapshot."""

    def load(self) -> Optional[State]:
        raise NotImplementedError

    def save(self, state: State) -> None:
        raise NotImplementedError


class YamlStateStore(StateStore):
    """Keeps the snapshot in a YAML file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Optional[State]:
        """Read the file; None when it does not exist or is empty."""
        if not self.path.exists():
            return None
        try:
            with open(self.path, "r") as fp:
                data = yaml.load(fp, Loader=yaml.SafeLoader)
        except yaml.YAMLError as e:
            raise StateLoadError(f"Cannot parse {self.path}: {e}") from e
        if data is None:
            return None
        if not isinstance(data, dict):
            raise StateLoadError(
                f"{self.path} must contain a mapping, found {type(data).__name__}"
            )
        return data

    def save(self, state: State) -> None:
        """Write through a temporary file so a crash never leaves half a file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "w") as fp:
            yaml.dump(
                state,
                fp,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False,
                width=120,
            )
        os.replace(tmp_path, self.path)


class MemoryStateStore(StateStore):
    """Keeps the snapshot in memory. Used by tests and embedders."""

    def __init__(self, state: Optional[State] = None):
        self.state = copy.deepcopy(state)
        self.saves = 0

    def load(self) -> Optional[State]:
        return copy.deepcopy(self.state)

    def save(self, state: State) -> None:
        self.state = copy.deepcopy(state)
        self.saves += 1


# =============================================================================
# Versioning
# =============================================================================


def _infer_kind(state: State) -> str:
    return "vehicles" if "cars" in state else "invoicing"


def _parse_number(number: str):
    """Split 'FAT-2025-007' into (2025, 7); None when it does not match."""
    parts = number.rsplit("-", 2)
    if len(parts) != 3 or not parts[1].isdigit() or not parts[2].isdigit():
        return None
    return int(parts[1]), int(parts[2])


def _migrate_v1_to_v2(state: State) -> State:
    """
    Version 1 blobs had no kind, could miss owned car collections and did
    not store the numbering year.
    """
    state.setdefault("kind", _infer_kind(state))

    if state["kind"] == "vehicles":
        for car in state.get("cars") or []:
            car.setdefault("isActive", True)
            for key in ("maintenanceRecords", "expenses", "documents",
                        "fuelRecords", "reminders"):
                if car.get(key) is None:
                    car[key] = []
            for reminder in car["reminders"]:
                reminder.setdefault("isActive", reminder.get("completedAt") is None)
            for record in car["fuelRecords"]:
                record.setdefault("isFullTank", True)
        return state

    for key in ("invoices", "customers", "templates"):
        if state.get(key) is None:
            state[key] = []
    # Resume numbering after the highest issued number.
    numbers = [_parse_number(str(i.get("number", ""))) for i in state["invoices"]]
    numbers = sorted(n for n in numbers if n is not None)
    if numbers:
        year, seq = numbers[-1]
        state.setdefault("invoiceNumberYear", year)
        state.setdefault("nextInvoiceNumber", seq + 1)
    else:
        state.setdefault("nextInvoiceNumber", 1)
    return state


def _iso_dates(value: Any) -> Any:
    """Copy of a loaded blob with YAML timestamps turned back into ISO strings."""
    if isinstance(value, dict):
        return {k: _iso_dates(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_iso_dates(v) for v in value]
    # Unquoted dates in hand-edited files load as date/datetime.
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    if isinstance(value, date):
        return value.isoformat()
    return value


MIGRATIONS: Dict[int, Callable[[State], State]] = {
    1: _migrate_v1_to_v2,
}


def migrate_state(state: State) -> State:
    """
    Upgrade a state blob to SCHEMA_VERSION, one version at a time.

    Blobs without a version are treated as version 1. The input is not
    modified.
    """
    version = state.get("version", 1)
    if not isinstance(version, int) or version < 1:
        raise StateLoadError(f"Invalid state version: {version!r}")
    if version > SCHEMA_VERSION:
        raise StateLoadError(
            f"State version {version} is newer than supported version {SCHEMA_VERSION}"
        )

    state = _iso_dates(state)
    while version < SCHEMA_VERSION:
        state = MIGRATIONS[version](state)
        version += 1
        state["version"] = version
        logger.info(f"Migrated {state.get('kind')} state to version {version}")
    return state


# =============================================================================
# Validation
# =============================================================================


def load_schema(kind: str) -> dict:
    """Load the JSON schema for a state kind."""
    if kind not in STATE_KINDS:
        raise ValueError(f"Unknown state kind: {kind!r}")
    with open(SCHEMAS_DIR / f"{kind}.yaml") as f:
        return yaml.safe_load(f)


def validate_state(state: State, kind: str) -> None:
    """Check a migrated blob against its schema; raise StateLoadError."""
    try:
        validate(instance=state, schema=load_schema(kind))
    except SchemaValidationError as e:
        location = ".".join(str(p) for p in e.path) or "<root>"
        raise StateLoadError(
            f"Invalid {kind} state at {location}: {e.message}",
            extra={"path": location},
        ) from e


def read_state(store: StateStore, kind: str) -> Optional[State]:
    """
    Load, migrate and validate the snapshot held by a store.

    Returns None when the store is empty.
    """
    raw = store.load()
    if raw is None:
        return None
    state = migrate_state(raw)
    if state.get("kind") != kind:
        raise StateLoadError(
            f"Expected {kind} state, found {state.get('kind')!r}"
        )
    validate_state(state, kind)
    return state


# =============================================================================
# Writers
# =============================================================================


class SyncWriter:
    """
    Saves every submitted snapshot immediately.

    A failed save is logged and kept in last_error; the in-memory ledger
    stays as it is and the next flush() raises the error.
    """

    def __init__(self, store: StateStore):
        self.store = store
        self.last_error: Optional[BaseException] = None

    def submit(self, state: State) -> None:
        try:
            self.store.save(state)
        except Exception as e:
            logger.exception("Saving ledger state failed")
            self.last_error = e

    def flush(self, timeout: Optional[float] = None) -> None:
        error, self.last_error = self.last_error, None
        if error is not None:
            raise error

    def close(self, timeout: Optional[float] = None) -> None:
        pass


class BackgroundWriter:
    """
    Saves snapshots on a worker thread without blocking the caller.

    Only the latest pending snapshot is kept: if several mutations happen
    while a save is running, the next save writes the last one. Failed saves
    are logged, not retried, and re-raised by the next flush().
    """

    def __init__(self, store: StateStore):
        self.store = store
        self.last_error: Optional[BaseException] = None
        self._cond = threading.Condition()
        self._pending: Optional[State] = None
        self._busy = False
        self._closed = False
        self._thread = threading.Thread(
            target=self._run, name="ledger-writer", daemon=True
        )
        self._thread.start()

    def submit(self, state: State) -> None:
        with self._cond:
            if self._closed:
                raise RuntimeError("BackgroundWriter is closed")
            self._pending = state
            self._cond.notify_all()

    def _run(self) -> None:
        while True:
            with self._cond:
                while self._pending is None and not self._closed:
                    self._cond.wait()
                if self._pending is None:
                    return
                state, self._pending = self._pending, None
                self._busy = True
            try:
                self.store.save(state)
            except Exception as e:
                logger.exception("Saving ledger state failed")
                with self._cond:
                    self.last_error = e
            finally:
                with self._cond:
                    self._busy = False
                    self._cond.notify_all()

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait until every submitted snapshot is written."""
        with self._cond:
            done = self._cond.wait_for(
                lambda: self._pending is None and not self._busy, timeout
            )
            error, self.last_error = self.last_error, None
        if error is not None:
            raise error
        if not done:
            raise TimeoutError("Timed out waiting for ledger state to be saved")

    def close(self, timeout: Optional[float] = None) -> None:
        """Write what is pending and stop the worker thread."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        self._thread.join(timeout)
