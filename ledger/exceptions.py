"""
Exceptions raised by the ledgers.

Looking up or writing an unknown id is never an error: writes become no-ops
and reads return None or an empty list. The exceptions below cover domain
validity, status rules and malformed persisted state.
"""

from typing import Any, Dict, Optional

__all__ = [
    "LedgerError",
    "ValidationError",
    "MileageRegressionError",
    "InvalidStatusTransitionError",
    "CustomerInUseError",
    "StateLoadError",
]


class LedgerError(Exception):
    """
    Base exception for the ledger package.

    Attributes:
        detail: Human-readable message
        error_code: Stable identifier callers can switch on
        extra: Optional structured context (ids, offending values)
    """

    error_code: str = "LEDGER_ERROR"

    def __init__(
        self,
        detail: str,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.detail = detail
        self.error_code = error_code if error_code is not None else self.error_code
        self.extra = extra
        super().__init__(detail)


class ValidationError(LedgerError, ValueError):
    """A value breaks a domain rule (negative amount, bad discount, ...)."""

    error_code: str = "VALIDATION_ERROR"

    def __init__(
        self,
        detail: str = "Invalid value",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        LedgerError.__init__(self, detail, error_code, extra)


class MileageRegressionError(ValidationError):
    """A new odometer reading is lower than the recorded one."""

    error_code: str = "MILEAGE_REGRESSION"


class InvalidStatusTransitionError(LedgerError):
    """An invoice status change is not allowed from the current status."""

    error_code: str = "INVALID_STATUS_TRANSITION"


class CustomerInUseError(LedgerError):
    """A customer still has open invoices and cannot be deleted."""

    error_code: str = "CUSTOMER_IN_USE"


class StateLoadError(LedgerError):
    """Persisted state is malformed or written by a newer version."""

    error_code: str = "STATE_LOAD_ERROR"
