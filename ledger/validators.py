"""Domain checks shared by the entity constructors."""

import logging
from dataclasses import fields
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Type

from .exceptions import ValidationError

logger = logging.getLogger(__name__)

# Set by the ledgers, never by a merge-patch.
SYSTEM_FIELDS = frozenset({"id", "created_at", "updated_at", "extra"})


def require_non_negative(entity: str, name: str, value: Optional[Any]) -> None:
    if value is not None and value < 0:
        raise ValidationError(
            f"{entity}.{name} must not be negative, got {value}",
            extra={"field": name, "value": str(value)},
        )


def require_positive(entity: str, name: str, value: Any) -> None:
    if value is None or value <= 0:
        raise ValidationError(
            f"{entity}.{name} must be greater than zero, got {value}",
            extra={"field": name, "value": str(value)},
        )


def require_percentage(entity: str, name: str, value: Optional[Any]) -> None:
    if value is not None and not 0 <= value <= 100:
        raise ValidationError(
            f"{entity}.{name} must be between 0 and 100, got {value}",
            extra={"field": name, "value": str(value)},
        )


def coerce_enum(obj: object, name: str, enum_cls: Type[Enum]) -> None:
    """Replace a raw value on a frozen dataclass with its enum member."""
    value = getattr(obj, name)
    if value is None:
        return
    try:
        member = enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(
            f"{type(obj).__name__}.{name} must be one of: {allowed}; got {value!r}",
            extra={"field": name, "value": str(value)},
        ) from None
    object.__setattr__(obj, name, member)


def clean_patch(cls: type, patch: Dict[str, Any], protected: Iterable[str] = ()) -> Dict[str, Any]:
    """Drop system, derived and protected fields from a merge-patch."""
    derived = {f.name for f in fields(cls) if not f.init}
    blocked = SYSTEM_FIELDS | derived | set(protected)
    ignored = sorted(k for k in patch if k in blocked)
    if ignored:
        logger.warning(f"Ignoring read-only {cls.__name__} fields: {', '.join(ignored)}")
    return {k: v for k, v in patch.items() if k not in blocked}
