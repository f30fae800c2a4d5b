"""Document class for papers attached to a car."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .enums import DocumentType
from .validators import coerce_enum


@dataclass(frozen=True)
class Document:
    """An insurance policy, registration, inspection certificate, etc."""

    id: str
    car_id: str
    type: DocumentType
    name: str
    issue_date: str
    expiry_date: Optional[str] = None
    number: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        coerce_enum(self, "type", DocumentType)
