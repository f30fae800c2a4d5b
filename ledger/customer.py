"""Customer class for the invoicing ledger."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Customer:
    """
    A person or company the workshop bills.

    Companies usually carry a vat_number and individuals a fiscal_code, but
    both may be set.
    """

    id: str
    name: str
    is_company: bool = False
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    province: Optional[str] = None
    country: Optional[str] = None
    vat_number: Optional[str] = None
    fiscal_code: Optional[str] = None
    pec: Optional[str] = None
    sdi_code: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def full_address(self) -> Optional[str]:
        """Single-line postal address, None when no part is known."""
        locality = " ".join(p for p in (self.postal_code, self.city) if p)
        if self.province:
            locality = f"{locality} ({self.province})" if locality else self.province
        parts = [p for p in (self.address, locality, self.country) if p]
        return ", ".join(parts) if parts else None
