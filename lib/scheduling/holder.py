"""Holder reference - who a booking is attributed to.

Exactly one of tenant, external customer or flex lease. Rows in the store keep
three nullable id columns; HolderRef is the single-variant view of them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from lib.scheduling.errors import ValidationError


class HolderKind(str, Enum):
    TENANT = "tenant"
    EXTERNAL_CUSTOMER = "external_customer"
    LEASE = "lease"


_COLUMNS = {
    HolderKind.TENANT: "tenant_id",
    HolderKind.EXTERNAL_CUSTOMER: "external_customer_id",
    HolderKind.LEASE: "lease_id",
}


@dataclass(frozen=True)
class HolderRef:
    kind: HolderKind
    id: str

    def __post_init__(self):
        if not isinstance(self.kind, HolderKind):
            try:
                object.__setattr__(self, "kind", HolderKind(self.kind))
            except ValueError:
                raise ValidationError(f"Unknown holder kind: {self.kind!r}")
        if not self.id:
            raise ValidationError("Select a tenant, external customer or lease")

    @classmethod
    def tenant(cls, tenant_id: str) -> "HolderRef":
        return cls(HolderKind.TENANT, tenant_id)

    @classmethod
    def external_customer(cls, customer_id: str) -> "HolderRef":
        return cls(HolderKind.EXTERNAL_CUSTOMER, customer_id)

    @classmethod
    def lease(cls, lease_id: str) -> "HolderRef":
        return cls(HolderKind.LEASE, lease_id)

    @classmethod
    def from_columns(
        cls,
        tenant_id: Optional[str] = None,
        external_customer_id: Optional[str] = None,
        lease_id: Optional[str] = None,
    ) -> "HolderRef":
        present = [
            (kind, value)
            for kind, value in (
                (HolderKind.TENANT, tenant_id),
                (HolderKind.EXTERNAL_CUSTOMER, external_customer_id),
                (HolderKind.LEASE, lease_id),
            )
            if value
        ]
        if len(present) != 1:
            raise ValidationError(
                f"A booking needs exactly one holder, got {len(present)}"
            )
        kind, value = present[0]
        return cls(kind, str(value))

    def columns(self) -> Dict[str, Optional[str]]:
        """Store columns, with the two unused variants set to None."""
        cols: Dict[str, Optional[str]] = {c: None for c in _COLUMNS.values()}
        cols[_COLUMNS[self.kind]] = self.id
        return cols

    @property
    def column(self) -> str:
        return _COLUMNS[self.kind]
