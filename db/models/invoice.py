from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import field_validator

from db.models.base import StoreRecord
from lib.scheduling.holder import HolderRef
from lib.scheduling.invoice_lines import InvoiceLine


class Invoice(StoreRecord):
    """Invoice row (invoices table). Only draft invoices are changed by reconciliation."""

    id: str
    invoice_number: str
    tenant_id: Optional[str] = None
    external_customer_id: Optional[str] = None
    lease_id: Optional[str] = None

    invoice_month: Optional[str] = None  # YYYY-MM
    invoice_date: date
    due_date: date

    subtotal: Decimal = Decimal(0)
    discount_amount: Decimal = Decimal(0)
    vat_rate: Decimal = Decimal(21)
    vat_amount: Decimal = Decimal(0)
    amount: Decimal = Decimal(0)  # total incl. VAT
    vat_inclusive: bool = False

    # draft, issued, paid
    status: str = "draft"
    notes: List[str] = []

    created_at: Optional[datetime] = None

    @field_validator("notes", mode="before")
    @classmethod
    def split_notes(cls, v):
        """Notes are stored as newline separated text."""
        if v is None:
            return []
        if isinstance(v, str):
            return v.split("\n") if v else []
        return v

    @property
    def holder(self) -> HolderRef:
        return HolderRef.from_columns(self.tenant_id, self.external_customer_id, self.lease_id)

    @property
    def total(self) -> Decimal:
        return self.amount


class InvoiceBookingLine(StoreRecord):
    """Structured reconciliation line linking a booking to an invoice."""

    invoice_id: str
    booking_id: str
    description: str
    discount_description: Optional[str] = None
    amount: Decimal
    discount_amount: Decimal = Decimal(0)

    def rendered(self) -> List[str]:
        return InvoiceLine.model_validate(self.model_dump()).rendered()


class NewInvoice(StoreRecord):
    """Fields of a draft invoice about to be inserted."""

    invoice_number: str
    tenant_id: Optional[str] = None
    external_customer_id: Optional[str] = None
    lease_id: Optional[str] = None
    invoice_month: str
    invoice_date: date
    due_date: date
    subtotal: Decimal
    discount_amount: Decimal = Decimal(0)
    vat_rate: Decimal
    vat_amount: Decimal
    amount: Decimal
    notes: List[str] = []
