"""
Booking engine configuration.
"""

import os
from datetime import date
from decimal import Decimal
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class BookingConfig(BaseModel):
    """Runtime settings for the booking orchestrator."""

    # Invoicing
    vat_rate: Decimal = Field(default=Decimal(21), description="VAT percentage on new draft invoices")
    invoice_due_days: int = Field(default=14, description="Days until a new invoice is due")

    # Bulk writes
    batch_size: int = Field(default=100, gt=0, description="Records per bulk insert call")

    # Expansion horizons
    open_ended_horizon_days: int = Field(
        default=365, description="Span expanded for patterns without an end date"
    )
    flex_contract_horizon_years: int = Field(
        default=10, description="Years filled for flex leases without an end date"
    )

    # Meeting room time grid
    slot_minutes: int = Field(default=30, gt=0, description="Booking start/end granularity")

    # Fixed "today" for testing and demos (company test mode)
    test_date: Optional[date] = None

    def today(self) -> date:
        return self.test_date or date.today()

    @classmethod
    def from_env(cls) -> "BookingConfig":
        """Build config from OFFICEHUB_* environment variables."""
        values = {}
        if os.getenv("OFFICEHUB_VAT_RATE"):
            values["vat_rate"] = Decimal(os.environ["OFFICEHUB_VAT_RATE"])
        if os.getenv("OFFICEHUB_INVOICE_DUE_DAYS"):
            values["invoice_due_days"] = int(os.environ["OFFICEHUB_INVOICE_DUE_DAYS"])
        if os.getenv("OFFICEHUB_BATCH_SIZE"):
            values["batch_size"] = int(os.environ["OFFICEHUB_BATCH_SIZE"])
        if os.getenv("OFFICEHUB_SLOT_MINUTES"):
            values["slot_minutes"] = int(os.environ["OFFICEHUB_SLOT_MINUTES"])
        if os.getenv("OFFICEHUB_TEST_DATE"):
            values["test_date"] = date.fromisoformat(os.environ["OFFICEHUB_TEST_DATE"])
        return cls(**values)
