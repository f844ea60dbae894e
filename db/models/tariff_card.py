from decimal import Decimal
from typing import Optional

from db.models.base import StoreRecord


class TariffCard(StoreRecord):
    """Rates for a space, joined from spaces and tariff_cards (one card per space type)."""

    space_id: str
    space_name: str
    space_type: str
    hourly_rate: Decimal
    half_day_rate: Optional[Decimal] = None
    full_day_rate: Optional[Decimal] = None
    vat_inclusive: bool = False
