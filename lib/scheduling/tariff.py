"""Tariff resolution: pick the cheapest qualifying rate tier, then discount it."""

from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
HALF_DAY_HOURS = Decimal(4)
FULL_DAY_HOURS = Decimal(8)


class RateTier(str, Enum):
    HOURLY = "hourly"
    HALF_DAY = "half_day"
    FULL_DAY = "full_day"


class TariffQuote(BaseModel):
    """Tier chosen for a duration and the undiscounted amount it costs."""
    tier: RateTier
    applied_rate: Decimal
    amount: Decimal


class PricedAmount(BaseModel):
    """Full pricing snapshot stored on a booking."""
    tier: RateTier
    applied_rate: Decimal
    amount: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    final_amount: Decimal


def to_decimal(value: Optional[Number]) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    # str() first so floats like 0.1 keep their printed value
    return Decimal(str(value))


def money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def resolve(
    duration_hours: Number,
    hourly_rate: Number,
    half_day_rate: Optional[Number] = None,
    full_day_rate: Optional[Number] = None,
) -> TariffQuote:
    """Choose hourly, half-day or full-day pricing for a booking duration.

    Full-day applies from 8 hours when it beats the hourly total; half-day
    applies from 4 hours when it beats the hourly total, unless full-day also
    qualifies and is cheaper still. Missing tiers are skipped.
    """
    hours = to_decimal(duration_hours)
    hourly = to_decimal(hourly_rate)
    half_day = to_decimal(half_day_rate)
    full_day = to_decimal(full_day_rate)

    hourly_total = hours * hourly
    full_day_qualifies = hours >= FULL_DAY_HOURS and full_day is not None

    if full_day_qualifies and full_day < hourly_total:
        return TariffQuote(tier=RateTier.FULL_DAY, applied_rate=full_day, amount=full_day)

    if hours >= HALF_DAY_HOURS and half_day is not None and half_day < hourly_total:
        if full_day_qualifies and full_day < half_day:
            return TariffQuote(tier=RateTier.FULL_DAY, applied_rate=full_day, amount=full_day)
        return TariffQuote(tier=RateTier.HALF_DAY, applied_rate=half_day, amount=half_day)

    return TariffQuote(tier=RateTier.HOURLY, applied_rate=hourly, amount=hourly_total)


def apply_discount(quote: TariffQuote, discount_percentage: Optional[Number]) -> PricedAmount:
    """Apply a holder discount (0-100%) to a resolved quote."""
    pct = to_decimal(discount_percentage) or Decimal(0)
    if pct < 0:
        pct = Decimal(0)
    discount_amount = quote.amount * pct / Decimal(100)
    return PricedAmount(
        tier=quote.tier,
        applied_rate=quote.applied_rate,
        amount=quote.amount,
        discount_percentage=pct,
        discount_amount=discount_amount,
        final_amount=quote.amount - discount_amount,
    )


def describe_tier(tier: RateTier, applied_rate: Decimal, hours: Decimal) -> str:
    """Human readable rate description used on invoice lines."""
    if tier == RateTier.FULL_DAY:
        return f"full day rate €{money(applied_rate)}"
    if tier == RateTier.HALF_DAY:
        return f"half day rate €{money(applied_rate)}"
    return f"{hours.normalize():f} hours @ €{money(applied_rate)}/hour"
