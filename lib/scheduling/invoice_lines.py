"""Invoice line rendering and VAT arithmetic for booking reconciliation."""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from pydantic import BaseModel

from lib.scheduling.interval import Interval
from lib.scheduling.tariff import money


class InvoiceLine(BaseModel):
    """One booking's contribution to a draft invoice."""
    booking_id: str
    description: str
    discount_description: Optional[str] = None
    amount: Decimal  # net, before discount
    discount_amount: Decimal = Decimal(0)  # net

    def rendered(self) -> List[str]:
        lines = [self.description]
        if self.discount_description:
            lines.append(self.discount_description)
        return lines


def format_date(day: date) -> str:
    return day.strftime("%d-%m-%Y")


def booking_line_text(space_name: str, interval: Interval, rate_description: str, amount: Decimal) -> str:
    return (
        f"{space_name} {format_date(interval.date)} {interval.label}: "
        f"{rate_description} = €{money(amount)}"
    )


def discount_line_text(discount_percentage: Decimal, discount_amount: Decimal) -> str:
    return f"  Discount {discount_percentage.normalize():f}%: -€{money(discount_amount)}"


def render_notes(lines: List[InvoiceLine]) -> List[str]:
    notes: List[str] = []
    for line in lines:
        notes.extend(line.rendered())
    return notes


def net_from_gross(gross: Decimal, vat_rate: Decimal) -> Decimal:
    """Strip VAT from a VAT-inclusive amount."""
    return money(gross / (1 + vat_rate / Decimal(100)))


def vat_breakdown(taxable: Decimal, vat_rate: Decimal) -> Tuple[Decimal, Decimal]:
    """(vat_amount, total) for a VAT-exclusive taxable amount."""
    taxable = money(taxable)
    vat_amount = money(taxable * vat_rate / Decimal(100))
    return vat_amount, money(taxable + vat_amount)


def remove_lines(notes: List[str], to_remove: List[str]) -> List[str]:
    """Drop one occurrence of each line in `to_remove`, matched by exact text."""
    remaining = list(notes)
    for text in to_remove:
        if text in remaining:
            remaining.remove(text)
    return remaining
