"""Tests for invoice line text and VAT arithmetic."""

from datetime import date
from decimal import Decimal

import pytest

from lib.scheduling.interval import Interval
from lib.scheduling.invoice_lines import (
    InvoiceLine,
    booking_line_text,
    discount_line_text,
    net_from_gross,
    remove_lines,
    render_notes,
    vat_breakdown,
)


class TestLineText:

    @pytest.mark.no_db
    def test_booking_line(self):
        interval = Interval.from_clock(date(2025, 3, 10), "09:00", "13:00")
        text = booking_line_text("Boardroom", interval, "half day rate €80.00", Decimal(80))
        assert text == "Boardroom 10-03-2025 09:00 - 13:00: half day rate €80.00 = €80.00"

    @pytest.mark.no_db
    def test_discount_line(self):
        assert discount_line_text(Decimal("10.00"), Decimal(8)) == "  Discount 10%: -€8.00"
        assert discount_line_text(Decimal("12.5"), Decimal("3.125")) == "  Discount 12.5%: -€3.13"


class TestRenderNotes:

    @pytest.mark.no_db
    def test_discount_line_follows_its_booking(self):
        lines = [
            InvoiceLine(booking_id="a", description="A", discount_description="  Discount 10%: -€1.00", amount=10),
            InvoiceLine(booking_id="b", description="B", amount=20),
        ]
        assert render_notes(lines) == ["A", "  Discount 10%: -€1.00", "B"]

    @pytest.mark.no_db
    def test_remove_lines_drops_one_occurrence_each(self):
        notes = ["manual note", "A", "  Discount", "A"]
        assert remove_lines(notes, ["A", "  Discount"]) == ["manual note", "A"]

    @pytest.mark.no_db
    def test_remove_missing_line_is_noop(self):
        assert remove_lines(["A"], ["B"]) == ["A"]


class TestVat:

    @pytest.mark.no_db
    def test_exclusive(self):
        vat, total = vat_breakdown(Decimal(72), Decimal(21))
        assert vat == Decimal("15.12")
        assert total == Decimal("87.12")

    @pytest.mark.no_db
    def test_rounding_half_up(self):
        vat, total = vat_breakdown(Decimal("0.50"), Decimal(21))
        assert vat == Decimal("0.11")
        assert total == Decimal("0.61")

    @pytest.mark.no_db
    def test_net_from_gross(self):
        assert net_from_gross(Decimal(121), Decimal(21)) == Decimal("100.00")
        assert net_from_gross(Decimal(80), Decimal(21)) == Decimal("66.12")
