"""Tests for core/billing.py - invoice arithmetic."""

from decimal import Decimal

from core.billing import compute_totals, price_lines, to_money, totals_match
from core.models import BillableItem


def _items(*specs):
    return [BillableItem(dish_name=name, price=Decimal(price), quantity=qty) for name, price, qty in specs]


class TestToMoney:
    """Tests for to_money()."""

    def test_rounds_half_up(self):
        assert to_money(Decimal("2.345")) == Decimal("2.35")
        assert to_money(Decimal("2.344")) == Decimal("2.34")
        assert to_money(Decimal("0.005")) == Decimal("0.01")

    def test_float_goes_through_str(self):
        # 1.005 is 1.00499999... in binary; via str it is 1.005
        assert to_money(1.005) == Decimal("1.01")

    def test_int_and_str(self):
        assert to_money(3) == Decimal("3.00")
        assert to_money("12.5") == Decimal("12.50")


class TestPriceLines:
    """Tests for price_lines()."""

    def test_line_total_is_price_times_quantity(self):
        lines = price_lines(_items(("Paneer Tikka", "250.00", 2), ("Butter Naan", "45.50", 3)))

        assert [line.total for line in lines] == [Decimal("500.00"), Decimal("136.50")]
        assert [line.dish_name for line in lines] == ["Paneer Tikka", "Butter Naan"]

    def test_unrounded_price_rounded_before_multiplying(self):
        lines = price_lines(_items(("Tea", "10.005", 3)))

        assert lines[0].price == Decimal("10.01")
        assert lines[0].total == Decimal("30.03")


class TestComputeTotals:
    """Tests for compute_totals()."""

    def test_plain_subtotal(self):
        totals = compute_totals(price_lines(_items(("A", "100.00", 1))), Decimal("0"), Decimal("0"), Decimal("0"))

        assert totals.subtotal == Decimal("100.00")
        assert totals.grand_total == Decimal("100.00")

    def test_charges_apply_after_discount(self):
        lines = price_lines(_items(("A", "250.00", 2), ("B", "45.50", 2)))  # 591.00
        totals = compute_totals(lines, Decimal("5"), Decimal("10"), Decimal("91.00"))

        assert totals.subtotal == Decimal("591.00")
        assert totals.discount == Decimal("91.00")
        assert totals.gst.amount == Decimal("25.00")
        assert totals.service_charge.amount == Decimal("50.00")
        assert totals.grand_total == Decimal("575.00")

    def test_each_charge_rounded_independently(self):
        lines = price_lines(_items(("A", "33.33", 1)))
        totals = compute_totals(lines, Decimal("18"), Decimal("7.5"), Decimal("0"))

        # 33.33 * 18% = 5.9994 -> 6.00 ; 33.33 * 7.5% = 2.49975 -> 2.50
        assert totals.gst.amount == Decimal("6.00")
        assert totals.service_charge.amount == Decimal("2.50")
        assert totals.grand_total == Decimal("41.83")

    def test_discount_capped_at_subtotal(self):
        lines = price_lines(_items(("A", "40.00", 1)))
        totals = compute_totals(lines, Decimal("18"), Decimal("0"), Decimal("100.00"))

        assert totals.discount == Decimal("40.00")
        assert totals.gst.amount == Decimal("0.00")
        assert totals.grand_total == Decimal("0.00")

    def test_percentages_preserved(self):
        totals = compute_totals(price_lines(_items(("A", "1.00", 1))), Decimal("12.5"), Decimal("5"), Decimal("0"))

        assert totals.gst.percentage == Decimal("12.5")
        assert totals.service_charge.percentage == Decimal("5")


class TestTotalsMatch:
    """Tests for totals_match()."""

    def _expected(self):
        lines = price_lines(_items(("A", "100.00", 1)))
        return compute_totals(lines, Decimal("18"), Decimal("0"), Decimal("0"))

    def test_exact_match(self):
        assert totals_match(self._expected(), "100.00", "18.00", "0", "0", "118.00")

    def test_accepts_unpadded_numbers(self):
        assert totals_match(self._expected(), 100, 18, 0, 0, 118)

    def test_rejects_off_by_a_cent(self):
        assert not totals_match(self._expected(), "100.00", "18.00", "0", "0", "118.01")
