"""Unit tests for order totals."""

from decimal import Decimal

import pytest

from orderfusion.models.dto import LineItem, Totals
from orderfusion.processors.totals_computer import (
    compute_totals,
    extract_gain,
    extract_order_total,
    extract_shipping,
    extract_stated_subtotal,
    reconcile_totals,
    sum_items,
)


class TestOrderTotal:
    """Tests for the labeled order total."""

    def test_plain_amount(self, order_form_text):
        """Test the amount after the label."""
        assert extract_order_total(order_form_text) == Decimal("125.46")

    def test_letter_confusions(self):
        """Test O and l inside the amount are read as digits."""
        assert extract_order_total("Total de ma commande 1O5,4l") == Decimal("105.41")

    def test_decimal_point_rebuilt(self):
        """Test a lost separator is restored before the last two digits."""
        assert extract_order_total("Total de ma commande 12546") == Decimal("125.46")

    def test_amount_on_next_line(self):
        """Test the amount may sit on the line below the label."""
        assert extract_order_total("Total de ma commande\n125,46 €") == Decimal("125.46")

    def test_missing_label(self):
        """Test no label means no total."""
        assert extract_order_total("rien") is None


class TestLabeledAmounts:
    """Tests for shipping and stated subtotal."""

    def test_shipping(self, order_form_text):
        """Test the shipping participation."""
        assert extract_shipping(order_form_text) == Decimal("6.49")

    def test_stated_subtotal(self):
        """Test a printed subtotal."""
        assert extract_stated_subtotal("Sous-total articles 118,97") == Decimal("118.97")


class TestGain:
    """Tests for the prize cheque announced in the header."""

    @pytest.mark.parametrize(
        "header, expected",
        [
            ("CHÈQUE BANCAIRE de 5.000,00 €", Decimal("5000.00")),
            ("CHEQUE BANCAIRE 5000,00", Decimal("5000.00")),
            ("Chèque banca d'un montant de 1 5OO €", Decimal("1500.00")),
        ],
    )
    def test_amount_forms(self, header, expected):
        """Test thousands separators, spaces and O read as 0."""
        assert extract_gain(header) == expected

    def test_small_amount_rejected(self):
        """Test an amount below 100 is treated as a misread."""
        assert extract_gain("CHEQUE BANCAIRE 50,00") is None

    @pytest.mark.parametrize("header", ["DEMANDE DE GAIN", "", None])
    def test_no_cheque(self, header):
        """Test a header without the cheque label has no gain."""
        assert extract_gain(header) is None


class TestSumItems:
    """Tests for the items sum."""

    def test_line_total_or_unit_price(self):
        """Test the unit price stands in for a missing line total."""
        items = [
            LineItem(unit_price="39.99", line_total="79.98"),
            LineItem(unit_price="38.99"),
        ]
        assert sum_items(items) == Decimal("118.97")

    def test_no_items(self):
        """Test an empty list has no sum."""
        assert sum_items([]) is None


class TestReconcile:
    """Tests for the truncated-total reconciliation."""

    def test_low_total_recomputes_with_fees(self):
        """Test a stated total below subtotal + shipping."""
        totals = Totals(
            subtotal=Decimal("118.97"),
            shipping_participation=Decimal("6.49"),
            order_total=Decimal("100.00"),
        )
        assert reconcile_totals(totals).order_total_with_fees == Decimal("125.46")

    def test_plausible_total_untouched(self):
        """Test a consistent total leaves the total with fees unset."""
        totals = Totals(
            subtotal=Decimal("118.97"),
            shipping_participation=Decimal("6.49"),
            order_total=Decimal("125.46"),
        )
        assert reconcile_totals(totals).order_total_with_fees is None

    def test_compute_from_items_and_text(self):
        """Test the full computation from items and labels."""
        items = [
            LineItem(unit_price="39.99", line_total="79.98"),
            LineItem(unit_price="38.99"),
        ]
        text = "Participation forfaitaire 6,49\nTotal de ma commande 100,00\n"
        totals = compute_totals(items, text)
        assert totals.subtotal == Decimal("118.97")
        assert totals.shipping_participation == Decimal("6.49")
        assert totals.order_total == Decimal("100.00")
        assert totals.order_total_with_fees == Decimal("125.46")
        assert totals.currency == "EUR"

    def test_compute_nothing_known(self):
        """Test no items and no labels give empty totals without currency."""
        totals = compute_totals([], "rien")
        assert totals == Totals()
