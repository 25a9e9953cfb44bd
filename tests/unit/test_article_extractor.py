"""Unit tests for the tiered line-item extraction."""

from decimal import Decimal

from orderfusion.models.dto import BlockKind, LineItem, SegmentedText, TextBlock
from orderfusion.processors.article_extractor import (
    ExtractionStrategy,
    dedupe_items,
    extract_articles,
)
from orderfusion.processors.article_strategies import (
    build_item,
    header_anchored,
    prepare_lines,
    reference_anchored,
    split_size_quantity,
)
from orderfusion.processors.segmenter import segment_text


def _table(content: str) -> SegmentedText:
    return SegmentedText(table=TextBlock(kind=BlockKind.TABLE, content=content))


class TestHeaderAnchored:
    """Tests for the canonical column-header tier."""

    def test_row_after_header(self, order_form_text):
        """Test the strict row pattern under the table header."""
        items, strategy = extract_articles(segment_text(order_form_text), order_form_text)
        assert strategy == "header_anchored"
        assert len(items) == 1
        item = items[0]
        assert item.catalog_page == "195"
        assert item.product_name == "ROBE FLUIDE"
        assert item.reference == "281.8341"
        assert item.quantity == 1
        assert item.unit_price == Decimal("39.99")
        assert item.line_total == Decimal("39.99")
        assert item.currency == "EUR"

    def test_without_header_yields_nothing(self):
        """Test the tier stays silent when no header is present."""
        block = TextBlock(kind=BlockKind.TABLE, content="195 ROBE 281.8341 1 39,99 € 39,99 €")
        assert header_anchored(block) == []


class TestKeywordAnchored:
    """Tests for the product-keyword tier."""

    def test_keyword_code_and_amount(self):
        """Test rows built from keyword, code marker and priced amount on adjacent lines."""
        segments = _table("Robe longue code 3 29,99 €\nPantalon droit\ncode 12 19,99 €\n")
        items, strategy = extract_articles(segments, "")
        assert strategy == "keyword_anchored"
        assert [item.product_name for item in items] == ["Robe longue", "Pantalon droit"]
        assert items[0].size_or_code == "3"
        assert items[0].color == "code 3"
        assert items[0].unit_price == Decimal("29.99")
        assert items[1].size_or_code == "12"
        assert items[1].unit_price == Decimal("19.99")

    def test_keyword_without_amount_is_dropped(self):
        """Test an incomplete row is not emitted."""
        items, strategy = extract_articles(_table("Robe longue code 3\n\n\nrien\n"), "")
        assert items == []
        assert strategy is None


class TestReferenceAnchored:
    """Tests for reconstruction around references."""

    def test_row_spread_over_lines(self, noisy_order_form_text):
        """Test description above, page number, quantity and prices below."""
        items, strategy = extract_articles(
            segment_text(noisy_order_form_text), noisy_order_form_text
        )
        assert strategy == "reference_anchored"
        assert len(items) == 1
        item = items[0]
        assert item.catalog_page == "42"
        assert item.product_name == "Jupe plissée"
        assert item.color == "noire"
        assert item.reference == "512.0417"
        assert item.unit_price == Decimal("24.50")
        assert item.line_total == Decimal("24.50")

    def test_reference_forms_canonicalized(self):
        """Test dotted and undotted references give the same canonical string."""
        dotted = reference_anchored(TextBlock(kind=BlockKind.TABLE, content="Robe 281.8341 39,99 €"))
        bare = reference_anchored(TextBlock(kind=BlockKind.TABLE, content="Robe 2818341 39,99 €"))
        assert dotted[0].reference == bare[0].reference == "281.8341"

    def test_every_reference_on_a_linearized_line(self):
        """Test rows joined on one line are each rebuilt up to the next reference."""
        block = TextBlock(
            kind=BlockKind.TABLE,
            content="195 ROBE 281.8341 39,99 € 202 JUPE 512.0417 24,50 €",
        )
        items = reference_anchored(block)
        assert [item.reference for item in items] == ["281.8341", "512.0417"]
        assert [item.catalog_page for item in items] == ["195", "202"]
        assert [item.product_name for item in items] == ["ROBE", "JUPE"]
        assert items[0].line_total == Decimal("39.99")
        assert items[1].unit_price == Decimal("24.50")

    def test_implausible_price_discarded(self):
        """Test a unit price above the plausibility bound drops the row."""
        block = TextBlock(kind=BlockKind.TABLE, content="Robe 281.8341 1500,00 €")
        assert reference_anchored(block) == []


class TestGlobalScan:
    """Tests for the whole-transcript fallback."""

    def test_scans_raw_text_when_table_missing(self):
        """Test references are found outside a missing table block."""
        raw = "Robe longue 281.8341 39,99 €\n"
        items, strategy = extract_articles(SegmentedText(), raw)
        assert strategy == "global_scan"
        assert items[0].product_name == "Robe longue"
        assert items[0].reference == "281.8341"

    def test_row_stops_at_customer_and_totals_labels(self):
        """Test the order total below and the customer block above stay out of the row."""
        raw = (
            "MADAME WARK CASPAR\n"
            "NUMERO CLIENT 170605886\n"
            "Robe fluide\n"
            "281.8341\n"
            "39,99 €\n"
            "Total de ma commande 125,46\n"
        )
        items, strategy = extract_articles(segment_text(raw), raw)
        assert strategy == "global_scan"
        assert len(items) == 1
        assert items[0].product_name == "Robe fluide"
        assert items[0].unit_price == Decimal("39.99")
        assert items[0].line_total == Decimal("39.99")

    def test_total_on_reference_line_is_not_a_price(self):
        """Test a totals label on the same line ends the row."""
        items = reference_anchored(
            TextBlock(kind=BlockKind.TABLE, content="Robe 281.8341 39,99 € Total de ma commande 125,46")
        )
        assert items[0].line_total == Decimal("39.99")

    def test_nothing_anywhere(self):
        """Test exhausting every tier gives an empty list, not an error."""
        assert extract_articles(SegmentedText(), "aucun article") == ([], None)


class TestStrategyChain:
    """Tests for ordering and deduplication."""

    def test_first_non_empty_strategy_wins(self):
        """Test later strategies are not consulted once one succeeds."""
        calls = []
        item = LineItem(product_name="Robe", unit_price=Decimal("10"))

        def first(block):
            calls.append("first")
            return [item]

        def second(block):
            calls.append("second")
            return [item]

        strategies = (ExtractionStrategy("first", first), ExtractionStrategy("second", second))
        items, strategy = extract_articles(_table("x"), "x", strategies)
        assert strategy == "first"
        assert calls == ["first"]
        assert items == [item]

    def test_dedupe_keeps_first_occurrence(self):
        """Test duplicates by reference, name prefix and total are dropped."""
        a = LineItem(product_name="Robe fluide imprimée longue", reference="281.8341", line_total="39.99")
        b = LineItem(product_name="Robe fluide imprimée courte", reference="281.8341", line_total="39.99")
        c = LineItem(product_name="Jupe", reference="512.0417", line_total="24.50")
        assert dedupe_items([a, b, c]) == [a, c]


class TestItemAssembly:
    """Tests for item helpers."""

    def test_two_amounts_min_is_unit(self):
        """Test the smaller amount is the unit price."""
        item = build_item(
            page=None,
            description="Robe",
            reference="281.8341",
            amounts=[Decimal("79.98"), Decimal("39.99")],
            quantity=2,
        )
        assert item.unit_price == Decimal("39.99")
        assert item.line_total == Decimal("79.98")

    def test_one_amount_times_quantity(self):
        """Test the line total is derived from quantity."""
        item = build_item(
            page=None, description="Robe", reference=None, amounts=[Decimal("39.99")], quantity=2
        )
        assert item.line_total == Decimal("79.98")

    def test_zero_price_rejected(self):
        """Test a zero unit price is implausible."""
        assert build_item(page=None, description="Robe", reference=None, amounts=[Decimal("0")]) is None

    def test_split_size_quantity(self):
        """Test the trailing digit is the quantity."""
        assert split_size_quantity("42 1") == ("42", 1)
        assert split_size_quantity("2") == (None, 2)
        assert split_size_quantity("") == (None, 1)

    def test_split_price_merged(self):
        """Test a price broken over two lines is rejoined."""
        assert prepare_lines("22,\n99 €") == ["22,99 €"]
