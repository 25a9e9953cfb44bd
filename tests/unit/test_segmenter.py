"""Unit tests for transcript segmentation."""

import re

from orderfusion.models.dto import BlockKind
from orderfusion.processors.segmenter import extract_section, segment_text


class TestSegmentText:
    """Tests for region slicing between anchors."""

    def test_customer_block(self, order_form_text):
        """Test the customer block runs from the client number to the table."""
        segments = segment_text(order_form_text)
        assert segments.customer.kind is BlockKind.CUSTOMER
        assert segments.customer.content.startswith("NUMÉRO CLIENT")
        assert "4G8M" in segments.customer.content
        assert "NOM DU MODÈLE" not in segments.customer.content

    def test_table_block(self, order_form_text):
        """Test the table block stops before the totals."""
        table = segment_text(order_form_text).table
        assert table.content.startswith("PAGE NOM DU MODÈLE")
        assert "281.8341" in table.content
        assert "Total de ma commande" not in table.content

    def test_payment_and_footer(self, order_form_text):
        """Test the trailing regions."""
        segments = segment_text(order_form_text)
        assert "PAR CARTE" in segments.payment.content
        assert segments.footer.content.startswith("Validité")

    def test_missing_anchors_give_empty_blocks(self):
        """Test a text without anchors yields empty blocks, not an error."""
        segments = segment_text("bonjour")
        assert segments.table.is_empty
        assert segments.customer.is_empty
        assert segments.table.lines() == []

    def test_none_is_empty(self):
        """Test None input is treated as empty text."""
        assert segment_text(None).header.is_empty

    def test_end_anchor_before_start_is_ignored(self):
        """Test an end anchor that precedes the start anchor does not cut the region."""
        text = "Validité 12/2026\nMODES DE PAIEMENT\nPAR CARTE\n"
        payment = segment_text(text).payment
        assert payment.content == "MODES DE PAIEMENT\nPAR CARTE\n"


class TestExtractSection:
    """Tests for a single anchored slice."""

    def test_slice_is_capped(self):
        """Test a runaway region is bounded by max_chars."""
        text = "DEMANDE " + "x" * 5000
        section = extract_section(text, re.compile("DEMANDE"), None, max_chars=100)
        assert len(section) == 100

    def test_no_start_anchor(self):
        """Test a missing start anchor returns an empty string."""
        assert extract_section("abc", re.compile("ZZZ"), None) == ""

    def test_until_end_anchor(self):
        """Test the slice stops at the end anchor."""
        section = extract_section("a START b END c", re.compile("START"), re.compile("END"))
        assert section == "START b "
