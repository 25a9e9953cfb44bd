"""Unit tests for the operator text report."""

from orderfusion.models.dto import ExtractionResult, Identity, LineItem, Totals
from orderfusion.processors.text_report import (
    find_anomalies,
    is_placeholder_color,
    render_text_report,
)


def _result(**kwargs):
    defaults = {
        "identity": Identity(full_name="WARK CASPAR", client_number="170605886"),
        "items": [
            LineItem(
                catalog_page="195",
                product_name="Robe fluide",
                color="bleu",
                reference="281.8341",
                unit_price="39.99",
                line_total="39.99",
            )
        ],
        "totals": Totals(order_total="39.99"),
        "confidence": 0.72,
        "method": "llm_fusion",
    }
    defaults.update(kwargs)
    return ExtractionResult(**defaults)


class TestRenderTextReport:
    """Tests for report content."""

    def test_sections(self):
        """Test identity, summary and item details are rendered."""
        report = render_text_report(_result())
        assert "- Nom: WARK CASPAR" in report
        assert "- Numéro client: 170605886" in report
        assert "- Articles: 1" in report
        assert "### ARTICLE 1:" in report
        assert "- Référence: 281.8341" in report
        assert "- Prix unitaire: 39,99" in report
        assert "confiance 0.72" in report
        assert "ANOMALIES" not in report

    def test_round_amounts_shortened(self):
        """Test whole amounts are shown without decimals."""
        report = render_text_report(_result(totals=Totals(order_total="40.00")))
        assert "- Total commande annoncé: 40" in report

    def test_gain_line(self):
        """Test the prize cheque is shown only when known."""
        assert "- Gain chèque bancaire: 5000" in render_text_report(_result(gain="5000.00"))
        assert "Gain" not in render_text_report(_result())

    def test_no_items(self):
        """Test an empty order is flagged."""
        report = render_text_report(_result(items=[], totals=Totals()))
        assert "(Aucun article détecté)" in report
        assert "Aucun article: vérifier la qualité OCR ou le cadrage." in report


class TestAnomalies:
    """Tests for anomaly detection."""

    def test_sum_mismatch(self):
        """Test a stated total far from the items sum."""
        anomalies = find_anomalies(_result(totals=Totals(order_total="125.46")))
        assert anomalies == ["Écart entre somme des lignes (39,99) et total commande (125,46)."]

    def test_placeholder_color_hidden_and_counted(self):
        """Test code placeholders in the colour column."""
        item = LineItem(product_name="Robe", color="code 10", unit_price="39.99", line_total="39.99")
        result = _result(items=[item])
        assert "- Coloris:" not in render_text_report(result)
        assert find_anomalies(result) == ["1 coloris placeholder ignoré(s)."]

    def test_placeholder_detection(self):
        """Test OCR variants of the placeholder."""
        assert is_placeholder_color("code 10")
        assert is_placeholder_color("codelo")
        assert not is_placeholder_color("bleu")
        assert not is_placeholder_color(None)
