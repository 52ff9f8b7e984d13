"""
Tests for the command-line interface.
"""

import json

import pytest
from typer.testing import CliRunner
from unittest.mock import patch

from peppol_qc import __version__
from peppol_qc.cli import app

runner = CliRunner()


@pytest.fixture
def pdf_file(tmp_path):
    path = tmp_path / "invoice.pdf"
    path.write_bytes(b"%PDF-1.4")
    return path


class TestAnalyzeCommand:
    """Tests for the analyze command."""

    def test_complete_invoice(self, pdf_file, sample_text, tmp_path):
        xml_out = tmp_path / "invoice.xml"
        report = tmp_path / "report.json"

        with patch("peppol_qc.pdf_extractor.extract_text_from_pdf", return_value=sample_text):
            result = runner.invoke(
                app, ["analyze", str(pdf_file), "--xml-out", str(xml_out), "--report", str(report)]
            )

        assert result.exit_code == 0
        assert "Conformity score:   100/100" in result.output
        assert "<cbc:ID>INV-2025-001</cbc:ID>" in xml_out.read_text(encoding="utf-8")

        saved = json.loads(report.read_text(encoding="utf-8"))
        assert saved["score"] == 100
        assert saved["record"]["invoice_number"] == "INV-2025-001"

    def test_incomplete_invoice_skips_xml(self, pdf_file, text_without_buyer, tmp_path):
        xml_out = tmp_path / "invoice.xml"

        with patch("peppol_qc.pdf_extractor.extract_text_from_pdf", return_value=text_without_buyer):
            result = runner.invoke(app, ["analyze", str(pdf_file), "-x", str(xml_out)])

        assert result.exit_code == 0
        assert "customerName" in result.output
        assert not xml_out.exists()

    def test_fail_on_incomplete(self, pdf_file, text_without_buyer):
        with patch("peppol_qc.pdf_extractor.extract_text_from_pdf", return_value=text_without_buyer):
            result = runner.invoke(app, ["analyze", str(pdf_file), "--fail-on-incomplete"])

        assert result.exit_code == 1

    def test_corrupt_pdf(self, pdf_file):
        result = runner.invoke(app, ["analyze", str(pdf_file)])
        assert result.exit_code == 1

    def test_unsupported_file(self, tmp_path):
        path = tmp_path / "invoice.txt"
        path.write_text("Facture n° INV-1", encoding="utf-8")
        result = runner.invoke(app, ["analyze", str(path)])
        assert result.exit_code == 1

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["analyze", str(tmp_path / "missing.pdf")])
        assert result.exit_code != 0

    def test_workbook(self, tmp_path, workbook_bytes):
        path = tmp_path / "invoice.xlsx"
        path.write_bytes(workbook_bytes)
        result = runner.invoke(app, ["analyze", str(path)])
        assert result.exit_code == 0
        assert "INV-2025-001" in result.output


class TestValidateCommand:
    """Tests for the validate command."""

    def test_valid_record(self, tmp_path, valid_record):
        input_file = tmp_path / "record.json"
        input_file.write_text(valid_record.model_dump_json(), encoding="utf-8")
        xml_out = tmp_path / "invoice.xml"

        result = runner.invoke(app, ["validate", "--input", str(input_file), "--xml-out", str(xml_out)])

        assert result.exit_code == 0
        assert "Errors:             0" in result.output
        assert xml_out.exists()

    def test_findings_listed(self, tmp_path, valid_record):
        valid_record.seller.vat_number = "FR12345678901"
        input_file = tmp_path / "record.json"
        input_file.write_text(valid_record.model_dump_json(), encoding="utf-8")

        result = runner.invoke(app, ["validate", "-i", str(input_file)])

        assert result.exit_code == 0
        assert "[VAT_INVALID_FORMAT] seller.vatNumber" in result.output

    def test_unpaired_surrogate_escape(self, tmp_path, valid_record):
        payload = valid_record.model_dump(mode="json")
        payload["seller"]["name"] = "Acme \ud800 SA"
        input_file = tmp_path / "record.json"
        input_file.write_text(json.dumps(payload), encoding="utf-8")
        xml_out = tmp_path / "invoice.xml"
        report = tmp_path / "report.json"

        result = runner.invoke(
            app, ["validate", "-i", str(input_file), "-x", str(xml_out), "-r", str(report)]
        )

        assert '"Acme \\ud800 SA"' in input_file.read_text(encoding="utf-8")
        assert result.exit_code == 0
        assert "<cbc:Name>Acme  SA</cbc:Name>" in xml_out.read_text(encoding="utf-8")
        assert json.loads(report.read_text(encoding="utf-8"))["record"]["seller"]["name"] == "Acme  SA"

    def test_invalid_json(self, tmp_path):
        input_file = tmp_path / "record.json"
        input_file.write_text("{not json", encoding="utf-8")
        result = runner.invoke(app, ["validate", "-i", str(input_file)])
        assert result.exit_code == 1

    def test_invalid_record(self, tmp_path):
        input_file = tmp_path / "record.json"
        input_file.write_text(json.dumps({"lines": "nope"}), encoding="utf-8")
        result = runner.invoke(app, ["validate", "-i", str(input_file)])
        assert result.exit_code == 1


class TestInfoCommands:
    """Tests for rules and version."""

    def test_rules(self):
        result = runner.invoke(app, ["rules"])
        assert result.exit_code == 0
        assert "amounts_consistency [error] AMOUNTS_INCONSISTENT" in result.output
        assert "seller_bce [warning] BCE_MISSING, BCE_INVALID_FORMAT" in result.output

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert f"v{__version__}" in result.output
