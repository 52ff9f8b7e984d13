"""
Tests for UBL invoice generation.

Generated documents are parsed back with lxml and inspected through paths.
"""

import pytest
from lxml import etree
from unittest.mock import MagicMock, patch

from peppol_qc.exceptions import UblRenderError
from peppol_qc.schemas import InvoiceLine, Party
from peppol_qc.ubl import (
    BCE_ENDPOINT_SCHEME,
    CAC_NAMESPACE,
    CBC_NAMESPACE,
    CUSTOMIZATION_ID,
    UBL_NAMESPACE,
    clean_text,
    format_amount,
    format_number,
    generate_ubl,
)

NS = {"inv": UBL_NAMESPACE, "cac": CAC_NAMESPACE, "cbc": CBC_NAMESPACE}


def _parse(xml: str):
    return etree.fromstring(xml.encode("utf-8"))


def _text(root, path: str) -> str:
    return root.findtext(path, namespaces=NS)


class TestFormatting:
    """Tests for value formatting helpers."""

    def test_clean_text_keeps_markup_characters(self):
        assert clean_text('Acme & "Co" <Ltd>') == 'Acme & "Co" <Ltd>'
        assert clean_text(None) == ""

    def test_clean_text_strips_control_characters(self):
        assert clean_text("A\x00B\x1fC\tD\n") == "ABC\tD\n"

    def test_clean_text_strips_lone_surrogates(self):
        assert clean_text("Acme \ud800 SA") == "Acme  SA"
        assert clean_text("\udfffX\ufffe") == "X"

    @pytest.mark.parametrize(
        "value, expected",
        [(1000, "1000.00"), (210.005, "210.00"), (0.1 + 0.2, "0.30"), (None, "0.00")],
    )
    def test_format_amount(self, value, expected):
        assert format_amount(value) == expected

    @pytest.mark.parametrize("value, expected", [(5.0, "5"), (21, "21"), (1.5, "1.5"), (5.5, "5.5")])
    def test_format_number(self, value, expected):
        assert format_number(value) == expected


class TestGenerateUbl:
    """Tests for the generated document."""

    def test_header(self, valid_record):
        xml = generate_ubl(valid_record)
        assert xml.startswith("<?xml version='1.0' encoding='UTF-8'?>")

        root = _parse(xml)
        assert root.tag == f"{{{UBL_NAMESPACE}}}Invoice"
        assert _text(root, "cbc:CustomizationID") == CUSTOMIZATION_ID
        assert _text(root, "cbc:ID") == "INV-2025-001"
        assert _text(root, "cbc:IssueDate") == "2025-11-19"
        assert _text(root, "cbc:InvoiceTypeCode") == "380"
        assert _text(root, "cbc:DocumentCurrencyCode") == "EUR"
        assert _text(root, "cbc:BuyerReference") == "REF-CLIENT-123"
        assert root.find("cac:OrderReference", namespaces=NS) is None

    def test_order_reference(self, valid_record):
        valid_record.buyer_reference = None
        valid_record.order_reference = "PO-4711"
        root = _parse(generate_ubl(valid_record))
        assert root.find("cbc:BuyerReference", namespaces=NS) is None
        assert _text(root, "cac:OrderReference/cbc:ID") == "PO-4711"

    def test_raw_date_used_when_not_iso(self, valid_record):
        valid_record.issue_date_iso = None
        root = _parse(generate_ubl(valid_record))
        assert _text(root, "cbc:IssueDate") == "19/11/2025"

    def test_supplier_party(self, valid_record):
        root = _parse(generate_ubl(valid_record))
        party = root.find("cac:AccountingSupplierParty/cac:Party", namespaces=NS)

        endpoint = party.find("cbc:EndpointID", namespaces=NS)
        assert endpoint.text == "0123456789"
        assert endpoint.get("schemeID") == BCE_ENDPOINT_SCHEME
        assert _text(party, "cac:PartyName/cbc:Name") == "Entreprise Example SPRL"
        assert _text(party, "cac:PostalAddress/cbc:StreetName") == "Rue de la Loi 123"
        assert _text(party, "cac:PostalAddress/cac:Country/cbc:IdentificationCode") == "BE"
        assert _text(party, "cac:PartyTaxScheme/cbc:CompanyID") == "BE0123456789"

    def test_no_endpoint_without_bce(self, valid_record):
        valid_record.seller.bce_number = None
        root = _parse(generate_ubl(valid_record))
        assert root.find(".//cbc:EndpointID", namespaces=NS) is None

    def test_placeholders_for_missing_parts(self, valid_record):
        valid_record.seller = Party(vat_number="BE0123456789")
        valid_record.buyer = Party()
        root = _parse(generate_ubl(valid_record))

        supplier = root.find("cac:AccountingSupplierParty/cac:Party", namespaces=NS)
        assert _text(supplier, "cac:PartyName/cbc:Name") == "Fournisseur"
        assert _text(supplier, "cac:PostalAddress/cbc:StreetName") == "Rue inconnue"
        assert _text(supplier, "cac:PostalAddress/cbc:CityName") == "Bruxelles"
        assert _text(supplier, "cac:PostalAddress/cbc:PostalZone") == "1000"

        customer = root.find("cac:AccountingCustomerParty/cac:Party", namespaces=NS)
        assert _text(customer, "cac:PartyName/cbc:Name") == "Client"
        assert customer.find("cac:PartyTaxScheme", namespaces=NS) is None

    def test_totals(self, valid_record):
        root = _parse(generate_ubl(valid_record))
        assert _text(root, "cac:TaxTotal/cbc:TaxAmount") == "210.00"
        assert _text(root, "cac:TaxTotal/cac:TaxSubtotal/cbc:TaxableAmount") == "1000.00"
        assert _text(root, "cac:TaxTotal/cac:TaxSubtotal/cac:TaxCategory/cbc:ID") == "S"
        assert _text(root, "cac:TaxTotal/cac:TaxSubtotal/cac:TaxCategory/cbc:Percent") == "21"
        assert _text(root, "cac:LegalMonetaryTotal/cbc:TaxExclusiveAmount") == "1000.00"
        assert _text(root, "cac:LegalMonetaryTotal/cbc:PayableAmount") == "1210.00"

        payable = root.find("cac:LegalMonetaryTotal/cbc:PayableAmount", namespaces=NS)
        assert payable.get("currencyID") == "EUR"

    def test_lines(self, valid_record):
        valid_record.lines.append(
            InvoiceLine(id="2", description="Formation", quantity=2.5, unit_price=100.0, line_total=250.0)
        )
        root = _parse(generate_ubl(valid_record))
        lines = root.findall("cac:InvoiceLine", namespaces=NS)

        assert [_text(line, "cbc:ID") for line in lines] == ["1", "2"]
        assert _text(lines[0], "cbc:InvoicedQuantity") == "1"
        assert lines[0].find("cbc:InvoicedQuantity", namespaces=NS).get("unitCode") == "C62"
        assert _text(lines[1], "cbc:InvoicedQuantity") == "2.5"
        assert _text(lines[1], "cbc:LineExtensionAmount") == "250.00"
        assert _text(lines[1], "cac:Item/cbc:Name") == "Formation"
        assert _text(lines[1], "cac:Price/cbc:PriceAmount") == "100.00"

    def test_special_characters_round_trip(self, valid_record):
        valid_record.seller.name = 'Acme & "Co" <Ltd>'
        valid_record.lines[0].description = "Conseil d'équipe\x07 > 5 jours"

        xml = generate_ubl(valid_record)
        assert 'Acme &amp; "Co" &lt;Ltd&gt;' in xml

        root = _parse(xml)
        assert _text(root, "cac:AccountingSupplierParty/cac:Party/cac:PartyName/cbc:Name") == 'Acme & "Co" <Ltd>'
        assert _text(root, "cac:InvoiceLine/cac:Item/cbc:Name") == "Conseil d'équipe > 5 jours"

    def test_mixed_rates_logged(self, valid_record):
        valid_record.lines.append(InvoiceLine(id="2", quantity=1, unit_price=10.0, vat_rate=6))
        logger = MagicMock()

        root = _parse(generate_ubl(valid_record, logger=logger))

        logger.warning.assert_called_once()
        percents = root.findall(".//cac:ClassifiedTaxCategory/cbc:Percent", namespaces=NS)
        assert [p.text for p in percents] == ["21", "6"]

    def test_standard_rate_not_logged(self, valid_record):
        logger = MagicMock()
        generate_ubl(valid_record, logger=logger)
        logger.warning.assert_not_called()


class TestUnencodableText:
    """Tests for values XML 1.0 cannot carry."""

    def test_lone_surrogate_in_party_name(self, valid_record):
        valid_record.seller.name = "Acme \ud800 SA"
        valid_record.lines[0].description = "Conseil\udc00"

        xml = generate_ubl(valid_record)

        root = _parse(xml)
        assert _text(root, "cac:AccountingSupplierParty/cac:Party/cac:PartyName/cbc:Name") == "Acme  SA"
        assert _text(root, "cac:InvoiceLine/cac:Item/cbc:Name") == "Conseil"

    def test_surrogate_in_attribute(self, valid_record):
        valid_record.currency = "EU\ud83dR"
        root = _parse(generate_ubl(valid_record))
        payable = root.find("cac:LegalMonetaryTotal/cbc:PayableAmount", namespaces=NS)
        assert payable.get("currencyID") == "EUR"

    def test_builder_error_wrapped(self, valid_record):
        with patch("peppol_qc.ubl.build_invoice_tree", side_effect=ValueError("All strings must be XML compatible")):
            with pytest.raises(UblRenderError, match="INV-2025-001"):
                generate_ubl(valid_record)
