"""
Tests for the field normalizer module.

These tests verify amount, date and identifier normalization, total
derivation and the record normalization pass.
"""

import math
from datetime import date, datetime

import pytest

from peppol_qc.normalizer import (
    build_aggregated_line,
    derive_totals,
    expand_year,
    is_iso_date,
    normalize_bce,
    normalize_date,
    normalize_record,
    normalize_vat,
    parse_amount,
)
from peppol_qc.schemas import InvoiceLine, InvoiceRecord, Party, Totals


class TestParseAmount:
    """Tests for locale-aware amount parsing."""

    def test_eu_format(self):
        assert parse_amount("1.234,56") == 1234.56

    def test_us_format(self):
        assert parse_amount("1,234.56") == 1234.56

    def test_decimal_comma(self):
        assert parse_amount("6,31") == 6.31

    def test_space_thousands_and_currency(self):
        assert parse_amount("1 234,56 €") == 1234.56

    def test_non_breaking_spaces(self):
        assert parse_amount("1\u00a0234,56") == 1234.56
        assert parse_amount("1\u202f234,56") == 1234.56

    def test_apostrophe_thousands(self):
        assert parse_amount("1'234.56") == 1234.56

    def test_currency_code(self):
        assert parse_amount("EUR 1.000,00") == 1000.0

    def test_repeated_separators_are_thousands(self):
        assert parse_amount("1,234,567") == 1234567.0
        assert parse_amount("1.234.567") == 1234567.0

    def test_numbers_pass_through(self):
        assert parse_amount(12) == 12.0
        assert parse_amount(12.5) == 12.5

    def test_unparseable_is_zero(self):
        assert parse_amount("abc") == 0.0
        assert parse_amount("") == 0.0
        assert parse_amount(None) == 0.0

    def test_non_finite_is_zero(self):
        assert parse_amount(float("nan")) == 0.0
        assert parse_amount("inf") == 0.0

    def test_negative(self):
        assert parse_amount("-12,50") == -12.5

    @pytest.mark.parametrize("value", ["1234.56", "0.5", "1000"])
    def test_idempotent(self, value):
        once = parse_amount(value)
        assert parse_amount(str(once)) == once


class TestDeriveTotals:
    """Tests for missing total derivation."""

    def test_net_from_gross_and_tax(self):
        totals = derive_totals(None, 210.0, 1210.0)
        assert totals.net_amount == 1000.0

    def test_gross_from_net_and_tax(self):
        totals = derive_totals(1000.0, 210.0, None)
        assert totals.gross_amount == 1210.0

    def test_tax_from_net_and_gross(self):
        totals = derive_totals(1000.0, None, 1210.0)
        assert totals.tax_amount == 210.0

    def test_gross_only_assumes_standard_rate(self):
        totals = derive_totals(None, None, 1210.0)
        assert totals.net_amount == 1000.0
        assert totals.tax_amount == 210.0
        assert totals.gross_amount == 1210.0

    def test_nothing_found(self):
        totals = derive_totals(None, None, None)
        assert (totals.net_amount, totals.tax_amount, totals.gross_amount) == (0.0, 0.0, 0.0)

    def test_found_values_never_adjusted(self):
        totals = derive_totals(1000.0, 210.0, 1300.0)
        assert totals.gross_amount == 1300.0


class TestBuildAggregatedLine:
    """Tests for the synthetic invoice line."""

    def test_line_from_net(self):
        line = build_aggregated_line(Totals(net_amount=1000.0, tax_amount=210.0, gross_amount=1210.0))
        assert line.id == "1"
        assert line.quantity == 1.0
        assert line.unit_price == 1000.0
        assert line.line_total == 1000.0
        assert line.vat_rate == 21.0
        assert line.description == "Prestation selon facture"

    def test_line_from_gross_when_net_is_zero(self):
        line = build_aggregated_line(Totals(net_amount=0.0, tax_amount=0.0, gross_amount=121.0))
        assert line.unit_price == 100.0


class TestNormalizeDate:
    """Tests for date normalization."""

    def test_day_month_year(self):
        assert normalize_date("19/11/2025") == "2025-11-19"

    def test_iso_unchanged(self):
        assert normalize_date("2025-11-19") == "2025-11-19"

    def test_zero_padding(self):
        assert normalize_date("1-2-2025") == "2025-02-01"

    def test_dotted(self):
        assert normalize_date("19.11.2025") == "2025-11-19"

    def test_year_first(self):
        assert normalize_date("2025/11/19") == "2025-11-19"

    def test_two_digit_years(self):
        assert normalize_date("19/11/95") == "1995-11-19"
        assert normalize_date("19/11/25") == "2025-11-19"

    def test_expand_year(self):
        assert expand_year("95") == "1995"
        assert expand_year("50") == "2050"
        assert expand_year("2025") == "2025"

    def test_french_textual_date(self):
        assert normalize_date("19 novembre 2025") == "2025-11-19"
        assert normalize_date("1er mars 2025") == "2025-03-01"

    def test_english_textual_date(self):
        assert normalize_date("November 19, 2025") == "2025-11-19"

    def test_date_objects(self):
        assert normalize_date(date(2025, 11, 19)) == "2025-11-19"
        assert normalize_date(datetime(2025, 11, 19, 10, 30)) == "2025-11-19"

    def test_unparseable_returned_unchanged(self):
        assert normalize_date("not a date") == "not a date"

    def test_non_ascii_digits_returned_unchanged(self):
        assert normalize_date("1\u00b2/11/2025") == "1\u00b2/11/2025"
        assert normalize_date("\u0661\u0669/11/2025") == "\u0661\u0669/11/2025"
        assert not is_iso_date("\uff12025-11-19")

    def test_is_iso_date(self):
        assert is_iso_date("2025-11-19")
        assert not is_iso_date("2025-02-30")
        assert not is_iso_date("19/11/2025")
        assert not is_iso_date(None)


class TestNormalizeIdentifiers:
    """Tests for VAT and BCE normalization."""

    def test_vat_with_separators(self):
        assert normalize_vat("BE 0123.456.789") == "BE0123456789"

    def test_vat_without_prefix(self):
        assert normalize_vat("0123456789") == "BE0123456789"

    def test_vat_lowercase(self):
        assert normalize_vat("be0123-456-789") == "BE0123456789"

    def test_vat_empty(self):
        assert normalize_vat("") == ""
        assert normalize_vat(None) == ""

    def test_foreign_vat_kept(self):
        assert normalize_vat("FR 12 345678901") == "FR12345678901"

    def test_bce(self):
        assert normalize_bce("0123.456.789") == "0123456789"
        assert normalize_bce("") is None
        assert normalize_bce("n/a") is None


class TestNormalizeRecord:
    """Tests for the record normalization pass."""

    def test_returns_new_normalized_record(self):
        draft = InvoiceRecord(
            invoice_number="  INV-1 ",
            issue_date="19/11/2025",
            buyer_reference="  ",
            order_reference=" PO-7 ",
            seller=Party(name=" Acme SA ", vat_number="0123 456 789", bce_number="0123.456.789"),
        )

        normalized = normalize_record(draft)

        assert normalized is not draft
        assert normalized.invoice_number == "INV-1"
        assert normalized.issue_date_iso == "2025-11-19"
        assert normalized.seller.name == "Acme SA"
        assert normalized.seller.vat_number == "BE0123456789"
        assert normalized.seller.bce_number == "0123456789"
        assert normalized.buyer_reference is None
        assert normalized.order_reference == "PO-7"

    def test_input_untouched(self):
        draft = InvoiceRecord(issue_date="19/11/2025", seller=Party(vat_number="0123456789"))
        normalize_record(draft)
        assert draft.issue_date_iso is None
        assert draft.seller.vat_number == "0123456789"

    def test_missing_date_has_no_iso(self):
        assert normalize_record(InvoiceRecord()).issue_date_iso is None

    def test_nan_amount_preserved(self):
        draft = InvoiceRecord(totals=Totals(net_amount=float("nan")))
        assert math.isnan(normalize_record(draft).totals.net_amount)

    def test_lone_surrogates_dropped(self):
        draft = InvoiceRecord(
            invoice_number="INV-\ud800 1",
            seller=Party(name="Acme \ud800 SA"),
            lines=[InvoiceLine(description="Conseil\udfff")],
        )

        normalized = normalize_record(draft)

        assert normalized.invoice_number == "INV- 1"
        assert normalized.seller.name == "Acme  SA"
        assert normalized.lines[0].description == "Conseil"
        assert draft.seller.name == "Acme \ud800 SA"
