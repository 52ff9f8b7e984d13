"""Shared fixtures for the Peppol QC test suite."""

import io
from datetime import datetime

import pytest
from openpyxl import Workbook

from peppol_qc.schemas import Address, InvoiceLine, InvoiceRecord, Party, Totals


SAMPLE_INVOICE_TEXT = """FACTURE
Facture n° : INV-2025-001
Date : 19/11/2025
Référence client : REF-CLIENT-123
Fournisseur :
Entreprise Example SPRL
TVA : BE0123456789
N° BCE : 0123456789
Rue de la Loi 123
1000 Bruxelles, Belgique
Client :
Client Test SA
TVA : BE0987654321
Avenue Louise 456
1050 Bruxelles, Belgique
Détails de la facture :
Description Qté Prix unit. TVA % Total
Prestation de services conseil 5 100,00 € 21% 500,00 €
Formation équipe 2 250,00 € 21% 500,00 €
Total HT : 1000,00 €
TVA (21%) : 210,00 €
Total TTC : 1210,00 €
"""

# Same invoice without the customer block
SAMPLE_TEXT_WITHOUT_BUYER = SAMPLE_INVOICE_TEXT.replace(
    "Client :\nClient Test SA\nTVA : BE0987654321\nAvenue Louise 456\n1050 Bruxelles, Belgique\n",
    "",
)

SPREADSHEET_HEADER = [
    "Numéro facture",
    "Date",
    "Fournisseur",
    "TVA Fournisseur",
    "BCE",
    "Client",
    "Référence client",
    "Description",
    "Total HT",
    "TVA",
    "Total TTC",
]

SPREADSHEET_ROW = [
    "INV-2025-001",
    datetime(2025, 11, 19),
    "Entreprise Example SPRL",
    "BE 0123.456.789",
    "0123456789",
    "Client Test SA",
    "REF-CLIENT-123",
    "Prestation de services conseil",
    1000,
    210,
    1210,
]


def build_workbook_bytes(*rows: list) -> bytes:
    """Save rows (header first) to an in-memory .xlsx workbook."""
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def sample_text() -> str:
    return SAMPLE_INVOICE_TEXT


@pytest.fixture
def valid_record() -> InvoiceRecord:
    """A normalized record that passes every rule and the completeness gate."""
    return InvoiceRecord(
        invoice_number="INV-2025-001",
        issue_date="19/11/2025",
        issue_date_iso="2025-11-19",
        currency="EUR",
        buyer_reference="REF-CLIENT-123",
        seller=Party(
            name="Entreprise Example SPRL",
            vat_number="BE0123456789",
            bce_number="0123456789",
            address=Address(street="Rue de la Loi 123", city="Bruxelles", postal_code="1000"),
        ),
        buyer=Party(name="Client Test SA", vat_number="BE0987654321"),
        lines=[
            InvoiceLine(
                id="1",
                description="Prestation de services conseil",
                quantity=1,
                unit_price=1000.0,
                vat_rate=21,
                line_total=1000.0,
            )
        ],
        totals=Totals(net_amount=1000.0, tax_amount=210.0, gross_amount=1210.0),
    )


@pytest.fixture
def workbook_bytes() -> bytes:
    return build_workbook_bytes(SPREADSHEET_HEADER, SPREADSHEET_ROW)


@pytest.fixture
def spreadsheet_header() -> list:
    return list(SPREADSHEET_HEADER)


@pytest.fixture
def spreadsheet_row() -> list:
    return list(SPREADSHEET_ROW)


@pytest.fixture
def make_workbook():
    """Factory building in-memory workbooks from rows."""
    return build_workbook_bytes


@pytest.fixture
def text_without_buyer() -> str:
    return SAMPLE_TEXT_WITHOUT_BUYER
