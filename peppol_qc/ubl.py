"""
UBL 2.1 invoice generation for Peppol BIS Billing 3.0.

The document is built as an lxml element tree, one helper per UBL aggregate,
and serialized with an XML declaration. Text values are cleaned of characters
XML 1.0 cannot carry before they are assigned; lxml does the escaping.

Known simplification: the document-level TaxSubtotal always carries a single
standard-rate category (S, 21 %), whatever the per-line ``vat_rate`` values
are. Lines keep their own rate in ClassifiedTaxCategory. A warning is logged
when a record mixes rates or uses a rate other than the document category.
"""

import logging
import re
from typing import Optional

from lxml import etree

from .config import EXPECTED_COUNTRY, get_logger
from .exceptions import UblRenderError
from .normalizer import is_iso_date
from .schemas import InvoiceLine, InvoiceRecord, Party

_logger = get_logger("ubl")

# ============================================================================
# Document Constants
# ============================================================================

UBL_NAMESPACE = "urn:oasis:names:specification:ubl:schema:xsd:Invoice-2"
CAC_NAMESPACE = "urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2"
CBC_NAMESPACE = "urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2"

NSMAP = {None: UBL_NAMESPACE, "cac": CAC_NAMESPACE, "cbc": CBC_NAMESPACE}

CUSTOMIZATION_ID = "urn:cen.eu:en16931:2017#compliant#urn:fdc:peppol.eu:2017:poacc:billing:3.0"
PROFILE_ID = "urn:fdc:peppol.eu:2017:poacc:billing:01:1.0"
INVOICE_TYPE_CODE = "380"

# Electronic address scheme for Belgian enterprise (BCE/KBO) numbers
BCE_ENDPOINT_SCHEME = "0208"
UNIT_CODE = "C62"

TAX_CATEGORY_ID = "S"
TAX_CATEGORY_PERCENT = 21.0

DEFAULT_SELLER_NAME = "Fournisseur"
DEFAULT_BUYER_NAME = "Client"
DEFAULT_STREET = "Rue inconnue"
DEFAULT_CITY = "Bruxelles"
DEFAULT_POSTAL_ZONE = "1000"

# Control characters, lone surrogates and the two non-characters XML 1.0 forbids
_XML_ILLEGAL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


# ============================================================================
# Formatting Helpers
# ============================================================================

def clean_text(value: Optional[str]) -> str:
    """Drop characters that cannot appear in an XML 1.0 document."""
    if value is None:
        return ""
    return _XML_ILLEGAL_CHARS_RE.sub("", str(value))


def format_amount(value: Optional[float]) -> str:
    """Two-decimal amount; a missing amount renders as 0.00."""
    return f"{value or 0.0:.2f}"


def format_number(value: float) -> str:
    """Quantities and percentages: ``5`` rather than ``5.0``, ``1.5`` kept as is."""
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def _cac(parent: etree._Element, name: str) -> etree._Element:
    return etree.SubElement(parent, f"{{{CAC_NAMESPACE}}}{name}")


def _cbc(parent: etree._Element, name: str, text: Optional[str], **attributes: str) -> etree._Element:
    element = etree.SubElement(parent, f"{{{CBC_NAMESPACE}}}{name}")
    for key, value in attributes.items():
        element.set(key, clean_text(value))
    element.text = clean_text(text)
    return element


def _tax_scheme(parent: etree._Element) -> None:
    _cbc(_cac(parent, "TaxScheme"), "ID", "VAT")


def _amount(parent: etree._Element, name: str, value: Optional[float], currency: str) -> None:
    _cbc(parent, name, format_amount(value), currencyID=currency)


# ============================================================================
# Aggregates
# ============================================================================

def _supplier_party(root: etree._Element, seller: Party) -> None:
    party = _cac(_cac(root, "AccountingSupplierParty"), "Party")
    if seller.bce_number:
        _cbc(party, "EndpointID", seller.bce_number, schemeID=BCE_ENDPOINT_SCHEME)
    _cbc(_cac(party, "PartyName"), "Name", seller.name or DEFAULT_SELLER_NAME)

    address = seller.address
    postal = _cac(party, "PostalAddress")
    _cbc(postal, "StreetName", address.street or DEFAULT_STREET)
    _cbc(postal, "CityName", address.city or DEFAULT_CITY)
    _cbc(postal, "PostalZone", address.postal_code or DEFAULT_POSTAL_ZONE)
    _cbc(_cac(postal, "Country"), "IdentificationCode", address.country or EXPECTED_COUNTRY)

    tax = _cac(party, "PartyTaxScheme")
    _cbc(tax, "CompanyID", seller.vat_number)
    _tax_scheme(tax)


def _customer_party(root: etree._Element, buyer: Party) -> None:
    party = _cac(_cac(root, "AccountingCustomerParty"), "Party")
    _cbc(_cac(party, "PartyName"), "Name", buyer.name or DEFAULT_BUYER_NAME)
    postal = _cac(party, "PostalAddress")
    _cbc(_cac(postal, "Country"), "IdentificationCode", buyer.address.country or EXPECTED_COUNTRY)

    if buyer.vat_number:
        tax = _cac(party, "PartyTaxScheme")
        _cbc(tax, "CompanyID", buyer.vat_number)
        _tax_scheme(tax)


def _tax_total(root: etree._Element, record: InvoiceRecord, currency: str) -> None:
    totals = record.totals
    tax_total = _cac(root, "TaxTotal")
    _amount(tax_total, "TaxAmount", totals.tax_amount, currency)

    subtotal = _cac(tax_total, "TaxSubtotal")
    _amount(subtotal, "TaxableAmount", totals.net_amount, currency)
    _amount(subtotal, "TaxAmount", totals.tax_amount, currency)

    category = _cac(subtotal, "TaxCategory")
    _cbc(category, "ID", TAX_CATEGORY_ID)
    _cbc(category, "Percent", format_number(TAX_CATEGORY_PERCENT))
    _tax_scheme(category)


def _monetary_total(root: etree._Element, record: InvoiceRecord, currency: str) -> None:
    monetary = _cac(root, "LegalMonetaryTotal")
    _amount(monetary, "LineExtensionAmount", record.totals.net_amount, currency)
    _amount(monetary, "TaxExclusiveAmount", record.totals.net_amount, currency)
    _amount(monetary, "TaxInclusiveAmount", record.totals.gross_amount, currency)
    _amount(monetary, "PayableAmount", record.totals.gross_amount, currency)


def _invoice_line(root: etree._Element, line: InvoiceLine, currency: str) -> None:
    element = _cac(root, "InvoiceLine")
    _cbc(element, "ID", line.id)
    _cbc(element, "InvoicedQuantity", format_number(line.quantity), unitCode=UNIT_CODE)
    _amount(element, "LineExtensionAmount", line.line_total, currency)

    item = _cac(element, "Item")
    _cbc(item, "Name", line.description)
    category = _cac(item, "ClassifiedTaxCategory")
    _cbc(category, "ID", TAX_CATEGORY_ID)
    _cbc(category, "Percent", format_number(line.vat_rate))
    _tax_scheme(category)

    _amount(_cac(element, "Price"), "PriceAmount", line.unit_price, currency)


# ============================================================================
# Main Generation Function
# ============================================================================

def build_invoice_tree(record: InvoiceRecord) -> etree._Element:
    """Build the ``Invoice`` element for a normalized record."""
    root = etree.Element(f"{{{UBL_NAMESPACE}}}Invoice", nsmap=NSMAP)
    currency = record.currency
    issue_date = record.issue_date_iso if is_iso_date(record.issue_date_iso) else record.issue_date

    _cbc(root, "CustomizationID", CUSTOMIZATION_ID)
    _cbc(root, "ProfileID", PROFILE_ID)
    _cbc(root, "ID", record.invoice_number)
    _cbc(root, "IssueDate", issue_date)
    _cbc(root, "InvoiceTypeCode", INVOICE_TYPE_CODE)
    _cbc(root, "DocumentCurrencyCode", currency)
    if record.buyer_reference:
        _cbc(root, "BuyerReference", record.buyer_reference)
    if record.order_reference:
        _cbc(_cac(root, "OrderReference"), "ID", record.order_reference)

    _supplier_party(root, record.seller)
    _customer_party(root, record.buyer)
    _tax_total(root, record, currency)
    _monetary_total(root, record, currency)
    for line in record.lines:
        _invoice_line(root, line, currency)
    return root


def generate_ubl(record: InvoiceRecord, logger: Optional[logging.Logger] = None) -> str:
    """
    Render a normalized record as a UBL invoice.

    Callers are expected to run the completeness gate first; missing party
    names and seller address parts fall back to fixed placeholders.

    Args:
        record: Normalized InvoiceRecord
        logger: Logger to use instead of the module logger

    Returns:
        The XML document as a string, with an XML declaration

    Raises:
        UblRenderError: If lxml rejects a value while building or serializing
    """
    log = logger or _logger

    line_rates = sorted({line.vat_rate for line in record.lines})
    if line_rates and line_rates != [TAX_CATEGORY_PERCENT]:
        log.warning(
            "Invoice %r has line VAT rates %s; tax subtotal is rendered at a flat %s%%",
            record.invoice_number,
            [format_number(rate) for rate in line_rates],
            format_number(TAX_CATEGORY_PERCENT),
        )

    try:
        root = build_invoice_tree(record)
        xml = etree.tostring(root, xml_declaration=True, encoding="UTF-8", pretty_print=True)
    except (ValueError, TypeError) as e:
        raise UblRenderError(f"Could not render UBL for invoice {record.invoice_number!r}: {e}") from e

    log.debug("Generated UBL for invoice %r (%d lines)", record.invoice_number, len(record.lines))
    return xml.decode("utf-8")
