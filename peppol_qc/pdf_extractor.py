"""
PDF extraction module for converting invoice PDFs to draft invoice records.

This module provides functionality to:
- Extract raw text from PDF files using pdfplumber
- Locate invoice fields with ordered cascades of named extraction strategies
- Derive missing totals and synthesize a single aggregated invoice line
- Output a draft InvoiceRecord (not yet normalized)

Extraction is best effort: a field no strategy can find is left empty and is
reported later by the validator or the completeness checker. Only unreadable
PDF containers raise (``DocumentReadError``).
"""

import io
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

import pdfplumber

from .config import get_logger
from .exceptions import DocumentReadError
from .normalizer import build_aggregated_line, derive_totals, normalize_bce, normalize_vat, parse_amount
from .schemas import Address, InvoiceRecord, Party

_logger = get_logger("pdf_extractor")


# ============================================================================
# Text Extraction
# ============================================================================

def extract_text_from_pdf(source: Union[bytes, str, Path], name: Optional[str] = None) -> str:
    """
    Extract all text content from a PDF document.

    Args:
        source: Raw PDF bytes or a path to a PDF file
        name: Display name used in error messages

    Returns:
        Concatenated text from all pages

    Raises:
        DocumentReadError: If the file is missing or the container is corrupt
    """
    label = name or (str(source) if not isinstance(source, bytes) else "<bytes>")
    stream = io.BytesIO(source) if isinstance(source, bytes) else source

    try:
        with pdfplumber.open(stream) as pdf:
            text_parts = [page.extract_text() or "" for page in pdf.pages]
    except Exception as e:
        raise DocumentReadError(label, str(e) or type(e).__name__) from e

    return "\n".join(part for part in text_parts if part)


# ============================================================================
# Extraction Strategies
# ============================================================================

@dataclass(frozen=True)
class ExtractionStrategy:
    """
    A named way of finding one field in the invoice text.

    Attributes:
        name: Identifier logged when this strategy wins
        find: Function returning the raw value, or None when it does not apply
    """
    name: str
    find: Callable[[str], Optional[str]]

    def __call__(self, text: str) -> Optional[str]:
        value = self.find(text)
        if value is None:
            return None
        value = value.strip()
        return value or None


def regex_strategy(
    name: str,
    pattern: str,
    flags: int = re.IGNORECASE,
    accept: Optional[Callable[[str], bool]] = None,
) -> ExtractionStrategy:
    """Build a strategy returning group 1 of the first match accepted by ``accept``."""
    compiled = re.compile(pattern, flags)

    def find(text: str) -> Optional[str]:
        for match in compiled.finditer(text):
            value = match.group(1).strip()
            if value and (accept is None or accept(value)):
                return value
        return None

    return ExtractionStrategy(name=name, find=find)


def first_match(
    strategies: Sequence[ExtractionStrategy],
    text: str,
    field: str,
    logger: Optional[logging.Logger] = None,
) -> Optional[str]:
    """Run ``strategies`` in priority order and return the first value found."""
    log = logger or _logger
    for strategy in strategies:
        value = strategy(text)
        if value is not None:
            log.debug("Field %s matched by strategy %s: %r", field, strategy.name, value)
            return value
    log.debug("Field %s: no strategy matched", field)
    return None


# ============================================================================
# Shared Patterns
# ============================================================================

# A Belgian enterprise number written with spaces (0123 456 789) is never an amount
_ENTERPRISE_NUMBER_AHEAD = r"(?!0\d{3}[ \u00a0]?\d{3}[ \u00a0]?\d{3}(?!\d))"

# Grouped thousands (1 234,56 / 1.234,56 / 1,234.56) or a plain number (1234,56).
# A trailing "." or "," followed by a digit means the token continues (0123.456.789, 12.11.2025).
AMOUNT = (
    _ENTERPRISE_NUMBER_AHEAD
    + r"(-?\d{1,3}(?:[ \u00a0\u202f.,']\d{3})+(?:[.,]\d{1,2})?|-?\d+(?:[.,]\d{1,2})?)(?![.,]?\d)"
)

# Glue between an amount label and its value: "Total HT : € 1.000,00"
SEP = r"[ \t]*:?[ \t]*(?:€|EUR)?[ \t]*"

NUMERIC_DATE = r"(?<!\d)(\d{4}-\d{1,2}-\d{1,2}|\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4})(?!\d)"

TEXTUAL_DATE = r"(\d{1,2}(?:er)?[ \t]+[^\W\d_]{3,}\.?[ \t]+\d{4})"

VAT_NUMBER = r"\b(BE[ \t.:\-]*\d(?:[ \t.\-]?\d){8,9})(?!\d)"

BCE_NUMBER = r"(?<!\d)(\d{4}[ .]?\d{3}[ .]?\d{3})(?!\d)"

REFERENCE = r"([A-Z0-9][\w\-/.]*)"

SELLER_LABEL_RE = re.compile(
    r"^[ \t]*(?:fournisseur|vendeur|émetteur|emetteur|prestataire|supplier|seller|vendor|from)"
    r"[ \t]*(?::|$)",
    re.IGNORECASE | re.MULTILINE,
)

BUYER_LABEL_RE = re.compile(
    r"^[ \t]*(?:client|acheteur|destinataire|factur[ée][ \t]+à|adress[ée][ \t]+à|"
    r"customer|buyer|bill[ \t]+to|sold[ \t]+to|invoice[ \t]+to)[ \t]*(?::|$)",
    re.IGNORECASE | re.MULTILINE,
)

# Lines that end a party block
_BLOCK_STOP_RE = re.compile(
    r"^(?:d[ée]tails?|description|désignation|total|qt[ée]|quantit[ée]|date|facture|invoice|"
    r"r[ée]f[ée]rence|bon[ \t]+de[ \t]+commande)\b",
    re.IGNORECASE,
)

_POSTAL_LINE_RE = re.compile(r"^(?:[A-Z]{1,2}[- ])?(\d{4,5})[ \t]+([^\d,]+?)[ \t]*(?:,.*)?$")

_NON_ADDRESS_RE = re.compile(
    r"\b(?:TVA|VAT|BTW|BCE|KBO|CBE|t[ée]l|tel|phone|fax|e-?mail|iban|bic|www)\b|@|N°",
    re.IGNORECASE,
)

MAX_PARTY_BLOCK_LINES = 6


def _has_digit(value: str) -> bool:
    return any(c.isdigit() for c in value)


def _is_plausible_amount(value: str) -> bool:
    # A bare run of 9+ digits is an identifier (VAT, BCE, IBAN fragment), not money
    return not re.fullmatch(r"-?\d{9,}", value)


def _is_plausible_reference(value: str) -> bool:
    return len(value.rstrip(".-/")) >= 2


def _is_plausible_name(value: str) -> bool:
    letters = sum(1 for c in value if c.isalpha())
    return letters >= 2 and not re.match(r"^(?:N°|(?:TVA|VAT|BTW|BCE)\b)", value, re.IGNORECASE)


# ============================================================================
# Party Blocks
# ============================================================================

def party_block(text: str, label_re: re.Pattern) -> list[str]:
    """
    Return the lines belonging to the party introduced by ``label_re``.

    The block starts with whatever follows the label on its own line and
    continues over the next lines until a blank line, another party label,
    a section heading, or ``MAX_PARTY_BLOCK_LINES`` lines.
    """
    match = label_re.search(text)
    if not match:
        return []

    head, _, tail = text[match.end():].partition("\n")
    lines: list[str] = []
    if head.strip():
        lines.append(head.strip())

    for line in tail.split("\n"):
        stripped = line.strip()
        if not stripped:
            if lines:
                break
            continue
        if SELLER_LABEL_RE.match(stripped) or BUYER_LABEL_RE.match(stripped):
            break
        if _BLOCK_STOP_RE.match(stripped):
            break
        lines.append(stripped)
        if len(lines) >= MAX_PARTY_BLOCK_LINES:
            break

    return lines


def block_name(label_re: re.Pattern) -> Callable[[str], Optional[str]]:
    def find(text: str) -> Optional[str]:
        lines = party_block(text, label_re)
        if lines and _is_plausible_name(lines[0]):
            return lines[0]
        return None
    return find


def block_search(label_re: re.Pattern, pattern: str) -> Callable[[str], Optional[str]]:
    compiled = re.compile(pattern, re.IGNORECASE)

    def find(text: str) -> Optional[str]:
        lines = party_block(text, label_re)
        match = compiled.search("\n".join(lines))
        return match.group(1) if match else None
    return find


def extract_party_address(text: str, label_re: re.Pattern) -> Address:
    """
    Extract street, postal code and city from a party block.

    The postal line is ``"<4-5 digits> <City>[, <Country>]"``; the street is
    the first other line holding both letters and digits.
    """
    address = Address()
    for line in party_block(text, label_re)[1:]:
        if _NON_ADDRESS_RE.search(line):
            continue
        postal = _POSTAL_LINE_RE.match(line)
        if postal and address.postal_code is None:
            address.postal_code = postal.group(1)
            address.city = postal.group(2).strip()
        elif address.street is None and _has_digit(line) and any(c.isalpha() for c in line):
            address.street = line
    return address


# ============================================================================
# Strategy Cascades
# ============================================================================

INVOICE_NUMBER_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    regex_strategy(
        "numbered_label",
        r"\b(?:facture|invoice|factuur|rechnung)[ \t]*(?:n[°ºo]\.?|no\.?|num[ée]ro|number|nr\.?|#)"
        r"[ \t]*:?[ \t]*([A-Z0-9][A-Z0-9\-/_.]*)",
        accept=_has_digit,
    ),
    regex_strategy(
        "colon_label",
        r"\b(?:facture|invoice|factuur)[ \t]*:[ \t]*([A-Z0-9][A-Z0-9\-/_.]*)",
        accept=_has_digit,
    ),
    regex_strategy(
        "reference_token",
        r"\b((?:INV|FACT|FAC|FA|FV)[-_/]?\d[\w\-/]*)",
        flags=0,
    ),
)

ISSUE_DATE_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    regex_strategy(
        "invoice_date_label",
        r"(?:date[ \t]+(?:de[ \t]+(?:la[ \t]+)?)?facture|date[ \t]+d'[ée]mission|date[ \t]+of[ \t]+issue|"
        r"invoice[ \t]+date|issue[ \t]+date|factuurdatum)[ \t]*:?[ \t]*" + NUMERIC_DATE,
    ),
    regex_strategy(
        "date_label",
        r"^[ \t]*date[ \t]*:?[ \t]*" + NUMERIC_DATE,
        flags=re.IGNORECASE | re.MULTILINE,
    ),
    regex_strategy(
        "textual_date_label",
        r"\bdate[^\n:]{0,30}:[ \t]*" + TEXTUAL_DATE,
    ),
    regex_strategy("first_numeric_date", NUMERIC_DATE),
)

SELLER_NAME_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("seller_block", block_name(SELLER_LABEL_RE)),
    regex_strategy(
        "legal_form_line",
        r"^[ \t]*([^\n:]*[^\W\d_][^\n:]*\b(?:SPRL|SRL|SA|NV|BV|BVBA|SCRL|SC|ASBL|VZW|SAS|SARL|GmbH|Ltd)\b\.?)[ \t]*$",
        flags=re.MULTILINE,
    ),
)

BUYER_NAME_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("buyer_block", block_name(BUYER_LABEL_RE)),
)

SELLER_VAT_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    regex_strategy(
        "seller_vat_label",
        r"(?:TVA|VAT|BTW)[ \t]+(?:du[ \t]+)?(?:fournisseur|supplier|seller|vendeur)[ \t]*(?:n[°o]\.?)?[ \t]*:?[ \t]*"
        + VAT_NUMBER,
    ),
    ExtractionStrategy("seller_block_vat", block_search(SELLER_LABEL_RE, VAT_NUMBER)),
    regex_strategy(
        "first_labeled_vat",
        r"(?:TVA|VAT|BTW)[ \t]*(?:n[°o]\.?)?[ \t]*:?[ \t]*" + VAT_NUMBER,
    ),
    regex_strategy("first_be_number", VAT_NUMBER),
)

BUYER_VAT_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    regex_strategy(
        "buyer_vat_label",
        r"(?:TVA|VAT|BTW)[ \t]+(?:du[ \t]+)?(?:client|customer|buyer|acheteur)[ \t]*(?:n[°o]\.?)?[ \t]*:?[ \t]*"
        + VAT_NUMBER,
    ),
    ExtractionStrategy("buyer_block_vat", block_search(BUYER_LABEL_RE, VAT_NUMBER)),
)

BCE_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    regex_strategy(
        "bce_label",
        r"(?:BCE|KBO|CBE|num[ée]ro[ \t]+d'entreprise|enterprise[ \t]+number|company[ \t]+number|"
        r"ondernemingsnummer)[ \t]*(?:n[°o]\.?)?[ \t]*:?[ \t]*" + BCE_NUMBER,
    ),
    ExtractionStrategy(
        "seller_block_bce",
        block_search(SELLER_LABEL_RE, r"(?:BCE|KBO|CBE)[^\d\n]*" + BCE_NUMBER),
    ),
)

BUYER_REFERENCE_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    regex_strategy(
        "buyer_reference_label",
        r"(?:r[ée]f[ée]rence[ \t]+(?:du[ \t]+)?client|votre[ \t]+r[ée]f[ée]rence|v/r[ée]f\.?|"
        r"buyer[ \t]+reference|customer[ \t]+reference|your[ \t]+reference)[ \t]*:?[ \t]*" + REFERENCE,
        accept=_is_plausible_reference,
    ),
    regex_strategy(
        "reference_label",
        r"\b(?:r[ée]f[ée]rence|ref\.?)[ \t]*:[ \t]*" + REFERENCE,
        accept=_is_plausible_reference,
    ),
)

ORDER_REFERENCE_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    regex_strategy(
        "order_reference_label",
        r"(?:bon[ \t]+de[ \t]+commande|r[ée]f[ée]rence[ \t]+(?:de[ \t]+)?commande|purchase[ \t]+order|"
        r"order[ \t]+(?:reference|number|no\.?|n°)|\bPO[ \t]*(?:number|n[°o]\.?|#))[ \t]*:?[ \t]*" + REFERENCE,
        accept=_is_plausible_reference,
    ),
    regex_strategy(
        "commande_label",
        r"\bcommande[ \t]*(?:n[°o]\.?)?[ \t]*:[ \t]*" + REFERENCE,
        accept=_is_plausible_reference,
    ),
)

NET_AMOUNT_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    regex_strategy(
        "total_ht",
        r"(?:total|montant)[ \t]+(?:HT|H\.T\.?|HTVA|hors[ \t]+TVA|excl\.?[ \t]+(?:TVA|VAT))" + SEP + AMOUNT,
        accept=_is_plausible_amount,
    ),
    regex_strategy(
        "subtotal",
        r"(?:sous[- ]total|sub[- ]?total)" + SEP + AMOUNT,
        accept=_is_plausible_amount,
    ),
    regex_strategy(
        "net_amount",
        r"(?:net[ \t]+amount|total[ \t]+net|montant[ \t]+net|net[ \t]+total)" + SEP + AMOUNT,
        accept=_is_plausible_amount,
    ),
)

TAX_AMOUNT_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    regex_strategy(
        "total_tva",
        r"(?:total|montant)[ \t]+(?:de[ \t]+la[ \t]+)?(?:TVA|VAT|BTW|tax)" + SEP + AMOUNT,
        accept=_is_plausible_amount,
    ),
    regex_strategy(
        "tva_with_rate",
        r"\b(?:TVA|VAT|BTW)[ \t]*\(?[ \t]*\d{1,2}(?:[.,]\d+)?[ \t]*%[ \t]*\)?" + SEP + AMOUNT,
        accept=_is_plausible_amount,
    ),
    regex_strategy(
        "vat_amount",
        r"(?:VAT|tax)[ \t]+amount" + SEP + AMOUNT,
        accept=_is_plausible_amount,
    ),
    regex_strategy(
        "tva_label",
        r"\b(?:TVA|VAT|BTW|tax)\b" + SEP + AMOUNT,
        accept=_is_plausible_amount,
    ),
)

GROSS_AMOUNT_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    regex_strategy(
        "total_ttc",
        r"(?:total|montant)[ \t]+(?:TTC|T\.T\.C\.?|TVAC|TVA[ \t]+comprise|incl\.?[ \t]+(?:TVA|VAT))" + SEP + AMOUNT,
        accept=_is_plausible_amount,
    ),
    regex_strategy(
        "amount_due",
        r"(?:(?:total|net|montant)[ \t]+à[ \t]+payer|amount[ \t]+due|total[ \t]+due|balance[ \t]+due|"
        r"gross[ \t]+amount|grand[ \t]+total)" + SEP + AMOUNT,
        accept=_is_plausible_amount,
    ),
    regex_strategy(
        "plain_total",
        r"(?<![-\w])(?<!sub )(?<!sous )total\b"
        r"(?![ \t]*(?:HT|H\.T|HTVA|hors|excl|net|TVA|VAT|BTW|tax|de[ \t]+la))" + SEP + AMOUNT,
        accept=_is_plausible_amount,
    ),
)


# ============================================================================
# Field Extraction
# ============================================================================

def _extract_amount(
    strategies: Sequence[ExtractionStrategy],
    text: str,
    field: str,
    logger: logging.Logger,
) -> Optional[float]:
    raw = first_match(strategies, text, field, logger)
    return parse_amount(raw) if raw is not None else None


def parse_invoice_text(text: str, logger: Optional[logging.Logger] = None) -> InvoiceRecord:
    """
    Build a draft InvoiceRecord from the plain text of an invoice.

    Never raises: fields no strategy can find stay empty (strings) or zero
    (amounts). ``issue_date_iso`` is left unset for the normalization pass.
    """
    log = logger or _logger

    def find(strategies: Sequence[ExtractionStrategy], field: str) -> str:
        return first_match(strategies, text, field, log) or ""

    net = _extract_amount(NET_AMOUNT_STRATEGIES, text, "totals.netAmount", log)
    tax = _extract_amount(TAX_AMOUNT_STRATEGIES, text, "totals.taxAmount", log)
    gross = _extract_amount(GROSS_AMOUNT_STRATEGIES, text, "totals.grossAmount", log)
    totals = derive_totals(net, tax, gross)

    found_any_amount = any(amount is not None for amount in (net, tax, gross))
    if found_any_amount and (net is None or tax is None or gross is None):
        log.info(
            "Derived missing totals: net=%s tax=%s gross=%s",
            totals.net_amount, totals.tax_amount, totals.gross_amount,
        )
    lines = [build_aggregated_line(totals)] if found_any_amount else []

    seller = Party(
        name=find(SELLER_NAME_STRATEGIES, "seller.name"),
        vat_number=normalize_vat(find(SELLER_VAT_STRATEGIES, "seller.vatNumber")),
        bce_number=normalize_bce(find(BCE_STRATEGIES, "seller.bceNumber")),
        address=extract_party_address(text, SELLER_LABEL_RE),
    )
    buyer = Party(
        name=find(BUYER_NAME_STRATEGIES, "buyer.name"),
        vat_number=normalize_vat(find(BUYER_VAT_STRATEGIES, "buyer.vatNumber")),
        address=extract_party_address(text, BUYER_LABEL_RE),
    )

    return InvoiceRecord(
        invoice_number=find(INVOICE_NUMBER_STRATEGIES, "invoiceNumber").rstrip(".-/"),
        issue_date=find(ISSUE_DATE_STRATEGIES, "issueDate"),
        buyer_reference=first_match(BUYER_REFERENCE_STRATEGIES, text, "buyerReference", log),
        order_reference=first_match(ORDER_REFERENCE_STRATEGIES, text, "orderReference", log),
        seller=seller,
        buyer=buyer,
        lines=lines,
        totals=totals,
    )


# ============================================================================
# Main Extraction Function
# ============================================================================

def extract_invoice_from_pdf(
    source: Union[bytes, str, Path],
    filename: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> InvoiceRecord:
    """
    Extract a draft InvoiceRecord from a PDF.

    Args:
        source: Raw PDF bytes or a path to a PDF file
        filename: Original filename for logging
        logger: Logger to use instead of the module logger

    Returns:
        Draft InvoiceRecord (fields may be empty if extraction failed)

    Raises:
        DocumentReadError: If the PDF cannot be opened
    """
    log = logger or _logger
    name = filename or (Path(source).name if not isinstance(source, bytes) else "<bytes>")
    log.info("Extracting invoice from PDF: %s", name)

    text = extract_text_from_pdf(source, name)
    if not text.strip():
        log.warning("No text layer found in %s; all fields will be empty", name)

    record = parse_invoice_text(text, log)
    log.info("Extracted invoice %r from %s", record.invoice_number, name)
    return record
