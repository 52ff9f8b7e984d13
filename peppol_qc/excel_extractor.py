"""
Spreadsheet extraction module for converting invoice workbooks to draft records.

The first sheet is read with openpyxl: the first row provides column keys and
each following row becomes a dict of its non-empty cells. Exported templates
often repeat label rows before the real data, so the row used for the invoice
is chosen by a data-row detector built from three named predicates. When no
row qualifies, row 0 is used and a warning is logged.
"""

import io
import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, Union

from openpyxl import load_workbook

from .config import (
    AGGREGATED_LINE_DESCRIPTION,
    COLUMN_SYNONYMS,
    DEFAULT_CURRENCY,
    DEFAULT_VAT_RATE,
    EXPECTED_COUNTRY,
    HEADER_LIKE_TOKENS,
    MAX_HEADER_ECHO_VALUES,
    MAX_LABEL_LIKE_VALUES,
    MIN_DATA_ROW_VALUES,
    get_logger,
)
from .exceptions import DocumentReadError
from .normalizer import build_aggregated_line, derive_totals, normalize_bce, normalize_date, normalize_vat, parse_amount
from .schemas import Address, InvoiceRecord, Party

_logger = get_logger("excel_extractor")

Row = dict[str, Any]


# ============================================================================
# Workbook Reading
# ============================================================================

def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def read_rows(source: Union[bytes, str, Path], name: Optional[str] = None) -> list[Row]:
    """
    Read the first sheet of a workbook as a list of row dicts.

    The header row becomes the column keys; columns without a header are
    ignored. Each row keeps only its non-empty cells and fully blank rows are
    skipped.

    Raises:
        DocumentReadError: If the file is missing or is not a readable workbook
    """
    label = name or (str(source) if not isinstance(source, bytes) else "<bytes>")
    stream = io.BytesIO(source) if isinstance(source, bytes) else source

    try:
        workbook = load_workbook(stream, read_only=True, data_only=True)
        try:
            if not workbook.worksheets:
                return []
            raw_rows = list(workbook.worksheets[0].iter_rows(values_only=True))
        finally:
            workbook.close()
    except Exception as e:
        raise DocumentReadError(label, str(e) or type(e).__name__) from e

    if not raw_rows:
        return []

    header = [str(cell).strip() if not _is_empty(cell) else "" for cell in raw_rows[0]]

    rows: list[Row] = []
    for raw in raw_rows[1:]:
        if raw is None:
            continue
        row = {
            key: value
            for key, value in zip(header, raw)
            if key and not _is_empty(value)
        }
        if row:
            rows.append(row)
    return rows


# ============================================================================
# Data-Row Detection
# ============================================================================

def _alphanumeric(value: Any) -> str:
    return re.sub(r"[\W_]", "", str(value).lower())


def _label_text(value: str) -> str:
    return " ".join(value.lower().split()).rstrip(" :")


_LABELS: frozenset[str] = frozenset(
    [token.lower() for token in HEADER_LIKE_TOKENS]
    + [_label_text(synonym) for synonyms in COLUMN_SYNONYMS.values() for synonym in synonyms]
)


def is_label_like(value: Any) -> bool:
    """True if a cell value reads like a column label ("Total HT", "TVA:", "Invoice")."""
    if not isinstance(value, str):
        return False
    text = value.strip()
    if not text:
        return False
    return text.endswith(":") or _label_text(text) in _LABELS


def has_enough_values(row: Row) -> bool:
    """A data row carries at least ``MIN_DATA_ROW_VALUES`` non-empty cells."""
    return len(row) >= MIN_DATA_ROW_VALUES


def has_few_label_like_values(row: Row) -> bool:
    """A data row contains at most ``MAX_LABEL_LIKE_VALUES`` label-like cells."""
    return sum(1 for value in row.values() if is_label_like(value)) <= MAX_LABEL_LIKE_VALUES


def has_few_header_echoes(row: Row) -> bool:
    """A data row repeats its own column key in at most ``MAX_HEADER_ECHO_VALUES`` cells.

    Catches a second header row that the label list does not know about.
    """
    echoes = 0
    for key, value in row.items():
        normalized = _alphanumeric(value)
        if normalized and normalized == _alphanumeric(key):
            echoes += 1
    return echoes <= MAX_HEADER_ECHO_VALUES


DATA_ROW_PREDICATES: tuple[Callable[[Row], bool], ...] = (
    has_enough_values,
    has_few_label_like_values,
    has_few_header_echoes,
)


def is_data_row(row: Row, predicates: Sequence[Callable[[Row], bool]] = DATA_ROW_PREDICATES) -> bool:
    return all(predicate(row) for predicate in predicates)


def detect_data_row(rows: Sequence[Row], logger: Optional[logging.Logger] = None) -> int:
    """
    Return the index of the first row that looks like invoice data.

    Falls back to row 0, with a warning, when no row satisfies every predicate.
    """
    log = logger or _logger
    for index, row in enumerate(rows):
        if is_data_row(row):
            log.debug("Using spreadsheet row %d as invoice data", index)
            return index

    log.warning(
        "No spreadsheet row looks like invoice data (%d rows scanned); falling back to row 0",
        len(rows),
    )
    return 0


# ============================================================================
# Field Lookup
# ============================================================================

def lookup_field(row: Row, field: str) -> Any:
    """
    Return the first non-empty cell among the accepted column names of ``field``.

    Column names are compared case-insensitively, ignoring repeated spaces
    and a trailing colon.
    """
    by_label = {_label_text(key): value for key, value in row.items()}
    for synonym in COLUMN_SYNONYMS[field]:
        value = by_label.get(_label_text(synonym))
        if not _is_empty(value):
            return value
    return None


def cell_text(value: Any) -> str:
    """Render a cell as text; whole floats lose their ``.0`` and dates become ISO."""
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return normalize_date(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def cell_amount(value: Any) -> Optional[float]:
    """Parse a numeric or text cell as an amount; empty cells give None."""
    if _is_empty(value):
        return None
    return parse_amount(value)


def cell_vat_rate(value: Any) -> float:
    """VAT rate in percent; "21%" is read as 21 and percent-formatted cells (0.21) are scaled to 21."""
    if isinstance(value, str):
        value = value.replace("%", "")
    rate = cell_amount(value)
    if rate is None or rate < 0:
        return DEFAULT_VAT_RATE
    if 0 < rate < 1:
        rate = round(rate * 100, 2)
    return rate


# ============================================================================
# Record Building
# ============================================================================

def _optional_text(row: Row, field: str) -> Optional[str]:
    return cell_text(lookup_field(row, field)) or None


def build_record_from_row(row: Row, logger: Optional[logging.Logger] = None) -> InvoiceRecord:
    """Map one spreadsheet data row onto a draft InvoiceRecord."""
    log = logger or _logger

    def text(field: str) -> str:
        return cell_text(lookup_field(row, field))

    net = cell_amount(lookup_field(row, "net_amount"))
    tax = cell_amount(lookup_field(row, "tax_amount"))
    gross = cell_amount(lookup_field(row, "gross_amount"))
    vat_rate = cell_vat_rate(lookup_field(row, "vat_rate"))
    totals = derive_totals(net, tax, gross, vat_rate)

    found_any_amount = any(amount is not None for amount in (net, tax, gross))
    if found_any_amount and (net is None or tax is None or gross is None):
        log.info(
            "Derived missing totals: net=%s tax=%s gross=%s",
            totals.net_amount, totals.tax_amount, totals.gross_amount,
        )
    lines = []
    if found_any_amount:
        description = text("description") or AGGREGATED_LINE_DESCRIPTION
        lines.append(build_aggregated_line(totals, vat_rate, description))

    seller = Party(
        name=text("seller_name"),
        vat_number=normalize_vat(text("seller_vat")),
        bce_number=normalize_bce(text("seller_bce")),
        address=Address(
            street=_optional_text(row, "seller_street"),
            city=_optional_text(row, "seller_city"),
            postal_code=_optional_text(row, "seller_postal_code"),
            country=EXPECTED_COUNTRY,
        ),
    )
    buyer = Party(
        name=text("buyer_name"),
        vat_number=normalize_vat(text("buyer_vat")),
    )

    return InvoiceRecord(
        invoice_number=text("invoice_number"),
        issue_date=text("issue_date"),
        currency=text("currency") or DEFAULT_CURRENCY,
        buyer_reference=_optional_text(row, "buyer_reference"),
        order_reference=_optional_text(row, "order_reference"),
        seller=seller,
        buyer=buyer,
        lines=lines,
        totals=totals,
    )


# ============================================================================
# Main Extraction Function
# ============================================================================

def extract_invoice_from_workbook(
    source: Union[bytes, str, Path],
    filename: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> InvoiceRecord:
    """
    Extract a draft InvoiceRecord from an ``.xlsx`` / ``.xlsm`` workbook.

    Args:
        source: Raw workbook bytes or a path to a workbook file
        filename: Display name used in logs and error messages
        logger: Logger to use instead of the module logger

    Returns:
        Draft InvoiceRecord; empty when the sheet holds no data rows

    Raises:
        DocumentReadError: If the workbook cannot be opened
    """
    log = logger or _logger
    name = filename or (str(source) if not isinstance(source, bytes) else "<bytes>")
    log.info("Extracting invoice from workbook: %s", name)

    rows = read_rows(source, name)
    if not rows:
        log.warning("Workbook %s has no data rows", name)
        return InvoiceRecord()

    index = detect_data_row(rows, log)
    return build_record_from_row(rows[index], log)
