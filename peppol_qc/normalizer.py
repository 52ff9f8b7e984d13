"""
Field normalization for locale-formatted invoice values.

The helpers here are used inline by both extractors (amounts, VAT numbers,
derived totals) and by ``normalize_record``, the explicit pass that turns a
draft record into the normalized record the validator and the UBL generator
consume.
"""

import logging
import math
import re
from datetime import date, datetime
from typing import Optional, Union

from dateutil import parser as date_parser

from .config import AGGREGATED_LINE_DESCRIPTION, DEFAULT_VAT_RATE, EXPECTED_COUNTRY, get_logger
from .schemas import InvoiceLine, InvoiceRecord, Totals

_logger = get_logger("normalizer")

ISO_DATE_RE = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")

# Whitespace variants, apostrophe thousands separators and currency markers
_AMOUNT_NOISE_RE = re.compile(r"[\s\u00a0\u2007\u2009\u202f'\u2019€$£¥]|EUR|USD|GBP|CHF", re.IGNORECASE)

_DATE_SEPARATORS_RE = re.compile(r"[/\-.]")

# str.isdigit also accepts superscripts and other non-ASCII digits
_ASCII_DIGITS_RE = re.compile(r"[0-9]+")

_TEXTUAL_DATE_RE = re.compile(
    r"^(?:\d{1,2}(?:er)?\s+[^\W\d_]+\.?,?\s+\d{4}|[^\W\d_]+\.?\s+\d{1,2},?\s+\d{4})$"
)

FRENCH_MONTHS: dict[str, str] = {
    "janvier": "January",
    "février": "February",
    "fevrier": "February",
    "mars": "March",
    "avril": "April",
    "mai": "May",
    "juin": "June",
    "juillet": "July",
    "août": "August",
    "aout": "August",
    "septembre": "September",
    "octobre": "October",
    "novembre": "November",
    "décembre": "December",
    "decembre": "December",
}

# Fixed default so that dateutil never fills gaps from the current date
_DATEUTIL_DEFAULT = datetime(2000, 1, 1)


# ============================================================================
# Amounts
# ============================================================================

def parse_amount(value: Union[str, int, float, None]) -> float:
    """
    Parse a monetary amount written in EU or US style.

    Handles:
    - EU format: 1.234,56 (period = thousands, comma = decimal)
    - US format: 1,234.56 (comma = thousands, period = decimal)
    - Spaces (incl. non-breaking and thin spaces) and apostrophes as thousands separators
    - Currency symbols and codes

    Whichever of ``.`` and ``,`` appears last is the decimal separator. A lone
    comma is a decimal comma. Unparseable input yields ``0.0``.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0

    value_str = _AMOUNT_NOISE_RE.sub("", str(value))
    if not value_str:
        return 0.0

    last_dot = value_str.rfind(".")
    last_comma = value_str.rfind(",")

    if last_dot >= 0 and last_comma >= 0:
        if last_comma > last_dot:
            value_str = value_str.replace(".", "").replace(",", ".")
        else:
            value_str = value_str.replace(",", "")
    elif last_comma >= 0:
        # "1,234,567" has only thousands separators; "6,31" is a decimal comma
        if value_str.count(",") > 1:
            value_str = value_str.replace(",", "")
        else:
            value_str = value_str.replace(",", ".")
    elif value_str.count(".") > 1:
        value_str = value_str.replace(".", "")

    try:
        amount = float(value_str)
    except ValueError:
        return 0.0
    return amount if math.isfinite(amount) else 0.0


def round_amount(value: float) -> float:
    """Round to cents."""
    return round(value, 2)


def derive_totals(
    net: Optional[float],
    tax: Optional[float],
    gross: Optional[float],
    vat_rate: float = DEFAULT_VAT_RATE,
) -> Totals:
    """
    Fill in missing document totals from the ones that were found.

    - gross and tax known: net = gross - tax
    - net and tax known: gross = net + tax
    - net and gross known: tax = gross - net
    - only gross known: ``vat_rate`` is assumed and net/tax are back-computed

    Anything still unknown becomes 0. Found values are never adjusted, so an
    inconsistent document stays inconsistent.
    """
    if net is None and gross is not None and tax is not None:
        net = round_amount(gross - tax)
    elif gross is None and net is not None and tax is not None:
        gross = round_amount(net + tax)
    elif tax is None and net is not None and gross is not None:
        tax = round_amount(gross - net)
    elif gross is not None and net is None and tax is None:
        net = round_amount(gross / (1 + vat_rate / 100))
        tax = round_amount(gross - net)

    return Totals(
        net_amount=net if net is not None else 0.0,
        tax_amount=tax if tax is not None else 0.0,
        gross_amount=gross if gross is not None else 0.0,
    )


def build_aggregated_line(
    totals: Totals,
    vat_rate: float = DEFAULT_VAT_RATE,
    description: str = AGGREGATED_LINE_DESCRIPTION,
) -> InvoiceLine:
    """
    Build the single aggregated line used when line items are not itemized.

    The line amount is the net total, or gross / (1 + rate) when net is zero.
    """
    amount = totals.net_amount or 0.0
    if not amount:
        amount = (totals.gross_amount or 0.0) / (1 + vat_rate / 100)
    amount = round_amount(amount)
    return InvoiceLine(
        id="1",
        description=description,
        quantity=1.0,
        unit_price=amount,
        vat_rate=vat_rate,
        line_total=amount,
    )


# ============================================================================
# Dates
# ============================================================================

def expand_year(year: str) -> str:
    """Expand a 2-digit year: above 50 is 19xx, otherwise 20xx."""
    if len(year) == 2:
        return f"19{year}" if int(year) > 50 else f"20{year}"
    return year


def normalize_date(value: Union[str, date, None]) -> str:
    """
    Normalize a date to ``YYYY-MM-DD``.

    ``YYYY-MM-DD`` is returned unchanged. Other numeric dates are split on
    ``/``, ``-`` or ``.``: a 4-digit first segment means Y-M-D, anything else
    D-M-Y. Textual dates ("19 novembre 2025", "November 19, 2025") go through
    dateutil. Unparseable input is returned unchanged; ``is_iso_date`` will
    reject it downstream.
    """
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    text = str(value).strip()
    if ISO_DATE_RE.match(text):
        return text

    parts = _DATE_SEPARATORS_RE.split(text)
    if len(parts) == 3 and all(_ASCII_DIGITS_RE.fullmatch(p) for p in parts):
        if len(parts[0]) == 4:
            year, month, day = parts
        else:
            day, month, year = parts
            year = expand_year(year)
        return f"{int(year):04d}-{int(month):02d}-{int(day):02d}"

    if _TEXTUAL_DATE_RE.match(text):
        parsed = parse_textual_date(text)
        if parsed is not None:
            return parsed.isoformat()

    return str(value)


def parse_textual_date(text: str) -> Optional[date]:
    """Parse a date with a French or English month name."""
    words = []
    for word in text.split():
        key = word.lower().rstrip(".,")
        words.append(FRENCH_MONTHS.get(key, word))
    candidate = " ".join(words).replace("1er ", "1 ")
    try:
        return date_parser.parse(candidate, dayfirst=True, default=_DATEUTIL_DEFAULT).date()
    except (ValueError, OverflowError):
        return None


def is_iso_date(value: Optional[str]) -> bool:
    """True if ``value`` is ``YYYY-MM-DD`` and an existing calendar date."""
    if not value or not ISO_DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


# ============================================================================
# Identifiers
# ============================================================================

def normalize_vat(value: Optional[str], country: str = EXPECTED_COUNTRY) -> str:
    """
    Normalize a VAT number: strip spaces, dots and dashes, uppercase, and
    prepend ``country`` when the number has no country prefix.

    ``"BE 0123.456.789"`` and ``"0123456789"`` both become ``"BE0123456789"``.
    A foreign prefix is kept as-is and fails the format rule later.
    """
    cleaned = re.sub(r"[\s.\-]", "", value or "").upper()
    if not cleaned:
        return ""
    if cleaned[0].isdigit():
        cleaned = f"{country}{cleaned}"
    return cleaned


def normalize_bce(value: Optional[str]) -> Optional[str]:
    """Reduce a BCE registration number to its digits (``0123.456.789`` -> ``0123456789``)."""
    if not value:
        return None
    digits = re.sub(r"\D", "", value)
    return digits or None


# ============================================================================
# Record Normalization Pass
# ============================================================================

_LONE_SURROGATE_RE = re.compile(r"[\ud800-\udfff]")


def _drop_surrogates(value):
    """Recursively remove lone surrogates, which no UTF-8 output can encode."""
    if isinstance(value, str):
        return _LONE_SURROGATE_RE.sub("", value)
    if isinstance(value, dict):
        return {key: _drop_surrogates(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_drop_surrogates(item) for item in value]
    return value


def normalize_record(
    record: InvoiceRecord,
    country: str = EXPECTED_COUNTRY,
    logger: Optional[logging.Logger] = None,
) -> InvoiceRecord:
    """
    Return a normalized copy of ``record``; the input is left untouched.

    Computes ``issue_date_iso``, normalizes seller and buyer VAT numbers,
    reduces BCE numbers to digits and strips free-text identifiers. Lone
    surrogates (from JSON ``\\uXXXX`` escapes) are dropped from every string.
    """
    log = logger or _logger
    normalized = InvoiceRecord.model_validate(_drop_surrogates(record.model_dump()))

    normalized.invoice_number = normalized.invoice_number.strip()
    raw_date = normalized.issue_date.strip()
    normalized.issue_date = raw_date
    normalized.issue_date_iso = normalize_date(raw_date) if raw_date else None

    for party in (normalized.seller, normalized.buyer):
        party.name = party.name.strip()
        party.vat_number = normalize_vat(party.vat_number, country)
        party.bce_number = normalize_bce(party.bce_number)

    normalized.buyer_reference = (normalized.buyer_reference or "").strip() or None
    normalized.order_reference = (normalized.order_reference or "").strip() or None

    log.debug(
        "Normalized record %s: date %r -> %r, seller VAT %r",
        normalized.invoice_number or "<no number>",
        raw_date,
        normalized.issue_date_iso,
        normalized.seller.vat_number,
    )
    return normalized
