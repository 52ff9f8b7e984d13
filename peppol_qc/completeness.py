"""
Completeness gate deciding whether a record holds enough data to render UBL.

This is distinct from validation: a record can score 100 and still be
incomplete (e.g. no buyer name), in which case no XML is produced.
"""

import math
from typing import Callable, Optional

from .schemas import CompletenessError, InvoiceRecord


def _is_blank(value: Optional[str]) -> bool:
    return not value or not value.strip()


def _is_missing_amount(value: Optional[float]) -> bool:
    return value is None or math.isnan(value)


# (field, message, predicate returning True when the field is missing), in report order
REQUIRED_FIELDS: list[tuple[str, str, Callable[[InvoiceRecord], bool]]] = [
    ("supplierName", "Nom du fournisseur manquant.", lambda r: _is_blank(r.seller.name)),
    ("supplierVat", "Numéro de TVA du fournisseur manquant.", lambda r: _is_blank(r.seller.vat_number)),
    ("customerName", "Nom du client manquant.", lambda r: _is_blank(r.buyer.name)),
    ("invoiceNumber", "Numéro de facture manquant.", lambda r: _is_blank(r.invoice_number)),
    ("invoiceDate", "Date de facture manquante.", lambda r: _is_blank(r.issue_date) and _is_blank(r.issue_date_iso)),
    ("totalAmount", "Montant total TTC manquant ou invalide.", lambda r: _is_missing_amount(r.totals.gross_amount)),
    ("vatAmount", "Montant de TVA manquant ou invalide.", lambda r: _is_missing_amount(r.totals.tax_amount)),
    ("netAmount", "Montant HT manquant ou invalide.", lambda r: _is_missing_amount(r.totals.net_amount)),
]


def check_completeness(record: InvoiceRecord) -> list[CompletenessError]:
    """
    List the fields required for XML generation that are missing.

    Amounts only need to be present and not NaN; zero is accepted here and
    left to the validation rules. The buyer VAT number is optional.

    Returns:
        Errors in a fixed field order; empty means XML may be generated
    """
    return [
        CompletenessError(field=field, message=message)
        for field, message, is_missing in REQUIRED_FIELDS
        if is_missing(record)
    ]
