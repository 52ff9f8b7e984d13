"""
Configuration constants and label tables for the Peppol QC Service.
"""

import logging
import os
from enum import Enum
from typing import Final

# ============================================================================
# Deployment Defaults
# ============================================================================

# Country whose VAT format the rule engine enforces (prefix + 10 digits)
EXPECTED_COUNTRY: Final[str] = os.getenv("EXPECTED_COUNTRY", "BE").upper()

DEFAULT_CURRENCY: Final[str] = os.getenv("DEFAULT_CURRENCY", "EUR").upper()

# Standard VAT rate in percent, used for derived amounts and synthetic lines
DEFAULT_VAT_RATE: Final[float] = float(os.getenv("DEFAULT_VAT_RATE", "21"))

# Description used for the single aggregated line synthesized by extractors
AGGREGATED_LINE_DESCRIPTION: Final[str] = "Prestation selon facture"

# ============================================================================
# Validation Tolerances
# ============================================================================

# Tolerance for amount comparisons (net + tax ≈ gross)
AMOUNT_TOLERANCE: Final[float] = float(os.getenv("AMOUNT_TOLERANCE", "0.01"))

# Absorbs binary float noise so that a difference of exactly the tolerance passes
FLOAT_EPSILON: Final[float] = 1e-9

# ============================================================================
# Scoring
# ============================================================================

ERROR_PENALTY: Final[int] = 10
WARNING_PENALTY: Final[int] = 5


class Severity(str, Enum):
    """Severity of a validation finding."""
    ERROR = "error"
    WARNING = "warning"


# ============================================================================
# Supported Documents
# ============================================================================

PDF_MIME_TYPES: Final[set[str]] = {
    "application/pdf",
    "application/x-pdf",
}

SPREADSHEET_MIME_TYPES: Final[set[str]] = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel.sheet.macroEnabled.12",
}

PDF_EXTENSIONS: Final[set[str]] = {".pdf"}
SPREADSHEET_EXTENSIONS: Final[set[str]] = {".xlsx", ".xlsm"}

# ============================================================================
# Spreadsheet Extraction
# ============================================================================

# Tokens that make a cell value look like a column label rather than data
HEADER_LIKE_TOKENS: Final[list[str]] = [
    "supplier",
    "fournisseur",
    "invoice",
    "facture",
    "vat",
    "tva",
    "date",
    "total",
    "client",
    "customer",
    "buyer",
    "quantity",
    "quantité",
    "description",
    "reference",
    "référence",
    "montant",
    "amount",
    "price",
    "prix",
    "numéro",
    "number",
    "bce",
]

# Minimum non-empty cells for a row to be considered invoice data
MIN_DATA_ROW_VALUES: Final[int] = 5

# Maximum label-like / header-echo values tolerated in a data row
MAX_LABEL_LIKE_VALUES: Final[int] = 1
MAX_HEADER_ECHO_VALUES: Final[int] = 1

# Accepted column names per field, in lookup priority order
COLUMN_SYNONYMS: Final[dict[str, list[str]]] = {
    "invoice_number": ["Numéro facture", "N° facture", "Facture", "Invoice Number", "Invoice No", "Invoice"],
    "issue_date": ["Date facture", "Date", "Invoice Date", "Issue Date"],
    "currency": ["Devise", "Currency"],
    "seller_name": ["Fournisseur", "Nom fournisseur", "Supplier", "Supplier Name", "Seller"],
    "seller_vat": ["TVA Fournisseur", "N° TVA fournisseur", "Supplier VAT", "Seller VAT", "VAT Number"],
    "seller_bce": ["BCE", "N° BCE", "Numéro BCE", "BCE Fournisseur", "Company Number", "Enterprise Number"],
    "seller_street": ["Adresse fournisseur", "Rue fournisseur", "Supplier Street", "Supplier Address"],
    "seller_city": ["Ville fournisseur", "Supplier City"],
    "seller_postal_code": ["Code postal fournisseur", "Supplier Postal Code"],
    "buyer_name": ["Client", "Nom client", "Customer", "Customer Name", "Buyer"],
    "buyer_vat": ["TVA Client", "N° TVA client", "Customer VAT", "Buyer VAT"],
    "buyer_reference": ["Référence client", "Reference client", "Buyer Reference", "Customer Reference"],
    "order_reference": ["Bon de commande", "Référence commande", "Commande", "Order Reference", "PO Number", "Purchase Order"],
    "description": ["Description", "Libellé", "Designation", "Item"],
    "quantity": ["Quantité", "Qté", "Quantity", "Qty"],
    "unit_price": ["Prix unitaire", "Unit Price", "Price"],
    "vat_rate": ["TVA %", "Taux TVA", "VAT %", "VAT Rate"],
    "net_amount": ["Total HT", "Montant HT", "Net Amount", "Subtotal", "Total excl. VAT"],
    "tax_amount": ["TVA", "Montant TVA", "Total TVA", "VAT", "VAT Amount", "Tax"],
    "gross_amount": ["Total TTC", "Montant TTC", "Gross Amount", "Total incl. VAT", "Total"],
}

# ============================================================================
# API Configuration
# ============================================================================

API_HOST: Final[str] = os.getenv("API_HOST", "0.0.0.0")
API_PORT: Final[int] = int(os.getenv("API_PORT", "8000"))
MAX_UPLOAD_SIZE_MB: Final[int] = int(os.getenv("MAX_UPLOAD_SIZE_MB", "10"))

# ============================================================================
# Logging Configuration
# ============================================================================

LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO")

LOGGER_NAME: Final[str] = "peppol_qc"


def setup_logging() -> logging.Logger:
    """Configure the root handler and return the application logger.

    Called by the CLI and API entry points only; library code never touches
    the global logging configuration.
    """
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger(LOGGER_NAME)


def get_logger(name: str) -> logging.Logger:
    """Return the default logger for a ``peppol_qc`` submodule."""
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
