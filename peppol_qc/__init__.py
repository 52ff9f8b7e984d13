"""
Peppol QC Service

A Python service for extracting structured data from supplier invoices
(PDF or Excel), checking them against Peppol BIS Billing 3.0 rules and
generating UBL invoices.
"""

__version__ = "0.1.0"
__author__ = "Peppol QC Team"

from .schemas import AnalysisResult, InvoiceLine, InvoiceRecord, ValidationFinding
from .exceptions import DocumentReadError, PeppolQCError, UblRenderError, UnsupportedDocumentError
from .pipeline import analyze_document, analyze_record
from .validator import validate
from .ubl import generate_ubl

__all__ = [
    "AnalysisResult",
    "InvoiceLine",
    "InvoiceRecord",
    "ValidationFinding",
    "DocumentReadError",
    "PeppolQCError",
    "UblRenderError",
    "UnsupportedDocumentError",
    "analyze_document",
    "analyze_record",
    "validate",
    "generate_ubl",
]
