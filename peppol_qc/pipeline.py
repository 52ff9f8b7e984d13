"""
Analysis pipeline: extraction -> normalization -> completeness -> validation
-> scoring -> UBL generation.

``analyze_document`` is the entry point used by the CLI and the API. It is a
pure function of its inputs apart from logging: nothing is cached or
persisted between calls.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from .completeness import check_completeness
from .config import (
    PDF_EXTENSIONS,
    PDF_MIME_TYPES,
    SPREADSHEET_EXTENSIONS,
    SPREADSHEET_MIME_TYPES,
    get_logger,
)
from .excel_extractor import extract_invoice_from_workbook
from .exceptions import UnsupportedDocumentError
from .normalizer import normalize_record
from .pdf_extractor import extract_invoice_from_pdf
from .schemas import AnalysisResult, InvoiceRecord
from .scoring import calculate_conformity_score
from .ubl import generate_ubl
from .validator import validate

_logger = get_logger("pipeline")

PDF = "pdf"
SPREADSHEET = "spreadsheet"

GENERIC_MIME_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


def resolve_document_kind(mime_type: Optional[str], filename: Optional[str] = None) -> str:
    """
    Map a MIME type (or, for generic types, the file extension) to an extractor kind.

    Raises:
        UnsupportedDocumentError: If neither the MIME type nor the extension is supported
    """
    mime = (mime_type or "").split(";")[0].strip().lower()

    if mime in PDF_MIME_TYPES:
        return PDF
    if mime in SPREADSHEET_MIME_TYPES:
        return SPREADSHEET

    if mime in GENERIC_MIME_TYPES and filename:
        extension = Path(filename).suffix.lower()
        if extension in PDF_EXTENSIONS:
            return PDF
        if extension in SPREADSHEET_EXTENSIONS:
            return SPREADSHEET

    raise UnsupportedDocumentError(mime_type, filename)


def analyze_record(record: InvoiceRecord, logger: Optional[logging.Logger] = None) -> AnalysisResult:
    """
    Run everything after extraction on a draft record.

    The record is normalized first; the input instance is not modified.
    XML is generated only when the completeness gate passes.
    """
    log = logger or _logger

    normalized = normalize_record(record, logger=log)
    completeness_errors = check_completeness(normalized)
    findings = validate(normalized, logger=log)
    score = calculate_conformity_score(findings)

    xml = None
    if completeness_errors:
        log.info(
            "Invoice %r incomplete, no XML generated: %s",
            normalized.invoice_number,
            ", ".join(error.field for error in completeness_errors),
        )
    else:
        xml = generate_ubl(normalized, logger=log)

    log.info(
        "Analyzed invoice %r: score=%d, %d finding(s), complete=%s",
        normalized.invoice_number,
        score,
        len(findings),
        not completeness_errors,
    )

    return AnalysisResult(
        record=normalized,
        findings=findings,
        score=score,
        completeness_errors=completeness_errors,
        xml=xml,
    )


def extract_record(
    source: Union[bytes, str, Path],
    mime_type: Optional[str] = None,
    filename: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> InvoiceRecord:
    """Extract a draft record with the extractor matching the document type."""
    if filename is None and not isinstance(source, bytes):
        filename = Path(source).name

    kind = resolve_document_kind(mime_type, filename)
    if kind == PDF:
        return extract_invoice_from_pdf(source, filename=filename, logger=logger)
    return extract_invoice_from_workbook(source, filename=filename, logger=logger)


def analyze_document(
    source: Union[bytes, str, Path],
    mime_type: Optional[str] = None,
    filename: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> AnalysisResult:
    """
    Analyze one invoice document.

    Args:
        source: Raw document bytes or a path to the document
        mime_type: Declared MIME type; when missing or generic, the file extension decides
        filename: Original filename (defaults to the path name)
        logger: Logger to use instead of the module loggers

    Returns:
        AnalysisResult; an incomplete record is a normal result with no XML

    Raises:
        UnsupportedDocumentError: If the document type is not supported
        DocumentReadError: If the document cannot be opened
        UblRenderError: If lxml rejects a value while rendering the UBL document
    """
    record = extract_record(source, mime_type, filename, logger)
    return analyze_record(record, logger)
