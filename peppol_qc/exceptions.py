"""
Exceptions raised by the Peppol QC pipeline.

Only I/O level problems are exceptions. Missing or malformed invoice fields
are reported as validation findings or completeness errors instead.
"""


class PeppolQCError(Exception):
    """Base class for all errors raised by this package."""


class DocumentReadError(PeppolQCError):
    """The document container could not be opened or parsed (corrupt PDF, bad workbook)."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Could not read document {source}: {reason}")


class UnsupportedDocumentError(PeppolQCError):
    """The declared MIME type / extension maps to no extractor."""

    def __init__(self, mime_type: str | None, filename: str | None = None):
        self.mime_type = mime_type
        self.filename = filename
        super().__init__(
            f"Unsupported document type: mime_type={mime_type!r}, filename={filename!r}"
        )


class UblRenderError(PeppolQCError):
    """lxml rejected a value while building or serializing the UBL document."""
