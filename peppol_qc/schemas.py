"""
Pydantic models for invoice records and analysis results.

This module defines the core data structures used throughout the Peppol QC Service:
- InvoiceRecord (with Party, Address, InvoiceLine and Totals) for extracted invoice data
- ValidationFinding for rule-engine output
- CompletenessError for the XML generation gate
- AnalysisResult for the full pipeline outcome
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .config import DEFAULT_CURRENCY, DEFAULT_VAT_RATE, EXPECTED_COUNTRY, Severity


class Address(BaseModel):
    """Postal address of a party. Only the country is always known."""
    street: Optional[str] = Field(None, description="Street and number")
    city: Optional[str] = Field(None, description="City name")
    postal_code: Optional[str] = Field(None, description="Postal code")
    country: str = Field(EXPECTED_COUNTRY, description="ISO 3166-1 alpha-2 country code")


class Party(BaseModel):
    """
    Seller or buyer of an invoice.

    Attributes:
        name: Legal name of the party
        vat_number: VAT identifier, normalized to country prefix + digits
        bce_number: 10-digit national business registration number
        address: Postal address
    """
    name: str = Field("", description="Legal name of the party")
    vat_number: str = Field("", description="VAT number (e.g. BE0123456789)")
    bce_number: Optional[str] = Field(None, description="10-digit BCE registration number")
    address: Address = Field(default_factory=Address)


class InvoiceLine(BaseModel):
    """A single invoiced line."""
    id: str = Field("1", description="Line identifier, unique within the invoice")
    description: str = Field("", description="Item or service description")
    quantity: float = Field(0.0, description="Number of units")
    unit_price: float = Field(0.0, description="Price per unit, excluding VAT")
    vat_rate: float = Field(DEFAULT_VAT_RATE, description="VAT rate in percent")
    line_total: float = Field(0.0, description="Line amount, excluding VAT")

    @property
    def is_valid(self) -> bool:
        return self.quantity > 0 and self.unit_price > 0


class Totals(BaseModel):
    """Document level amounts, all in the invoice currency."""
    net_amount: Optional[float] = Field(0.0, description="Total excluding VAT (HT)")
    tax_amount: Optional[float] = Field(0.0, description="Total VAT amount (TVA)")
    gross_amount: Optional[float] = Field(0.0, description="Total including VAT (TTC)")


class InvoiceRecord(BaseModel):
    """
    Canonical structured representation of one supplier invoice.

    Extractors build a draft record with raw strings; ``normalize_record``
    returns the normalized copy consumed by the validator and the UBL
    generator. Records are never persisted by this package.
    """

    # ========================================================================
    # Header
    # ========================================================================
    invoice_number: str = Field("", description="Invoice identifier assigned by the seller")
    issue_date: str = Field("", description="Issue date as found in the document")
    issue_date_iso: Optional[str] = Field(None, description="Issue date normalized to YYYY-MM-DD")
    currency: str = Field(DEFAULT_CURRENCY, description="ISO 4217 currency code")

    # ========================================================================
    # References (at least one is required)
    # ========================================================================
    buyer_reference: Optional[str] = Field(None, description="Reference assigned by the buyer")
    order_reference: Optional[str] = Field(None, description="Purchase order reference")

    # ========================================================================
    # Parties
    # ========================================================================
    seller: Party = Field(default_factory=Party)
    buyer: Party = Field(default_factory=Party)

    # ========================================================================
    # Lines and Totals
    # ========================================================================
    lines: list[InvoiceLine] = Field(default_factory=list)
    totals: Totals = Field(default_factory=Totals)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Normalize currency code to uppercase, falling back to the default."""
        return v.upper().strip() or DEFAULT_CURRENCY

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "invoice_number": "INV-2025-001",
                    "issue_date": "19/11/2025",
                    "currency": "EUR",
                    "buyer_reference": "REF-CLIENT-123",
                    "seller": {
                        "name": "Entreprise Example SPRL",
                        "vat_number": "BE0123456789",
                        "bce_number": "0123456789",
                        "address": {
                            "street": "Rue de la Loi 123",
                            "city": "Bruxelles",
                            "postal_code": "1000",
                            "country": "BE",
                        },
                    },
                    "buyer": {"name": "Client Test SA", "vat_number": "BE0987654321"},
                    "lines": [
                        {
                            "id": "1",
                            "description": "Prestation de services conseil",
                            "quantity": 1,
                            "unit_price": 1000.0,
                            "vat_rate": 21,
                            "line_total": 1000.0,
                        }
                    ],
                    "totals": {"net_amount": 1000.0, "tax_amount": 210.0, "gross_amount": 1210.0},
                }
            ]
        }
    }


class ValidationFinding(BaseModel):
    """One rule violation found on a record."""
    field: str = Field(..., description="Record field the finding is about (e.g. 'seller.vatNumber')")
    code: str = Field(..., description="Stable machine-readable code (e.g. 'VAT_INVALID_FORMAT')")
    severity: Severity = Field(..., description="'error' or 'warning'")
    message: str = Field(..., description="Human-readable message in the deployment locale")


class CompletenessError(BaseModel):
    """A field required to render UBL XML that is missing from the record."""
    field: str = Field(..., description="Missing field (e.g. 'customerName')")
    message: str = Field(..., description="Human-readable message in the deployment locale")


class AnalysisResult(BaseModel):
    """
    Outcome of analyzing one document.

    ``xml`` is present if and only if ``completeness_errors`` is empty, so
    callers can tell "scored, document produced" from "scored, incomplete".
    """
    record: InvoiceRecord = Field(..., description="Normalized invoice record")
    findings: list[ValidationFinding] = Field(default_factory=list)
    score: int = Field(..., ge=0, le=100, description="Conformity score")
    completeness_errors: list[CompletenessError] = Field(default_factory=list)
    xml: Optional[str] = Field(None, description="UBL invoice, only when the record is complete")

    @property
    def is_complete(self) -> bool:
        return not self.completeness_errors

    @property
    def errors(self) -> list[ValidationFinding]:
        return [f for f in self.findings if f.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[ValidationFinding]:
        return [f for f in self.findings if f.severity == Severity.WARNING]


# ============================================================================
# API Response Models
# ============================================================================

class RuleDescription(BaseModel):
    """Public description of a validation rule."""
    name: str
    codes: list[str]
    severity: Severity
    description: str
