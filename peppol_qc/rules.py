"""
Peppol validation rules for normalized invoice records.

This module defines the fixed subset of Peppol BIS Billing 3.0 / EN16931
obligations checked by the service:
- Date rule: the issue date is present and a valid ISO date
- VAT rule: the seller VAT number has the expected country format
- Lines rule: at least one line has a positive quantity and unit price
- Amounts rule: net + tax matches gross within the amount tolerance
- References rule: a buyer reference or an order reference is present (R003)
- BCE rule: the seller registration number is present (warning only)

Each rule is implemented as a function that returns a ValidationFinding if the
record violates it, or None if the record passes. Rules read the record and
never modify it.
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional

from .config import AMOUNT_TOLERANCE, EXPECTED_COUNTRY, FLOAT_EPSILON, Severity
from .normalizer import is_iso_date
from .schemas import InvoiceRecord, ValidationFinding


# Type alias for rule check functions
# The function takes a normalized InvoiceRecord, returns a finding or None
RuleCheckFn = Callable[[InvoiceRecord], Optional[ValidationFinding]]

VAT_NUMBER_RE = re.compile(rf"^{EXPECTED_COUNTRY}[0-9]{{10}}$")
BCE_NUMBER_RE = re.compile(r"^\d{10}$")


@dataclass
class ValidationRule:
    """
    Represents a single validation rule.

    Attributes:
        name: Short identifier of the rule (e.g., "seller_vat")
        codes: Finding codes the rule can emit (e.g., VAT_MISSING, VAT_INVALID_FORMAT)
        severity: Severity of every finding the rule emits
        description: Human-readable description of the rule
        check: Function that performs the validation check
    """
    name: str
    codes: tuple[str, ...]
    severity: Severity
    description: str
    check: RuleCheckFn


# ============================================================================
# Error Rules
# ============================================================================

def check_issue_date(record: InvoiceRecord) -> Optional[ValidationFinding]:
    """The issue date must be present and normalize to a real YYYY-MM-DD date."""
    if not record.issue_date and not record.issue_date_iso:
        return ValidationFinding(
            field="issueDate",
            code="DATE_MISSING",
            severity=Severity.ERROR,
            message="Date de facture manquante",
        )
    if not is_iso_date(record.issue_date_iso):
        return ValidationFinding(
            field="issueDate",
            code="DATE_INVALID_FORMAT",
            severity=Severity.ERROR,
            message="Date doit être au format YYYY-MM-DD",
        )
    return None


def check_seller_vat(record: InvoiceRecord) -> Optional[ValidationFinding]:
    """The seller VAT number must be the country prefix followed by 10 digits."""
    vat_number = record.seller.vat_number
    if not vat_number:
        return ValidationFinding(
            field="seller.vatNumber",
            code="VAT_MISSING",
            severity=Severity.ERROR,
            message="Numéro TVA fournisseur manquant",
        )
    if not VAT_NUMBER_RE.match(vat_number):
        return ValidationFinding(
            field="seller.vatNumber",
            code="VAT_INVALID_FORMAT",
            severity=Severity.ERROR,
            message=f"Numéro TVA doit être au format {EXPECTED_COUNTRY} + 10 chiffres",
        )
    return None


def check_valid_lines(record: InvoiceRecord) -> Optional[ValidationFinding]:
    """
    At least one line must have quantity > 0 and unit price > 0.

    Rationale: an invoice with no billable line cannot be rendered as a
    Peppol document, whatever its totals say.
    """
    if any(line.is_valid for line in record.lines):
        return None
    return ValidationFinding(
        field="lines",
        code="NO_VALID_LINES",
        severity=Severity.ERROR,
        message="Aucune ligne de facturation valide (quantité et prix > 0)",
    )


def check_amounts_consistency(record: InvoiceRecord) -> Optional[ValidationFinding]:
    """
    net_amount + tax_amount should equal gross_amount within AMOUNT_TOLERANCE.

    Rationale: this is the fundamental invoice equation. Amounts are never
    corrected to make it hold; a mismatch is reported as found. Missing
    amounts count as 0 here and are reported by the completeness gate.
    """
    net = record.totals.net_amount or 0.0
    tax = record.totals.tax_amount or 0.0
    gross = record.totals.gross_amount or 0.0

    if abs(net + tax - gross) > AMOUNT_TOLERANCE + FLOAT_EPSILON:
        return ValidationFinding(
            field="totals",
            code="AMOUNTS_INCONSISTENT",
            severity=Severity.ERROR,
            message=f"Incohérence montants : HT({net:.2f}) + TVA({tax:.2f}) ≠ TTC({gross:.2f})",
        )
    return None


def check_references(record: InvoiceRecord) -> Optional[ValidationFinding]:
    """A buyer reference or an order reference is mandatory (Peppol rule R003)."""
    if record.buyer_reference or record.order_reference:
        return None
    return ValidationFinding(
        field="references",
        code="REFERENCE_MISSING",
        severity=Severity.ERROR,
        message="BuyerReference ou OrderReference obligatoire (règle Peppol R003)",
    )


# ============================================================================
# Warning Rules
# ============================================================================

def check_seller_bce(record: InvoiceRecord) -> Optional[ValidationFinding]:
    """The seller BCE number is recommended and, when present, must be 10 digits."""
    bce_number = record.seller.bce_number
    if not bce_number:
        return ValidationFinding(
            field="seller.bceNumber",
            code="BCE_MISSING",
            severity=Severity.WARNING,
            message="Numéro BCE fournisseur manquant ou invalide (10 chiffres)",
        )
    if not BCE_NUMBER_RE.match(bce_number):
        return ValidationFinding(
            field="seller.bceNumber",
            code="BCE_INVALID_FORMAT",
            severity=Severity.WARNING,
            message="Numéro BCE fournisseur manquant ou invalide (10 chiffres)",
        )
    return None


# ============================================================================
# Rule Registry
# ============================================================================

# All validation rules in execution order
VALIDATION_RULES: list[ValidationRule] = [
    ValidationRule(
        name="issue_date",
        codes=("DATE_MISSING", "DATE_INVALID_FORMAT"),
        severity=Severity.ERROR,
        description="Issue date must be present and convertible to YYYY-MM-DD",
        check=check_issue_date,
    ),
    ValidationRule(
        name="seller_vat",
        codes=("VAT_MISSING", "VAT_INVALID_FORMAT"),
        severity=Severity.ERROR,
        description=f"Seller VAT number must be {EXPECTED_COUNTRY} followed by 10 digits",
        check=check_seller_vat,
    ),
    ValidationRule(
        name="valid_lines",
        codes=("NO_VALID_LINES",),
        severity=Severity.ERROR,
        description="At least one invoice line must have quantity > 0 and unit price > 0",
        check=check_valid_lines,
    ),
    ValidationRule(
        name="amounts_consistency",
        codes=("AMOUNTS_INCONSISTENT",),
        severity=Severity.ERROR,
        description=f"net + tax must equal gross within {AMOUNT_TOLERANCE}",
        check=check_amounts_consistency,
    ),
    ValidationRule(
        name="references",
        codes=("REFERENCE_MISSING",),
        severity=Severity.ERROR,
        description="Buyer reference or order reference is mandatory (Peppol R003)",
        check=check_references,
    ),
    ValidationRule(
        name="seller_bce",
        codes=("BCE_MISSING", "BCE_INVALID_FORMAT"),
        severity=Severity.WARNING,
        description="Seller BCE number (10 digits) is recommended",
        check=check_seller_bce,
    ),
]


def get_rules_by_severity(severity: Severity) -> list[ValidationRule]:
    """Get all rules whose findings have the given severity."""
    return [rule for rule in VALIDATION_RULES if rule.severity == severity]


def get_rule_descriptions() -> dict[str, str]:
    """Get a mapping of rule names to their descriptions."""
    return {rule.name: rule.description for rule in VALIDATION_RULES}
