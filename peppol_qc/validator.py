"""
Validation engine for normalized invoice records.

This module runs every rule of the registry against one record and produces
the list of findings, plus a text rendering for CLI output. All rules run
independently: a failing or crashing rule never stops the others.
"""

import logging
from typing import Optional, Sequence

from .config import Severity, get_logger
from .rules import VALIDATION_RULES, ValidationRule
from .schemas import InvoiceRecord, RuleDescription, ValidationFinding

_logger = get_logger("validator")


def validate(
    record: InvoiceRecord,
    rules: Optional[Sequence[ValidationRule]] = None,
    logger: Optional[logging.Logger] = None,
) -> list[ValidationFinding]:
    """
    Validate a normalized record against all defined rules.

    Args:
        record: The normalized InvoiceRecord to validate
        rules: Optional list of rules to apply (defaults to all VALIDATION_RULES)
        logger: Logger to use instead of the module logger

    Returns:
        Findings in rule order; empty when the record passes every rule
    """
    if rules is None:
        rules = VALIDATION_RULES
    log = logger or _logger

    findings: list[ValidationFinding] = []

    for rule in rules:
        try:
            finding = rule.check(record)
        except Exception as e:
            log.error(f"Error running rule {rule.name} on invoice {record.invoice_number!r}: {e}")
            finding = ValidationFinding(
                field=rule.name,
                code="RULE_ERROR",
                severity=Severity.ERROR,
                message=f"Erreur interne lors de la règle {rule.name}",
            )
        if finding is not None:
            findings.append(finding)

    log.debug(
        "Validated invoice %r: %d finding(s)",
        record.invoice_number,
        len(findings),
    )
    return findings


def describe_rules(rules: Optional[Sequence[ValidationRule]] = None) -> list[RuleDescription]:
    """Public descriptions of the rules, for the CLI and the API."""
    if rules is None:
        rules = VALIDATION_RULES
    return [
        RuleDescription(
            name=rule.name,
            codes=list(rule.codes),
            severity=rule.severity,
            description=rule.description,
        )
        for rule in rules
    ]


def format_findings_text(findings: Sequence[ValidationFinding], score: Optional[int] = None) -> str:
    """
    Format findings as human-readable text for CLI output.

    Args:
        findings: Findings to format
        score: Conformity score to show in the header, if known

    Returns:
        Formatted string for display
    """
    errors = [f for f in findings if f.severity == Severity.ERROR]
    warnings = [f for f in findings if f.severity == Severity.WARNING]

    lines = [
        "=" * 50,
        "PEPPOL VALIDATION",
        "=" * 50,
    ]
    if score is not None:
        lines.append(f"Conformity score:   {score}/100")
    lines.extend([
        f"Errors:             {len(errors)}",
        f"Warnings:           {len(warnings)}",
        "",
    ])

    if errors:
        lines.append("Errors:")
        lines.append("-" * 40)
        for finding in errors:
            lines.append(f"  [{finding.code}] {finding.field}: {finding.message}")
        lines.append("")

    if warnings:
        lines.append("Warnings:")
        lines.append("-" * 40)
        for finding in warnings:
            lines.append(f"  [{finding.code}] {finding.field}: {finding.message}")
        lines.append("")

    lines.append("=" * 50)

    return "\n".join(lines)
