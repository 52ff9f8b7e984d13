"""Conformity score computed from validation findings."""

from typing import Iterable

from .config import ERROR_PENALTY, WARNING_PENALTY, Severity
from .schemas import ValidationFinding


def calculate_conformity_score(findings: Iterable[ValidationFinding]) -> int:
    """
    Score a record from 0 to 100.

    Each error costs ``ERROR_PENALTY`` points and each warning
    ``WARNING_PENALTY`` points; the result is clamped to [0, 100].
    """
    score = 100
    for finding in findings:
        if finding.severity == Severity.ERROR:
            score -= ERROR_PENALTY
        elif finding.severity == Severity.WARNING:
            score -= WARNING_PENALTY
    return max(0, min(100, score))
