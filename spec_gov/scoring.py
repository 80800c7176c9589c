"""Violation-to-score folding."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from spec_gov.lint_parser import (
    SEVERITIES,
    ParseFailure,
    Severity,
    Violation,
    normalize_severity,
    parse_lint_output,
)

MAX_SCORE = 100

PENALTIES: dict[Severity, int] = {
    "error": 10,
    "warning": 5,
    "info": 2,
    "hint": 1,
}


@dataclass(frozen=True, slots=True)
class ScoreResult:
    """Score for one spec, with the violations it was computed from."""

    score: int
    violation_count: int = 0
    violations: list[Violation] = field(default_factory=list)
    error: str | None = None

    def severity_counts(self) -> dict[str, int]:
        counts = Counter(item.severity for item in self.violations)
        return {severity: counts.get(severity, 0) for severity in SEVERITIES}

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "violationCount": self.violation_count,
            "severityCounts": self.severity_counts(),
            "error": self.error,
        }


def penalty(severity: str) -> int:
    return PENALTIES[normalize_severity(severity)]


def score_violations(violations: list[Violation]) -> int:
    """Start at 100, subtract per-severity penalties, clamp at 0."""
    total = sum(penalty(item.severity) for item in violations)
    return max(0, MAX_SCORE - total)


def score_result(violations: list[Violation]) -> ScoreResult:
    return ScoreResult(
        score=score_violations(violations),
        violation_count=len(violations),
        violations=list(violations),
    )


def failed_score(message: str) -> ScoreResult:
    """Zero score for a spec that could not be linted or parsed."""
    return ScoreResult(score=0, error=message)


def score_lint_output(raw: str, *, json_expected: bool = False) -> ScoreResult:
    """Parse raw linter output and score it."""
    parsed = parse_lint_output(raw, json_expected=json_expected)
    if isinstance(parsed, ParseFailure):
        return failed_score(parsed.reason)
    return score_result(parsed.violations())
