"""Lint output parser primitives.

The linter emits one of several shapes depending on invocation mode and
version: a colored text report ending in a problem summary, a JSON document,
or a rendered table. Each shape has its own tier function; ``parse_lint_output``
tries them in a fixed priority order.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from re import IGNORECASE, compile
from typing import Any, Literal

Severity = Literal["error", "warning", "info", "hint"]

SEVERITIES: tuple[Severity, ...] = ("error", "warning", "info", "hint")

SEVERITY_ALIASES: dict[str, Severity] = {
    "error": "error",
    "err": "error",
    "warning": "warning",
    "warn": "warning",
    "info": "info",
    "information": "info",
    "hint": "hint",
}

ANSI_ESCAPE_RE = compile(r"\x1b\[[0-9;]*m")

SUMMARY_RE = compile(
    r"(?P<total>\d+)\s+problems?\s*\(\s*"
    r"(?P<error>\d+)\s+errors?,\s*"
    r"(?P<warning>\d+)\s+warnings?,\s*"
    r"(?P<info>\d+)\s+infos?,\s*"
    r"(?P<hint>\d+)\s+hints?\s*\)",
    IGNORECASE,
)

PARSE_FAILURE_RE = compile(r"couldn[’']t parse", IGNORECASE)
PARSE_FAILURE_REASON = "Failed to parse API specification"
UNPARSED_JSON_REASON = "Failed to parse lint output"

TABLE_SEPARATORS = ("│", "|")
TABLE_HEADER_MARKERS = ("Range", "Severity")
TABLE_RULE_MARKERS = ("─", "---", "═")
TABLE_KEYWORDS: tuple[tuple[str, Severity], ...] = (
    ("ERROR", "error"),
    ("WARN", "warning"),
    ("INFO", "info"),
    ("HINT", "hint"),
)


@dataclass(frozen=True, slots=True)
class Violation:
    """A single rule infraction reported by the linter."""

    severity: Severity
    rule: str | None = None
    message: str | None = None
    path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity,
            "rule": self.rule,
            "message": self.message,
            "path": self.path,
        }


@dataclass(frozen=True, slots=True)
class Summary:
    """Counts read from the linter's problem summary line."""

    counts: dict[Severity, int]

    def violations(self) -> list[Violation]:
        synthesized: list[Violation] = []
        for severity in SEVERITIES:
            synthesized.extend(Violation(severity=severity) for _ in range(self.counts[severity]))
        return synthesized


@dataclass(frozen=True, slots=True)
class StructuredJson:
    """Violations mapped from a JSON result document."""

    items: list[Violation] = field(default_factory=list)

    def violations(self) -> list[Violation]:
        return list(self.items)


@dataclass(frozen=True, slots=True)
class TableRows:
    """Violations classified from rendered table rows."""

    items: list[Violation] = field(default_factory=list)

    def violations(self) -> list[Violation]:
        return list(self.items)


@dataclass(frozen=True, slots=True)
class ParseFailure:
    """The linter could not parse the specification itself."""

    reason: str

    def violations(self) -> list[Violation]:
        return []


ParseResult = Summary | StructuredJson | TableRows | ParseFailure


def strip_ansi(text: str) -> str:
    return ANSI_ESCAPE_RE.sub("", text)


def normalize_severity(raw: Any) -> Severity:
    """Case-fold a severity label; unknown or missing values count as hints."""
    if isinstance(raw, int) and not isinstance(raw, bool):
        # Spectral-style numeric severities: 0=error .. 3=hint.
        return SEVERITIES[raw] if 0 <= raw < len(SEVERITIES) else "hint"
    if not isinstance(raw, str):
        return "hint"
    return SEVERITY_ALIASES.get(raw.strip().lower(), "hint")


def detect_parse_failure(raw: str) -> ParseFailure | None:
    cleaned = strip_ansi(raw)
    if "Error:" in cleaned and PARSE_FAILURE_RE.search(cleaned):
        return ParseFailure(reason=PARSE_FAILURE_REASON)
    return None


def parse_summary(raw: str) -> Summary | None:
    match = SUMMARY_RE.search(strip_ansi(raw))
    if match is None:
        return None
    return Summary(counts={severity: int(match.group(severity)) for severity in SEVERITIES})


def parse_structured_json(raw: str) -> StructuredJson | None:
    text = raw.strip()
    if not text or text[0] not in "[{":
        return None
    try:
        loaded = json.loads(text)
    except json.JSONDecodeError:
        return None

    results = _result_list(loaded)
    if results is None:
        return None
    return StructuredJson(items=[_violation_from_result(item) for item in results])


def parse_table_rows(raw: str) -> TableRows | None:
    saw_table = False
    items: list[Violation] = []
    for line in strip_ansi(raw).splitlines():
        if not any(sep in line for sep in TABLE_SEPARATORS):
            continue
        saw_table = True
        if any(marker in line for marker in TABLE_HEADER_MARKERS):
            continue
        if any(marker in line for marker in TABLE_RULE_MARKERS):
            continue
        for keyword, severity in TABLE_KEYWORDS:
            if keyword in line:
                items.append(Violation(severity=severity))
                break
    if not saw_table:
        return None
    return TableRows(items=items)


def parse_lint_output(raw: str, *, json_expected: bool = False) -> ParseResult:
    """Parse raw linter output, trying each tier in priority order.

    Text output that matches no tier is treated as a clean run with no
    violations. When ``json_expected`` is set (the linter was asked for JSON),
    output matching neither the summary nor the JSON tier is a failure.
    """
    failure = detect_parse_failure(raw)
    if failure is not None:
        return failure

    summary = parse_summary(raw)
    if summary is not None:
        return summary

    structured = parse_structured_json(raw)
    if structured is not None:
        return structured
    if json_expected:
        return ParseFailure(reason=UNPARSED_JSON_REASON)

    table = parse_table_rows(raw)
    if table is not None:
        return table
    return TableRows()


def _result_list(loaded: Any) -> list[Any] | None:
    if isinstance(loaded, list):
        return loaded
    if isinstance(loaded, dict):
        for key in ("results", "violations"):
            value = loaded.get(key)
            if isinstance(value, list):
                return value
    return None


def _violation_from_result(item: Any) -> Violation:
    if not isinstance(item, dict):
        return Violation(severity="hint")
    path = item.get("path")
    if isinstance(path, list):
        path = ".".join(str(part) for part in path)
    return Violation(
        severity=normalize_severity(item.get("severity")),
        rule=_optional_str(item.get("code") or item.get("rule")),
        message=_optional_str(item.get("message")),
        path=_optional_str(path),
    )


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)
