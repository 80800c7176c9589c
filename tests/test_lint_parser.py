from __future__ import annotations

import json

from spec_gov.lint_parser import (
    ParseFailure,
    StructuredJson,
    Summary,
    TableRows,
    normalize_severity,
    parse_lint_output,
    parse_structured_json,
    parse_summary,
    parse_table_rows,
    strip_ansi,
)
from tests.helpers_lint import PARSE_FAILURE, SUMMARY_TWELVE

TABLE_OUTPUT = "\n".join(
    [
        "┌───────┬──────────┬──────────────────────┐",
        "│ Range │ Severity │ Description          │",
        "├───────┼──────────┼──────────────────────┤",
        "│ 1:1   │ ERROR    │ Missing servers      │",
        "│ 4:3   │ WARN     │ Operation has no tag │",
        "│ 9:7   │ HINT     │ Prefer kebab-case    │",
        "└───────┴──────────┴──────────────────────┘",
    ]
)


def test_strip_ansi_removes_color_codes() -> None:
    assert strip_ansi("\x1b[31merror\x1b[0m") == "error"


def test_normalize_severity_handles_aliases_numbers_and_unknowns() -> None:
    assert normalize_severity("ERROR") == "error"
    assert normalize_severity(" warn ") == "warning"
    assert normalize_severity(1) == "warning"
    assert normalize_severity(7) == "hint"
    assert normalize_severity("critical") == "hint"
    assert normalize_severity(None) == "hint"


def test_parse_summary_reads_counts_through_ansi() -> None:
    summary = parse_summary(SUMMARY_TWELVE)
    assert summary is not None
    assert summary.counts == {"error": 2, "warning": 3, "info": 4, "hint": 3}
    assert len(summary.violations()) == 12


def test_parse_summary_accepts_singular_forms() -> None:
    summary = parse_summary("1 problem (1 error, 0 warnings, 0 infos, 0 hints)")
    assert summary is not None
    assert summary.counts["error"] == 1


def test_parse_structured_json_maps_results() -> None:
    raw = json.dumps(
        [
            {"severity": "ERROR", "code": "info-contact", "message": "m", "path": ["info"]},
            {"severity": 1, "rule": "tags", "path": ["paths", "/x", "get"]},
            "unexpected",
        ]
    )
    parsed = parse_structured_json(raw)
    assert isinstance(parsed, StructuredJson)
    assert [item.severity for item in parsed.items] == ["error", "warning", "hint"]
    assert parsed.items[0].rule == "info-contact"
    assert parsed.items[1].path == "paths./x.get"


def test_parse_structured_json_reads_wrapped_results_key() -> None:
    parsed = parse_structured_json(json.dumps({"violations": [{"severity": "info"}]}))
    assert isinstance(parsed, StructuredJson)
    assert parsed.items[0].severity == "info"


def test_parse_structured_json_rejects_non_json_and_unknown_shapes() -> None:
    assert parse_structured_json("no json here") is None
    assert parse_structured_json("{not valid") is None
    assert parse_structured_json(json.dumps({"status": "ok"})) is None


def test_parse_table_rows_classifies_rows_and_skips_header() -> None:
    parsed = parse_table_rows(TABLE_OUTPUT)
    assert isinstance(parsed, TableRows)
    assert [item.severity for item in parsed.items] == ["error", "warning", "hint"]


def test_parse_table_rows_returns_none_without_table() -> None:
    assert parse_table_rows("all good") is None


def test_parse_lint_output_detects_parse_failure_first() -> None:
    clean_summary = "0 problems (0 errors, 0 warnings, 0 infos, 0 hints)"
    parsed = parse_lint_output(PARSE_FAILURE + clean_summary)
    assert parsed == ParseFailure(reason="Failed to parse API specification")


def test_parse_lint_output_prefers_summary_over_table() -> None:
    parsed = parse_lint_output(TABLE_OUTPUT + "\n" + SUMMARY_TWELVE)
    assert isinstance(parsed, Summary)


def test_parse_lint_output_falls_back_to_table_then_empty() -> None:
    assert isinstance(parse_lint_output(TABLE_OUTPUT), TableRows)
    fallback = parse_lint_output("No issues found.")
    assert fallback == TableRows()
    assert fallback.violations() == []


def test_json_mode_rejects_output_that_is_not_a_report() -> None:
    parsed = parse_lint_output("Error: Spec s-1 not found in workspace\n", json_expected=True)
    assert parsed == ParseFailure(reason="Failed to parse lint output")
    assert isinstance(parse_lint_output(TABLE_OUTPUT, json_expected=True), ParseFailure)
    assert parse_lint_output("[]", json_expected=True) == StructuredJson()
    assert isinstance(parse_lint_output(SUMMARY_TWELVE, json_expected=True), Summary)
