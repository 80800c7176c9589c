from __future__ import annotations

import click

from spec_gov.output import render_failures, render_human
from spec_gov.report import ReportEntry

REPORT = [
    ReportEntry(name="Orders", score=92, violations_count=2, status="PASS"),
    ReportEntry(name="Billing", score=55, violations_count=9, status="FAIL"),
    ReportEntry(
        name="Broken",
        score=0,
        violations_count=0,
        status="FAIL",
        error="Failed to parse API specification",
    ),
]


def test_render_human_lists_every_entry() -> None:
    text = click.unstyle(render_human(REPORT, threshold=70))
    lines = text.splitlines()
    assert lines[0] == "Governance: 1/3 passing, avg score 49.0 (threshold 70)"
    assert "- Orders: 92/100, 2 violations [PASS]" in lines
    assert "- Billing: 55/100, 9 violations [FAIL]" in lines
    assert "- Broken: 0/100, 0 violations [INVALID]" in lines
    assert "    error: Failed to parse API specification" in lines


def test_render_failures_lists_specs_below_threshold() -> None:
    assert render_failures(REPORT, threshold=70) == "\n".join(
        [
            "[FAILED] 2 APIs below threshold of 70:",
            "  - Billing: 55/100",
            "  - Broken: 0/100",
        ]
    )


def test_render_failures_none_when_all_pass() -> None:
    assert render_failures(REPORT[:1], threshold=70) is None
