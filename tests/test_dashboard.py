from __future__ import annotations

from datetime import UTC, datetime

from spec_gov.dashboard import render_dashboard
from spec_gov.report import ReportEntry

GENERATED = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)


def test_empty_report_renders_zero_stats() -> None:
    html = render_dashboard([], generated_at=GENERATED)
    assert html.startswith("<!DOCTYPE html>")
    assert "No specifications were scored." in html
    assert '<div class="stat-value">0.0</div><div class="stat-label">Avg Score</div>' in html
    assert "Generated at 2026-01-02T03:04:05+00:00" in html


def test_entries_render_status_and_invalid_specs() -> None:
    report = [
        ReportEntry(name="Orders", score=88, violations_count=3, status="PASS"),
        ReportEntry(name="Billing", score=40, violations_count=12, status="FAIL"),
        ReportEntry(
            name="Broken",
            score=0,
            violations_count=0,
            status="FAIL",
            error="Failed to parse API specification",
        ),
    ]
    html = render_dashboard(report, generated_at=GENERATED)

    assert '<div class="score pass">88/100</div>' in html
    assert '<div class="status fail">FAIL</div>' in html
    assert "12 violations" in html
    assert '<div class="score invalid">Invalid</div>' in html
    assert "INVALID SPEC" in html
    assert '<div class="api-error">Failed to parse API specification</div>' in html
    assert '<div class="stat-value pass">1</div>' in html
    assert '<div class="stat-value">42.7</div>' in html


def test_names_and_titles_are_escaped() -> None:
    report = [ReportEntry(name="<script>x</script>", score=90, violations_count=0, status="PASS")]
    html = render_dashboard(report, title="A & B", generated_at=GENERATED)
    assert "<script>x</script>" not in html
    assert "&lt;script&gt;x&lt;/script&gt;" in html
    assert "<title>A &amp; B</title>" in html
