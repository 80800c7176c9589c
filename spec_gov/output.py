"""Terminal and JSON rendering."""

from __future__ import annotations

import click

from spec_gov.report import ReportEntry, failing_entries, summarize


def render_human(report: list[ReportEntry], *, threshold: int) -> str:
    """Render a compact colorized report."""
    summary = summarize(report)
    color = "green" if summary.failed == 0 else "red"
    lines: list[str] = [
        click.style(
            f"Governance: {summary.passed}/{summary.total} passing, "
            f"avg score {summary.average_score:.1f} (threshold {threshold})",
            fg=color,
            bold=True,
        )
    ]
    for entry in report:
        lines.append(_render_entry(entry))
    return "\n".join(lines)


def render_failures(report: list[ReportEntry], *, threshold: int) -> str | None:
    """Lines listing specs below threshold, or None when all pass."""
    failing = failing_entries(report, threshold)
    if not failing:
        return None
    lines = [f"[FAILED] {len(failing)} APIs below threshold of {threshold}:"]
    lines.extend(f"  - {entry.name}: {entry.score}/100" for entry in failing)
    return "\n".join(lines)


def _render_entry(entry: ReportEntry) -> str:
    if entry.is_invalid:
        badge = click.style("INVALID", fg="magenta", bold=True)
    elif entry.status == "PASS":
        badge = click.style("PASS", fg="green", bold=True)
    else:
        badge = click.style("FAIL", fg="red", bold=True)
    line = f"- {entry.name}: {entry.score}/100, {entry.violations_count} violations [{badge}]"
    if entry.error:
        line += f"\n    error: {entry.error}"
    return line
