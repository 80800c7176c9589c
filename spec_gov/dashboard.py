"""Static HTML dashboard rendering."""

from __future__ import annotations

from datetime import UTC, datetime
from html import escape

from spec_gov.report import ReportEntry, summarize

DEFAULT_TITLE = "API Governance Dashboard"
DEFAULT_SUBTITLE = "API Quality Monitoring"

_STYLE = """
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            margin: 0;
            padding: 20px;
            background: linear-gradient(135deg, #351C15 0%, #4a2518 100%);
            min-height: 100vh;
        }
        .container {
            max-width: 1200px;
            margin: 0 auto;
            background: white;
            border-radius: 16px;
            box-shadow: 0 25px 70px rgba(0, 0, 0, 0.4);
            overflow: hidden;
        }
        .header {
            background: linear-gradient(135deg, #FFB500, #e6a200);
            color: #351C15;
            padding: 30px;
            text-align: center;
        }
        .header h1 { margin: 0; font-size: 2.5em; font-weight: 600; }
        .header .subtitle { margin-top: 10px; opacity: 0.9; font-size: 1.1em; }
        .stats {
            display: flex;
            justify-content: space-around;
            padding: 30px;
            background: #fef9f3;
            border-bottom: 1px solid #e9ecef;
        }
        .stat { text-align: center; }
        .stat-value { font-size: 2.5em; font-weight: bold; color: #351C15; }
        .stat-value.pass { color: #FFB500; }
        .stat-label {
            color: #7a5c4a;
            margin-top: 5px;
            text-transform: uppercase;
            font-size: 0.85em;
            letter-spacing: 1px;
        }
        .apis { padding: 30px; }
        .api {
            display: flex;
            justify-content: space-between;
            align-items: center;
            padding: 20px;
            margin-bottom: 15px;
            border: 2px solid #f5e6d3;
            border-radius: 12px;
        }
        .api-name { font-weight: 600; font-size: 1.1em; color: #351C15; }
        .api-error { color: #a33; font-size: 0.85em; margin-top: 4px; }
        .api-score { display: flex; align-items: center; gap: 20px; }
        .score { font-size: 1.5em; font-weight: bold; padding: 8px 16px; border-radius: 8px; }
        .score.pass { background: #FFB500; color: #351C15; }
        .score.fail { background: #f5e6d3; color: #351C15; }
        .score.invalid { background: #e9ecef; color: #6c757d; }
        .violations { color: #7a5c4a; font-size: 0.9em; }
        .status {
            padding: 6px 12px;
            border-radius: 20px;
            font-weight: 600;
            font-size: 0.85em;
            text-transform: uppercase;
            letter-spacing: 0.5px;
        }
        .status.pass { background: #FFB500; color: #351C15; }
        .status.fail { background: #351C15; color: white; }
        .status.invalid { background: #6c757d; color: white; }
        .empty { text-align: center; color: #7a5c4a; }
        .timestamp { text-align: center; color: #7a5c4a; padding: 20px; font-size: 0.9em; }
"""


def render_dashboard(
    report: list[ReportEntry],
    *,
    title: str = DEFAULT_TITLE,
    subtitle: str = DEFAULT_SUBTITLE,
    generated_at: datetime | None = None,
) -> str:
    """Render a report as a self-contained HTML page."""
    summary = summarize(report)
    timestamp = (generated_at or datetime.now(tz=UTC)).replace(microsecond=0).isoformat()
    rows = [_render_entry(entry) for entry in report]
    if not rows:
        rows.append('            <div class="empty">No specifications were scored.</div>')

    lines = [
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        '    <meta charset="utf-8">',
        f"    <title>{escape(title)}</title>",
        f"    <style>{_STYLE}    </style>",
        "</head>",
        "<body>",
        '    <div class="container">',
        '        <div class="header">',
        f"            <h1>{escape(title)}</h1>",
        f'            <div class="subtitle">{escape(subtitle)}</div>',
        "        </div>",
        '        <div class="stats">',
        _render_stat(str(summary.total), "Total APIs"),
        _render_stat(str(summary.passed), "Passing", css="pass"),
        _render_stat(str(summary.failed), "Failing"),
        _render_stat(f"{summary.average_score:.1f}", "Avg Score"),
        "        </div>",
        '        <div class="apis">',
        *rows,
        "        </div>",
        f'        <div class="timestamp">Generated at {escape(timestamp)}</div>',
        "    </div>",
        "</body>",
        "</html>",
    ]
    return "\n".join(lines) + "\n"


def _render_stat(value: str, label: str, css: str = "") -> str:
    classes = f"stat-value {css}".strip()
    return (
        '            <div class="stat">'
        f'<div class="{classes}">{escape(value)}</div>'
        f'<div class="stat-label">{escape(label)}</div></div>'
    )


def _render_entry(entry: ReportEntry) -> str:
    if entry.is_invalid:
        css = "invalid"
        violations = "Invalid specification"
        score = "Invalid"
        status = "INVALID SPEC"
    else:
        css = entry.status.lower()
        violations = f"{entry.violations_count} violations"
        score = f"{entry.score}/100"
        status = entry.status

    error = ""
    if entry.error:
        error = f'<div class="api-error">{escape(entry.error)}</div>'

    return "\n".join(
        [
            '            <div class="api">',
            f'                <div><div class="api-name">{escape(entry.name)}</div>{error}</div>',
            '                <div class="api-score">',
            f'                    <div class="violations">{escape(violations)}</div>',
            f'                    <div class="score {css}">{escape(score)}</div>',
            f'                    <div class="status {css}">{escape(status)}</div>',
            "                </div>",
            "            </div>",
        ]
    )
