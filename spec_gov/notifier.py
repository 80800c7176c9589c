"""Microsoft Teams notifications (Adaptive Card payloads over an incoming webhook)."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import httpx
from loguru import logger

from spec_gov.report import DEFAULT_THRESHOLD, ReportEntry, summarize

CARD_CONTENT_TYPE = "application/vnd.microsoft.card.adaptive"
CARD_SCHEMA = "http://adaptivecards.io/schemas/adaptive-card.json"
CARD_VERSION = "1.3"
DEFAULT_REVIEW_URL = "https://app.getpostman.com"
DEFAULT_MAX_DETAILS = 5


def build_spec_card(
    name: str,
    score: int,
    violations: int,
    *,
    threshold: int = DEFAULT_THRESHOLD,
    link: str | None = None,
    submitted_by: str = "System",
    report_url: str | None = None,
    timestamp: datetime | None = None,
) -> dict[str, Any]:
    """Card for a single spec verdict."""
    passed = score >= threshold
    status = "Ready for Review" if passed else "Rejected - Below Threshold"
    color = "Good" if passed else "Attention"
    icon = "[PASS]" if passed else "[FAIL]"
    when = (timestamp or datetime.now(tz=UTC)).replace(microsecond=0).isoformat()

    body = [
        _text_block("API Governance Review Required", size="Large", color=color),
        _text_block(f"{icon} {status}", size="Medium", color=color, spacing="Small"),
        {
            "type": "FactSet",
            "facts": [
                {"title": "API Name:", "value": name},
                {"title": "Quality Score:", "value": f"{score}/100"},
                {"title": "Violations:", "value": str(violations)},
                {"title": "Submitted By:", "value": submitted_by},
                {"title": "Timestamp:", "value": when},
            ],
        },
    ]
    actions = [_open_url("Review in Postman", link or DEFAULT_REVIEW_URL)]
    if report_url:
        actions.append(_open_url("View Full Report", report_url))
    return _wrap_card(body, actions)


def build_batch_card(
    report: list[ReportEntry],
    *,
    threshold: int = DEFAULT_THRESHOLD,
    max_details: int = DEFAULT_MAX_DETAILS,
    dashboard_url: str | None = None,
) -> dict[str, Any]:
    """Card summarizing a whole report; detail lines are capped at ``max_details``."""
    summary = summarize(report)
    passed = sum(1 for entry in report if entry.score >= threshold)
    failed = summary.total - passed

    columns = [
        _stat_column(str(summary.total), "Total APIs", "Accent"),
        _stat_column(str(passed), "Passed", "Good"),
        _stat_column(str(failed), "Failed", "Attention" if failed > 0 else "Default"),
        _stat_column(f"{summary.average_score:.1f}", "Avg Score", "Accent"),
    ]
    body: list[dict[str, Any]] = [
        _text_block("API Governance Batch Report", size="Large"),
        {"type": "ColumnSet", "columns": columns},
        _text_block("API Details", size="Medium", spacing="Large"),
    ]
    for entry in report[: max(0, max_details)]:
        ok = entry.score >= threshold
        body.append(
            {
                "type": "TextBlock",
                "text": f"• {entry.name}: {entry.score}/100 - {'[PASS]' if ok else '[FAIL]'}",
                "spacing": "Small",
                "color": "Good" if ok else "Attention",
            }
        )
    hidden = len(report) - max(0, max_details)
    if hidden > 0:
        body.append(
            {"type": "TextBlock", "text": f"... and {hidden} more", "spacing": "Small"}
        )

    actions = []
    if dashboard_url:
        actions.append(_open_url("View Full Dashboard", dashboard_url))
    return _wrap_card(body, actions)


class Notifier:
    """Posts card payloads to a webhook; delivery failures never raise."""

    def __init__(
        self,
        webhook_url: str,
        *,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._transport = transport

    async def send(self, payload: dict[str, Any]) -> bool:
        kwargs: dict[str, Any] = {"timeout": self.timeout}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        try:
            async with httpx.AsyncClient(**kwargs) as client:
                response = await client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as exc:
            logger.error("Failed to send Teams notification: {}", exc)
            return False
        if not response.is_success:
            logger.error(
                "Teams webhook failed: {} {}", response.status_code, response.reason_phrase
            )
            return False
        return True

    async def send_spec(self, name: str, score: int, violations: int, **kwargs: Any) -> bool:
        return await self.send(build_spec_card(name, score, violations, **kwargs))

    async def send_batch(self, report: list[ReportEntry], **kwargs: Any) -> bool:
        return await self.send(build_batch_card(report, **kwargs))


def _wrap_card(body: list[dict[str, Any]], actions: list[dict[str, Any]]) -> dict[str, Any]:
    content: dict[str, Any] = {
        "type": "AdaptiveCard",
        "$schema": CARD_SCHEMA,
        "version": CARD_VERSION,
        "body": body,
    }
    if actions:
        content["actions"] = actions
    return {
        "type": "message",
        "attachments": [
            {"contentType": CARD_CONTENT_TYPE, "contentUrl": None, "content": content}
        ],
    }


def _text_block(
    text: str, *, size: str, color: str | None = None, spacing: str | None = None
) -> dict[str, Any]:
    block: dict[str, Any] = {"type": "TextBlock", "text": text, "weight": "Bolder", "size": size}
    if color:
        block["color"] = color
    if spacing:
        block["spacing"] = spacing
    return block


def _stat_column(value: str, label: str, color: str) -> dict[str, Any]:
    return {
        "type": "Column",
        "width": "stretch",
        "items": [
            _text_block(value, size="ExtraLarge", color=color),
            {"type": "TextBlock", "text": label, "spacing": "None"},
        ],
    }


def _open_url(title: str, url: str) -> dict[str, Any]:
    return {"type": "Action.OpenUrl", "title": title, "url": url}
