"""Governance report aggregation over a directory or a registry workspace."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Protocol

from loguru import logger

from spec_gov.registry import RegistryClient, RegistrySpec
from spec_gov.scoring import ScoreResult, failed_score, score_lint_output

SPEC_EXTENSIONS = (".yaml", ".yml", ".json")
DEFAULT_THRESHOLD = 70

Status = Literal["PASS", "FAIL"]


class ReportError(RuntimeError):
    """Raised when a report cannot be assembled at all."""


class LintRunner(Protocol):
    """Anything that can lint a local file or a registry spec."""

    async def lint_file(self, path: Path) -> str:
        """Return raw lint output for a local spec file."""

    async def lint_spec(self, spec_id: str) -> str:
        """Return raw lint output for a registry spec."""


@dataclass(frozen=True, slots=True)
class ReportEntry:
    """Governance verdict for one spec."""

    name: str
    score: int
    violations_count: int
    status: Status
    error: str | None = None
    spec_id: str | None = None
    path: str | None = None

    @property
    def is_invalid(self) -> bool:
        """A zero score means the spec could not be linted, not that it was graded."""
        return self.score == 0

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name}
        if self.spec_id is not None:
            payload["id"] = self.spec_id
        if self.path is not None:
            payload["path"] = self.path
        payload.update(
            {
                "score": self.score,
                "violationsCount": self.violations_count,
                "status": self.status,
                "error": self.error,
            }
        )
        return payload

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> ReportEntry:
        status = str(raw.get("status", "FAIL")).upper()
        if status not in {"PASS", "FAIL"}:
            raise ValueError(f"invalid report status: {raw.get('status')!r}")
        return cls(
            name=str(raw["name"]),
            score=_as_int(raw.get("score", 0), "score"),
            violations_count=_as_int(raw.get("violationsCount", 0), "violationsCount"),
            status=status,  # type: ignore[arg-type]
            error=raw.get("error"),
            spec_id=_optional_str(raw.get("id")),
            path=_optional_str(raw.get("path")),
        )


@dataclass(frozen=True, slots=True)
class ReportSummary:
    total: int
    passed: int
    failed: int
    average_score: float


def status_for(score: int, threshold: int) -> Status:
    return "PASS" if score >= threshold else "FAIL"


def make_entry(
    name: str,
    result: ScoreResult,
    threshold: int,
    *,
    spec_id: str | None = None,
    path: str | None = None,
) -> ReportEntry:
    return ReportEntry(
        name=name,
        score=result.score,
        violations_count=result.violation_count,
        status=status_for(result.score, threshold),
        error=result.error,
        spec_id=spec_id,
        path=path,
    )


def list_spec_files(directory: Path) -> list[Path]:
    """Spec files directly inside ``directory``, in sorted name order."""
    resolved = directory.resolve()
    if not resolved.is_dir():
        raise ReportError(f"Directory not found: {resolved}")
    files = sorted(
        item
        for item in resolved.iterdir()
        if item.is_file() and item.suffix.lower() in SPEC_EXTENSIONS
    )
    if not files:
        raise ReportError(f"No spec files found in {resolved}")
    return files


async def score_file(linter: LintRunner, path: Path, threshold: int) -> ReportEntry:
    """Lint and score one local spec; failures become a FAIL entry."""
    try:
        result = score_lint_output(await linter.lint_file(path))
    except Exception as exc:
        logger.warning("Failed to score spec {}: {}", path.stem, exc)
        result = failed_score(f"Failed to score: {exc}")
    return make_entry(path.stem, result, threshold, path=str(path))


async def score_spec(linter: LintRunner, spec: RegistrySpec, threshold: int) -> ReportEntry:
    """Lint and score one registry spec; failures become a FAIL entry."""
    try:
        result = score_lint_output(await linter.lint_spec(spec.id), json_expected=True)
    except Exception as exc:
        logger.warning("Failed to score spec {}: {}", spec.name, exc)
        result = failed_score(f"Failed to score: {exc}")
    return make_entry(spec.name, result, threshold, spec_id=spec.id)


async def build_directory_report(
    linter: LintRunner, directory: Path, threshold: int = DEFAULT_THRESHOLD
) -> list[ReportEntry]:
    report: list[ReportEntry] = []
    for path in list_spec_files(directory):
        logger.info("Scoring {}", path.name)
        report.append(await score_file(linter, path, threshold))
    return report


async def build_workspace_report(
    registry: RegistryClient, linter: LintRunner, threshold: int = DEFAULT_THRESHOLD
) -> list[ReportEntry]:
    specs = await registry.list_specs()
    logger.info("Found {} specs in workspace", len(specs))
    report: list[ReportEntry] = []
    for spec in specs:
        logger.info("Scoring {} ({})", spec.name, spec.id)
        report.append(await score_spec(linter, spec, threshold))
    return report


def failing_entries(report: list[ReportEntry], threshold: int) -> list[ReportEntry]:
    return [entry for entry in report if entry.score < threshold]


def summarize(report: list[ReportEntry]) -> ReportSummary:
    passed = sum(1 for entry in report if entry.status == "PASS")
    average = sum(entry.score for entry in report) / len(report) if report else 0.0
    return ReportSummary(
        total=len(report),
        passed=passed,
        failed=len(report) - passed,
        average_score=average,
    )


def report_to_json(report: list[ReportEntry]) -> str:
    return json.dumps([entry.to_dict() for entry in report], indent=2)


def report_from_json(text: str) -> list[ReportEntry]:
    try:
        loaded = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid report JSON: {exc}") from exc
    if not isinstance(loaded, list):
        raise ValueError("Report JSON must be an array of entries")
    entries: list[ReportEntry] = []
    for item in loaded:
        if not isinstance(item, dict) or "name" not in item:
            raise ValueError("Report entries must be objects with a name")
        entries.append(ReportEntry.from_dict(item))
    return entries


def write_report(report: list[ReportEntry], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report_to_json(report) + "\n", encoding="utf-8")


def read_report(path: Path) -> list[ReportEntry]:
    return report_from_json(path.read_text(encoding="utf-8"))


def _as_int(raw: Any, field_name: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValueError(f"{field_name} must be an integer")
    return raw


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)
