"""Batch registry operations: uploads, re-uploads, collection generation, id sync.

Batches run strictly one spec at a time with a fixed pause between writes to
stay under the registry's rate limits. One failing spec never stops a batch.
"""

from __future__ import annotations

import asyncio
import fnmatch
import json
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from loguru import logger

from spec_gov.registry import (
    YAML_SUFFIXES,
    RegistryClient,
    RegistryError,
    RegistrySpec,
    TaskResult,
)
from spec_gov.retry import SleepFn

UPLOAD_DELAY_SECONDS = 1.0
GENERATION_DELAY_SECONDS = 2.0
SPEC_IDS_FILENAME = "spec-ids.json"
UNKNOWN_SPEC_FILE = "unknown.yaml"


@dataclass(frozen=True, slots=True)
class BatchOutcome:
    """Result of one batch step."""

    name: str
    spec_id: str | None = None
    path: str | None = None
    task: TaskResult | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def spec_name_from_path(path: Path) -> str:
    """``ups-tracking_api.yaml`` -> ``Ups Tracking Api``."""
    words = re.sub(r"[-_]", " ", path.stem)
    return re.sub(r"\b\w", lambda match: match.group(0).upper(), words)


def list_yaml_specs(directory: Path, *, exclude: list[str] | None = None) -> list[Path]:
    resolved = directory.resolve()
    if not resolved.is_dir():
        raise FileNotFoundError(f"{resolved} directory not found")
    patterns = exclude or []
    return sorted(
        item
        for item in resolved.iterdir()
        if item.is_file()
        and item.suffix.lower() in YAML_SUFFIXES
        and not any(fnmatch.fnmatch(item.name, pattern) for pattern in patterns)
    )


async def upload_file(client: RegistryClient, path: Path, name: str | None = None) -> BatchOutcome:
    spec_name = name or spec_name_from_path(path)
    try:
        spec_id = await client.create_spec(spec_name, path)
    except (RegistryError, OSError) as exc:
        logger.error('Error creating spec "{}": {}', spec_name, exc)
        return BatchOutcome(name=spec_name, path=str(path), error=str(exc))
    return BatchOutcome(name=spec_name, spec_id=spec_id, path=str(path))


async def upload_directory(
    client: RegistryClient,
    directory: Path,
    *,
    exclude: list[str] | None = None,
    delay: float = UPLOAD_DELAY_SECONDS,
    sleep: SleepFn = asyncio.sleep,
) -> list[BatchOutcome]:
    files = list_yaml_specs(directory, exclude=exclude)
    logger.info("Found {} OpenAPI specs to upload", len(files))
    outcomes: list[BatchOutcome] = []
    for index, path in enumerate(files):
        if index > 0:
            await sleep(delay)
        outcomes.append(await upload_file(client, path))
    return outcomes


async def reupload(client: RegistryClient, path: Path) -> BatchOutcome:
    """Replace the registry spec whose name matches the file, then upload it."""
    spec_name = spec_name_from_path(path)
    existing = [spec for spec in await client.list_specs() if spec.name == spec_name]
    for spec in existing:
        logger.info('Found existing spec "{}" ({}). Deleting...', spec.name, spec.id)
        await client.delete_spec(spec.id)
    return await upload_file(client, path, name=spec_name)


async def generate_collection_for(
    client: RegistryClient,
    spec: RegistrySpec,
    *,
    interval: float = 2.0,
    max_attempts: int = 30,
) -> BatchOutcome:
    try:
        task_id = await client.generate_collection(spec.id, name=spec.name)
        logger.info("Generating collection for {} (task {})", spec.name, task_id)
        task = await client.poll_task(
            spec.id, task_id, interval=interval, max_attempts=max_attempts
        )
    except RegistryError as exc:
        logger.error("Collection generation failed for {}: {}", spec.name, exc)
        return BatchOutcome(name=spec.name, spec_id=spec.id, error=str(exc))
    return BatchOutcome(name=spec.name, spec_id=spec.id, task=task)


async def generate_all_collections(
    client: RegistryClient,
    *,
    delay: float = GENERATION_DELAY_SECONDS,
    interval: float = 2.0,
    max_attempts: int = 30,
    sleep: SleepFn = asyncio.sleep,
) -> list[BatchOutcome]:
    outcomes: list[BatchOutcome] = []
    for index, spec in enumerate(await client.list_specs()):
        if index > 0:
            await sleep(delay)
        outcomes.append(
            await generate_collection_for(
                client, spec, interval=interval, max_attempts=max_attempts
            )
        )
    return outcomes


def map_specs_to_files(specs: list[RegistrySpec], directory: Path) -> list[dict[str, str]]:
    """Pair each registry spec with the local file whose name resembles it."""
    files = list_yaml_specs(directory) if directory.is_dir() else []
    mapped: list[dict[str, str]] = []
    for spec in specs:
        spec_key = _slug(spec.name)
        match = next(
            (
                path.name
                for path in files
                if spec_key
                and _slug(path.stem)
                and (spec_key in _slug(path.stem) or _slug(path.stem) in spec_key)
            ),
            UNKNOWN_SPEC_FILE,
        )
        mapped.append({"name": spec.name, "id": spec.id, "file": match})
    return mapped


def build_spec_ids(
    specs: list[RegistrySpec],
    directory: Path,
    workspace_id: str,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    return {
        "specs": map_specs_to_files(specs, directory),
        "workspaceId": workspace_id,
        "lastUpdated": (now or datetime.now(tz=UTC))
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z"),
    }


def write_spec_ids(payload: dict[str, Any], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9-]", "", re.sub(r"[\s_]+", "-", text.lower()))
