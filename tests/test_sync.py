from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import httpx
import pytest

from spec_gov.registry import RegistryClient, RegistrySpec
from spec_gov.retry import RetryConfig
from spec_gov.sync import (
    UNKNOWN_SPEC_FILE,
    build_spec_ids,
    generate_all_collections,
    list_yaml_specs,
    map_specs_to_files,
    reupload,
    spec_name_from_path,
    upload_directory,
    write_spec_ids,
)
from tests.helpers_lint import RecordingSleep, mock_transport


class FakeRegistry:
    """Minimal in-memory registry API served over httpx.MockTransport."""

    def __init__(self, specs: list[dict] | None = None) -> None:
        self.specs = list(specs or [])
        self.requests: list[httpx.Request] = []
        self.fail_names: set[str] = set()

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "GET" and path == "/specs":
            return httpx.Response(200, json={"specs": self.specs})
        if request.method == "POST" and path == "/specs":
            payload = json.loads(request.content)
            if payload["name"] in self.fail_names:
                return httpx.Response(400, json={"error": "invalid"})
            spec_id = f"id-{len(self.specs) + 1}"
            self.specs.append({"id": spec_id, "name": payload["name"]})
            return httpx.Response(200, json={"id": spec_id})
        if request.method == "DELETE":
            spec_id = path.rsplit("/", 1)[-1]
            self.specs = [spec for spec in self.specs if spec["id"] != spec_id]
            return httpx.Response(204)
        if path.endswith("/generations/collection"):
            return httpx.Response(202, json={"taskId": "task-" + path.split("/")[2]})
        if "/tasks/" in path:
            return httpx.Response(200, json={"status": "completed"})
        return httpx.Response(404)

    def client(self) -> RegistryClient:
        return RegistryClient(
            "key",
            "ws-1",
            base_url="https://registry.test",
            retry=RetryConfig(max_retries=1),
            transport=mock_transport(self.handle, self.requests),
        )


def _write(directory: Path, *names: str) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    for name in names:
        (directory / name).write_text("openapi: 3.0.0\n", encoding="utf-8")


def test_spec_name_from_path() -> None:
    assert spec_name_from_path(Path("ups-tracking_api.yaml")) == "Ups Tracking Api"


def test_list_yaml_specs_filters_and_excludes(tmp_path: Path) -> None:
    _write(tmp_path, "b.yaml", "a.yml", "c.json", "broken-bad.yaml")
    names = [path.name for path in list_yaml_specs(tmp_path, exclude=["*-bad.yaml"])]
    assert names == ["a.yml", "b.yaml"]
    with pytest.raises(FileNotFoundError):
        list_yaml_specs(tmp_path / "missing")


@pytest.mark.asyncio
async def test_upload_directory_pauses_between_uploads_and_continues(tmp_path: Path) -> None:
    _write(tmp_path, "orders.yaml", "payments.yaml", "shipping.yaml")
    registry = FakeRegistry()
    registry.fail_names = {"Payments"}
    sleep = RecordingSleep()

    async with registry.client() as client:
        outcomes = await upload_directory(client, tmp_path, delay=1.0, sleep=sleep)

    assert [(item.name, item.ok) for item in outcomes] == [
        ("Orders", True),
        ("Payments", False),
        ("Shipping", True),
    ]
    assert sleep.delays == [1.0, 1.0]
    assert outcomes[0].spec_id == "id-1"


@pytest.mark.asyncio
async def test_reupload_deletes_same_named_spec_first(tmp_path: Path) -> None:
    _write(tmp_path, "orders.yaml")
    registry = FakeRegistry(specs=[{"id": "old", "name": "Orders"}, {"id": "x", "name": "Other"}])

    async with registry.client() as client:
        outcome = await reupload(client, tmp_path / "orders.yaml")

    methods = [(request.method, request.url.path) for request in registry.requests]
    assert methods == [("GET", "/specs"), ("DELETE", "/specs/old"), ("POST", "/specs")]
    assert outcome.ok
    assert [spec["name"] for spec in registry.specs] == ["Other", "Orders"]


@pytest.mark.asyncio
async def test_generate_all_collections_polls_each_task() -> None:
    registry = FakeRegistry(specs=[{"id": "s1", "name": "A"}, {"id": "s2", "name": "B"}])
    sleep = RecordingSleep()

    async with registry.client() as client:
        outcomes = await generate_all_collections(client, delay=2.0, sleep=sleep)

    assert all(item.ok for item in outcomes)
    assert [item.task.task_id for item in outcomes if item.task] == ["task-s1", "task-s2"]
    assert sleep.delays == [2.0]


def test_map_specs_to_files_matches_slugs(tmp_path: Path) -> None:
    _write(tmp_path, "ups-tracking-api.yaml", "billing.yaml")
    specs = [
        RegistrySpec(id="1", name="UPS Tracking API"),
        RegistrySpec(id="2", name="Billing Service"),
        RegistrySpec(id="3", name="Inventory"),
        RegistrySpec(id="4", name="!!!"),
    ]
    files = [item["file"] for item in map_specs_to_files(specs, tmp_path)]
    assert files == ["ups-tracking-api.yaml", "billing.yaml", UNKNOWN_SPEC_FILE, UNKNOWN_SPEC_FILE]


def test_build_and_write_spec_ids(tmp_path: Path) -> None:
    payload = build_spec_ids(
        [RegistrySpec(id="1", name="Billing")],
        tmp_path / "missing",
        "ws-1",
        now=datetime(2026, 3, 4, 5, 6, 7, 890, tzinfo=UTC),
    )
    assert payload == {
        "specs": [{"name": "Billing", "id": "1", "file": UNKNOWN_SPEC_FILE}],
        "workspaceId": "ws-1",
        "lastUpdated": "2026-03-04T05:06:07Z",
    }
    target = tmp_path / "spec-ids.json"
    write_spec_ids(payload, target)
    assert json.loads(target.read_text(encoding="utf-8")) == payload
