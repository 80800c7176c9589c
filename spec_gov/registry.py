"""Spec registry HTTP client (Postman Spec Hub API).

Idempotent requests (GET, DELETE) go through the retry wrapper. Writes that
create specs or generation tasks are sent exactly once.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import httpx
from loguru import logger

from spec_gov.retry import RetryConfig, SleepFn, execute_with_retry

DEFAULT_BASE_URL = "https://api.getpostman.com"
DEFAULT_SPEC_TYPE = "OPENAPI:3.0"
YAML_SUFFIXES = (".yaml", ".yml")


class RegistryError(RuntimeError):
    """Raised when a registry request fails."""

    def __init__(self, message: str, *, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TaskFailedError(RegistryError):
    """Raised when a generation task reaches a failed terminal state."""


class TaskTimeoutError(RegistryError):
    """Raised when a generation task is still pending after the last poll."""

    def __init__(self, result: TaskResult) -> None:
        super().__init__(f"task {result.task_id} still pending after {result.attempts} polls")
        self.result = result


class TaskState(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


COMPLETED_STATUSES = {"completed", "complete", "success", "succeeded", "done"}
FAILED_STATUSES = {"failed", "failure", "error", "errored", "cancelled", "canceled"}


@dataclass(frozen=True, slots=True)
class RegistrySpec:
    """A spec record as listed by the registry."""

    id: str
    name: str
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> RegistrySpec:
        extra = {key: value for key, value in raw.items() if key not in {"id", "name"}}
        return cls(id=str(raw.get("id", "")), name=str(raw.get("name", "")), extra=extra)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, **self.extra}


@dataclass(frozen=True, slots=True)
class TaskResult:
    """Outcome of polling one generation task."""

    task_id: str
    state: TaskState
    attempts: int
    details: dict[str, Any] = field(default_factory=dict)


def task_state(body: Any) -> TaskState:
    """Map a task status payload to a state machine state."""
    if not isinstance(body, dict):
        return TaskState.PENDING
    raw = body.get("status")
    if raw is None and isinstance(body.get("task"), dict):
        raw = body["task"].get("status")
    status = str(raw or "").strip().lower()
    if status in COMPLETED_STATUSES:
        return TaskState.COMPLETED
    if status in FAILED_STATUSES:
        return TaskState.FAILED
    return TaskState.PENDING


class RegistryClient:
    """Thin async wrapper over the registry endpoints.

    Use as an async context manager so the connection pool is closed::

        async with RegistryClient(api_key, workspace_id) as registry:
            specs = await registry.list_specs()
    """

    def __init__(
        self,
        api_key: str,
        workspace_id: str | None = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        retry: RetryConfig | None = None,
        sleep: SleepFn = asyncio.sleep,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.workspace_id = workspace_id
        self.retry = retry or RetryConfig()
        self._sleep = sleep
        kwargs: dict[str, Any] = {
            "base_url": base_url.rstrip("/"),
            "timeout": timeout,
            "headers": {"X-API-Key": api_key, "Accept": "application/json"},
        }
        if transport is not None:
            kwargs["transport"] = transport
        self._client = httpx.AsyncClient(**kwargs)

    async def __aenter__(self) -> RegistryClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def create_spec(
        self, name: str, path: Path, *, spec_type: str = DEFAULT_SPEC_TYPE
    ) -> str:
        """Upload a spec file under ``name`` and return the new spec id."""
        content = path.read_text(encoding="utf-8")
        file_name = path.name
        if path.suffix.lower() not in YAML_SUFFIXES:
            file_name = f"{path.stem}.yaml"
        payload = {
            "name": name,
            "type": spec_type,
            "files": [{"path": file_name, "content": content.strip()}],
        }
        logger.info("Uploading {} as {} ({} characters)", path.name, file_name, len(content))
        body = await self._send(
            "POST", "/specs", params=self._workspace_params(), json=payload, retry=False
        )
        spec_id = _extract_id(body, "id")
        if spec_id is None:
            raise RegistryError(f"create spec response has no id: {body!r}", body=body)
        logger.info('Created spec "{}" with ID: {}', name, spec_id)
        return spec_id

    async def list_specs(self) -> list[RegistrySpec]:
        body = await self._send("GET", "/specs", params=self._workspace_params())
        raw_specs = body.get("specs", []) if isinstance(body, dict) else []
        return [RegistrySpec.from_dict(item) for item in raw_specs if isinstance(item, dict)]

    async def delete_spec(self, spec_id: str) -> None:
        """Delete a spec. A spec that is already gone counts as deleted."""
        try:
            await self._send("DELETE", f"/specs/{spec_id}")
        except RegistryError as exc:
            if exc.status_code != 404:
                raise
            logger.debug("spec {} already absent", spec_id)
            return
        logger.info("Deleted spec: {}", spec_id)

    async def get_spec_definition(self, spec_id: str) -> Any:
        return await self._send("GET", f"/specs/{spec_id}/definitions")

    async def generate_collection(self, spec_id: str, name: str | None = None) -> str:
        """Start a collection generation task and return its task id."""
        payload: dict[str, Any] = {}
        if name:
            payload["name"] = name
        body = await self._send(
            "POST", f"/specs/{spec_id}/generations/collection", json=payload, retry=False
        )
        task_id = _extract_id(body, "taskId", "id")
        if task_id is None:
            raise RegistryError(f"generation response has no task id: {body!r}", body=body)
        return task_id

    async def get_task(self, spec_id: str, task_id: str) -> Any:
        return await self._send("GET", f"/specs/{spec_id}/tasks/{task_id}")

    async def poll_task(
        self,
        spec_id: str,
        task_id: str,
        *,
        interval: float = 2.0,
        max_attempts: int = 30,
        sleep: SleepFn | None = None,
    ) -> TaskResult:
        """Poll a task until it completes, fails, or runs out of attempts."""
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        wait = sleep or self._sleep
        details: dict[str, Any] = {}
        for attempt in range(1, max_attempts + 1):
            body = await self.get_task(spec_id, task_id)
            details = body if isinstance(body, dict) else {}
            state = task_state(body)
            if state is TaskState.COMPLETED:
                return TaskResult(task_id=task_id, state=state, attempts=attempt, details=details)
            if state is TaskState.FAILED:
                raise TaskFailedError(f"task {task_id} failed: {details}", body=details)
            logger.debug("task {} pending (poll {}/{})", task_id, attempt, max_attempts)
            if attempt < max_attempts:
                await wait(interval)

        raise TaskTimeoutError(
            TaskResult(
                task_id=task_id,
                state=TaskState.TIMED_OUT,
                attempts=max_attempts,
                details=details,
            )
        )

    def _workspace_params(self) -> dict[str, str]:
        if not self.workspace_id:
            raise RegistryError("workspace id is required for this operation")
        return {"workspaceId": self.workspace_id}

    async def _send(self, method: str, url: str, *, retry: bool = True, **kwargs: Any) -> Any:
        async def attempt() -> Any:
            return await self._request_once(method, url, **kwargs)

        if not retry:
            return await attempt()
        return await execute_with_retry(
            attempt,
            self.retry,
            description=f"{method} {url}",
            sleep=self._sleep,
        )

    async def _request_once(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise RegistryError(f"{method} {url} failed: {exc}") from exc

        body = _parse_body(response)
        if response.status_code < 200 or response.status_code >= 300:
            raise RegistryError(
                f"{method} {url} failed: HTTP {response.status_code} {body}",
                status_code=response.status_code,
                body=body,
            )
        return body


def _parse_body(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text


def _extract_id(body: Any, *keys: str) -> str | None:
    if not isinstance(body, dict):
        return None
    for key in keys:
        value = body.get(key)
        if value:
            return str(value)
    for nested_key in ("spec", "task", "data"):
        nested = body.get(nested_key)
        if isinstance(nested, dict):
            found = _extract_id(nested, *keys)
            if found is not None:
                return found
    return None
