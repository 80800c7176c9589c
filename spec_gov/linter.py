"""Lint CLI subprocess helpers."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Sequence
from pathlib import Path

from loguru import logger


class LintError(RuntimeError):
    """Raised when the lint command produced no usable output."""


DEFAULT_LINT_COMMAND = ("postman",)


class Linter:
    """Runs the external lint CLI and returns its raw output.

    A non-zero exit status is expected whenever the spec has violations, so
    output is returned regardless of the exit code as long as there is some.
    """

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_LINT_COMMAND,
        *,
        api_key: str | None = None,
        timeout: float = 120.0,
    ) -> None:
        if not command:
            raise ValueError("lint command must not be empty")
        self.command = tuple(command)
        self.api_key = api_key
        self.timeout = timeout

    async def lint_file(self, path: Path) -> str:
        """Lint a local spec file (text report, stderr merged into stdout)."""
        return await self._run(["api", "lint", str(path)])

    async def lint_spec(self, spec_id: str) -> str:
        """Lint a registry spec by id (JSON report)."""
        return await self._run(["spec", "lint", spec_id, "-o", "json"])

    async def _run(self, args: list[str]) -> str:
        argv = [*self.command, *args]
        env: dict[str, str] | None = None
        if self.api_key:
            env = os.environ.copy()
            env["POSTMAN_API_KEY"] = self.api_key

        logger.debug("running {}", " ".join(argv))
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                env=env,
            )
        except OSError as exc:
            raise LintError(f"could not start {argv[0]}: {exc}") from exc

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise LintError(f"{' '.join(argv)} timed out after {self.timeout:g}s") from exc

        output = stdout.decode("utf-8", errors="replace")
        if process.returncode != 0 and not output.strip():
            raise LintError(f"{' '.join(argv)} exited with status {process.returncode}")
        return output
