"""Configuration loading for spec-gov.

Precedence, lowest to highest: built-in defaults, project config file,
environment variables, command-line flags. The registry API key is read from
the environment only and is never written back out.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from spec_gov.registry import DEFAULT_BASE_URL
from spec_gov.retry import RetryConfig

CONFIG_FILENAMES = (".spec-gov.toml", "spec-gov.toml")
PYPROJECT_FILENAME = "pyproject.toml"
PYPROJECT_TOOL_KEYS = ("spec_gov", "spec-gov")

ENV_API_KEY = "POSTMAN_API_KEY"
ENV_WORKSPACE_IDS = ("POSTMAN_WORKSPACE_ID", "UPS_WORKSPACE_ID")
ENV_WEBHOOK_URL = "TEAMS_WEBHOOK_URL"
ENV_THRESHOLD = "GOVERNANCE_THRESHOLD"


class ConfigError(RuntimeError):
    """A required credential or identifier is missing."""


@dataclass(slots=True)
class RegistryConfig:
    """Spec registry connection settings."""

    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0
    workspace_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "base_url": self.base_url,
            "timeout": self.timeout,
            "workspace_id": self.workspace_id,
        }


@dataclass(slots=True)
class LintConfig:
    """External lint CLI settings."""

    command: list[str] = field(default_factory=lambda: ["postman"])
    timeout: float = 120.0

    def to_dict(self) -> dict[str, Any]:
        return {"command": list(self.command), "timeout": self.timeout}


@dataclass(slots=True)
class RetrySettings:
    max_retries: int = 3
    base_delay: float = 1.0

    def to_retry_config(self) -> RetryConfig:
        return RetryConfig(max_retries=self.max_retries, base_delay=self.base_delay)

    def to_dict(self) -> dict[str, Any]:
        return {"max_retries": self.max_retries, "base_delay": self.base_delay}


@dataclass(slots=True)
class NotifyConfig:
    """Chat webhook settings."""

    webhook_url: str | None = None
    max_details: int = 5
    dashboard_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "webhook_url": "<set>" if self.webhook_url else None,
            "max_details": self.max_details,
            "dashboard_url": self.dashboard_url,
        }


@dataclass(slots=True)
class AppConfig:
    """Runtime configuration resolved from project files and environment."""

    threshold: int = 70
    specs_dir: str = "api-specs"
    exclude: list[str] = field(default_factory=list)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    lint: LintConfig = field(default_factory=LintConfig)
    retry: RetrySettings = field(default_factory=RetrySettings)
    notify: NotifyConfig = field(default_factory=NotifyConfig)
    api_key: str | None = field(default=None, repr=False)
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "threshold": self.threshold,
            "specs_dir": self.specs_dir,
            "exclude": list(self.exclude),
            "registry": self.registry.to_dict(),
            "lint": self.lint.to_dict(),
            "retry": self.retry.to_dict(),
            "notify": self.notify.to_dict(),
            "api_key": "<set>" if self.api_key else None,
            "source": self.source,
        }


def load_app_config(
    root: Path,
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load config from an explicit path or project-local files, then apply env."""
    config = _load_file_config(root.resolve(), config_path)
    return apply_env(config, os.environ if env is None else env)


def apply_env(config: AppConfig, env: Mapping[str, str]) -> AppConfig:
    registry = config.registry
    for name in ENV_WORKSPACE_IDS:
        if env.get(name):
            registry = replace(registry, workspace_id=env[name])
            break

    notify = config.notify
    if env.get(ENV_WEBHOOK_URL):
        notify = replace(notify, webhook_url=env[ENV_WEBHOOK_URL])

    threshold = config.threshold
    raw_threshold = env.get(ENV_THRESHOLD)
    if raw_threshold:
        try:
            threshold = int(raw_threshold)
        except ValueError as exc:
            raise ValueError(f"{ENV_THRESHOLD} must be an integer, got {raw_threshold!r}") from exc
        _check_threshold(threshold, ENV_THRESHOLD)

    return replace(
        config,
        threshold=threshold,
        registry=registry,
        notify=notify,
        api_key=env.get(ENV_API_KEY) or None,
    )


def require_api_key(config: AppConfig) -> str:
    if not config.api_key:
        raise ConfigError(f"{ENV_API_KEY} environment variable not set")
    return config.api_key


def require_workspace_id(config: AppConfig) -> str:
    if not config.registry.workspace_id:
        raise ConfigError(
            f"workspace id required (use --workspace or {ENV_WORKSPACE_IDS[0]} env var)"
        )
    return config.registry.workspace_id


def require_webhook_url(config: AppConfig) -> str:
    if not config.notify.webhook_url:
        raise ConfigError(f"Teams webhook URL required (use --webhook or {ENV_WEBHOOK_URL})")
    return config.notify.webhook_url


def default_config_template() -> str:
    """Return a starter config file."""
    return "\n".join(
        [
            "threshold = 70",
            'specs_dir = "api-specs"',
            'exclude = ["*-bad.yaml"]',
            "",
            "[registry]",
            'base_url = "https://api.getpostman.com"',
            "timeout = 30.0",
            '# workspace_id = "00000000-0000-0000-0000-000000000000"',
            "",
            "[lint]",
            'command = ["postman"]',
            "timeout = 120.0",
            "",
            "[retry]",
            "max_retries = 3",
            "base_delay = 1.0",
            "",
            "[notify]",
            "max_details = 5",
            '# dashboard_url = "https://ci.example.com/governance-dashboard.html"',
            "",
        ]
    )


def _load_file_config(root: Path, config_path: Path | None) -> AppConfig:
    if config_path is not None:
        resolved = config_path if config_path.is_absolute() else (root / config_path)
        if not resolved.exists():
            raise ValueError(f"Config file does not exist: {resolved}")
        mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
        return _from_mapping(mapping, source=str(resolved))

    for filename in CONFIG_FILENAMES:
        resolved = root / filename
        if resolved.exists():
            mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
            return _from_mapping(mapping, source=str(resolved))

    pyproject_path = root / PYPROJECT_FILENAME
    if pyproject_path.exists():
        mapping = _extract_config_mapping(_load_toml(pyproject_path), source_path=pyproject_path)
        if mapping:
            return _from_mapping(mapping, source=str(pyproject_path))

    return AppConfig()


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as file_obj:
            loaded = tomllib.load(file_obj)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in {path}: {exc}") from exc
    return loaded


def _extract_config_mapping(loaded: dict[str, Any], *, source_path: Path) -> dict[str, Any]:
    tool_section = _find_pyproject_tool_section(loaded)
    if source_path.name == PYPROJECT_FILENAME:
        return tool_section if tool_section is not None else {}
    return tool_section if tool_section is not None else loaded


def _find_pyproject_tool_section(loaded: dict[str, Any]) -> dict[str, Any] | None:
    tool = loaded.get("tool")
    if not isinstance(tool, dict):
        return None
    for key in PYPROJECT_TOOL_KEYS:
        section = tool.get(key)
        if isinstance(section, dict):
            return section
    return None


def _from_mapping(mapping: dict[str, Any], *, source: str) -> AppConfig:
    registry = _as_table(mapping.get("registry"), "registry")
    lint = _as_table(mapping.get("lint"), "lint")
    retry = _as_table(mapping.get("retry"), "retry")
    notify = _as_table(mapping.get("notify"), "notify")

    threshold = _as_int(mapping.get("threshold", 70), "threshold")
    _check_threshold(threshold, "threshold")

    command = _as_str_list(lint.get("command"), "lint.command") or ["postman"]
    max_retries = _as_int(retry.get("max_retries", 3), "retry.max_retries")
    if max_retries < 1:
        raise ValueError("retry.max_retries must be >= 1")
    max_details = _as_int(notify.get("max_details", 5), "notify.max_details")
    if max_details < 0:
        raise ValueError("notify.max_details must be >= 0")

    return AppConfig(
        threshold=threshold,
        specs_dir=_as_str(mapping.get("specs_dir", "api-specs"), "specs_dir"),
        exclude=_as_str_list(mapping.get("exclude"), "exclude"),
        registry=RegistryConfig(
            base_url=_as_str(registry.get("base_url", DEFAULT_BASE_URL), "registry.base_url"),
            timeout=_as_positive_float(registry.get("timeout", 30.0), "registry.timeout"),
            workspace_id=_as_optional_str(registry.get("workspace_id"), "registry.workspace_id"),
        ),
        lint=LintConfig(
            command=command,
            timeout=_as_positive_float(lint.get("timeout", 120.0), "lint.timeout"),
        ),
        retry=RetrySettings(
            max_retries=max_retries,
            base_delay=_as_non_negative_float(
                retry.get("base_delay", 1.0), "retry.base_delay"
            ),
        ),
        notify=NotifyConfig(
            webhook_url=_as_optional_str(notify.get("webhook_url"), "notify.webhook_url"),
            max_details=max_details,
            dashboard_url=_as_optional_str(notify.get("dashboard_url"), "notify.dashboard_url"),
        ),
        source=source,
    )


def _check_threshold(value: int, field_name: str) -> None:
    if not 0 <= value <= 100:
        raise ValueError(f"{field_name} must be between 0 and 100")


def _as_table(value: Any, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be a table/object")
    return value


def _as_str_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"{field_name} must be a list of strings")
    return list(value)


def _as_str(value: Any, field_name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    return value


def _as_optional_str(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    return _as_str(value, field_name)


def _as_int(raw: Any, field_name: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValueError(f"{field_name} must be an integer")
    return raw


def _as_non_negative_float(raw: Any, field_name: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValueError(f"{field_name} must be a number")
    if raw < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return float(raw)


def _as_positive_float(raw: Any, field_name: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValueError(f"{field_name} must be a number")
    if raw <= 0:
        raise ValueError(f"{field_name} must be > 0")
    return float(raw)
