"""Tests for config loading and environment overrides."""

from __future__ import annotations

from pathlib import Path

import pytest

from spec_gov.config import (
    AppConfig,
    ConfigError,
    apply_env,
    default_config_template,
    load_app_config,
    require_api_key,
    require_webhook_url,
    require_workspace_id,
)


def test_defaults_without_config_files(tmp_path: Path) -> None:
    config = load_app_config(tmp_path, env={})
    assert config.threshold == 70
    assert config.specs_dir == "api-specs"
    assert config.lint.command == ["postman"]
    assert config.registry.base_url == "https://api.getpostman.com"
    assert config.api_key is None
    assert config.source is None


def test_dot_file_wins_over_pyproject(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        "\n".join(["[tool.spec_gov]", "threshold = 90"]),
        encoding="utf-8",
    )
    (tmp_path / ".spec-gov.toml").write_text(
        "\n".join(
            [
                "threshold = 60",
                'specs_dir = "specs"',
                'exclude = ["*-bad.yaml"]',
                "",
                "[registry]",
                'workspace_id = "ws-file"',
                "",
                "[lint]",
                'command = ["npx", "postman"]',
            ]
        ),
        encoding="utf-8",
    )

    config = load_app_config(tmp_path, env={})
    assert config.threshold == 60
    assert config.specs_dir == "specs"
    assert config.exclude == ["*-bad.yaml"]
    assert config.registry.workspace_id == "ws-file"
    assert config.lint.command == ["npx", "postman"]
    assert config.source == str(tmp_path.resolve() / ".spec-gov.toml")


def test_pyproject_hyphenated_tool_key(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        "\n".join(
            ['[tool."spec-gov"]', "threshold = 85", "", '[tool."spec-gov".retry]', "max_retries = 5"]
        ),
        encoding="utf-8",
    )
    config = load_app_config(tmp_path, env={})
    assert config.threshold == 85
    assert config.retry.to_retry_config().max_retries == 5


def test_env_overrides_file_values(tmp_path: Path) -> None:
    (tmp_path / ".spec-gov.toml").write_text(
        "\n".join(["threshold = 60", "[registry]", 'workspace_id = "ws-file"']),
        encoding="utf-8",
    )
    config = load_app_config(
        tmp_path,
        env={
            "POSTMAN_API_KEY": "pmak-1",
            "UPS_WORKSPACE_ID": "ws-env",
            "TEAMS_WEBHOOK_URL": "https://hooks.test/x",
            "GOVERNANCE_THRESHOLD": "80",
        },
    )
    assert config.threshold == 80
    assert config.registry.workspace_id == "ws-env"
    assert config.notify.webhook_url == "https://hooks.test/x"
    assert require_api_key(config) == "pmak-1"


def test_primary_workspace_env_wins_over_alias() -> None:
    config = apply_env(
        AppConfig(), {"POSTMAN_WORKSPACE_ID": "primary", "UPS_WORKSPACE_ID": "alias"}
    )
    assert config.registry.workspace_id == "primary"


def test_invalid_values_raise_value_error(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="GOVERNANCE_THRESHOLD"):
        apply_env(AppConfig(), {"GOVERNANCE_THRESHOLD": "high"})
    with pytest.raises(ValueError, match="between 0 and 100"):
        apply_env(AppConfig(), {"GOVERNANCE_THRESHOLD": "120"})

    (tmp_path / ".spec-gov.toml").write_text("[lint]\ncommand = 'postman'\n", encoding="utf-8")
    with pytest.raises(ValueError, match="lint.command"):
        load_app_config(tmp_path, env={})

    with pytest.raises(ValueError, match="does not exist"):
        load_app_config(tmp_path, config_path=Path("nope.toml"), env={})


def test_missing_credentials_raise_config_error() -> None:
    config = AppConfig()
    with pytest.raises(ConfigError, match="POSTMAN_API_KEY"):
        require_api_key(config)
    with pytest.raises(ConfigError, match="workspace id"):
        require_workspace_id(config)
    with pytest.raises(ConfigError, match="TEAMS_WEBHOOK_URL"):
        require_webhook_url(config)


def test_to_dict_masks_secrets() -> None:
    config = apply_env(
        AppConfig(), {"POSTMAN_API_KEY": "pmak-secret", "TEAMS_WEBHOOK_URL": "https://hook"}
    )
    payload = config.to_dict()
    assert payload["api_key"] == "<set>"
    assert payload["notify"]["webhook_url"] == "<set>"
    assert "pmak-secret" not in repr(config)


def test_default_template_loads(tmp_path: Path) -> None:
    target = tmp_path / "custom.toml"
    target.write_text(default_config_template(), encoding="utf-8")
    config = load_app_config(tmp_path, config_path=target, env={})
    assert config.exclude == ["*-bad.yaml"]
    assert config.notify.max_details == 5
    assert config.source == str(target)


def test_retry_base_delay_allows_zero_but_not_negative(tmp_path: Path) -> None:
    config_path = tmp_path / ".spec-gov.toml"
    config_path.write_text("[retry]\nbase_delay = 0\n", encoding="utf-8")
    config = load_app_config(tmp_path, env={})
    assert config.retry.to_retry_config().base_delay == 0.0

    config_path.write_text("[retry]\nbase_delay = -1.0\n", encoding="utf-8")
    with pytest.raises(ValueError, match="retry.base_delay must be >= 0"):
        load_app_config(tmp_path, env={})
