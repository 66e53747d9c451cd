"""Tests for harness configuration loading."""

import os

import pytest

from e2e_harness.config.harness_config import HarnessConfig, load_config
from e2e_harness.exceptions import ConfigError


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Ignore user/project config files and stray environment variables."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(
        "e2e_harness.config.harness_config.get_config_paths", lambda: []
    )
    for key in list(os.environ):
        if key.startswith("E2E_HARNESS_"):
            monkeypatch.delenv(key)


class TestHarnessConfig:
    """Tests for HarnessConfig defaults and URL resolution."""

    def test_defaults(self):
        config = HarnessConfig()
        assert config.default_timeout_ms == 10_000
        assert config.headless is True
        assert config.report_formats == ["json", "html"]
        assert config.auth_state_path == ".auth/user-state.json"
        assert config.resolve_base_url() == "http://localhost:5173"

    def test_explicit_base_url_wins(self):
        config = HarnessConfig(base_url="https://staging.example.test", environment="nope")
        assert config.resolve_base_url() == "https://staging.example.test"

    def test_unknown_environment(self):
        config = HarnessConfig(environment="production")
        with pytest.raises(ConfigError, match="production"):
            config.resolve_base_url()


class TestLoadConfig:
    """Tests for load_config merging."""

    def test_explicit_file_with_harness_section(self, tmp_path):
        path = tmp_path / "harness.yaml"
        path.write_text(
            "harness:\n"
            "  environment: staging\n"
            "  environments:\n"
            "    staging: https://staging.example.test\n"
            "  default_timeout_ms: 5000\n"
        )
        config = load_config(str(path))
        assert config.environment == "staging"
        assert config.default_timeout_ms == 5000
        assert config.resolve_base_url() == "https://staging.example.test"

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(str(tmp_path / "missing.yaml"))

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("E2E_HARNESS_HEADLESS", "false")
        monkeypatch.setenv("E2E_HARNESS_DEFAULT_TIMEOUT_MS", "2500")
        monkeypatch.setenv("E2E_HARNESS_LAUNCH_ARGS", "--no-sandbox, --disable-gpu")
        monkeypatch.setenv("E2E_HARNESS_VIEWPORT_WIDTH", "1920")
        monkeypatch.setenv("E2E_HARNESS_ENV_STAGING", "https://staging.example.test")

        config = load_config()
        assert config.headless is False
        assert config.default_timeout_ms == 2500
        assert config.launch_args == ["--no-sandbox", "--disable-gpu"]
        assert config.viewport.width == 1920
        assert config.environments["staging"] == "https://staging.example.test"
        assert config.environments["local"] == "http://localhost:5173"

    def test_invalid_value(self, monkeypatch):
        monkeypatch.setenv("E2E_HARNESS_RUN_TIMEOUT_MS", "0")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config()

    def test_non_numeric_viewport(self, monkeypatch):
        monkeypatch.setenv("E2E_HARNESS_VIEWPORT_HEIGHT", "tall")
        with pytest.raises(ConfigError, match="E2E_HARNESS_VIEWPORT_HEIGHT must be an integer"):
            load_config()
