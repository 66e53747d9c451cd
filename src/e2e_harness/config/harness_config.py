"""Harness configuration management.

Every environment URL, timeout and browser option a run needs lives on
HarnessConfig, so the same scenario can target any deployment without
editing code.
"""

import os
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from ..exceptions import ConfigError
from ..models.harness_models import BrowserType, Viewport

logger = logging.getLogger(__name__)

ENV_PREFIX = "E2E_HARNESS_"

# Environment variables holding comma-separated lists
_LIST_FIELDS = {"launch_args", "report_formats", "ignored_console_patterns"}


class HarnessConfig(BaseModel):
    """Harness configuration model."""

    # Target environment
    environments: Dict[str, str] = Field(
        default_factory=lambda: {"local": "http://localhost:5173"},
        description="Named environment base URLs",
    )
    environment: str = Field(default="local", description="Selected environment name")
    base_url: Optional[str] = Field(
        default=None, description="Explicit base URL (overrides environment)"
    )

    # Browser
    browser: BrowserType = Field(default=BrowserType.CHROMIUM, description="Browser engine")
    headless: bool = Field(default=True, description="Run without a visible window")
    viewport: Viewport = Field(default_factory=Viewport, description="Viewport size")
    auth_state_path: Optional[str] = Field(
        default=".auth/user-state.json",
        description="Saved cookies/localStorage snapshot to restore",
    )
    launch_args: List[str] = Field(
        default_factory=list, description="Extra browser flags, e.g. --no-sandbox"
    )

    # Timing (milliseconds)
    default_timeout_ms: int = Field(default=10_000, ge=0, description="Per-step timeout")
    run_timeout_ms: int = Field(default=300_000, gt=0, description="Whole-run timeout")
    poll_interval_ms: int = Field(default=250, gt=0, description="Condition poll interval")
    settle_ms: int = Field(default=200, ge=0, description="Pause after interactive actions")
    wait_until: str = Field(default="load", description="Navigation wait condition")

    # Output
    output_root: str = Field(default="test-results", description="Root of run directories")
    output_prefix: str = Field(default="run", description="Run directory name prefix")
    report_formats: List[str] = Field(
        default_factory=lambda: ["json", "html"], description="Report formats to write"
    )
    screenshot_on_failure: bool = Field(
        default=True, description="Capture a screenshot when a step fails"
    )
    retention_days: int = Field(default=10, ge=0, description="Age before runs are pruned")

    # Diagnostics
    ignored_console_patterns: List[str] = Field(
        default_factory=lambda: ["X-Frame-Options"],
        description="Console messages containing these are not recorded",
    )

    # Debugging
    interactive: bool = Field(
        default=False, description="Keep a headed browser open for manual inspection"
    )

    class Config:
        """Pydantic configuration."""

        extra = "ignore"

    def resolve_base_url(self) -> str:
        """Return the base URL for the run.

        Raises:
            ConfigError: If neither base_url nor a known environment is set
        """
        if self.base_url:
            return self.base_url
        if self.environment not in self.environments:
            known = ", ".join(sorted(self.environments)) or "none"
            raise ConfigError(
                f"Unknown environment '{self.environment}' (configured: {known})"
            )
        return self.environments[self.environment]


def get_config_paths() -> List[Path]:
    """
    Get configuration file paths in priority order.

    Returns:
        List of paths, highest priority last
    """
    return [
        Path.home() / ".e2e-harness" / "config.yaml",
        Path.cwd() / ".e2e-harness" / "config.yaml",
    ]


def load_config(config_path: Optional[str] = None) -> HarnessConfig:
    """
    Load harness configuration.

    Configuration is merged in this order (later overrides earlier):
    1. Default values
    2. Global config (~/.e2e-harness/config.yaml)
    3. Project config (./.e2e-harness/config.yaml)
    4. Explicit config_path if provided
    5. Environment variables (E2E_HARNESS_*), after loading .env

    Args:
        config_path: Optional explicit config file path

    Returns:
        Merged HarnessConfig instance

    Raises:
        ConfigError: If the explicit file is missing or any value is invalid
    """
    load_dotenv()
    merged: Dict[str, Any] = {}

    for path in get_config_paths():
        if path.exists():
            try:
                merged.update(_read_config_file(path))
                logger.debug(f"Loaded config from {path}")
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Failed to load config from {path}: {e}")

    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            merged.update(_read_config_file(path))
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load config from {path}: {e}") from e

    _merge_env_overrides(merged, _get_env_overrides())

    try:
        return HarnessConfig(**merged)
    except ValueError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def _read_config_file(path: Path) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        file_config = yaml.safe_load(f) or {}
    if not isinstance(file_config, dict):
        raise yaml.YAMLError(f"{path} does not contain a mapping")
    # Only merge 'harness' section if present, otherwise use whole file
    return dict(file_config.get("harness", file_config))


def _get_env_overrides() -> Dict[str, Any]:
    """
    Get configuration overrides from environment variables.

    E2E_HARNESS_HEADLESS=false -> headless=False,
    E2E_HARNESS_LAUNCH_ARGS=--no-sandbox,--disable-gpu -> list,
    E2E_HARNESS_VIEWPORT_WIDTH=1920 -> viewport.width,
    E2E_HARNESS_ENV_STAGING=https://... -> environments["staging"].

    Returns:
        Dictionary of overrides
    """
    overrides: Dict[str, Any] = {}

    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        config_key = key[len(ENV_PREFIX) :].lower()

        if config_key.startswith("env_"):
            overrides.setdefault("environments", {})[config_key[4:]] = value
        elif config_key in ("viewport_width", "viewport_height"):
            try:
                size = int(value)
            except ValueError:
                raise ConfigError(f"{key} must be an integer, got {value!r}") from None
            overrides.setdefault("viewport", {})[config_key[9:]] = size
        elif config_key in _LIST_FIELDS:
            overrides[config_key] = [item.strip() for item in value.split(",") if item.strip()]
        elif value.lower() in ("true", "yes"):
            overrides[config_key] = True
        elif value.lower() in ("false", "no"):
            overrides[config_key] = False
        else:
            try:
                overrides[config_key] = int(value)
            except ValueError:
                overrides[config_key] = value

    return overrides


def _merge_env_overrides(merged: Dict[str, Any], overrides: Dict[str, Any]) -> None:
    for key, value in overrides.items():
        if key in ("environments", "viewport") and isinstance(value, dict):
            existing = merged.get(key)
            if isinstance(existing, BaseModel):
                existing = existing.model_dump()
            combined = dict(existing or {})
            if key == "environments" and not combined:
                combined = HarnessConfig().environments
            combined.update(value)
            merged[key] = combined
        else:
            merged[key] = value
