"""Harness configuration."""

from .harness_config import HarnessConfig, load_config, get_config_paths

__all__ = ["HarnessConfig", "load_config", "get_config_paths"]
