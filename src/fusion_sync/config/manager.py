"""Configuration loading, validation and the process-wide settings handle."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from fusion_sync.config.schema import AppConfig

logger = logging.getLogger(__name__)


class ConfigManager:
    """Loads config from YAML files and validates it against the schema."""

    def __init__(
        self,
        defaults_path: Path | None = None,
        user_path: Path | None = None,
    ) -> None:
        self._defaults_path = defaults_path or Path("config.defaults.yaml")
        self._user_path = user_path or Path("config.yaml")
        self._config: AppConfig | None = None

    @property
    def config(self) -> AppConfig:
        if self._config is None:
            raise RuntimeError("Config not loaded. Call load() first.")
        return self._config

    def load(self) -> AppConfig:
        """Load configuration from defaults + user overrides."""
        defaults = self._load_yaml(self._defaults_path)
        overrides = self._load_yaml(self._user_path) if self._user_path.exists() else {}
        merged = self._deep_merge(defaults, overrides)
        self._config = AppConfig.model_validate(merged)
        logger.info("Configuration loaded successfully")
        return self._config

    def to_json(self) -> str:
        return self.config.model_dump_json(indent=2)

    @staticmethod
    def _load_yaml(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        with open(path) as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Recursively merge override into base, returning a new dict."""
        result = dict(base)
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = ConfigManager._deep_merge(result[key], value)
            else:
                result[key] = value
        return result


_active: ConfigManager | None = None


def load_settings(
    defaults_path: Path | None = None,
    user_path: Path | None = None,
) -> AppConfig:
    """Load configuration and keep its manager as the process-wide one."""
    global _active
    _active = ConfigManager(defaults_path=defaults_path, user_path=user_path)
    return _active.load()


def get_config_manager() -> ConfigManager:
    if _active is None:
        raise RuntimeError("Settings not loaded. Call load_settings() first.")
    return _active
