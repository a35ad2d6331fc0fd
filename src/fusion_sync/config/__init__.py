"""Configuration management for Fusion Sync."""

from fusion_sync.config.schema import AppConfig
from fusion_sync.config.manager import ConfigManager, get_config_manager, load_settings

__all__ = ["AppConfig", "ConfigManager", "get_config_manager", "load_settings"]
