from __future__ import annotations

from ai_fdocs.config.loader import TomlConfigLoader, parse_config
from ai_fdocs.config.models import AppConfig, ConfigLoadRequest, PackageConfig, Settings, SyncMode

__all__ = [
    "AppConfig",
    "ConfigLoadRequest",
    "PackageConfig",
    "Settings",
    "SyncMode",
    "TomlConfigLoader",
    "parse_config",
]
