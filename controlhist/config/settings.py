"""Configuration settings for the control history service.

Settings wraps the ConfigManager and exposes typed properties. Values come
from the config manager when one is attached, otherwise from
``CONTROLHIST_*`` environment variables, otherwise from the defaults.
"""

from __future__ import annotations

import os
from typing import Any

from controlhist.config.constants import (
    DEFAULT_DIFF_ALGORITHM,
    DEFAULT_DIFF_COMMIT_LIMIT,
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_MAPPING_FILE_SUFFIX,
    DEFAULT_SEMANTIC_DIFF_EXTENSIONS,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
    ENV_PREFIX,
)
from controlhist.config.manager import ConfigManager


class Settings:
    """Application settings with hot-reload support."""

    def __init__(self, config_manager: ConfigManager | None = None):
        self._config_manager = config_manager

    def attach(self, config_manager: ConfigManager | None) -> None:
        self._config_manager = config_manager

    def _get(self, key: str, default: Any, env_key: str | None = None) -> Any:
        """Get config value from manager, fallback to env, then default."""
        if self._config_manager:
            return self._config_manager.get(key, default)
        env_key = env_key or f"{ENV_PREFIX}{key.upper()}"
        if env_val := os.getenv(env_key):
            # Type conversion based on default type
            if isinstance(default, bool):
                return env_val.lower() in ("true", "1", "yes", "on")
            elif isinstance(default, int):
                return int(env_val)
            elif isinstance(default, (list, tuple)):
                return [part.strip() for part in env_val.split(",") if part.strip()]
            return env_val
        return default

    # Server Configuration
    @property
    def server_host(self) -> str:
        return self._get("server_host", DEFAULT_SERVER_HOST)

    @property
    def server_port(self) -> int:
        return self._get("server_port", DEFAULT_SERVER_PORT)

    # History
    @property
    def history_limit(self) -> int:
        return self._get("history_limit", DEFAULT_HISTORY_LIMIT)

    @property
    def history_diff_commits(self) -> int:
        return self._get("history_diff_commits", DEFAULT_DIFF_COMMIT_LIMIT)

    @property
    def diff_algorithm(self) -> str:
        return self._get("diff_algorithm", DEFAULT_DIFF_ALGORITHM)

    @property
    def mapping_file_suffix(self) -> str:
        return self._get("mapping_file_suffix", DEFAULT_MAPPING_FILE_SUFFIX)

    @property
    def semantic_diff_extensions(self) -> tuple[str, ...]:
        value = self._get(
            "semantic_diff_extensions", list(DEFAULT_SEMANTIC_DIFF_EXTENSIONS)
        )
        return tuple(value)

    # Logging Configuration
    @property
    def log_level(self) -> str:
        return self._get("log_level", "INFO", "LOG_LEVEL")

    @property
    def log_format(self) -> str:
        return self._get("log_format", "pretty", "LOG_FORMAT")

    @property
    def log_colors(self) -> bool:
        return self._get("log_colors", True, "LOG_COLORS")


# Global settings instance (attached to the config manager at startup)
settings = Settings()
