"""Configuration manager with hot-reload support."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from controlhist.config.providers import (
    ConfigProvider,
    LayeredConfigProvider,
    LocalFileConfigProvider,
)
from controlhist.config.schema import deep_merge
from controlhist.utils.logger import get_logger

logger = get_logger("config.manager")

T = TypeVar("T")


class ConfigManager:
    """Manages application configuration with hot-reload support.

    Wraps a provider (a local file, or several layered ones) and lets other
    components register callbacks for configuration changes.
    """

    def __init__(self, provider: ConfigProvider):
        self.provider = provider
        self._config: dict[str, Any] = {}
        self._change_callbacks: list[Callable[[dict[str, Any]], None]] = []
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def initialize(self) -> None:
        """Load the initial configuration."""
        self._config = await self.provider.load()
        self._loaded = True
        logger.info("Configuration initialized", config_keys=list(self._config.keys()))

    async def start_watching(self) -> None:
        await self.provider.watch(self._on_config_changed)

    async def stop_watching(self) -> None:
        await self.provider.stop_watching()

    def get(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    def get_typed(self, key: str, expected_type: type[T], default: T) -> T:
        """Get a typed configuration value, falling back to default on mismatch."""
        value = self._config.get(key, default)
        # bool is an int subclass; a flag must not satisfy an int setting
        if not isinstance(value, expected_type) or (
            expected_type is int and isinstance(value, bool)
        ):
            logger.warning(
                "Config type mismatch, using default",
                key=key,
                expected=expected_type.__name__,
                actual=type(value).__name__,
            )
            return default
        return value

    def get_str(self, key: str, default: str = "") -> str:
        return self.get_typed(key, str, default)

    def get_int(self, key: str, default: int = 0) -> int:
        return self.get_typed(key, int, default)

    def get_bool(self, key: str, default: bool = False) -> bool:
        return self.get_typed(key, bool, default)

    async def update(self, updates: dict[str, Any]) -> None:
        """Update multiple configuration values at once and persist them."""
        self._config = deep_merge(self._config, updates)

        # Persist only what the user set, not the defaults
        user_cfg = getattr(self.provider, "_user_config", None)
        if isinstance(user_cfg, dict):
            user_cfg = deep_merge(user_cfg, updates)
            self.provider._user_config = user_cfg  # type: ignore[attr-defined]
            await self.provider.save(user_cfg)
        else:
            await self.provider.save(self._config)

        logger.info("Configuration updated", keys=list(updates.keys()))
        self._notify_callbacks()

    def get_all(self) -> dict[str, Any]:
        return self._config.copy()

    def register_change_callback(
        self, callback: Callable[[dict[str, Any]], None]
    ) -> None:
        self._change_callbacks.append(callback)

    def _on_config_changed(self, new_config: dict[str, Any]) -> None:
        old_config = self._config.copy()
        self._config = new_config

        changed_keys = sorted(
            key
            for key in set(old_config) | set(new_config)
            if old_config.get(key) != new_config.get(key)
        )
        if changed_keys:
            logger.info("Configuration reloaded", changed_keys=changed_keys)
        else:
            logger.debug("Configuration reloaded with no changes")

        self._notify_callbacks()

    def _notify_callbacks(self) -> None:
        for callback in self._change_callbacks:
            try:
                callback(self._config.copy())
            except Exception as e:
                logger.error(
                    "Error in config change callback",
                    error=str(e),
                    callback=getattr(callback, "__name__", repr(callback)),
                )


# Global config manager instance
_config_manager: ConfigManager | None = None


def create_config_manager(
    config_dir: Path,
    *,
    local_config_path: Path | None = None,
    defaults: dict[str, Any] | None = None,
) -> ConfigManager:
    """Create the global config manager.

    Args:
        config_dir: Directory holding config.json
        local_config_path: Optional override file layered on top, never created
        defaults: Default configuration values
    """
    global _config_manager

    config_path = config_dir / "config.json"
    base_provider = LocalFileConfigProvider(config_path, defaults=defaults)
    provider: ConfigProvider = base_provider
    if local_config_path:
        provider = LayeredConfigProvider(
            [
                base_provider,
                LocalFileConfigProvider(
                    local_config_path, defaults={}, create_if_missing=False
                ),
            ],
            primary_index=0,
        )
    _config_manager = ConfigManager(provider)

    logger.info("Config manager created", config_path=str(config_path))
    return _config_manager


def get_config_manager() -> ConfigManager:
    """Get the global config manager instance."""
    if _config_manager is None:
        raise RuntimeError(
            "Config manager not initialized. Call create_config_manager() first."
        )
    return _config_manager
