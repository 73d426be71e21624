"""Settings built from CLI flags, environment variables and the TOML config.

Later sources lose: explicit CLI flags beat ``TODOCTL_*`` environment
variables (``__`` separates nesting, e.g. ``TODOCTL_AUTH__API_TOKEN``),
which beat ``config.toml``, which beats the model defaults.

Only the host sections (``[auth]``, ``[plugin_system]``) are read here.
The ``[plugins]`` and ``[marketplaces]`` tables change at runtime and are
read and written through :class:`todoctl.config.store.ConfigStore`.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from todoctl.config.discovery import CONFIG_FILENAME, ConfigPaths
from todoctl.config.models import AuthConfig, PluginSystemConfig
from todoctl.config.store import ConfigStore

_HOST_SECTIONS = ("auth", "plugin_system")


class HostSectionsSource(PydanticBaseSettingsSource):
    """Host sections of ``config.toml``; a missing file contributes nothing."""

    def __init__(self, settings_cls: type[BaseSettings], store: ConfigStore | None) -> None:
        super().__init__(settings_cls)
        raw = store.read_raw() if store is not None else {}
        self._sections = {key: raw[key] for key in _HOST_SECTIONS if key in raw}

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return self._sections.get(field_name), field_name, field_name in self._sections

    def __call__(self) -> dict[str, Any]:
        return dict(self._sections)


# The store for the settings being built, set by from_cli().
_building = threading.local()


class TodoSettings(BaseSettings):
    """Unified settings for the todoctl CLI.

    Stored on the :class:`~todoctl.commands._context.AppContext` at the
    CLI root level and frozen after construction.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "TODOCTL_",
        "env_nested_delimiter": "__",
        "extra": "ignore",
    }

    config_dir: Path = Field(default_factory=lambda: ConfigPaths.resolve().config_dir)
    config_path: Path | None = None

    # --- CLI flags ---
    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False

    # --- TOML sections ---
    auth: AuthConfig = Field(default_factory=AuthConfig)
    plugin_system: PluginSystemConfig = Field(default_factory=PluginSystemConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            HostSectionsSource(settings_cls, getattr(_building, "store", None)),
        )

    @classmethod
    def from_cli(cls, *, config_path: str | None = None, **cli_flags: Any) -> TodoSettings:
        """Construct settings from a CLI invocation.

        Resolves the config directory (``--config`` parent, env var, or
        ``~/.config/todoctl``) and merges CLI flags as overrides.
        """
        paths = ConfigPaths.resolve(config_path)
        _building.store = ConfigStore(paths.config_file)
        try:
            return cls(
                config_dir=paths.config_dir,
                config_path=paths.config_file,
                **cli_flags,
            )
        finally:
            _building.store = None

    @property
    def paths(self) -> ConfigPaths:
        """Filesystem layout derived from the resolved config location."""
        config_file = self.config_path or self.config_dir / CONFIG_FILENAME
        return ConfigPaths(config_dir=self.config_dir, config_file=config_file)

    def config_store(self) -> ConfigStore:
        """Store for the mutable ``[plugins]`` / ``[marketplaces]`` tables."""
        return ConfigStore(self.paths.config_file)
