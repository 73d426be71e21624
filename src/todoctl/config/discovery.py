"""Config directory discovery.

The config directory holds ``config.toml``, installed plugins and the
marketplace cache. Resolution order: explicit ``--config`` file (its parent
directory), ``TODOCTL_CONFIG_DIR`` env var, then ``~/.config/todoctl``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

CONFIG_FILENAME = "config.toml"
CONFIG_DIR_ENV_VAR = "TODOCTL_CONFIG_DIR"


def default_config_dir() -> Path:
    """``$TODOCTL_CONFIG_DIR`` if set, else ``~/.config/todoctl``."""
    env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
    if env_dir:
        return Path(env_dir).expanduser()
    return Path.home() / ".config" / "todoctl"


@dataclass(frozen=True)
class ConfigPaths:
    """Filesystem layout under the config directory."""

    config_dir: Path
    config_file: Path

    @classmethod
    def resolve(cls, config_path: str | Path | None = None) -> ConfigPaths:
        """Build the layout from an optional explicit config file path."""
        if config_path:
            config_file = Path(config_path).expanduser()
            return cls(config_dir=config_file.parent, config_file=config_file)
        config_dir = default_config_dir()
        return cls(config_dir=config_dir, config_file=config_dir / CONFIG_FILENAME)

    @property
    def plugins_dir(self) -> Path:
        return self.config_dir / "plugins"

    @property
    def marketplace_cache_dir(self) -> Path:
        return self.config_dir / "marketplace-cache"

    def plugin_dir(self, name: str) -> Path:
        return self.plugins_dir / name
