"""Read and write config.toml, the single source of truth for todoctl state.

Every mutation is a whole-file read-modify-write through :meth:`ConfigStore.edit`.
Writes go to a temporary file in the same directory and are moved into place
with :func:`os.replace`, so readers never observe a half-written file.

KNOWN LIMITATION: there is no inter-process locking. Two concurrent todoctl
invocations that both mutate the config race, and the last writer wins.
"""

from __future__ import annotations

import logging
import os
import tempfile
import tomllib
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import tomli_w
from pydantic import ValidationError

from todoctl.config.models import TodoConfig

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """config.toml could not be parsed or failed validation."""


class ConfigStore:
    """Typed access to config.toml with atomic write-replace."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def read_raw(self) -> dict[str, Any]:
        """Parsed TOML without validation; empty when the file is missing."""
        if not self._path.is_file():
            return {}
        try:
            return tomllib.loads(self._path.read_text(encoding="utf-8"))
        except UnicodeDecodeError as exc:
            msg = f"Invalid TOML in {self._path}: not UTF-8 ({exc.reason} at byte {exc.start})"
            raise ConfigError(msg) from exc
        except tomllib.TOMLDecodeError as exc:
            msg = f"Invalid TOML in {self._path}: {exc}"
            raise ConfigError(msg) from exc

    def load(self) -> TodoConfig:
        """Read and validate the config file. Missing file yields defaults."""
        data = self.read_raw()
        try:
            return TodoConfig.model_validate(data)
        except ValidationError as exc:
            msg = f"Invalid configuration in {self._path}: {exc}"
            raise ConfigError(msg) from exc

    def save(self, config: TodoConfig) -> None:
        """Serialize *config* and atomically replace the config file."""
        data = config.model_dump(mode="json", exclude_none=True)
        # Keep the file sparse: host sections only carry overrides.
        for section in ("auth", "plugin_system"):
            overrides = getattr(config, section).model_dump(mode="json", exclude_defaults=True)
            if overrides:
                data[section] = overrides
            else:
                data.pop(section, None)
        payload = tomli_w.dumps(data)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Saved config to %s", self._path)

    @contextmanager
    def edit(self) -> Iterator[TodoConfig]:
        """Load, yield for mutation, then save. Nothing is written on error."""
        config = self.load()
        yield config
        self.save(config)
