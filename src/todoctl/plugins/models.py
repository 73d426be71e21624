"""Pydantic models for plugin and marketplace manifests and operation results."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from todoctl.plugins.errors import PluginValidationError

PLUGIN_MANIFEST = "plugin.json"
MARKETPLACE_MANIFEST = "marketplace.json"
DEPENDENCY_MANIFEST = "requirements.txt"
DEFAULT_MAIN = "plugin.py"

SourceKind = Literal["github", "git", "pypi"]


class PluginManifest(BaseModel):
    """``plugin.json`` at the root of an installed plugin directory."""

    model_config = {"extra": "allow", "frozen": True}

    name: str
    version: str
    description: str | None = None
    main: str = DEFAULT_MAIN
    author: str | None = None
    engines: dict[str, str] | None = None

    @classmethod
    def read(cls, plugin_dir: Path) -> PluginManifest:
        """Load ``plugin.json`` from *plugin_dir*."""
        path = plugin_dir / PLUGIN_MANIFEST
        if not path.is_file():
            msg = f"{plugin_dir.name}: missing {PLUGIN_MANIFEST}"
            raise PluginValidationError(msg, code="INVALID_MANIFEST", path=str(path))
        try:
            return cls.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            msg = f"{plugin_dir.name}: unreadable {PLUGIN_MANIFEST}: {exc}"
            raise PluginValidationError(msg, code="INVALID_MANIFEST", path=str(path)) from exc
        except ValidationError as exc:
            msg = f"{plugin_dir.name}: invalid {PLUGIN_MANIFEST}: {exc}"
            raise PluginValidationError(msg, code="INVALID_MANIFEST", path=str(path)) from exc


class ExternalSource(BaseModel):
    """Structured catalog source, discriminated by ``kind``.

    ``type`` and ``sha``/``pinnedRevision`` are accepted as aliases so
    hand-written marketplace manifests in either spelling validate.
    """

    model_config = {"frozen": True, "populate_by_name": True}

    kind: SourceKind = Field(validation_alias=AliasChoices("kind", "type"))
    repo: str | None = None
    url: str | None = None
    package: str | None = None
    ref: str | None = None
    pinned_revision: str | None = Field(
        default=None,
        validation_alias=AliasChoices("pinned_revision", "pinnedRevision", "sha"),
    )

    @property
    def is_vcs(self) -> bool:
        return self.kind in ("github", "git")


class CatalogEntry(BaseModel):
    """One plugin listed in a marketplace manifest."""

    model_config = {"extra": "allow", "frozen": True}

    name: str
    source: str | ExternalSource
    version: str | None = None
    description: str | None = None


class MarketplaceManifest(BaseModel):
    """``marketplace.json``: a catalog of installable plugins."""

    model_config = {"extra": "allow", "frozen": True}

    name: str | None = None
    description: str | None = None
    version: str | None = None
    plugins: list[CatalogEntry] = Field(default_factory=list)


class MarketplaceRegistration(BaseModel):
    model_config = {"frozen": True}

    name: str
    source: str
    auto_update: bool = True
    official: bool = False


class DiscoveredPlugin(CatalogEntry):
    """A catalog entry annotated with where it came from and local state."""

    marketplace: str
    installed: bool = False
    enabled: bool = False


class InstalledPlugin(BaseModel):
    model_config = {"frozen": True}

    name: str
    source: str
    version: str | None = None
    enabled: bool = True
    marketplace: str | None = None
    bundled: bool = False
    after: str | None = None


class InstallResult(BaseModel):
    model_config = {"frozen": True}

    name: str
    version: str
    marketplace: str
    description: str | None = None
    warnings: list[str] = Field(default_factory=list)


class UpdateResult(BaseModel):
    model_config = {"frozen": True}

    name: str
    updated: bool
    message: str
    old_version: str | None = None
    new_version: str | None = None
    warnings: list[str] = Field(default_factory=list)
