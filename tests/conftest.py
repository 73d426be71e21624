"""Shared pytest fixtures and test helpers for todoctl tests."""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from todoctl.config.discovery import ConfigPaths
from todoctl.config.models import MarketplaceEntry
from todoctl.config.store import ConfigStore
from todoctl.plugins.errors import SourceResolutionError
from todoctl.plugins.marketplace import MarketplaceClient
from todoctl.plugins.sources import ProcessRunner

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    """Undo configure_logging() calls made by CLI invocations."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    todo_level = logging.getLogger("todoctl").level
    yield
    root.handlers = handlers
    root.setLevel(level)
    logging.getLogger("todoctl").setLevel(todo_level)


@pytest.fixture(autouse=True)
def _no_bundled_plugins(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the shipped plugins out of config dirs unless a test asks for them."""
    monkeypatch.setattr("todoctl.services.plugins.bundled_plugins_dir", lambda: None)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolated config directory, also exported as ``TODOCTL_CONFIG_DIR``."""
    path = tmp_path / "config"
    path.mkdir()
    monkeypatch.setenv("TODOCTL_CONFIG_DIR", str(path))
    for var in ("TODOCTL_AUTH__API_TOKEN", "TODOCTL_PLUGIN_SYSTEM__OFFICIAL_SOURCE"):
        monkeypatch.delenv(var, raising=False)
    return path


@pytest.fixture
def paths(config_dir: Path) -> ConfigPaths:
    return ConfigPaths.resolve()


@pytest.fixture
def store(paths: ConfigPaths) -> ConfigStore:
    return ConfigStore(paths.config_file)


@pytest.fixture
def official_dir(tmp_path: Path) -> Path:
    """Local directory standing in for the official marketplace."""
    path = tmp_path / "official"
    write_marketplace(path, [])
    return path


@pytest.fixture
def marketplace(
    store: ConfigStore, paths: ConfigPaths, official_dir: Path
) -> MarketplaceClient:
    """Marketplace client whose official marketplace is a local directory."""
    return MarketplaceClient(store, paths, ProcessRunner(), official_source=str(official_dir))


# ---------------------------------------------------------------------------
# Process runner double
# ---------------------------------------------------------------------------


class RecordingRunner(ProcessRunner):
    """Records commands instead of running them.

    ``fail_on`` maps a program name (``git``, ``uv``, a python path) to an
    error message; matching commands raise :class:`SourceResolutionError`.
    ``on_clone`` is called with the target directory of ``git clone``.
    """

    def __init__(
        self,
        *,
        fail_on: dict[str, str] | None = None,
        on_clone: Any = None,
    ) -> None:
        super().__init__()
        self.commands: list[tuple[str, ...]] = []
        self.fail_on = dict(fail_on or {})
        self.on_clone = on_clone

    def run(self, *args: str, cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
        self.commands.append(args)
        program = Path(args[0]).name
        for key, message in self.fail_on.items():
            if program == key or args[0] == key or " ".join(args[:2]) == key:
                raise SourceResolutionError(message, command=list(args))
        if args[:2] == ("git", "clone") and self.on_clone is not None:
            self.on_clone(Path(args[-1]))
        return subprocess.CompletedProcess(list(args), 0, "", "")

    def programs(self) -> list[str]:
        return [" ".join(c[:2]) for c in self.commands]


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


# ---------------------------------------------------------------------------
# Plugin and marketplace builders
# ---------------------------------------------------------------------------

MINIMAL_PLUGIN_SRC = """\
from todoctl.plugins import hookimpl


class Plugin:
    @hookimpl
    def on_load(self, ctx):
        ctx.storage.set("loaded", True)
"""


def write_plugin(
    path: Path,
    name: str,
    *,
    version: str = "1.0.0",
    source: str = MINIMAL_PLUGIN_SRC,
    requirements: str | None = None,
    **manifest: Any,
) -> Path:
    """Write a plugin directory with ``plugin.json`` and ``plugin.py``."""
    path.mkdir(parents=True, exist_ok=True)
    data = {"name": name, "version": version, **manifest}
    (path / "plugin.json").write_text(json.dumps(data), encoding="utf-8")
    (path / "plugin.py").write_text(source, encoding="utf-8")
    if requirements is not None:
        (path / "requirements.txt").write_text(requirements, encoding="utf-8")
    return path


def write_marketplace(path: Path, plugins: list[dict[str, Any]], **extra: Any) -> Path:
    """Write a local marketplace directory containing ``marketplace.json``."""
    path.mkdir(parents=True, exist_ok=True)
    data = {"name": path.name, **extra, "plugins": plugins}
    (path / "marketplace.json").write_text(json.dumps(data), encoding="utf-8")
    return path


def git(*args: str, cwd: Path) -> str:
    result = subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


def init_git_repo(path: Path) -> Path:
    """Turn *path* into a git repository with everything committed."""
    git("init", "-q", "-b", "main", cwd=path)
    git("config", "user.email", "test@example.com", cwd=path)
    git("config", "user.name", "Test", cwd=path)
    git("config", "commit.gpgsign", "false", cwd=path)
    git("add", "-A", cwd=path)
    git("commit", "-q", "-m", "initial", cwd=path)
    return path


def commit_all(path: Path, message: str) -> None:
    git("add", "-A", cwd=path)
    git("commit", "-q", "-m", message, cwd=path)


@pytest.fixture
def local_marketplace(tmp_path: Path, store: ConfigStore) -> Path:
    """A registered local marketplace ``acme`` with one plugin ``hello``."""
    root = tmp_path / "acme"
    write_plugin(root / "plugins" / "hello", "hello", version="1.0.0")
    write_marketplace(
        root,
        [
            {
                "name": "hello",
                "version": "1.0.0",
                "description": "Says hello",
                "source": "./plugins/hello",
            }
        ],
    )
    with store.edit() as config:
        config.marketplaces["acme"] = MarketplaceEntry(source=str(root))
    return root
