"""Source resolution: turn a catalog source descriptor into a plugin directory.

Supported descriptors:
- ``github:user/repo``: cloned from GitHub.
- ``./path`` or ``../path``: relative to the owning marketplace's root
  (its cache checkout, or its directory for a local marketplace).
- any other string: a local path, copied recursively.
- :class:`~todoctl.plugins.models.ExternalSource` of kind ``github``, ``git``
  (optionally a branch/tag, then a pinned revision) or ``pypi``.

A failed resolution leaves the target directory in an undefined state; the
caller is responsible for discarding it.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
import subprocess
import sys
import tempfile
from pathlib import Path

from todoctl.plugins.errors import PluginValidationError, SourceResolutionError
from todoctl.plugins.models import (
    DEPENDENCY_MANIFEST,
    PLUGIN_MANIFEST,
    ExternalSource,
    PluginManifest,
)
from todoctl.plugins.storage import STORAGE_DIRNAME

logger = logging.getLogger(__name__)

PLUGIN_NAME_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9_-]*")
DEPS_DIRNAME = ".deps"
GITHUB_PREFIX = "github:"

Source = str | ExternalSource


def validate_plugin_name(name: str) -> str:
    """Reject names that could escape the plugins directory or inject arguments."""
    if not PLUGIN_NAME_RE.fullmatch(name):
        msg = (
            f"Invalid plugin name {name!r}. Names must start with a letter or digit "
            "and contain only letters, digits, hyphens and underscores."
        )
        raise PluginValidationError(msg, code="INVALID_NAME", name=name)
    return name


def github_clone_url(source: str) -> str:
    """``github:user/repo`` -> ``https://github.com/user/repo.git``."""
    owner, _, repo = source.removeprefix(GITHUB_PREFIX).partition("/")
    repo = repo.strip("/")
    if not owner or not repo:
        msg = f"Invalid GitHub source {source!r}; expected github:user/repo"
        raise PluginValidationError(msg, code="INVALID_SOURCE", source=source)
    return f"https://github.com/{owner}/{repo.removesuffix('.git')}.git"


def is_vcs_source(source: Source) -> bool:
    if isinstance(source, ExternalSource):
        return source.is_vcs
    return source.startswith(GITHUB_PREFIX)


def import_name_for(package: str) -> str:
    """Import name for a requirement string: ``todoctl-pomodoro>=1`` -> ``todoctl_pomodoro``."""
    bare = re.split(r"[\s\[<>=!~;@]", package.strip(), maxsplit=1)[0]
    return bare.replace("-", "_").replace(".", "_").lower()


class ProcessRunner:
    """Run external commands, translating failures into :class:`SourceResolutionError`.

    ``timeout`` (seconds) bounds every command; ``None`` waits indefinitely.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout

    def run(self, *args: str, cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
        command = " ".join(args[:2])
        try:
            return subprocess.run(
                list(args),
                cwd=cwd,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            msg = f"`{command}` failed (exit {exc.returncode}): {stderr or 'no output'}"
            raise SourceResolutionError(msg, command=list(args), stderr=stderr) from exc
        except subprocess.TimeoutExpired as exc:
            msg = f"`{command}` timed out after {self.timeout}s"
            raise SourceResolutionError(msg, command=list(args)) from exc
        except OSError as exc:
            msg = f"Could not run `{args[0]}`: {exc}"
            raise SourceResolutionError(msg, command=list(args)) from exc


class SourceResolver:
    """Materialize plugin directories from source descriptors."""

    def __init__(
        self,
        runner: ProcessRunner,
        *,
        python: str = sys.executable,
    ) -> None:
        self._runner = runner
        self._python = python

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def materialize(
        self, source: Source, target_dir: Path, *, base_dir: Path | None = None
    ) -> list[str]:
        """Resolve *source* into *target_dir*, then install its dependencies.

        Returns dependency-install warnings. Resolution errors propagate.
        """
        self.resolve(source, target_dir, base_dir=base_dir)
        if isinstance(source, ExternalSource) and source.kind == "pypi":
            return []
        return self.install_dependencies(target_dir)

    def resolve(self, source: Source, target_dir: Path, *, base_dir: Path | None = None) -> None:
        """Materialize *source* into *target_dir*.

        *base_dir* is the owning marketplace's root, used for relative sources.
        """
        if isinstance(source, ExternalSource):
            self._resolve_external(source, target_dir)
        elif source.startswith(GITHUB_PREFIX):
            self._clone(github_clone_url(source), target_dir)
        elif source.startswith(("./", "../")):
            if base_dir is None:
                msg = f"Relative source {source!r} requires a marketplace checkout"
                raise SourceResolutionError(msg, source=source)
            self._copy(base_dir / source, target_dir)
        else:
            self._copy(Path(source).expanduser(), target_dir)
        logger.debug("Resolved %s into %s", source, target_dir)

    def sync(
        self, source: Source, target_dir: Path, *, base_dir: Path | None = None
    ) -> list[str]:
        """Bring an existing installation up to date with *source*.

        VCS checkouts are pulled in place. Anything else is resolved into a
        staging directory next to *target_dir* and swapped in only once that
        succeeded, so a failed update leaves the old installation untouched.
        The plugin's storage directory is carried over. Dependencies are
        reinstalled either way.
        """
        if is_vcs_source(source) and (target_dir / ".git").is_dir():
            pinned = source.pinned_revision if isinstance(source, ExternalSource) else None
            if pinned:
                self._runner.run("git", "-C", str(target_dir), "fetch", "--all", "--tags")
                self._runner.run("git", "-C", str(target_dir), "checkout", pinned)
            else:
                self._runner.run("git", "-C", str(target_dir), "pull")
            return self.install_dependencies(target_dir)

        target_dir.parent.mkdir(parents=True, exist_ok=True)
        staging_root = Path(tempfile.mkdtemp(prefix=f".{target_dir.name}.", dir=target_dir.parent))
        staging = staging_root / target_dir.name
        try:
            warnings = self.materialize(source, staging, base_dir=base_dir)
            _swap_in(staging, target_dir)
        finally:
            shutil.rmtree(staging_root, ignore_errors=True)
        return warnings

    def install_dependencies(self, target_dir: Path) -> list[str]:
        """Best-effort install of ``requirements.txt`` into ``.deps``.

        Tries ``uv`` first, then ``pip``. Never raises; returns warnings.
        """
        if not (target_dir / DEPENDENCY_MANIFEST).is_file():
            return []
        error = self._pip_install(target_dir, "-r", DEPENDENCY_MANIFEST)
        if error is None:
            return []
        msg = (
            f"Failed to install dependencies for plugin {target_dir.name!r}; "
            f"it may not work correctly ({error})"
        )
        logger.warning(msg)
        return [msg]

    # ------------------------------------------------------------------
    # Resolution strategies
    # ------------------------------------------------------------------

    def _resolve_external(self, source: ExternalSource, target_dir: Path) -> None:
        if source.kind == "github":
            if not source.repo:
                raise PluginValidationError(
                    "GitHub source requires a 'repo' field.", code="MISSING_FIELD", field="repo"
                )
            url = github_clone_url(f"{GITHUB_PREFIX}{source.repo}")
            self._clone(url, target_dir, ref=source.ref, revision=source.pinned_revision)
        elif source.kind == "git":
            if not source.url:
                raise PluginValidationError(
                    "Git source requires a 'url' field.", code="MISSING_FIELD", field="url"
                )
            self._clone(source.url, target_dir, ref=source.ref, revision=source.pinned_revision)
        else:
            if not source.package:
                raise PluginValidationError(
                    "PyPI source requires a 'package' field.",
                    code="MISSING_FIELD",
                    field="package",
                )
            self._init_package(source.package, target_dir)

    def _clone(
        self,
        url: str,
        target_dir: Path,
        *,
        ref: str | None = None,
        revision: str | None = None,
    ) -> None:
        args = ["git", "clone"]
        if ref:
            args += ["--branch", ref]
        self._runner.run(*args, "--", url, str(target_dir))
        if revision:
            self._runner.run("git", "-C", str(target_dir), "checkout", revision)

    @staticmethod
    def _copy(source_path: Path, target_dir: Path) -> None:
        if not source_path.is_dir():
            msg = f"Plugin source path not found: {source_path}"
            raise SourceResolutionError(msg, path=str(source_path))
        shutil.copytree(source_path, target_dir, dirs_exist_ok=True)

    def _init_package(self, package: str, target_dir: Path) -> None:
        target_dir.mkdir(parents=True, exist_ok=True)
        manifest = PluginManifest(
            name=target_dir.name, version="0.0.0", main=import_name_for(package)
        )
        (target_dir / PLUGIN_MANIFEST).write_text(
            json.dumps(manifest.model_dump(exclude_none=True), indent=2) + "\n", encoding="utf-8"
        )
        (target_dir / DEPENDENCY_MANIFEST).write_text(f"{package}\n", encoding="utf-8")
        error = self._pip_install(target_dir, package)
        if error is not None:
            msg = f"Could not install package {package!r}: {error}"
            raise SourceResolutionError(msg, package=package)

    def _pip_install(self, target_dir: Path, *requirements: str) -> str | None:
        """Install into ``<target_dir>/.deps``. Returns the last error, or None."""
        attempts = (
            ("uv", "pip", "install", "--python", self._python, "--target", DEPS_DIRNAME),
            (self._python, "-m", "pip", "install", "--target", DEPS_DIRNAME),
        )
        error: str | None = None
        for command in attempts:
            try:
                self._runner.run(*command, *requirements, cwd=target_dir)
            except SourceResolutionError as exc:
                logger.debug("Dependency install via %s failed: %s", command[0], exc)
                error = exc.message
                continue
            return None
        return error


def _swap_in(staging: Path, target_dir: Path) -> None:
    """Replace *target_dir* with *staging*, keeping the plugin's stored data."""
    data = target_dir / STORAGE_DIRNAME
    if data.is_dir():
        shutil.copytree(data, staging / STORAGE_DIRNAME, dirs_exist_ok=True)
    if not target_dir.exists():
        staging.rename(target_dir)
        return
    previous = staging.with_name(f"{staging.name}.previous")
    target_dir.rename(previous)
    try:
        staging.rename(target_dir)
    except OSError:
        previous.rename(target_dir)
        raise
