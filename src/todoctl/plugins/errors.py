"""Plugin subsystem exceptions.

Validation and not-found errors are raised before any mutation. Dependency
installation failures and hook handler failures never raise; they are
downgraded to warnings where they occur.
"""

from __future__ import annotations

from typing import Any


class PluginError(Exception):
    """Base class for plugin subsystem failures."""

    code = "PLUGIN_ERROR"

    def __init__(self, message: str, *, code: str | None = None, **detail: Any) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.detail: dict[str, Any] = detail

    @property
    def message(self) -> str:
        return str(self)


class PluginValidationError(PluginError):
    """Malformed input: bad plugin name, missing source field, reserved name."""

    code = "VALIDATION_ERROR"


class PluginNotFoundError(PluginError):
    """Unknown plugin or marketplace."""

    code = "NOT_FOUND"

    def __init__(
        self, message: str, *, alternatives: list[str] | None = None, **detail: Any
    ) -> None:
        self.alternatives = sorted(set(alternatives or []))
        if self.alternatives:
            message = f"{message} Available: {', '.join(self.alternatives)}"
        super().__init__(message, alternatives=self.alternatives, **detail)


class SourceResolutionError(PluginError):
    """Fetching or materializing a source failed (network, git, missing path)."""

    code = "SOURCE_ERROR"


class MarketplaceError(PluginError):
    """A marketplace manifest is missing or malformed."""

    code = "MARKETPLACE_ERROR"


class HookCancelledError(PluginError):
    """A ``before`` hook cancelled the action it guards."""

    code = "HOOK_CANCELLED"

    def __init__(self, event: str, reason: str | None = None) -> None:
        self.event = event
        self.reason = reason
        message = f"{event} cancelled by plugin"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, event=event, reason=reason)
