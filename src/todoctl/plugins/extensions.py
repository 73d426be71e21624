"""Extension points plugins populate: UI surfaces, palette commands, views.

Definitions are plain dataclasses holding callables; the interactive UI and
the CLI consume them through the registries below. Every registry is keyed
by one identifier per definition kind (column id, exact key string, view
name, palette label) and rejects duplicates with a warning.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from todoctl.plugins.hooks import HookEvent, HookHandler, HookRegistry
from todoctl.plugins.registry import Registry

if TYPE_CHECKING:
    from todoctl.api.types import Task
    from todoctl.plugins.context import PluginContext

ColumnPosition = Literal["after-priority", "after-due", "before-content"]
DetailPosition = Literal["after-comments", "after-subtasks", "after-labels"]


# ── Definitions ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class TaskColumn:
    id: str
    label: str
    width: int
    render: Callable[[Task, PluginContext], str]
    position: ColumnPosition = "after-priority"
    color: Callable[[Task], str] | None = None
    refresh_interval: float | None = None


@dataclass(frozen=True)
class DetailSection:
    id: str
    label: str
    render: Callable[[Task, PluginContext], Any]
    position: DetailPosition = "after-comments"


@dataclass(frozen=True)
class Keybinding:
    """A key handler. ``key`` is matched exactly; ``when`` is checked at dispatch."""

    key: str
    description: str
    action: Callable[[PluginContext, Task | None], Any]
    help_section: str = "Plugins"
    when: Callable[[Task | None], bool] | None = None


@dataclass(frozen=True)
class StatusBarItem:
    id: str
    render: Callable[[PluginContext], str]
    color: Callable[[PluginContext], str] | None = None
    refresh_interval: float | None = None


@dataclass(frozen=True)
class Modal:
    id: str
    title: str
    render: Callable[[PluginContext], Any]


@dataclass(frozen=True)
class SidebarSection:
    id: str
    label: str
    render: Callable[[PluginContext], Any]


@dataclass(frozen=True)
class PaletteCommand:
    label: str
    category: str
    action: Callable[..., Any]
    shortcut: str | None = None
    input_prompt: str | None = None


@dataclass(frozen=True)
class PluginView:
    name: str
    label: str
    render: Callable[..., Any]
    sidebar_section: str | None = None
    sidebar_icon: str | None = None
    shortcut: str | None = None


# ── Registries ────────────────────────────────────────────────────────


class ExtensionRegistry:
    """Columns, detail sections, keybindings, status-bar items, modals, sidebar sections."""

    def __init__(self) -> None:
        self.columns: Registry[TaskColumn] = Registry("Task column", lambda c: c.id)
        self.detail_sections: Registry[DetailSection] = Registry(
            "Detail section", lambda s: s.id
        )
        self.keybindings: Registry[Keybinding] = Registry("Keybinding", lambda k: k.key)
        self.status_bar_items: Registry[StatusBarItem] = Registry(
            "Status bar item", lambda s: s.id
        )
        self.modals: Registry[Modal] = Registry("Modal", lambda m: m.id)
        self.sidebar_sections: Registry[SidebarSection] = Registry(
            "Sidebar section", lambda s: s.id
        )

    def _all(self) -> tuple[Registry[Any], ...]:
        return (
            self.columns,
            self.detail_sections,
            self.keybindings,
            self.status_bar_items,
            self.modals,
            self.sidebar_sections,
        )

    def add_task_column(self, column: TaskColumn, *, owner: str | None = None) -> bool:
        return self.columns.add(column, owner=owner)

    def remove_task_column(self, column_id: str) -> bool:
        return self.columns.remove(column_id)

    def get_task_columns(self) -> list[TaskColumn]:
        return self.columns.get_all()

    def add_detail_section(self, section: DetailSection, *, owner: str | None = None) -> bool:
        return self.detail_sections.add(section, owner=owner)

    def remove_detail_section(self, section_id: str) -> bool:
        return self.detail_sections.remove(section_id)

    def get_detail_sections(self) -> list[DetailSection]:
        return self.detail_sections.get_all()

    def add_keybinding(self, binding: Keybinding, *, owner: str | None = None) -> bool:
        return self.keybindings.add(binding, owner=owner)

    def remove_keybinding(self, key: str) -> bool:
        return self.keybindings.remove(key)

    def get_keybindings(self) -> list[Keybinding]:
        return self.keybindings.get_all()

    def find_keybinding(self, key: str, task: Task | None = None) -> Keybinding | None:
        """Return the binding for *key* if its predicate accepts *task*."""
        binding = self.keybindings.get(key)
        if binding is None:
            return None
        if binding.when is not None and not binding.when(task):
            return None
        return binding

    def add_status_bar_item(self, item: StatusBarItem, *, owner: str | None = None) -> bool:
        return self.status_bar_items.add(item, owner=owner)

    def remove_status_bar_item(self, item_id: str) -> bool:
        return self.status_bar_items.remove(item_id)

    def get_status_bar_items(self) -> list[StatusBarItem]:
        return self.status_bar_items.get_all()

    def add_modal(self, modal: Modal, *, owner: str | None = None) -> bool:
        return self.modals.add(modal, owner=owner)

    def remove_modal(self, modal_id: str) -> bool:
        return self.modals.remove(modal_id)

    def get_modals(self) -> list[Modal]:
        return self.modals.get_all()

    def add_sidebar_section(self, section: SidebarSection, *, owner: str | None = None) -> bool:
        return self.sidebar_sections.add(section, owner=owner)

    def remove_sidebar_section(self, section_id: str) -> bool:
        return self.sidebar_sections.remove(section_id)

    def get_sidebar_sections(self) -> list[SidebarSection]:
        return self.sidebar_sections.get_all()

    def remove_all_for_plugin(self, owner: str) -> int:
        return sum(registry.remove_all_for_plugin(owner) for registry in self._all())


class ViewRegistry:
    def __init__(self) -> None:
        self.views: Registry[PluginView] = Registry("View", lambda v: v.name)

    def add_view(self, view: PluginView, *, owner: str | None = None) -> bool:
        return self.views.add(view, owner=owner)

    def remove_view(self, name: str) -> bool:
        return self.views.remove(name)

    def get_views(self) -> list[PluginView]:
        return self.views.get_all()

    def remove_all_for_plugin(self, owner: str) -> int:
        return self.views.remove_all_for_plugin(owner)


class PaletteRegistry:
    def __init__(self) -> None:
        self.commands: Registry[PaletteCommand] = Registry("Palette command", lambda c: c.label)

    def add_commands(
        self, commands: Iterable[PaletteCommand], *, owner: str | None = None
    ) -> int:
        """Register *commands*; returns how many were accepted."""
        return sum(self.commands.add(command, owner=owner) for command in commands)

    def remove_commands(self, labels: Iterable[str]) -> int:
        return sum(self.commands.remove(label) for label in labels)

    def get_commands(self) -> list[PaletteCommand]:
        return self.commands.get_all()

    def remove_all_for_plugin(self, owner: str) -> int:
        return self.commands.remove_all_for_plugin(owner)


class Registries:
    """Every extension point the host exposes, created once per process."""

    def __init__(self) -> None:
        self.hooks = HookRegistry()
        self.extensions = ExtensionRegistry()
        self.views = ViewRegistry()
        self.palette = PaletteRegistry()

    def owner_of(self, kind: str, ident: str) -> str | None:
        """Which plugin registered *ident* in the registry named *kind*.

        *kind* is one of ``column``, ``detail_section``, ``keybinding``,
        ``status_bar_item``, ``modal``, ``sidebar_section``, ``view``,
        ``palette_command``.
        """
        registry = self._by_kind().get(kind)
        if registry is None:
            msg = f"Unknown extension kind: {kind!r}"
            raise KeyError(msg)
        return registry.owner_of(ident)

    def _by_kind(self) -> dict[str, Registry[Any]]:
        ext = self.extensions
        return {
            "column": ext.columns,
            "detail_section": ext.detail_sections,
            "keybinding": ext.keybindings,
            "status_bar_item": ext.status_bar_items,
            "modal": ext.modals,
            "sidebar_section": ext.sidebar_sections,
            "view": self.views.views,
            "palette_command": self.palette.commands,
        }

    def remove_all_for_plugin(self, owner: str) -> int:
        """Drop everything *owner* registered, hooks included."""
        return (
            self.hooks.remove_all_for_plugin(owner)
            + self.extensions.remove_all_for_plugin(owner)
            + self.views.remove_all_for_plugin(owner)
            + self.palette.remove_all_for_plugin(owner)
        )


class PluginRegistries:
    """What a plugin's ``register`` entry point receives.

    Every registration made through this facade is recorded against the
    plugin's name so it can be removed in bulk on failure or unload.
    """

    def __init__(self, owner: str, registries: Registries) -> None:
        self.owner = owner
        self._registries = registries

    def on(self, event: HookEvent | str, handler: HookHandler) -> None:
        self._registries.hooks.on(event, handler, owner=self.owner)

    def off(self, event: HookEvent | str, handler: HookHandler) -> None:
        self._registries.hooks.off(event, handler)

    def add_task_column(self, column: TaskColumn) -> bool:
        return self._registries.extensions.add_task_column(column, owner=self.owner)

    def add_detail_section(self, section: DetailSection) -> bool:
        return self._registries.extensions.add_detail_section(section, owner=self.owner)

    def add_keybinding(self, binding: Keybinding) -> bool:
        return self._registries.extensions.add_keybinding(binding, owner=self.owner)

    def add_status_bar_item(self, item: StatusBarItem) -> bool:
        return self._registries.extensions.add_status_bar_item(item, owner=self.owner)

    def add_modal(self, modal: Modal) -> bool:
        return self._registries.extensions.add_modal(modal, owner=self.owner)

    def add_sidebar_section(self, section: SidebarSection) -> bool:
        return self._registries.extensions.add_sidebar_section(section, owner=self.owner)

    def add_view(self, view: PluginView) -> bool:
        return self._registries.views.add_view(view, owner=self.owner)

    def add_palette_commands(self, commands: Iterable[PaletteCommand]) -> int:
        return self._registries.palette.add_commands(commands, owner=self.owner)
