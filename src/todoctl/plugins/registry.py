"""Generic first-registration-wins registry used by every extension point."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Registry(Generic[T]):
    """Ordered collection keyed by a caller-chosen identifier.

    INVARIANT: No two items share an identifier. The first registration
    wins; later duplicates are logged and ignored. There is no override.
    """

    def __init__(self, kind: str, key: Callable[[T], str]) -> None:
        self._kind = kind
        self._key = key
        self._items: list[T] = []
        self._owners: dict[str, str | None] = {}

    @property
    def kind(self) -> str:
        return self._kind

    def add(self, item: T, *, owner: str | None = None) -> bool:
        """Register *item*. Returns False (and warns) on a duplicate identifier."""
        ident = self._key(item)
        if ident in self._owners:
            holder = self._owners[ident] or "host"
            logger.warning(
                "%s %r already registered by %s, skipping (from %s)",
                self._kind,
                ident,
                holder,
                owner or "host",
            )
            return False
        self._items.append(item)
        self._owners[ident] = owner
        return True

    def remove(self, ident: str) -> bool:
        if ident not in self._owners:
            return False
        self._items = [item for item in self._items if self._key(item) != ident]
        del self._owners[ident]
        return True

    def remove_all_for_plugin(self, owner: str) -> int:
        idents = [ident for ident, holder in self._owners.items() if holder == owner]
        for ident in idents:
            self.remove(ident)
        return len(idents)

    def get(self, ident: str) -> T | None:
        for item in self._items:
            if self._key(item) == ident:
                return item
        return None

    def get_all(self) -> list[T]:
        """Registered items in registration order (a copy)."""
        return list(self._items)

    def owner_of(self, ident: str) -> str | None:
        return self._owners.get(ident)

    def __contains__(self, ident: object) -> bool:
        return ident in self._owners

    def __len__(self) -> int:
        return len(self._items)
