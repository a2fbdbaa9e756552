"""In-memory tree store driver.

Holds the whole tree as nested dicts. Values are deep-copied on the way in and
out so callers can never mutate stored state. Used for tests and seed runs.
"""

from __future__ import annotations

from typing import Any, Mapping

from kombucha_store.storage.interfaces import TreeStore
from kombucha_store.storage.paths import get_in, set_in, split_path


class MemoryTreeStore(TreeStore):
    def __init__(self, initial: Mapping[str, Any] | None = None):
        self._root: dict[str, Any] = set_in(None, [], dict(initial or {})) or {}

    async def get(self, path: str) -> Any | None:
        return get_in(self._root, split_path(path))

    async def set(self, path: str, value: Any) -> None:
        self._root = set_in(self._root, split_path(path), value) or {}

    async def update(self, path: str, values: Mapping[str, Any]) -> None:
        base = split_path(path)
        root = self._root
        for key, value in values.items():
            root = set_in(root, base + split_path(key), value) or {}
        self._root = root

    async def delete(self, path: str) -> None:
        await self.set(path, None)

    def snapshot(self) -> dict[str, Any]:
        """Return a deep copy of the full tree."""
        return get_in(self._root, []) or {}
