"""Driver-agnostic tree store interface.

Records live in a hierarchical key-value tree addressed by `/`-separated
paths (`batches/<id>`, `stages/<batchId>/<stageId>`). The record store only
relies on the primitives below; concrete drivers live in `storage/`.

Drivers never persist None values: writing None deletes the node.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping


class TreeStore(ABC):
    @abstractmethod
    async def get(self, path: str) -> Any | None:
        """Read the value at path. Returns None when nothing is stored there."""

    @abstractmethod
    async def set(self, path: str, value: Any) -> None:
        """Replace the value at path. None deletes it."""

    @abstractmethod
    async def update(self, path: str, values: Mapping[str, Any]) -> None:
        """Replace individual children of path. A None child value deletes that child.

        Keys may be relative multi-segment paths (`status/current`).
        """

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Remove the value at path and everything beneath it."""

    async def exists(self, path: str) -> bool:
        return await self.get(path) is not None

    async def close(self) -> None:
        """Release driver resources. Default: nothing to release."""
