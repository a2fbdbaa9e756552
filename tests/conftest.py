from __future__ import annotations

import asyncio
from typing import Any, Mapping

import pytest

from kombucha_store.context import Repositories, SessionContext, build_repositories
from kombucha_store.registry.collections import CollectionRegistry
from kombucha_store.registry.schema_validator import SchemaValidator
from kombucha_store.storage.memory import MemoryTreeStore

# 2024-03-15T12:00:00Z
START_MS = 1_710_504_000_000


class FakeClock:
    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 1000) -> int:
        self.now += ms
        return self.now


class SpyTree(MemoryTreeStore):
    """Memory tree that records every write call."""

    def __init__(self, initial: Mapping[str, Any] | None = None):
        super().__init__(initial)
        self.writes: list[tuple[str, str]] = []

    async def set(self, path: str, value: Any) -> None:
        self.writes.append(("set", path))
        await super().set(path, value)

    async def update(self, path: str, values: Mapping[str, Any]) -> None:
        self.writes.append(("update", path))
        await super().update(path, values)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture(scope="session")
def schema_validator() -> SchemaValidator:
    return SchemaValidator.load_from_dir()


@pytest.fixture(scope="session")
def collections(schema_validator) -> CollectionRegistry:
    return CollectionRegistry.load(schema_validator=schema_validator)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tree() -> SpyTree:
    return SpyTree()


@pytest.fixture
def repos(tree, schema_validator, collections, clock) -> Repositories:
    return build_repositories(tree, schema_validator, collections, clock=clock)


@pytest.fixture
def alice(repos, clock) -> SessionContext:
    return SessionContext(owner_id="alice", repositories=repos, clock=clock)


@pytest.fixture
def bob(repos, clock) -> SessionContext:
    return SessionContext(owner_id="bob", repositories=repos, clock=clock)


def batch_data(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {"name": "LimeAid", "stage": "1F", "volume": 5}
    data.update(overrides)
    return data


def equipment_data(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "metadata": {"name": "Fermenter A", "type": "FERMENTER", "capacity": 5},
        "status": {"current": "AVAILABLE", "lastUpdated": START_MS},
        "maintenance": {},
    }
    data.update(overrides)
    return data
