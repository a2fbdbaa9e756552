"""Component wiring and per-caller session context."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from kombucha_store.config.logging import configure_logging
from kombucha_store.config.settings import StoreConfig, load_store_config, resolve_config_paths
from kombucha_store.errors import ContractViolationError
from kombucha_store.records.audit import AuditRepository
from kombucha_store.records.batches import BatchRepository
from kombucha_store.records.equipment import ContainerRepository, EquipmentRepository
from kombucha_store.records.quality import QualityRepository
from kombucha_store.records.users import UserRepository
from kombucha_store.registry.collections import CollectionRegistry
from kombucha_store.registry.schema_validator import SchemaValidator
from kombucha_store.storage.interfaces import TreeStore
from kombucha_store.storage.memory import MemoryTreeStore
from kombucha_store.storage.sqlite import SQLiteTreeStore
from kombucha_store.utils import PushIdGenerator, now_millis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Repositories:
    batches: BatchRepository
    equipment: EquipmentRepository
    containers: ContainerRepository
    users: UserRepository
    audit: AuditRepository
    quality: QualityRepository

    def all(self) -> tuple:
        return (self.batches, self.equipment, self.containers, self.users, self.audit, self.quality)


def build_repositories(
    tree: TreeStore,
    schema_validator: SchemaValidator,
    collections: CollectionRegistry,
    *,
    clock: Callable[[], int] = now_millis,
) -> Repositories:
    # One id generator for every collection keeps push ids monotonic store-wide.
    new_id = PushIdGenerator(clock)

    def repo(cls, name: str):
        return cls(tree, collections.get(name), schema_validator, clock=clock, id_factory=new_id)

    return Repositories(
        batches=repo(BatchRepository, "batches"),
        equipment=repo(EquipmentRepository, "equipment"),
        containers=repo(ContainerRepository, "containers"),
        users=repo(UserRepository, "users"),
        audit=repo(AuditRepository, "audit"),
        quality=repo(QualityRepository, "qualityChecks"),
    )


@dataclass(frozen=True)
class StoreComponents:
    config: StoreConfig
    tree: TreeStore
    schema_validator: SchemaValidator
    collections: CollectionRegistry
    repositories: Repositories
    clock: Callable[[], int]

    def session(self, owner_id: str) -> "SessionContext":
        return SessionContext(owner_id=owner_id, repositories=self.repositories, clock=self.clock)


def open_tree_store(config: StoreConfig) -> TreeStore:
    if config.storage.driver == "memory":
        return MemoryTreeStore()
    return SQLiteTreeStore(config.storage.sqlite_path)


def build_components(
    config_path: Path | None = None,
    *,
    logging_config_path: Path | None = None,
    tree: TreeStore | None = None,
    clock: Callable[[], int] = now_millis,
) -> StoreComponents:
    """Load configuration and wire the store.

    Paths default to the environment overrides, then to the bundled config.
    Passing `tree` skips opening the configured driver.
    """
    default_store, default_logging = resolve_config_paths()
    config = load_store_config(config_path or default_store)

    configure_logging(logging_config_path or default_logging)

    schema_validator = SchemaValidator.load_from_dir(config.registry.schemas_dir, strict_formats=config.validation.strict_formats)
    collections = CollectionRegistry.load(config.registry.collections_path, schema_validator=schema_validator)

    if tree is None:
        tree = open_tree_store(config)

    logger.info("store_ready", extra={"event": "store_ready"})
    return StoreComponents(
        config=config,
        tree=tree,
        schema_validator=schema_validator,
        collections=collections,
        repositories=build_repositories(tree, schema_validator, collections, clock=clock),
        clock=clock,
    )


@dataclass(frozen=True)
class SessionContext:
    """The authenticated caller plus the repositories it acts through."""

    owner_id: str
    repositories: Repositories
    clock: Callable[[], int] = now_millis

    def __post_init__(self) -> None:
        if not isinstance(self.owner_id, str) or not self.owner_id.strip():
            raise ContractViolationError("owner_id must be a non-empty string", code="INVALID_OWNER")
