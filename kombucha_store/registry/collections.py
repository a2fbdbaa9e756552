"""Registry of record collections.

Collections are configuration loaded at startup from `collections.yaml`. Each
entry pins a collection name to its schema kind and to the shape its audit
fields take. The shape is declared here once and never inferred from caller
data.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from kombucha_store.config.settings import load_yaml_mapping
from kombucha_store.errors import ConfigurationError
from kombucha_store.registry.schema_validator import SchemaValidator

BUNDLED_COLLECTIONS_PATH = Path(__file__).resolve().parent.parent / "config" / "collections.yaml"


class RecordShape(enum.Enum):
    FLAT = "flat"
    NESTED_METADATA = "nested_metadata"


@dataclass(frozen=True)
class CollectionSpec:
    name: str
    kind: str
    shape: RecordShape


class CollectionRegistry:
    def __init__(self, collections: dict[str, CollectionSpec]):
        self._collections = dict(collections)

    @classmethod
    def load(cls, path: Path = BUNDLED_COLLECTIONS_PATH, *, schema_validator: SchemaValidator | None = None) -> "CollectionRegistry":
        raw = load_yaml_mapping(path)
        entries = raw.get("collections")
        if not isinstance(entries, list):
            raise ConfigurationError(f"Invalid collections file (expected a `collections` list): {path}")

        collections: dict[str, CollectionSpec] = {}
        for entry in entries:
            if not isinstance(entry, dict):
                raise ConfigurationError(f"Invalid collection entry in {path} (expected object)")
            name = str(entry.get("name", ""))
            kind = str(entry.get("kind", ""))
            if not name or not kind:
                raise ConfigurationError(f"Collection entries require name and kind: {entry!r} ({path})")
            if "/" in name:
                raise ConfigurationError(f"Collection name must be a single path segment: {name}")
            try:
                shape = RecordShape(str(entry.get("shape", RecordShape.FLAT.value)))
            except ValueError as e:
                raise ConfigurationError(f"Unknown shape for collection {name}: {entry.get('shape')}") from e
            if schema_validator is not None and not schema_validator.has_kind(kind):
                raise ConfigurationError(f"Collection {name} references unknown schema kind: {kind}")
            if name in collections:
                raise ConfigurationError(f"Duplicate collection name: {name} ({path})")
            collections[name] = CollectionSpec(name=name, kind=kind, shape=shape)

        return cls(collections)

    def get(self, name: str) -> CollectionSpec:
        if name not in self._collections:
            raise ConfigurationError(f"Unknown collection: {name}")
        return self._collections[name]

    def __iter__(self) -> Iterator[CollectionSpec]:
        return iter(self._collections.values())
