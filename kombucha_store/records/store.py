"""Schema-validated, owner-scoped record store over one collection.

Records live at `{collection}/{id}` in a tree store. Each record carries the
audit fields `createdBy`, `createdAt` and `updatedAt`, either at the top level
or inside a nested `metadata` object depending on the collection's declared
shape.

Ownership contract: a caller only ever sees, updates or deletes records whose
`createdBy` matches its identity. A record owned by someone else is reported
exactly like a missing one (None from `get`, NotFoundError from `update` and
`delete`) so callers cannot discover other users' records.

Concurrency: `update` is read-merge-write with no version check. Two
concurrent updates of the same record race and the last write wins.
"""

from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from kombucha_store.errors import ConflictError, ContractViolationError, NotFoundError, SchemaValidationError
from kombucha_store.registry.collections import CollectionSpec, RecordShape
from kombucha_store.registry.schema_validator import SchemaValidator
from kombucha_store.storage.interfaces import TreeStore
from kombucha_store.storage.paths import join_path, validate_key
from kombucha_store.utils import PushIdGenerator, now_millis, prune_nulls

logger = logging.getLogger(__name__)

AUDIT_FIELDS = ("createdBy", "createdAt", "updatedAt")

Record = dict[str, Any]


@dataclass(frozen=True)
class ValidationResult:
    record: Record | None = None
    error: SchemaValidationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RecordStore:
    def __init__(
        self,
        tree: TreeStore,
        collection: CollectionSpec,
        schema_validator: SchemaValidator,
        *,
        clock: Callable[[], int] = now_millis,
        id_factory: Callable[[], str] | None = None,
    ):
        self._tree = tree
        self._collection = collection
        self._schemas = schema_validator
        self._clock = clock
        self._new_id = id_factory or PushIdGenerator(clock)

    @property
    def collection(self) -> CollectionSpec:
        return self._collection

    @property
    def name(self) -> str:
        return self._collection.name

    @property
    def nested(self) -> bool:
        return self._collection.shape is RecordShape.NESTED_METADATA

    def _path(self, record_id: str | None = None) -> str:
        if record_id is None:
            return self.name
        return join_path(self.name, validate_key(record_id))

    def _audit(self, record: Mapping[str, Any]) -> Mapping[str, Any]:
        if self.nested:
            meta = record.get("metadata")
            return meta if isinstance(meta, Mapping) else {}
        return record

    def owner_of(self, record: Mapping[str, Any]) -> str | None:
        owner = self._audit(record).get("createdBy")
        return owner if isinstance(owner, str) else None

    def validate(self, data: Any) -> ValidationResult:
        """Check data against the collection schema without touching the store."""
        try:
            self._schemas.validate(self._collection.kind, data)
        except SchemaValidationError as e:
            return ValidationResult(error=e)
        return ValidationResult(record=data)

    def _parse_stored(self, record_id: str, raw: Any) -> Record | None:
        result = self.validate(raw)
        if not result.ok:
            logger.warning(
                "record_validation_failed",
                extra={"event": "record_validation_failed", "collection": self.name, "record_id": record_id},
            )
            return None
        return result.record

    def _stamp_new(self, data: Mapping[str, Any], record_id: str, owner_id: str, now: int) -> Record:
        record = {k: deepcopy(v) for k, v in data.items() if k not in AUDIT_FIELDS and k != "id"}
        record["id"] = record_id
        stamp = {"createdBy": owner_id, "createdAt": now, "updatedAt": now}
        if self.nested:
            meta = data.get("metadata")
            record["metadata"] = {**(deepcopy(meta) if isinstance(meta, Mapping) else {}), **stamp}
        else:
            record.update(stamp)
        return prune_nulls(record)

    async def create(self, data: Mapping[str, Any], owner_id: str, *, record_id: str | None = None) -> Record:
        _require_owner(owner_id)
        if record_id is None:
            record_id = self._new_id()
        elif await self._tree.exists(self._path(record_id)):
            raise ConflictError(f"{self.name} record already exists: {record_id}")

        record = self._stamp_new(data, record_id, owner_id, self._clock())
        self._schemas.validate(self._collection.kind, record)

        await self._tree.set(self._path(record_id), record)
        logger.info(
            "record_created",
            extra={"event": "record_created", "collection": self.name, "record_id": record_id, "owner_id": owner_id},
        )
        return record

    async def get(self, record_id: str, owner_id: str) -> Record | None:
        raw = await self._tree.get(self._path(record_id))
        if raw is None:
            return None

        record = self._parse_stored(record_id, raw)
        if record is None:
            return None

        if self.owner_of(record) != owner_id:
            logger.debug(
                "record_access_denied",
                extra={"event": "record_access_denied", "collection": self.name, "record_id": record_id, "owner_id": owner_id},
            )
            return None
        return record

    async def get_all(self, owner_id: str) -> list[Record]:
        raw = await self._tree.get(self._path())
        if not isinstance(raw, Mapping):
            return []

        records: list[Record] = []
        for record_id, child in raw.items():
            record = self._parse_stored(record_id, child)
            if record is not None and self.owner_of(record) == owner_id:
                records.append(record)
        return records

    async def require(self, record_id: str, owner_id: str) -> Record:
        """Like `get`, but raise NotFoundError instead of returning None."""
        record = await self.get(record_id, owner_id)
        if record is None:
            raise NotFoundError(self._collection.kind, record_id)
        return record

    def _merge(self, current: Record, partial: Mapping[str, Any], now: int) -> tuple[Record, list[str]]:
        merged = deepcopy(current)
        removed: list[str] = []

        for key, value in partial.items():
            if key == "id" or (self.nested and key == "metadata" and isinstance(value, Mapping)):
                continue
            if value is None:
                if key in merged:
                    removed.append(key)
                merged.pop(key, None)
            else:
                merged[key] = deepcopy(value)

        current_audit = self._audit(current)
        supplied = partial.get("metadata") if self.nested else partial
        supplied = supplied if isinstance(supplied, Mapping) else {}

        supplied_owner = supplied.get("createdBy")
        if supplied_owner is not None and supplied_owner != current_audit.get("createdBy"):
            raise ContractViolationError(f"{self.name} record owner cannot change", code="OWNER_IMMUTABLE")

        if self.nested:
            meta = dict(current_audit)
            for key, value in supplied.items():
                if value is None:
                    meta.pop(key, None)
                else:
                    meta[key] = deepcopy(value)
            merged["metadata"] = meta
            for key in AUDIT_FIELDS:
                if key in merged:
                    removed.append(key)
                merged.pop(key, None)
            target = meta
        else:
            target = merged

        target["updatedAt"] = now
        target["createdBy"] = current_audit.get("createdBy")
        if not supplied.get("createdAt"):
            target["createdAt"] = current_audit.get("createdAt")

        return merged, removed

    async def update(self, record_id: str, partial: Mapping[str, Any], owner_id: str) -> None:
        current = await self.require(record_id, owner_id)

        merged, removed = self._merge(current, partial, self._clock())
        self._schemas.validate(self._collection.kind, merged)

        changes: dict[str, Any] = dict(merged)
        for key in removed:
            if key not in merged:
                changes[key] = None
        await self._tree.update(self._path(record_id), changes)
        logger.info(
            "record_updated",
            extra={"event": "record_updated", "collection": self.name, "record_id": record_id, "owner_id": owner_id},
        )

    async def delete(self, record_id: str, owner_id: str) -> None:
        await self.require(record_id, owner_id)
        await self._tree.delete(self._path(record_id))
        logger.info(
            "record_deleted",
            extra={"event": "record_deleted", "collection": self.name, "record_id": record_id, "owner_id": owner_id},
        )

    async def clear_all(self) -> None:
        """Wipe the whole collection without ownership checks. Test and seed data only."""
        logger.warning("collection_cleared", extra={"event": "collection_cleared", "collection": self.name})
        await self._tree.delete(self._path())


def _require_owner(owner_id: str) -> None:
    if not isinstance(owner_id, str) or not owner_id.strip():
        raise ContractViolationError("owner_id must be a non-empty string", code="INVALID_OWNER")
