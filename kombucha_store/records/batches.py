"""Batch records plus their stage and measurement sub-trees.

Stages and measurements live outside the batch record, at
`stages/<batchId>/<id>` and `measurements/<batchId>/<id>`. They carry no owner
of their own; every access is gated on the caller owning the parent batch.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from kombucha_store.errors import NotFoundError
from kombucha_store.records.stages import StageChange, apply_stage_change
from kombucha_store.records.store import Record, RecordStore
from kombucha_store.storage.paths import join_path, validate_key
from kombucha_store.utils import prune_nulls

logger = logging.getLogger(__name__)

STAGES_ROOT = "stages"
MEASUREMENTS_ROOT = "measurements"


class BatchRepository(RecordStore):
    def _child_path(self, root: str, batch_id: str, child_id: str | None = None) -> str:
        if child_id is None:
            return join_path(root, validate_key(batch_id))
        return join_path(root, validate_key(batch_id), validate_key(child_id))

    async def _list_children(self, root: str, kind: str, batch_id: str) -> list[Record]:
        raw = await self._tree.get(self._child_path(root, batch_id))
        if not isinstance(raw, Mapping):
            return []

        items: list[Record] = []
        for child_id, child in raw.items():
            violations = self._schemas.violations(kind, child)
            if violations:
                logger.warning(
                    "record_validation_failed",
                    extra={"event": "record_validation_failed", "collection": f"{root}/{batch_id}", "record_id": child_id},
                )
                continue
            items.append(child)
        return items

    async def add_stage(self, batch_id: str, stage: Mapping[str, Any], owner_id: str) -> Record:
        await self.require(batch_id, owner_id)
        stage_id = self._new_id()
        record = prune_nulls({**stage, "id": stage_id})
        self._schemas.validate("Stage", record)
        await self._tree.set(self._child_path(STAGES_ROOT, batch_id, stage_id), record)
        return record

    async def get_stages(self, batch_id: str, owner_id: str) -> list[Record]:
        await self.require(batch_id, owner_id)
        return await self._list_children(STAGES_ROOT, "Stage", batch_id)

    async def update_stage(self, batch_id: str, stage_id: str, updates: Mapping[str, Any], owner_id: str) -> Record:
        await self.require(batch_id, owner_id)
        path = self._child_path(STAGES_ROOT, batch_id, stage_id)
        current = await self._tree.get(path)
        if current is None:
            raise NotFoundError("Stage", stage_id)

        record = prune_nulls({**current, **updates, "id": stage_id, "updatedAt": self._clock()})
        self._schemas.validate("Stage", record)
        await self._tree.set(path, record)
        return record

    async def add_measurement(
        self,
        batch_id: str,
        measurement_type: str,
        value: float,
        owner_id: str,
        *,
        notes: str | None = None,
    ) -> Record:
        await self.require(batch_id, owner_id)
        measurement_id = self._new_id()
        record = prune_nulls(
            {
                "id": measurement_id,
                "type": measurement_type,
                "value": value,
                "timestamp": self._clock(),
                "notes": notes,
            }
        )
        self._schemas.validate("Measurement", record)
        await self._tree.set(self._child_path(MEASUREMENTS_ROOT, batch_id, measurement_id), record)
        return record

    async def get_measurements(self, batch_id: str, owner_id: str) -> list[Record]:
        await self.require(batch_id, owner_id)
        return await self._list_children(MEASUREMENTS_ROOT, "Measurement", batch_id)

    async def change_stage(
        self,
        batch_id: str,
        new_stage: str,
        owner_id: str,
        *,
        equipment_id: str | None = None,
        notes: str | None = None,
    ) -> Record:
        batch = await self.require(batch_id, owner_id)
        updates = apply_stage_change(batch, StageChange(new_stage=new_stage, now=self._clock(), equipment_id=equipment_id, notes=notes))
        if not updates:
            return batch
        await self.update(batch_id, {**updates, "lastModifiedBy": owner_id}, owner_id)
        return await self.require(batch_id, owner_id)

    async def delete(self, record_id: str, owner_id: str) -> None:
        await super().delete(record_id, owner_id)
        await self._tree.delete(self._child_path(STAGES_ROOT, record_id))
        await self._tree.delete(self._child_path(MEASUREMENTS_ROOT, record_id))

    async def clear_all(self) -> None:
        await super().clear_all()
        await self._tree.delete(STAGES_ROOT)
        await self._tree.delete(MEASUREMENTS_ROOT)
