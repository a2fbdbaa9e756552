"""Batch lifecycle for one caller: codes, lineage, stage changes and audit."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from kombucha_store.context import SessionContext
from kombucha_store.records.batch_codes import BATCH_TYPE_TO_CODE_TYPE, create_batch_code, next_batch_number
from kombucha_store.records.stages import open_stage_entry
from kombucha_store.records.store import Record
from kombucha_store.utils import millis_to_datetime

logger = logging.getLogger(__name__)

# The stage a new batch starts in, by batch type.
INITIAL_STAGE: dict[str, str] = {"1F": "1F", "2F": "2F", "KEG": "KEGGED", "BOTTLE": "BOTTLED"}


class BatchService:
    def __init__(self, ctx: SessionContext):
        self._ctx = ctx
        self._batches = ctx.repositories.batches
        self._audit = ctx.repositories.audit

    @property
    def owner_id(self) -> str:
        return self._ctx.owner_id

    async def _existing_codes(self) -> list[str]:
        return [b["batchCode"]["code"] for b in await self._batches.get_all(self.owner_id) if "batchCode" in b]

    def _new_batch(
        self,
        name: str,
        volume: float,
        batch_type: str,
        batch_date: int,
        batch_number: int,
        batch_code: dict[str, Any],
        details: Mapping[str, Any],
    ) -> dict[str, Any]:
        now = self._ctx.clock()
        stage = INITIAL_STAGE[batch_type]
        equipment_id = details.get("currentEquipmentId")
        return {
            **details,
            "name": name,
            "volume": volume,
            "batchType": batch_type,
            "batchDate": batch_date,
            "batchNumber": batch_number,
            "batchCode": batch_code,
            "stage": stage,
            "stageHistory": [open_stage_entry(stage, now, equipment_id=equipment_id)],
            "childBatchIds": [],
            "lastModifiedBy": self.owner_id,
        }

    async def create_batch(
        self,
        name: str,
        volume: float,
        *,
        batch_type: str = "1F",
        batch_date: int | None = None,
        **details: Any,
    ) -> Record:
        """Create a root batch with the next free batch code for its brew date.

        `details` holds optional batch fields in their stored spelling
        (`teaType`, `sugarAmount`, `currentEquipmentId`, ...).
        """
        batch_date = batch_date if batch_date is not None else self._ctx.clock()
        day = millis_to_datetime(batch_date).date()
        number = next_batch_number(await self._existing_codes(), day)
        code = create_batch_code(day, number, BATCH_TYPE_TO_CODE_TYPE[batch_type])

        batch = await self._batches.create(
            self._new_batch(name, volume, batch_type, batch_date, number, code, details),
            self.owner_id,
        )
        await self._audit.log_event(
            self.owner_id,
            "BATCH_CREATE",
            entity_type="batch",
            entity_id=batch["id"],
            changes={"batchCode": code["code"]},
        )
        return batch

    async def create_child_batch(
        self,
        parent_id: str,
        name: str,
        volume: float,
        *,
        batch_type: str = "2F",
        batch_date: int | None = None,
        **details: Any,
    ) -> Record:
        """Split a child batch off a parent, extending the parent's lineage."""
        parent = await self._batches.require(parent_id, self.owner_id)

        batch_date = batch_date if batch_date is not None else self._ctx.clock()
        day = millis_to_datetime(batch_date).date()
        number = next_batch_number(await self._existing_codes(), day)
        code = create_batch_code(day, number, BATCH_TYPE_TO_CODE_TYPE[batch_type], parent=parent.get("batchCode"))

        child = await self._batches.create(
            {**self._new_batch(name, volume, batch_type, batch_date, number, code, details), "parentBatchId": parent_id},
            self.owner_id,
        )

        parent_updates: dict[str, Any] = {
            "childBatchIds": list(parent.get("childBatchIds") or []) + [child["id"]],
            "lastModifiedBy": self.owner_id,
        }
        if "batchCode" in parent:
            parent_code = dict(parent["batchCode"])
            parent_code["childCodes"] = list(parent_code.get("childCodes") or []) + [code["code"]]
            parent_updates["batchCode"] = parent_code
        await self._batches.update(parent_id, parent_updates, self.owner_id)

        await self._audit.log_event(
            self.owner_id,
            "BATCH_CREATE",
            entity_type="batch",
            entity_id=child["id"],
            changes={"batchCode": code["code"], "parentBatchId": parent_id},
        )
        return child

    async def get_batch(self, batch_id: str) -> Record | None:
        return await self._batches.get(batch_id, self.owner_id)

    async def list_batches(self) -> list[Record]:
        """The caller's batches, newest first."""
        return sorted(await self._batches.get_all(self.owner_id), key=lambda b: b["createdAt"], reverse=True)

    async def update_batch(self, batch_id: str, updates: Mapping[str, Any]) -> Record:
        await self._batches.update(batch_id, {**updates, "lastModifiedBy": self.owner_id}, self.owner_id)
        await self._audit.log_event(
            self.owner_id,
            "BATCH_UPDATE",
            entity_type="batch",
            entity_id=batch_id,
            changes=dict(updates),
        )
        return await self._batches.require(batch_id, self.owner_id)

    async def change_stage(
        self,
        batch_id: str,
        new_stage: str,
        *,
        equipment_id: str | None = None,
        notes: str | None = None,
    ) -> Record:
        before = await self._batches.require(batch_id, self.owner_id)
        batch = await self._batches.change_stage(batch_id, new_stage, self.owner_id, equipment_id=equipment_id, notes=notes)
        if before["stage"] != batch["stage"]:
            await self._audit.log_event(
                self.owner_id,
                "BATCH_UPDATE",
                entity_type="batch",
                entity_id=batch_id,
                changes={"stage": {"from": before["stage"], "to": batch["stage"]}},
                notes=notes,
            )
        return batch

    async def add_measurement(self, batch_id: str, measurement_type: str, value: float, *, notes: str | None = None) -> Record:
        return await self._batches.add_measurement(batch_id, measurement_type, value, self.owner_id, notes=notes)

    async def delete_batch(self, batch_id: str) -> None:
        batch = await self._batches.require(batch_id, self.owner_id)
        await self._batches.delete(batch_id, self.owner_id)
        code = (batch.get("batchCode") or {}).get("code")
        await self._audit.log_event(
            self.owner_id,
            "BATCH_DELETE",
            entity_type="batch",
            entity_id=batch_id,
            changes={"batchCode": code} if code else None,
        )
