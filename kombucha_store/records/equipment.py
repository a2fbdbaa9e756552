"""Equipment and container records (nested-metadata collections)."""

from __future__ import annotations

from typing import Any

from kombucha_store.records.store import Record, RecordStore
from kombucha_store.utils import prune_nulls


class EquipmentRepository(RecordStore):
    async def update_status(self, equipment_id: str, status: str, owner_id: str, *, current_batch_id: str | None = None) -> None:
        new_status = prune_nulls({"current": status, "lastUpdated": self._clock(), "currentBatchId": current_batch_id})
        await self.update(equipment_id, {"status": new_status}, owner_id)

    async def record_maintenance(
        self,
        equipment_id: str,
        owner_id: str,
        *,
        cleaned: bool = False,
        maintained: bool = False,
        next_maintenance: int | None = None,
        notes: str | None = None,
    ) -> None:
        equipment = await self.require(equipment_id, owner_id)
        now = self._clock()
        maintenance: dict[str, Any] = dict(equipment.get("maintenance") or {})
        if cleaned:
            maintenance["lastCleaned"] = now
        if maintained:
            maintenance["lastMaintained"] = now
        if next_maintenance is not None:
            maintenance["nextMaintenance"] = next_maintenance
        if notes:
            maintenance["notes"] = notes
        await self.update(equipment_id, {"maintenance": maintenance}, owner_id)

    async def _with_status(self, status: str, owner_id: str) -> list[Record]:
        return [e for e in await self.get_all(owner_id) if e["status"]["current"] == status]

    async def get_available(self, owner_id: str) -> list[Record]:
        return await self._with_status("AVAILABLE", owner_id)

    async def get_in_use(self, owner_id: str) -> list[Record]:
        return await self._with_status("IN_USE", owner_id)


class ContainerRepository(RecordStore):
    async def update_status(self, container_id: str, status: str, owner_id: str, *, current_batch_id: str | None = None) -> None:
        container = await self.require(container_id, owner_id)
        now = self._clock()
        previous = container.get("status") or {}
        new_status: dict[str, Any] = {
            "current": status,
            "lastUpdated": now,
            "currentBatchId": current_batch_id,
            "fillDate": now if status == "FILLED" else previous.get("fillDate"),
            "emptyDate": now if status == "EMPTY" else previous.get("emptyDate"),
        }
        await self.update(container_id, {"status": prune_nulls(new_status)}, owner_id)

    async def _with_status(self, status: str, owner_id: str) -> list[Record]:
        return [c for c in await self.get_all(owner_id) if c["status"]["current"] == status]

    async def get_empty(self, owner_id: str) -> list[Record]:
        return await self._with_status("EMPTY", owner_id)

    async def get_filled(self, owner_id: str) -> list[Record]:
        return await self._with_status("FILLED", owner_id)

    async def get_by_batch(self, batch_id: str, owner_id: str) -> list[Record]:
        return [c for c in await self.get_all(owner_id) if c["status"].get("currentBatchId") == batch_id]
