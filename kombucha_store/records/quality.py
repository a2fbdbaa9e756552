"""Quality check records attached to batches."""

from __future__ import annotations

from typing import Any, Mapping

from kombucha_store.records.store import Record, RecordStore


class QualityRepository(RecordStore):
    async def add_check(self, batch_id: str, check: Mapping[str, Any], owner_id: str) -> Record:
        return await self.create({**check, "batchId": batch_id}, owner_id)

    async def get_checks(self, batch_id: str, owner_id: str) -> list[Record]:
        return [c for c in await self.get_all(owner_id) if c["batchId"] == batch_id]

    async def get_failed_checks(self, batch_id: str, owner_id: str) -> list[Record]:
        return [c for c in await self.get_checks(batch_id, owner_id) if c["status"] == "FAIL"]

    async def get_checks_by_type(self, batch_id: str, check_type: str, owner_id: str) -> list[Record]:
        return [c for c in await self.get_checks(batch_id, owner_id) if c["type"] == check_type]
