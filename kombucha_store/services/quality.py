"""Quality checks against the caller's batches."""

from __future__ import annotations

import logging

from kombucha_store.context import SessionContext
from kombucha_store.records.store import Record
from kombucha_store.utils import prune_nulls

logger = logging.getLogger(__name__)


class QualityService:
    def __init__(self, ctx: SessionContext):
        self._ctx = ctx
        self._batches = ctx.repositories.batches
        self._quality = ctx.repositories.quality
        self._audit = ctx.repositories.audit

    @property
    def owner_id(self) -> str:
        return self._ctx.owner_id

    async def record_check(
        self,
        batch_id: str,
        check_type: str,
        status: str,
        *,
        value: float | None = None,
        unit: str | None = None,
        notes: str | None = None,
    ) -> Record:
        # Checks may only be attached to batches the caller owns.
        await self._batches.require(batch_id, self.owner_id)

        check = await self._quality.add_check(
            batch_id,
            prune_nulls({"type": check_type, "status": status, "value": value, "unit": unit, "notes": notes}),
            self.owner_id,
        )
        await self._audit.log_event(
            self.owner_id,
            "QUALITY_CHECK_ADDED",
            entity_type="qualityCheck",
            entity_id=check["id"],
            changes={"batchId": batch_id, "type": check_type, "status": status},
        )
        if status == "FAIL":
            logger.warning(
                "quality_check_failed",
                extra={"event": "quality_check_failed", "record_id": check["id"], "owner_id": self.owner_id},
            )
            await self._audit.log_event(
                self.owner_id,
                "QUALITY_CHECK_FAILED",
                entity_type="qualityCheck",
                entity_id=check["id"],
                changes={"batchId": batch_id, "type": check_type},
                notes=notes,
            )
        return check

    async def get_checks(self, batch_id: str) -> list[Record]:
        await self._batches.require(batch_id, self.owner_id)
        return await self._quality.get_checks(batch_id, self.owner_id)

    async def get_failed_checks(self, batch_id: str) -> list[Record]:
        await self._batches.require(batch_id, self.owner_id)
        return await self._quality.get_failed_checks(batch_id, self.owner_id)
