"""Append-style audit events. The acting user is the record owner."""

from __future__ import annotations

from typing import Any, Mapping

from kombucha_store.records.store import Record, RecordStore


class AuditRepository(RecordStore):
    async def log_event(
        self,
        owner_id: str,
        event_type: str,
        *,
        entity_type: str | None = None,
        entity_id: str | None = None,
        changes: Mapping[str, Any] | None = None,
        notes: str | None = None,
    ) -> Record:
        return await self.create(
            {
                "eventType": event_type,
                "entityType": entity_type,
                "entityId": entity_id,
                "changes": dict(changes) if changes is not None else None,
                "notes": notes,
            },
            owner_id,
        )

    async def get_user_activity(self, owner_id: str) -> list[Record]:
        return sorted(await self.get_all(owner_id), key=lambda e: e["createdAt"])

    async def get_entity_history(self, entity_type: str, entity_id: str, owner_id: str) -> list[Record]:
        return [
            e
            for e in await self.get_user_activity(owner_id)
            if e.get("entityType") == entity_type and e.get("entityId") == entity_id
        ]

    async def get_failed_quality_checks(self, owner_id: str) -> list[Record]:
        return [e for e in await self.get_user_activity(owner_id) if e["eventType"] == "QUALITY_CHECK_FAILED"]
