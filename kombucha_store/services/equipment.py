"""Equipment and container registration and status changes, with audit events."""

from __future__ import annotations

from kombucha_store.context import SessionContext
from kombucha_store.records.store import Record


class EquipmentService:
    def __init__(self, ctx: SessionContext):
        self._ctx = ctx
        self._equipment = ctx.repositories.equipment
        self._containers = ctx.repositories.containers
        self._audit = ctx.repositories.audit

    @property
    def owner_id(self) -> str:
        return self._ctx.owner_id

    async def register_equipment(self, name: str, equipment_type: str, capacity: float, *, description: str | None = None) -> Record:
        return await self._equipment.create(
            {
                "metadata": {"name": name, "type": equipment_type, "capacity": capacity, "description": description},
                "status": {"current": "AVAILABLE", "lastUpdated": self._ctx.clock()},
                "maintenance": {},
            },
            self.owner_id,
        )

    async def register_container(self, name: str, container_type: str, capacity: float, *, description: str | None = None) -> Record:
        return await self._containers.create(
            {
                "metadata": {"name": name, "type": container_type, "capacity": capacity, "description": description},
                "status": {"current": "EMPTY", "lastUpdated": self._ctx.clock()},
            },
            self.owner_id,
        )

    async def list_equipment(self) -> list[Record]:
        return await self._equipment.get_all(self.owner_id)

    async def list_containers(self) -> list[Record]:
        return await self._containers.get_all(self.owner_id)

    async def set_equipment_status(self, equipment_id: str, status: str, *, current_batch_id: str | None = None) -> Record:
        before = await self._equipment.require(equipment_id, self.owner_id)
        await self._equipment.update_status(equipment_id, status, self.owner_id, current_batch_id=current_batch_id)
        await self._audit.log_event(
            self.owner_id,
            "EQUIPMENT_STATUS_CHANGE",
            entity_type="equipment",
            entity_id=equipment_id,
            changes={"status": {"from": before["status"]["current"], "to": status}},
        )
        return await self._equipment.require(equipment_id, self.owner_id)

    async def record_maintenance(self, equipment_id: str, *, cleaned: bool = False, maintained: bool = False, notes: str | None = None) -> Record:
        await self._equipment.record_maintenance(equipment_id, self.owner_id, cleaned=cleaned, maintained=maintained, notes=notes)
        return await self._equipment.require(equipment_id, self.owner_id)

    async def set_container_status(self, container_id: str, status: str, *, current_batch_id: str | None = None) -> Record:
        before = await self._containers.require(container_id, self.owner_id)
        await self._containers.update_status(container_id, status, self.owner_id, current_batch_id=current_batch_id)
        await self._audit.log_event(
            self.owner_id,
            "CONTAINER_STATUS_CHANGE",
            entity_type="container",
            entity_id=container_id,
            changes={"status": {"from": before["status"]["current"], "to": status}},
        )
        return await self._containers.require(container_id, self.owner_id)
