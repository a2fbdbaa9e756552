"""Data maintenance: clearing a caller's data, wiping collections, sample data.

None of these operations are atomic. A failure part way through leaves the
records processed so far deleted (or created).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from kombucha_store.context import SessionContext
from kombucha_store.services.batches import BatchService
from kombucha_store.services.equipment import EquipmentService
from kombucha_store.services.quality import QualityService

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000

_SAMPLE_EQUIPMENT = (
    ("20 Gallon Kettle", "KETTLE", 20, "Main brewing kettle"),
    ("5 Gallon Fermenter 1", "FERMENTER", 5, "Primary Fermenter A"),
    ("5 Gallon Fermenter 2", "FERMENTER", 5, "Primary Fermenter B"),
)

_SAMPLE_CONTAINERS = (
    ("Bottle Set 1 (16oz)", "BOTTLE", 3, "Case of 24 x 16oz bottles"),
    ("Keg 1 (5 Gallon)", "KEG", 5, "Standard 5 gallon keg"),
)

# name, batch type, tea, volume, days before the seed time
_SAMPLE_BATCHES = (
    ("LimeAid", "1F", "green", 5, 10),
    ("POG", "1F", "black", 5, 7),
    ("Ginger", "2F", "oolong", 2.5, 3),
)


@dataclass
class SeedSummary:
    equipment_ids: list[str] = field(default_factory=list)
    container_ids: list[str] = field(default_factory=list)
    batch_ids: list[str] = field(default_factory=list)
    quality_check_ids: list[str] = field(default_factory=list)


class AdminService:
    def __init__(self, ctx: SessionContext):
        self._ctx = ctx
        self._repos = ctx.repositories

    async def clear_user_data(self) -> dict[str, int]:
        """Delete every record the caller owns, one record at a time.

        The caller's user profile is kept. Returns deleted counts per collection.
        """
        owner_id = self._ctx.owner_id
        logger.warning("user_data_clear_started", extra={"event": "user_data_clear_started", "owner_id": owner_id})

        counts: dict[str, int] = {}
        repos = (self._repos.batches, self._repos.equipment, self._repos.containers, self._repos.quality, self._repos.audit)
        for repo in repos:
            records = await repo.get_all(owner_id)
            for record in records:
                await repo.delete(record["id"], owner_id)
            counts[repo.name] = len(records)

        logger.info("user_data_cleared", extra={"event": "user_data_cleared", "owner_id": owner_id})
        return counts

    async def clear_all_collections(self) -> None:
        """Wipe every collection for every owner. Test and seed setups only."""
        logger.warning("all_collections_clear_started", extra={"event": "all_collections_clear_started", "owner_id": self._ctx.owner_id})
        for repo in self._repos.all():
            await repo.clear_all()

    async def seed_sample_data(self) -> SeedSummary:
        """Replace the caller's data with a small, fixed sample set."""
        await self.clear_user_data()

        equipment = EquipmentService(self._ctx)
        batches = BatchService(self._ctx)
        quality = QualityService(self._ctx)
        now = self._ctx.clock()
        summary = SeedSummary()

        for name, equipment_type, capacity, description in _SAMPLE_EQUIPMENT:
            created = await equipment.register_equipment(name, equipment_type, capacity, description=description)
            summary.equipment_ids.append(created["id"])

        for i, (flavor, batch_type, tea, volume, days_ago) in enumerate(_SAMPLE_BATCHES):
            created = await batches.create_batch(
                f"{flavor} {batch_type}",
                volume,
                batch_type=batch_type,
                batch_date=now - days_ago * DAY_MS,
                teaType=tea,
                currentEquipmentId=summary.equipment_ids[i % len(summary.equipment_ids)],
                description=f"Sample batch {i + 1} with {tea} tea and {flavor} flavoring",
            )
            summary.batch_ids.append(created["id"])

        for name, container_type, capacity, description in _SAMPLE_CONTAINERS:
            created = await equipment.register_container(name, container_type, capacity, description=description)
            summary.container_ids.append(created["id"])

        for batch_id in summary.batch_ids:
            check = await quality.record_check(batch_id, "PH", "PASS", value=3.2, unit="pH")
            summary.quality_check_ids.append(check["id"])
        check = await quality.record_check(summary.batch_ids[-1], "TASTE", "WARNING", notes="Slightly sweet")
        summary.quality_check_ids.append(check["id"])

        await equipment.set_equipment_status(summary.equipment_ids[0], "IN_USE", current_batch_id=summary.batch_ids[0])
        await equipment.set_equipment_status(summary.equipment_ids[1], "IN_USE", current_batch_id=summary.batch_ids[1])
        await equipment.set_container_status(summary.container_ids[0], "FILLED", current_batch_id=summary.batch_ids[0])

        logger.info("sample_data_seeded", extra={"event": "sample_data_seeded", "owner_id": self._ctx.owner_id})
        return summary
