"""Batch fermentation stage changes.

Stages:
1F -> 2F -> KEGGED | BOTTLED -> COMPLETED

The order above is the usual brewing flow, not an enforced one: any known
stage may follow any other. A change closes the open `stageHistory` entry and
opens a new one.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Mapping

from kombucha_store.errors import ContractViolationError

STAGES = ("1F", "2F", "KEGGED", "BOTTLED", "COMPLETED")


@dataclass(frozen=True)
class StageChange:
    new_stage: str
    now: int
    equipment_id: str | None = None
    notes: str | None = None


def open_stage_entry(stage: str, now: int, *, equipment_id: str | None = None, notes: str | None = None) -> dict[str, Any]:
    entry: dict[str, Any] = {"stage": stage, "startTime": now}
    if equipment_id:
        entry["equipmentId"] = equipment_id
    if notes:
        entry["notes"] = notes
    return entry


def apply_stage_change(batch: Mapping[str, Any], change: StageChange) -> dict[str, Any]:
    """Return the partial batch update for a stage change (empty for a no-op)."""
    if change.new_stage not in STAGES:
        raise ContractViolationError(f"Unknown batch stage: {change.new_stage}", code="UNKNOWN_STAGE")

    current = batch.get("stage")
    if change.new_stage == current:
        return {}

    history = deepcopy(list(batch.get("stageHistory") or []))
    for entry in history:
        if isinstance(entry, dict) and "endTime" not in entry:
            entry["endTime"] = change.now

    equipment_id = change.equipment_id or batch.get("currentEquipmentId")
    history.append(open_stage_entry(change.new_stage, change.now, equipment_id=equipment_id, notes=change.notes))

    updates: dict[str, Any] = {"stage": change.new_stage, "stageHistory": history}
    if change.equipment_id:
        updates["currentEquipmentId"] = change.equipment_id
    return updates
