"""Batch, quality and production metrics.

Everything here is a pure function over records that have already been loaded
(and ownership-filtered) by the repositories. Durations are in milliseconds.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

COMMON_ISSUES_LIMIT = 5


@dataclass(frozen=True)
class TimeRange:
    start: int
    end: int

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"TimeRange end ({self.end}) is before start ({self.start})")

    def contains(self, ts: int) -> bool:
        return self.start <= ts <= self.end


@dataclass(frozen=True)
class ChartPoint:
    timestamp: int
    value: float


@dataclass(frozen=True)
class BatchMetrics:
    batch_id: str
    name: str
    start_date: int
    end_date: int | None
    duration: int
    stages: list[dict[str, Any]] = field(default_factory=list)
    measurements: list[dict[str, Any]] = field(default_factory=list)
    quality_checks: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class QualityMetrics:
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_checks: int
    pass_rate: float
    common_issues: list[tuple[str, int]]


@dataclass(frozen=True)
class ProductionMetrics:
    total_batches: int
    completed_batches: int
    average_batch_duration: float
    total_volume: float
    equipment_utilization: dict[str, int]


def batch_start(batch: Mapping[str, Any]) -> int:
    return int(batch.get("batchDate", batch["createdAt"]))


def batch_end(batch: Mapping[str, Any]) -> int | None:
    history = batch.get("stageHistory") or []
    if not history:
        return None
    end = history[-1].get("endTime")
    return int(end) if end is not None else None


def batch_duration(batch: Mapping[str, Any], now: int) -> int:
    """Start to close of the last stage, or start to now while still open."""
    end = batch_end(batch)
    return (end if end is not None else now) - batch_start(batch)


def batch_metrics(
    batch: Mapping[str, Any],
    *,
    now: int,
    measurements: Iterable[Mapping[str, Any]] = (),
    quality_checks: Iterable[Mapping[str, Any]] = (),
) -> BatchMetrics:
    return BatchMetrics(
        batch_id=batch["id"],
        name=batch["name"],
        start_date=batch_start(batch),
        end_date=batch_end(batch),
        duration=batch_duration(batch, now),
        stages=[dict(s) for s in batch.get("stageHistory") or []],
        measurements=[dict(m) for m in measurements],
        quality_checks=[dict(c) for c in quality_checks],
    )


def performance_data(measurements: Iterable[Mapping[str, Any]], time_range: TimeRange) -> dict[str, list[ChartPoint]]:
    series: dict[str, list[ChartPoint]] = {"ph": [], "temperature": []}
    for m in measurements:
        if m.get("type") in series and time_range.contains(m["timestamp"]):
            series[m["type"]].append(ChartPoint(timestamp=m["timestamp"], value=m["value"]))
    for points in series.values():
        points.sort(key=lambda p: p.timestamp)
    return series


def quality_metrics(checks: Iterable[Mapping[str, Any]], time_range: TimeRange) -> QualityMetrics:
    in_range = [c for c in checks if time_range.contains(c["createdAt"])]
    status_counts = Counter(c["status"] for c in in_range)
    total = len(in_range)
    passed = status_counts["PASS"]

    failures = Counter(c["type"] for c in in_range if c["status"] == "FAIL")
    # Ties break on type name so the ordering is stable.
    common = sorted(failures.items(), key=lambda kv: (-kv[1], kv[0]))[:COMMON_ISSUES_LIMIT]

    return QualityMetrics(
        total_checks=total,
        passed_checks=passed,
        failed_checks=status_counts["FAIL"],
        warning_checks=status_counts["WARNING"],
        pass_rate=(passed / total) * 100 if total else 0.0,
        common_issues=common,
    )


def production_metrics(batches: Iterable[Mapping[str, Any]], time_range: TimeRange, *, now: int) -> ProductionMetrics:
    relevant = [b for b in batches if time_range.contains(batch_start(b))]
    durations = [batch_duration(b, now) for b in relevant]

    utilization: Counter[str] = Counter()
    for b in relevant:
        for entry in b.get("stageHistory") or []:
            equipment_id = entry.get("equipmentId")
            if equipment_id:
                utilization[equipment_id] += 1

    return ProductionMetrics(
        total_batches=len(relevant),
        completed_batches=sum(1 for b in relevant if b["stage"] == "COMPLETED"),
        average_batch_duration=sum(durations) / len(durations) if durations else 0.0,
        total_volume=float(sum(b["volume"] for b in relevant)),
        equipment_utilization=dict(utilization),
    )
