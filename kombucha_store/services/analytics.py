"""Loads the caller's records and feeds them to the metric functions."""

from __future__ import annotations

from kombucha_store.context import SessionContext
from kombucha_store.records import analytics
from kombucha_store.records.analytics import BatchMetrics, ChartPoint, ProductionMetrics, QualityMetrics, TimeRange


class AnalyticsService:
    def __init__(self, ctx: SessionContext):
        self._ctx = ctx
        self._batches = ctx.repositories.batches
        self._quality = ctx.repositories.quality

    async def batch_metrics(self, batch_id: str) -> BatchMetrics:
        owner_id = self._ctx.owner_id
        batch = await self._batches.require(batch_id, owner_id)
        return analytics.batch_metrics(
            batch,
            now=self._ctx.clock(),
            measurements=await self._batches.get_measurements(batch_id, owner_id),
            quality_checks=await self._quality.get_checks(batch_id, owner_id),
        )

    async def performance_data(self, batch_id: str, time_range: TimeRange) -> dict[str, list[ChartPoint]]:
        measurements = await self._batches.get_measurements(batch_id, self._ctx.owner_id)
        return analytics.performance_data(measurements, time_range)

    async def quality_metrics(self, time_range: TimeRange) -> QualityMetrics:
        return analytics.quality_metrics(await self._quality.get_all(self._ctx.owner_id), time_range)

    async def production_metrics(self, time_range: TimeRange) -> ProductionMetrics:
        batches = await self._batches.get_all(self._ctx.owner_id)
        return analytics.production_metrics(batches, time_range, now=self._ctx.clock())
