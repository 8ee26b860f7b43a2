"""Historical spot price lookup.

Gold comes straight from the daily gold table. Silver has no table of its own
and is derived as gold / (gold/silver ratio), falling back through nearby
records, a typical ratio and finally the live spot cache.
"""
from __future__ import annotations

from datetime import date
from typing import Protocol

from .models import Metal, PriceSource, ResolvedPrice, SpotSnapshot
from .nearest import DEFAULT_MAX_DAYS, find_nearest
from .store import HistoricalTables, PriceStore

TYPICAL_GOLD_SILVER_RATIO = 80.0


class SpotSource(Protocol):
    def snapshot(self) -> SpotSnapshot: ...


def _silver(gold_price: float, ratio: float) -> float:
    return round(gold_price / ratio, 2)


class HistoricalPriceResolver:
    def __init__(
        self,
        store: PriceStore,
        spot: SpotSource,
        max_days: int = DEFAULT_MAX_DAYS,
        typical_ratio: float = TYPICAL_GOLD_SILVER_RATIO,
    ):
        self.store = store
        self.spot = spot
        self.max_days = max_days
        self.typical_ratio = typical_ratio

    def resolve(self, day: str | date, metal: Metal | str = Metal.silver) -> ResolvedPrice:
        metal = Metal(metal)
        if isinstance(day, str):
            try:
                day = date.fromisoformat(day)
            except ValueError:
                return self._fallback(metal)
        tables = self.store.snapshot()
        if metal == Metal.gold:
            resolved = self._gold(tables, day)
        else:
            resolved = self._silver(tables, day)
        return resolved or self._fallback(metal)

    def _gold(self, tables: HistoricalTables, day: date) -> ResolvedPrice | None:
        exact = tables.gold.get(day)
        if exact:
            return ResolvedPrice(exact, PriceSource.exact, "Exact daily gold price")
        nearest = find_nearest(tables.gold, day, self.max_days)
        if nearest:
            return ResolvedPrice(
                nearest.value, PriceSource.nearest, f"Nearest available date: {nearest.date.isoformat()}"
            )
        return None

    def _silver(self, tables: HistoricalTables, day: date) -> ResolvedPrice | None:
        gold = tables.gold.get(day)
        ratio = tables.ratios.get(day)
        if gold and ratio:
            return ResolvedPrice(
                _silver(gold, ratio), PriceSource.exact, "Calculated from exact gold price and gold/silver ratio"
            )
        if gold:
            near_ratio = find_nearest(tables.ratios, day, self.max_days)
            if near_ratio:
                return ResolvedPrice(
                    _silver(gold, near_ratio.value),
                    PriceSource.interpolated,
                    f"Gold price exact, ratio from {near_ratio.date.isoformat()}",
                )
            return ResolvedPrice(
                _silver(gold, self.typical_ratio),
                PriceSource.estimated,
                "Calculated from gold price with estimated ratio",
            )
        near_gold = find_nearest(tables.gold, day, self.max_days)
        if near_gold:
            near_ratio = find_nearest(tables.ratios, day, self.max_days)
            ratio_to_use = near_ratio.value if near_ratio else self.typical_ratio
            return ResolvedPrice(
                _silver(near_gold.value, ratio_to_use),
                PriceSource.interpolated,
                f"Estimated from {near_gold.date.isoformat()} gold price",
            )
        return None

    def _fallback(self, metal: Metal) -> ResolvedPrice:
        return ResolvedPrice(
            self.spot.snapshot().price_for(metal),
            PriceSource.fallback,
            "Historical data unavailable - using current price",
        )
