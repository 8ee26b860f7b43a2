from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Mapping


def _frozen(table: Mapping[date, float] | None) -> Mapping[date, float]:
    return MappingProxyType(dict(table or {}))


@dataclass(frozen=True)
class HistoricalTables:
    """One consistent view of the historical gold and gold/silver ratio tables."""
    gold: Mapping[date, float] = field(default_factory=lambda: _frozen(None))
    ratios: Mapping[date, float] = field(default_factory=lambda: _frozen(None))
    loaded: bool = False


class PriceStore:
    """
    Holder for the historical tables.
    Readers take `snapshot()` once per query; refreshes swap whole tables so a
    reader never observes a partially rebuilt map.
    """
    def __init__(self, gold: Mapping[date, float] | None = None, ratios: Mapping[date, float] | None = None):
        gold_table = _frozen(gold)
        self._tables = HistoricalTables(gold=gold_table, ratios=_frozen(ratios), loaded=bool(gold_table))

    def snapshot(self) -> HistoricalTables:
        return self._tables

    def replace(self, gold: Mapping[date, float] | None = None, ratios: Mapping[date, float] | None = None) -> HistoricalTables:
        """Replace either table wholesale. A table passed as None keeps its current contents."""
        current = self._tables
        gold_table = _frozen(gold) if gold is not None else current.gold
        ratio_table = _frozen(ratios) if ratios is not None else current.ratios
        self._tables = HistoricalTables(gold=gold_table, ratios=ratio_table, loaded=bool(gold_table))
        return self._tables

    @property
    def loaded(self) -> bool:
        return self._tables.loaded

    def counts(self) -> tuple[int, int]:
        tables = self._tables
        return len(tables.gold), len(tables.ratios)
