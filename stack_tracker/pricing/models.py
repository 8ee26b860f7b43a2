from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any


class Metal(str, Enum):
    gold = "gold"
    silver = "silver"


class PriceSource(str, Enum):
    exact = "exact"
    interpolated = "interpolated"
    estimated = "estimated"
    nearest = "nearest"
    fallback = "fallback"


@dataclass(frozen=True)
class ResolvedPrice:
    price: float
    source: PriceSource
    note: str


@dataclass(frozen=True)
class SpotSnapshot:
    silver: float
    gold: float
    fetched_at: datetime | None = None

    def price_for(self, metal: Metal) -> float:
        return self.silver if metal == Metal.silver else self.gold


@dataclass(frozen=True)
class SpotQuote:
    gold: float
    silver: float
    timestamp: datetime
    cached: bool
    note: str | None = None

    def as_payload(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "gold": self.gold,
            "silver": self.silver,
            "timestamp": self.timestamp.isoformat(),
            "cached": self.cached,
        }
        if self.note:
            out["note"] = self.note
        return out


@dataclass(frozen=True)
class EtfRatios:
    slv_ratio: float
    gld_ratio: float


@dataclass(frozen=True)
class CalibrationResult:
    slv_ratio: float
    gld_ratio: float
    slv_price: float
    gld_price: float


@dataclass(frozen=True)
class CalibrationRecord:
    date: date
    slv_ratio: float
    gld_ratio: float
    slv_price: float
    gld_price: float
    gold_spot: float
    silver_spot: float
    updated_at: datetime
