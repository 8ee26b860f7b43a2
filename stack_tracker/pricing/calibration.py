"""ETF-to-spot ratio calibration.

SLV and GLD shares track silver and gold but drift from spot as fund expenses
accrue. Once a day the ratio etf_price / spot_price is measured against a live
spot fetch and stored, so ETF history can be converted back to spot using the
ratio that was in effect at the time.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Callable, Optional, Protocol

import structlog

from .models import CalibrationRecord, CalibrationResult, EtfRatios, Metal
from ..storage import RatioStore

log = structlog.get_logger()

DEFAULT_SLV_RATIO = 0.92
DEFAULT_GLD_RATIO = 0.092


class EtfQuoteSource(Protocol):
    def current_etf_quotes(self) -> dict[str, Optional[float]]: ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EtfRatioCalibrator:
    def __init__(
        self,
        quotes: EtfQuoteSource,
        store: RatioStore,
        default_slv_ratio: float = DEFAULT_SLV_RATIO,
        default_gld_ratio: float = DEFAULT_GLD_RATIO,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.quotes = quotes
        self.store = store
        self.defaults = EtfRatios(slv_ratio=default_slv_ratio, gld_ratio=default_gld_ratio)
        self.clock = clock
        self._cached_date: date | None = None
        self._cached = self.defaults

    def today(self) -> date:
        return self.clock().date()

    def calibrate(self, gold_spot: float, silver_spot: float) -> CalibrationResult | None:
        """
        Measure today's ratios. Returns None, touching neither the cache nor the
        store, when a quote is missing or a spot price is not positive.
        A storage failure is logged; the in-memory ratios are still updated.
        """
        if not gold_spot or not silver_spot or gold_spot <= 0 or silver_spot <= 0:
            log.error("calibration_bad_spot", gold_spot=gold_spot, silver_spot=silver_spot)
            return None
        try:
            quotes = self.quotes.current_etf_quotes()
        except Exception:
            log.exception("calibration_quotes_error")
            return None
        slv_price = quotes.get("slv")
        gld_price = quotes.get("gld")
        if not slv_price or not gld_price:
            log.error("calibration_missing_quotes", slv=slv_price, gld=gld_price)
            return None

        slv_ratio = slv_price / silver_spot
        gld_ratio = gld_price / gold_spot
        now = self.clock()
        today = now.date()

        self._cached_date = today
        self._cached = EtfRatios(slv_ratio=slv_ratio, gld_ratio=gld_ratio)

        record = CalibrationRecord(
            date=today,
            slv_ratio=slv_ratio,
            gld_ratio=gld_ratio,
            slv_price=slv_price,
            gld_price=gld_price,
            gold_spot=gold_spot,
            silver_spot=silver_spot,
            updated_at=now,
        )
        try:
            self.store.upsert(record)
        except Exception as e:
            log.error("calibration_persist_failed", date=today.isoformat(), error=str(e))

        log.info(
            "calibrated_ratios",
            date=today.isoformat(),
            slv_ratio=round(slv_ratio, 4),
            gld_ratio=round(gld_ratio, 4),
            slv_price=round(slv_price, 2),
            gld_price=round(gld_price, 2),
            silver_spot=round(silver_spot, 2),
            gold_spot=round(gold_spot, 2),
        )
        return CalibrationResult(slv_ratio=slv_ratio, gld_ratio=gld_ratio, slv_price=slv_price, gld_price=gld_price)

    def get_ratio_for_date(self, day: date) -> EtfRatios:
        """Ratios in effect on `day`: never one measured after it."""
        if self._cached_date is not None and self._cached_date == day:
            return self._cached
        try:
            record = self.store.latest_on_or_before(day)
        except Exception as e:
            log.error("ratio_lookup_failed", date=day.isoformat(), error=str(e))
            record = None
        if record is not None:
            return EtfRatios(slv_ratio=record.slv_ratio, gld_ratio=record.gld_ratio)
        return self.defaults

    def last_calibration_date(self) -> date | None:
        if self._cached_date is not None:
            return self._cached_date
        try:
            record = self.store.latest()
        except Exception as e:
            log.error("last_calibration_lookup_failed", error=str(e))
            return None
        return record.date if record else None

    def needs_calibration(self) -> bool:
        return self.last_calibration_date() != self.today()

    def cached_ratios(self) -> dict:
        return {
            "date": self._cached_date.isoformat() if self._cached_date else None,
            "slvRatio": self._cached.slv_ratio,
            "gldRatio": self._cached.gld_ratio,
        }

    def etf_to_spot(self, etf_price: float, metal: Metal | str, day: date) -> float:
        ratios = self.get_ratio_for_date(day)
        ratio = ratios.slv_ratio if Metal(metal) == Metal.silver else ratios.gld_ratio
        return round(etf_price / ratio, 2)
