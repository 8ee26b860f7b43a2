from __future__ import annotations

import asyncio
from datetime import date
from typing import Optional, Protocol

import structlog

from ..config import Settings
from ..providers.freegold_adapter import FreeGoldAdapter
from ..providers.metals_live_adapter import MetalsLiveAdapter
from ..providers.yfinance_adapter import YFinanceAdapter
from ..storage import build_ratio_store
from .calibration import EtfRatioCalibrator
from .historical import HistoricalPriceResolver
from .models import CalibrationResult, Metal, ResolvedPrice, SpotQuote
from .spot_cache import LiveSpotCache
from .store import PriceStore

log = structlog.get_logger()


class HistoricalFeed(Protocol):
    async def gold_prices(self) -> Optional[dict[date, float]]: ...
    async def gold_silver_ratios(self) -> Optional[dict[date, float]]: ...


class PriceService:
    """
    Owns every piece of shared price state for one process: historical tables,
    the spot cache and today's calibration. Request handlers reach it through
    `app.state.prices`.
    """
    def __init__(
        self,
        store: PriceStore,
        spot: LiveSpotCache,
        resolver: HistoricalPriceResolver,
        calibrator: EtfRatioCalibrator,
        historical_feed: HistoricalFeed,
    ):
        self.store = store
        self.spot = spot
        self.resolver = resolver
        self.calibrator = calibrator
        self.historical_feed = historical_feed
        self._calibration_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, cfg: Settings) -> "PriceService":
        store = PriceStore()
        spot = LiveSpotCache(
            MetalsLiveAdapter(cfg.spot_api_url, timeout=cfg.spot_fetch_timeout_seconds),
            ttl_seconds=cfg.spot_cache_ttl_seconds,
            seed_silver=cfg.default_silver_spot,
            seed_gold=cfg.default_gold_spot,
        )
        resolver = HistoricalPriceResolver(
            store, spot, max_days=cfg.nearest_max_days, typical_ratio=cfg.typical_gold_silver_ratio
        )
        calibrator = EtfRatioCalibrator(
            YFinanceAdapter(cfg.slv_symbol, cfg.gld_symbol),
            build_ratio_store(cfg.ratio_db_path),
            default_slv_ratio=cfg.default_slv_ratio,
            default_gld_ratio=cfg.default_gld_ratio,
        )
        feed = FreeGoldAdapter(
            cfg.historical_gold_url, cfg.historical_ratio_url, timeout=cfg.historical_fetch_timeout_seconds
        )
        return cls(store, spot, resolver, calibrator, feed)

    def historical_price(self, day: str | date, metal: Metal | str) -> ResolvedPrice:
        return self.resolver.resolve(day, metal)

    async def current_spot(self) -> SpotQuote:
        return await self.spot.get_current_spot()

    async def refresh_historical(self) -> bool:
        """
        Reload both historical tables. A feed that fails or comes back empty
        leaves its previous table in place.
        """
        log.info("historical_refresh_start")
        gold = ratios = None
        try:
            gold = await self.historical_feed.gold_prices()
        except Exception:
            log.exception("historical_gold_refresh_error")
        try:
            ratios = await self.historical_feed.gold_silver_ratios()
        except Exception:
            log.exception("historical_ratio_refresh_error")
        if not ratios:
            log.warning("historical_ratios_unavailable", msg="silver will use nearby or estimated ratios")
        self.store.replace(gold=gold or None, ratios=ratios or None)
        gold_count, ratio_count = self.store.counts()
        log.info(
            "historical_refresh_done",
            loaded=self.store.loaded,
            gold_records=gold_count,
            ratio_records=ratio_count,
        )
        return self.store.loaded

    async def calibrate_if_due(self) -> CalibrationResult | None:
        """Calibrate once per day, and only against a spot price fetched live within the TTL."""
        # scheduled and request-triggered checks may overlap; one quote fetch per day
        async with self._calibration_lock:
            needs = await asyncio.to_thread(self.calibrator.needs_calibration)
            if not needs:
                return None
            await self.spot.get_current_spot()
            if not self.spot.is_fresh():
                log.info("calibration_deferred", reason="no live spot price")
                return None
            snap = self.spot.snapshot()
            return await asyncio.to_thread(self.calibrator.calibrate, snap.gold, snap.silver)

    def health(self) -> dict:
        gold_count, ratio_count = self.store.counts()
        return {
            "status": "ok",
            "privacy": "enabled",
            "historicalDataLoaded": self.store.loaded,
            "goldRecords": gold_count,
            "ratioRecords": ratio_count,
        }
