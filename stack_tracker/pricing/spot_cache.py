from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Protocol

import structlog

from .models import SpotQuote, SpotSnapshot

log = structlog.get_logger()

DEFAULT_SILVER_SPOT = 30.50
DEFAULT_GOLD_SPOT = 2650.00
STALE_NOTE = "Using cached prices - live API temporarily unavailable"


class SpotFeed(Protocol):
    async def spot(self) -> tuple[float, float] | None: ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LiveSpotCache:
    """
    Best-effort current gold/silver prices.
    Starts from a seed with no fetch time, so the first read always goes to
    the feed. Only a complete fetch replaces the cached values.
    """
    def __init__(
        self,
        feed: SpotFeed,
        ttl_seconds: float = 300.0,
        seed_silver: float = DEFAULT_SILVER_SPOT,
        seed_gold: float = DEFAULT_GOLD_SPOT,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.feed = feed
        self.ttl_seconds = float(ttl_seconds)
        self.clock = clock
        self._snap = SpotSnapshot(silver=seed_silver, gold=seed_gold, fetched_at=None)

    def snapshot(self) -> SpotSnapshot:
        return self._snap

    def is_fresh(self, now: datetime | None = None) -> bool:
        fetched_at = self._snap.fetched_at
        if fetched_at is None:
            return False
        now = now or self.clock()
        return (now - fetched_at).total_seconds() < self.ttl_seconds

    async def get_current_spot(self) -> SpotQuote:
        now = self.clock()
        snap = self._snap
        if self.is_fresh(now):
            return SpotQuote(gold=snap.gold, silver=snap.silver, timestamp=snap.fetched_at, cached=True)

        fetched = await self.feed.spot()
        if fetched is not None:
            gold, silver = fetched
            self._snap = SpotSnapshot(silver=silver, gold=gold, fetched_at=now)
            log.info("spot_refreshed", gold=gold, silver=silver)
            return SpotQuote(gold=gold, silver=silver, timestamp=now, cached=False)

        snap = self._snap
        log.info("spot_serving_cached", fetched_at=snap.fetched_at.isoformat() if snap.fetched_at else None)
        return SpotQuote(gold=snap.gold, silver=snap.silver, timestamp=now, cached=True, note=STALE_NOTE)
