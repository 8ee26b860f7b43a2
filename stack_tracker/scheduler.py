from __future__ import annotations
from datetime import datetime, timezone
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.interval import IntervalTrigger
import structlog

from .config import settings
from .pricing.service import PriceService

_log = structlog.get_logger()


def build_scheduler() -> AsyncIOScheduler:
    return AsyncIOScheduler(timezone=timezone.utc)


def schedule_jobs(
    prices: PriceService,
    sched: AsyncIOScheduler,
    refresh_trigger: BaseTrigger | None = None,
    calibration_trigger: BaseTrigger | None = None,
    start: bool = True,
):
    refresh_trigger = refresh_trigger or IntervalTrigger(hours=settings.historical_refresh_hours, timezone=timezone.utc)
    calibration_trigger = calibration_trigger or IntervalTrigger(
        minutes=settings.calibration_check_minutes, timezone=timezone.utc
    )
    now = datetime.now(timezone.utc)
    # Both jobs also run once right away instead of waiting a full interval.
    sched.add_job(
        run_historical_refresh, refresh_trigger, args=[prices],
        id="historical_refresh", replace_existing=True, next_run_time=now, max_instances=1, coalesce=True,
    )
    sched.add_job(
        run_calibration_check, calibration_trigger, args=[prices],
        id="etf_calibration", replace_existing=True, next_run_time=now, max_instances=1, coalesce=True,
    )
    if start:
        sched.start()
        _log.info("price_scheduler_started", jobs=[job.id for job in sched.get_jobs()])
    return sched


async def run_historical_refresh(prices: PriceService):
    try:
        await prices.refresh_historical()
    except Exception:
        _log.exception("historical_refresh_job_failed")


async def run_calibration_check(prices: PriceService):
    try:
        result = await prices.calibrate_if_due()
    except Exception:
        _log.exception("calibration_job_failed")
        return
    if result is not None:
        _log.info("calibration_job_done", slv_ratio=result.slv_ratio, gld_ratio=result.gld_ratio)
