from pathlib import Path
import asyncio
import os
import sys

# Ensure repo root is on sys.path and is the working directory.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
os.chdir(ROOT)

from stack_tracker.config import settings
from stack_tracker.logging import setup_logging
from stack_tracker.pricing.service import PriceService


async def _run(force: bool) -> int:
    prices = PriceService.from_settings(settings)
    quote = await prices.current_spot()
    if quote.cached:
        print('Live spot unavailable; not calibrating against seed prices.')
        return 1
    if not force and not prices.calibrator.needs_calibration():
        print('Already calibrated today:', prices.calibrator.last_calibration_date())
        return 0
    result = prices.calibrator.calibrate(quote.gold, quote.silver)
    if result is None:
        print('Calibration failed (ETF quotes unavailable).')
        return 1
    print(f'SLV ratio {result.slv_ratio:.4f} (SLV ${result.slv_price:.2f} / silver ${quote.silver:.2f})')
    print(f'GLD ratio {result.gld_ratio:.5f} (GLD ${result.gld_price:.2f} / gold ${quote.gold:.2f})')
    return 0


if __name__ == '__main__':
    setup_logging()
    sys.exit(asyncio.run(_run(force='--force' in sys.argv[1:])))
