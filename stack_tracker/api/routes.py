import re
from datetime import date
from typing import Optional
import structlog
from fastapi import APIRouter, BackgroundTasks, File, HTTPException, Query, Request, UploadFile
from .schemas import BulkHistoricalRequest, BulkHistoricalResponse, EtfRatioResponse, HistoricalSpotResponse
from ..config import settings
from ..pricing.models import Metal
from ..pricing.service import PriceService
from ..scheduler import run_calibration_check
from ..services.vision import ALLOWED_MEDIA_TYPES, VisionError, VisionExtractor

router = APIRouter(prefix="/api")
log = structlog.get_logger()

DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)
_METALS = tuple(m.value for m in Metal)

RECEIPT_ERROR = "Could not analyze receipt. Please try again or enter manually."
STACK_ERROR = "Could not analyze stack photo. Please try again."


def _prices(request: Request) -> PriceService:
    return request.app.state.prices


def _vision(request: Request) -> VisionExtractor:
    return request.app.state.vision


def _metal(value: Optional[str]) -> str:
    metal = (value or Metal.silver.value).lower()
    if metal not in _METALS:
        raise HTTPException(400, 'Metal must be "silver" or "gold"')
    return metal


async def _read_upload(upload: Optional[UploadFile]) -> tuple[bytes, str]:
    if upload is None:
        raise HTTPException(400, "No image provided")
    media_type = (upload.content_type or "").lower()
    if media_type not in ALLOWED_MEDIA_TYPES:
        raise HTTPException(400, "Invalid file type. Allowed: JPEG, PNG, WebP, HEIC")
    data = await upload.read(settings.upload_max_bytes + 1)
    await upload.close()
    if not data:
        raise HTTPException(400, "No image provided")
    if len(data) > settings.upload_max_bytes:
        raise HTTPException(400, "Image too large (max 10MB)")
    return data, media_type


@router.get(
    '/health',
    summary="Health check",
    description="Service status plus historical table sizes.",
    tags=["Health"],
)
def health(request: Request):
    return _prices(request).health()


@router.get(
    '/spot-prices',
    summary="Current spot prices",
    description="Gold and silver spot in USD/ozt. Falls back to the last known prices when the live feed is down.",
    tags=["Prices"],
)
async def spot_prices(request: Request, background: BackgroundTasks):
    prices = _prices(request)
    quote = await prices.current_spot()
    if not quote.cached:
        background.add_task(run_calibration_check, prices)
    return {"success": True, **quote.as_payload()}


@router.get(
    '/historical-spot',
    response_model=HistoricalSpotResponse,
    summary="Historical spot price",
    description="Spot price for one date with the tier it was resolved from (exact, interpolated, estimated, nearest, fallback).",
    tags=["Prices"],
)
def historical_spot(request: Request, date: Optional[str] = None, metal: Optional[str] = None):
    if not date:
        raise HTTPException(400, "Date parameter required (YYYY-MM-DD format)")
    if not DATE_RE.fullmatch(date):
        raise HTTPException(400, "Invalid date format. Use YYYY-MM-DD")
    metal_type = _metal(metal)
    result = _prices(request).historical_price(date, metal_type)
    return HistoricalSpotResponse(
        date=date,
        metal=metal_type,
        price=result.price,
        source=result.source.value,
        note=result.note,
    )


@router.post(
    '/historical-spot/bulk',
    response_model=BulkHistoricalResponse,
    summary="Bulk historical spot prices",
    description="Prices for up to 100 dates. Malformed dates are skipped.",
    tags=["Prices"],
)
def historical_spot_bulk(req: BulkHistoricalRequest, request: Request):
    if not isinstance(req.dates, list):
        raise HTTPException(400, "dates array required")
    metal_type = _metal(req.metal)
    prices = _prices(request)
    results: dict[str, float] = {}
    for day in req.dates[: settings.bulk_max_dates]:
        if isinstance(day, str) and DATE_RE.fullmatch(day):
            results[day] = prices.historical_price(day, metal_type).price
    return BulkHistoricalResponse(metal=metal_type, prices=results)


@router.get(
    '/etf-ratios',
    response_model=EtfRatioResponse,
    summary="ETF-to-spot ratios",
    description="SLV and GLD ratios in effect on a date (default today).",
    tags=["Prices"],
)
def etf_ratios(request: Request, date_str: Optional[str] = Query(default=None, alias="date")):
    calibrator = _prices(request).calibrator
    if date_str is None:
        day = calibrator.today()
    else:
        if not DATE_RE.fullmatch(date_str):
            raise HTTPException(400, "Invalid date format. Use YYYY-MM-DD")
        try:
            day = date.fromisoformat(date_str)
        except ValueError:
            raise HTTPException(400, "Invalid date format. Use YYYY-MM-DD")
    ratios = calibrator.get_ratio_for_date(day)
    last = calibrator.last_calibration_date()
    return EtfRatioResponse(
        date=day.isoformat(),
        slvRatio=ratios.slv_ratio,
        gldRatio=ratios.gld_ratio,
        lastCalibration=last.isoformat() if last else None,
    )


@router.post(
    '/scan-receipt',
    summary="Scan purchase receipt",
    description="Extracts purchase fields from a receipt image. The image is processed in memory only.",
    tags=["Vision"],
)
async def scan_receipt(request: Request, receipt: Optional[UploadFile] = File(default=None)):
    image, media_type = await _read_upload(receipt)
    try:
        data = await _vision(request).scan_receipt(image, media_type)
    except VisionError:
        raise HTTPException(500, RECEIPT_ERROR)
    return {
        "success": True,
        "data": data,
        "fieldsExtracted": sum(1 for v in data.values() if v is not None),
        "totalFields": len(data),
    }


@router.post(
    '/analyze-stack',
    summary="Analyze stack photo",
    description="Identifies coins and bars in a photo and estimates counts.",
    tags=["Vision"],
)
async def analyze_stack(request: Request, stack: Optional[UploadFile] = File(default=None)):
    image, media_type = await _read_upload(stack)
    try:
        data = await _vision(request).analyze_stack(image, media_type)
    except VisionError:
        raise HTTPException(500, STACK_ERROR)
    return {"success": True, "data": data}
