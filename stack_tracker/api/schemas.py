from pydantic import BaseModel
from typing import Any, Optional

class BulkHistoricalRequest(BaseModel):
    # Checked in the route so a bad value gets the same 400 envelope as other input errors.
    dates: Any = None
    metal: Optional[str] = None

class HistoricalSpotResponse(BaseModel):
    success: bool = True
    date: str
    metal: str
    price: float
    source: str
    note: str

class BulkHistoricalResponse(BaseModel):
    success: bool = True
    metal: str
    prices: dict[str, float]

class EtfRatioResponse(BaseModel):
    success: bool = True
    date: str
    slvRatio: float
    gldRatio: float
    lastCalibration: Optional[str] = None
