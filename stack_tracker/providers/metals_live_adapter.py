from __future__ import annotations
import httpx
import structlog

log = structlog.get_logger()


def _positive(value) -> float | None:
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if num > 0 else None


def parse_spot_payload(payload) -> tuple[float | None, float | None]:
    """Pull (gold, silver) out of the shapes the spot feed has been seen to return."""
    gold = silver = None
    if isinstance(payload, list):
        for row in payload:
            if not isinstance(row, dict):
                continue
            if "metal" in row:
                metal = str(row.get("metal", "")).lower()
                if metal == "gold" and gold is None:
                    gold = _positive(row.get("price"))
                elif metal == "silver" and silver is None:
                    silver = _positive(row.get("price"))
                continue
            if gold is None and "gold" in row:
                gold = _positive(row["gold"])
            if silver is None and "silver" in row:
                silver = _positive(row["silver"])
    elif isinstance(payload, dict):
        gold = _positive(payload.get("gold"))
        silver = _positive(payload.get("silver"))
    return gold, silver


class MetalsLiveAdapter:
    def __init__(self, url: str, timeout: float = 5.0, transport: httpx.AsyncBaseTransport | None = None):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def spot(self) -> tuple[float, float] | None:
        """Return (gold, silver) or None when the feed is down, slow or incomplete."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.get(self.url)
            if r.status_code != 200:
                log.warning("spot_fetch_bad_status", status=r.status_code)
                return None
            gold, silver = parse_spot_payload(r.json())
        except httpx.TimeoutException:
            log.warning("spot_fetch_timeout", timeout=self.timeout)
            return None
        except (httpx.HTTPError, ValueError) as e:
            log.warning("spot_fetch_failed", error=str(e))
            return None
        if gold is None or silver is None:
            log.warning("spot_fetch_incomplete", gold=gold, silver=silver)
            return None
        return gold, silver
