from __future__ import annotations
import io
from datetime import date
from typing import Optional

import httpx
import pandas as pd
import structlog

log = structlog.get_logger()


def _to_table(dates: pd.Series, values: pd.Series) -> dict[date, float]:
    d = pd.DataFrame({
        "date": pd.to_datetime(dates.astype(str).str.strip(), format="%Y-%m-%d", errors="coerce"),
        "value": pd.to_numeric(values, errors="coerce"),
    })
    d = d.dropna()
    d = d[d["value"] > 0]
    # later rows win for duplicate dates
    return {ts.date(): float(v) for ts, v in zip(d["date"], d["value"])}


def parse_gold_records(records) -> dict[date, float]:
    """Daily gold table from the JSON feed: a list of {"date": "YYYY-MM-DD", "price": ...}."""
    if not isinstance(records, list) or not records:
        return {}
    df = pd.DataFrame.from_records([r for r in records if isinstance(r, dict)])
    if df.empty or "date" not in df.columns or "price" not in df.columns:
        return {}
    return _to_table(df["date"], df["price"])


def parse_ratio_csv(text: str) -> dict[date, float]:
    """Gold/silver ratio table from the CSV feed: first column is the date, last column the ratio."""
    if not text or not text.strip():
        return {}
    df = pd.read_csv(io.StringIO(text), header=0, dtype=str, on_bad_lines="skip", skip_blank_lines=True)
    if df.empty or len(df.columns) < 2:
        return {}
    return _to_table(df.iloc[:, 0], df.iloc[:, -1])


class FreeGoldAdapter:
    def __init__(self, gold_url: str, ratio_url: str, timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None):
        self.gold_url = gold_url
        self.ratio_url = ratio_url
        self.timeout = timeout
        self.transport = transport

    async def _get(self, client: httpx.AsyncClient, url: str) -> Optional[httpx.Response]:
        try:
            r = await client.get(url)
        except httpx.HTTPError as e:
            log.warning("historical_fetch_failed", url=url, error=str(e))
            return None
        if r.status_code != 200:
            log.warning("historical_fetch_bad_status", url=url, status=r.status_code)
            return None
        return r

    async def gold_prices(self) -> Optional[dict[date, float]]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport, follow_redirects=True) as client:
            r = await self._get(client, self.gold_url)
        if r is None:
            return None
        try:
            return parse_gold_records(r.json())
        except ValueError as e:
            log.warning("historical_gold_parse_failed", error=str(e))
            return None

    async def gold_silver_ratios(self) -> Optional[dict[date, float]]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport, follow_redirects=True) as client:
            r = await self._get(client, self.ratio_url)
        if r is None:
            return None
        try:
            return parse_ratio_csv(r.text)
        except (ValueError, pd.errors.ParserError) as e:
            log.warning("historical_ratio_parse_failed", error=str(e))
            return None
