from typing import Optional
import pandas as pd
import structlog
import yfinance as yf

log = structlog.get_logger()


class YFinanceAdapter:
    """Latest ETF closes used as the numerator of the ETF-to-spot ratios."""
    def __init__(self, slv_symbol: str = "SLV", gld_symbol: str = "GLD", enabled: bool = True):
        self.slv_symbol = slv_symbol
        self.gld_symbol = gld_symbol
        self.enabled = enabled

    def last_price(self, symbol: str) -> Optional[float]:
        if not self.enabled:
            return None
        try:
            df = yf.Ticker(symbol).history(period="5d", interval="1d", auto_adjust=False)
        except Exception as e:
            log.warning("etf_quote_failed", symbol=symbol, error=str(e))
            return None
        if not isinstance(df, pd.DataFrame) or df.empty or "Close" not in df.columns:
            return None
        closes = pd.to_numeric(df["Close"], errors="coerce").dropna()
        if closes.empty:
            return None
        price = float(closes.iloc[-1])
        return price if price > 0 else None

    def current_etf_quotes(self) -> dict[str, Optional[float]]:
        return {
            "slv": self.last_price(self.slv_symbol),
            "gld": self.last_price(self.gld_symbol),
        }
