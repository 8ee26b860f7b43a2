from pathlib import Path
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

# Load .env from repo root for local development and scripts.
ENV_PATH = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(dotenv_path=ENV_PATH)

class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=True, populate_by_name=True)
    anthropic_api_key: str | None = Field(default=None, alias="ANTHROPIC_API_KEY")
    vision_model: str = Field(default="claude-sonnet-4-20250514", alias="VISION_MODEL")
    ratio_db_path: str | None = Field(default=None, alias="RATIO_DB_PATH")
    spot_api_url: str = Field(default="https://api.metals.live/v1/spot", alias="SPOT_API_URL")
    spot_cache_ttl_seconds: float = Field(default=300.0, alias="SPOT_CACHE_TTL_SECONDS")
    spot_fetch_timeout_seconds: float = Field(default=5.0, alias="SPOT_FETCH_TIMEOUT_SECONDS")
    default_silver_spot: float = Field(default=30.50, alias="DEFAULT_SILVER_SPOT")
    default_gold_spot: float = Field(default=2650.00, alias="DEFAULT_GOLD_SPOT")
    historical_gold_url: str = Field(default="https://freegoldapi.com/data/latest.json", alias="HISTORICAL_GOLD_URL")
    historical_ratio_url: str = Field(
        default="https://freegoldapi.com/data/gold_silver_ratio_enriched.csv", alias="HISTORICAL_RATIO_URL"
    )
    historical_fetch_timeout_seconds: float = Field(default=30.0, alias="HISTORICAL_FETCH_TIMEOUT_SECONDS")
    historical_refresh_hours: int = Field(default=24, alias="HISTORICAL_REFRESH_HOURS")
    nearest_max_days: int = Field(default=30, alias="NEAREST_MAX_DAYS")
    typical_gold_silver_ratio: float = Field(default=80.0, alias="TYPICAL_GOLD_SILVER_RATIO")
    default_slv_ratio: float = Field(default=0.92, alias="DEFAULT_SLV_RATIO")
    default_gld_ratio: float = Field(default=0.092, alias="DEFAULT_GLD_RATIO")
    slv_symbol: str = Field(default="SLV", alias="SLV_SYMBOL")
    gld_symbol: str = Field(default="GLD", alias="GLD_SYMBOL")
    calibration_check_minutes: int = Field(default=60, alias="CALIBRATION_CHECK_MINUTES")
    bulk_max_dates: int = Field(default=100, alias="BULK_MAX_DATES")
    upload_max_bytes: int = Field(default=10 * 1024 * 1024, alias="UPLOAD_MAX_BYTES")
    scheduler_enabled: int = Field(default=1, alias="SCHEDULER_ENABLED")
    rate_limit: str = Field(default="100/15minutes", alias="RATE_LIMIT")
    rate_limit_enabled: int = Field(default=1, alias="RATE_LIMIT_ENABLED")

settings = Settings()
