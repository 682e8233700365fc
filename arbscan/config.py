from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings

_PACKAGE_DIR = Path(__file__).parent.resolve()
_PROJECT_ROOT = _PACKAGE_DIR.parent


class Settings(BaseSettings):
    # API Base URLs
    GAMMA_API_URL: str = "https://gamma-api.polymarket.com"
    CLOB_API_URL: str = "https://clob.polymarket.com"

    # Upstream timeouts and pacing
    HTTP_TIMEOUT_SECONDS: float = 10.0  # Event/market page fetches
    PRICE_LOOKUP_TIMEOUT_SECONDS: float = 5.0  # Per order-book lookup
    REQUEST_DELAY_SECONDS: float = 0.03  # Between per-outcome price lookups
    PAGE_DELAY_SECONDS: float = 0.05  # Between paginated fetches
    PAGE_SIZE: int = 50

    # Concurrent trigger handling
    SCAN_WAIT_TIMEOUT_SECONDS: float = 60.0
    SCAN_WAIT_POLL_SECONDS: float = 0.5

    # Scan tunables (defaults for ScanConfig)
    FEE_RATE: float = 0.02  # Flat fee against the $1 settlement leg
    ALPHA_EXTRACTION: float = 0.9  # Fraction of Bregman profit treated as extractable
    MIN_LIQUIDITY: float = 100.0  # Minimum per-outcome liquidity in USD
    MAX_EVENTS: int = 100  # Type 1 events fetched per scan
    MIN_MISPRICING: float = 0.05  # |sum - 1| below this is not arbitrage

    # Cross-market (Type 2)
    MAX_MARKETS_TO_SCAN: int = 500
    MIN_SUBJECT_SIMILARITY: float = 0.4

    # Settlement lag (Type 3)
    SETTLEMENT_LAG_MAX_MARKETS: int = 300
    SETTLEMENT_LAG_LOOKBACK_DAYS: int = 90

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    @field_validator("GAMMA_API_URL", "CLOB_API_URL", mode="before")
    @classmethod
    def _normalize_url_field(cls, value: object) -> object:
        """Trim accidental quotes/whitespace and trailing slashes from URL env vars."""
        if value is None:
            return value
        text = str(value).strip().strip('"').strip("'")
        return text.rstrip("/")

    class Config:
        env_file = str(_PROJECT_ROOT / ".env")
        env_file_encoding = "utf-8"


settings = Settings()


class ScanConfig(BaseModel):
    """Runtime tunables shared by every scan type.

    Instances are immutable; ``ArbitrageScanService.set_config`` builds a new
    one and swaps it in, so a scan that already started keeps the values it
    began with.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    fee_rate: float = Field(default=0.02, ge=0.0, lt=0.5)
    alpha_extraction: float = Field(default=0.9, gt=0.0, le=1.0)
    min_liquidity: float = Field(default=100.0, ge=0.0)
    max_events: int = Field(default=100, ge=1, le=5000)
    min_mispricing: float = Field(default=0.05, ge=0.0, lt=1.0)

    @classmethod
    def from_settings(cls, source: Settings) -> "ScanConfig":
        return cls(
            fee_rate=source.FEE_RATE,
            alpha_extraction=source.ALPHA_EXTRACTION,
            min_liquidity=source.MIN_LIQUIDITY,
            max_events=source.MAX_EVENTS,
            min_mispricing=source.MIN_MISPRICING,
        )
