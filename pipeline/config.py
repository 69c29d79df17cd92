"""
Engine configuration - defaults, environment overrides, and validation.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from analysis.models import TopPriceMode, WindowKey

# Load environment variables
load_dotenv()

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}
_FALSE_VALUES = {'0', 'false', 'no', 'off'}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default

    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass
class EngineConfig:
    """Configuration for the daily metrics engine and batch refresh."""
    risk_free_rate: float = 0.02
    top_price_mode: TopPriceMode = TopPriceMode.HIGH
    lookback_days: int = 120
    batch_size: int = 5
    fetch_timeout_s: float = 30.0
    fold_spot_price: bool = True
    cache_db_path: str = './data/metrics_cache.db'

    def __post_init__(self):
        """Validate and coerce values."""
        self.top_price_mode = TopPriceMode(self.top_price_mode)

        if not 0 <= self.risk_free_rate < 1:
            raise ValueError("risk_free_rate must be in [0, 1)")

        # Must cover the largest window
        longest = max(key.days for key in WindowKey)
        if self.lookback_days < longest:
            raise ValueError(f"lookback_days must be >= {longest}")

        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")

        if self.fetch_timeout_s <= 0:
            raise ValueError("fetch_timeout_s must be positive")

        if not self.cache_db_path:
            raise ValueError("cache_db_path must be non-empty")

    @classmethod
    def from_env(cls) -> 'EngineConfig':
        """Build configuration from environment variables (and .env)."""
        return cls(
            risk_free_rate=float(os.getenv('METRICS_RISK_FREE_RATE', '0.02')),
            top_price_mode=TopPriceMode(os.getenv('METRICS_TOP_PRICE_MODE', 'high').strip().lower()),
            lookback_days=int(os.getenv('METRICS_LOOKBACK_DAYS', '120')),
            batch_size=int(os.getenv('METRICS_BATCH_SIZE', '5')),
            fetch_timeout_s=float(os.getenv('REQUESTS_TIMEOUT_S', '30')),
            fold_spot_price=_env_bool('METRICS_FOLD_SPOT_PRICE', True),
            cache_db_path=os.getenv('METRICS_CACHE_DB', './data/metrics_cache.db'),
        )
