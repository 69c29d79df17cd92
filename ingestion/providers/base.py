"""
Price-history provider interface consumed by the metrics engine.
"""

from dataclasses import dataclass
from typing import List, Protocol

from analysis.models import Bar


class PriceProviderError(Exception):
    """Raised when a provider cannot deliver prices."""
    pass


@dataclass(frozen=True)
class PriceQuote:
    """Spot price plus the label of the source it came from."""
    price: float
    data_source: str


class PriceHistoryProvider(Protocol):
    """
    Source of daily bars and spot prices.

    Implementations own their fetch timeout and raise PriceProviderError
    (or TimeoutError) on failure.
    """

    async def get_bars(self, symbol: str, lookback_days: int) -> List[Bar]:
        ...

    async def get_spot(self, symbol: str) -> PriceQuote:
        ...
