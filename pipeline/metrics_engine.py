"""
Daily metrics engine - get-or-compute orchestration per symbol.
Composes: Cache read -> Provider fetch -> Spot fold -> Window metrics -> Cache write.

A cache entry is valid for the local calendar day it was computed on. Stale
or missing entries are recomputed from a freshly fetched bar series and
replaced wholesale, never patched.
"""

import logging
import time
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, List, Optional, Tuple

from analysis.calculations.windows import sort_bars, window_bar_counts
from analysis.models import Bar, MetricsCacheEntry, WindowKey
from analysis.window_metrics import compose_all_windows
from ingestion.providers.base import PriceHistoryProvider, PriceQuote
from pipeline.config import EngineConfig
from storage.metrics_cache import MetricsCacheStore, seconds_until_next_midnight

logger = logging.getLogger(__name__)

# Spot bars younger than this replace the latest bar instead of appending
INTRADAY_UPDATE_SECONDS = 3600

# High/low estimate around spot when the provider has no intraday range
SPOT_RANGE_ESTIMATE = 0.005


class NoHistoricalData(Exception):
    """Raised when no usable price history can be obtained for a symbol."""

    def __init__(self, symbol: str, reason: Optional[str] = None):
        self.symbol = symbol
        self.reason = reason
        message = f"No historical data available for {symbol}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


def normalize_symbol(symbol: str) -> str:
    """Canonical symbol form used as the cache key."""
    if not symbol or not isinstance(symbol, str) or not symbol.strip():
        raise ValueError("symbol must be non-empty string")
    return symbol.strip().upper()


def _local_date(ts: datetime) -> date:
    return ts.astimezone().date() if ts.tzinfo is not None else ts.date()


def _start_of_day(now: datetime) -> datetime:
    """Local midnight of the day containing ``now``, aware if ``now`` is."""
    midnight = datetime.combine(_local_date(now), datetime.min.time())
    return midnight.astimezone() if now.tzinfo is not None else midnight


def fold_spot_price(bars: List[Bar], spot: float, now: datetime) -> List[Bar]:
    """
    Fold a spot price into a bar series as its most recent observation.

    If the latest bar is more than an hour old and from an earlier day, a
    new bar dated at the start of today is appended with high/low
    estimated around spot. Otherwise the latest bar is updated in place so
    the day is not duplicated.

    Returns:
        New ascending list; the input is left untouched
    """
    ordered = sort_bars(bars)

    if not ordered:
        return [_spot_bar(spot, now)]

    last = ordered[-1]
    age_seconds = now.timestamp() - last.epoch

    if age_seconds <= INTRADAY_UPDATE_SECONDS or _local_date(last.timestamp) == _local_date(now):
        ordered[-1] = replace(
            last,
            close=spot,
            high=max(last.high if last.high is not None else spot, spot),
            low=min(last.low if last.low is not None else spot, spot),
        )
    else:
        ordered.append(_spot_bar(spot, now))

    return ordered


def _spot_bar(spot: float, now: datetime) -> Bar:
    return Bar(
        timestamp=_start_of_day(now),
        open=spot,
        high=spot * (1 + SPOT_RANGE_ESTIMATE),
        low=spot * (1 - SPOT_RANGE_ESTIMATE),
        close=spot,
    )


class DailyMetricsEngine:
    """
    Owns the lifecycle of daily cache entries.

    Callers read through ``get_metrics``, which returns today's entry or
    recomputes it. Two concurrent calls for the same symbol may both
    recompute; the later write wins and both results are identical.
    """

    def __init__(
        self,
        provider: PriceHistoryProvider,
        store: MetricsCacheStore,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.provider = provider
        self.store = store
        self.config = config if config is not None else EngineConfig()
        self._clock = clock

    def today_key(self) -> str:
        """Current local calendar date as YYYY-MM-DD."""
        return _local_date(self._clock()).isoformat()

    async def load_cache(self, symbol: str) -> Optional[MetricsCacheEntry]:
        """
        Return the cached entry only if it was computed today.

        Store read errors are logged and treated as a miss.
        """
        symbol = normalize_symbol(symbol)
        today = self.today_key()

        try:
            entry = await self.store.get(symbol)
        except Exception as e:
            logger.warning("Cache read error for %s: %s", symbol, e)
            return None

        if entry is None:
            return None

        if not entry.is_fresh(today):
            logger.info("Cached metrics for %s are stale (%s, today %s)", symbol, entry.date, today)
            return None

        logger.info("Loaded cached metrics for %s (%s)", symbol, entry.date)
        return entry

    async def get_metrics(self, symbol: str) -> MetricsCacheEntry:
        """
        Return today's metrics for a symbol, computing them if needed.

        Raises:
            NoHistoricalData: If the provider fails or returns no bars
        """
        symbol = normalize_symbol(symbol)

        cached = await self.load_cache(symbol)
        if cached is not None:
            return cached

        return await self.update_cache(symbol)

    async def update_cache(self, symbol: str) -> MetricsCacheEntry:
        """
        Fetch, compute and persist a fresh entry for a symbol.

        Windows without enough bars are omitted; an entry whose metrics map
        is empty is still cached so the same day does not refetch. A store
        write failure is logged and the fresh entry is returned anyway.

        Raises:
            NoHistoricalData: If the provider fails or returns no bars
        """
        symbol = normalize_symbol(symbol)
        logger.info("Updating metrics cache for %s", symbol)
        started = time.perf_counter()

        quote, bars = await self._fetch(symbol)
        if not bars:
            raise NoHistoricalData(symbol, "provider returned an empty series")

        logger.info("%s: retrieved %d bars, spot $%.2f (%s)",
                    symbol, len(bars), quote.price, quote.data_source)

        now = self._clock()
        if self.config.fold_spot_price:
            bars = fold_spot_price(bars, quote.price, now)
        else:
            bars = sort_bars(bars)

        metrics = compose_all_windows(
            symbol, bars,
            top_price_mode=self.config.top_price_mode,
            risk_free_rate=self.config.risk_free_rate
        )

        if len(metrics) < len(WindowKey):
            logger.info("%s: omitted %d windows, bars per window: %s",
                        symbol, len(WindowKey) - len(metrics), window_bar_counts(bars))

        if metrics:
            summary = ', '.join(
                f"{key.value}: {m.return_pct:+.2f}% return, {m.volatility_annual:.2f}% vol"
                for key, m in metrics.items()
            )
            logger.info("%s: calculated %d windows in %.0fms (%s)",
                        symbol, len(metrics), (time.perf_counter() - started) * 1000, summary)
        else:
            logger.warning("%s: no window has enough bars, caching empty metrics", symbol)

        entry = MetricsCacheEntry(
            date=_local_date(now).isoformat(),
            symbol=symbol,
            bars=bars,
            metrics=metrics,
            current_price=quote.price,
            data_source=quote.data_source,
        )

        ttl_seconds = seconds_until_next_midnight(now)
        try:
            await self.store.put(symbol, entry, ttl_seconds)
        except Exception as e:
            logger.error("Cache write failed for %s, returning uncached metrics: %s", symbol, e)
        else:
            logger.info("%s: cached metrics for %.0f minutes", symbol, ttl_seconds / 60)

        return entry

    async def _fetch(self, symbol: str) -> Tuple[PriceQuote, List[Bar]]:
        try:
            quote = await self.provider.get_spot(symbol)
            bars = await self.provider.get_bars(symbol, self.config.lookback_days)
        except Exception as e:
            logger.error("Price fetch failed for %s: %s", symbol, e)
            raise NoHistoricalData(symbol, str(e)) from e

        return quote, list(bars)
