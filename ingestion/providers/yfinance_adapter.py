"""
yfinance adapter - fetch price data from Yahoo Finance.
Network IO allowed here, but minimal business logic.
"""

import asyncio
import logging
import math
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional

import pandas as pd
import yfinance as yf

from analysis.models import Bar
from ingestion.providers.base import PriceProviderError, PriceQuote
from ingestion.transforms.normalizers import normalize_prices, row_to_bar
from ingestion.transforms.validators import ValidationError, validate_prices_row

logger = logging.getLogger(__name__)

SOURCE_LIVE = 'yfinance'
SOURCE_LAST_CLOSE = 'yfinance-last-close'


class YFinanceError(PriceProviderError):
    """Raised when yfinance operations fail."""
    pass


def fetch_prices_window(ticker: str, start: date, end: date) -> List[Dict[str, Any]]:
    """
    Fetch price data for a ticker within date window.
    Returns raw data in provider format - no normalization.

    Args:
        ticker: Stock ticker symbol (e.g., 'AAPL')
        start: Start date (inclusive)
        end: End date (inclusive)

    Returns:
        List of raw price dictionaries in yfinance format

    Raises:
        YFinanceError: If fetch fails or validation fails
    """
    _validate_date_range(start, end)
    _validate_ticker(ticker)

    try:
        # yfinance uses exclusive end dates, so add 1 day
        yf_end = end + timedelta(days=1)

        data = yf.download(
            ticker,
            start=start.isoformat(),
            end=yf_end.isoformat(),
            progress=False,
            auto_adjust=False
        )

        if data is None or data.empty:
            return []

        # Multi-level columns come back as (field, ticker)
        if isinstance(data.columns, pd.MultiIndex):
            data.columns = data.columns.get_level_values(0)

        rows = []
        for date_idx, row in data.iterrows():
            row_dict = {'Date': date_idx.strftime('%Y-%m-%d')}

            for field in ['Open', 'High', 'Low', 'Close', 'Adj Close', 'Volume']:
                if field in data.columns and pd.notna(row[field]):
                    row_dict[field] = float(row[field]) if field != 'Volume' else int(row[field])

            rows.append(row_dict)

        return rows

    except Exception as e:
        raise YFinanceError(f"Failed to fetch prices for {ticker}: {str(e)}") from e


def fetch_spot_price(ticker: str) -> Optional[float]:
    """
    Fetch the latest traded price for a ticker.

    Returns:
        Last price, or None when Yahoo has no usable quote

    Raises:
        YFinanceError: If the request fails
    """
    _validate_ticker(ticker)

    try:
        price = yf.Ticker(ticker).fast_info['lastPrice']
    except KeyError:
        return None
    except Exception as e:
        raise YFinanceError(f"Failed to fetch spot price for {ticker}: {str(e)}") from e

    if price is None:
        return None

    price = float(price)
    if not math.isfinite(price) or price <= 0:
        return None
    return price


def rows_to_bars(raw_rows: List[Dict[str, Any]], ticker: str) -> List[Bar]:
    """
    Normalize and validate raw yfinance rows into bars.
    Invalid rows are dropped with a warning.
    """
    bars = []
    for row in normalize_prices(raw_rows, ticker=ticker, source=SOURCE_LIVE):
        try:
            validate_prices_row(row)
        except ValidationError as e:
            logger.warning("Dropping invalid row for %s %s: %s", ticker, row.get('date', 'unknown'), e)
            continue
        bars.append(row_to_bar(row))
    return bars


class YFinancePriceProvider:
    """
    Async price-history provider backed by yfinance.

    Blocking yfinance calls run in worker threads; each call is bounded
    by ``timeout_s``.
    """

    def __init__(self, timeout_s: float = 30.0, today: Callable[[], date] = date.today):
        if timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        self.timeout_s = timeout_s
        self._today = today

    async def get_bars(self, symbol: str, lookback_days: int) -> List[Bar]:
        end = self._today()
        start = end - timedelta(days=lookback_days)

        raw_rows = await self._call(fetch_prices_window, symbol, start, end)
        bars = rows_to_bars(raw_rows, symbol)

        logger.debug("Fetched %d bars for %s (%s to %s)", len(bars), symbol, start, end)
        return bars

    async def get_spot(self, symbol: str) -> PriceQuote:
        price = await self._call(fetch_spot_price, symbol)
        if price is not None:
            return PriceQuote(price=price, data_source=SOURCE_LIVE)

        # No live quote (e.g. market closed) - fall back to the latest daily close
        end = self._today()
        raw_rows = await self._call(fetch_prices_window, symbol, end - timedelta(days=7), end)
        bars = rows_to_bars(raw_rows, symbol)
        if not bars:
            raise YFinanceError(f"No spot price available for {symbol}")

        latest = max(bars, key=lambda bar: bar.epoch)
        return PriceQuote(price=latest.close, data_source=SOURCE_LAST_CLOSE)

    async def _call(self, func: Callable, *args):
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.timeout_s)
        except asyncio.TimeoutError as e:
            name = getattr(func, '__name__', 'yfinance call')
            raise YFinanceError(f"{name} timed out after {self.timeout_s}s for {args[0]}") from e


def _validate_date_range(start: date, end: date) -> None:
    """
    Validate date range parameters.

    Args:
        start: Start date
        end: End date

    Raises:
        YFinanceError: If validation fails
    """
    if start > end:
        raise YFinanceError(f"start date ({start}) must be <= end date ({end})")

    # Don't allow future dates
    today = date.today()
    if start > today or end > today:
        raise YFinanceError("Future dates not allowed for historical data")

    # Reasonable range limit (prevent excessive API calls)
    max_days = 365 * 3  # 3 years
    if (end - start).days > max_days:
        raise YFinanceError(f"Date range too long (max {max_days} days)")


def _validate_ticker(ticker: str) -> None:
    """
    Basic ticker validation.

    Args:
        ticker: Stock ticker symbol

    Raises:
        YFinanceError: If ticker is invalid
    """
    if not ticker or not isinstance(ticker, str):
        raise YFinanceError("Ticker must be non-empty string")

    if len(ticker) > 10:  # Reasonable limit
        raise YFinanceError("Ticker too long (max 10 characters)")

    # Allow alphanumeric plus common ticker chars
    allowed_chars = set('ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789.-^=')
    if not set(ticker.upper()).issubset(allowed_chars):
        raise YFinanceError(f"Ticker contains invalid characters: {ticker}")
