"""
Normalizers for transforming provider data to canonical shape.
Pure functions - no IO, network, or side effects.
Minimal normalization - only when necessary.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from analysis.models import Bar


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def normalize_prices(
    raw_rows: List[Dict[str, Any]],
    *,
    ticker: str,
    source: str
) -> List[Dict[str, Any]]:
    """
    Transform provider-native price rows to canonical shape.

    Minimal normalization:
    - Date strings to date objects
    - Field name mapping (provider uses capitalized names)
    - Missing OHLC fields stay None instead of being invented
    - Deduplication by date (keep last to handle corrections)

    Args:
        raw_rows: List of provider-specific price dictionaries
        ticker: Stock ticker symbol
        source: Data provider name

    Returns:
        List of canonical price dictionaries in original order
    """
    if not raw_rows:
        return []

    seen_dates = {}

    for raw in raw_rows:
        date_val = raw.get('Date', '')
        if isinstance(date_val, str):
            row_date = date.fromisoformat(date_val)
        elif isinstance(date_val, datetime):
            row_date = date_val.date()
        else:
            row_date = date_val

        canonical = {
            'ticker': ticker,
            'date': row_date,
            'open': _optional_float(raw.get('Open')),
            'high': _optional_float(raw.get('High')),
            'low': _optional_float(raw.get('Low')),
            'close': _optional_float(raw.get('Close')),
            'adj_close': _optional_float(raw.get('Adj Close')),
            'volume': int(raw['Volume']) if raw.get('Volume') is not None else None,
            'source': source,
        }

        # Later rows for the same date are corrections
        seen_dates[row_date] = canonical

    return list(seen_dates.values())


def row_to_bar(row: Dict[str, Any]) -> Bar:
    """Build a Bar from a validated canonical price row."""
    return Bar(
        timestamp=row['date'],
        close=row['close'],
        open=row.get('open'),
        high=row.get('high'),
        low=row.get('low'),
    )
