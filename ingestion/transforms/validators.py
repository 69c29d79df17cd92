"""
Core validators for canonical price rows.
Pure functions - no IO, network, or side effects.
"""

import math
from datetime import date
from typing import Any, Dict


class ValidationError(ValueError):
    """Raised when data validation fails."""
    pass


def _check_price(field: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be numeric, got {type(value)}")

    if not math.isfinite(value):
        raise ValidationError(f"{field} must be finite, got {value}")

    if value <= 0:
        raise ValidationError(f"{field} must be positive, got {value}")


def validate_prices_row(row: Dict[str, Any]) -> None:
    """
    Validate a canonical prices row.

    Close is mandatory; open, high, low and volume may be None.

    Args:
        row: Dictionary containing price data

    Raises:
        ValidationError: If validation fails
    """
    required_keys = {'ticker', 'date', 'close', 'source'}

    missing = required_keys - set(row.keys())
    if missing:
        raise ValidationError(f"Missing required keys: {missing}")

    if not isinstance(row['ticker'], str):
        raise ValidationError(f"ticker must be string, got {type(row['ticker'])}")

    if not isinstance(row['date'], date):
        raise ValidationError(f"date must be date, got {type(row['date'])}")

    if not isinstance(row['source'], str):
        raise ValidationError(f"source must be string, got {type(row['source'])}")

    if row['close'] is None:
        raise ValidationError("close is required")
    _check_price('close', row['close'])

    for field in ['open', 'high', 'low', 'adj_close']:
        if row.get(field) is not None:
            _check_price(field, row[field])

    volume = row.get('volume')
    if volume is not None:
        if not isinstance(volume, int):
            raise ValidationError(f"volume must be integer, got {type(volume)}")
        if volume < 0:
            raise ValidationError(f"volume must be non-negative, got {volume}")

    high = row.get('high')
    low = row.get('low')

    if high is not None and low is not None and high < low:
        raise ValidationError(f"high ({high}) must be >= low ({low})")

    if high is not None and high < row['close']:
        raise ValidationError(f"high ({high}) must be >= close ({row['close']})")

    if low is not None and low > row['close']:
        raise ValidationError(f"low ({low}) must be <= close ({row['close']})")
