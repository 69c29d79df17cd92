"""
Returns calculation utilities.
Pure functions for start-to-end returns over a window.
"""

from typing import List, Tuple


class ReturnsError(Exception):
    """Raised when returns calculation fails."""
    pass


def _validate_pair(start: float, end: float) -> None:
    if start <= 0 or end <= 0:
        raise ReturnsError("Zero or negative prices not allowed")


def return_pct(start: float, end: float) -> float:
    """
    Percentage return from start to end.

    Formula: R = (P_end / P_start - 1) * 100

    Args:
        start: First close in the window
        end: Last close in the window

    Returns:
        Return in percent (5.0 = 5%)

    Raises:
        ReturnsError: If either price is zero or negative
    """
    _validate_pair(start, end)
    return (end / start - 1) * 100


def return_dollar(start: float, end: float) -> float:
    """
    Absolute price change from start to end.

    Raises:
        ReturnsError: If either price is zero or negative
    """
    _validate_pair(start, end)
    return end - start


def window_endpoints(closes: List[float]) -> Tuple[float, float]:
    """
    First and last close of a window.

    Raises:
        ReturnsError: If fewer than 2 closes are given
    """
    if len(closes) < 2:
        raise ReturnsError("Insufficient data: need at least 2 prices")
    return closes[0], closes[-1]
