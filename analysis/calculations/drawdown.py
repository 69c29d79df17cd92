"""
Drawdown calculation utilities.
Pure functions for maximum drawdown analysis.
"""

from typing import List

import numpy as np


class DrawdownError(Exception):
    """Raised when drawdown calculation fails."""
    pass


def _drawdown_curve(prices: List[float]) -> np.ndarray:
    if len(prices) == 0:
        raise DrawdownError("Insufficient data: need at least 1 price")

    if any(p <= 0 for p in prices):
        raise DrawdownError("Zero or negative prices not allowed")

    prices_array = np.array(prices, dtype=float)
    running_max = np.maximum.accumulate(prices_array)
    return (prices_array / running_max - 1) * 100


def max_drawdown_pct(prices: List[float]) -> float:
    """
    Worst peak-to-later-price decline, in percent.

    Walks prices left to right tracking the running peak. The result is
    never positive; a series that never dips below a prior peak gives 0.

    Args:
        prices: Closing prices in chronological order

    Returns:
        Maximum drawdown in percent (-12.5 = 12.5% decline)

    Raises:
        DrawdownError: If prices are empty or not positive
    """
    drawdowns = _drawdown_curve(prices)
    return min(0.0, float(np.min(drawdowns)))
