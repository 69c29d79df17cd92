"""
Top price calculation for a window.
"""

from typing import Sequence

from analysis.models import Bar, TopPriceMode


class TopPriceError(Exception):
    """Raised when top price cannot be calculated."""
    pass


def top_price(bars: Sequence[Bar], mode: TopPriceMode) -> float:
    """
    Highest price seen in a window.

    HIGH mode uses each bar's high, falling back to its close when the bar
    carries no high. CLOSE mode uses closes only.

    Raises:
        TopPriceError: If the window is empty
    """
    if not bars:
        raise TopPriceError("Insufficient data: need at least 1 bar")

    if mode == TopPriceMode.HIGH:
        return max(bar.high if bar.high is not None else bar.close for bar in bars)

    return max(bar.close for bar in bars)
