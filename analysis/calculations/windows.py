"""
Window selection utilities.
Pure functions for cutting trailing N-day windows out of a bar series.
"""

from typing import Dict, Iterable, List

from analysis.models import Bar, WindowKey


SECONDS_PER_DAY = 24 * 60 * 60


def sort_bars(bars: Iterable[Bar]) -> List[Bar]:
    """Return bars in ascending timestamp order."""
    return sorted(bars, key=lambda bar: bar.epoch)


def cut_window(bars: Iterable[Bar], window: WindowKey) -> List[Bar]:
    """
    Cut the trailing window ending at the latest bar.

    Keeps bars with ``anchor - days <= t <= anchor`` where the anchor is the
    chronologically last bar of the input, not the current time.

    Args:
        bars: Bar series in any order
        window: Trailing window to cut

    Returns:
        Ascending list of bars inside the window (empty for empty input)
    """
    ordered = sort_bars(bars)
    if not ordered:
        return []

    end_ts = ordered[-1].epoch
    start_ts = end_ts - window.days * SECONDS_PER_DAY

    return [bar for bar in ordered if start_ts <= bar.epoch <= end_ts]


def window_bar_counts(bars: Iterable[Bar]) -> Dict[str, int]:
    """
    Count bars inside each trailing window.

    Example:
        Daily bars for 100 consecutive days:
        - 7d: 8 bars (anchor day plus 7 days back, inclusive)
        - 90d: 91 bars
    """
    ordered = sort_bars(bars)
    return {key.value: len(cut_window(ordered, key)) for key in WindowKey}
