"""
Tests for trailing window selection.
"""

from datetime import datetime, timedelta, timezone

from analysis.calculations.windows import cut_window, window_bar_counts, sort_bars
from analysis.models import Bar, WindowKey


def daily_bars(n, start=datetime(2024, 1, 1)):
    """n consecutive daily bars with closes 1..n."""
    return [Bar(timestamp=start + timedelta(days=i), close=float(i + 1)) for i in range(n)]


class TestCutWindow:
    """Tests for cut_window function."""

    def test_cut_window_empty(self):
        """Empty input is an empty window, not an error."""
        assert cut_window([], WindowKey.D30) == []

    def test_cut_window_sorts_input(self):
        """Unsorted input comes back ascending."""
        bars = daily_bars(10)
        shuffled = [bars[3], bars[9], bars[0], bars[5], bars[1]]

        result = cut_window(shuffled, WindowKey.D30)

        assert [b.close for b in result] == [1.0, 2.0, 4.0, 6.0, 10.0]

    def test_cut_window_inclusive_boundary(self):
        """A bar exactly N days before the anchor is included."""
        anchor = datetime(2024, 3, 1, 16, 0)
        bars = [
            Bar(timestamp=anchor - timedelta(days=7, seconds=1), close=1.0),
            Bar(timestamp=anchor - timedelta(days=7), close=2.0),
            Bar(timestamp=anchor - timedelta(days=3), close=3.0),
            Bar(timestamp=anchor, close=4.0),
        ]

        result = cut_window(bars, WindowKey.D7)

        assert [b.close for b in result] == [2.0, 3.0, 4.0]

    def test_cut_window_anchored_at_last_bar(self):
        """The anchor is the last bar, not the current time."""
        bars = daily_bars(20, start=datetime(2015, 6, 1))

        result = cut_window(bars, WindowKey.D7)

        # Anchor 2015-06-20, window back to 2015-06-13 inclusive
        assert len(result) == 8
        assert result[-1].close == 20.0
        assert result[0].close == 13.0

    def test_cut_window_mixed_timezones(self):
        """Aware and naive timestamps compare as absolute instants."""
        base = datetime(2024, 5, 10, tzinfo=timezone.utc)
        bars = [
            Bar(timestamp=base - timedelta(days=40), close=1.0),
            Bar(timestamp=base - timedelta(days=2), close=2.0),
            Bar(timestamp=base, close=3.0),
        ]

        assert [b.close for b in cut_window(bars, WindowKey.D30)] == [2.0, 3.0]

    def test_cut_window_single_bar(self):
        """One bar is valid output at this layer."""
        bars = [Bar(timestamp=datetime(2024, 1, 1), close=10.0)]
        assert len(cut_window(bars, WindowKey.D90)) == 1


class TestWindowBarCounts:
    """Tests for window_bar_counts function."""

    def test_window_bar_counts_daily_series(self):
        """Each window includes the anchor day plus N days back."""
        counts = window_bar_counts(daily_bars(100))

        assert counts == {'7d': 8, '30d': 31, '60d': 61, '90d': 91}

    def test_window_bar_counts_monotonic(self):
        """Longer windows never hold fewer bars on the same series."""
        # Trading-day-like series with weekend gaps
        start = datetime(2024, 1, 1)
        bars = [
            Bar(timestamp=start + timedelta(days=i), close=100.0 + i)
            for i in range(150) if (start + timedelta(days=i)).weekday() < 5
        ]

        counts = window_bar_counts(bars)

        assert counts['7d'] <= counts['30d'] <= counts['60d'] <= counts['90d']

    def test_sort_bars_stable_order(self):
        """sort_bars orders by timestamp ascending."""
        bars = daily_bars(3)
        assert sort_bars(reversed(bars)) == bars
