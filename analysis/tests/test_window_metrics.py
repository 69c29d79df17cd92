"""
Tests for the window metrics composer.
Scenario tests with known answers plus invariants over random series.
"""

from datetime import datetime, timedelta

import numpy as np
import pytest

from analysis.models import Bar, TopPriceMode, WindowKey, round2
from analysis.window_metrics import (
    compose_window_metrics,
    compose_all_windows,
    InsufficientWindowData
)


def bars_from_closes(closes, start=datetime(2024, 1, 1), highs=None):
    """Consecutive daily bars for the given closes."""
    bars = []
    for i, close in enumerate(closes):
        high = highs[i] if highs is not None else None
        bars.append(Bar(timestamp=start + timedelta(days=i), close=close, high=high))
    return bars


def random_walk(rng, n=120, vol=0.02, start=100.0):
    return list(start * np.exp(np.cumsum(rng.normal(0.0005, vol, n))))


class TestComposeScenarios:
    """Known-answer scenarios."""

    def test_flat_series(self):
        """Flat series: every metric is zero."""
        m = compose_window_metrics('FLAT', bars_from_closes([100.0] * 5), WindowKey.D30)

        assert m.return_pct == 0.0
        assert m.return_dollar == 0.0
        assert m.volatility_annual == 0.0
        assert m.sharpe == 0.0
        assert m.max_drawdown_pct == 0.0

    def test_rising_series(self):
        """Monotonic rise: 20% return and no drawdown."""
        m = compose_window_metrics('UP', bars_from_closes([100.0, 105.0, 110.0, 115.0, 120.0]), WindowKey.D30)

        assert m.return_pct == 20.0
        assert m.return_dollar == 20.0
        assert m.max_drawdown_pct == 0.0
        assert m.start_price == 100.0
        assert m.end_price == 120.0

    def test_peak_then_crash(self):
        """100 -> 150 -> 75: drawdown measured from the 150 peak."""
        m = compose_window_metrics('CRASH', bars_from_closes([100.0, 150.0, 75.0]), WindowKey.D7)

        assert m.max_drawdown_pct == -50.0
        assert m.return_pct == -25.0
        assert m.return_dollar == -25.0

    def test_single_bar_window_raises(self):
        """Only one bar inside the window: no partial result."""
        bars = [
            Bar(timestamp=datetime(2024, 1, 1), close=100.0),
            Bar(timestamp=datetime(2024, 1, 21), close=110.0),
        ]

        with pytest.raises(InsufficientWindowData) as exc_info:
            compose_window_metrics('THIN', bars, WindowKey.D7)

        assert exc_info.value.symbol == 'THIN'
        assert exc_info.value.window == WindowKey.D7
        assert exc_info.value.bar_count == 1

    def test_empty_series_raises(self):
        """No bars at all."""
        with pytest.raises(InsufficientWindowData, match="not enough bars"):
            compose_window_metrics('NONE', [], WindowKey.D90)

    def test_start_and_end_come_from_window(self):
        """Start price is the window's first close, not the series' first."""
        closes = [float(i) for i in range(1, 101)]
        m = compose_window_metrics('WIN', bars_from_closes(closes), WindowKey.D7)

        # Anchor day 100, window back 7 days -> closes 93..100
        assert m.start_price == 93.0
        assert m.end_price == 100.0
        assert m.return_pct == round2((100.0 / 93.0 - 1) * 100)

    def test_unsorted_input(self):
        """Bar order in the input does not matter."""
        bars = bars_from_closes([100.0, 150.0, 75.0])
        assert compose_window_metrics('X', list(reversed(bars)), WindowKey.D7) == \
            compose_window_metrics('X', bars, WindowKey.D7)

    def test_top_price_modes(self):
        """High mode uses highs, close mode uses closes."""
        bars = bars_from_closes([100.0, 104.0, 102.0], highs=[101.0, 108.5, 103.0])

        high_mode = compose_window_metrics('TOP', bars, WindowKey.D7, top_price_mode=TopPriceMode.HIGH)
        close_mode = compose_window_metrics('TOP', bars, WindowKey.D7, top_price_mode=TopPriceMode.CLOSE)

        assert high_mode.top_price == 108.5
        assert close_mode.top_price == 104.0

    def test_top_price_high_mode_falls_back_to_close(self):
        """Bars without a high contribute their close."""
        bars = bars_from_closes([100.0, 112.0, 102.0], highs=[101.0, None, 103.0])

        m = compose_window_metrics('TOP', bars, WindowKey.D7, top_price_mode=TopPriceMode.HIGH)

        assert m.top_price == 112.0

    def test_top_price_uses_same_window(self):
        """A high outside the window is ignored."""
        closes = [100.0] * 20
        highs = [500.0] + [101.0] * 19
        m = compose_window_metrics('TOP', bars_from_closes(closes, highs=highs), WindowKey.D7)

        assert m.top_price == 101.0

    def test_constant_growth_has_zero_volatility(self):
        """Identical log returns have no dispersion."""
        closes = [100.0 * 1.01 ** i for i in range(10)]
        m = compose_window_metrics('GROW', bars_from_closes(closes), WindowKey.D30)

        assert m.volatility_annual == 0.0
        assert m.sharpe == 0.0
        assert m.max_drawdown_pct == 0.0

    def test_volatility_uses_population_stdev(self):
        """Volatility matches stdev with ddof=0."""
        closes = [100.0, 103.0, 99.0, 104.0, 101.0, 107.0]
        m = compose_window_metrics('VOL', bars_from_closes(closes), WindowKey.D30)

        log_ret = np.diff(np.log(closes))
        assert m.volatility_annual == round2(log_ret.std(ddof=0) * np.sqrt(252) * 100)

    def test_risk_free_rate_passed_through(self):
        """Sharpe responds to the configured risk-free rate."""
        bars = bars_from_closes([100.0, 103.0, 99.0, 104.0, 101.0, 107.0])

        low_rf = compose_window_metrics('RF', bars, WindowKey.D30, risk_free_rate=0.0)
        high_rf = compose_window_metrics('RF', bars, WindowKey.D30, risk_free_rate=0.5)

        assert high_rf.sharpe < low_rf.sharpe


class TestComposeInvariants:
    """Invariants over seeded random walks."""

    @pytest.mark.parametrize('seed', range(10))
    def test_invariants_hold(self, seed):
        """Drawdown <= 0, volatility >= 0, return matches start/end."""
        rng = np.random.default_rng(seed)
        bars = bars_from_closes(random_walk(rng))

        for window in WindowKey:
            m = compose_window_metrics('RND', bars, window)

            assert m.max_drawdown_pct <= 0.0
            assert m.volatility_annual >= 0.0
            assert m.return_pct == round2((m.end_price / m.start_price - 1) * 100)

    def test_idempotent(self):
        """Same input, bit-identical output."""
        rng = np.random.default_rng(99)
        bars = bars_from_closes(random_walk(rng))

        first = compose_window_metrics('IDEM', bars, WindowKey.D60)
        second = compose_window_metrics('IDEM', bars, WindowKey.D60)

        assert first == second

    def test_rounding_precision(self):
        """Percent fields carry 2 decimals, prices 4."""
        rng = np.random.default_rng(5)
        m = compose_window_metrics('DP', bars_from_closes(random_walk(rng)), WindowKey.D90)

        for value in (m.return_pct, m.volatility_annual, m.sharpe, m.max_drawdown_pct):
            assert round(value, 2) == value
        for value in (m.return_dollar, m.top_price):
            assert round(value, 4) == value


class TestComposeAllWindows:
    """Tests for compose_all_windows function."""

    def test_all_windows_computed(self):
        """Enough history fills every window."""
        rng = np.random.default_rng(1)
        result = compose_all_windows('ALL', bars_from_closes(random_walk(rng)))

        assert set(result) == set(WindowKey)
        assert all(m.symbol == 'ALL' for m in result.values())

    def test_thin_windows_omitted(self):
        """Windows with fewer than 2 bars are left out, others kept."""
        bars = [
            Bar(timestamp=datetime(2024, 1, 1), close=100.0),
            Bar(timestamp=datetime(2024, 2, 10), close=120.0),
        ]

        result = compose_all_windows('GAP', bars)

        assert set(result) == {WindowKey.D60, WindowKey.D90}
        assert result[WindowKey.D60].return_pct == 20.0

    def test_no_windows(self):
        """Single bar: nothing computable, empty map."""
        bars = [Bar(timestamp=datetime(2024, 1, 1), close=100.0)]
        assert compose_all_windows('ONE', bars) == {}

    def test_subset_of_windows(self):
        """Only the requested windows are computed."""
        bars = bars_from_closes([100.0, 101.0, 102.0])
        result = compose_all_windows('SUB', bars, windows=[WindowKey.D7])

        assert list(result) == [WindowKey.D7]
