"""
Window metrics composer - combines window selection with the metric calculators.
Pure functions: one bar series in, rounded TickerWindowMetrics out.
"""

import logging
from typing import Dict, Iterable, Optional, Sequence

from analysis.calculations.drawdown import max_drawdown_pct
from analysis.calculations.prices import top_price
from analysis.calculations.returns import return_dollar, return_pct, window_endpoints
from analysis.calculations.volatility import annualized_volatility, sharpe_ratio
from analysis.calculations.windows import cut_window, sort_bars
from analysis.models import (
    Bar,
    TickerWindowMetrics,
    TopPriceMode,
    WindowKey,
    round2,
    round4,
)

logger = logging.getLogger(__name__)

DEFAULT_RISK_FREE_RATE = 0.02


class InsufficientWindowData(Exception):
    """Raised when a trailing window holds fewer than 2 bars."""

    def __init__(self, symbol: str, window: WindowKey, bar_count: int = 0):
        self.symbol = symbol
        self.window = window
        self.bar_count = bar_count
        super().__init__(
            f"{symbol} {window.value}: not enough bars "
            f"(need at least 2, have {bar_count})"
        )


def compose_window_metrics(
    symbol: str,
    bars: Iterable[Bar],
    window: WindowKey,
    top_price_mode: TopPriceMode = TopPriceMode.HIGH,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE
) -> TickerWindowMetrics:
    """
    Compute all metrics for one (symbol, window) pair.

    Start and end prices are the first and last closes of the selected
    window, and every field is computed from that same window.

    Args:
        symbol: Ticker symbol
        bars: Full bar series in any order
        window: Trailing window to evaluate
        top_price_mode: Field used for the window's top price
        risk_free_rate: Annual risk-free rate for the Sharpe ratio

    Returns:
        Rounded TickerWindowMetrics

    Raises:
        InsufficientWindowData: If the window holds fewer than 2 bars
    """
    window_bars = cut_window(bars, window)
    if len(window_bars) < 2:
        raise InsufficientWindowData(symbol, window, len(window_bars))

    closes = [bar.close for bar in window_bars]
    start, end = window_endpoints(closes)

    return TickerWindowMetrics(
        symbol=symbol,
        window=window,
        start_price=start,
        end_price=end,
        return_pct=round2(return_pct(start, end)),
        return_dollar=round4(return_dollar(start, end)),
        volatility_annual=round2(annualized_volatility(closes)),
        sharpe=round2(sharpe_ratio(closes, risk_free_rate=risk_free_rate)),
        max_drawdown_pct=round2(max_drawdown_pct(closes)),
        top_price=round4(top_price(window_bars, top_price_mode)),
    )


def compose_all_windows(
    symbol: str,
    bars: Iterable[Bar],
    top_price_mode: TopPriceMode = TopPriceMode.HIGH,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    windows: Optional[Sequence[WindowKey]] = None
) -> Dict[WindowKey, TickerWindowMetrics]:
    """
    Compute metrics for every window, skipping windows without enough bars.

    A window raising InsufficientWindowData is left out of the result and
    does not affect its siblings.
    """
    if windows is None:
        windows = list(WindowKey)

    ordered = sort_bars(bars)
    results = {}

    for window in windows:
        try:
            results[window] = compose_window_metrics(
                symbol, ordered, window,
                top_price_mode=top_price_mode,
                risk_free_rate=risk_free_rate
            )
        except InsufficientWindowData as e:
            logger.debug("Skipping window: %s", e)

    return results
