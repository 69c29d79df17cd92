"""
Volatility calculation utilities.
Pure functions for log returns, annualized volatility and Sharpe ratio.

Standard deviation is the population estimator (divide by n) throughout,
so volatility and Sharpe values match previously cached snapshots.
"""

import math
from typing import List, Union

import numpy as np


TRADING_DAYS_PER_YEAR = 252

# Below this a standard deviation is treated as zero
_STDEV_EPSILON = 1e-12


class VolatilityError(Exception):
    """Raised when volatility calculation fails."""
    pass


def log_returns(prices: List[float]) -> np.ndarray:
    """
    Calculate log returns from price series.

    Formula: r_t = ln(P_t / P_{t-1})

    Args:
        prices: List of prices in chronological order

    Returns:
        Numpy array of log returns (length = len(prices) - 1, empty for
        fewer than 2 prices)

    Raises:
        VolatilityError: If any price is zero or negative
    """
    if any(p <= 0 for p in prices):
        raise VolatilityError("Zero or negative prices not allowed")

    if len(prices) < 2:
        return np.array([])

    return np.diff(np.log(np.array(prices, dtype=float)))


def population_stdev(values: Union[List[float], np.ndarray]) -> float:
    """
    Population standard deviation (ddof=0).

    Fewer than 2 values have no dispersion and give 0.
    """
    if len(values) < 2:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float), ddof=0))


def annualized_volatility(
    closes: List[float],
    annualize: int = TRADING_DAYS_PER_YEAR
) -> float:
    """
    Annualized volatility of daily log returns, in percent.

    Formula: sigma = stdev(log_returns) * sqrt(annualize) * 100

    Args:
        closes: Window closing prices in chronological order
        annualize: Periods per year

    Returns:
        Volatility in percent (25.0 = 25%), never negative
    """
    log_ret = log_returns(closes)
    if len(log_ret) == 0:
        return 0.0

    if np.any(~np.isfinite(log_ret)):
        raise VolatilityError("Non-finite values not allowed in log returns")

    return population_stdev(log_ret) * math.sqrt(annualize) * 100


def sharpe_ratio(
    closes: List[float],
    risk_free_rate: float = 0.02,
    annualize: int = TRADING_DAYS_PER_YEAR
) -> float:
    """
    Annualized Sharpe ratio from daily log returns.

    Formula: ((mean(r) - rf / annualize) / stdev(r)) * sqrt(annualize)

    Args:
        closes: Window closing prices in chronological order
        risk_free_rate: Annual risk-free rate as decimal (0.02 = 2%)
        annualize: Periods per year

    Returns:
        Dimensionless Sharpe ratio; 0 when there is no dispersion
    """
    log_ret = log_returns(closes)
    if len(log_ret) == 0:
        return 0.0

    sd = population_stdev(log_ret)
    if sd < _STDEV_EPSILON:
        return 0.0

    rf_daily = risk_free_rate / annualize
    mean = float(np.mean(log_ret))
    sharpe = ((mean - rf_daily) / sd) * math.sqrt(annualize)

    if not math.isfinite(sharpe):
        return 0.0
    return sharpe
