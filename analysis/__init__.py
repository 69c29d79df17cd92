"""
Analysis Engine Module

Calculates per-window performance metrics from daily bars:
- Return (percent and dollar)
- Annualized volatility and Sharpe ratio
- Maximum drawdown
- Top price
"""

__version__ = "0.1.0"
