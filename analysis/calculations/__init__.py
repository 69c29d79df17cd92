"""Pure metric calculators: windows, returns, volatility, drawdown, top price."""
