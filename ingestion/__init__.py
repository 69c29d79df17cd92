"""
Data Ingestion Module

Fetches and validates price history for the metrics engine:
- yfinance for daily OHLC bars and spot prices
- Normalizers and validators at the provider boundary
"""

__version__ = "0.1.0"
