"""
Tests for the command-line interface.
The engine is wired to a scripted provider; no network access.
"""

import json
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

import cli
from analysis.models import Bar
from ingestion.providers.base import PriceProviderError, PriceQuote
from pipeline.metrics_engine import DailyMetricsEngine
from storage.metrics_cache import SQLiteMetricsCache


class FakeProvider:
    def __init__(self, missing=()):
        self.missing = set(missing)

    async def get_spot(self, symbol):
        if symbol in self.missing:
            raise PriceProviderError(f"No spot price available for {symbol}")
        return PriceQuote(price=150.0, data_source='yfinance')

    async def get_bars(self, symbol, lookback_days):
        end = datetime.now() - timedelta(days=1)
        return [Bar(timestamp=end - timedelta(days=99 - i), close=100.0 + i * 0.5) for i in range(100)]


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    for name in ['METRICS_RISK_FREE_RATE', 'METRICS_TOP_PRICE_MODE', 'METRICS_LOOKBACK_DAYS',
                 'METRICS_BATCH_SIZE', 'REQUESTS_TIMEOUT_S', 'METRICS_FOLD_SPOT_PRICE']:
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / 'cache.db'
    monkeypatch.setenv('METRICS_CACHE_DB', str(path))
    return path


def fake_build_engine(missing=()):
    def build(config):
        return DailyMetricsEngine(
            provider=FakeProvider(missing),
            store=SQLiteMetricsCache.from_path(config.cache_db_path),
            config=config
        )
    return build


class TestParser:
    """Tests for argument parsing."""

    def test_metrics_args(self):
        args = cli.build_parser().parse_args(['metrics', 'AAPL', '--window', '30d', '--json'])

        assert args.command == 'metrics'
        assert args.ticker == 'AAPL'
        assert args.window == '30d'
        assert args.json is True

    def test_refresh_args(self):
        args = cli.build_parser().parse_args(['refresh', 'AAPL', 'MSFT', '--batch-size', '3', '--use-cache'])

        assert args.tickers == ['AAPL', 'MSFT']
        assert args.batch_size == 3
        assert args.use_cache is True

    def test_bad_window_rejected(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(['metrics', 'AAPL', '--window', '14d'])


class TestCommands:
    """End-to-end command tests against a temporary cache database."""

    def test_metrics_table(self, db_path, capsys):
        with patch('cli.build_engine', fake_build_engine()):
            code = cli.main(['metrics', 'aapl'])

        out = capsys.readouterr().out
        assert code == 0
        assert out.startswith('AAPL  $150.00 (yfinance)')
        for window in ['7d', '30d', '60d', '90d']:
            assert f"\n{window}" in out

    def test_metrics_json_single_window(self, db_path, capsys):
        with patch('cli.build_engine', fake_build_engine()):
            code = cli.main(['metrics', 'AAPL', '--window', '7d', '--json'])

        payload = json.loads(capsys.readouterr().out)
        assert code == 0
        assert 'bars' not in payload
        assert list(payload['metrics']) == ['7d']
        assert payload['metrics']['7d']['end_price'] == 150.0

    def test_metrics_no_data(self, db_path, capsys):
        with patch('cli.build_engine', fake_build_engine(missing={'ZZZZ'})):
            code = cli.main(['metrics', 'zzzz'])

        assert code == 1
        assert 'ZZZZ: metrics unavailable' in capsys.readouterr().err

    def test_refresh_and_runs(self, db_path, capsys):
        with patch('cli.build_engine', fake_build_engine(missing={'BAD'})):
            code = cli.main(['refresh', 'AAPL', 'BAD', 'MSFT'])

        out = capsys.readouterr().out
        assert code == 0
        assert 'Refreshed 2/3 symbols' in out
        assert 'FAIL  BAD' in out

        assert cli.main(['runs']) == 0
        out = capsys.readouterr().out
        assert 'completed' in out
        assert '2/3 symbols' in out

    def test_runs_single_run_detail(self, db_path, capsys):
        with patch('cli.build_engine', fake_build_engine(missing={'BAD'})):
            cli.main(['refresh', 'AAPL', 'BAD'])
        capsys.readouterr()

        assert cli.main(['runs', '--run-id', '1']) == 0
        out = capsys.readouterr().out
        assert out.startswith('#1 ')
        assert 'errors: BAD: No historical data available for BAD' in out

    def test_runs_unknown_run_id(self, db_path, capsys):
        assert cli.main(['runs', '--run-id', '99']) == 1
        assert 'Run ID 99 not found' in capsys.readouterr().err

    def test_runs_empty(self, db_path, capsys):
        assert cli.main(['runs']) == 0
        assert 'No refresh runs recorded' in capsys.readouterr().out

    def test_db_path_flag(self, db_path, tmp_path, capsys):
        other = tmp_path / 'other.db'

        assert cli.main(['--db-path', str(other), 'runs']) == 0
        assert other.exists()

    def test_invalid_config(self, db_path, monkeypatch, capsys):
        monkeypatch.setenv('METRICS_BATCH_SIZE', '0')

        assert cli.main(['runs']) == 2
        assert 'Invalid configuration' in capsys.readouterr().err
