#!/usr/bin/env python3
"""
Main CLI for the performance metrics engine.
Usage: python cli.py metrics TICKER
       python cli.py refresh TICKER [TICKER ...]
       python cli.py runs
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from analysis.models import MetricsCacheEntry, WindowKey
from ingestion.providers.yfinance_adapter import YFinancePriceProvider
from pipeline.batch_refresh import JOB_NAME, refresh_all
from pipeline.config import EngineConfig
from pipeline.metrics_engine import DailyMetricsEngine, NoHistoricalData
from storage.metrics_cache import SQLiteMetricsCache
from storage.run_registry import RunNotFoundError, get_run_status, list_recent_runs


def build_engine(config: EngineConfig) -> DailyMetricsEngine:
    """Wire the yfinance provider and SQLite cache into an engine."""
    provider = YFinancePriceProvider(timeout_s=config.fetch_timeout_s)
    store = SQLiteMetricsCache.from_path(config.cache_db_path)
    return DailyMetricsEngine(provider=provider, store=store, config=config)


def format_entry(entry: MetricsCacheEntry, window: Optional[WindowKey] = None) -> str:
    """Render a cache entry as a fixed-width table."""
    lines = [
        f"{entry.symbol}  ${entry.current_price:,.2f} ({entry.data_source})  as of {entry.date}",
        f"{'Window':<7}{'Start':>11}{'End':>11}{'Return':>10}{'$ Chg':>11}"
        f"{'Vol':>9}{'Sharpe':>8}{'MaxDD':>9}{'Top':>11}",
    ]

    keys = [window] if window is not None else list(WindowKey)
    for key in keys:
        m = entry.metrics.get(key)
        if m is None:
            lines.append(f"{key.value:<7}  metrics unavailable (not enough bars)")
            continue
        lines.append(
            f"{key.value:<7}{m.start_price:>11.2f}{m.end_price:>11.2f}{m.return_pct:>9.2f}%"
            f"{m.return_dollar:>11.4f}{m.volatility_annual:>8.2f}%{m.sharpe:>8.2f}"
            f"{m.max_drawdown_pct:>8.2f}%{m.top_price:>11.4f}"
        )

    return '\n'.join(lines)


def cmd_metrics(args, config: EngineConfig) -> int:
    engine = build_engine(config)
    window = WindowKey(args.window) if args.window else None

    try:
        entry = asyncio.run(engine.get_metrics(args.ticker))
    except NoHistoricalData as e:
        print(f"{args.ticker.upper()}: metrics unavailable ({e.reason or 'no data'})", file=sys.stderr)
        return 1

    if args.json:
        payload = entry.to_dict()
        payload.pop('bars')
        if window is not None:
            payload['metrics'] = {k: v for k, v in payload['metrics'].items() if k == window.value}
        print(json.dumps(payload, indent=2))
    else:
        print(format_entry(entry, window))

    return 0


def cmd_refresh(args, config: EngineConfig) -> int:
    engine = build_engine(config)
    batch_size = args.batch_size or config.batch_size

    result = asyncio.run(refresh_all(
        engine,
        args.tickers,
        batch_size=batch_size,
        force=not args.use_cache,
        conn=engine.store.connection
    ))
    asyncio.run(engine.store.purge_expired())

    print(f"Refreshed {len(result.results)}/{result.requested} symbols (run {result.run_id})")
    for symbol, entry in result.results.items():
        print(f"  OK    {symbol:<8} {len(entry.metrics)}/{len(WindowKey)} windows")
    for symbol in result.failures:
        print(f"  FAIL  {symbol:<8} metrics unavailable: {result.errors[symbol]}")

    return 0 if result.results or not result.failures else 1


def format_run(run) -> str:
    duration = f"{run['duration_seconds']:.1f}s" if run['duration_seconds'] is not None else '-'
    return (f"#{run['run_id']:<5} {run['started_at']:%Y-%m-%d %H:%M:%S}  {run['status'].value:<9} "
            f"{run['items_out'] or 0}/{run['items_in'] or 0} symbols  {duration}")


def cmd_runs(args, config: EngineConfig) -> int:
    store = SQLiteMetricsCache.from_path(config.cache_db_path)

    if args.run_id is not None:
        try:
            run = get_run_status(store.connection, args.run_id)
        except RunNotFoundError as e:
            print(str(e), file=sys.stderr)
            return 1

        print(format_run(run))
        if run['error_message']:
            print(f"  errors: {run['error_message']}")
        return 0

    runs = list_recent_runs(store.connection, limit=args.limit, job_name=JOB_NAME)

    if not runs:
        print("No refresh runs recorded")
        return 0

    for run in runs:
        print(format_run(run))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Windowed performance metrics with a daily cache',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli.py metrics AAPL
  python cli.py metrics MSFT --window 30d --json
  python cli.py refresh AAPL MSFT NVDA --batch-size 3
  python cli.py runs --limit 5
  python cli.py runs --run-id 3
        """
    )
    parser.add_argument('--db-path', help='Cache database path (default: METRICS_CACHE_DB)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    metrics = subparsers.add_parser('metrics', help='Get (or compute) today\'s metrics for a ticker')
    metrics.add_argument('ticker', help='Stock ticker symbol (e.g., AAPL)')
    metrics.add_argument('--window', choices=[k.value for k in WindowKey], help='Show one window only')
    metrics.add_argument('--json', action='store_true', help='Print JSON instead of a table')

    refresh = subparsers.add_parser('refresh', help='Recompute metrics for many tickers')
    refresh.add_argument('tickers', nargs='+', help='Ticker symbols')
    refresh.add_argument('--batch-size', type=int, help='Concurrent refreshes (default: METRICS_BATCH_SIZE)')
    refresh.add_argument('--use-cache', action='store_true', help='Skip symbols already cached today')

    runs = subparsers.add_parser('runs', help='List recent refresh runs')
    runs.add_argument('--limit', type=int, default=10, help='Number of runs to show')
    runs.add_argument('--run-id', type=int, help='Show one run with its error summary')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    args = build_parser().parse_args(argv)

    try:
        config = EngineConfig.from_env()
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    if args.db_path:
        config.cache_db_path = args.db_path

    commands = {
        'metrics': cmd_metrics,
        'refresh': cmd_refresh,
        'runs': cmd_runs,
    }
    return commands[args.command](args, config)


if __name__ == '__main__':
    sys.exit(main())
