"""
Batch refresh - run the daily metrics engine across many symbols.
Bounded concurrency, per-symbol failure isolation, optional run tracking.
"""

import asyncio
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from analysis.models import MetricsCacheEntry
from pipeline.metrics_engine import DailyMetricsEngine, normalize_symbol
from storage.run_registry import RunStatus, finish_run, start_run

logger = logging.getLogger(__name__)

JOB_NAME = 'metrics_refresh'
DEFAULT_BATCH_SIZE = 5


@dataclass(frozen=True)
class RefreshOutcome:
    """Tagged result for one symbol: an entry or an error, never both."""
    symbol: str
    entry: Optional[MetricsCacheEntry] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.entry is not None


@dataclass
class BatchRefreshResult:
    """Partial-success result; callers must not assume full coverage."""
    results: Dict[str, MetricsCacheEntry] = field(default_factory=dict)
    failures: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)
    run_id: Optional[int] = None

    @property
    def requested(self) -> int:
        return len(self.results) + len(self.failures)

    def add(self, outcome: RefreshOutcome) -> None:
        if outcome.ok:
            self.results[outcome.symbol] = outcome.entry
        else:
            self.failures.append(outcome.symbol)
            self.errors[outcome.symbol] = outcome.error or 'unknown error'


def unique_symbols(symbols: Iterable[str]) -> Tuple[List[str], List[str]]:
    """
    Normalize symbols and drop duplicates, keeping first-seen order.

    Returns:
        Tuple of (valid symbols, rejected raw values)
    """
    seen = {}
    rejected = []
    for symbol in symbols:
        try:
            seen.setdefault(normalize_symbol(symbol), None)
        except ValueError:
            rejected.append(str(symbol))
    return list(seen), rejected


async def refresh_symbol(
    engine: DailyMetricsEngine,
    symbol: str,
    force: bool = True
) -> RefreshOutcome:
    """
    Refresh one symbol and report the outcome instead of raising.

    Args:
        engine: Daily metrics engine
        symbol: Normalized ticker symbol
        force: Recompute even if today's entry is cached
    """
    try:
        if force:
            entry = await engine.update_cache(symbol)
        else:
            entry = await engine.get_metrics(symbol)
    except Exception as e:
        logger.error("Failed to refresh %s: %s", symbol, e)
        return RefreshOutcome(symbol=symbol, error=str(e))

    return RefreshOutcome(symbol=symbol, entry=entry)


async def refresh_all(
    engine: DailyMetricsEngine,
    symbols: Iterable[str],
    batch_size: int = DEFAULT_BATCH_SIZE,
    force: bool = True,
    conn: Optional[sqlite3.Connection] = None
) -> BatchRefreshResult:
    """
    Refresh metrics for many symbols in fixed-size concurrent batches.

    Each batch of ``batch_size`` symbols runs concurrently; the next batch
    starts when the whole batch has settled. One symbol's failure never
    aborts the batch.

    Args:
        engine: Daily metrics engine
        symbols: Ticker symbols (normalized and de-duplicated)
        batch_size: Maximum concurrent refreshes
        force: Recompute even if today's entry is cached
        conn: SQLite connection for run tracking (optional)

    Returns:
        BatchRefreshResult with successes, failures and error messages
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")

    ordered, rejected = unique_symbols(symbols)
    result = BatchRefreshResult()

    for raw in rejected:
        result.add(RefreshOutcome(symbol=raw, error="symbol must be non-empty string"))

    # Run rows are written before the first and after the last batch, when
    # no store call is in flight on a shared connection
    if conn is not None:
        result.run_id = start_run(conn, JOB_NAME)

    logger.info("Batch refreshing metrics for %d symbols", len(ordered))

    for i in range(0, len(ordered), batch_size):
        batch = ordered[i:i + batch_size]
        outcomes = await asyncio.gather(
            *(refresh_symbol(engine, symbol, force=force) for symbol in batch)
        )
        for outcome in outcomes:
            result.add(outcome)

    if result.failures:
        logger.warning("Failed to refresh %d symbols: %s",
                       len(result.failures), ', '.join(result.failures))

    logger.info("Batch refresh complete: %d/%d succeeded", len(result.results), result.requested)

    if conn is not None:
        all_failed = result.requested > 0 and not result.results
        finish_run(
            conn=conn,
            run_id=result.run_id,
            status=RunStatus.FAILED if all_failed else RunStatus.COMPLETED,
            finished_at=datetime.now(),
            items_in=result.requested,
            items_out=len(result.results),
            error_message='; '.join(f"{s}: {e}" for s, e in result.errors.items()) or None
        )

    return result
