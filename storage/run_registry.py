"""
Run registry - track batch refresh execution with status, counts, and timing.
Thin IO layer for run lifecycle management.
"""

import sqlite3
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class RunStatus(str, Enum):
    """Enumeration of run statuses."""
    RUNNING = 'running'
    COMPLETED = 'completed'
    FAILED = 'failed'


class RunNotFoundError(Exception):
    """Raised when run ID is not found."""
    pass


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def start_run(
    conn: sqlite3.Connection,
    job_name: str,
    started_at: Optional[datetime] = None
) -> int:
    """
    Start a new run and return its ID.

    Args:
        conn: SQLite connection
        job_name: Name of the job being run
        started_at: Start timestamp (defaults to now)

    Returns:
        Run ID for tracking this execution
    """
    if started_at is None:
        started_at = datetime.now()

    cursor = conn.execute("""
        INSERT INTO runs (job_name, started_at, status)
        VALUES (?, ?, ?)
    """, (job_name, started_at.isoformat(sep=' '), RunStatus.RUNNING.value))

    conn.commit()
    return cursor.lastrowid


def finish_run(
    conn: sqlite3.Connection,
    run_id: int,
    status: RunStatus,
    finished_at: Optional[datetime] = None,
    items_in: Optional[int] = None,
    items_out: Optional[int] = None,
    error_message: Optional[str] = None
) -> None:
    """
    Mark a run as finished with final status and counts.

    Args:
        conn: SQLite connection
        run_id: Run ID from start_run()
        status: Final status (COMPLETED or FAILED)
        finished_at: End timestamp (defaults to now)
        items_in: Number of items requested
        items_out: Number of items produced
        error_message: Error summary if anything failed

    Raises:
        RunNotFoundError: If run_id doesn't exist
    """
    if finished_at is None:
        finished_at = datetime.now()

    cursor = conn.execute("SELECT run_id FROM runs WHERE run_id = ?", (run_id,))
    if cursor.fetchone() is None:
        raise RunNotFoundError(f"Run ID {run_id} not found")

    conn.execute("""
        UPDATE runs SET
            status = ?,
            finished_at = ?,
            items_in = ?,
            items_out = ?,
            error_message = ?
        WHERE run_id = ?
    """, (RunStatus(status).value, finished_at.isoformat(sep=' '),
          items_in, items_out, error_message, run_id))

    conn.commit()


def _row_to_run(row) -> Dict[str, Any]:
    run_info = {
        'run_id': row[0],
        'job_name': row[1],
        'started_at': _parse_ts(row[2]),
        'finished_at': _parse_ts(row[3]),
        'status': RunStatus(row[4]),
        'items_in': row[5],
        'items_out': row[6],
        'error_message': row[7],
    }

    if run_info['started_at'] and run_info['finished_at']:
        duration = run_info['finished_at'] - run_info['started_at']
        run_info['duration_seconds'] = duration.total_seconds()
    else:
        run_info['duration_seconds'] = None

    if run_info['items_in']:
        run_info['success_rate'] = (run_info['items_out'] or 0) / run_info['items_in']
    else:
        run_info['success_rate'] = None

    return run_info


def get_run_status(conn: sqlite3.Connection, run_id: int) -> Dict[str, Any]:
    """
    Get detailed status and counts for a run.

    Raises:
        RunNotFoundError: If run_id doesn't exist
    """
    cursor = conn.execute("""
        SELECT run_id, job_name, started_at, finished_at, status,
               items_in, items_out, error_message
        FROM runs
        WHERE run_id = ?
    """, (run_id,))

    row = cursor.fetchone()
    if row is None:
        raise RunNotFoundError(f"Run ID {run_id} not found")

    return _row_to_run(row)


def list_recent_runs(
    conn: sqlite3.Connection,
    limit: int = 20,
    job_name: Optional[str] = None
) -> List[Dict[str, Any]]:
    """
    List recent runs, most recent first.

    Args:
        conn: SQLite connection
        limit: Maximum number of runs to return
        job_name: Filter by job name (optional)
    """
    query = """
        SELECT run_id, job_name, started_at, finished_at, status,
               items_in, items_out, error_message
        FROM runs
    """
    params: tuple = ()
    if job_name:
        query += " WHERE job_name = ?"
        params = (job_name,)
    query += " ORDER BY started_at DESC, run_id DESC LIMIT ?"
    params += (limit,)

    return [_row_to_run(row) for row in conn.execute(query, params).fetchall()]
