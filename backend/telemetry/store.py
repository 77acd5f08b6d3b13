from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import duckdb

from telemetry.sql import (
    CREATE_QUERY_EVENTS_TABLE_SQL,
    INSERT_QUERY_EVENTS_SQL,
    SUMMARY_SQL_TEMPLATE,
)

logger = logging.getLogger(__name__)

_EVENT_COLUMNS = (
    "ts_ms",
    "endpoint",
    "engine",
    "min_lon",
    "min_lat",
    "max_lon",
    "max_lat",
    "result_count",
    "duration_ms",
    "error_kind",
)


def _safe_float(v) -> float | None:
    try:
        if v is None:
            return None
        return float(v)
    except (TypeError, ValueError):
        return None


@dataclass
class TelemetryStore:
    """
    Append-only log of served queries, written by a single background thread.
    """

    path: Path
    conn: duckdb.DuckDBPyConnection
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _q: "queue.Queue[dict[str, Any]]" = field(default_factory=queue.Queue, repr=False)
    _stop: threading.Event = field(default_factory=threading.Event, repr=False)
    _worker: threading.Thread | None = field(default=None, repr=False)

    def ensure_schema(self) -> None:
        with self._lock:
            self.conn.execute(CREATE_QUERY_EVENTS_TABLE_SQL)

    def start(self) -> None:
        if self._worker is not None:
            return
        self._stop.clear()
        self._worker = threading.Thread(
            target=self._run, name="telemetry-writer", daemon=True
        )
        self._worker.start()

    def stop(self, *, timeout_s: float = 2.0) -> None:
        self._stop.set()
        w = self._worker
        if w is not None and w.is_alive():
            w.join(timeout=timeout_s)
        self._worker = None

    def record(
        self,
        *,
        endpoint: str,
        engine: str,
        bbox: tuple[float, float, float, float] | None,
        result_count: int,
        duration_ms: float,
        error_kind: str | None = None,
    ) -> None:
        # Non-blocking: enqueue and return.
        self.start()
        min_lon, min_lat, max_lon, max_lat = bbox if bbox is not None else (None,) * 4
        self._q.put_nowait(
            {
                "ts_ms": int(time.time() * 1000),
                "endpoint": str(endpoint),
                "engine": str(engine),
                "min_lon": _safe_float(min_lon),
                "min_lat": _safe_float(min_lat),
                "max_lon": _safe_float(max_lon),
                "max_lat": _safe_float(max_lat),
                "result_count": int(result_count),
                "duration_ms": float(duration_ms),
                "error_kind": error_kind,
            }
        )

    def flush(self, *, timeout_s: float = 2.0) -> None:
        """
        Wait until queued events are processed (used by tests).
        """
        if self._worker is None:
            return
        deadline = time.time() + timeout_s
        while time.time() < deadline:
            if self._q.unfinished_tasks == 0:
                break
            time.sleep(0.01)
        # Give the writer thread time to flush on its time-based trigger.
        time.sleep(0.55)

    def query(self, sql: str, params: list[Any] | None = None) -> list[tuple]:
        with self._lock:
            if params:
                return self.conn.execute(sql, params).fetchall()
            return self.conn.execute(sql).fetchall()

    def summary(self, *, endpoint: str | None = None) -> list[dict[str, Any]]:
        where: list[str] = []
        params: list[Any] = []
        if endpoint:
            where.append("endpoint = ?")
            params.append(endpoint)
        where_sql = f"WHERE {' AND '.join(where)}" if where else ""

        rows = self.query(SUMMARY_SQL_TEMPLATE.format(where_sql=where_sql), params)
        out: list[dict[str, Any]] = []
        for engine_v, endpoint_v, n, avg_ms, p50, p95, avg_results, n_errors in rows:
            out.append(
                {
                    "engine": engine_v,
                    "endpoint": endpoint_v,
                    "n": int(n),
                    "avgMs": _safe_float(avg_ms),
                    "p50Ms": _safe_float(p50),
                    "p95Ms": _safe_float(p95),
                    "avgResults": _safe_float(avg_results),
                    "errors": int(n_errors or 0),
                }
            )
        return out

    def reset(self) -> None:
        # Stop the writer first so it can't write to a closed connection.
        self.stop(timeout_s=2.0)
        with self._lock:
            self.conn.close()
            self.path.unlink(missing_ok=True)

    def _run(self) -> None:
        self.ensure_schema()
        batch: list[dict[str, Any]] = []
        last_flush = time.time()

        def flush_batch() -> None:
            nonlocal batch
            if not batch:
                return
            with self._lock:
                self.conn.executemany(
                    INSERT_QUERY_EVENTS_SQL,
                    [tuple(e[c] for c in _EVENT_COLUMNS) for e in batch],
                )
                # Make results visible to readers immediately.
                self.conn.execute("CHECKPOINT;")
            batch = []

        while not self._stop.is_set():
            try:
                e = self._q.get(timeout=0.1)
            except queue.Empty:
                e = None

            if e is not None:
                batch.append(e)
                self._q.task_done()

            # Flush on size or time.
            now = time.time()
            if len(batch) >= 250 or (batch and (now - last_flush) >= 0.5):
                flush_batch()
                last_flush = now

        # Drain remaining
        try:
            while True:
                e = self._q.get_nowait()
                batch.append(e)
                self._q.task_done()
        except queue.Empty:
            pass
        flush_batch()
