from __future__ import annotations

CREATE_QUERY_EVENTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS query_events (
  ts_ms BIGINT,
  endpoint TEXT,
  engine TEXT,
  min_lon DOUBLE,
  min_lat DOUBLE,
  max_lon DOUBLE,
  max_lat DOUBLE,
  result_count INTEGER,
  duration_ms DOUBLE,
  error_kind TEXT
);
"""

SUMMARY_SQL_TEMPLATE = """
SELECT
  engine,
  endpoint,
  COUNT(*) AS n,
  AVG(duration_ms) AS avg_ms,
  quantile_cont(duration_ms, 0.50) AS p50_ms,
  quantile_cont(duration_ms, 0.95) AS p95_ms,
  AVG(result_count) AS avg_results,
  SUM(CASE WHEN error_kind IS NULL THEN 0 ELSE 1 END) AS n_errors
FROM query_events
{where_sql}
GROUP BY engine, endpoint
ORDER BY engine, endpoint
"""

INSERT_QUERY_EVENTS_SQL = """
INSERT INTO query_events
  (ts_ms, endpoint, engine, min_lon, min_lat, max_lon, max_lat, result_count, duration_ms, error_kind)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""
