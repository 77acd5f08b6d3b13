from __future__ import annotations

from fastapi.testclient import TestClient

from api.query_service import QueryService
from main import create_app
from telemetry.singleton import get_store, reset_store


def test_telemetry_store_writes_rows(tmp_path, monkeypatch):
    db_path = tmp_path / "queries.duckdb"
    monkeypatch.setenv("WINDMAP_TELEMETRY_PATH", str(db_path))
    monkeypatch.setenv("WINDMAP_TELEMETRY", "1")

    store = get_store()
    assert store is not None

    store.record(
        endpoint="/api/turbines/bbox",
        engine="in_memory",
        bbox=(7.0, 48.0, 11.0, 53.0),
        result_count=5,
        duration_ms=1.5,
    )
    store.flush(timeout_s=2.0)

    # Use the existing connection; DuckDB disallows opening the same file with different configs.
    n = int(store.conn.execute("select count(*) from query_events").fetchone()[0])
    assert n == 1

    row = store.conn.execute("select endpoint, engine, result_count from query_events").fetchone()
    assert row == ("/api/turbines/bbox", "in_memory", 5)
    reset_store()


def test_http_queries_are_recorded_and_summarized(tmp_path, monkeypatch, memory_store):
    monkeypatch.setenv("WINDMAP_TELEMETRY_PATH", str(tmp_path / "queries.duckdb"))
    monkeypatch.setenv("WINDMAP_TELEMETRY", "1")

    client = TestClient(create_app(QueryService(memory_store)))
    client.get(
        "/api/turbines/bbox",
        params={"minLon": "7", "minLat": "48", "maxLon": "11", "maxLat": "53"},
    )
    client.get("/api/turbines/bbox", params={"minLon": "x"})
    store = get_store()
    assert store is not None
    store.flush(timeout_s=2.0)

    body = client.get("/telemetry/summary", params={"endpoint": "/api/turbines/bbox"}).json()
    assert body["enabled"] is True
    assert len(body["rows"]) == 1
    row = body["rows"][0]
    assert row["n"] == 2
    assert row["errors"] == 1
    reset_store()


def test_inverted_bbox_is_recorded_normalized(tmp_path, monkeypatch, memory_store):
    monkeypatch.setenv("WINDMAP_TELEMETRY_PATH", str(tmp_path / "queries.duckdb"))
    monkeypatch.setenv("WINDMAP_TELEMETRY", "1")

    client = TestClient(create_app(QueryService(memory_store)))
    resp = client.get(
        "/api/turbines/bbox",
        params={"minLon": "11", "minLat": "53", "maxLon": "7", "maxLat": "48"},
    )
    assert resp.status_code == 200
    store = get_store()
    assert store is not None
    store.flush(timeout_s=2.0)

    row = store.conn.execute(
        "select min_lon, min_lat, max_lon, max_lat from query_events"
    ).fetchone()
    assert row == (7.0, 48.0, 11.0, 53.0)
    reset_store()


def test_telemetry_reset_deletes_db(tmp_path, monkeypatch):
    db_path = tmp_path / "queries.duckdb"
    monkeypatch.setenv("WINDMAP_TELEMETRY_PATH", str(db_path))
    monkeypatch.setenv("WINDMAP_TELEMETRY", "1")

    store = get_store()
    assert store is not None
    assert store.path.resolve() == db_path.resolve()

    reset_store()
    assert not db_path.exists()


def test_telemetry_disabled(monkeypatch):
    monkeypatch.setenv("WINDMAP_TELEMETRY", "0")
    assert get_store() is None
