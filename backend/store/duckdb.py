from __future__ import annotations

import logging
import threading
from pathlib import Path

import duckdb

from geo.aoi import BBox
from turbines.errors import StoreUnavailable
from turbines.types import NearestTurbine, Turbine, make_turbine

logger = logging.getLogger(__name__)

_CREATE_TURBINES_SQL = """
CREATE TABLE IF NOT EXISTS turbines (
  id BIGINT PRIMARY KEY,
  location_name TEXT,
  capacity_mw DOUBLE,
  lon DOUBLE,
  lat DOUBLE
);
"""

# Coordinates are stored as EPSG:4326 lon/lat; the bbox predicate and the distance
# ordering below both operate on those columns directly.
_CONTAINED_SQL = """
SELECT id, location_name, capacity_mw, lon, lat
FROM turbines
WHERE lon >= ? AND lon <= ? AND lat >= ? AND lat <= ?
ORDER BY id
LIMIT ?
"""

_NEAREST_SQL = """
SELECT id, location_name, capacity_mw, lon, lat,
       sqrt(pow(lon - ?, 2) + pow(lat - ?, 2)) AS distance
FROM turbines
ORDER BY distance, id
LIMIT ?
"""


class DuckDBSpatialStore:
    """
    DuckDB-backed store.

    The dataset is seeded into a `turbines` table once (only if the table is empty),
    then every query runs on its own cursor so concurrent requests don't share
    connection state.
    """

    name = "duckdb"

    def __init__(self, conn: duckdb.DuckDBPyConnection):
        self.conn = conn
        self._lock = threading.RLock()
        with self._lock:
            self.conn.execute(_CREATE_TURBINES_SQL)

    @classmethod
    def open(cls, path: str, *, threads: int | None = None) -> "DuckDBSpatialStore":
        if path != ":memory:":
            p = Path(path)
            if p.parent and str(p.parent) not in {".", ""}:
                p.parent.mkdir(parents=True, exist_ok=True)
        config = {"threads": int(threads)} if threads else {}
        try:
            conn = duckdb.connect(database=path, read_only=False, config=config)
        except duckdb.Error as e:
            logger.exception("Could not open DuckDB store at %s", path)
            raise StoreUnavailable("Spatial store could not be opened") from e
        return cls(conn)

    def seed(self, turbines: list[Turbine]) -> int:
        with self._lock:
            row = self.conn.execute("SELECT COUNT(*) FROM turbines").fetchone()
            if row and int(row[0] or 0) > 0:
                return int(row[0])
            rows = [(t.id, t.location_name, t.capacity_mw, t.lon, t.lat) for t in turbines]
            if rows:
                self.conn.executemany(
                    "INSERT OR REPLACE INTO turbines VALUES (?, ?, ?, ?, ?)", rows
                )
            return len(rows)

    def contained_in(self, box: BBox, *, limit: int) -> list[Turbine]:
        b = box.normalized()
        rows = self._fetch(
            _CONTAINED_SQL, [b.min_lon, b.max_lon, b.min_lat, b.max_lat, int(limit)]
        )
        return [
            make_turbine(id=fid, location_name=name, capacity_mw=cap, lon=lon, lat=lat)
            for fid, name, cap, lon, lat in rows
        ]

    def nearest_to(self, lon: float, lat: float, *, k: int) -> list[NearestTurbine]:
        rows = self._fetch(_NEAREST_SQL, [float(lon), float(lat), int(k)])
        return [
            NearestTurbine(
                turbine=make_turbine(
                    id=fid, location_name=name, capacity_mw=cap, lon=t_lon, lat=t_lat
                ),
                distance=float(dist),
            )
            for fid, name, cap, t_lon, t_lat, dist in rows
        ]

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def _fetch(self, sql: str, params: list) -> list[tuple]:
        try:
            with self._lock:
                cur = self.conn.cursor()
            try:
                return cur.execute(sql, params).fetchall()
            finally:
                cur.close()
        except duckdb.Error as e:
            logger.exception("DuckDB spatial query failed")
            raise StoreUnavailable("Spatial query failed") from e
