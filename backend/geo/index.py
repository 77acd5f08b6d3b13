from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from shapely.geometry import LineString, Point
from shapely.geometry import box as shapely_box
from shapely.strtree import STRtree

from geo.aoi import BBox
from turbines.types import NearestTurbine, Turbine

# Upper bound for the nearest-neighbour search radius (degrees); covers the whole globe.
_MAX_SEARCH_DEG = 400.0


@dataclass
class TurbineIndex:
    """
    STRtree-backed point index over a turbine dataset.

    Notes:
    - Geometries are kept in EPSG:4326 (lon/lat degrees).
    - Containment and distance both use that same reference system.
    """

    turbines: list[Turbine]

    _tree: STRtree = field(init=False, repr=False)
    _geoms: list[Point] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        # Deduplicate by id (last one wins) and keep id order for stable slicing.
        by_id: dict[int, Turbine] = {}
        for t in self.turbines:
            by_id[t.id] = t
        self.turbines = [by_id[k] for k in sorted(by_id)]
        self._geoms = [Point(t.lon, t.lat) for t in self.turbines]
        self._tree = STRtree(self._geoms)

    def __len__(self) -> int:
        return len(self.turbines)

    def contained_in(self, aoi: BBox, *, limit: int | None = None) -> list[Turbine]:
        b = aoi.normalized()
        idxs = _to_int_list(self._tree.query(_query_geometry(b)))
        # Envelope candidates -> exact inclusive containment.
        hits = sorted(i for i in idxs if b.contains(self.turbines[i].lon, self.turbines[i].lat))
        out = [self.turbines[i] for i in hits]
        if limit is not None:
            out = out[: max(0, int(limit))]
        return out

    def nearest_to(self, lon: float, lat: float, *, k: int) -> list[NearestTurbine]:
        """
        k nearest turbines by planar EPSG:4326 distance, ties broken by id.
        """
        if k <= 0 or not self.turbines:
            return []
        q = Point(float(lon), float(lat))

        _idx, dists = self._tree.query_nearest(q, return_distance=True)
        radius = max(float(dists[0]) * 2.0, 1e-6) if len(dists) else _MAX_SEARCH_DEG
        while True:
            idxs = _to_int_list(self._tree.query(q, predicate="dwithin", distance=radius))
            if len(idxs) >= k or radius >= _MAX_SEARCH_DEG:
                break
            radius = min(radius * 4.0, _MAX_SEARCH_DEG)

        ranked = sorted(
            ((float(q.distance(self._geoms[i])), self.turbines[i]) for i in idxs),
            key=lambda pair: (pair[0], pair[1].id),
        )
        return [NearestTurbine(turbine=t, distance=d) for d, t in ranked[:k]]


def build_turbine_index(turbines: list[Turbine]) -> TurbineIndex:
    return TurbineIndex(turbines=list(turbines))


def _query_geometry(b: BBox) -> Any:
    # shapely's box() collapses for zero-area input; query with a point/segment instead.
    if b.min_lon == b.max_lon and b.min_lat == b.max_lat:
        return Point(b.min_lon, b.min_lat)
    if b.is_degenerate():
        return LineString([(b.min_lon, b.min_lat), (b.max_lon, b.max_lat)])
    return shapely_box(b.min_lon, b.min_lat, b.max_lon, b.max_lat)


def _to_int_list(arr) -> list[int]:
    # Shapely STRtree returns numpy.ndarray of indices.
    try:
        return [int(x) for x in arr.tolist()]
    except Exception:
        return [int(x) for x in arr]
