from __future__ import annotations

import logging
from typing import Any

from geo.aoi import BBox, parse_coordinate, validate_point
from store.types import SpatialStore
from turbines.errors import InvalidArgument, QueryError, StoreUnavailable
from turbines.types import NearestTurbine, Turbine

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 1000
DEFAULT_NEAREST_K = 3


class QueryService:
    """
    Validates and bounds client requests before they reach the spatial store.

    Stateless apart from the injected store handle, so one instance serves any
    number of concurrent requests. Input is fully validated before the store is
    touched; store failures are classified as `StoreUnavailable`.
    """

    def __init__(
        self,
        store: SpatialStore,
        *,
        max_results: int = DEFAULT_MAX_RESULTS,
        nearest_k: int = DEFAULT_NEAREST_K,
    ):
        if max_results < 1 or nearest_k < 1:
            raise ValueError("max_results and nearest_k must be positive")
        self.store = store
        self.max_results = int(max_results)
        self.nearest_k = int(nearest_k)

    def query_bounding_box(
        self,
        min_lon: Any,
        min_lat: Any,
        max_lon: Any,
        max_lat: Any,
        *,
        limit: Any = None,
    ) -> list[Turbine]:
        box = BBox(
            min_lon=parse_coordinate("minLon", min_lon),
            min_lat=parse_coordinate("minLat", min_lat),
            max_lon=parse_coordinate("maxLon", max_lon),
            max_lat=parse_coordinate("maxLat", max_lat),
        ).validated()
        effective = _bounded_count("limit", limit, self.max_results)

        rows = self._call_store(lambda: self.store.contained_in(box, limit=effective))
        # Don't rely on store ordering; id order keeps identical requests identical.
        rows = sorted(rows, key=lambda t: t.id)[:effective]
        return rows

    def query_nearest(self, lon: Any, lat: Any, *, k: Any = None) -> list[NearestTurbine]:
        plon, plat = validate_point(parse_coordinate("lon", lon), parse_coordinate("lat", lat))
        effective = _bounded_count("k", k, self.nearest_k)

        rows = self._call_store(lambda: self.store.nearest_to(plon, plat, k=effective))
        rows = sorted(rows, key=lambda r: (r.distance, r.turbine.id))[:effective]
        return rows

    def _call_store(self, fn):
        try:
            return fn()
        except QueryError:
            raise
        except Exception as e:
            logger.exception("Spatial store query failed on %s", getattr(self.store, "name", "store"))
            raise StoreUnavailable("Spatial query failed") from e


def _bounded_count(name: str, raw: Any, cap: int) -> int:
    """
    Clamp a client-requested count into [1, cap]; a missing value means `cap`.
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return cap
    if isinstance(raw, bool):
        raise InvalidArgument(f"{name} must be an integer")
    try:
        n = int(str(raw).strip()) if isinstance(raw, str) else int(raw)
    except (TypeError, ValueError):
        raise InvalidArgument(f"{name} must be an integer, got {raw!r}") from None
    return max(1, min(cap, n))
