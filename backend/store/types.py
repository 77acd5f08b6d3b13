from __future__ import annotations

from typing import Protocol

from geo.aoi import BBox
from turbines.types import NearestTurbine, Turbine


class SpatialStore(Protocol):
    """
    Query contract consumed by the query service.

    - `contained_in`: turbines inside the (inclusive) box, ordered by id, at most `limit`,
      no duplicate ids.
    - `nearest_to`: ascending distance (EPSG:4326 degrees), ties by id, at most `k`.
    """

    name: str

    def contained_in(self, box: BBox, *, limit: int) -> list[Turbine]: ...

    def nearest_to(self, lon: float, lat: float, *, k: int) -> list[NearestTurbine]: ...

    def close(self) -> None: ...
