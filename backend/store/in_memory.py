from __future__ import annotations

from geo.aoi import BBox
from geo.index import TurbineIndex, build_turbine_index
from turbines.types import NearestTurbine, Turbine


class InMemorySpatialStore:
    """
    Holds the dataset in memory behind an STRtree; queries are lock-free reads.
    """

    name = "in_memory"

    def __init__(self, turbines: list[Turbine]):
        self.index: TurbineIndex = build_turbine_index(turbines)

    def contained_in(self, box: BBox, *, limit: int) -> list[Turbine]:
        return self.index.contained_in(box, limit=limit)

    def nearest_to(self, lon: float, lat: float, *, k: int) -> list[NearestTurbine]:
        return self.index.nearest_to(lon, lat, k=k)

    def close(self) -> None:
        return None
