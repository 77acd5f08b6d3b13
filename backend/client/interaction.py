from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Union

from client.transport import NearestHit, TurbineSource
from client.working_set import WorkingSet
from geo.projection import Viewport, fit_view_to_points
from lod.clusters import Cluster, Group, Single
from turbines.types import Turbine, households_powered


@dataclass(frozen=True)
class Popup:
    id: int
    location_name: str
    capacity_mw: float
    lon: float
    lat: float
    households: int

    @classmethod
    def for_record(cls, t: Turbine) -> "Popup":
        return cls(
            id=t.id,
            location_name=t.location_name,
            capacity_mw=t.capacity_mw,
            lon=t.lon,
            lat=t.lat,
            households=households_powered(t.capacity_mw),
        )


@dataclass(frozen=True)
class NearestPopup:
    id: int
    location_name: str
    capacity_mw: float
    distance: float
    households: int


@dataclass(frozen=True)
class ZoomTo:
    viewport: Viewport


Resolution = Union[Popup, NearestPopup, ZoomTo]


def hit_test(clusters: list[Cluster], x: float, y: float, *, radius_px: float) -> Cluster | None:
    """
    Closest marker within `radius_px` of the pointer (first in order on ties).
    """
    best: Cluster | None = None
    best_d = float("inf")
    for c in clusters:
        d = math.hypot(c.x - x, c.y - y)
        if d <= radius_px and d < best_d:
            best, best_d = c, d
    return best


class InteractionResolver:
    """
    Turns pointer interactions into popup content or a view change.
    """

    def __init__(self, source: TurbineSource, *, nearest_k: int = 3):
        self.source = source
        self.nearest_k = nearest_k

    def resolve_click(
        self, cluster: Cluster, working_set: WorkingSet, viewport: Viewport
    ) -> Popup | ZoomTo | None:
        if isinstance(cluster, Single) or cluster.count == 1:
            record = cluster.members[0]
            # Prefer the working-set copy; it is what the map was drawn from.
            current = working_set.get(record.id) or record
            return Popup.for_record(current)
        if isinstance(cluster, Group):
            return ZoomTo(
                viewport=fit_view_to_points(
                    [(m.lon, m.lat) for m in cluster.members], viewport=viewport
                )
            )
        return None

    async def resolve_secondary(self, lon: float, lat: float) -> NearestPopup | None:
        """
        Nearest turbine to an arbitrary map point, regardless of what is loaded.
        """
        hits = await self.source.fetch_nearest(lon, lat, k=self.nearest_k)
        if not hits:
            return None
        nearest = min(hits, key=lambda h: (h.distance, h.id))
        return _nearest_popup(nearest)


def _nearest_popup(hit: NearestHit) -> NearestPopup:
    return NearestPopup(
        id=hit.id,
        location_name=hit.location_name,
        capacity_mw=hit.capacity_mw,
        distance=hit.distance,
        households=households_powered(hit.capacity_mw),
    )
