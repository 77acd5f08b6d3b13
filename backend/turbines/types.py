from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

# Single reference system for storage, containment and distance (WGS84 lon/lat).
SRID = 4326

# Average household consumption used by the "households powered" metric.
_HOUSEHOLD_FACTOR = 2000.0 / 3.5


@dataclass(frozen=True)
class Turbine:
    id: int
    location_name: str
    lon: float
    lat: float
    capacity_mw: float

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "location_name": self.location_name,
            "capacity_mw": self.capacity_mw,
            "lon": self.lon,
            "lat": self.lat,
        }


@dataclass(frozen=True)
class NearestTurbine:
    """
    A turbine returned by a nearest-point lookup.

    `distance` is planar, in EPSG:4326 degrees (the same reference system as the
    containment filter).
    """

    turbine: Turbine
    distance: float

    def as_dict(self) -> dict[str, Any]:
        t = self.turbine
        return {
            "id": t.id,
            "location_name": t.location_name,
            "capacity_mw": t.capacity_mw,
            "distance": self.distance,
        }


def households_powered(capacity_mw: float) -> int:
    # Half-up rounding; built-in round() would round 0.5 to even.
    return int(math.floor(float(capacity_mw) * _HOUSEHOLD_FACTOR + 0.5))


def make_turbine(
    *,
    id: Any,
    location_name: Any,
    lon: Any,
    lat: Any,
    capacity_mw: Any,
) -> Turbine:
    """
    Build a turbine from loosely typed input (CSV cells, JSON props, DB rows).
    """
    capacity = float(capacity_mw or 0.0)
    if capacity < 0.0:
        raise ValueError(f"Negative capacity for turbine {id}: {capacity}")
    return Turbine(
        id=int(id),
        location_name=str(location_name or ""),
        lon=float(lon),
        lat=float(lat),
        capacity_mw=capacity,
    )
