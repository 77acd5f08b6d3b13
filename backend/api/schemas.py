from __future__ import annotations

from pydantic import BaseModel

from turbines.types import NearestTurbine, Turbine


class ApiTurbine(BaseModel):
    id: int
    location_name: str
    capacity_mw: float
    lon: float
    lat: float

    @classmethod
    def from_turbine(cls, t: Turbine) -> "ApiTurbine":
        return cls(**t.as_dict())


class ApiNearestTurbine(BaseModel):
    id: int
    location_name: str
    capacity_mw: float
    # Planar distance in EPSG:4326 degrees.
    distance: float

    @classmethod
    def from_nearest(cls, n: NearestTurbine) -> "ApiNearestTurbine":
        return cls(**n.as_dict())


class ApiError(BaseModel):
    error: str
    details: str | None = None


class ApiCenter(BaseModel):
    lat: float
    lon: float


class ApiClusterConfig(BaseModel):
    distancePx: float
    singleMarkerMinZoom: float
    hitRadiusPx: float


class ApiViewConfig(BaseModel):
    center: ApiCenter
    zoom: float
    maxResults: int
    nearestK: int
    clusters: ApiClusterConfig
