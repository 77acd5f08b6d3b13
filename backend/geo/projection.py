from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache

from pyproj import Transformer

from geo.aoi import BBox

_MAX_MERCATOR_LAT = 85.05112878
# Half the EPSG:3857 world width in meters.
_ORIGIN_SHIFT = 20037508.342789244
_TILE_SIZE = 256.0


@lru_cache(maxsize=1)
def transformer_4326_to_3857() -> Transformer:
    return Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)


@lru_cache(maxsize=1)
def transformer_3857_to_4326() -> Transformer:
    return Transformer.from_crs("EPSG:3857", "EPSG:4326", always_xy=True)


def world_size_px(zoom: float) -> float:
    return _TILE_SIZE * (2.0 ** float(zoom))


def lonlat_to_world_px(lon: float, lat: float, zoom: float) -> tuple[float, float]:
    """
    Web Mercator "global pixel" coordinates (origin top-left of the world) at zoom.
    """
    lat = max(-_MAX_MERCATOR_LAT, min(_MAX_MERCATOR_LAT, float(lat)))
    x, y = transformer_4326_to_3857().transform(float(lon), lat)
    size = world_size_px(zoom)
    px = (x + _ORIGIN_SHIFT) / (2.0 * _ORIGIN_SHIFT) * size
    py = (_ORIGIN_SHIFT - y) / (2.0 * _ORIGIN_SHIFT) * size
    return float(px), float(py)


def world_px_to_lonlat(px: float, py: float, zoom: float) -> tuple[float, float]:
    size = world_size_px(zoom)
    x = px / size * (2.0 * _ORIGIN_SHIFT) - _ORIGIN_SHIFT
    y = _ORIGIN_SHIFT - py / size * (2.0 * _ORIGIN_SHIFT)
    lon, lat = transformer_3857_to_4326().transform(x, y)
    return float(lon), float(lat)


@dataclass(frozen=True)
class Viewport:
    """
    What the map currently shows: a center, a zoom level and a pixel size.
    """

    center_lon: float
    center_lat: float
    zoom: float
    width: int = 900
    height: int = 600

    def project(self, lon: float, lat: float) -> tuple[float, float]:
        """
        Screen pixel position of lon/lat (origin top-left of the viewport).
        """
        cx, cy = lonlat_to_world_px(self.center_lon, self.center_lat, self.zoom)
        px, py = lonlat_to_world_px(lon, lat, self.zoom)
        return px - cx + self.width / 2.0, py - cy + self.height / 2.0

    def unproject(self, x: float, y: float) -> tuple[float, float]:
        cx, cy = lonlat_to_world_px(self.center_lon, self.center_lat, self.zoom)
        return world_px_to_lonlat(x + cx - self.width / 2.0, y + cy - self.height / 2.0, self.zoom)

    def bbox(self) -> BBox:
        """
        Geographic extent of the viewport, clamped to valid lon/lat ranges.

        Edge longitudes come straight from world-pixel x so that edges past the
        antimeridian clamp to +-180 instead of wrapping around.
        """
        size = world_size_px(self.zoom)
        cx, cy = lonlat_to_world_px(self.center_lon, self.center_lat, self.zoom)
        left = cx - self.width / 2.0
        right = cx + self.width / 2.0
        top = max(0.0, cy - self.height / 2.0)
        bottom = min(size, cy + self.height / 2.0)
        west = left / size * 360.0 - 180.0
        east = right / size * 360.0 - 180.0
        _, north = world_px_to_lonlat(cx, top, self.zoom)
        _, south = world_px_to_lonlat(cx, bottom, self.zoom)
        return BBox(
            min_lon=_clamp(west, -180.0, 180.0),
            min_lat=_clamp(south, -90.0, 90.0),
            max_lon=_clamp(east, -180.0, 180.0),
            max_lat=_clamp(north, -90.0, 90.0),
        ).normalized()

    def with_view(self, *, center_lon: float, center_lat: float, zoom: float) -> "Viewport":
        return Viewport(
            center_lon=center_lon,
            center_lat=center_lat,
            zoom=zoom,
            width=self.width,
            height=self.height,
        )


def fit_view_to_points(
    points: list[tuple[float, float]],
    *,
    viewport: Viewport,
    max_zoom: float = 18.0,
) -> Viewport:
    """
    Viewport (same pixel size) that fits all `(lon, lat)` points with some padding.
    """
    min_lon = min(lon for lon, _ in points)
    max_lon = max(lon for lon, _ in points)
    min_lat = min(lat for _, lat in points)
    max_lat = max(lat for _, lat in points)

    pad_lon = max(0.003, (max_lon - min_lon) * 0.25)
    pad_lat = max(0.003, (max_lat - min_lat) * 0.25)
    min_lon -= pad_lon
    max_lon += pad_lon
    min_lat -= pad_lat
    max_lat += pad_lat

    zoom = bbox_to_zoom(
        min_lon, min_lat, max_lon, max_lat, width=viewport.width, height=viewport.height
    )
    return viewport.with_view(
        center_lon=(min_lon + max_lon) / 2.0,
        center_lat=(min_lat + max_lat) / 2.0,
        zoom=min(float(max_zoom), zoom),
    )


def bbox_to_zoom(
    min_lon: float,
    min_lat: float,
    max_lon: float,
    max_lat: float,
    *,
    width: int,
    height: int,
) -> float:
    # WebMercator bbox -> zoom heuristic.
    def lat_to_rad(lat: float) -> float:
        s = math.sin(lat * math.pi / 180.0)
        return math.log((1 + s) / (1 - s)) / 2.0

    lat_rad_min = lat_to_rad(max(-_MAX_MERCATOR_LAT, min_lat))
    lat_rad_max = lat_to_rad(min(_MAX_MERCATOR_LAT, max_lat))
    lon_delta = max_lon - min_lon
    lat_delta = (lat_rad_max - lat_rad_min) * 180.0 / math.pi

    # avoid division by zero
    lon_delta = max(lon_delta, 1e-6)
    lat_delta = max(lat_delta, 1e-6)

    # 256px tiles
    zoom_x = math.log2((width * 360.0) / (_TILE_SIZE * lon_delta))
    zoom_y = math.log2((height * 180.0) / (_TILE_SIZE * lat_delta))
    return float(max(0.0, min(zoom_x, zoom_y)))


def _clamp(v: float, lo: float, hi: float) -> float:
    if not math.isfinite(v):
        return hi if v > 0 else lo
    return max(lo, min(hi, v))
