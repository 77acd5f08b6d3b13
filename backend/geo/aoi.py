from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from turbines.errors import InvalidArgument

_LON_RANGE = (-180.0, 180.0)
_LAT_RANGE = (-90.0, 90.0)


@dataclass(frozen=True)
class BBox:
    """
    WGS84 bounding box in lon/lat degrees.

    Convention used throughout this repo:
    - minLon, minLat, maxLon, maxLat
    - edges are inclusive; a zero-area box is a valid point query
    """

    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    def normalized(self) -> "BBox":
        min_lon = min(self.min_lon, self.max_lon)
        max_lon = max(self.min_lon, self.max_lon)
        min_lat = min(self.min_lat, self.max_lat)
        max_lat = max(self.min_lat, self.max_lat)
        return BBox(min_lon=min_lon, min_lat=min_lat, max_lon=max_lon, max_lat=max_lat)

    def validated(self) -> "BBox":
        """
        Normalize and reject coordinates outside lon [-180, 180] / lat [-90, 90].

        Out-of-range input is a client error; we never clamp silently.
        """
        b = self.normalized()
        for name, value, (lo, hi) in (
            ("minLon", b.min_lon, _LON_RANGE),
            ("maxLon", b.max_lon, _LON_RANGE),
            ("minLat", b.min_lat, _LAT_RANGE),
            ("maxLat", b.max_lat, _LAT_RANGE),
        ):
            if not math.isfinite(value):
                raise InvalidArgument(f"{name} must be a finite number")
            if value < lo or value > hi:
                raise InvalidArgument(f"{name}={value} is outside [{lo}, {hi}]")
        return b

    def contains(self, lon: float, lat: float) -> bool:
        b = self.normalized()
        return b.min_lon <= lon <= b.max_lon and b.min_lat <= lat <= b.max_lat

    def is_degenerate(self) -> bool:
        b = self.normalized()
        return b.min_lon == b.max_lon or b.min_lat == b.max_lat

    def rounded_key(self, decimals: int = 4) -> tuple[float, float, float, float]:
        """
        A stable, hashable key for "same viewport" comparisons.

        decimals=4 is ~11m-ish in latitude, which is good enough for interactive panning.
        """
        b = self.normalized()
        return (
            round(b.min_lon, decimals),
            round(b.min_lat, decimals),
            round(b.max_lon, decimals),
            round(b.max_lat, decimals),
        )


def parse_coordinate(name: str, raw: Any) -> float:
    """
    Parse a decimal coordinate from a query string value (or a number).
    """
    if raw is None:
        raise InvalidArgument(f"{name} is required")
    if isinstance(raw, bool):
        raise InvalidArgument(f"{name} must be a number")
    try:
        value = float(str(raw).strip()) if isinstance(raw, str) else float(raw)
    except (TypeError, ValueError):
        raise InvalidArgument(f"{name} must be a number, got {raw!r}") from None
    if not math.isfinite(value):
        raise InvalidArgument(f"{name} must be a finite number")
    return value


def validate_point(lon: float, lat: float) -> tuple[float, float]:
    if not _LON_RANGE[0] <= lon <= _LON_RANGE[1]:
        raise InvalidArgument(f"lon={lon} is outside [-180.0, 180.0]")
    if not _LAT_RANGE[0] <= lat <= _LAT_RANGE[1]:
        raise InvalidArgument(f"lat={lat} is outside [-90.0, 90.0]")
    return lon, lat
