from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from geo.aoi import BBox
from turbines.errors import QueryError, StoreUnavailable, error_from_payload
from turbines.types import Turbine, make_turbine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NearestHit:
    """
    One row of a nearest-point response (no coordinates on the wire).
    """

    id: int
    location_name: str
    capacity_mw: float
    distance: float


class TurbineSource(Protocol):
    async def fetch_bbox(self, box: BBox, *, limit: int | None = None) -> list[Turbine]: ...

    async def fetch_nearest(self, lon: float, lat: float, *, k: int = 3) -> list[NearestHit]: ...


class HttpTurbineSource:
    """
    TurbineSource over the HTTP query API.

    Non-2xx responses become classified errors: 400 -> InvalidArgument, anything
    else (and transport failures) -> StoreUnavailable.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.transport = transport

    async def fetch_bbox(self, box: BBox, *, limit: int | None = None) -> list[Turbine]:
        b = box.normalized()
        params: dict[str, Any] = {
            "minLon": repr(b.min_lon),
            "minLat": repr(b.min_lat),
            "maxLon": repr(b.max_lon),
            "maxLat": repr(b.max_lat),
        }
        if limit is not None:
            params["limit"] = int(limit)
        rows = await self._get_json("/api/turbines/bbox", params)
        try:
            return [
                make_turbine(
                    id=r["id"],
                    location_name=r.get("location_name"),
                    lon=r["lon"],
                    lat=r["lat"],
                    capacity_mw=r.get("capacity_mw"),
                )
                for r in rows
            ]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise _malformed("/api/turbines/bbox", e) from e

    async def fetch_nearest(self, lon: float, lat: float, *, k: int = 3) -> list[NearestHit]:
        rows = await self._get_json(
            "/api/turbines/nearest", {"lon": repr(float(lon)), "lat": repr(float(lat)), "k": int(k)}
        )
        try:
            return [
                NearestHit(
                    id=int(r["id"]),
                    location_name=str(r.get("location_name") or ""),
                    capacity_mw=float(r.get("capacity_mw") or 0.0),
                    distance=float(r["distance"]),
                )
                for r in rows
            ]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise _malformed("/api/turbines/nearest", e) from e

    async def _get_json(self, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout_s, transport=self.transport
            ) as client:
                response = await client.get(path, params=params)
        except httpx.HTTPError as e:
            logger.warning("Request to %s failed: %s", path, e)
            raise StoreUnavailable(f"Request failed: {type(e).__name__}") from e

        if response.status_code >= 400:
            raise _classify(response)
        try:
            data = response.json()
        except ValueError as e:
            raise _malformed(path, e) from e
        if not isinstance(data, list):
            raise StoreUnavailable(f"Unexpected response shape from {path}")
        return data


def _malformed(path: str, error: Exception) -> StoreUnavailable:
    logger.warning("Malformed response from %s: %s", path, error)
    return StoreUnavailable(f"Malformed response from {path}")


def _classify(response: httpx.Response) -> QueryError:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    return error_from_payload(response.status_code, payload)
