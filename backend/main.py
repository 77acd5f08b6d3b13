from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.query_service import QueryService
from api.schemas import (
    ApiCenter,
    ApiClusterConfig,
    ApiError,
    ApiNearestTurbine,
    ApiTurbine,
    ApiViewConfig,
)
from settings import Settings, get_settings
from store.registry import open_store
from telemetry.singleton import get_store
from turbines.errors import QueryError

logger = logging.getLogger(__name__)

_ERROR_RESPONSES = {400: {"model": ApiError}, 500: {"model": ApiError}}


def create_app(
    service: QueryService | None = None, *, settings: Settings | None = None
) -> FastAPI:
    """
    Build the HTTP app around a query service.

    Tests inject a service backed by their own store; otherwise the store is opened
    from settings when the app starts and closed when it stops.
    """
    cfg = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "query_service", None) is None:
            owned = open_store(cfg)
            app.state.query_service = QueryService(
                owned, max_results=cfg.maxResults, nearest_k=cfg.nearestK
            )
        try:
            yield
        finally:
            if owned is not None:
                owned.close()
                app.state.query_service = None

    app = FastAPI(title="windmap", lifespan=lifespan)
    app.state.settings = cfg
    app.state.query_service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.corsOrigins,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.exception_handler(QueryError)
    async def _query_error_handler(_request: Request, exc: QueryError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.get("/health")
    def health(request: Request):
        svc = _service(request)
        return {"status": "ok", "engine": getattr(svc.store, "name", "unknown")}

    @app.get("/api/view", response_model=ApiViewConfig)
    def view_config(request: Request):
        s: Settings = request.app.state.settings
        return ApiViewConfig(
            center=ApiCenter(lat=s.defaultView.center.lat, lon=s.defaultView.center.lon),
            zoom=s.defaultView.zoom,
            maxResults=s.maxResults,
            nearestK=s.nearestK,
            clusters=ApiClusterConfig(**s.clusters.model_dump()),
        )

    @app.get(
        "/api/turbines/bbox",
        response_model=list[ApiTurbine],
        responses=_ERROR_RESPONSES,
    )
    def turbines_bbox(
        request: Request,
        minLon: str | None = Query(default=None),
        minLat: str | None = Query(default=None),
        maxLon: str | None = Query(default=None),
        maxLat: str | None = Query(default=None),
        limit: str | None = Query(default=None),
    ):
        return _bbox_response(request, "/api/turbines/bbox", minLon, minLat, maxLon, maxLat, limit)

    # Older clients call the collection route with the same bbox parameters.
    @app.get(
        "/api/turbines",
        response_model=list[ApiTurbine],
        responses=_ERROR_RESPONSES,
    )
    def turbines(
        request: Request,
        minLon: str | None = Query(default=None),
        minLat: str | None = Query(default=None),
        maxLon: str | None = Query(default=None),
        maxLat: str | None = Query(default=None),
        limit: str | None = Query(default=None),
    ):
        return _bbox_response(request, "/api/turbines", minLon, minLat, maxLon, maxLat, limit)

    @app.get(
        "/api/turbines/nearest",
        response_model=list[ApiNearestTurbine],
        responses=_ERROR_RESPONSES,
    )
    def turbines_nearest(
        request: Request,
        lon: str | None = Query(default=None),
        lat: str | None = Query(default=None),
        k: str | None = Query(default=None),
    ):
        svc = _service(request)
        t0 = time.perf_counter()
        try:
            rows = svc.query_nearest(lon, lat, k=k)
        except QueryError as e:
            _record(svc, "/api/turbines/nearest", None, 0, t0, error_kind=e.kind)
            raise
        point = (float(lon), float(lat), float(lon), float(lat))
        _record(svc, "/api/turbines/nearest", point, len(rows), t0)
        return [ApiNearestTurbine.from_nearest(r) for r in rows]

    @app.get("/telemetry/summary")
    def telemetry_summary(endpoint: str | None = Query(default=None)):
        store = get_store()
        if store is None:
            return {"enabled": False, "rows": []}
        return {"enabled": True, "rows": store.summary(endpoint=endpoint)}

    return app


def _service(request: Request) -> QueryService:
    svc = getattr(request.app.state, "query_service", None)
    if svc is None:
        raise RuntimeError("Query service is not initialized")
    return svc


def _bbox_response(request: Request, endpoint: str, min_lon, min_lat, max_lon, max_lat, limit):
    svc = _service(request)
    t0 = time.perf_counter()
    try:
        rows = svc.query_bounding_box(min_lon, min_lat, max_lon, max_lat, limit=limit)
    except QueryError as e:
        _record(svc, endpoint, None, 0, t0, error_kind=e.kind)
        raise
    lo_lon, hi_lon = sorted((float(min_lon), float(max_lon)))
    lo_lat, hi_lat = sorted((float(min_lat), float(max_lat)))
    bbox = (lo_lon, lo_lat, hi_lon, hi_lat)
    _record(svc, endpoint, bbox, len(rows), t0)
    return [ApiTurbine.from_turbine(t) for t in rows]


def _record(svc: QueryService, endpoint: str, bbox, n: int, t0: float, *, error_kind=None) -> None:
    # Telemetry is best-effort; a broken telemetry DB must not fail the query.
    try:
        store = get_store()
        if store is not None:
            store.record(
                endpoint=endpoint,
                engine=getattr(svc.store, "name", "unknown"),
                bbox=bbox,
                result_count=n,
                duration_ms=(time.perf_counter() - t0) * 1000.0,
                error_kind=error_kind,
            )
    except Exception:
        logger.debug("Telemetry record failed for %s", endpoint, exc_info=True)


app = create_app()
