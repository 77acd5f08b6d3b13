from __future__ import annotations

import logging

from client.events import MapEvent, PointerClick, SecondaryClick, ViewportSettled
from client.interaction import InteractionResolver, Resolution, ZoomTo, hit_test
from client.transport import TurbineSource
from client.viewport_sync import SyncOutcome, SyncResult, ViewportSync
from client.working_set import WorkingSet
from geo.projection import Viewport
from lod.clusters import Cluster, ClusterEngine
from turbines.errors import QueryError

logger = logging.getLogger(__name__)


class MapController:
    """
    Single dispatch point for map events.

    Owns the viewport sync (sole writer of the working set) and the current
    markers, which are recomputed from one working-set snapshot per render.
    """

    def __init__(
        self,
        source: TurbineSource,
        *,
        engine: ClusterEngine | None = None,
        limit: int | None = None,
        nearest_k: int = 3,
        hit_radius_px: float = 12.0,
    ):
        self.sync = ViewportSync(source, limit=limit)
        self.engine = engine or ClusterEngine()
        self.resolver = InteractionResolver(source, nearest_k=nearest_k)
        self.hit_radius_px = hit_radius_px
        self.markers: list[Cluster] = []
        self.popup: Resolution | None = None

    @property
    def working_set(self) -> WorkingSet:
        return self.sync.working_set

    @property
    def error(self) -> QueryError | None:
        return self.sync.last_error

    async def start(self, initial: Viewport) -> SyncResult:
        return await self._settle(initial)

    async def dispatch(self, event: MapEvent):
        if isinstance(event, ViewportSettled):
            return await self._settle(event.viewport)
        if isinstance(event, PointerClick):
            return await self._click(event)
        if isinstance(event, SecondaryClick):
            self.popup = await self.resolver.resolve_secondary(event.lon, event.lat)
            return self.popup
        raise TypeError(f"Unsupported map event: {type(event).__name__}")

    def render(self) -> list[Cluster]:
        viewport = self.sync.viewport
        if viewport is None:
            self.markers = []
            return self.markers
        # One snapshot reference for the whole pass.
        snapshot = self.sync.working_set
        self.markers = self.engine.markers(snapshot.records(), viewport)
        return self.markers

    async def _settle(self, viewport: Viewport) -> SyncResult:
        result = await self.sync.settle(viewport)
        # On failure the stale-but-valid working set is re-projected for the new view.
        if result.outcome is not SyncOutcome.discarded:
            self.render()
        return result

    async def _click(self, event: PointerClick):
        viewport = self.sync.viewport
        if viewport is None:
            return None
        target = hit_test(self.markers, event.x, event.y, radius_px=self.hit_radius_px)
        if target is None:
            return None
        resolution = self.resolver.resolve_click(target, self.sync.working_set, viewport)
        if isinstance(resolution, ZoomTo):
            logger.debug("Zooming to fit %d members", target.count)
            await self._settle(resolution.viewport)
        else:
            self.popup = resolution
        return resolution
