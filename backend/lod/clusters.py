from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Iterable, Union

from shapely.geometry import Point
from shapely.strtree import STRtree

from geo.projection import Viewport
from turbines.types import Turbine

DEFAULT_DISTANCE_PX = 40.0
DEFAULT_SINGLE_MIN_ZOOM = 14.0


@dataclass(frozen=True)
class Single:
    record: Turbine
    x: float
    y: float

    @property
    def count(self) -> int:
        return 1

    @property
    def members(self) -> tuple[Turbine, ...]:
        return (self.record,)


@dataclass(frozen=True)
class Group:
    """
    Two or more records drawn as one marker at the members' mean screen position.
    """

    members: tuple[Turbine, ...]
    x: float
    y: float

    @property
    def count(self) -> int:
        return len(self.members)


Cluster = Union[Single, Group]


def cluster_records(
    records: Iterable[Turbine],
    viewport: Viewport,
    *,
    distance_px: float = DEFAULT_DISTANCE_PX,
) -> list[Cluster]:
    """
    Single-linkage grouping in screen space.

    A record joins a group when it lies within `distance_px` (inclusive) of any
    member, so chains of close points form one group even if their ends are far
    apart. Output is ordered by each cluster's smallest member id and members are
    ordered by id; identical inputs always yield the identical partition.
    """
    ordered = sorted(records, key=lambda r: r.id)
    if not ordered:
        return []

    positions = [viewport.project(r.lon, r.lat) for r in ordered]
    geoms = [Point(x, y) for x, y in positions]
    tree = STRtree(geoms)
    threshold = float(distance_px)

    assigned = [False] * len(ordered)
    out: list[Cluster] = []
    for seed in range(len(ordered)):
        if assigned[seed]:
            continue
        assigned[seed] = True
        component = [seed]
        frontier = deque([seed])
        while frontier:
            i = frontier.popleft()
            near = tree.query(geoms[i], predicate="dwithin", distance=threshold)
            for j in sorted(int(n) for n in near.tolist()):
                if not assigned[j]:
                    assigned[j] = True
                    component.append(j)
                    frontier.append(j)

        component.sort()
        if len(component) == 1:
            x, y = positions[seed]
            out.append(Single(record=ordered[seed], x=x, y=y))
            continue
        xs = [positions[i][0] for i in component]
        ys = [positions[i][1] for i in component]
        out.append(
            Group(
                members=tuple(ordered[i] for i in component),
                x=sum(xs) / len(xs),
                y=sum(ys) / len(ys),
            )
        )
    return out


def render_markers(
    clusters: list[Cluster],
    viewport: Viewport,
    *,
    single_min_zoom: float = DEFAULT_SINGLE_MIN_ZOOM,
) -> list[Cluster]:
    """
    Display policy on top of the grouping: zoomed in far enough, every record is
    drawn as its own marker at its own position.
    """
    if float(viewport.zoom) < float(single_min_zoom):
        return clusters
    out: list[Cluster] = []
    for c in clusters:
        if isinstance(c, Single):
            out.append(c)
            continue
        for m in c.members:
            x, y = viewport.project(m.lon, m.lat)
            out.append(Single(record=m, x=x, y=y))
    return out


@dataclass(frozen=True)
class ClusterEngine:
    """
    Recomputes clusters from scratch on every pass; holds only its parameters.
    """

    distance_px: float = DEFAULT_DISTANCE_PX
    single_min_zoom: float = DEFAULT_SINGLE_MIN_ZOOM

    def compute(self, records: Iterable[Turbine], viewport: Viewport) -> list[Cluster]:
        return cluster_records(records, viewport, distance_px=self.distance_px)

    def markers(self, records: Iterable[Turbine], viewport: Viewport) -> list[Cluster]:
        return render_markers(
            self.compute(records, viewport),
            viewport,
            single_min_zoom=self.single_min_zoom,
        )
