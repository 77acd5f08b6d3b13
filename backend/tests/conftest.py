import asyncio
import os
import sys
from pathlib import Path

import pytest

# Ensure `backend/` is on sys.path so tests can import local modules
# like `geo.*`, `store.*`, and `main`.
BACKEND_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_ROOT))

# Keep test runs from writing query telemetry into the repo.
os.environ.setdefault("WINDMAP_TELEMETRY", "0")

from geo.aoi import BBox  # noqa: E402
from store.in_memory import InMemorySpatialStore  # noqa: E402
from turbines.types import Turbine  # noqa: E402


def make_turbines() -> list[Turbine]:
    return [
        Turbine(id=1, location_name="Hollich A", lon=7.3456, lat=52.1512, capacity_mw=2.0),
        Turbine(id=2, location_name="Hollich B", lon=7.3511, lat=52.1538, capacity_mw=2.3),
        Turbine(id=3, location_name="Druiberg", lon=10.8721, lat=51.9387, capacity_mw=3.2),
        Turbine(id=4, location_name="Feldheim", lon=12.7772, lat=51.9831, capacity_mw=2.0),
        Turbine(id=5, location_name="", lon=9.1830, lat=48.7758, capacity_mw=0.6),
        Turbine(id=6, location_name="Edge", lon=8.0, lat=50.0, capacity_mw=1.5),
    ]


@pytest.fixture
def turbines() -> list[Turbine]:
    return make_turbines()


@pytest.fixture
def memory_store(turbines) -> InMemorySpatialStore:
    return InMemorySpatialStore(turbines)


class SpyStore:
    """Wraps a store and counts calls; optionally fails every query."""

    name = "spy"

    def __init__(self, inner=None, *, fail_with: Exception | None = None):
        self.inner = inner
        self.fail_with = fail_with
        self.calls: list[tuple] = []

    def contained_in(self, box: BBox, *, limit: int):
        self.calls.append(("contained_in", box, limit))
        if self.fail_with is not None:
            raise self.fail_with
        return self.inner.contained_in(box, limit=limit)

    def nearest_to(self, lon: float, lat: float, *, k: int):
        self.calls.append(("nearest_to", lon, lat, k))
        if self.fail_with is not None:
            raise self.fail_with
        return self.inner.nearest_to(lon, lat, k=k)

    def close(self) -> None:
        return None


class GatedSource:
    """
    TurbineSource whose bbox responses are released by the test, in any order.

    `responses` are consumed per call index; an Exception entry is raised instead.
    """

    def __init__(self, responses: list):
        self.responses = list(responses)
        self.calls: list[BBox] = []
        self.gates: list[asyncio.Event] = []
        self.nearest_hits: list = []

    async def fetch_bbox(self, box: BBox, *, limit=None):
        idx = len(self.calls)
        gate = asyncio.Event()
        self.calls.append(box)
        self.gates.append(gate)
        await gate.wait()
        result = self.responses[idx]
        if isinstance(result, Exception):
            raise result
        return result

    async def fetch_nearest(self, lon, lat, *, k=3):
        return list(self.nearest_hits)[:k]

    def release(self, idx: int) -> None:
        self.gates[idx].set()

    async def wait_for_calls(self, n: int) -> None:
        while len(self.calls) < n:
            await asyncio.sleep(0)


class InstantSource(GatedSource):
    """Same as GatedSource but responds immediately."""

    async def fetch_bbox(self, box: BBox, *, limit=None):
        idx = len(self.calls)
        self.calls.append(box)
        result = self.responses[min(idx, len(self.responses) - 1)]
        if isinstance(result, Exception):
            raise result
        return result
