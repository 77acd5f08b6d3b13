from __future__ import annotations

import pytest

from api.query_service import QueryService
from conftest import SpyStore
from turbines.errors import InvalidArgument, StoreUnavailable


def test_bbox_results_lie_inside_box(memory_store):
    svc = QueryService(memory_store)
    rows = svc.query_bounding_box("7.0", "48.0", "11.0", "53.0")
    assert [t.id for t in rows] == [1, 2, 3, 5, 6]
    for t in rows:
        assert 7.0 <= t.lon <= 11.0
        assert 48.0 <= t.lat <= 53.0


def test_bbox_edges_are_inclusive(memory_store):
    svc = QueryService(memory_store)
    rows = svc.query_bounding_box(8.0, 50.0, 9.0, 51.0)
    assert [t.id for t in rows] == [6]


def test_bbox_inverted_edges_are_normalized(memory_store):
    svc = QueryService(memory_store)
    a = svc.query_bounding_box(7.0, 48.0, 11.0, 53.0)
    b = svc.query_bounding_box(11.0, 53.0, 7.0, 48.0)
    assert [t.id for t in a] == [t.id for t in b]


def test_bbox_query_is_idempotent(memory_store):
    svc = QueryService(memory_store)
    first = svc.query_bounding_box(5.0, 47.0, 15.0, 55.0)
    second = svc.query_bounding_box(5.0, 47.0, 15.0, 55.0)
    assert {t.id for t in first} == {t.id for t in second}
    assert first == second


def test_degenerate_point_box_returns_only_coincident_points(memory_store):
    svc = QueryService(memory_store)
    hit = svc.query_bounding_box(7.3456, 52.1512, 7.3456, 52.1512)
    assert [t.id for t in hit] == [1]

    miss = svc.query_bounding_box(7.3457, 52.1512, 7.3457, 52.1512)
    assert miss == []


def test_limit_is_capped_by_server(memory_store):
    svc = QueryService(memory_store, max_results=2)
    assert len(svc.query_bounding_box(-180, -90, 180, 90)) == 2
    # A larger client limit does not lift the cap.
    assert len(svc.query_bounding_box(-180, -90, 180, 90, limit="500")) == 2
    assert len(svc.query_bounding_box(-180, -90, 180, 90, limit=1)) == 1
    # Non-positive limits are clamped up to one row.
    assert len(svc.query_bounding_box(-180, -90, 180, 90, limit=0)) == 1


@pytest.mark.parametrize(
    "coords",
    [
        ("abc", 48, 11, 53),
        (7, "", 11, 53),
        (7, 48, None, 53),
        (7, 48, 11, "nan"),
        (7, 48, "inf", 53),
    ],
)
def test_non_numeric_coordinates_never_reach_store(memory_store, coords):
    spy = SpyStore(memory_store)
    svc = QueryService(spy)
    with pytest.raises(InvalidArgument):
        svc.query_bounding_box(*coords)
    assert spy.calls == []


@pytest.mark.parametrize(
    "coords",
    [(-181, 0, 0, 1), (0, 0, 181, 1), (0, -91, 1, 0), (0, 0, 1, 90.5)],
)
def test_out_of_range_box_is_rejected_not_clamped(memory_store, coords):
    spy = SpyStore(memory_store)
    svc = QueryService(spy)
    with pytest.raises(InvalidArgument):
        svc.query_bounding_box(*coords)
    assert spy.calls == []


def test_non_integer_limit_is_invalid(memory_store):
    svc = QueryService(memory_store)
    with pytest.raises(InvalidArgument):
        svc.query_bounding_box(7, 48, 11, 53, limit="ten")


def test_store_exception_is_classified():
    svc = QueryService(SpyStore(fail_with=RuntimeError("connection refused on 5433")))
    with pytest.raises(StoreUnavailable) as exc:
        svc.query_bounding_box(7, 48, 11, 53)
    assert "5433" not in str(exc.value.details)


def test_nearest_sorted_and_bounded(memory_store):
    svc = QueryService(memory_store)
    rows = svc.query_nearest("7.35", "52.15")
    assert len(rows) <= 3
    dists = [r.distance for r in rows]
    assert dists == sorted(dists)
    assert rows[0].turbine.id == 2


def test_nearest_k_is_capped(memory_store):
    svc = QueryService(memory_store, nearest_k=3)
    assert len(svc.query_nearest(10, 50, k=50)) == 3
    assert len(svc.query_nearest(10, 50, k=1)) == 1


def test_nearest_on_empty_store_returns_empty():
    from store.in_memory import InMemorySpatialStore

    svc = QueryService(InMemorySpatialStore([]))
    assert svc.query_nearest(10, 50) == []
    assert svc.query_bounding_box(-180, -90, 180, 90) == []


def test_nearest_invalid_point(memory_store):
    spy = SpyStore(memory_store)
    svc = QueryService(spy)
    with pytest.raises(InvalidArgument):
        svc.query_nearest("x", 50)
    with pytest.raises(InvalidArgument):
        svc.query_nearest(10, 95)
    assert spy.calls == []
