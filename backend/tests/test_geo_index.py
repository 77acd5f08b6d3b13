from __future__ import annotations

from geo.aoi import BBox
from geo.index import build_turbine_index
from geo.projection import Viewport, bbox_to_zoom
from turbines.types import Turbine


def test_index_dedupes_by_id_last_wins():
    index = build_turbine_index(
        [
            Turbine(id=1, location_name="old", lon=1.0, lat=1.0, capacity_mw=1.0),
            Turbine(id=1, location_name="new", lon=1.0, lat=1.0, capacity_mw=2.0),
        ]
    )
    assert len(index) == 1
    rows = index.contained_in(BBox(0, 0, 2, 2))
    assert [t.location_name for t in rows] == ["new"]


def test_degenerate_line_box_selects_points_on_segment():
    index = build_turbine_index(
        [
            Turbine(id=1, location_name="", lon=5.0, lat=1.0, capacity_mw=1.0),
            Turbine(id=2, location_name="", lon=5.0, lat=3.0, capacity_mw=1.0),
            Turbine(id=3, location_name="", lon=5.1, lat=2.0, capacity_mw=1.0),
        ]
    )
    rows = index.contained_in(BBox(min_lon=5.0, min_lat=0.0, max_lon=5.0, max_lat=4.0))
    assert [t.id for t in rows] == [1, 2]


def test_nearest_expands_search_until_k_found():
    index = build_turbine_index(
        [
            Turbine(id=1, location_name="", lon=0.0, lat=0.0, capacity_mw=1.0),
            Turbine(id=2, location_name="", lon=0.001, lat=0.0, capacity_mw=1.0),
            Turbine(id=3, location_name="", lon=50.0, lat=50.0, capacity_mw=1.0),
        ]
    )
    rows = index.nearest_to(0.0, 0.0, k=3)
    assert [r.turbine.id for r in rows] == [1, 2, 3]
    assert rows[0].distance == 0.0


def test_nearest_ties_broken_by_id():
    index = build_turbine_index(
        [
            Turbine(id=9, location_name="", lon=1.0, lat=0.0, capacity_mw=1.0),
            Turbine(id=4, location_name="", lon=-1.0, lat=0.0, capacity_mw=1.0),
        ]
    )
    rows = index.nearest_to(0.0, 0.0, k=2)
    assert [r.turbine.id for r in rows] == [4, 9]


def test_viewport_project_roundtrip_and_center():
    vp = Viewport(center_lon=10.0, center_lat=51.0, zoom=8.0, width=800, height=600)
    x, y = vp.project(10.0, 51.0)
    assert abs(x - 400.0) < 1e-6
    assert abs(y - 300.0) < 1e-6

    lon, lat = vp.unproject(123.0, 456.0)
    x2, y2 = vp.project(lon, lat)
    assert abs(x2 - 123.0) < 1e-6
    assert abs(y2 - 456.0) < 1e-6


def test_viewport_bbox_contains_center_and_is_valid():
    vp = Viewport(center_lon=10.4515, center_lat=51.1657, zoom=6.0, width=900, height=600)
    b = vp.bbox()
    assert b.contains(10.4515, 51.1657)
    assert b.validated() == b


def test_viewport_bbox_is_clamped_when_zoomed_out():
    b = Viewport(center_lon=0.0, center_lat=0.0, zoom=0.0, width=2000, height=2000).bbox()
    assert b.min_lon == -180.0
    assert b.max_lon == 180.0
    assert -90.0 <= b.min_lat < b.max_lat <= 90.0


def test_bbox_to_zoom_smaller_box_means_higher_zoom():
    wide = bbox_to_zoom(5.0, 47.0, 15.0, 55.0, width=900, height=600)
    narrow = bbox_to_zoom(7.3, 52.1, 7.4, 52.2, width=900, height=600)
    assert narrow > wide


def test_viewport_bbox_near_antimeridian_clamps_instead_of_wrapping():
    vp = Viewport(center_lon=179.5, center_lat=0.0, zoom=6.0, width=900, height=600)
    b = vp.bbox()
    assert b.max_lon == 180.0
    assert 169.0 < b.min_lon < 170.0
    assert b.contains(179.5, 0.0)
    assert b.max_lon - b.min_lon < 20.0


def test_viewport_bbox_west_edge_past_antimeridian_clamps():
    b = Viewport(center_lon=-179.5, center_lat=0.0, zoom=6.0, width=900, height=600).bbox()
    assert b.min_lon == -180.0
    assert -170.0 < b.max_lon < -169.0
