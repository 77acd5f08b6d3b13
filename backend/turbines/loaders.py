from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any

from turbines.types import Turbine, make_turbine


def load_turbines(path: Path) -> list[Turbine]:
    """
    Load the turbine dataset from disk, picking the reader by file suffix.
    """
    suffix = path.suffix.lower()
    if suffix in {".geojson", ".json"}:
        return load_geojson_turbines(path)
    if suffix == ".csv":
        return load_csv_turbines(path)
    raise ValueError(f"Unsupported turbine dataset format: {path}")


def load_geojson_turbines(path: Path) -> list[Turbine]:
    """
    Input: a GeoJSON FeatureCollection of Point features with
    `location_name` / `capacity_mw` properties.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    features = data.get("features") or []

    out: list[Turbine] = []
    for i, feature in enumerate(features):
        geom = (feature or {}).get("geometry") or {}
        props = (feature or {}).get("properties") or {}
        if geom.get("type") != "Point":
            continue
        coords = geom.get("coordinates")
        if not coords or len(coords) < 2:
            continue

        fid = (feature or {}).get("id")
        if fid is None:
            fid = props.get("id", i + 1)

        out.append(
            make_turbine(
                id=fid,
                location_name=props.get("location_name") or props.get("name"),
                lon=coords[0],
                lat=coords[1],
                capacity_mw=props.get("capacity_mw"),
            )
        )

    return out


def load_csv_turbines(path: Path) -> list[Turbine]:
    """
    Input: CSV with header `id,location_name,capacity_mw,lon,lat`.
    """
    out: list[Turbine] = []
    with path.open(newline="", encoding="utf-8") as fh:
        for row in csv.DictReader(fh):
            if not _has_coords(row):
                continue
            out.append(
                make_turbine(
                    id=row["id"],
                    location_name=row.get("location_name"),
                    lon=row["lon"],
                    lat=row["lat"],
                    capacity_mw=row.get("capacity_mw"),
                )
            )
    return out


def _has_coords(row: dict[str, Any]) -> bool:
    return bool((row.get("lon") or "").strip()) and bool((row.get("lat") or "").strip())
