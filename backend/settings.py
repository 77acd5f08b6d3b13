from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field


def _repo_root() -> Path:
    # .../backend/settings.py -> repo root is 1 level up from backend/
    return Path(__file__).resolve().parents[1]


class ViewCenter(BaseModel):
    lon: float = Field(ge=-180.0, le=180.0)
    lat: float = Field(ge=-90.0, le=90.0)


class DefaultView(BaseModel):
    # Germany, which is what the bundled dataset covers.
    center: ViewCenter = Field(default_factory=lambda: ViewCenter(lon=10.4515, lat=51.1657))
    zoom: float = Field(default=6.0, ge=0.0, le=24.0)


class ClusterSettings(BaseModel):
    distancePx: float = Field(default=40.0, gt=0.0)
    # At or above this zoom every record is drawn as its own marker.
    singleMarkerMinZoom: float = Field(default=14.0, ge=0.0, le=24.0)
    hitRadiusPx: float = Field(default=12.0, gt=0.0)


class Settings(BaseModel):
    engine: Literal["in_memory", "duckdb"] = "in_memory"
    dataPath: str = "data/german_wind_power.geojson"
    # DuckDB database file; ":memory:" keeps the seeded table in-process.
    duckdbPath: str = ":memory:"
    maxResults: int = Field(default=1000, ge=1, le=50_000)
    nearestK: int = Field(default=3, ge=1, le=50)
    corsOrigins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    defaultView: DefaultView = Field(default_factory=DefaultView)
    clusters: ClusterSettings = Field(default_factory=ClusterSettings)

    def data_file(self) -> Path:
        return resolve_repo_path(self.dataPath)


def config_path() -> Path:
    return Path(os.getenv("WINDMAP_CONFIG") or (_repo_root() / "config" / "windmap.yaml"))


def resolve_repo_path(repo_relative: str) -> Path:
    p = Path(repo_relative)
    if p.is_absolute():
        return p
    return _repo_root() / p


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid settings yaml root: {path}")
    return data


def _env_overrides() -> dict:
    out: dict = {}
    for env_name, key in (
        ("WINDMAP_ENGINE", "engine"),
        ("WINDMAP_DATA_PATH", "dataPath"),
        ("WINDMAP_DUCKDB_PATH", "duckdbPath"),
        ("WINDMAP_MAX_RESULTS", "maxResults"),
        ("WINDMAP_NEAREST_K", "nearestK"),
    ):
        raw = (os.getenv(env_name) or "").strip()
        if raw:
            out[key] = raw
    origins = (os.getenv("WINDMAP_CORS_ORIGINS") or "").strip()
    if origins:
        out["corsOrigins"] = [o.strip() for o in origins.split(",") if o.strip()]
    return out


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data = _load_yaml(config_path())
    data.update(_env_overrides())
    return Settings.model_validate(data)


def clear_settings_cache() -> None:
    """
    Drop the cached settings so env/YAML changes are picked up (tests, dev reloads).
    """
    get_settings.cache_clear()
