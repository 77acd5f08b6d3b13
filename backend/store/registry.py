from __future__ import annotations

import logging

from settings import Settings
from store.duckdb import DuckDBSpatialStore
from store.in_memory import InMemorySpatialStore
from store.types import SpatialStore
from turbines.loaders import load_turbines

logger = logging.getLogger(__name__)


def open_store(settings: Settings) -> SpatialStore:
    """
    Build the configured store and load the dataset into it.
    """
    path = settings.data_file()
    if not path.exists():
        raise FileNotFoundError(f"Turbine dataset not found: {path}")
    turbines = load_turbines(path)

    if settings.engine == "duckdb":
        store = DuckDBSpatialStore.open(settings.duckdbPath)
        n = store.seed(turbines)
        logger.info("DuckDB store ready at %s (%d turbines)", settings.duckdbPath, n)
        return store

    logger.info("In-memory store ready (%d turbines)", len(turbines))
    return InMemorySpatialStore(turbines)
