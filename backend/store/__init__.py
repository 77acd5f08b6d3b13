"""
Spatial stores.

A store answers bounding-box containment and nearest-point queries over the
read-only turbine dataset:
- InMemorySpatialStore: STRtree over the dataset loaded at startup
- DuckDBSpatialStore: seeded DuckDB table queried with SQL bbox predicates
"""
