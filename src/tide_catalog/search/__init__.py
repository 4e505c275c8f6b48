"""
Search Subpackage

Provides great-circle distance and an immutable nearest-neighbor index over
station coordinates.
"""

from tide_catalog.search.geo import (
    SpatialIndex,
    StationIndex,
    build_index,
    calculate_station_distance,
)

__all__ = [
    'SpatialIndex',
    'StationIndex',
    'build_index',
    'calculate_station_distance',
]
