"""
Tide Station Catalog Package

Provides tools for:
- Spatial proximity search over station coordinates
- Prioritized deduplication of station records from multiple providers
- Synthetic tidal datum computation from harmonic constituents
"""

__version__ = '0.3.0'

from tide_catalog.exceptions import (
    CatalogError,
    DatumComputationError,
    StationInputError,
    StationResolutionError,
)

__all__ = [
    'CatalogError',
    'DatumComputationError',
    'StationInputError',
    'StationResolutionError',
]
