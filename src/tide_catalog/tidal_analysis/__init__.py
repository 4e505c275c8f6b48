"""
Tidal Analysis Subpackage

Provides functionality for:
- Tidal constituent name normalization
- Tide synthesis from harmonic constants (UTide)
- High/low water extraction per tidal day
- Synthetic tidal datums over a nodal cycle
"""

from tide_catalog.tidal_analysis.constituents import (
    normalize_constituent_name,
    split_supported,
)
from tide_catalog.tidal_analysis.datums import (
    DATUM_NAMES,
    DatumOptions,
    TidalDatumsResult,
    compute_datums,
    compute_datums_from_timeline,
    resolve_epoch,
)
from tide_catalog.tidal_analysis.extremes import TIDAL_DAY_HOURS, extract_tidal_day_extrema
from tide_catalog.tidal_analysis.tidal_prediction import (
    HarmonicPredictor,
    UtidePredictor,
)

__all__ = [
    # Constituent names
    'normalize_constituent_name',
    'split_supported',
    # Tide synthesis
    'HarmonicPredictor',
    'UtidePredictor',
    # Extrema extraction
    'TIDAL_DAY_HOURS',
    'extract_tidal_day_extrema',
    # Datums
    'DATUM_NAMES',
    'DatumOptions',
    'TidalDatumsResult',
    'compute_datums',
    'compute_datums_from_timeline',
    'resolve_epoch',
]
