"""
Error taxonomy for station curation and datum computation.

Input errors are fatal for the affected record, resolution errors are fatal
for the catalog being assembled.  Not-found results are never exceptions.
"""


class CatalogError(Exception):
    """Base exception for station catalog errors."""
    pass


class StationInputError(CatalogError, ValueError):
    """Raised when a station record has missing or invalid fields."""
    pass


class DatumComputationError(CatalogError, ValueError):
    """Raised when synthetic datums cannot be computed from the inputs."""
    pass


class StationResolutionError(CatalogError):
    """Raised when station cross-references cannot be resolved."""
    pass
