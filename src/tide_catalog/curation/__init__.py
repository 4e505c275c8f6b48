"""
Curation Subpackage

Provides functionality for:
- Four-phase deduplication of candidate station batches
- Batch orchestration: validation, geocoding, datums, reference checks
"""

from tide_catalog.curation.catalog_update import (
    CandidateError,
    CurationResult,
    Geocoder,
    is_opaque_name,
    curate_batch,
    merge_catalog,
)
from tide_catalog.curation.deduplication import (
    PHASES,
    DeduplicationResult,
    DedupThresholds,
    deduplicate,
)

__all__ = [
    # Deduplication
    'PHASES',
    'DedupThresholds',
    'DeduplicationResult',
    'deduplicate',
    # Batch orchestration
    'Geocoder',
    'is_opaque_name',
    'CandidateError',
    'CurationResult',
    'curate_batch',
    'merge_catalog',
]
