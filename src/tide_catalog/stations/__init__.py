"""
Stations Subpackage

Provides functionality for:
- Station data model and record (de)serialization
- Candidate validation
- Priority ordering of competing station records
- Subordinate reference resolution
"""

from tide_catalog.stations.priority import (
    DEFAULT_PRIORITY,
    SOURCE_PRIORITY,
    compare_station_priority,
    epoch_years,
    get_source_priority,
    get_source_suffix,
    has_quality_issues,
    license_for_source,
    priority_key,
)
from tide_catalog.stations.references import (
    check_unique_ids,
    resolve_subordinate_references,
)
from tide_catalog.stations.station import (
    CanonicalStation,
    Epoch,
    HarmonicConstituent,
    StationCandidate,
    StationLicense,
    StationSource,
    SubordinateOffsets,
    promote,
    station_from_record,
    to_record,
    validate_candidate,
)

__all__ = [
    # Data model
    'HarmonicConstituent',
    'Epoch',
    'StationSource',
    'StationLicense',
    'SubordinateOffsets',
    'StationCandidate',
    'CanonicalStation',
    'promote',
    'validate_candidate',
    'to_record',
    'station_from_record',
    # Priority
    'SOURCE_PRIORITY',
    'DEFAULT_PRIORITY',
    'get_source_suffix',
    'get_source_priority',
    'has_quality_issues',
    'epoch_years',
    'priority_key',
    'compare_station_priority',
    'license_for_source',
    # References
    'check_unique_ids',
    'resolve_subordinate_references',
]
