"""
Cross-reference checks over an assembled station catalog.

Subordinate stations are predicted from a reference station and name it by
its catalog key.  A subordinate pointing at a missing or non-reference
station would silently lose its predictions, so these checks hard-fail.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable

from tide_catalog.exceptions import StationResolutionError
from tide_catalog.stations.station import REFERENCE, SUBORDINATE, StationCandidate

logger = logging.getLogger(__name__)


def check_unique_ids(stations: Iterable[StationCandidate]) -> dict[str, StationCandidate]:
    """
    Index stations by key, rejecting duplicates.

    Returns
    -------
    dict
        ``{station_id: station}`` in input order.

    Raises
    ------
    StationResolutionError
        If two stations share a key.
    """
    by_id: dict[str, StationCandidate] = {}
    duplicates = []
    for station in stations:
        sid = station.station_id
        if sid in by_id:
            duplicates.append(sid)
        else:
            by_id[sid] = station
    if duplicates:
        raise StationResolutionError(
            f'Duplicate station ids in catalog: {sorted(set(duplicates))}'
        )
    return by_id


def resolve_subordinate_references(
    stations: Iterable[StationCandidate],
    logger: logging.Logger | None = None,
) -> dict[str, str]:
    """
    Resolve every subordinate station to its reference station.

    Parameters
    ----------
    stations : iterable of StationCandidate
        The full catalog (existing canonical stations and new admissions).
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    dict
        ``{subordinate_id: reference_id}``.

    Raises
    ------
    StationResolutionError
        Listing every subordinate whose reference is unknown or is not a
        reference station, or if station ids are not unique.
    """
    _log = logger or logging.getLogger(__name__)

    by_id = check_unique_ids(stations)
    resolved: dict[str, str] = {}
    unresolved: list[str] = []

    for sid, station in by_id.items():
        if station.type != SUBORDINATE:
            continue
        ref_id = station.offsets.reference if station.offsets else None
        reference = by_id.get(ref_id) if ref_id else None
        if reference is None:
            unresolved.append(f'{sid} -> {ref_id} (unknown)')
        elif reference.type != REFERENCE:
            unresolved.append(f'{sid} -> {ref_id} (not a reference station)')
        else:
            resolved[sid] = ref_id

    if unresolved:
        for item in unresolved:
            _log.error('Unresolved subordinate reference: %s', item)
        raise StationResolutionError(
            f'{len(unresolved)} subordinate station(s) reference unknown '
            f'stations: {unresolved}'
        )

    _log.info('Resolved %d subordinate station references.', len(resolved))
    return resolved
