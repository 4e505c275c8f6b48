"""
Multi-phase deduplication of a candidate station batch.

Decides which candidates from one ingestion run are admitted to the catalog
and which are discarded, in four phases run strictly in order.  Each phase
only considers candidates not removed by an earlier one:

1. Provenance exclusion: candidates re-published by a secondary aggregator
   whose primary source is already in the catalog.
2. Canonical-proximity exclusion: candidates within a threshold of an
   existing station from the trusted primary provider.
3. Quality-superseded exclusion: flagged candidates with any unflagged
   candidate nearby.
4. Mutual-duplicate clustering: single-hop groups of nearby candidates,
   keeping the best-ranked member of each group.

Phase 4 groups around whichever candidate is visited first, so the batch
order must be stable across runs for reproducible output.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from functools import cmp_to_key
from pathlib import Path
from typing import Optional, Union

from tide_catalog.exceptions import StationInputError
from tide_catalog.search.geo import StationIndex
from tide_catalog.stations.priority import compare_station_priority, has_quality_issues
from tide_catalog.stations.station import StationCandidate, validate_position
from tide_catalog.utils import Utils, parse_list_option

logger = logging.getLogger(__name__)

PROVENANCE_EXCLUDED = 'provenance_excluded'
CANONICAL_PROXIMITY_EXCLUDED = 'canonical_proximity_excluded'
QUALITY_SUPERSEDED = 'quality_superseded'
MUTUAL_DUPLICATES_REMOVED = 'mutual_duplicates_removed'

PHASES = (
    PROVENANCE_EXCLUDED,
    CANONICAL_PROXIMITY_EXCLUDED,
    QUALITY_SUPERSEDED,
    MUTUAL_DUPLICATES_REMOVED,
)


@dataclass(frozen=True)
class DedupThresholds:
    """
    Distances (km) and provider settings for the deduplication phases.

    Attributes
    ----------
    canonical_proximity_km : float
        Phase 2 radius around trusted canonical stations (default 100 m).
    quality_superseded_km : float
        Phase 3 radius for unflagged alternatives (default 100 m).
    mutual_duplicate_km : float
        Phase 4 grouping radius (default 50 m).
    trusted_provider : str
        Canonical provider whose stations pre-empt nearby candidates.
    excluded_source_suffixes : tuple of str
        Source-id suffixes marking data re-published from a provider that
        is already sourced directly.
    """

    canonical_proximity_km: float = 0.1
    quality_superseded_km: float = 0.1
    mutual_duplicate_km: float = 0.05
    trusted_provider: str = 'noaa'
    excluded_source_suffixes: tuple[str, ...] = ('noaa',)

    @classmethod
    def from_config(
        cls,
        logger: logging.Logger,
        config_file: Optional[Union[str, Path]] = None,
    ) -> DedupThresholds:
        """Build thresholds from the ``[thresholds]`` and ``[providers]`` sections."""
        conf = Utils(config_file)
        thresholds = conf.read_config_section('thresholds', logger)
        providers = conf.read_config_section('providers', logger)
        defaults = cls()

        excluded = defaults.excluded_source_suffixes
        if 'excluded_source_suffixes' in providers:
            excluded = tuple(parse_list_option(providers['excluded_source_suffixes']))

        return cls(
            canonical_proximity_km=float(thresholds.get(
                'canonical_proximity_km', defaults.canonical_proximity_km)),
            quality_superseded_km=float(thresholds.get(
                'quality_superseded_km', defaults.quality_superseded_km)),
            mutual_duplicate_km=float(thresholds.get(
                'mutual_duplicate_km', defaults.mutual_duplicate_km)),
            trusted_provider=providers.get('trusted_provider', defaults.trusted_provider),
            excluded_source_suffixes=excluded,
        )


@dataclass
class DeduplicationResult:
    """
    Outcome of one deduplication run.

    Attributes
    ----------
    surviving : list of StationCandidate
        Admitted candidates, in batch order.
    discarded_ids : list of str
        Keys of discarded candidates, in removal order.  Any previously
        persisted record under these keys is stale.
    phase_counts : dict
        Number of candidates removed by each phase.
    discarded_reasons : dict
        ``{station_id: phase}`` for every discarded candidate.
    """

    surviving: list[StationCandidate]
    discarded_ids: list[str]
    phase_counts: dict[str, int]
    discarded_reasons: dict[str, str] = field(default_factory=dict)


def deduplicate(
    canonical: Iterable[StationCandidate],
    candidates: Iterable[StationCandidate],
    thresholds: Optional[DedupThresholds] = None,
    logger: logging.Logger | None = None,
) -> DeduplicationResult:
    """
    Filter a candidate batch against the canonical set and against itself.

    Parameters
    ----------
    canonical : iterable of StationCandidate
        Stations already in the catalog.
    candidates : iterable of StationCandidate
        New candidates from one ingestion run, in a stable order.
    thresholds : DedupThresholds, optional
        Distances and provider settings (defaults: 100 m / 100 m / 50 m,
        trusted provider ``"noaa"``).
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    DeduplicationResult

    Raises
    ------
    StationInputError
        If any candidate lacks a valid geolocation or two candidates share
        a key.  The whole batch is rejected.
    """
    _log = logger or logging.getLogger(__name__)
    thresholds = thresholds or DedupThresholds()

    canonical = list(canonical)
    candidates = list(candidates)
    _check_batch(candidates)

    removed: dict[str, str] = {}
    counts = dict.fromkeys(PHASES, 0)

    def discard(station: StationCandidate, phase: str) -> None:
        removed[station.station_id] = phase
        counts[phase] += 1

    _log.info(
        'Deduplicating %d candidates against %d canonical stations.',
        len(candidates), len(canonical),
    )

    # ------------------------------------------------------------------
    # Phase 1: provenance exclusion
    # ------------------------------------------------------------------
    excluded = set(thresholds.excluded_source_suffixes)
    for c in candidates:
        if c.source_suffix in excluded:
            discard(c, PROVENANCE_EXCLUDED)
            _log.debug('%s -> re-published %s data', c.station_id, c.source_suffix)
    _log.info(
        'Phase 1: removed %d candidates re-published from %s.',
        counts[PROVENANCE_EXCLUDED], sorted(excluded),
    )

    # ------------------------------------------------------------------
    # Phase 2: canonical-proximity exclusion
    # ------------------------------------------------------------------
    trusted = thresholds.trusted_provider
    canonical_index = StationIndex(canonical)
    for c in _remaining(candidates, removed):
        cid = c.station_id
        # A trusted station re-ingested under its own key is not its own duplicate
        hit = canonical_index.nearest(
            c.latitude, c.longitude,
            max_distance_km=thresholds.canonical_proximity_km,
            predicate=lambda s: s.provider == trusted and s.station_id != cid,
        )
        if hit is not None:
            station, dist = hit
            discard(c, CANONICAL_PROXIMITY_EXCLUDED)
            _log.debug(
                '%s -> within %.0f m of %s', c.station_id, dist * 1000,
                station.station_id,
            )
    _log.info(
        'Phase 2: removed %d candidates within %.0f m of %s stations.',
        counts[CANONICAL_PROXIMITY_EXCLUDED],
        thresholds.canonical_proximity_km * 1000, trusted,
    )

    # ------------------------------------------------------------------
    # Phase 3: quality-superseded exclusion
    # ------------------------------------------------------------------
    remaining = _remaining(candidates, removed)
    index = StationIndex(remaining)
    for c in remaining:
        if c.station_id in removed or not has_quality_issues(c.disclaimers):
            continue
        cid = c.station_id
        hit = index.nearest(
            c.latitude, c.longitude,
            max_distance_km=thresholds.quality_superseded_km,
            predicate=lambda o: (
                o.station_id != cid
                and o.station_id not in removed
                and not has_quality_issues(o.disclaimers)
            ),
        )
        if hit is not None:
            other, dist = hit
            discard(c, QUALITY_SUPERSEDED)
            _log.debug(
                '%s -> quality issues; %s (%s) at %.0f m', cid,
                other.station_id, other.source_suffix, dist * 1000,
            )
    _log.info(
        'Phase 3: removed %d candidates with quality issues.',
        counts[QUALITY_SUPERSEDED],
    )

    # ------------------------------------------------------------------
    # Phase 4: mutual-duplicate clustering (single hop)
    # ------------------------------------------------------------------
    remaining = _remaining(candidates, removed)
    index = StationIndex(remaining)
    position = {c.station_id: i for i, c in enumerate(remaining)}
    finalized: set[str] = set()
    by_priority = cmp_to_key(compare_station_priority)

    for c in remaining:
        cid = c.station_id
        if cid in removed or cid in finalized:
            continue
        neighbors = index.near(
            c.latitude, c.longitude,
            max_results=len(remaining),
            max_distance_km=thresholds.mutual_duplicate_km,
            predicate=lambda o: (
                o.station_id != cid
                and o.station_id not in removed
                and o.station_id not in finalized
            ),
        )
        finalized.add(cid)
        if not neighbors:
            continue

        group = [c] + sorted(
            (s for s, _ in neighbors), key=lambda s: position[s.station_id],
        )
        group.sort(key=by_priority)
        keep, *others = group
        for other in others:
            finalized.add(other.station_id)
            discard(other, MUTUAL_DUPLICATES_REMOVED)
        _log.debug(
            'Kept %s over %s', keep.station_id, [o.station_id for o in others],
        )
    _log.info(
        'Phase 4: removed %d duplicates within %.0f m.',
        counts[MUTUAL_DUPLICATES_REMOVED], thresholds.mutual_duplicate_km * 1000,
    )

    surviving = _remaining(candidates, removed)
    _log.info(
        'Deduplication complete: %d removed, %d remaining.',
        len(removed), len(surviving),
    )
    return DeduplicationResult(
        surviving=surviving,
        discarded_ids=list(removed),
        phase_counts=counts,
        discarded_reasons=dict(removed),
    )


def _remaining(
    candidates: Sequence[StationCandidate], removed: dict[str, str],
) -> list[StationCandidate]:
    return [c for c in candidates if c.station_id not in removed]


def _check_batch(candidates: Sequence[StationCandidate]) -> None:
    seen: set[str] = set()
    for c in candidates:
        validate_position(c)
        if c.station_id in seen:
            raise StationInputError(f'Duplicate candidate id {c.station_id} in batch.')
        seen.add(c.station_id)
