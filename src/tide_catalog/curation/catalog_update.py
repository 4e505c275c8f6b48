"""
One curation run: validate a candidate batch, deduplicate it against the
catalog, attach datums to the survivors, and check the merged catalog.

Per-candidate problems (malformed records, datum failures) are collected and
reported without stopping the run.  Broken subordinate references across
the merged catalog abort it, since they would corrupt predictions.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Optional, Protocol

from tide_catalog.curation.deduplication import DedupThresholds, deduplicate
from tide_catalog.exceptions import DatumComputationError, StationInputError
from tide_catalog.stations.references import resolve_subordinate_references
from tide_catalog.stations.station import (
    CanonicalStation,
    Epoch,
    StationCandidate,
    promote,
    validate_candidate,
)
from tide_catalog.tidal_analysis.constituents import split_supported
from tide_catalog.tidal_analysis.datums import DatumOptions, compute_datums
from tide_catalog.tidal_analysis.tidal_prediction import HarmonicPredictor, UtidePredictor

logger = logging.getLogger(__name__)

GEOCODE_MAX_DISTANCE_KM = 50.0

# Gauge codes such as S197, G57, CRMS0572 or PTM12
_OPAQUE_CODE = re.compile(r'^(?:[A-Z]{0,4}\d+[A-Z]?|CRMS\d.*|PTM\d.*)$', re.IGNORECASE)


class Geocoder(Protocol):
    """Reverse geocoder for missing location fields and gauge-code names."""

    def nearest_place(
        self, lat: float, lon: float, max_distance_km: float,
    ) -> Optional[Mapping[str, str]]:
        """Return ``{name, country, continent, region}`` (any may be absent) or ``None``."""
        ...


@dataclass(frozen=True)
class CandidateError:
    station_id: str
    message: str


@dataclass
class CurationResult:
    """
    Outcome of :func:`curate_batch`.

    Attributes
    ----------
    stations : list of CanonicalStation
        Admitted candidates with datums attached, in batch order.
    discarded_ids : list of str
        Keys whose persisted records should be deleted.
    phase_counts : dict
        Removals per deduplication phase.
    errors : list of CandidateError
        Candidates rejected by validation or datum computation.
    reused_count, computed_count : int
        Stations whose datums were reused from a previous run or computed.
    """

    stations: list[CanonicalStation]
    discarded_ids: list[str]
    phase_counts: dict[str, int]
    errors: list[CandidateError] = field(default_factory=list)
    reused_count: int = 0
    computed_count: int = 0


def curate_batch(
    canonical: Iterable[StationCandidate],
    candidates: Iterable[StationCandidate],
    previous_records: Optional[Iterable[StationCandidate]] = None,
    predictor: Optional[HarmonicPredictor] = None,
    thresholds: Optional[DedupThresholds] = None,
    datum_options: Optional[DatumOptions] = None,
    force_datums: bool = False,
    max_workers: int = 1,
    geocoder: Optional[Geocoder] = None,
    logger: logging.Logger | None = None,
) -> CurationResult:
    """
    Curate one ingestion batch into canonical stations.

    Parameters
    ----------
    canonical : iterable of StationCandidate
        Stations already in the catalog.
    candidates : iterable of StationCandidate
        New candidates, in a stable order.
    previous_records : iterable of CanonicalStation, optional
        Stations persisted by an earlier run of this batch.  Their datums
        and epoch are reused when the constituents are unchanged.
    predictor : HarmonicPredictor, optional
        Synthesis engine for datums.  Defaults to a :class:`UtidePredictor`
        at each station's latitude.
    thresholds : DedupThresholds, optional
        Deduplication settings.
    datum_options : DatumOptions, optional
        Sampling settings for the synthetic series.
    force_datums : bool, optional
        Recompute datums even when previous ones could be reused.
    max_workers : int, optional
        Threads used for datum computation (default 1, sequential).
    geocoder : Geocoder, optional
        Fills in missing region/continent from the nearest place.
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    CurationResult

    Raises
    ------
    StationResolutionError
        If a subordinate station in the merged catalog references an
        unknown or non-reference station, or station ids collide.
    """
    _log = logger or logging.getLogger(__name__)
    datum_options = datum_options or DatumOptions()
    canonical = list(canonical)
    errors: list[CandidateError] = []

    # ------------------------------------------------------------------
    # Validation and geocoding
    # ------------------------------------------------------------------
    engine = predictor if predictor is not None else UtidePredictor
    supports = getattr(engine, 'supported_constituents', None)
    supported = supports() if supports is not None else None

    valid: list[StationCandidate] = []
    seen: set[str] = set()
    for c in candidates:
        sid = c.station_id
        try:
            validate_candidate(c)
            if sid in seen:
                raise StationInputError(f'Duplicate candidate id {sid} in batch.')
            if supported is not None and c.is_reference:
                ok, missing = split_supported(
                    (hc.name for hc in c.harmonic_constituents), supported,
                )
                if not ok:
                    raise StationInputError(
                        f'Station {sid} has no supported constituents: {missing}'
                    )
        except StationInputError as ex:
            _log.warning('Rejected candidate %s: %s', sid, ex)
            errors.append(CandidateError(sid, str(ex)))
            continue
        seen.add(sid)
        valid.append(_geocode(c, geocoder) if geocoder is not None else c)

    _log.info(
        'Validated %d candidates, %d rejected.', len(valid), len(errors),
    )

    # ------------------------------------------------------------------
    # Deduplication
    # ------------------------------------------------------------------
    dedup = deduplicate(canonical, valid, thresholds, logger=_log)

    # ------------------------------------------------------------------
    # Datums
    # ------------------------------------------------------------------
    previous = {s.station_id: s for s in previous_records or ()}
    if force_datums:
        _log.info('Forcing datum recalculation.')

    def attach(c: StationCandidate):
        return _attach_datums(
            c, previous.get(c.station_id), predictor, datum_options,
            force_datums, _log,
        )

    if max_workers > 1 and len(dedup.surviving) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            outcomes = list(pool.map(attach, dedup.surviving))
    else:
        outcomes = [attach(c) for c in dedup.surviving]

    stations: list[CanonicalStation] = []
    reused = computed = 0
    for c, (station, was_reused, error) in zip(dedup.surviving, outcomes):
        if error is not None:
            _log.error('Datum computation failed for %s: %s', c.station_id, error)
            errors.append(CandidateError(c.station_id, error))
            continue
        stations.append(station)
        if was_reused:
            reused += 1
        elif c.is_reference:
            computed += 1

    _log.info(
        'Datums: %d computed, %d reused, %d failed.',
        computed, reused, len(dedup.surviving) - len(stations),
    )

    # ------------------------------------------------------------------
    # Reference resolution across the merged catalog
    # ------------------------------------------------------------------
    result = CurationResult(
        stations=stations,
        discarded_ids=dedup.discarded_ids,
        phase_counts=dedup.phase_counts,
        errors=errors,
        reused_count=reused,
        computed_count=computed,
    )
    resolve_subordinate_references(merge_catalog(canonical, result), logger=_log)
    return result


def is_opaque_name(name: str) -> bool:
    """
    Whether a station name is a gauge code rather than a place name.

    >>> is_opaque_name('CRMS0572')
    True
    >>> is_opaque_name('Boulogne-sur-Mer')
    False
    """
    stripped = re.sub(r'\s', '', name or '')
    if _OPAQUE_CODE.match(stripped):
        return True
    return len(stripped) <= 4 and not re.search('[aeiou]', stripped, re.IGNORECASE)


def _geocode(c: StationCandidate, geocoder: Geocoder) -> StationCandidate:
    opaque = is_opaque_name(c.name)
    if c.region and c.continent and c.country and not opaque:
        return c
    place = geocoder.nearest_place(c.latitude, c.longitude, GEOCODE_MAX_DISTANCE_KM)
    if not place:
        return c
    return replace(
        c,
        name=(place.get('name') or c.name) if opaque else c.name,
        country=c.country or place.get('country') or '',
        region=c.region or place.get('region'),
        continent=c.continent or place.get('continent'),
    )


def _reusable(c: StationCandidate, prev: Optional[StationCandidate]) -> bool:
    return (
        isinstance(prev, CanonicalStation)
        and bool(prev.datums)
        and tuple(prev.harmonic_constituents) == tuple(c.harmonic_constituents)
    )


def _attach_datums(
    c: StationCandidate,
    prev: Optional[StationCandidate],
    predictor: Optional[HarmonicPredictor],
    options: DatumOptions,
    force: bool,
    log: logging.Logger,
) -> tuple[Optional[CanonicalStation], bool, Optional[str]]:
    """Return ``(station, reused, error_message)`` for one survivor."""
    if not c.is_reference:
        return promote(c, {}), False, None

    if not force and _reusable(c, prev):
        log.debug('Reusing datums for %s', c.station_id)
        return promote(c, prev.datums, epoch=prev.epoch or c.epoch), True, None

    engine = predictor or UtidePredictor(latitude=c.latitude, logger=log)
    try:
        result = compute_datums(
            c.harmonic_constituents,
            c.epoch,
            predictor=engine,
            step_hours=options.step_hours,
            tidal_day_hours=options.tidal_day_hours,
            logger=log,
        )
        epoch = Epoch(start=result.start.date(), end=result.end.date())
        return promote(c, result.datums, epoch=epoch), False, None
    except (DatumComputationError, StationInputError) as ex:
        return None, False, str(ex)


def merge_catalog(
    canonical: Sequence[StationCandidate], result: CurationResult,
) -> list[StationCandidate]:
    """
    Apply a curation result to the catalog.

    Drops discarded ids, replaces existing stations by their re-admitted
    version, and appends new admissions, keeping catalog order.
    """
    admitted = {s.station_id: s for s in result.stations}
    dropped = set(result.discarded_ids)
    merged = []
    for s in canonical:
        sid = s.station_id
        if sid in dropped:
            continue
        merged.append(admitted.pop(sid, s))
    merged.extend(admitted.values())
    return merged
