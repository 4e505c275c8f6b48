"""
Station data model.

Defines the immutable station records handled by the curation pipeline:
:class:`StationCandidate` (not yet committed to the catalog) and
:class:`CanonicalStation` (a surviving candidate with computed datums), along
with validation and lossless conversion to and from plain record dicts.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from datetime import date
from typing import Any, Optional

from tide_catalog.exceptions import StationInputError
from tide_catalog.stations.priority import get_source_suffix

logger = logging.getLogger(__name__)

REFERENCE = 'reference'
SUBORDINATE = 'subordinate'
STATION_TYPES = (REFERENCE, SUBORDINATE)

HEIGHT_OFFSET_TYPES = ('ratio', 'fixed')

# Key order of emitted station records
RECORD_ORDER = (
    'id', 'name', 'region', 'country', 'continent', 'latitude', 'longitude',
    'timezone', 'source', 'license', 'disclaimers', 'datums', 'type',
    'harmonic_constituents', 'offsets', 'chart_datum', 'epoch',
)


@dataclass(frozen=True)
class HarmonicConstituent:
    """A named periodic component of the tide signal."""

    name: str
    amplitude: float
    phase: float
    description: Optional[str] = None
    speed: Optional[float] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> HarmonicConstituent:
        """Build a constituent, wrapping the phase into [0, 360)."""
        return cls(
            name=str(record['name']),
            amplitude=float(record['amplitude']),
            phase=normalize_phase(float(record['phase'])),
            description=record.get('description'),
            speed=None if record.get('speed') is None else float(record['speed']),
        )

    def to_record(self) -> dict[str, Any]:
        record = {'name': self.name, 'amplitude': self.amplitude, 'phase': self.phase}
        if self.description is not None:
            record['description'] = self.description
        if self.speed is not None:
            record['speed'] = self.speed
        return record


@dataclass(frozen=True)
class Epoch:
    """Observation window over which the harmonic constants are valid."""

    start: date
    end: date

    @property
    def years(self) -> float:
        """Window length in Julian years."""
        return (self.end - self.start).days / 365.25

    @classmethod
    def from_record(cls, record: Mapping[str, str]) -> Epoch:
        try:
            return cls(
                start=date.fromisoformat(str(record['start'])[:10]),
                end=date.fromisoformat(str(record['end'])[:10]),
            )
        except (KeyError, ValueError) as ex:
            raise StationInputError(f'Malformed epoch {dict(record)!r}: {ex}') from ex

    def to_record(self) -> dict[str, str]:
        return {'start': self.start.isoformat(), 'end': self.end.isoformat()}


@dataclass(frozen=True)
class StationSource:
    name: str
    id: str
    url: str = ''
    published_harmonics: bool = True


@dataclass(frozen=True)
class StationLicense:
    type: str
    commercial_use: bool
    url: str = ''
    notes: Optional[str] = None


@dataclass(frozen=True)
class SubordinateOffsets:
    """Time and height offsets applied to a reference station's predictions."""

    reference: str
    height_high: float
    height_low: float
    height_type: str
    time_high: float
    time_low: float

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> SubordinateOffsets:
        height = record.get('height', {})
        time = record.get('time', {})
        return cls(
            reference=str(record['reference']),
            height_high=float(height['high']),
            height_low=float(height['low']),
            height_type=str(height['type']),
            time_high=float(time['high']),
            time_low=float(time['low']),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            'reference': self.reference,
            'height': {
                'high': self.height_high,
                'low': self.height_low,
                'type': self.height_type,
            },
            'time': {'high': self.time_high, 'low': self.time_low},
        }


@dataclass(frozen=True)
class StationCandidate:
    """
    A station record from one provider, not yet committed to the catalog.

    Attributes
    ----------
    name : str
        Display name.
    country : str
        Country name.
    latitude, longitude : float
        WGS84 position in decimal degrees.
    type : str
        ``"reference"`` or ``"subordinate"``.
    source : StationSource
        Provider name, URL and provider-local id.
    license : StationLicense
        Data license.
    provider : str
        Catalog namespace of the provider (e.g. ``"noaa"``, ``"ticon"``);
        together with ``source.id`` it forms the station key.
    disclaimers : str
        Free text; may carry quality-control caveats.
    harmonic_constituents : tuple of HarmonicConstituent
        Non-empty for reference stations.
    offsets : SubordinateOffsets, optional
        Required for subordinate stations.
    """

    name: str
    country: str
    latitude: float
    longitude: float
    type: str
    source: StationSource
    license: StationLicense
    provider: str
    disclaimers: str = ''
    region: Optional[str] = None
    continent: Optional[str] = None
    timezone: Optional[str] = None
    epoch: Optional[Epoch] = None
    harmonic_constituents: tuple[HarmonicConstituent, ...] = ()
    offsets: Optional[SubordinateOffsets] = None
    chart_datum: Optional[str] = None

    @property
    def station_id(self) -> str:
        """Stable catalog key: ``provider/source-id``."""
        return station_key(self.provider, self.source.id)

    @property
    def source_suffix(self) -> str:
        return get_source_suffix(self.source.id)

    @property
    def is_reference(self) -> bool:
        return self.type == REFERENCE


@dataclass(frozen=True)
class CanonicalStation(StationCandidate):
    """A candidate that survived deduplication, with computed datums."""

    datums: Mapping[str, float] = field(default_factory=dict)


def station_key(provider: str, source_id: str) -> str:
    return f'{provider}/{source_id}'


def normalize_phase(phase: float) -> float:
    """Wrap a phase in degrees into [0, 360)."""
    wrapped = phase % 360.0
    # -1e-18 % 360 rounds to 360.0
    return 0.0 if wrapped >= 360.0 else wrapped


def promote(
    candidate: StationCandidate,
    datums: Mapping[str, float],
    epoch: Optional[Epoch] = None,
) -> CanonicalStation:
    """
    Promote a candidate to a canonical station.

    Raises
    ------
    StationInputError
        If any datum value is not finite.
    """
    bad = {k: v for k, v in datums.items() if not math.isfinite(v)}
    if bad:
        raise StationInputError(
            f'Station {candidate.station_id} has non-finite datums: {bad}'
        )
    values = {f.name: getattr(candidate, f.name) for f in fields(StationCandidate)}
    if epoch is not None:
        values['epoch'] = epoch
    return CanonicalStation(**values, datums=dict(datums))


def validate_candidate(candidate: StationCandidate) -> None:
    """
    Check a candidate against the station invariants.

    Raises
    ------
    StationInputError
        On missing identity or geolocation, an unknown station type,
        invalid constituents, missing offsets, or an inverted epoch.
    """
    sid = candidate.station_id
    if not candidate.provider or not candidate.source.id:
        raise StationInputError(f'Station {sid!r} has no provider or source id.')

    validate_position(candidate)

    if candidate.type not in STATION_TYPES:
        raise StationInputError(
            f'Station {sid} has unknown type {candidate.type!r}; '
            f'expected one of {STATION_TYPES}.'
        )

    if candidate.type == REFERENCE:
        if not candidate.harmonic_constituents:
            raise StationInputError(
                f'Reference station {sid} has no harmonic constituents.'
            )
        for hc in candidate.harmonic_constituents:
            if not math.isfinite(hc.amplitude) or hc.amplitude < 0:
                raise StationInputError(
                    f'Station {sid}: constituent {hc.name} amplitude '
                    f'{hc.amplitude} must be finite and >= 0.'
                )
            if not 0.0 <= hc.phase < 360.0:
                raise StationInputError(
                    f'Station {sid}: constituent {hc.name} phase {hc.phase} '
                    f'outside [0, 360).'
                )
    else:
        offsets = candidate.offsets
        if offsets is None or not offsets.reference:
            raise StationInputError(
                f'Subordinate station {sid} has no reference station offsets.'
            )
        if offsets.height_type not in HEIGHT_OFFSET_TYPES:
            raise StationInputError(
                f'Station {sid}: height offset type {offsets.height_type!r} '
                f'must be one of {HEIGHT_OFFSET_TYPES}.'
            )

    if candidate.epoch is not None and candidate.epoch.end < candidate.epoch.start:
        raise StationInputError(
            f'Station {sid}: epoch end {candidate.epoch.end} precedes '
            f'start {candidate.epoch.start}.'
        )


def validate_position(station: StationCandidate) -> None:
    """Raise :class:`StationInputError` unless the station has a valid position."""
    lat, lon = station.latitude, station.longitude
    if (
        not isinstance(lat, (int, float)) or not isinstance(lon, (int, float))
        or not math.isfinite(lat) or not math.isfinite(lon)
    ):
        raise StationInputError(
            f'Station {station.station_id} is missing a valid geolocation '
            f'(latitude={lat!r}, longitude={lon!r}).'
        )
    if not -90.0 <= lat <= 90.0 or not -180.0 <= lon <= 180.0:
        raise StationInputError(
            f'Station {station.station_id} position ({lat}, {lon}) is out of range.'
        )


def to_record(station: StationCandidate) -> dict[str, Any]:
    """
    Serialize a station into a plain dict with a stable key order.

    Optional fields that are unset are omitted.  The output round-trips
    through :func:`station_from_record`.
    """
    record: dict[str, Any] = {
        'id': station.station_id,
        'name': station.name,
        'region': station.region,
        'country': station.country,
        'continent': station.continent,
        'latitude': station.latitude,
        'longitude': station.longitude,
        'timezone': station.timezone,
        'source': {
            'name': station.source.name,
            'id': station.source.id,
            'published_harmonics': station.source.published_harmonics,
            'url': station.source.url,
        },
        'license': {
            'type': station.license.type,
            'commercial_use': station.license.commercial_use,
            'url': station.license.url,
        },
        'disclaimers': station.disclaimers,
        'datums': dict(getattr(station, 'datums', {})),
        'type': station.type,
        'harmonic_constituents': [
            hc.to_record() for hc in station.harmonic_constituents
        ],
        'offsets': station.offsets.to_record() if station.offsets else None,
        'chart_datum': station.chart_datum,
        'epoch': station.epoch.to_record() if station.epoch else None,
    }
    if station.license.notes is not None:
        record['license']['notes'] = station.license.notes
    return {k: record[k] for k in RECORD_ORDER if record[k] is not None}


def station_from_record(
    record: Mapping[str, Any],
    provider: Optional[str] = None,
) -> StationCandidate:
    """
    Build a station from a record dict.

    Records carrying non-empty ``datums`` become :class:`CanonicalStation`,
    everything else a :class:`StationCandidate`.  The provider comes from
    *provider* or, failing that, from the ``provider/`` prefix of ``id``.

    Raises
    ------
    StationInputError
        If required fields are missing or malformed.
    """
    try:
        if provider is None:
            provider = str(record['id']).split('/', 1)[0]
        src = record['source']
        lic = record.get('license', {})
        values = dict(
            name=str(record['name']),
            country=str(record.get('country', '')),
            latitude=_optional_float(record.get('latitude')),
            longitude=_optional_float(record.get('longitude')),
            type=str(record.get('type', REFERENCE)),
            source=StationSource(
                name=str(src.get('name', '')),
                id=str(src['id']),
                url=str(src.get('url', '')),
                published_harmonics=bool(src.get('published_harmonics', True)),
            ),
            license=StationLicense(
                type=str(lic.get('type', '')),
                commercial_use=bool(lic.get('commercial_use', False)),
                url=str(lic.get('url', '')),
                notes=lic.get('notes'),
            ),
            provider=provider,
            disclaimers=str(record.get('disclaimers') or ''),
            region=record.get('region'),
            continent=record.get('continent'),
            timezone=record.get('timezone'),
            epoch=Epoch.from_record(record['epoch']) if record.get('epoch') else None,
            harmonic_constituents=tuple(
                HarmonicConstituent.from_record(hc)
                for hc in record.get('harmonic_constituents') or ()
            ),
            offsets=(
                SubordinateOffsets.from_record(record['offsets'])
                if record.get('offsets') else None
            ),
            chart_datum=record.get('chart_datum'),
        )
    except (KeyError, TypeError, ValueError) as ex:
        if isinstance(ex, StationInputError):
            raise
        raise StationInputError(
            f'Malformed station record {record.get("id", record.get("name"))!r}: {ex!r}'
        ) from ex

    datums = record.get('datums')
    if datums:
        return CanonicalStation(
            **values, datums={k: float(v) for k, v in datums.items()},
        )
    return StationCandidate(**values)


def _optional_float(value: Any) -> float:
    # Missing coordinates become NaN so validation reports them uniformly
    return math.nan if value is None else float(value)
