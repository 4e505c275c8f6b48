"""
Priority ordering of station records competing for the same location.

When several providers publish a station at (nearly) the same place, the
records are ranked by data-quality signals:

1. Records without a quality-control caveat outrank those with one.
2. A longer observation period outranks a shorter one.
3. A lower source priority rank outranks a higher one.
4. The full source id breaks remaining ties lexicographically.

:func:`compare_station_priority` is a three-way comparator over these rules
and :func:`priority_key` is the equivalent sort key.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from tide_catalog.stations.station import Epoch, StationCandidate, StationLicense

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Source priority by provider-id suffix (lower = better).
# ---------------------------------------------------------------------------

SOURCE_PRIORITY: dict[str, int] = {
    # Tier 1: most reliable and current
    'uhslc_fd': 1,    # University of Hawaii Sea Level Center, Fast Delivery
    'bodc': 2,        # British Oceanographic Data Centre
    # Tier 2: national/regional services
    'meds': 4,        # Canadian Marine Environmental Data Service
    'refmar': 5,      # French Reference Network
    'bom': 6,         # Australian Bureau of Meteorology
    'jodc_jma': 7,    # Japan Meteorological Agency
    'smhi': 8,        # Swedish Meteorological and Hydrological Institute
    'nhs': 9,         # Norwegian Hydrographic Service
    'ieo': 10,        # Spanish Oceanographic Institute
    # Tier 3: regional services
    'wsv': 20,
    'rws': 21,
    'rws_hist': 22,
    'fmi': 23,
    'dmi': 24,
    'ispra': 25,
    'noc': 26,
    'eseas': 27,
    'bfg': 28,
    'icg': 29,
    # Tier 4: US regional sources
    'usgs': 40,
    'crms': 41,
    'cdwr': 42,
    'sfwmd': 43,
    'nwfwmd': 44,
    'ncdem': 45,
    'hct': 46,
    'cm': 47,
    # Tier 5: older versions or research quality
    'uhslc_rq': 80,   # UHSLC Research Quality
    'unam': 85,
    'unam_hist': 86,
    'jodc_pahb': 87,
    'jodc_jcg': 88,
    'jodc_giaj': 89,
    'ttw': 90,
    'mi_c': 91,
    'mi_r': 92,
    'cco': 93,
    'da_idh': 94,
    'da_mm': 95,
    'gloss': 96,
    # Tier 6: non-commercial upstream providers
    'cmems': 97,      # Copernicus Marine Environment Monitoring Service
    'cv': 97,         # City of Venice
    'uz': 97,         # University of Zagreb
    # Tier 7: satellite-derived, often duplicates
    'da_sat': 99,
}
"""Source priority rank keyed by provider-id suffix."""

DEFAULT_PRIORITY = 50
"""Rank for unknown sources, between the best and worst known tiers."""

NON_COMMERCIAL_SOURCES = frozenset({'cmems', 'cv', 'uz'})
"""Upstream providers whose data may not be used commercially."""

QUALITY_CAVEAT = 'quality control issues'

DAYS_PER_YEAR = 365.25


def get_source_suffix(source_id: str) -> str:
    """
    Extract the provider suffix from a source id.

    >>> get_source_suffix('abashiri-347-jpn-uhslc_fd')
    'uhslc_fd'
    """
    return str(source_id).split('-')[-1]


def get_source_priority(source_id: str) -> int:
    """Priority rank for a source id; lower numbers are preferred."""
    return SOURCE_PRIORITY.get(get_source_suffix(source_id), DEFAULT_PRIORITY)


def has_quality_issues(disclaimers: Optional[str]) -> bool:
    """True when the disclaimers carry a quality-control caveat."""
    return bool(disclaimers) and QUALITY_CAVEAT in disclaimers


def epoch_years(epoch: Optional[Epoch]) -> float:
    """Observation period in years; zero when no epoch is known."""
    if epoch is None:
        return 0.0
    return (epoch.end - epoch.start).days / DAYS_PER_YEAR


def priority_key(station: StationCandidate) -> tuple[bool, float, int, str]:
    """
    Sort key equivalent to :func:`compare_station_priority`.

    Ascending order puts the preferred record first.
    """
    return (
        has_quality_issues(station.disclaimers),
        -epoch_years(station.epoch),
        get_source_priority(station.source.id),
        station.source.id,
    )


def compare_station_priority(a: StationCandidate, b: StationCandidate) -> int:
    """
    Three-way comparison of two competing station records.

    Returns
    -------
    int
        Negative if *a* is preferred, positive if *b* is preferred, zero
        when the records tie on every rule (same source id).
    """
    issues_a = has_quality_issues(a.disclaimers)
    issues_b = has_quality_issues(b.disclaimers)
    if issues_a != issues_b:
        return 1 if issues_a else -1

    years_a = epoch_years(a.epoch)
    years_b = epoch_years(b.epoch)
    if years_a != years_b:
        return 1 if years_a < years_b else -1

    rank_a = get_source_priority(a.source.id)
    rank_b = get_source_priority(b.source.id)
    if rank_a != rank_b:
        return rank_a - rank_b

    if a.source.id != b.source.id:
        return -1 if a.source.id < b.source.id else 1
    return 0


def license_for_source(source_id: str) -> StationLicense:
    """
    License for a TICON-derived station based on its upstream provider.

    Upstream providers in :data:`NON_COMMERCIAL_SOURCES` restrict commercial
    use and get CC-BY-NC-4.0; everything else is CC-BY-4.0.
    """
    from tide_catalog.stations.station import StationLicense

    if get_source_suffix(source_id) in NON_COMMERCIAL_SOURCES:
        return StationLicense(
            type='cc-by-nc-4.0',
            commercial_use=False,
            url='https://creativecommons.org/licenses/by-nc/4.0/',
            notes=(
                'Upstream GESLA data provider restricts commercial use. '
                'See https://gesla787883612.wordpress.com/license/'
            ),
        )
    return StationLicense(
        type='cc-by-4.0',
        commercial_use=True,
        url='https://creativecommons.org/licenses/by/4.0/',
    )
