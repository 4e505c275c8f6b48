"""
Unit tests for the four-phase deduplication pipeline.
"""
import pytest

from tide_catalog.curation.deduplication import (
    CANONICAL_PROXIMITY_EXCLUDED,
    MUTUAL_DUPLICATES_REMOVED,
    PHASES,
    PROVENANCE_EXCLUDED,
    QUALITY_SUPERSEDED,
    DedupThresholds,
    deduplicate,
)
from tide_catalog.exceptions import StationInputError
from tide_catalog.stations.priority import QUALITY_CAVEAT

LAT = 10.0


def _ids(stations):
    return [s.station_id for s in stations]


class TestProvenance:
    """Phase 1: re-published data."""

    def test_noaa_suffix_excluded(self, station):
        republished = station('boston-8443970-usa-noaa', latitude=40.0)
        kept = station('brest-822a-fra-refmar', latitude=48.0)
        result = deduplicate([], [republished, kept])
        assert _ids(result.surviving) == ['ticon/brest-822a-fra-refmar']
        assert result.discarded_reasons == {
            'ticon/boston-8443970-usa-noaa': PROVENANCE_EXCLUDED,
        }

    def test_custom_suffixes(self, station):
        thresholds = DedupThresholds(excluded_source_suffixes=('bodc',))
        result = deduplicate(
            [], [station('a-bodc'), station('b-noaa', latitude=50.0)], thresholds,
        )
        assert _ids(result.surviving) == ['ticon/b-noaa']


class TestCanonicalProximity:
    """Phase 2: candidates next to trusted stations."""

    def test_candidate_80m_from_trusted_station_discarded(self, station, north):
        noaa = station('8443970', provider='noaa')
        candidate = station('boston-x-usa-uhslc_fd', latitude=north(LAT, 80.0))
        result = deduplicate([noaa], [candidate])
        assert result.surviving == []
        assert result.discarded_ids == ['ticon/boston-x-usa-uhslc_fd']
        assert result.phase_counts[CANONICAL_PROXIMITY_EXCLUDED] == 1

    def test_trusted_station_not_excluded_by_its_own_record(self, station, north):
        """Re-ingesting a trusted station keeps it; a trusted neighbor still excludes."""
        existing = station('8443970', provider='noaa')
        again = station('8443970', provider='noaa')
        neighbor = station('8443971', provider='noaa', latitude=north(LAT, 80.0))
        result = deduplicate([existing], [again])
        assert _ids(result.surviving) == ['noaa/8443970']
        assert result.discarded_ids == []

        result = deduplicate([existing], [neighbor])
        assert result.discarded_ids == ['noaa/8443971']

    def test_candidate_beyond_threshold_survives(self, station, north):
        noaa = station('8443970', provider='noaa')
        candidate = station('c-uhslc_fd', latitude=north(LAT, 150.0))
        result = deduplicate([noaa], [candidate])
        assert _ids(result.surviving) == ['ticon/c-uhslc_fd']

    def test_untrusted_canonical_does_not_exclude(self, station, north):
        existing = station('old-bodc', provider='ticon')
        candidate = station('c-uhslc_fd', latitude=north(LAT, 20.0))
        result = deduplicate([existing], [candidate])
        assert _ids(result.surviving) == ['ticon/c-uhslc_fd']


class TestQualitySuperseded:
    """Phase 3: flagged candidates with a clean neighbor."""

    def test_flagged_candidate_removed(self, station, north):
        flagged = station('a-uhslc_fd', disclaimers=QUALITY_CAVEAT,
                          epoch=('1950-01-01', '2020-01-01'))
        clean = station('b-da_sat', latitude=north(LAT, 90.0))
        result = deduplicate([], [flagged, clean])
        assert _ids(result.surviving) == ['ticon/b-da_sat']
        assert result.discarded_reasons['ticon/a-uhslc_fd'] == QUALITY_SUPERSEDED

    def test_isolated_flagged_candidate_survives(self, station):
        flagged = station('a-uhslc_fd', disclaimers=QUALITY_CAVEAT)
        result = deduplicate([], [flagged])
        assert _ids(result.surviving) == ['ticon/a-uhslc_fd']

    def test_two_flagged_candidates_fall_through_to_clustering(self, station, north):
        a = station('a-bodc', disclaimers=QUALITY_CAVEAT)
        b = station('b-uhslc_fd', disclaimers=QUALITY_CAVEAT, latitude=north(LAT, 30.0))
        result = deduplicate([], [a, b])
        assert result.phase_counts[QUALITY_SUPERSEDED] == 0
        assert result.phase_counts[MUTUAL_DUPLICATES_REMOVED] == 1
        assert _ids(result.surviving) == ['ticon/b-uhslc_fd']


class TestMutualDuplicates:
    """Phase 4: single-hop clustering."""

    def test_longer_record_kept(self, station, north):
        """Two TICON records 33 m apart keep the 1990-2010 one."""
        long = station('x-1-usa-da_sat', epoch=('1990-01-01', '2010-01-01'))
        short = station('x-2-usa-uhslc_fd', latitude=north(LAT, 33.0),
                        epoch=('2000-01-01', '2005-01-01'))
        result = deduplicate([], [short, long])
        assert _ids(result.surviving) == ['ticon/x-1-usa-da_sat']
        assert result.discarded_ids == ['ticon/x-2-usa-uhslc_fd']

    def test_single_hop_chain(self, station, north):
        """A-B-C 40 m apart: only the first visited cluster is merged."""
        a = station('a-bodc')
        b = station('b-uhslc_fd', latitude=north(LAT, 40.0))
        c = station('c-meds', latitude=north(LAT, 80.0))
        result = deduplicate([], [a, b, c])
        assert _ids(result.surviving) == ['ticon/b-uhslc_fd', 'ticon/c-meds']
        assert result.discarded_ids == ['ticon/a-bodc']

    def test_cluster_keeps_best_of_several(self, station, north):
        members = [
            station('m-gloss'),
            station('m-bodc', latitude=north(LAT, 10.0)),
            station('m-meds', latitude=north(LAT, 20.0)),
        ]
        result = deduplicate([], members)
        assert _ids(result.surviving) == ['ticon/m-bodc']
        assert result.phase_counts[MUTUAL_DUPLICATES_REMOVED] == 2

    def test_distant_candidates_untouched(self, station):
        a = station('a-bodc', latitude=10.0)
        b = station('b-bodc', latitude=10.01)
        result = deduplicate([], [a, b])
        assert _ids(result.surviving) == ['ticon/a-bodc', 'ticon/b-bodc']


class TestPipeline:
    """Whole-pipeline behavior."""

    @staticmethod
    def _batch(station, north):
        return [
            station('p-1-usa-noaa', latitude=30.0),
            station('q-1-usa-bodc', latitude=north(LAT, 60.0)),
            station('r-1-usa-uhslc_fd', latitude=north(20.0, 0.0), disclaimers=QUALITY_CAVEAT),
            station('r-2-usa-meds', latitude=north(20.0, 70.0)),
            station('s-1-usa-da_sat', latitude=35.0, epoch=('1990-01-01', '2010-01-01')),
            station('s-2-usa-uhslc_fd', latitude=north(35.0, 33.0), epoch=('2000-01-01', '2005-01-01')),
            station('t-1-usa-gloss', latitude=-40.0),
        ]

    def test_counts_and_survivors(self, station, north):
        canonical = [station('1', provider='noaa', latitude=LAT)]
        result = deduplicate(canonical, self._batch(station, north))
        assert result.phase_counts == {
            PROVENANCE_EXCLUDED: 1,
            CANONICAL_PROXIMITY_EXCLUDED: 1,
            QUALITY_SUPERSEDED: 1,
            MUTUAL_DUPLICATES_REMOVED: 1,
        }
        assert _ids(result.surviving) == [
            'ticon/r-2-usa-meds', 'ticon/s-1-usa-da_sat', 'ticon/t-1-usa-gloss',
        ]
        assert sum(result.phase_counts.values()) == len(result.discarded_ids)
        assert set(result.discarded_reasons.values()) == set(PHASES)

    def test_deterministic(self, station, north):
        canonical = [station('1', provider='noaa', latitude=LAT)]
        first = deduplicate(canonical, self._batch(station, north))
        second = deduplicate(canonical, self._batch(station, north))
        assert _ids(first.surviving) == _ids(second.surviving)
        assert first.discarded_ids == second.discarded_ids

    def test_survivors_are_a_fixed_point(self, station, north):
        canonical = [station('1', provider='noaa', latitude=LAT)]
        first = deduplicate(canonical, self._batch(station, north))
        second = deduplicate(canonical, first.surviving)
        assert _ids(second.surviving) == _ids(first.surviving)
        assert second.discarded_ids == []

    def test_empty_batch(self, station):
        result = deduplicate([station('1', provider='noaa')], [])
        assert result.surviving == []
        assert result.phase_counts == dict.fromkeys(PHASES, 0)

    def test_missing_geolocation_aborts(self, station):
        with pytest.raises(StationInputError, match='geolocation'):
            deduplicate([], [station('a'), station('b', latitude=None)])

    def test_duplicate_ids_abort(self, station):
        with pytest.raises(StationInputError, match='Duplicate'):
            deduplicate([], [station('a'), station('a', latitude=50.0)])
