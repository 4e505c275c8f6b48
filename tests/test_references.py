"""
Unit tests for subordinate reference resolution.
"""
import pytest

from tide_catalog.exceptions import StationResolutionError
from tide_catalog.stations.references import (
    check_unique_ids,
    resolve_subordinate_references,
)


class TestReferences:
    """Tests for references.py."""

    def test_resolves(self, station, offsets):
        ref = station('8443970', provider='noaa')
        sub = station('8444162', provider='noaa', type='subordinate',
                      offsets=offsets('noaa/8443970'))
        assert resolve_subordinate_references([ref, sub]) == {
            'noaa/8444162': 'noaa/8443970',
        }

    def test_unknown_reference_fails(self, station, offsets):
        sub = station('8444162', provider='noaa', type='subordinate',
                      offsets=offsets('noaa/0000000'))
        with pytest.raises(StationResolutionError, match='noaa/0000000'):
            resolve_subordinate_references([sub])

    def test_reference_to_subordinate_fails(self, station, offsets):
        ref = station('1', provider='noaa')
        sub1 = station('2', provider='noaa', type='subordinate', offsets=offsets('noaa/1'))
        sub2 = station('3', provider='noaa', type='subordinate', offsets=offsets('noaa/2'))
        with pytest.raises(StationResolutionError, match='not a reference'):
            resolve_subordinate_references([ref, sub1, sub2])

    def test_all_failures_listed(self, station, offsets):
        subs = [
            station(str(i), provider='noaa', type='subordinate', offsets=offsets(f'noaa/x{i}'))
            for i in range(3)
        ]
        with pytest.raises(StationResolutionError, match='3 subordinate'):
            resolve_subordinate_references(subs)

    def test_duplicate_ids(self, station):
        with pytest.raises(StationResolutionError, match='Duplicate'):
            check_unique_ids([station('a'), station('a', latitude=11.0)])

    def test_unique_ids_preserve_order(self, station):
        by_id = check_unique_ids([station('b'), station('a')])
        assert list(by_id) == ['ticon/b', 'ticon/a']
