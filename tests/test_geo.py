"""
Unit tests for great-circle distance and the spatial index.
"""
import math

import numpy as np
import pytest

from tide_catalog.exceptions import StationInputError
from tide_catalog.search.geo import (
    EARTH_RADIUS_KM,
    SpatialIndex,
    StationIndex,
    build_index,
    calculate_station_distance,
)


def _brute_force(points, query, max_distance_km=math.inf):
    lon, lat = query
    found = []
    for i, (plon, plat) in enumerate(points):
        dist = calculate_station_distance(lat, lon, plat, plon)
        if dist <= max_distance_km:
            found.append((i, dist))
    found.sort(key=lambda m: (m[1], m[0]))
    return found


class TestDistance:
    """Tests for calculate_station_distance."""

    def test_same_point_is_zero(self):
        assert calculate_station_distance(37.0, -76.0, 37.0, -76.0) == 0.0

    def test_one_degree_of_latitude(self):
        dist = calculate_station_distance(10.0, 20.0, 11.0, 20.0)
        assert dist == pytest.approx(EARTH_RADIUS_KM * math.pi / 180.0, rel=1e-9)

    def test_quarter_equator(self):
        dist = calculate_station_distance(0.0, 0.0, 0.0, 90.0)
        assert dist == pytest.approx(EARTH_RADIUS_KM * math.pi / 2.0, rel=1e-9)

    def test_antipodes(self):
        dist = calculate_station_distance(45.0, 10.0, -45.0, -170.0)
        assert dist == pytest.approx(EARTH_RADIUS_KM * math.pi, rel=1e-9)

    def test_symmetric(self):
        a = calculate_station_distance(36.9, -76.3, 39.3, -76.6)
        b = calculate_station_distance(39.3, -76.6, 36.9, -76.3)
        assert a == pytest.approx(b)
        assert a == pytest.approx(268.2, abs=0.1)


class TestSpatialIndex:
    """Tests for SpatialIndex.near / nearest."""

    @staticmethod
    def _random_points(n=300, seed=42):
        rng = np.random.default_rng(seed)
        lon = rng.uniform(-180.0, 180.0, n)
        lat = np.degrees(np.arcsin(rng.uniform(-1.0, 1.0, n)))
        return list(zip(lon.tolist(), lat.tolist()))

    def test_matches_brute_force_k_nearest(self):
        """k-nearest results agree with an exhaustive search."""
        points = self._random_points()
        index = build_index(points)
        rng = np.random.default_rng(7)
        for _ in range(25):
            query = (rng.uniform(-180, 180), rng.uniform(-89, 89))
            expected = _brute_force(points, query)[:5]
            got = index.near(query, max_results=5)
            assert [i for i, _ in got] == [i for i, _ in expected]
            np.testing.assert_allclose(
                [d for _, d in got], [d for _, d in expected], rtol=1e-12,
            )

    def test_matches_brute_force_within_radius(self):
        points = self._random_points()
        index = build_index(points)
        rng = np.random.default_rng(11)
        for _ in range(25):
            query = (rng.uniform(-180, 180), rng.uniform(-89, 89))
            expected = _brute_force(points, query, 2000.0)
            got = index.near(query, max_results=len(points), max_distance_km=2000.0)
            assert [i for i, _ in got] == [i for i, _ in expected]

    def test_results_sorted_and_within_radius(self):
        index = build_index(self._random_points())
        results = index.near((0.0, 0.0), max_results=50, max_distance_km=5000.0)
        distances = [d for _, d in results]
        assert distances == sorted(distances)
        assert all(d <= 5000.0 for d in distances)

    def test_single_result_equals_nearest(self):
        index = build_index(self._random_points())
        for query in [(0.0, 0.0), (179.9, 60.0), (-45.0, -89.0)]:
            assert index.near(query, max_results=1) == [index.nearest(query)]

    def test_predicate_filters(self):
        points = [(0.0, 0.0), (0.001, 0.0), (0.002, 0.0)]
        index = SpatialIndex(points)
        results = index.near((0.0, 0.0), predicate=lambda i: i != 0)
        assert [i for i, _ in results] == [1, 2]
        assert index.nearest((0.0, 0.0), predicate=lambda i: False) is None

    def test_ties_broken_by_insertion_order(self):
        points = [(1.0, 0.0), (-1.0, 0.0), (1.0, 0.0)]
        results = SpatialIndex(points).near((0.0, 0.0))
        assert [i for i, _ in results] == [0, 1, 2]

    def test_ties_ordered_when_fewer_results_than_points(self):
        """Duplicated points come back by index even when only a few are asked for."""
        rng = np.random.default_rng(3)
        points = [(12.5, -33.0)] * 8 + self._random_points(n=20, seed=5)
        index = build_index(points)
        for _ in range(300):
            query = (rng.uniform(-180, 180), rng.uniform(-89, 89))
            for max_results in (1, 3, 9):
                expected = _brute_force(points, query)[:max_results]
                got = index.near(query, max_results=max_results)
                assert [i for i, _ in got] == [i for i, _ in expected]

    def test_crosses_antimeridian(self):
        index = SpatialIndex([(179.999, 0.0), (170.0, 0.0)])
        idx, dist = index.nearest((-179.999, 0.0))
        assert idx == 0
        assert dist == pytest.approx(0.002 * EARTH_RADIUS_KM * math.pi / 180.0, rel=1e-6)

    def test_near_pole(self):
        index = SpatialIndex([(0.0, 89.99), (180.0, 89.99), (0.0, 80.0)])
        results = index.near((90.0, 90.0), max_results=3)
        assert [i for i, _ in results][:2] == [0, 1]

    def test_empty_index(self):
        index = SpatialIndex([])
        assert len(index) == 0
        assert index.near((0.0, 0.0)) == []
        assert index.nearest((0.0, 0.0)) is None

    def test_no_results_edge_cases(self):
        index = SpatialIndex([(0.0, 0.0)])
        assert index.near((0.0, 0.0), max_results=0) == []
        assert index.near((0.0, 0.0), max_distance_km=-1.0) == []
        assert index.near((10.0, 10.0), max_distance_km=1.0) == []

    def test_max_results_larger_than_index(self):
        index = SpatialIndex([(0.0, 0.0), (1.0, 1.0)])
        assert len(index.near((0.0, 0.0), max_results=10)) == 2

    def test_invalid_coordinates_raise(self):
        with pytest.raises(StationInputError):
            SpatialIndex([(0.0, 91.0)])
        with pytest.raises(StationInputError):
            SpatialIndex([(float('nan'), 0.0)])
        with pytest.raises(StationInputError):
            SpatialIndex([(0.0, 0.0)]).near((0.0, float('inf')))


class TestStationIndex:
    """Tests for StationIndex."""

    def test_returns_stations(self, station, north):
        a = station('a', latitude=10.0)
        b = station('b', latitude=north(10.0, 30.0))
        c = station('c', latitude=north(10.0, 500.0))
        index = StationIndex([c, b, a])

        results = index.near(10.0, 20.0, max_distance_km=0.1)
        assert [s.station_id for s, _ in results] == ['ticon/a', 'ticon/b']
        assert results[1][1] == pytest.approx(0.03, rel=1e-6)

    def test_nearest_with_predicate(self, station, north):
        a = station('a', provider='noaa')
        b = station('b', latitude=north(10.0, 10.0))
        index = StationIndex([a, b])
        hit = index.nearest(10.0, 20.0, predicate=lambda s: s.provider == 'ticon')
        assert hit[0] is b

    def test_missing_position_raises(self, station):
        with pytest.raises(StationInputError):
            StationIndex([station('a', latitude=None)])
