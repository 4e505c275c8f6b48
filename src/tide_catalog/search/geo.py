"""
Geographic distance and nearest-neighbor search over station coordinates.

Distances use the Haversine formula.  The index stores stations as unit
vectors on the sphere in a :class:`scipy.spatial.cKDTree`; chord length is
monotonic in great-circle distance, so neighbor ordering stays correct near
the poles and across the antimeridian without any flat-earth projection.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Sequence
from typing import Any, Optional

import numpy as np
from scipy.spatial import cKDTree

from tide_catalog.exceptions import StationInputError

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
"""Mean Earth radius in kilometers."""

DEFAULT_MAX_RESULTS = 10

# Relative slack on the chord radius; exact filtering is done in km afterwards
_CHORD_SLACK = 1e-9


def calculate_station_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Parameters
    ----------
    lat1, lon1 : float
        Latitude and longitude of the first point in decimal degrees.
    lat2, lon2 : float
        Latitude and longitude of the second point in decimal degrees.

    Returns
    -------
    float
        Distance between the two points in kilometers.

    Notes
    -----
    The Haversine formula::

        a = sin²(Δφ/2) + cos(φ1) × cos(φ2) × sin²(Δλ/2)
        d = 2R × asin(√a)

    with R = 6371 km.

    Examples
    --------
    >>> round(calculate_station_distance(36.9, -76.3, 39.3, -76.6), 1)
    268.2
    >>> calculate_station_distance(37.0, -76.0, 37.0, -76.0)
    0.0
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)

    hav = (
        math.sin(dphi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    )
    # Rounding can push hav a hair above 1 for antipodal points
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, hav)))


def _to_unit_vectors(lon: np.ndarray, lat: np.ndarray) -> np.ndarray:
    """Convert longitude/latitude in degrees to (N, 3) unit vectors."""
    lon_r = np.radians(lon)
    lat_r = np.radians(lat)
    cos_lat = np.cos(lat_r)
    return np.column_stack((
        cos_lat * np.cos(lon_r),
        cos_lat * np.sin(lon_r),
        np.sin(lat_r),
    ))


def _chord_radius(max_distance_km: float) -> float:
    """Chord length on the unit sphere for a great-circle distance in km."""
    angle = max_distance_km / EARTH_RADIUS_KM
    if angle >= math.pi:
        return 2.0
    return 2.0 * math.sin(angle / 2.0)


class SpatialIndex:
    """
    Immutable nearest-neighbor index over (longitude, latitude) points.

    The index is built once in O(N log N) and is read-only afterwards, so
    it can be shared between concurrent readers.  When the underlying point
    set changes, build a new index.

    Parameters
    ----------
    points : sequence of (longitude, latitude)
        Point coordinates in decimal degrees.  Result indices refer to the
        position of each point in this sequence.

    Raises
    ------
    StationInputError
        If any coordinate is missing, non-finite, or the latitude is outside
        [-90, 90].
    """

    def __init__(self, points: Iterable[Sequence[float]]):
        coords = np.asarray(list(points), dtype=float)
        if coords.size == 0:
            coords = np.empty((0, 2))
        if coords.ndim != 2 or coords.shape[1] != 2:
            raise StationInputError(
                f'points must be (longitude, latitude) pairs, got shape {coords.shape}.'
            )
        _check_coordinates(coords[:, 0], coords[:, 1])

        self._lon = coords[:, 0].copy()
        self._lat = coords[:, 1].copy()
        self._lon.setflags(write=False)
        self._lat.setflags(write=False)
        self._tree = cKDTree(_to_unit_vectors(self._lon, self._lat)) if len(coords) else None

    def __len__(self) -> int:
        return len(self._lon)

    def near(
        self,
        point: Sequence[float],
        max_results: int = DEFAULT_MAX_RESULTS,
        max_distance_km: float = math.inf,
        predicate: Optional[Callable[[int], bool]] = None,
    ) -> list[tuple[int, float]]:
        """
        Find indexed points near a (longitude, latitude) position.

        Parameters
        ----------
        point : (longitude, latitude)
            Query position in decimal degrees.
        max_results : int, optional
            Maximum number of results (default 10).
        max_distance_km : float, optional
            Great-circle search radius in km (default unbounded).
        predicate : callable, optional
            Called with a point index; only indices for which it returns
            ``True`` are returned.

        Returns
        -------
        list of (int, float)
            ``(index, distance_km)`` pairs in ascending distance, ties broken
            by insertion order.  Empty when nothing qualifies.
        """
        if max_results <= 0 or self._tree is None:
            return []

        lon, lat = point
        _check_coordinates(np.array([lon], dtype=float), np.array([lat], dtype=float))
        query = _to_unit_vectors(np.array([lon]), np.array([lat]))[0]

        if math.isfinite(max_distance_km):
            if max_distance_km < 0:
                return []
            found = self._ball(query, max_distance_km)
            matches = self._qualify(found, lon, lat, max_distance_km, predicate)
            return matches[:max_results]

        return self._near_unbounded(query, lon, lat, max_results, predicate)

    def nearest(
        self,
        point: Sequence[float],
        max_distance_km: float = math.inf,
        predicate: Optional[Callable[[int], bool]] = None,
    ) -> Optional[tuple[int, float]]:
        """Return the single nearest ``(index, distance_km)`` or ``None``."""
        results = self.near(point, 1, max_distance_km, predicate)
        return results[0] if results else None

    def _ball(self, query, max_distance_km):
        radius = _chord_radius(max_distance_km) * (1.0 + _CHORD_SLACK) + _CHORD_SLACK
        return self._tree.query_ball_point(query, r=radius)

    def _near_unbounded(self, query, lon, lat, max_results, predicate):
        """k-nearest search that widens k until enough points qualify."""
        n = len(self)
        k = min(n, max_results)
        while True:
            _, found = self._tree.query(query, k=k)
            matches = self._qualify(np.atleast_1d(found), lon, lat, math.inf, predicate)
            if len(matches) >= max_results:
                # The kd-tree orders equidistant points arbitrarily; collect
                # every point out to the cutoff so ties sort by index.
                cutoff = matches[max_results - 1][1]
                found = self._ball(query, cutoff)
                return self._qualify(found, lon, lat, cutoff, predicate)[:max_results]
            if k >= n:
                return matches
            k = min(n, k * 2)

    def _qualify(self, found, lon, lat, max_distance_km, predicate):
        matches = []
        for idx in found:
            idx = int(idx)
            dist = calculate_station_distance(lat, lon, self._lat[idx], self._lon[idx])
            if dist > max_distance_km:
                continue
            if predicate is not None and not predicate(idx):
                continue
            matches.append((idx, dist))
        matches.sort(key=lambda m: (m[1], m[0]))
        return matches


def build_index(points: Iterable[Sequence[float]]) -> SpatialIndex:
    """Build a :class:`SpatialIndex` over (longitude, latitude) points."""
    index = SpatialIndex(points)
    logger.debug('Built spatial index over %d points.', len(index))
    return index


class StationIndex:
    """
    Spatial index over station objects.

    Wraps :class:`SpatialIndex` so that queries take and return stations
    (anything with ``latitude`` and ``longitude`` attributes) instead of
    point indices.
    """

    def __init__(self, stations: Iterable[Any]):
        self.stations = tuple(stations)
        for station in self.stations:
            _require_position(station)
        self._index = build_index(
            (s.longitude, s.latitude) for s in self.stations
        )

    def __len__(self) -> int:
        return len(self.stations)

    def near(
        self,
        latitude: float,
        longitude: float,
        max_results: int = DEFAULT_MAX_RESULTS,
        max_distance_km: float = math.inf,
        predicate: Optional[Callable[[Any], bool]] = None,
    ) -> list[tuple[Any, float]]:
        """Return ``(station, distance_km)`` pairs near a position."""
        index_predicate = None
        if predicate is not None:
            index_predicate = lambda i: predicate(self.stations[i])  # noqa: E731
        results = self._index.near(
            (longitude, latitude), max_results, max_distance_km, index_predicate,
        )
        return [(self.stations[i], dist) for i, dist in results]

    def nearest(
        self,
        latitude: float,
        longitude: float,
        max_distance_km: float = math.inf,
        predicate: Optional[Callable[[Any], bool]] = None,
    ) -> Optional[tuple[Any, float]]:
        """Return the nearest ``(station, distance_km)`` or ``None``."""
        results = self.near(latitude, longitude, 1, max_distance_km, predicate)
        return results[0] if results else None


def _require_position(station: Any) -> None:
    lat = getattr(station, 'latitude', None)
    lon = getattr(station, 'longitude', None)
    if lat is None or lon is None:
        raise StationInputError(
            f'Station {getattr(station, "station_id", station)!r} has no geolocation.'
        )


def _check_coordinates(lon: np.ndarray, lat: np.ndarray) -> None:
    if not (np.all(np.isfinite(lon)) and np.all(np.isfinite(lat))):
        raise StationInputError('Coordinates must be finite numbers.')
    if np.any(np.abs(lat) > 90.0):
        raise StationInputError('Latitude must be within [-90, 90] degrees.')
