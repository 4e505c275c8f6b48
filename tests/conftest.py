"""Shared fixtures: a station factory and a deterministic tide predictor."""
import math
from datetime import date

import numpy as np
import pandas as pd
import pytest

from tide_catalog.stations.station import (
    Epoch,
    HarmonicConstituent,
    StationCandidate,
    StationLicense,
    StationSource,
    SubordinateOffsets,
)
from tide_catalog.tidal_analysis.tidal_prediction import prediction_times

KM_PER_DEGREE = 6371.0 * math.pi / 180.0

REFERENCE_TIME = pd.Timestamp('2000-01-01')

M2_ONLY = (HarmonicConstituent('M2', 1.0, 0.0),)

# Degrees per hour
SPEEDS = {'M2': 28.9841042, 'S2': 30.0}


class CosinePredictor:
    """Sum of undamped cosines, no nodal corrections."""

    def __init__(self):
        self.calls = 0

    def synthesize(self, constituents, start, end, step_seconds):
        self.calls += 1
        time = prediction_times(start, end, step_seconds)
        hours = np.asarray((time - REFERENCE_TIME) / pd.Timedelta(hours=1), dtype=float)
        heights = np.zeros(len(time))
        for hc in constituents:
            speed = hc.speed if hc.speed is not None else SPEEDS[hc.name]
            heights += hc.amplitude * np.cos(np.radians(speed * hours - hc.phase))
        return time, heights


def north_of(latitude, meters):
    """Latitude *meters* north along a meridian."""
    return latitude + meters / 1000.0 / KM_PER_DEGREE


def make_station(
    source_id,
    latitude=10.0,
    longitude=20.0,
    provider='ticon',
    disclaimers='',
    epoch=None,
    type='reference',
    constituents=M2_ONLY,
    offsets=None,
    name=None,
    **kwargs,
):
    if isinstance(epoch, tuple):
        epoch = Epoch(date.fromisoformat(epoch[0]), date.fromisoformat(epoch[1]))
    if type == 'subordinate':
        constituents = ()
    return StationCandidate(
        name=name or source_id,
        country='Testland',
        latitude=latitude,
        longitude=longitude,
        type=type,
        source=StationSource(name=provider.upper(), id=source_id),
        license=StationLicense(type='cc-by-4.0', commercial_use=True),
        provider=provider,
        disclaimers=disclaimers,
        epoch=epoch,
        harmonic_constituents=tuple(constituents),
        offsets=offsets,
        **kwargs,
    )


def make_offsets(reference):
    return SubordinateOffsets(
        reference=reference, height_high=1.1, height_low=0.9,
        height_type='ratio', time_high=12.0, time_low=-8.0,
    )


@pytest.fixture
def station():
    """Factory for :class:`StationCandidate` test records."""
    return make_station


@pytest.fixture
def offsets():
    return make_offsets


@pytest.fixture
def cosine_predictor():
    return CosinePredictor()


@pytest.fixture
def north():
    """Offset a latitude northwards by a distance in metres."""
    return north_of
