"""
High/low water extraction over tidal-day windows.

A synthetic series is cut into consecutive windows of one tidal day
(~24 h 50 min) measured from the first sample.  Within each window an
interior sample is a high when it is ``>=`` both neighbors and strictly
greater than at least one, and a low symmetrically.  Samples at the window
edges are never extrema, so windows with fewer than three samples yield
nothing.  Flat plateaus produce one extremum per plateau edge.
"""
from __future__ import annotations

import logging

import numpy as np
import pandas as pd

from tide_catalog.exceptions import DatumComputationError

logger = logging.getLogger(__name__)

TIDAL_DAY_HOURS = 24.8333333
"""Mean lunar day in hours (24 h 50 min)."""


def extract_tidal_day_extrema(
    time: pd.DatetimeIndex,
    heights: np.ndarray,
    tidal_day_hours: float = TIDAL_DAY_HOURS,
    logger: logging.Logger | None = None,
) -> dict:
    """
    Extract high and low waters per tidal-day window.

    Parameters
    ----------
    time : pd.DatetimeIndex
        Sample timestamps in ascending order.
    heights : np.ndarray
        Water levels, one per timestamp.
    tidal_day_hours : float, optional
        Window length in hours (default 24.8333333).
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    dict
        ``"high_water_times"`` : pd.DatetimeIndex of every high.
        ``"high_water"`` : np.ndarray of every high, in time order.
        ``"low_water_times"`` : pd.DatetimeIndex of every low.
        ``"low_water"`` : np.ndarray of every low, in time order.
        ``"higher_high_water"`` : np.ndarray, the highest high of each
        window that has one.
        ``"lower_low_water"`` : np.ndarray, the lowest low of each window
        that has one.
        ``"window_count"`` : int, number of tidal-day windows scanned.

    Raises
    ------
    DatumComputationError
        If the inputs differ in length, the timestamps are not ascending,
        or *tidal_day_hours* is not positive.
    """
    _log = logger or logging.getLogger(__name__)

    time = pd.DatetimeIndex(time)
    heights = np.asarray(heights, dtype=float)

    if len(time) != len(heights):
        raise DatumComputationError(
            f'time ({len(time)}) and heights ({len(heights)}) must have the '
            f'same length.'
        )
    if not tidal_day_hours > 0:
        raise DatumComputationError(
            f'tidal_day_hours must be positive, got {tidal_day_hours}.'
        )
    if not time.is_monotonic_increasing:
        raise DatumComputationError('time must be in ascending order.')

    empty = np.array([], dtype=float)
    result = {
        'high_water_times': time[:0],
        'high_water': empty,
        'low_water_times': time[:0],
        'low_water': empty,
        'higher_high_water': empty,
        'lower_low_water': empty,
        'window_count': 0,
    }
    if len(time) == 0:
        return result

    day_ns = int(round(tidal_day_hours * 3.6e12))
    elapsed = time.asi8 - time.asi8[0]
    window = elapsed // day_ns
    span = int(elapsed[-1])
    result['window_count'] = -(-span // day_ns)  # windows starting before the last sample

    if len(heights) < 3:
        _log.debug('Fewer than 3 samples; no extrema.')
        return result

    prev = heights[:-2]
    curr = heights[1:-1]
    nxt = heights[2:]
    mid = window[1:-1]

    # Both neighbors must fall in the sample's own window
    interior = (window[:-2] == mid) & (window[2:] == mid)
    is_high = (
        interior & (curr >= prev) & (curr >= nxt) & ((curr > prev) | (curr > nxt))
    )
    is_low = (
        interior & ~is_high
        & (curr <= prev) & (curr <= nxt) & ((curr < prev) | (curr < nxt))
    )

    highs = curr[is_high]
    lows = curr[is_low]
    result['high_water_times'] = time[1:-1][is_high]
    result['high_water'] = highs
    result['low_water_times'] = time[1:-1][is_low]
    result['low_water'] = lows
    result['higher_high_water'] = (
        pd.Series(highs).groupby(mid[is_high]).max().to_numpy()
    )
    result['lower_low_water'] = (
        pd.Series(lows).groupby(mid[is_low]).min().to_numpy()
    )

    _log.info(
        'Tidal-day extrema: %d HW, %d LW over %d windows (%.4f h).',
        len(highs), len(lows), result['window_count'], tidal_day_hours,
    )
    return result
