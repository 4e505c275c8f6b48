"""
Synthetic tidal datums from harmonic constituents.

Tidal datums are long-term averages of characteristic water levels.  Without
access to observations, they are derived here by synthesizing a water-level
series from the harmonic constants over a full nodal cycle (19 years) and
averaging the tidal-day extrema of that series:

=====  ===============================================================
MHHW   mean of the highest high of each tidal day
MHW    mean of every high water
MSL    mean of every sample
MTL    (MHW + MLW) / 2
MLW    mean of every low water
MLLW   mean of the lowest low of each tidal day
LAT    lowest sample of the series
=====  ===============================================================

All values are in the units of the constituent amplitudes, relative to the
series mean level, and rounded to millimetres.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

import numpy as np
import pandas as pd

from tide_catalog.exceptions import DatumComputationError
from tide_catalog.tidal_analysis.extremes import TIDAL_DAY_HOURS, extract_tidal_day_extrema
from tide_catalog.tidal_analysis.tidal_prediction import HarmonicPredictor, UtidePredictor
from tide_catalog.utils import Utils

if TYPE_CHECKING:
    from tide_catalog.stations.station import HarmonicConstituent

logger = logging.getLogger(__name__)

DATUM_NAMES = ('MHHW', 'MHW', 'MSL', 'MTL', 'MLW', 'MLLW', 'LAT')

YEAR = pd.Timedelta(days=365.2425)
"""Mean Gregorian year."""

NODAL_CYCLE_YEARS = 19
DEFAULT_STEP_HOURS = 1.0

TimeLike = Union[str, date, datetime, pd.Timestamp, None]


@dataclass(frozen=True)
class DatumOptions:
    """Sampling options for the synthetic series."""

    step_hours: float = DEFAULT_STEP_HOURS
    tidal_day_hours: float = TIDAL_DAY_HOURS

    @classmethod
    def from_config(
        cls,
        logger: logging.Logger,
        config_file: Optional[Union[str, Path]] = None,
    ) -> DatumOptions:
        """Build options from the ``[datums]`` configuration section."""
        section = Utils(config_file).read_config_section('datums', logger)
        return cls(
            step_hours=float(section.get('step_hours', DEFAULT_STEP_HOURS)),
            tidal_day_hours=float(section.get('tidal_day_hours', TIDAL_DAY_HOURS)),
        )


@dataclass(frozen=True)
class TidalDatumsResult:
    """
    Datums together with the parameters of the series they came from.

    Attributes
    ----------
    datums : dict
        ``{name: height}`` for every name in :data:`DATUM_NAMES`.
    start, end : pd.Timestamp
        Resolved epoch (UTC).
    length_years : float
        Epoch length, at most 19.
    step_seconds : float
        Sampling interval of the synthetic series.
    tidal_day_hours : float
        Window length used for extrema detection.
    """

    datums: dict[str, float]
    start: pd.Timestamp
    end: pd.Timestamp
    length_years: float
    step_seconds: float
    tidal_day_hours: float


def _to_utc(value: TimeLike) -> pd.Timestamp:
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError) as ex:
        raise DatumComputationError(f'Invalid epoch bound {value!r}: {ex}') from ex
    if ts is pd.NaT:
        raise DatumComputationError(f'Invalid epoch bound {value!r}.')
    if ts.tz is not None:
        ts = ts.tz_convert('UTC').tz_localize(None)
    return ts


def resolve_epoch(
    start: TimeLike = None,
    end: TimeLike = None,
) -> tuple[pd.Timestamp, pd.Timestamp, float]:
    """
    Resolve optional epoch bounds to an explicit window.

    Parameters
    ----------
    start : datetime-like, optional
        Epoch start.  Defaults to *end* minus 19 years.
    end : datetime-like, optional
        Epoch end.  Defaults to now (UTC).

    Returns
    -------
    tuple
        ``(start, end, length_years)`` as naive UTC timestamps.  Epochs
        longer than 19 years are clamped to the most recent 19.

    Raises
    ------
    DatumComputationError
        If a bound cannot be parsed or *end* precedes *start*.
    """
    end = pd.Timestamp.now(tz='UTC').tz_localize(None) if end is None else _to_utc(end)
    start = end - NODAL_CYCLE_YEARS * YEAR if start is None else _to_utc(start)

    if end < start:
        raise DatumComputationError(f'Epoch end {end} precedes start {start}.')

    length_years = (end - start) / YEAR
    if length_years > NODAL_CYCLE_YEARS:
        start = end - NODAL_CYCLE_YEARS * YEAR
        length_years = float(NODAL_CYCLE_YEARS)
    return start, end, float(length_years)


def compute_datums_from_timeline(
    time: pd.DatetimeIndex,
    heights: np.ndarray,
    tidal_day_hours: float = TIDAL_DAY_HOURS,
    logger: logging.Logger | None = None,
) -> dict[str, float]:
    """
    Compute tidal datums from a regular water-level series.

    Parameters
    ----------
    time : pd.DatetimeIndex
        Ascending sample timestamps.
    heights : np.ndarray
        Water levels.
    tidal_day_hours : float, optional
        Tidal-day window length (default 24.8333333 h).
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    dict
        ``{datum_name: height}`` rounded to 3 decimals.

    Raises
    ------
    DatumComputationError
        If the series is empty, the inputs differ in length, the heights
        are not finite, or no high or low water can be found.
    """
    _log = logger or logging.getLogger(__name__)

    heights = np.asarray(heights, dtype=float)
    if len(heights) == 0 or len(time) != len(heights):
        raise DatumComputationError(
            f'time ({len(time)}) and heights ({len(heights)}) must be '
            f'non-empty and of equal length.'
        )
    if not np.all(np.isfinite(heights)):
        raise DatumComputationError('heights contain non-finite values.')

    ext = extract_tidal_day_extrema(time, heights, tidal_day_hours, logger=_log)
    if len(ext['high_water']) == 0 or len(ext['low_water']) == 0:
        raise DatumComputationError(
            f'No high or low waters found in {len(heights)} samples over '
            f'{ext["window_count"]} tidal days.'
        )

    mhw = float(np.mean(ext['high_water']))
    mlw = float(np.mean(ext['low_water']))
    datums = {
        'MHHW': float(np.mean(ext['higher_high_water'])),
        'MHW': mhw,
        'MSL': float(np.mean(heights)),
        'MTL': (mhw + mlw) / 2,
        'MLW': mlw,
        'MLLW': float(np.mean(ext['lower_low_water'])),
        'LAT': float(np.min(heights)),
    }
    return {name: round(value, 3) for name, value in datums.items()}


def _epoch_bounds(epoch_spec: Any) -> tuple[TimeLike, TimeLike]:
    if epoch_spec is None:
        return None, None
    if isinstance(epoch_spec, Mapping):
        return epoch_spec.get('start'), epoch_spec.get('end')
    return getattr(epoch_spec, 'start', None), getattr(epoch_spec, 'end', None)


def compute_datums(
    constituents: Sequence[HarmonicConstituent],
    epoch_spec: Any = None,
    predictor: Optional[HarmonicPredictor] = None,
    step_hours: float = DEFAULT_STEP_HOURS,
    tidal_day_hours: float = TIDAL_DAY_HOURS,
    logger: logging.Logger | None = None,
) -> TidalDatumsResult:
    """
    Synthesize a series from harmonic constituents and compute its datums.

    Parameters
    ----------
    constituents : sequence of HarmonicConstituent
        Harmonic constants of a reference station.
    epoch_spec : Epoch, mapping or None
        Anything with ``start``/``end`` (attributes or keys); either bound
        may be missing.  See :func:`resolve_epoch`.
    predictor : HarmonicPredictor, optional
        Synthesis engine.  Defaults to :class:`UtidePredictor`.
    step_hours : float, optional
        Sampling interval of the synthetic series (default 1 h).
    tidal_day_hours : float, optional
        Tidal-day window length (default 24.8333333 h).
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    TidalDatumsResult

    Raises
    ------
    DatumComputationError
        If no constituents are given, the epoch is invalid, or the series
        yields no extrema.
    """
    _log = logger or logging.getLogger(__name__)

    if not constituents:
        raise DatumComputationError('At least one harmonic constituent is required.')
    if not step_hours > 0:
        raise DatumComputationError(f'step_hours must be positive, got {step_hours}.')

    start, end, length_years = resolve_epoch(*_epoch_bounds(epoch_spec))
    step_seconds = step_hours * 3600.0

    if predictor is None:
        predictor = UtidePredictor(logger=_log)

    _log.info(
        'Computing datums from %d constituents over %s to %s (%.2f years).',
        len(constituents), start.date(), end.date(), length_years,
    )
    time, heights = predictor.synthesize(constituents, start, end, step_seconds)
    datums = compute_datums_from_timeline(time, heights, tidal_day_hours, logger=_log)

    return TidalDatumsResult(
        datums=datums,
        start=start,
        end=end,
        length_years=length_years,
        step_seconds=step_seconds,
        tidal_day_hours=tidal_day_hours,
    )
