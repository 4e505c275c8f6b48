"""
Tide synthesis from harmonic constants.

Implements the standard prediction formula::

    h = H0 + sum{ f * H * cos[a*t + (V0+u) - kappa] }

The datum engine only depends on the :class:`HarmonicPredictor` protocol, so
any engine able to synthesize a regular series from amplitude/phase pairs can
be plugged in.  :class:`UtidePredictor` is the bundled implementation; it
builds a UTide coefficient structure from plain constants and runs
:func:`utide.reconstruct`, which computes the nodal corrections (*f*, *u*)
and equilibrium arguments (*V0*) internally.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Optional, Protocol

import numpy as np
import pandas as pd
from utide import reconstruct
from utide._ut_constants import ut_constants
from utide.utilities import Bunch

from tide_catalog.exceptions import DatumComputationError
from tide_catalog.tidal_analysis.constituents import (
    normalize_constituent_name,
    split_supported,
)

if TYPE_CHECKING:
    from tide_catalog.stations.station import HarmonicConstituent

logger = logging.getLogger(__name__)

# Constituent table shipped with UTide: names and frequencies (cycles/hour)
_UT_NAMES = [str(n).strip() for n in ut_constants['const']['name']]
_UT_FREQS = np.asarray(ut_constants['const']['freq'], dtype=float)
_UT_INDEX = {name: i for i, name in enumerate(_UT_NAMES)}


class HarmonicPredictor(Protocol):
    """Anything that can synthesize a regular tide series from constants."""

    def synthesize(
        self,
        constituents: Sequence[HarmonicConstituent],
        start: pd.Timestamp,
        end: pd.Timestamp,
        step_seconds: float,
    ) -> tuple[pd.DatetimeIndex, np.ndarray]:
        """Return ``(time, heights)`` sampled every *step_seconds* over [start, end]."""
        ...


def prediction_times(
    start: pd.Timestamp, end: pd.Timestamp, step_seconds: float,
) -> pd.DatetimeIndex:
    """
    Regular timestamps from *start* to *end* inclusive.

    Raises
    ------
    DatumComputationError
        If the step is not positive or *end* precedes *start*.
    """
    if not step_seconds > 0:
        raise DatumComputationError(f'step_seconds must be positive, got {step_seconds}.')
    start = pd.Timestamp(start)
    end = pd.Timestamp(end)
    if end < start:
        raise DatumComputationError(f'Prediction end {end} precedes start {start}.')
    return pd.date_range(start, end, freq=pd.Timedelta(seconds=step_seconds))


class UtidePredictor:
    """
    :class:`HarmonicPredictor` backed by :func:`utide.reconstruct`.

    Parameters
    ----------
    latitude : float, optional
        Latitude used by UTide for satellite/nodal corrections
        (default 45.0, UTide treats it as a mid-latitude station).
    mean_level : float, optional
        Mean water level H0 added to the synthesized series (default 0).
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.
    """

    def __init__(
        self,
        latitude: float = 45.0,
        mean_level: float = 0.0,
        logger: logging.Logger | None = None,
    ):
        self.latitude = latitude
        self.mean_level = mean_level
        self._log = logger or logging.getLogger(__name__)

    @staticmethod
    def supported_constituents() -> list[str]:
        """Names of the constituents UTide can predict."""
        return list(_UT_NAMES)

    def synthesize(
        self,
        constituents: Sequence[HarmonicConstituent],
        start: pd.Timestamp,
        end: pd.Timestamp,
        step_seconds: float,
    ) -> tuple[pd.DatetimeIndex, np.ndarray]:
        """
        Synthesize a regular tide series.

        Constituents UTide does not know are skipped with a warning.

        Parameters
        ----------
        constituents : sequence of HarmonicConstituent
            Amplitudes (m) and Greenwich phase lags (degrees).
        start, end : pd.Timestamp
            Series bounds (UTC, inclusive).
        step_seconds : float
            Sampling interval.

        Returns
        -------
        tuple
            ``(time, heights)``.

        Raises
        ------
        DatumComputationError
            If none of the constituents is supported.
        """
        time = prediction_times(start, end, step_seconds)
        amplitudes = {}
        phases = {}
        for hc in constituents:
            name = normalize_constituent_name(hc.name)
            amplitudes[name] = hc.amplitude
            phases[name] = hc.phase

        coef = build_coef_from_constants(
            amplitudes, phases, self.mean_level, self.latitude, logger=self._log,
        )
        self._log.debug(
            'Synthesizing %d time steps from %d constituents.',
            len(time), len(coef.name),
        )
        result = reconstruct(
            t=time, coef=coef, constit=list(coef.name),
            verbose=False, min_SNR=0, min_PE=0,
        )
        return time, np.asarray(result.h, dtype=float)


def build_coef_from_constants(
    amplitudes: dict[str, float],
    phases: dict[str, float],
    mean_level: float,
    latitude: Optional[float],
    logger: logging.Logger | None = None,
) -> Bunch:
    """
    Build a synthetic UTide Bunch coefficient structure from dictionaries.

    This constructs the minimal set of attributes that
    :func:`utide.reconstruct` needs to produce a prediction.

    Parameters
    ----------
    amplitudes : dict
        ``{constituent_name: amplitude}``.
    phases : dict
        ``{constituent_name: phase_lag_degrees}``.
    mean_level : float
        Mean value (H0).
    latitude : float
        Station latitude.
    logger : logging.Logger, optional
        Logger instance.

    Returns
    -------
    utide.utilities.Bunch
        Coefficient structure accepted by :func:`utide.reconstruct`.

    Raises
    ------
    DatumComputationError
        If no constituent is present in both dictionaries and known to
        UTide.
    """
    _log = logger or logging.getLogger(__name__)

    # Use only constituents present in both dicts
    common = [n for n in amplitudes if n in phases]
    names, unsupported = split_supported(common, _UT_NAMES)
    if unsupported:
        _log.warning('Skipping constituents unknown to UTide: %s', unsupported)
    if not names:
        raise DatumComputationError(
            'No supported constituents found in amplitudes and phases.'
        )
    lind = np.array([_UT_INDEX[n] for n in names])
    raw = {normalize_constituent_name(n): n for n in common}

    coef = Bunch()
    coef.name = np.array(names)
    coef.A = np.array([float(amplitudes[raw[n]]) for n in names])
    coef.g = np.array([float(phases[raw[n]]) for n in names])
    coef.mean = float(mean_level)
    coef.slope = 0.0
    coef.aux = Bunch()
    coef.aux.lat = latitude
    coef.aux.frq = _UT_FREQS[lind]
    coef.aux.lind = lind
    coef.aux.reftime = 0.0
    coef.aux.opt = Bunch()
    coef.aux.opt.twodim = False
    coef.aux.opt.nodsatlint = False
    coef.aux.opt.nodsatnone = False
    coef.aux.opt.gwchlint = False
    coef.aux.opt.gwchnone = False
    coef.aux.opt.nodiagn = True
    coef.aux.opt.notrend = True
    coef.aux.opt.prefilt = []

    return coef
