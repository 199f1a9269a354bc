"""
Signal filters for profiler time series.
"""
import logging

import numpy as np
from scipy import signal as sig

log = logging.getLogger(__name__)


def _sbe_pass(y, a_coef, b_coef):
    # y[i] = A * (x[i] + x[i-1]) - B * y[i-1], starting from y[0] = x[0]
    zi = [(1.0 - a_coef) * y[0]]
    out, _ = sig.lfilter([a_coef, a_coef], [1.0, b_coef], y, zi=zi)
    return out


def sbe_filter(x, acquisition_rate, time_constant):
    """
    Sea-Bird style recursive low-pass filter, run forward then backward so
    that the result has no phase lag.

    Each column of a 2-D input is filtered separately. NaNs are removed before
    filtering and restored at their original positions.

    Parameters
    ----------
    x : array-like
        Data to filter, (N,) or (N, k).
    acquisition_rate : float
        Sample rate [Hz].
    time_constant : float
        Filter time constant [s]; 0 returns the input unchanged.

    Returns
    -------
    ndarray
        Filtered data, same shape as x.
    """
    x = np.asarray(x, dtype=float)
    if x.size == 0 or time_constant == 0:
        return x

    a_coef = 1.0 / (1.0 + 2.0 * time_constant * acquisition_rate)
    b_coef = (1.0 - 2.0 * time_constant * acquisition_rate) * a_coef

    columns = x.reshape(x.shape[0], -1)
    smoothed = np.full(columns.shape, np.nan)
    for jcol in range(columns.shape[1]):
        y = columns[:, jcol]
        good = ~np.isnan(y)
        if not good.any():
            continue
        forward = _sbe_pass(y[good], a_coef, b_coef)
        backward = _sbe_pass(forward[::-1], a_coef, b_coef)[::-1]
        smoothed[good, jcol] = backward

    return smoothed.reshape(x.shape)


def shift(x, npts):
    """
    Advance a series by a (possibly fractional) number of samples.

    ``y[i] = x[i + npts]``, linearly interpolated for fractional shifts. Samples
    shifted in from beyond either end repeat the end value.

    Parameters
    ----------
    x : array-like
        1-D series.
    npts : float
        Shift in samples; positive values move data earlier.

    Returns
    -------
    ndarray
    """
    x = np.asarray(x, dtype=float)
    if x.size == 0 or npts == 0:
        return x
    idx = np.arange(x.size, dtype=float)
    return np.interp(idx + npts, idx, x)


def thermal_mass_correction(conductivity, temperature, acquisition_rate, alpha, inverse_beta):
    """
    Conductivity cell thermal-mass correction (Lueck & Picklo recursion).

    Parameters
    ----------
    conductivity, temperature : array-like
        Same-length series [mS/cm], [degC].
    acquisition_rate : float
        Sample rate [Hz].
    alpha : float
        Amplitude of the thermal anomaly.
    inverse_beta : float
        Time constant of the thermal anomaly [s].

    Returns
    -------
    ndarray
        Corrected conductivity; NaN where either input is NaN.
    """
    c = np.asarray(conductivity, dtype=float)
    t = np.asarray(temperature, dtype=float)
    if c.shape != t.shape:
        raise ValueError("Conductivity and temperature must have the same shape")
    if acquisition_rate <= 0 or alpha < 0 or inverse_beta < 0:
        raise ValueError("Thermal mass parameters must be positive")
    if c.size < 3:
        raise ValueError("Thermal mass correction needs more than 2 samples")

    a_coef = 2.0 * alpha / (2.0 + 1.0 / (acquisition_rate * inverse_beta))
    b_coef = 1.0 - 2.0 * a_coef / alpha

    good = ~(np.isnan(c) | np.isnan(t))
    if not good.any():
        raise ValueError("Too many NaNs in conductivity and temperature records")
    cg = c[good]
    tg = t[good]

    dcdt = 1.0 + 0.006 * (tg - 20.0)
    dt = np.concatenate(([0.0], np.diff(tg)))
    # ctm[i] = -B * ctm[i-1] + A * dt[i] * dcdt[i]
    ctm, _ = sig.lfilter([1.0], [1.0, b_coef], a_coef * dt * dcdt)

    corrected = np.full(c.shape, np.nan)
    corrected[good] = cg + ctm
    return corrected
