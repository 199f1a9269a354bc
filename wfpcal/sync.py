"""
Time synchronization of secondary instrument streams to the CTD.

The CTD is the primary clock of a profiler; the engineering stream and the
current meter receive pressure, dP/dt, profile direction and profile mask from
the CTD record with the same profile number.
"""
import logging

import numpy as np
from scipy.interpolate import Akima1DInterpolator

log = logging.getLogger(__name__)

MIN_SYNC_POINTS = 10


def centered_dpdt(pressure, acquisition_rate):
    """
    Rate of pressure change by centered differences.

    The first and last points use the one-sided difference next to them.

    Parameters
    ----------
    pressure : array-like
        Pressure [dbar].
    acquisition_rate : float
        Sample rate [Hz].

    Returns
    -------
    dpdt : ndarray
        Same length as pressure [dbar/s].
    """
    pressure = np.asarray(pressure, dtype=float)
    if pressure.size < 2:
        return np.full(pressure.shape, np.nan)
    dt = 1.0 / acquisition_rate
    dp = np.diff(pressure)
    dpa = np.concatenate(([dp[0]], dp))
    dpb = np.concatenate((dp, [dp[-1]]))
    return (dpa + dpb) / 2.0 / dt


def interpolate_pressure(
    t_secondary, t_ctd, p_ctd, acquisition_rate, min_points=MIN_SYNC_POINTS
):
    """
    Interpolate CTD pressure onto secondary timestamps.

    Uses modified Akima interpolation with extrapolation. Returns empty arrays
    when either series has fewer than `min_points` samples or the two time
    spans do not overlap.

    Parameters
    ----------
    t_secondary : array-like
        Timestamps to interpolate onto [s].
    t_ctd, p_ctd : array-like
        CTD timestamps [s] and pressures [dbar].
    acquisition_rate : float
        Secondary sample rate [Hz], used for dP/dt.
    min_points : int, optional
        Minimum length of both time series.

    Returns
    -------
    pressure, dpdt : ndarray
    """
    t_secondary = np.asarray(t_secondary, dtype=float)
    t_ctd = np.asarray(t_ctd, dtype=float)
    p_ctd = np.asarray(p_ctd, dtype=float)
    empty = (np.array([], dtype=float), np.array([], dtype=float))

    if t_ctd.size < min_points or t_secondary.size < min_points:
        return empty
    if np.nanmax(t_secondary) < np.nanmin(t_ctd) or np.nanmin(t_secondary) > np.nanmax(
        t_ctd
    ):
        return empty

    good = np.isfinite(t_ctd) & np.isfinite(p_ctd)
    t_knots, idx = np.unique(t_ctd[good], return_index=True)
    p_knots = p_ctd[good][idx]
    if t_knots.size < 2:
        return empty

    interpolator = Akima1DInterpolator(
        t_knots, p_knots, method="makima", extrapolate=True
    )
    pressure = interpolator(t_secondary)
    dpdt = centered_dpdt(pressure, acquisition_rate)
    return pressure, dpdt


def transfer_mask(t_target, t_source, source_mask):
    """
    Carry a boolean mask from one time base to another.

    The source mask is cast to float and linearly interpolated onto the target
    times (0 outside the source span). Only values exactly equal to 1 are kept,
    so a target sample is retained only if both bracketing source samples were.
    Source samples without a finite timestamp are dropped.
    """
    t_target = np.asarray(t_target, dtype=float)
    t_source = np.asarray(t_source, dtype=float)
    source_mask = np.asarray(source_mask, dtype=float)
    good = np.isfinite(t_source)
    t_source, source_mask = t_source[good], source_mask[good]
    if t_source.size == 0:
        return np.zeros(t_target.shape, dtype=bool)
    interpolated = np.interp(t_target, t_source, source_mask, left=0.0, right=0.0)
    return interpolated == 1.0


def sync_to_ctd(rec, ctd):
    """
    Add CTD pressure, dP/dt, direction and mask to a secondary record.

    Parameters
    ----------
    rec : ProfileRecord
        Secondary (engineering or current meter) record.
    ctd : ProfileRecord
        CTD record with the same profile number.

    Returns
    -------
    ProfileRecord
    """
    if rec.profile_number != ctd.profile_number:
        raise ValueError(
            f"Cannot sync {rec.instrument} profile {rec.profile_number} "
            f"to ctd profile {ctd.profile_number}"
        )

    if rec.is_empty("time"):
        log.warning(f"{rec.instrument}({rec.profile_number}) has no time data")
        rec.pressure = np.array([], dtype=float)
        rec.dpdt = np.array([], dtype=float)
        rec.log_step("sync_to_ctd", "no pressure record added")
        return rec

    rec.profile_direction = ctd.profile_direction
    rec.profile_date = ctd.profile_date
    rec.backtrack = ctd.backtrack
    npts = rec.time.size

    if ctd.is_all_nan("time") or ctd.is_empty("pressure"):
        log.warning(
            f"ctd({ctd.profile_number}) has no usable time or pressure data; "
            f"{rec.instrument} pressure set to NaN"
        )
        rec.pressure = np.full(npts, np.nan)
        rec.dpdt = np.full(npts, np.nan)
        rec.log_step("sync_to_ctd", "NaN pressure record added")
        return rec

    pressure, dpdt = interpolate_pressure(
        rec.time, ctd.time, ctd.pressure, rec.acquisition_rate
    )

    if pressure.size == 0:
        log.warning(
            f"{rec.instrument}({rec.profile_number}): interpolation to find ctd "
            "pressure failed"
        )
        rec.pressure = np.full(npts, np.nan)
        rec.dpdt = np.full(npts, np.nan)
        rec.log_step("sync_to_ctd", "NaN pressure record added")
        return rec

    ctd_based_mask = transfer_mask(rec.time, ctd.time, ctd.profile_mask)
    rec.profile_mask = np.asarray(rec.profile_mask, dtype=bool) & ctd_based_mask
    rec.pressure = pressure + rec.depth_offset
    rec.dpdt = dpdt
    rec.log_step("sync_to_ctd", "pressure record added")
    return rec


def sync_ctd_eng(ctd, eng):
    """
    Exchange profile masks between the CTD and engineering streams and
    interpolate CTD pressure and dP/dt onto engineering timestamps.

    Parameters
    ----------
    ctd, eng : ProfileRecord
        Records with the same profile number.

    Returns
    -------
    ctd, eng : ProfileRecord
    """
    if ctd.profile_number != eng.profile_number:
        raise ValueError(
            f"Cannot sync eng profile {eng.profile_number} "
            f"to ctd profile {ctd.profile_number}"
        )

    if eng.is_empty("pressure") or ctd.is_empty("pressure"):
        ctd.log_step("sync_ctd_eng", "not synced")
        eng.log_step("sync_ctd_eng", "not synced")
        return ctd, eng

    eng.profile_direction = ctd.profile_direction

    if ctd.is_empty("time") or np.any(np.isnan(ctd.time)):
        log.warning(
            f"No ctd timestamps found for profile {ctd.profile_number}; "
            "ctd profile mask set to false"
        )
        ctd.profile_mask = np.zeros(ctd.pressure.shape, dtype=bool)
        ctd.time = np.full(ctd.pressure.shape, np.nan)
        ctd.log_step("sync_ctd_eng", "all flagged bad")
        eng.log_step("sync_ctd_eng", "not synced")
        return ctd, eng

    ctd_mask_from_eng = transfer_mask(ctd.time, eng.time, eng.profile_mask)
    eng_mask_from_ctd = transfer_mask(eng.time, ctd.time, ctd.profile_mask)
    ctd.profile_mask = np.asarray(ctd.profile_mask, dtype=bool) & ctd_mask_from_eng
    eng.profile_mask = np.asarray(eng.profile_mask, dtype=bool) & eng_mask_from_ctd

    eng.pressure = np.interp(eng.time, ctd.time, ctd.pressure, left=np.nan, right=np.nan)
    if ctd.dpdt.size == ctd.time.size:
        eng.dpdt = np.interp(eng.time, ctd.time, ctd.dpdt, left=np.nan, right=np.nan)
    else:
        eng.dpdt = np.full(eng.time.shape, np.nan)

    ctd.log_step("sync_ctd_eng", "synced")
    eng.log_step("sync_ctd_eng", "synced")
    return ctd, eng
