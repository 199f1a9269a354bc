"""
Profile-level quality gating and mask application.
"""
import logging

import numpy as np

log = logging.getLogger(__name__)


def _masked_values(rec, field):
    values = np.asarray(rec.get(field, []), dtype=float)
    if values.size == 0:
        return values
    mask = np.asarray(rec.profile_mask, dtype=bool)
    if mask.shape[0] == values.shape[0]:
        values = values[mask]
    return values


def _value_range(values):
    """Range of a field ignoring NaNs; empty and all-NaN fields have range 0."""
    if values.size == 0 or np.all(np.isnan(values)):
        return 0.0
    return float(np.nanmax(values) - np.nanmin(values))


def void_short_profiles(records, field, npts_min, range_min, profiles=None):
    """
    Empty the sensor fields of profiles that are too short to process.

    A profile is voided when the number of retained values of `field` is at
    most `npts_min`, or their range (ignoring NaNs) is at most `range_min`.
    Either criterion is disabled by passing -1.

    Parameters
    ----------
    records : iterable of ProfileRecord
        Profiles to check (e.g. a Deployment, which yields selected profiles).
    field : str
        Field the length and range are measured on.
    npts_min : int
        Minimum number of points; profiles with npts <= npts_min are voided.
    range_min : float
        Minimum range; profiles with range <= range_min are voided.
    profiles : list of int, optional
        Only check these profile numbers.

    Returns
    -------
    voided : list of int
        Profile numbers whose fields were emptied.
    """
    voided = []
    for rec in records:
        if profiles is not None and rec.profile_number not in profiles:
            continue
        values = _masked_values(rec, field)
        prange = _value_range(values)
        too_few = values.size <= npts_min
        too_narrow = prange <= range_min
        if too_few or too_narrow:
            rec.void_fields(rec.sensor_fields or [field])
            rec.void_fields([field])
            rec.log_step("void_short_profiles", "all data set to empty")
            voided.append(rec.profile_number)
        else:
            rec.log_step("void_short_profiles", "no change")

    if voided:
        log.warning(f"Profile numbers with {field} records set to empty: {voided}")
    else:
        log.info(f"No profiles voided on {field}")
    return voided


def nan_bad_sections(rec):
    """
    Set sensor field rows outside the profile mask to NaN.

    Applying the same mask twice gives the same result.

    Parameters
    ----------
    rec : ProfileRecord

    Returns
    -------
    ProfileRecord
    """
    if rec.is_empty("pressure"):
        rec.log_step("nan_bad_sections", "pressure empty, no action taken")
        return rec

    bad = ~np.asarray(rec.profile_mask, dtype=bool)
    for name in rec.sensor_fields:
        values = np.array(rec[name], dtype=float)
        if values.shape[0] != bad.size:
            log.warning(
                f"Profile {rec.profile_number}: {name} has {values.shape[0]} rows but "
                f"the mask has {bad.size}; field set to NaN"
            )
            rec.nan_fields([name], bad.size)
            continue
        values[bad] = np.nan
        rec[name] = values
    rec.log_step("nan_bad_sections", "bad sections set to NaN")
    return rec
