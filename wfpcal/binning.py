"""
Pressure binning of profile records.
"""
import logging

import numpy as np
import pandas as pd

from wfpcal.fields import CIRCULAR_FIELDS

log = logging.getLogger(__name__)

BIN_STATISTICS = ("mean", "median")


def determine_binning_parameters(records, field="pressure"):
    """
    Choose common binning parameters for a set of profiles.

    The per-profile ``binning_parameters`` are combined by their median. A
    three-element value is (min bin center, bin width, max bin center); a
    single value is a bin width, and the extent is taken from the data in
    `field` across all profiles. The maximum is then raised so the range is a
    whole number of bins. If no profile has `field` data, a single bin
    centered on 0 is returned and every profile bins to NaN.

    Parameters
    ----------
    records : iterable of ProfileRecord
    field : str, optional
        Field the extent is measured on when only a width is given.

    Returns
    -------
    zmin, zbin, zmax : float
    """
    records = list(records)
    params = [
        np.atleast_1d(np.asarray(rec.binning_parameters, dtype=float))
        for rec in records
        if rec.binning_parameters is not None
    ]
    if not params:
        raise ValueError("No binning parameters found on any profile")
    sizes = {p.size for p in params}
    if len(sizes) != 1 or sizes.pop() not in (1, 3):
        raise ValueError(
            "Binning parameters must all be a bin width or all be [min, width, max]"
        )
    bin_params = np.median(np.vstack(params), axis=0)

    if bin_params.size == 1:
        zbin = float(bin_params[0])
        if np.isnan(zbin) or zbin <= 0:
            log.warning("Could not determine the bin width, using default of 1")
            zbin = 1.0
        values = [np.asarray(rec.get(field, []), dtype=float).ravel() for rec in records]
        z = np.concatenate(values) if values else np.array([])
        z = z[~np.isnan(z)]
        if z.size == 0:
            log.warning(
                f"No {field} data to determine the binning extent from; "
                "binning to a single empty bin"
            )
            return 0.0, zbin, 0.0
        zmin = float(np.floor(z.min() + zbin / 2))
        zmax = float(np.ceil(z.max() - zbin / 2))
    else:
        zmin, zbin, zmax = (float(v) for v in bin_params)

    zmax = zmin + zbin * np.ceil((zmax - zmin) / zbin)
    return zmin, zbin, zmax


def bin_centers(pmin, width, pmax):
    """Bin centers pmin, pmin + width, ..., pmax."""
    nbin = int(round((pmax - pmin) / width)) + 1
    return pmin + width * np.arange(nbin)


def _bin_columns(codes, data, nbin, statistic, min_count, circular=False):
    """
    Bin the columns of a 2-D array by integer bin code.

    Returns an (nbin, ncol) array; bins with fewer than min_count non-NaN
    samples are NaN.
    """
    df = pd.DataFrame(data)
    if circular:
        rad = np.deg2rad(df)
        sin_mean = np.sin(rad).groupby(codes).mean()
        cos_mean = np.cos(rad).groupby(codes).mean()
        binned = np.mod(np.rad2deg(np.arctan2(sin_mean, cos_mean)), 360)
    else:
        binned = df.groupby(codes).agg(statistic)
    counts = df.groupby(codes).count()

    # bin codes are floats, NaN outside the bins
    index = np.arange(nbin, dtype=float)
    binned = binned.reindex(index)
    counts = counts.reindex(index).fillna(0)
    binned = binned.where(counts >= max(min_count, 1))
    return binned.to_numpy(dtype=float)


def pressure_bin(rec, pmin, width, pmax, statistic="mean", min_count=1):
    """
    Average every sensor field of a profile into pressure bins.

    Parameters
    ----------
    rec : ProfileRecord
    pmin, width, pmax : float
        First bin center, bin width and last bin center [dbar].
    statistic : str, optional
        "mean" or "median" of the non-NaN samples in each bin.
    min_count : int, optional
        Bins with fewer samples than this are NaN.

    Returns
    -------
    ProfileRecord
        Each sensor field becomes an (nbin,) or (nbin, k) array.
    """
    if statistic not in BIN_STATISTICS:
        raise ValueError(
            f"Unknown bin statistic '{statistic}'; expected one of {BIN_STATISTICS}"
        )

    centers = bin_centers(pmin, width, pmax)
    nbin = centers.size
    rec.binning_parameters = (pmin, width, pmax)
    rec.pressure_bin_values = centers

    if rec.is_empty("pressure"):
        for name in rec.sensor_fields:
            values = np.asarray(rec.get(name, []))
            ncol = values.shape[1] if values.ndim == 2 else None
            rec[name] = np.full((nbin, ncol) if ncol else nbin, np.nan)
        rec.log_step("pressure_bin", "binned entries set to NaN")
        return rec

    edges = pmin - width / 2 + width * np.arange(nbin + 1)
    pressure = np.asarray(rec.pressure, dtype=float)
    codes = np.asarray(
        pd.cut(pressure, bins=edges, right=False, labels=False), dtype=float
    )

    # binning pressure replaces it, so collect all fields before writing
    binned_fields = {}
    for name in rec.sensor_fields:
        values = np.asarray(rec[name], dtype=float)
        if values.shape[0] != pressure.size:
            log.warning(
                f"{rec.instrument}({rec.profile_number}): {name} length does not match "
                "pressure; binned values set to NaN"
            )
            ncol = values.shape[1] if values.ndim == 2 else None
            binned_fields[name] = np.full((nbin, ncol) if ncol else nbin, np.nan)
            continue
        data = values.reshape(values.shape[0], -1)
        binned = _bin_columns(
            codes, data, nbin, statistic, min_count, circular=name in CIRCULAR_FIELDS
        )
        binned_fields[name] = binned if values.ndim == 2 else binned[:, 0]

    for name, values in binned_fields.items():
        rec[name] = values
    rec.log_step("pressure_bin", "binned")
    return rec
