"""
Deal unpacked current meter columns into profile record fields.

The unpacker writes one row per sample with six date/time columns
(month, day, year, hour, minute, second) followed by the instrument columns.
Which instrument columns are present depends on the instrument and on how it
was configured, so the layout is identified from the column count shared by all
profiles of a deployment.
"""
import logging

import numpy as np
import pandas as pd

log = logging.getLogger(__name__)

NROW_MIN = 5
TIME_COLUMNS = 6
NOT_DEALT = "imported data not assigned to variables"

# Column layouts, 0-based positions into the full unpacked row.
# "fields" are 1-D channels, "vectors" are multi-column channels, and
# "beam_fields" are 4-beam channels holding data for the mapped beams only.
DECIMATED_OOI = dict(
    name="decimated OOI",
    fields=dict(aqd_temperature=6, heading=7, pitch=8, roll=9, nbeams=10),
    vectors={},
    beam_map=[11, 12, 13, 14],
    beam_fields=dict(velBeam=[15, 16, 17], amplitude=[18, 19, 20]),
    nan_fields=dict(aqd_pressure=1, correlation=4, magnetometer=3),
    subsecond="rate",
)

FULL_DATASET = dict(
    name="full dataset",
    fields=dict(
        soundspeed=6, aqd_temperature=7, heading=8, pitch=9, roll=10, nbeams=14,
        ncells=15,
    ),
    # magnetometer columns are unreliable in these files
    vectors={},
    beam_map=[16, 17, 18, 19, 20],
    beam_fields=dict(
        velBeam=[21, 22, 23], amplitude=[24, 25, 26], correlation=[27, 28, 29]
    ),
    nan_fields=dict(aqd_pressure=1, magnetometer=3),
    subsecond=None,
)

# as FULL_DATASET with the current meter's own pressure in column 9
FULL_DATASET_WITH_PRESSURE = dict(
    FULL_DATASET,
    name="full dataset with pressure",
    fields=dict(
        soundspeed=6, aqd_temperature=7, aqd_pressure=8, heading=9, pitch=10,
        roll=11, nbeams=15, ncells=16,
    ),
    vectors={},
    beam_map=[17, 18, 19, 20, 21],
    beam_fields=dict(
        velBeam=[22, 23, 24], amplitude=[25, 26, 27], correlation=[28, 29, 30]
    ),
    nan_fields=dict(magnetometer=3),
)

FSI_3DMP = dict(
    name="FSI 3D-MP",
    fields=dict(heading=6, TX=7, TY=8),
    vectors=dict(magnetometer=[9, 10, 11], velBeam=[12, 13, 14, 15]),
    beam_map=None,
    beam_fields={},
    nan_fields={},
    subsecond="degenerate",
)

# keyed by the number of data columns, counting the date/time as one column
LAYOUTS = {
    "coastal": {16: DECIMATED_OOI, 25: FULL_DATASET, 26: FULL_DATASET_WITH_PRESSURE},
    "global": {11: FSI_3DMP},
}

UNSUPPORTED = {
    "coastal": {
        11: "same as the faulty OOI decimated dataset (lacks beam mapping)",
        12: "same as the default McLane setting, not an OOI configuration",
    },
    "global": {},
}


def columns_to_posix(data):
    """
    Convert the six leading date/time columns to POSIX seconds.

    Parameters
    ----------
    data : ndarray
        Rows of month, day, year, hour, minute, second, ...

    Returns
    -------
    ndarray
    """
    whole = pd.to_datetime(
        pd.DataFrame(
            {
                "year": data[:, 2].astype(int),
                "month": data[:, 0].astype(int),
                "day": data[:, 1].astype(int),
                "hour": data[:, 3].astype(int),
                "minute": data[:, 4].astype(int),
            }
        )
    )
    seconds = (whole - pd.Timestamp("1970-01-01")) / pd.Timedelta(seconds=1)
    return seconds.to_numpy(dtype=float) + data[:, 5].astype(float)


def add_subsecond_by_rate(time):
    """Spread samples sharing a whole-second timestamp by the sample rate."""
    nrow = time.size
    rate = (nrow - 1) / (time[-1] - time[0]) if time[-1] != time[0] else 1.0
    daq = int(round(rate))
    time = time.copy()
    for ii in range(1, daq):
        time[ii::daq] += ii / daq
    return time


def add_subsecond_to_degenerate(time):
    """Spread each run of identical timestamps evenly over one second."""
    time = time.copy()
    starts = np.concatenate(([0], np.flatnonzero(np.diff(time)) + 1))
    counts = np.diff(np.concatenate((starts, [time.size])))
    for start, count in zip(starts, counts):
        time[start:start + count] += np.arange(count) / count
    return time


def _get_beam_mapping(data, columns):
    """
    Beam numbers reported in the beam map columns, or None when the map has
    more than three beams or changes within the profile.
    """
    beam_map = data[:, columns]
    if not np.all(beam_map[:, 3:] == 0):
        return None
    beam_map = beam_map[:, :3]
    if not np.all(beam_map == beam_map[0]):
        return None
    return tuple(int(b) for b in beam_map[0])


def _not_dealt(rec, reason):
    log.warning(f"acm({rec.profile_number}): {reason}; {NOT_DEALT}")
    rec.log_step("deal_profile", NOT_DEALT)
    return rec


def deal_profile(rec, layout):
    """
    Assign the unpacked columns of one profile to record fields.

    Parameters
    ----------
    rec : ProfileRecord
        Record holding the unpacked rows in ``rec.data["imported_data"]``.
    layout : dict
        One of the column layouts of this module.

    Returns
    -------
    ProfileRecord
    """
    data = np.asarray(rec.data.get("imported_data", []), dtype=float)
    if data.size == 0:
        rec.log_step("deal_profile", "no data")
        return rec
    nrow = data.shape[0]
    if nrow < NROW_MIN:
        return _not_dealt(rec, f"only {nrow} rows of data")

    beam_mapping = None
    if layout["beam_map"] is not None:
        beam_mapping = _get_beam_mapping(data, layout["beam_map"])
        if beam_mapping is None:
            return _not_dealt(rec, "beam mapping is not constant")

    time = columns_to_posix(data)
    if layout["subsecond"] == "rate":
        time = add_subsecond_by_rate(time)
    elif layout["subsecond"] == "degenerate":
        time = add_subsecond_to_degenerate(time)
    if np.any(np.diff(time) <= 0):
        return _not_dealt(rec, "time is not monotonic")

    rec.time = time
    for name, col in layout["fields"].items():
        rec[name] = data[:, col]
    for name, cols in layout["vectors"].items():
        rec[name] = data[:, cols]
    for name, ncol in layout["nan_fields"].items():
        rec[name] = np.full((nrow, ncol) if ncol > 1 else nrow, np.nan)
    if "aqd_pressure" in rec.data and np.all(rec["aqd_pressure"] == 0):
        rec["aqd_pressure"] = np.full(nrow, np.nan)
    if beam_mapping is not None:
        rec.beam_mapping = beam_mapping
        beams = [b - 1 for b in beam_mapping]
        for name, cols in layout["beam_fields"].items():
            values = np.full((nrow, 4), np.nan)
            values[:, beams] = data[:, cols]
            rec[name] = values

    rec.profile_mask = np.ones(nrow, dtype=bool)
    del rec.data["imported_data"]
    rec.log_step("deal_profile", "data dealt")
    return rec


def identify_layout(ncol, acm_type):
    """
    Find the column layout for a raw column count.

    Raises
    ------
    ValueError
        When the column count is not a supported layout.
    """
    n_data_columns = ncol - (TIME_COLUMNS - 1)
    if n_data_columns in UNSUPPORTED.get(acm_type, {}):
        raise ValueError(
            f"Number of data columns ({n_data_columns}) is "
            f"{UNSUPPORTED[acm_type][n_data_columns]}"
        )
    try:
        return LAYOUTS[acm_type][n_data_columns]
    except KeyError:
        raise ValueError(
            f"Unsupported {acm_type} current meter data with {n_data_columns} data "
            "columns; check the number of columns in the unpacked files"
        )


def deal_deployment(deployment, acm_type):
    """
    Deal the unpacked columns of every selected profile.

    Parameters
    ----------
    deployment : Deployment
        Current meter records holding unpacked rows in
        ``rec.data["imported_data"]``.
    acm_type : str
        "coastal" or "global".

    Returns
    -------
    Deployment

    Raises
    ------
    ValueError
        No data was imported, profiles have different column counts, or the
        column count is not a supported layout.
    """
    ncols = {
        np.shape(rec.data["imported_data"])[1]
        for rec in deployment
        if np.size(rec.data.get("imported_data", [])) > 0
    }
    if not ncols:
        raise ValueError("No current meter data was imported; check paths and files")
    if len(ncols) > 1:
        raise ValueError(
            f"More than one format of current meter data in the selected profiles: "
            f"{sorted(ncols)} columns"
        )
    layout = identify_layout(ncols.pop(), acm_type)
    log.info(f"Current meter data identified as the {layout['name']} layout")

    return deployment.apply(deal_profile, layout=layout)
