"""
Sensor field tables.

Each instrument stream carries a different set of channels at each processing
level. Generic operations (masking, binning, stacking) act only over the
channels named in a record's ``sensor_fields``.
"""
import logging

import numpy as np

log = logging.getLogger(__name__)

LEVELS = ("L0", "L1", "L2")

SENSOR_FIELDS = {
    "ctd": {
        "L0": ("time", "pressure", "conductivity", "temperature", "oxygen"),
        "L1": (
            "time", "pressure", "dpdt", "conductivity", "temperature", "oxygen",
            "salinity", "theta", "sigma_theta",
        ),
        "L2": (
            "time", "pressure", "dpdt", "conductivity", "temperature", "oxygen",
            "salinity", "theta", "sigma_theta",
        ),
    },
    "eng": {
        "L0": ("time", "current", "voltage", "pressure", "par", "chl", "cdom", "bback"),
        "L1": ("time", "pressure", "dpdt", "par", "chl", "cdom", "bback"),
        "L2": ("time", "pressure", "dpdt", "par", "chl", "cdom", "bback"),
    },
    "coastal": {
        "L0": (
            "time", "pressure", "aqd_temperature", "aqd_pressure", "heading",
            "pitch", "roll", "magnetometer", "velBeam", "amplitude", "correlation",
        ),
        "L1": (
            "time", "pressure", "dpdt", "aqd_temperature", "aqd_pressure",
            "heading", "pitch", "roll", "velBeam", "velXYZ", "velENU", "wag_signal",
        ),
        "L2": (
            "time", "pressure", "dpdt", "aqd_temperature", "aqd_pressure",
            "heading", "velENU",
        ),
    },
    "global": {
        "L0": ("time", "pressure", "heading", "TX", "TY", "magnetometer", "velBeam"),
        "L1": (
            "time", "pressure", "dpdt", "heading", "TX", "TY", "velBeam", "velXYZ",
            "velENU", "wag_signal",
        ),
        "L2": (
            "time", "pressure", "dpdt", "heading", "TX", "TY", "velENU", "wag_signal",
        ),
    },
}

# fields that exist only before binning and are dropped from L2 products
UNBINNED_ONLY = {
    "coastal": ("pitch", "roll", "velBeam", "velXYZ", "wag_signal"),
    "global": ("velBeam", "velXYZ"),
}

# channels averaged as angles
CIRCULAR_FIELDS = ("heading",)


def get_sensor_fields(stream, level):
    """
    Look up the sensor field names of a stream at a processing level.

    Parameters
    ----------
    stream : str
        "ctd", "eng", or a current meter type ("coastal", "global").
    level : str
        "L0", "L1" or "L2".

    Returns
    -------
    tuple of str
    """
    if stream not in SENSOR_FIELDS:
        raise ValueError(f"Unknown instrument stream '{stream}'")
    if level not in LEVELS:
        raise ValueError(f"Unknown processing level '{level}'; expected one of {LEVELS}")
    return SENSOR_FIELDS[stream][level]


def set_sensor_fields(records, stream, level):
    """
    Set the sensor fields of every record to the level table of a stream.

    Channels named in the table but absent from a record are created as NaN
    arrays the length of its time record, so every record exposes the same
    field set.
    """
    names = get_sensor_fields(stream, level)
    for rec in records:
        for name in names:
            if name not in rec:
                rec[name] = np.full(rec.time.shape, np.nan)
        rec.sensor_fields = names
        rec.log_step("set_sensor_fields", f"{level} sensor fields set")
    return records
