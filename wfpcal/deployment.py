"""
Assemble per-profile records into deployment-level data products.
"""
import logging
from datetime import datetime, timezone

import numpy as np
from munch import Munch

log = logging.getLogger(__name__)


def _field_width(records, name):
    """Trailing width of a field across records; None for 1-D fields."""
    width = None
    for rec in records:
        values = np.asarray(rec.get(name, []))
        if values.ndim == 2:
            width = max(width or 0, values.shape[1])
    return width


def _default_fields(records):
    return next((rec.sensor_fields for rec in records if rec.sensor_fields), ())


def stack_fields(records, fields=None):
    """
    Stack profile fields into deployment arrays, padding with NaN.

    Parameters
    ----------
    records : iterable of ProfileRecord
        Profiles in the order they should appear as columns.
    fields : sequence of str, optional
        Fields to stack; default the sensor fields of the first
        record that has any.

    Returns
    -------
    Munch
        One (npts_max, nprofiles) array per 1-D field and one
        (npts_max, nprofiles, k) array per 2-D field.
    """
    records = list(records)
    if fields is None:
        fields = _default_fields(records)

    stacked = Munch()
    for name in fields:
        width = _field_width(records, name)
        lengths = [np.shape(rec.get(name, []))[0] for rec in records]
        npts_max = max(lengths) if lengths else 0
        shape = (npts_max, len(records)) if width is None else (npts_max, len(records), width)
        out = np.full(shape, np.nan)
        for jj, rec in enumerate(records):
            values = np.asarray(rec.get(name, []), dtype=float)
            npts = values.shape[0]
            if npts == 0:
                continue
            if width is None:
                out[:npts, jj] = values
            else:
                values = values.reshape(npts, -1)
                out[:npts, jj, : values.shape[1]] = values
        stacked[name] = out
    return stacked


def concatenate_fields(records, direction, fields=None):
    """
    Concatenate profile fields end to end.

    Parameters
    ----------
    records : iterable of ProfileRecord
    direction : str
        "vert" joins along rows, "horz" along columns.
    fields : sequence of str, optional
        Default the sensor fields of the first record that has any.

    Returns
    -------
    Munch
    """
    if direction == "vert":
        axis = 0
    elif direction == "horz":
        axis = 1
    else:
        raise ValueError(f"Unknown concatenation direction '{direction}'; use 'vert' or 'horz'")

    records = list(records)
    if fields is None:
        fields = _default_fields(records)

    joined = Munch()
    for name in fields:
        arrays = [np.asarray(rec.get(name, []), dtype=float) for rec in records]
        if axis == 1:
            arrays = [a.reshape(a.shape[0], -1) for a in arrays]
        joined[name] = np.concatenate(arrays, axis=axis)
    return joined


def remove_l2_fields(records, fields):
    """
    Copy records without the fields that only exist before binning.

    Returns
    -------
    list of ProfileRecord
    """
    out = []
    for rec in records:
        rec = rec.copy()
        for name in fields:
            rec.data.pop(name, None)
        rec.sensor_fields = tuple(f for f in rec.sensor_fields if f not in fields)
        rec.log_step("remove_l2_fields", "unbinned fields removed")
        out.append(rec)
    return out


def make_product(level, deployment, cfg, records=None, **aux):
    """
    Build a deployment-level data product.

    Parameters
    ----------
    level : str
        Product level label ("L0", "L1", "L2").
    deployment : Deployment
        Source collection; every profile appears in the product.
    cfg : Munch
        Processing configuration.
    records : list of ProfileRecord, optional
        Records to use instead of those of `deployment` (e.g. L2 copies).
    aux
        Additional entries carried into the product as-is.

    Returns
    -------
    Munch
    """
    if records is None:
        records = deployment.all_records()

    product = Munch()
    product.deployment_ID = cfg.deployment.deployment_ID
    product.instrument = deployment.instrument
    product.level = level
    product.processing_date = datetime.now(timezone.utc).isoformat(timespec="seconds")
    product.profiles_selected = list(deployment.selected)
    product.profile_number = np.array([rec.profile_number for rec in records])
    product.profile_date = np.array([rec.profile_date for rec in records], dtype=float)
    product.profile_direction = [rec.profile_direction.value for rec in records]

    if level == "L2":
        binned = [rec for rec in records if rec.pressure_bin_values is not None]
        if binned:
            product.binning_parameters = tuple(binned[0].binning_parameters)
            product.pressure_bin_values = binned[0].pressure_bin_values

    selected_fields = _default_fields(
        [rec for rec in records if rec.profile_number in deployment.selected]
    )
    product.update(stack_fields(records, selected_fields or None))
    product.code_history = [list(rec.code_history) for rec in records]
    product.data_status = [list(rec.data_status) for rec in records]
    product.update(aux)
    log.info(f"{deployment.instrument} {level} product assembled for {len(records)} profiles")
    return product
