"""
Classes, definitions and utilities for all wfpcal modules
"""
import copy
import logging
from pathlib import Path

import numpy as np
import yaml
from munch import munchify

from wfpcal import get_wfpcal_config

log = logging.getLogger(__name__)
cfg = get_wfpcal_config()


# Function definitions
# --------------------

# Configuration
def load_user_config(cfgfile):
    """
    Load user-defined parameters from a configuration file. Return a Munch
    object (dictionary).

    Parameters
    ----------
    cfgfile : str or Path-like
        Path to the configuration file.

    Returns
    -------
    Munch object
    """
    cfgfile = validate_file(cfgfile)
    with open(cfgfile, 'r') as f:
        cfg = yaml.safe_load(f)
        return munchify(cfg)


def make_processing_config(user_cfg=None):
    """
    Overlay user deployment metadata onto the package defaults.

    The defaults in wfpcal/config.py are grouped by concern (deployment,
    depth_offsets, short_profile, ...). User values may be given either
    inside the same groups or flat at the top level; flat keys that match a
    key inside a default group replace that default.

    Parameters
    ----------
    user_cfg : dict or Munch, optional
        User metadata, e.g. from `load_user_config`.

    Returns
    -------
    Munch
        Read-only-by-convention processing configuration.
    """
    defaults = {
        k: copy.deepcopy(v)
        for k, v in vars(cfg).items()
        if not k.startswith("_")
    }
    merged = munchify(defaults)
    user_cfg = {} if user_cfg is None else user_cfg

    groups = [k for k, v in merged.items() if isinstance(v, dict)]
    for key, value in user_cfg.items():
        if key in groups and isinstance(value, dict):
            merged[key].update(value)
            continue
        for group in groups:
            if key in merged[group]:
                merged[group][key] = value
                break
        else:
            merged[key] = value

    acm_type = str(merged.deployment.acm_type).lower()
    if acm_type not in merged.acm_types:
        raise ValueError(
            f"Unrecognized current meter type '{merged.deployment.acm_type}'; "
            f"expected one of {merged.acm_types}"
        )
    merged.deployment.acm_type = acm_type

    merged.profiles = get_profile_list(
        merged.deployment.number_of_profiles,
        merged.deployment.profiles_to_process,
    )

    return munchify(merged)


def get_profile_list(number_of_profiles, profiles_to_process=None):
    """
    Build the list of profile numbers selected for processing.

    An empty selection means every profile from 1 to number_of_profiles.
    Out-of-range profile numbers are dropped with a warning.

    Parameters
    ----------
    number_of_profiles : int
        Total number of profiles in the deployment.
    profiles_to_process : list of int, optional
        Requested profile numbers.

    Returns
    -------
    list of int
    """
    if profiles_to_process is None or len(profiles_to_process) == 0:
        profiles = list(range(1, int(number_of_profiles) + 1))
    else:
        profiles = [int(p) for p in np.atleast_1d(profiles_to_process)]

    out_of_range = [p for p in profiles if p <= 0 or p > number_of_profiles]
    if out_of_range:
        log.warning(f"Out-of-range profile number(s) deleted: {out_of_range}")
        profiles = [p for p in profiles if p not in out_of_range]

    if not profiles:
        raise ValueError("No profiles to process.")

    return profiles


# Input Validation
def check_coefs(coefs_in, expected):
    """Compare calibration coefficients with the expected names"""
    missing_coefs = sorted(set(expected) - set(coefs_in))
    if missing_coefs != []:
        raise KeyError(f"Coefficient dictionary missing keys: {missing_coefs}")


def validate_dir(pathname, create=False):
    """
    Test if a directory exists, and optionally create it if it does not. Raise
    an exception if the directory does not exist, cannot be created, or is not
    a directory. Return the validated path.

    Parameters
    ----------
    pathname : str or PathLike
        Directory to validate.
    create : bool
        If true, create the directory if it does not exist. Default is false.

    Returns
    -------
    Path object
    """
    p = Path(pathname)
    if create is True:
        p.mkdir(parents=True, exist_ok=True)
        return p
    elif p.is_dir():
        return p
    elif p.exists():
        raise FileExistsError("%s already exists but is not a directory." % str(p))
    else:
        raise FileNotFoundError("The directory %s could not be found" % str(p))


def validate_file(pathname, create=False):
    """
    Test if a file exists, and optionally create it if it does not. Raise
    an exception if the file does not exist, cannot be created, or is not
    a file. Return the validated path.

    Parameters
    ----------
    pathname : str or Path-like
        Filename to validate.
    create : bool
        If true, create the file if it does not exist. Default is false.

    Returns
    -------
    Path object
    """
    p = Path(pathname)
    if create is True:
        p.parent.mkdir(parents=True, exist_ok=True)
        if p.is_dir():
            raise FileExistsError
        p.touch(exist_ok=True)
        return p
    elif p.is_file():
        return p
    elif p.exists():
        raise FileExistsError("%s exists but is not a file." % str(p))
    else:
        raise FileNotFoundError("The file %s could not be found." % str(p))

