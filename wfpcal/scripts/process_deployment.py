"""
Process all profiles of a moored profiler deployment.
"""
import logging
from pathlib import Path

import pandas as pd
from munch import munchify

from wfpcal.acm import process_acm_deployment
from wfpcal.common import load_user_config, make_processing_config, validate_dir, validate_file
from wfpcal.engineering import process_ctd_eng_deployment

log = logging.getLogger(__name__)

USERCONFIG = "wfpcal/deployment.yaml"


def _load_deployment(imported_dir, deployment_id, stream, cfg):
    f = validate_file(Path(imported_dir, f"{deployment_id}_{stream}.pkl"))
    dep = pd.read_pickle(f)
    dep.selected = list(cfg.profiles)
    return dep


def process_deployment(config_file=USERCONFIG):
    """
    Run the CTD, engineering and current meter pipelines and write the L0, L1
    and L2 products.

    Imported deployment collections are read from
    ``<imported>/<deployment_ID>_{ctd,eng,acm}.pkl``; products are written to
    ``<processed>/<deployment_ID>_<product>.pkl``.

    Parameters
    ----------
    config_file : str or Path-like, optional
        YAML deployment metadata.

    Returns
    -------
    dict
        The products, keyed like "ctd_L2".
    """

    #####
    # Step 0: Load and define necessary variables
    #####

    user_cfg = load_user_config(config_file)
    cfg = make_processing_config(user_cfg)
    deployment_id = cfg.deployment.deployment_ID
    imported_dir = validate_dir(cfg.dirs.imported)
    processed_dir = validate_dir(cfg.dirs.processed, create=True)
    cal = munchify(user_cfg["calibrations"]) if "calibrations" in user_cfg else None

    ctd_dep = _load_deployment(imported_dir, deployment_id, "ctd", cfg)
    eng_dep = _load_deployment(imported_dir, deployment_id, "eng", cfg)
    acm_dep = _load_deployment(imported_dir, deployment_id, "acm", cfg)

    #####
    # Step 1: CTD and engineering streams
    #####

    log.info(f"Processing deployment {deployment_id}: {len(cfg.profiles)} profiles")
    products = process_ctd_eng_deployment(ctd_dep, eng_dep, cfg, cal=cal)
    processed_ctd = products.pop("ctd")

    #####
    # Step 2: current meter
    #####

    products.update(process_acm_deployment(acm_dep, processed_ctd, cfg))

    #####
    # Step 3: write products
    #####

    for name, product in products.items():
        outfile = Path(processed_dir, f"{deployment_id}_{name}.pkl")
        pd.to_pickle(product, outfile)
        log.info(f"Wrote {outfile}")

    return products
