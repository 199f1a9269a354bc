"""
Current meter deployment pipelines.

``process_acm_deployment`` runs the pipeline for the current meter type named
in the configuration: the Nortek AD2CP on coastal profilers or the FSI 3D-MP
on global profilers.
"""
import logging

from wfpcal import binning, columns, deployment, fields, flagging, sync, transforms

log = logging.getLogger(__name__)


def _prepare(acm_dep, ctd_dep, cfg, acm_type):
    """Shared front end: field selection, short-profile rejection and sync."""
    fields.set_sensor_fields(acm_dep, acm_type, "L0")
    acm_dep.initialize_unselected()
    for rec in acm_dep:
        rec.depth_offset = cfg.depth_offsets.acm
        rec.binning_parameters = cfg.binning_parameters.acm
    flagging.void_short_profiles(
        acm_dep,
        "heading",
        cfg.short_profile.acm_nptsMin,
        cfg.short_profile.acm_range_min,
    )
    acm_dep.apply(sync.sync_to_ctd, ctd_dep)
    return acm_dep


def _bin_l2(acm_dep, cfg, acm_type):
    """Copy the selected records without unbinned fields and bin them."""
    records = deployment.remove_l2_fields(
        acm_dep.all_records(), fields.UNBINNED_ONLY[acm_type]
    )
    selected = [rec for rec in records if rec.profile_number in acm_dep.selected]
    fields.set_sensor_fields(selected, acm_type, "L2")
    pmin, width, pmax = binning.determine_binning_parameters(selected, "pressure")
    for rec in selected:
        binning.pressure_bin(
            rec,
            pmin,
            width,
            pmax,
            statistic=cfg.bin_statistic,
            min_count=cfg.bin_min_count,
        )
    return records


def process_coastal_deployment(acm_dep, ctd_dep, cfg):
    """
    Process AD2CP current meter profiles to L2.

    Parameters
    ----------
    acm_dep : Deployment
        Current meter records holding unpacked rows in
        ``rec.data["imported_data"]``.
    ctd_dep : Deployment
        Processed (unmasked) CTD records.
    cfg : Munch
        Processing configuration.

    Returns
    -------
    dict
        "acm_L0", "acm_L1" and "acm_L2" products.
    """
    proc = cfg.acm_processing
    columns.deal_deployment(acm_dep, "coastal")
    _prepare(acm_dep, ctd_dep, cfg, "coastal")

    products = {"acm_L0": deployment.make_product("L0", acm_dep, cfg)}

    acm_dep.apply(transforms.interpolate_hpr)
    acm_dep.apply(
        transforms.correct_phase_ambiguity,
        ambiguity_velocity=proc.ambiguity_velocity_m_per_sec,
        correct=proc.correct_velBeam_for_phase_ambiguity,
    )
    acm_dep.apply(transforms.beam_to_xyz_coastal)
    acm_dep.apply(
        transforms.wag_velocity,
        wag_radius=proc.wag_radius_m,
        geometry_ratio=transforms.COASTAL_WAG_RATIO,
        correct=proc.correct_velY_for_wag,
    )
    acm_dep.apply(
        transforms.xyz_to_enu_coastal,
        magnetic_declination=proc.magnetic_declination_deg,
        correct_pitch_and_roll=proc.correct_velXYZ_for_pitch_and_roll,
        correct_dpdt=proc.correct_velU_for_dpdt,
    )

    fields.set_sensor_fields(acm_dep, "coastal", "L1")
    acm_dep.apply(flagging.nan_bad_sections)
    products["acm_L1"] = deployment.make_product(
        "L1",
        acm_dep,
        cfg,
        ambiguous_points={rec.profile_number: rec.ambiguous_points for rec in acm_dep},
    )

    l2_records = _bin_l2(acm_dep, cfg, "coastal")
    products["acm_L2"] = deployment.make_product("L2", acm_dep, cfg, records=l2_records)
    return products


def process_global_deployment(acm_dep, ctd_dep, cfg):
    """
    Process FSI 3D-MP current meter profiles to L2.

    Parameters are as for `process_coastal_deployment`.
    """
    proc = cfg.acm_processing
    columns.deal_deployment(acm_dep, "global")
    _prepare(acm_dep, ctd_dep, cfg, "global")

    acm_dep.apply(transforms.beam_to_xyz_global)
    acm_dep.apply(
        transforms.wag_velocity,
        wag_radius=proc.wag_radius_m,
        geometry_ratio=transforms.GLOBAL_WAG_RATIO,
        correct=proc.correct_velY_for_wag,
    )
    acm_dep.apply(
        transforms.xyz_to_enu_global,
        magnetic_declination=proc.magnetic_declination_deg,
        correct_dpdt=proc.correct_velU_for_dpdt,
    )
    products = {"acm_L0": deployment.make_product("L0", acm_dep, cfg)}

    acm_dep.apply(
        transforms.smooth_acm, time_constant=proc.acm_filter_time_constant_sec
    )
    fields.set_sensor_fields(acm_dep, "global", "L1")
    acm_dep.apply(transforms.nan_extreme_tilt, threshold=cfg.extreme_tilt_deg)
    acm_dep.apply(flagging.nan_bad_sections)
    products["acm_L1"] = deployment.make_product("L1", acm_dep, cfg)

    l2_records = _bin_l2(acm_dep, cfg, "global")
    products["acm_L2"] = deployment.make_product("L2", acm_dep, cfg, records=l2_records)
    return products


PIPELINES = {
    "coastal": process_coastal_deployment,
    "global": process_global_deployment,
}


def process_acm_deployment(acm_dep, ctd_dep, cfg):
    """
    Run the current meter pipeline selected by ``cfg.deployment.acm_type``.

    Raises
    ------
    ValueError
        Unrecognized current meter type.
    """
    acm_type = str(cfg.deployment.acm_type).lower()
    if acm_type not in PIPELINES:
        raise ValueError(
            f"Unrecognized current meter type '{cfg.deployment.acm_type}'; "
            f"expected one of {tuple(PIPELINES)}"
        )
    log.info(f"Processing {acm_type} current meter data for {len(acm_dep.selected)} profiles")
    return PIPELINES[acm_type](acm_dep, ctd_dep, cfg)
