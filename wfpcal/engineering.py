"""
Engineering stream processing and the CTD/engineering deployment pipeline.

The engineering stream carries the profiler's motor current, battery voltage
and pressure as well as the auxiliary optical sensors (PAR and an ECO triplet
fluorometer).
"""
import logging

import numpy as np

from wfpcal import binning, ctd, deployment, fields, flagging, sync
from wfpcal.common import check_coefs

log = logging.getLogger(__name__)

BACKTRACK_TIMESHIFT_SEC = 75
# photon flux conversion [quanta / (cm^2 s) per umol photons / (m^2 s)]
PAR_CONVERSION = 6.02e13
# seawater depolarization ratio for the Zhang et al. (2009) scattering model
DEPOLARIZATION_RATIO = 0.039


def flag_backtrack(eng, code):
    """
    Mask the backtracking sections of an engineering profile.

    Parameters
    ----------
    eng : ProfileRecord
    code : int
        1 masks the whole profile, 2 masks from 75 s before the first mask
        drop onward, 3 masks samples with zero pressure. Any other code leaves
        the mask as is.

    Returns
    -------
    ProfileRecord
    """
    if eng.is_empty("pressure"):
        eng.log_step("flag_backtrack", "no pressure data")
        return eng

    mask = np.asarray(eng.profile_mask, dtype=bool).copy()
    if code == 1:
        mask[:] = False
    elif code == 2:
        drops = np.flatnonzero(np.diff(mask.astype(int)) < 0)
        if drops.size:
            idx = drops[0] + 1 - int(np.ceil(eng.acquisition_rate * BACKTRACK_TIMESHIFT_SEC))
            mask[max(idx, 0):] = False
    elif code == 3:
        mask = eng.pressure != 0
    else:
        eng.log_step("flag_backtrack", "backtrack not flagged")
        return eng

    eng.profile_mask = mask
    eng.log_step("flag_backtrack", f"backtrack flagged: code {code}")
    return eng


def process_eng_sensors(eng, cal):
    """
    Convert auxiliary sensor counts to physical units with linear dark and
    scale calibrations.

    Parameters
    ----------
    eng : ProfileRecord
    cal : Munch
        ``par_dark``, ``par_scale_wet`` and ``<sensor>_dark`` and
        ``<sensor>_scale`` for chl [ug/l], cdom [ppb] and bback [1/(m sr)].

    Returns
    -------
    ProfileRecord
    """
    if eng.is_empty("pressure"):
        eng.log_step("process_eng_sensors", "not processed")
        return eng

    if "par" in eng and not eng.is_empty("par"):
        par_volts = (np.asarray(eng["par"], dtype=float) - cal.par_dark) / 1000
        eng["par"] = par_volts / cal.par_scale_wet / PAR_CONVERSION
    for name in ("chl", "cdom", "bback"):
        if name in eng and not eng.is_empty(name):
            counts = np.asarray(eng[name], dtype=float)
            eng[name] = cal[f"{name}_scale"] * (counts - cal[f"{name}_dark"])

    eng.log_step("process_eng_sensors", "sensors processed")
    return eng


def _refractive_index(wavelength, degC, psu):
    # Ciddor (1996) air, Quan and Fry (1994) seawater
    n_air = 1.0 + (
        5792105.0 / (238.0185 - 1 / (wavelength / 1e3) ** 2)
        + 167917.0 / (57.362 - 1 / (wavelength / 1e3) ** 2)
    ) / 1e8
    n0, n1, n2, n3, n4 = 1.31405, 1.779e-4, -1.05e-6, 1.6e-8, -2.02e-6
    n5, n6, n7, n8, n9 = 15.868, 0.01155, -0.00423, -4382.0, 1.1455e6
    nsw = (
        n0
        + (n1 + n2 * degC + n3 * degC**2) * psu
        + n4 * degC**2
        + (n5 + n6 * psu + n7 * degC) / wavelength
        + n8 / wavelength**2
        + n9 / wavelength**3
    )
    dnds = (n1 + n2 * degC + n3 * degC**2 + n6 / wavelength) * n_air
    return nsw * n_air, dnds


def _isothermal_compressibility(degC, psu):
    # Lepple & Millero (1971) via the Millero (1980) secant bulk modulus [1/Pa]
    kw = (
        19652.21
        + 148.4206 * degC
        - 2.327105 * degC**2
        + 1.360477e-2 * degC**3
        - 5.155288e-5 * degC**4
    )
    a0 = 54.6746 - 0.603459 * degC + 1.09987e-2 * degC**2 - 6.167e-5 * degC**3
    b0 = 7.944e-2 + 1.6483e-2 * degC - 5.3009e-4 * degC**2
    ks = kw + a0 * psu + b0 * psu**1.5
    return 1 / ks * 1e-5


def _density_unesco(degC, psu):
    # UNESCO (1981) at zero pressure [kg/m^3]
    rho_w = (
        999.842594
        + 6.793952e-2 * degC
        - 9.09529e-3 * degC**2
        + 1.001685e-4 * degC**3
        - 1.120083e-6 * degC**4
        + 6.536332e-9 * degC**5
    )
    a = (
        8.24493e-1
        - 4.0899e-3 * degC
        + 7.6438e-5 * degC**2
        - 8.2467e-7 * degC**3
        + 5.3875e-9 * degC**4
    )
    b = -5.72466e-3 + 1.0227e-4 * degC - 1.6546e-6 * degC**2
    return rho_w + a * psu + b * psu**1.5 + 4.8314e-4 * psu**2


def seawater_scattering(degC, psu, theta, wavelength, delta=DEPOLARIZATION_RATIO):
    """
    Scattering of particle-free seawater (Zhang et al. 2009).

    Parameters
    ----------
    degC, psu : array-like
        Temperature [degC] and practical salinity.
    theta : float
        Scattering angle [degrees].
    wavelength : float
        [nm]
    delta : float, optional
        Depolarization ratio.

    Returns
    -------
    betasw : ndarray
        Volume scattering function at `theta` [1/(m sr)].
    bsw : ndarray
        Total scattering coefficient [1/m].
    """
    degC = np.asarray(degC, dtype=float)
    psu = np.asarray(psu, dtype=float)
    avogadro = 6.0221417930e23
    boltzmann = 1.3806503e-23
    water_molar_mass = 0.018  # kg/mol

    nsw, dnds = _refractive_index(wavelength, degC, psu)
    icomp = _isothermal_compressibility(degC, psu)
    rho = _density_unesco(degC, psu)

    # salinity derivative of the log water activity, Millero and Leung (1976)
    dlnawds = (
        (-5.58651e-4 + 2.40452e-7 * degC - 3.12165e-9 * degC**2 + 2.40808e-11 * degC**3)
        + 1.5
        * (1.79613e-5 - 9.9422e-8 * degC + 2.08919e-9 * degC**2 - 1.39872e-11 * degC**3)
        * psu**0.5
        + 2 * (-2.31065e-6 - 1.37674e-9 * degC - 1.93316e-11 * degC**2) * psu
    )
    # density derivative of the refractive index (PMH model)
    dfri = (nsw**2 - 1.0) * (
        1.0 + 2.0 / 3.0 * (nsw**2 + 2.0) * (nsw / 3.0 - 1.0 / 3.0 / nsw) ** 2
    )

    cabannes = (6.0 + 6.0 * delta) / (6.0 - 7.0 * delta)
    lam4 = (wavelength * 1e-9) ** -4
    beta_df = (
        np.pi**2 / 2.0 * lam4 * boltzmann * (degC + 273.15) * icomp * dfri**2 * cabannes
    )
    fluctuation = psu * water_molar_mass * dnds**2 / rho / -dlnawds / avogadro
    beta_cf = 2.0 * np.pi**2 * lam4 * nsw**2 * fluctuation * cabannes
    beta90sw = beta_df + beta_cf

    bsw = 8.0 * np.pi / 3.0 * beta90sw * (2.0 + delta) / (1.0 + delta)
    betasw = beta90sw * (
        1.0 + (1.0 - delta) / (1.0 + delta) * np.cos(np.deg2rad(theta)) ** 2
    )
    return betasw, bsw


def total_backscatter(beta, degC, psu, theta, wavelength, chi):
    """
    Total (seawater + particulate) backscattering coefficient [1/m] from the
    volume scattering function `beta` [1/(m sr)] measured at angle `theta`.
    """
    betasw, bsw = seawater_scattering(degC, psu, theta, wavelength)
    bbackp = chi * 2.0 * np.pi * (np.asarray(beta, dtype=float) - betasw)
    return bbackp + bsw / 2.0


def process_bback(eng, ctd_rec, cal):
    """
    Convert backscatter to the total backscattering coefficient.

    CTD temperature and salinity are interpolated onto the engineering
    pressures before the seawater contribution is computed.

    Parameters
    ----------
    eng : ProfileRecord
        Engineering record with ``bback`` [1/(m sr)] after
        `process_eng_sensors`, synced to the CTD.
    ctd_rec : ProfileRecord
        Processed CTD record with the same profile number.
    cal : Munch
        ``bback_scattering_angle`` [degrees], ``bback_wavelength`` [nm] and
        ``bback_chi_factor``.

    Returns
    -------
    ProfileRecord
    """
    if "bback" not in eng:
        eng.log_step("process_bback", "no bback data")
        return eng
    if (
        eng.is_empty("pressure")
        or eng.is_all_nan("pressure")
        or ctd_rec.is_empty("pressure")
        or ctd_rec.is_all_nan("pressure")
        or "salinity" not in ctd_rec
    ):
        eng["bback"] = np.full(np.shape(eng["bback"]), np.nan)
        eng.log_step("process_bback", "bback set to NaN")
        return eng

    check_coefs(
        cal, ["bback_scattering_angle", "bback_wavelength", "bback_chi_factor"]
    )
    good = ~np.isnan(ctd_rec.pressure)
    p, idx = np.unique(ctd_rec.pressure[good], return_index=True)
    t = np.asarray(ctd_rec["temperature"], dtype=float)[good][idx]
    s = np.asarray(ctd_rec["salinity"], dtype=float)[good][idx]
    t = np.interp(eng.pressure, p, t, left=np.nan, right=np.nan)
    s = np.interp(eng.pressure, p, s, left=np.nan, right=np.nan)

    eng["bback"] = total_backscatter(
        eng["bback"],
        t,
        s,
        cal.bback_scattering_angle,
        cal.bback_wavelength,
        cal.bback_chi_factor,
    )
    eng.log_step("process_bback", "bback processed")
    return eng


def _bin_deployment(dep, cfg):
    records = list(dep)
    pmin, width, pmax = binning.determine_binning_parameters(records, "pressure")
    dep.apply(
        binning.pressure_bin,
        pmin=pmin,
        width=width,
        pmax=pmax,
        statistic=cfg.bin_statistic,
        min_count=cfg.bin_min_count,
    )
    return pmin, width, pmax


def process_ctd_eng_deployment(ctd_dep, eng_dep, cfg, cal=None):
    """
    Run the CTD and engineering streams of a deployment to L2.

    Parameters
    ----------
    ctd_dep, eng_dep : Deployment
        Imported CTD and engineering records.
    cfg : Munch
        Processing configuration from `wfpcal.common.make_processing_config`.
    cal : Munch, optional
        Sensor calibrations: PAR and ECO triplet dark and scale values, the
        backscatter geometry and SBE 43F coefficients under ``sbe43f``. If
        omitted the auxiliary sensors are left in counts and oxygen is NaN.

    Returns
    -------
    dict
        L0, L1 and L2 products of both streams, keyed like "ctd_L1", and the
        processed CTD deployment under "ctd" for syncing the current meter.
    """
    short = cfg.short_profile
    products = {}

    for dep, stream in ((ctd_dep, "ctd"), (eng_dep, "eng")):
        fields.set_sensor_fields(dep, stream, "L0")
        dep.initialize_unselected()
        for rec in dep:
            rec.depth_offset = cfg.depth_offsets[stream]
        flagging.void_short_profiles(
            dep, "pressure", short[f"{stream}_nptsMin"], short[f"{stream}_prange_min"]
        )
        products[f"{stream}_L0"] = deployment.make_product("L0", dep, cfg)

    for rec in eng_dep:
        if rec.backtrack == "yes":
            flag_backtrack(rec, cfg.deployment.backtrack_processing_flag)
        if cal is not None:
            process_eng_sensors(rec, cal)
        rec.binning_parameters = cfg.binning_parameters.eng

    ctd_dep.apply(ctd.process_ctd, cfg=cfg)
    ctd_dep.apply(ctd.process_oxygen, cfg=cfg, cal=cal)
    for n in ctd_dep.selected:
        sync.sync_ctd_eng(ctd_dep[n], eng_dep[n])
        if cal is not None:
            process_bback(eng_dep[n], ctd_dep[n], cal)

    fields.set_sensor_fields(ctd_dep, "ctd", "L1")
    fields.set_sensor_fields(eng_dep, "eng", "L1")
    # the current meter syncs to the unmasked CTD record
    processed_ctd = ctd_dep.copy()

    for dep, stream in ((ctd_dep, "ctd"), (eng_dep, "eng")):
        dep.apply(flagging.nan_bad_sections)
        products[f"{stream}_L1"] = deployment.make_product("L1", dep, cfg)

    for dep, stream in ((ctd_dep, "ctd"), (eng_dep, "eng")):
        fields.set_sensor_fields(dep, stream, "L2")
        _bin_deployment(dep, cfg)
        products[f"{stream}_L2"] = deployment.make_product("L2", dep, cfg)

    products["ctd"] = processed_ctd
    log.info(f"CTD and engineering streams processed for {len(ctd_dep.selected)} profiles")
    return products
