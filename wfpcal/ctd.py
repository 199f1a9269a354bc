"""
CTD (Sea-Bird SBE 52-MP) profile processing.

The CTD is the primary stream: its pressure, profile mask and direction are
carried to the other instruments by `wfpcal.sync`.
"""
import logging

import gsw
import numpy as np

from wfpcal import filters
from wfpcal.common import check_coefs
from wfpcal.profile import Direction
from wfpcal.sync import centered_dpdt

log = logging.getLogger(__name__)


def speed_mask(pressure, acquisition_rate, min_speed, window):
    """
    Mark samples taken while the profiler moved steadily.

    The profiler speed is taken along the profile direction (from the order of
    the pressure minimum and maximum). A sample is kept when every sample in
    the centered `window` moved faster than `min_speed`.

    Parameters
    ----------
    pressure : array-like
        [dbar]
    acquisition_rate : float
        [Hz]
    min_speed : float
        [dbar/s]
    window : int
        Number of samples.

    Returns
    -------
    ndarray of bool
    """
    pressure = np.asarray(pressure, dtype=float)
    if pressure.size == 0:
        return np.zeros(0, dtype=bool)
    sense = np.sign(np.nanargmax(pressure) - np.nanargmin(pressure))
    speed = sense * np.concatenate((np.diff(pressure), [0.0])) * acquisition_rate
    fast = (speed > min_speed).astype(float)
    # centered moving sum, shrinking at the ends
    kernel = np.ones(int(window))
    moving_sum = np.convolve(fast, kernel, mode="same")
    return moving_sum == window


def profile_direction(pressure, stationary_range=5.0):
    """
    Direction of a profile from its pressure record.

    Profiles spanning no more than `stationary_range` dbar are stationary.
    """
    pressure = np.asarray(pressure, dtype=float)
    if pressure.size == 0 or np.all(np.isnan(pressure)):
        return Direction.UNKNOWN
    idxmin, idxmax = np.nanargmin(pressure), np.nanargmax(pressure)
    if pressure[idxmax] - pressure[idxmin] <= stationary_range:
        return Direction.STATIONARY
    if idxmax > idxmin:
        return Direction.DESCENDING
    return Direction.ASCENDING


def process_ctd(rec, cfg):
    """
    Filter, align and derive CTD quantities for one profile.

    Parameters
    ----------
    rec : ProfileRecord
        CTD record with conductivity [mS/cm], temperature [degC] and pressure
        [dbar].
    cfg : Munch
        Processing configuration.

    Returns
    -------
    ProfileRecord
    """
    # voided profiles are still binned, to NaN
    rec.binning_parameters = cfg.binning_parameters.ctd
    if rec.pressure.size < 3:
        rec.log_step("process_ctd", "CTD not processed")
        return rec

    params = cfg.ctd_processing
    rate = cfg.ctd_acquisition_rate_Hz

    c = filters.sbe_filter(
        rec["conductivity"], rate, params.conductivity_filter_time_constant_sec
    )
    t = filters.sbe_filter(
        rec["temperature"], rate, params.temperature_filter_time_constant_sec
    )
    p = filters.sbe_filter(rec.pressure, rate, params.pressure_filter_time_constant_sec)

    c = filters.shift(c, params.conductivity_shift_sec * rate)
    p = filters.shift(p, params.pressure_shift_sec * rate)

    c = filters.thermal_mass_correction(
        c, t, rate, params.thermal_mass_alpha, params.thermal_mass_inverse_beta
    )

    rec["conductivity"] = c
    rec["temperature"] = t
    rec.pressure = p + rec.depth_offset
    rec.dpdt = centered_dpdt(rec.pressure, rec.acquisition_rate)

    lon = cfg.deployment.longitude
    lat = cfg.deployment.latitude
    SP = gsw.SP_from_C(c, t, rec.pressure)
    SA = gsw.SA_from_SP(SP, rec.pressure, lon, lat)
    CT = gsw.CT_from_t(SA, t, rec.pressure)
    rec["salinity"] = SP
    rec["theta"] = gsw.pt0_from_t(SA, t, rec.pressure)
    rec["sigma_theta"] = gsw.sigma0(SA, CT)

    rec.profile_mask = speed_mask(
        rec.pressure,
        rec.acquisition_rate,
        params.ctd_speedMin_db_per_sec,
        params.ctd_speedWindow_npts,
    )
    rec.profile_direction = profile_direction(
        rec.pressure, params.stationary_prange_max
    )
    if np.isnan(rec.profile_date) and rec.time.size:
        rec.profile_date = float(np.nanmedian(rec.time))

    log.info(
        f"ctd({rec.profile_number}) processed: {rec.profile_direction.value}, "
        f"{int(rec.profile_mask.sum())} of {rec.profile_mask.size} samples kept"
    )
    rec.log_step("process_ctd", "CTD processed")
    return rec


def oxy_ml_to_umolkg(oxy_mL_L, sigma0):
    """Convert dissolved oxygen from mL/L to umol/kg (Sea-Bird Application Note 64)."""
    return oxy_mL_L * 44660 / (sigma0 + 1000)


def oxy_umolkg_to_ml(oxy_umol_kg, sigma0):
    """Convert dissolved oxygen from umol/kg to mL/L."""
    return oxy_umol_kg * (sigma0 + 1000) / 44660


def sbe43f(freq, p, t, SP, sigma0, coefs, lon=0.0, lat=0.0):
    """
    SBE equation for converting SBE 43F frequency to oxygen.

    Parameters
    ----------
    freq : array-like
        Raw oxygen frequency [Hz]
    p : array-like
        Pressure (dbar)
    t : array-like
        Temperature (Celsius)
    SP : array-like
        Practical salinity
    sigma0 : array-like
        Potential density anomaly (kg/m^3)
    coefs : dict
        Calibration coefficients (Soc, Foffset, A, B, C, E). Soc is the
        Sea-Bird adjusted value.
    lon, lat : float, optional
        Position (decimal degrees)

    Returns
    -------
    oxy_umol_kg : array-like
        Converted oxygen (umol/kg)
    """
    check_coefs(coefs, ["Soc", "Foffset", "A", "B", "C", "E"])
    t = np.asarray(t, dtype=float)
    p = np.asarray(p, dtype=float)

    SA = gsw.SA_from_SP(SP, p, lon, lat)
    CT = gsw.CT_from_t(SA, t, p)
    o2sol_ml_l = oxy_umolkg_to_ml(gsw.O2sol(SA, CT, p, lon, lat), sigma0)

    oxy_ml_l = (
        coefs["Soc"]
        * (np.asarray(freq, dtype=float) + coefs["Foffset"])
        * (1.0 + t * (coefs["A"] + t * (coefs["B"] + t * coefs["C"])))
        * o2sol_ml_l
        * np.exp(coefs["E"] * p / (t + 273.15))
    )
    return oxy_ml_to_umolkg(oxy_ml_l, sigma0)


def process_oxygen(rec, cfg, cal=None):
    """
    Filter, align and convert the SBE 43F oxygen channel of a processed CTD
    profile to umol/kg.

    Without an ``sbe43f`` calibration the oxygen channel is set to NaN.

    Parameters
    ----------
    rec : ProfileRecord
        CTD record after `process_ctd`.
    cfg : Munch
        Processing configuration.
    cal : Munch, optional
        Calibrations, with SBE 43F coefficients under ``sbe43f``.

    Returns
    -------
    ProfileRecord
    """
    if rec.is_empty("pressure") or rec.is_empty("oxygen") or "sigma_theta" not in rec:
        rec.log_step("process_oxygen", "oxygen not processed")
        return rec

    if cal is None or "sbe43f" not in cal:
        log.warning(f"ctd({rec.profile_number}): no SBE43F calibration, oxygen set to NaN")
        rec["oxygen"] = np.full(np.shape(rec["oxygen"]), np.nan)
        rec.log_step("process_oxygen", "oxygen set to NaN")
        return rec

    params = cfg.ctd_processing
    rate = cfg.ctd_acquisition_rate_Hz
    freq = filters.sbe_filter(
        rec["oxygen"], rate, params.oxygen_filter_time_constant_sec
    )
    freq = filters.shift(freq, params.oxygen_shift_sec * rate)

    rec["oxygen"] = sbe43f(
        freq,
        rec.pressure,
        rec["temperature"],
        rec["salinity"],
        rec["sigma_theta"],
        cal.sbe43f,
        lon=cfg.deployment.longitude,
        lat=cfg.deployment.latitude,
    )
    rec.log_step("process_oxygen", "oxygen processed [umol/kg]")
    return rec
