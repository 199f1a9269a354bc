# default processing configuration
# values here are overridden per deployment by the user YAML metadata file
# (see wfpcal.common.make_processing_config)

# List of directories for I/O purposes
dirs = {
    "raw": "data/raw/",
    "imported": "data/imported/",
    "processed": "data/processed/",
    "logs": "data/logs/",
}

# Supported current meter families
acm_types = ("coastal", "global")

# Deployment metadata defaults
deployment = dict(
    deployment_ID="",
    number_of_profiles=0,
    profiles_to_process=[],  # empty -> all profiles
    latitude=0.0,
    longitude=0.0,
    acm_type="coastal",
    backtrack_processing_flag=3,
)

# Acquisition rates [Hz]
ctd_acquisition_rate_Hz = 1.0

# Instrument depth offsets relative to the CTD pressure sensor [dbar]
depth_offsets = dict(
    ctd=0.0,
    eng=0.0,
    acm=0.0,
    fluorometer=0.0,
    par=0.0,
)

# Short-profile rejection thresholds; -1 disables a criterion
short_profile = dict(
    ctd_nptsMin=60,
    ctd_prange_min=5.0,
    eng_nptsMin=15,
    eng_prange_min=5.0,
    acm_nptsMin=60,
    acm_range_min=-1,
)

# CTD processing (SBE52) constants
ctd_processing = dict(
    conductivity_filter_time_constant_sec=0.0,
    temperature_filter_time_constant_sec=0.0,
    pressure_filter_time_constant_sec=4.0,
    conductivity_shift_sec=0.0,
    pressure_shift_sec=0.0,
    oxygen_filter_time_constant_sec=0.0,
    oxygen_shift_sec=0.0,
    thermal_mass_alpha=0.04,
    thermal_mass_inverse_beta=8.0,
    ctd_speedWindow_npts=15,
    ctd_speedMin_db_per_sec=0.05,
    stationary_prange_max=5.0,
)

# Current meter processing constants and switches
acm_processing = dict(
    wag_radius_m=0.43,
    magnetic_declination_deg=0.0,
    ambiguity_velocity_m_per_sec=1.0,
    acm_filter_time_constant_sec=12.0,
    correct_velBeam_for_phase_ambiguity=False,
    correct_velY_for_wag=False,
    correct_velXYZ_for_pitch_and_roll=True,
    correct_velU_for_dpdt=True,
)

# Pressure binning: either a bin width, or [min center, width, max center]
binning_parameters = dict(
    ctd=[10.0, 1.0, 2000.0],
    eng=[10.0, 1.0, 2000.0],
    acm=[10.0, 5.0, 2000.0],
)
bin_statistic = "mean"  # "mean" or "median"
bin_min_count = 1

# Synchronizer settings
sync_min_points = 10

# Extreme tilt threshold for the global current meter [degrees]
extreme_tilt_deg = 10.0
