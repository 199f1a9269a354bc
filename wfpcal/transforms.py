"""
Current meter coordinate transforms and motion corrections.

Velocities move from beam coordinates to instrument XYZ coordinates and then to
earth (East, North, Up) coordinates. The coastal current meter is a Nortek
AD2CP with four slanted beams, three of which are used on any one profile; the
global current meter is an FSI 3D-MP with four beams in two orthogonal pairs.

Every stage leaves a record untouched, apart from its logs, when the record has
no heading data.
"""
import logging

import numpy as np
from scipy.interpolate import CubicSpline

from wfpcal.filters import sbe_filter
from wfpcal.profile import Direction

log = logging.getLogger(__name__)

NO_ACTION = "[]: no action taken"

# AD2CP beam zenith angles [degrees]
ANGLE_BEAMS_2_4 = 25.0
ANGLE_BEAMS_1_3 = 47.5

ASCENDING_BEAMS = (1, 2, 4)
DESCENDING_BEAMS = (2, 3, 4)

# ratio converting the wag velocity at the wag radius into the along-beam frame
COASTAL_WAG_RATIO = np.sin(np.deg2rad(5.0)) / np.sin(np.deg2rad(25.0))
GLOBAL_WAG_RATIO = 1.0


def _no_heading(rec, step, status=NO_ACTION):
    if rec.is_empty("heading"):
        rec.log_step(step, status)
        return True
    return False


def get_beam_mapping(rec):
    """
    Active beams of the coastal current meter for a profile.

    An explicit mapping from import takes precedence; otherwise the mapping
    follows the profile direction. Returns None when neither is known.
    """
    if rec.beam_mapping is not None:
        mapping = tuple(int(b) for b in rec.beam_mapping)
        if mapping in (ASCENDING_BEAMS, DESCENDING_BEAMS):
            return mapping
        return None
    if rec.profile_direction == Direction.ASCENDING:
        return ASCENDING_BEAMS
    if rec.profile_direction == Direction.DESCENDING:
        return DESCENDING_BEAMS
    return None


def beam_to_xyz_coastal(rec):
    """
    Transform AD2CP beam velocities to XYZ velocities.

    X is along the profiler's vertical axis pointing up, Y is horizontal, and
    Z is the horizontal axis of the vertical beam. X and Y come from beams 2
    and 4, Z also uses the third active beam (1 going up, 3 going down).

    Parameters
    ----------
    rec : ProfileRecord
        Record with a (N, 4) ``velBeam`` field [m/s].

    Returns
    -------
    ProfileRecord
    """
    if _no_heading(rec, "beam_to_xyz_coastal", "beam2XYZ not applied"):
        return rec

    ca = np.cos(np.deg2rad(ANGLE_BEAMS_2_4))
    sa = np.sin(np.deg2rad(ANGLE_BEAMS_2_4))
    cb = np.cos(np.deg2rad(ANGLE_BEAMS_1_3))
    sb = np.sin(np.deg2rad(ANGLE_BEAMS_1_3))
    qq = cb / sb / ca / 2.0

    vel = np.asarray(rec["velBeam"], dtype=float)
    b1, b2, b3, b4 = (vel[:, j] for j in range(4))

    vx = (b2 + b4) / (2.0 * ca)
    vy = (b2 - b4) / (2.0 * sa)

    mapping = get_beam_mapping(rec)
    if mapping == DESCENDING_BEAMS:
        vz = qq * b2 - b3 / sb + qq * b4
    elif mapping == ASCENDING_BEAMS:
        vz = b1 / sb - qq * b2 - qq * b4
    else:
        log.warning(
            f"acm({rec.profile_number}): beam mapping unknown for direction "
            f"'{rec.profile_direction.value}'; velZ set to NaN"
        )
        vz = np.full(vx.shape, np.nan)

    rec["velXYZ"] = np.column_stack((vx, vy, vz))
    rec.log_step("beam_to_xyz_coastal", "beam2XYZ transformation applied")
    return rec


def beam_to_xyz_global(rec):
    """
    Transform FSI 3D-MP beam velocities [cm/s] to XYZ velocities [m/s].
    """
    if _no_heading(rec, "beam_to_xyz_global", "beam2XYZ not applied"):
        return rec

    vel = np.asarray(rec["velBeam"], dtype=float)
    sqrt2 = np.sqrt(2.0)
    vx = (-vel[:, 0] - vel[:, 2]) / sqrt2 / 100
    vy = (vel[:, 0] - vel[:, 2]) / sqrt2 / 100
    if rec.profile_direction == Direction.ASCENDING:
        vz = vx - sqrt2 * vel[:, 3] / 100
    elif rec.profile_direction == Direction.DESCENDING:
        vz = -vx + sqrt2 * vel[:, 1] / 100
    else:
        log.warning(
            f"acm({rec.profile_number}) was neither ascending nor descending; "
            "velZ set to NaN"
        )
        vz = np.full(vx.shape, np.nan)

    rec["velXYZ"] = np.column_stack((vx, vy, vz))
    rec.log_step("beam_to_xyz_global", "beam2XYZ transformation applied")
    return rec


def wag_velocity(rec, wag_radius, geometry_ratio=1.0, correct=False):
    """
    Velocity induced by the profiler rotating ("wagging") about the cable.

    Parameters
    ----------
    rec : ProfileRecord
    wag_radius : float
        Distance from the cable to the sensing volume [m].
    geometry_ratio : float, optional
        Projection factor of the sensor geometry.
    correct : bool, optional
        Subtract the wag signal from velY.

    Returns
    -------
    ProfileRecord
        With ``wag_signal`` [m/s] set in every case.
    """
    if _no_heading(rec, "wag_velocity"):
        return rec

    heading = np.unwrap(np.deg2rad(np.asarray(rec["heading"], dtype=float)))
    if heading.size < 2:
        dh_dt = np.full(heading.shape, np.nan)
    else:
        dh = np.diff(heading)
        dha = np.concatenate(([dh[0]], dh))
        dhb = np.concatenate((dh, [dh[-1]]))
        dh_dt = (dha + dhb) * rec.acquisition_rate / 2.0  # [rad/s]

    wag = wag_radius * dh_dt * geometry_ratio
    rec["wag_signal"] = wag

    if correct:
        vel = np.array(rec["velXYZ"], dtype=float)
        vel[:, 1] = vel[:, 1] - wag
        rec["velXYZ"] = vel
        rec.log_step("wag_velocity", "wag correction applied")
    else:
        rec.log_step("wag_velocity", "wag correction NOT applied")
    return rec


def rotation_matrix(heading, pitch, roll):
    """
    XYZ to ENU rotation for a single heading, pitch and roll [degrees].

    Heading is rotated by -90 degrees to account for the XYZ frame of the
    coastal current meter.

    Returns
    -------
    ndarray
        (3, 3) matrix ``H @ P @ R``.
    """
    h = np.deg2rad(heading - 90.0)
    p = np.deg2rad(pitch)
    r = np.deg2rad(roll)
    ch, sh = np.cos(h), np.sin(h)
    cp, sp = np.cos(p), np.sin(p)
    cr, sr = np.cos(r), np.sin(r)
    H = np.array([[ch, sh, 0], [-sh, ch, 0], [0, 0, 1]])
    P = np.array([[cp, 0, -sp], [0, 1, 0], [sp, 0, cp]])
    R = np.array([[1, 0, 0], [0, cr, -sr], [0, sr, cr]])
    return H @ P @ R


def _declination_rotation(vel_u, vel_v, declination):
    d = np.deg2rad(declination)
    east = np.cos(d) * vel_u + np.sin(d) * vel_v
    north = -np.sin(d) * vel_u + np.cos(d) * vel_v
    return east, north


def correct_velocity_for_dpdt(rec, vel_up, correct=True):
    """
    Remove profiler vertical motion from the vertical velocity.

    Returns
    -------
    vel_up : ndarray
        Corrected (or unchanged) vertical velocity.
    status : str
    """
    if rec.is_all_nan("dpdt"):
        log.warning(
            f"velU for acm profile {rec.profile_number} cannot be corrected for dP/dt"
        )
        return vel_up, "velU cannot be corrected"
    if correct:
        return vel_up - rec.dpdt, "velU corrected for dp/dt"
    return vel_up, "velU not corrected"


def xyz_to_enu_coastal(
    rec, magnetic_declination=0.0, correct_pitch_and_roll=True, correct_dpdt=True
):
    """
    Rotate coastal XYZ velocities to East, North, Up.

    Parameters
    ----------
    rec : ProfileRecord
        Record with heading, pitch, roll [degrees] and (N, 3) velXYZ [m/s].
    magnetic_declination : float, optional
        [degrees], positive east.
    correct_pitch_and_roll : bool, optional
        Use the measured pitch and roll; if False they are taken as zero.
    correct_dpdt : bool, optional
        Subtract dP/dt from the vertical velocity.

    Returns
    -------
    ProfileRecord
    """
    if _no_heading(rec, "xyz_to_enu_coastal"):
        return rec

    switch = 1.0 if correct_pitch_and_roll else 0.0
    pitch = np.deg2rad(np.asarray(rec["pitch"], dtype=float) * switch)
    roll = np.deg2rad(np.asarray(rec["roll"], dtype=float) * switch)
    heading = np.deg2rad(np.asarray(rec["heading"], dtype=float) - 90.0)
    cp, sp = np.cos(pitch), np.sin(pitch)
    cr, sr = np.cos(roll), np.sin(roll)
    ch, sh = np.cos(heading), np.sin(heading)

    vel = np.asarray(rec["velXYZ"], dtype=float)
    vx, vy, vz = vel[:, 0], vel[:, 1], vel[:, 2]

    vel_u = vx * ch * cp + vy * (sh * cr - ch * sp * sr) - vz * (sh * sr + ch * sp * cr)
    vel_v = -vx * sh * cp + vy * (ch * cr + sh * sp * sr) + vz * (-ch * sr + sh * sp * cr)
    vel_w = vx * sp + vy * cp * sr + vz * cp * cr

    east, north = _declination_rotation(vel_u, vel_v, magnetic_declination)

    if correct_pitch_and_roll:
        pr_status = "corrected for pitch and roll; "
    else:
        pr_status = "NOT corrected for pitch and roll; "
    up, status = correct_velocity_for_dpdt(rec, vel_w, correct_dpdt)

    rec["velENU"] = np.column_stack((east, north, up))
    rec.log_step("xyz_to_enu_coastal", pr_status + status)
    return rec


def xyz_to_enu_global(rec, magnetic_declination=0.0, correct_dpdt=True):
    """
    Rotate global XYZ velocities to East, North, Up using the horizontal
    speed and direction.
    """
    if _no_heading(rec, "xyz_to_enu_global"):
        return rec

    vel = np.asarray(rec["velXYZ"], dtype=float)
    heading = np.asarray(rec["heading"], dtype=float)
    speed = np.hypot(vel[:, 0], vel[:, 1])
    theta = (
        np.rad2deg(np.arctan2(vel[:, 1], vel[:, 0]))
        + (90.0 - heading)
        - magnetic_declination
    )
    east = speed * np.cos(np.deg2rad(theta))
    north = speed * np.sin(np.deg2rad(theta))

    up, status = correct_velocity_for_dpdt(rec, vel[:, 2], correct_dpdt)

    rec["velENU"] = np.column_stack((east, north, up))
    rec.log_step("xyz_to_enu_global", status)
    return rec


def nan_extreme_tilt(rec, threshold=10.0):
    """NaN velENU rows where the total tilt exceeds `threshold` degrees."""
    if _no_heading(rec, "nan_extreme_tilt"):
        return rec

    tx = np.asarray(rec["TX"], dtype=float)
    ty = np.asarray(rec["TY"], dtype=float)
    tilt = np.sqrt(tx * tx + ty * ty)
    vel = np.array(rec["velENU"], dtype=float)
    vel[tilt > threshold, :] = np.nan
    rec["velENU"] = vel
    rec.log_step("nan_extreme_tilt", "extreme tilt velENU NaN'd")
    return rec


def interpolate_hpr(rec):
    """
    Fill repeated heading, pitch and roll samples by spline interpolation.

    The AD2CP updates its attitude at 1 Hz but reports it at the velocity
    sample rate, so each attitude value repeats. The update stride is the
    smallest spacing between heading changes.
    """
    if _no_heading(rec, "interpolate_hpr"):
        return rec

    hdg = np.asarray(rec["heading"], dtype=float)
    npts = hdg.size
    idx_diffs = np.flatnonzero(np.diff(hdg))
    if idx_diffs.size < 2:
        rec.log_step("interpolate_hpr", "h,p,r not interpolated")
        return rec

    stride = int(np.min(np.diff(idx_diffs)))
    first = (idx_diffs[0] + 1) % stride
    idx_updates = np.arange(first, npts, stride)
    idx_fills = np.setdiff1d(np.arange(npts), idx_updates)
    if idx_fills.size == 0 or idx_updates.size < 2:
        rec.log_step("interpolate_hpr", "h,p,r not interpolated")
        return rec

    hdg = np.unwrap(np.deg2rad(hdg))
    hdg[idx_fills] = CubicSpline(idx_updates, hdg[idx_updates])(idx_fills)
    rec["heading"] = np.mod(np.rad2deg(hdg), 360)

    for name in ("pitch", "roll"):
        values = np.array(rec[name], dtype=float)
        values[idx_fills] = CubicSpline(idx_updates, values[idx_updates])(idx_fills)
        rec[name] = values

    rec.log_step("interpolate_hpr", "h,p,r interpolated")
    return rec


def correct_phase_ambiguity(rec, ambiguity_velocity, correct=False, nwraps=5):
    """
    Unwrap vertical-beam velocities beyond the ambiguity velocity.

    Points beyond ``(j - 0.25) * ambiguity_velocity`` are shifted by
    ``j * ambiguity_velocity`` toward zero, for j from `nwraps` down to 1.

    Parameters
    ----------
    rec : ProfileRecord
    ambiguity_velocity : float
        [m/s]
    correct : bool, optional
        Replace the vertical beam velocities with the unwrapped ones.
    nwraps : int, optional

    Returns
    -------
    ProfileRecord
        With ``ambiguous_points`` set to an (M, 2) array of time and original
        velocity at every flagged point.
    """
    if _no_heading(rec, "correct_phase_ambiguity"):
        return rec

    mapping = get_beam_mapping(rec)
    if mapping is None:
        log.warning(
            f"acm({rec.profile_number}): no beam mapping, phase ambiguity not checked"
        )
        rec.ambiguous_points = np.zeros((0, 2))
        rec.log_step("correct_phase_ambiguity", "phase ambiguity NOT corrected")
        return rec

    bvert = (set(mapping) - {2, 4}).pop() - 1
    vel = np.array(rec["velBeam"], dtype=float)
    raw = vel[:, bvert].copy()
    flagged = np.zeros(raw.shape, dtype=bool)
    for jj in range(nwraps, 0, -1):
        ii = jj - 0.25
        lo = raw < -ii * ambiguity_velocity
        raw[lo] = raw[lo] + jj * ambiguity_velocity
        hi = raw > ii * ambiguity_velocity
        raw[hi] = raw[hi] - jj * ambiguity_velocity
        flagged |= lo | hi

    rec.ambiguous_points = np.column_stack((rec.time[flagged], vel[flagged, bvert]))
    if correct:
        vel[:, bvert] = raw
        rec["velBeam"] = vel
        rec.log_step("correct_phase_ambiguity", "phase ambiguity correction applied")
    else:
        rec.log_step("correct_phase_ambiguity", "phase ambiguity NOT corrected")
    return rec


SMOOTHED_FIELDS = (
    "heading", "TX", "TY", "magnetometer", "velBeam", "velXYZ", "velENU", "wag_signal",
)


def smooth_acm(rec, time_constant):
    """
    Low-pass filter the global current meter fields.

    Heading is unwrapped before filtering and returned in [0, 360).
    """
    if _no_heading(rec, "smooth_acm"):
        return rec

    rate = round(rec.acquisition_rate)
    for name in SMOOTHED_FIELDS:
        if rec.is_empty(name):
            continue
        values = np.asarray(rec[name], dtype=float)
        if name == "heading":
            values = np.unwrap(np.deg2rad(values))
            values = np.mod(np.rad2deg(sbe_filter(values, rate, time_constant)), 360)
        else:
            values = sbe_filter(values, rate, time_constant)
        rec[name] = values

    rec.log_step("smooth_acm", "data smoothed")
    return rec
