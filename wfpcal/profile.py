"""
Profile data containers.

A ProfileRecord holds the data of one instrument stream for one profile,
and a Deployment holds the records of one stream for every profile of a
deployment, numbered from 1.
"""
import copy
import logging
from enum import Enum

import numpy as np

log = logging.getLogger(__name__)

# fields stored as attributes rather than in the channel dictionary
CORE_FIELDS = ("time", "pressure", "dpdt")


class Direction(str, Enum):
    """Profiling direction of the profiler"""

    ASCENDING = "ascending"
    DESCENDING = "descending"
    STATIONARY = "stationary"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value):
        """Convert a string (any case) or Direction to a Direction."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN


def _as_float_array(values):
    if values is None:
        return np.array([], dtype=float)
    return np.asarray(values, dtype=float)


class ProfileRecord(object):
    """
    Data container for a single profile of a single instrument stream.

    Channels are addressed by name with item access, e.g. ``rec["heading"]``.
    ``time``, ``pressure`` and ``dpdt`` are also plain attributes.

    Attributes
    ----------
    profile_number : int
        Profile identifier, 1-based and stable within a deployment.
    instrument : str
        Stream tag ("ctd", "eng" or "acm").
    time : ndarray
        POSIX timestamps [s].
    pressure : ndarray
        Pressure [dbar]; empty until synchronized for secondary streams.
    dpdt : ndarray
        Time derivative of pressure [dbar/s].
    data : dict
        Instrument channels keyed by name; 1-D (N,) or 2-D (N, k) arrays.
    profile_mask : ndarray of bool
        True where a sample is retained.
    profile_direction : Direction
    sensor_fields : tuple of str
        Channels acted on by generic operations (masking, binning, stacking).
    code_history : list of str
        Processing steps applied, in order.
    data_status : list of str
        Outcome of each step, parallel to code_history.
    """

    def __init__(
        self,
        profile_number,
        instrument,
        time=None,
        pressure=None,
        dpdt=None,
        data=None,
        profile_mask=None,
        profile_direction=Direction.UNKNOWN,
        acquisition_rate=None,
        depth_offset=0.0,
    ):
        if int(profile_number) <= 0:
            raise ValueError(f"Profile numbers start at 1, got {profile_number}")
        self.profile_number = int(profile_number)
        self.instrument = instrument
        self.time = _as_float_array(time)
        self.pressure = _as_float_array(pressure)
        self.dpdt = _as_float_array(dpdt)
        self.data = {}
        for name, values in (data or {}).items():
            self.data[name] = np.asarray(values)
        if profile_mask is None:
            profile_mask = np.ones(self.time.shape, dtype=bool)
        self.profile_mask = np.asarray(profile_mask, dtype=bool)
        self.profile_direction = Direction.parse(profile_direction)
        self.profile_date = np.nan
        self.backtrack = ""
        self._acquisition_rate = acquisition_rate
        self.depth_offset = depth_offset
        self.beam_mapping = None
        self.ambiguous_points = None
        self.binning_parameters = None
        self.pressure_bin_values = None
        self.sensor_fields = ()
        self.code_history = []
        self.data_status = []

    def __repr__(self):
        return (
            f"ProfileRecord({self.instrument!r}, profile_number={self.profile_number}, "
            f"npts={len(self.time)}, direction={self.profile_direction.value!r})"
        )

    # channel access
    def __getitem__(self, name):
        if name in CORE_FIELDS:
            return getattr(self, name)
        return self.data[name]

    def __setitem__(self, name, values):
        if name in CORE_FIELDS:
            setattr(self, name, _as_float_array(values))
        else:
            self.data[name] = np.asarray(values)

    def __contains__(self, name):
        return name in CORE_FIELDS or name in self.data

    def get(self, name, default=None):
        if name in self:
            return self[name]
        return default

    def field_names(self):
        """All field names: core fields followed by channels."""
        return list(CORE_FIELDS) + list(self.data.keys())

    @property
    def acquisition_rate(self):
        """
        Data acquisition rate [Hz].

        Calculated from the time record as (N - 1) / (t[-1] - t[0]) unless it
        was supplied explicitly.
        """
        if self._acquisition_rate is not None:
            return self._acquisition_rate
        t = self.time[np.isfinite(self.time)] if self.time.size else self.time
        if t.size < 2 or t[-1] == t[0]:
            return np.nan
        return (t.size - 1) / (t[-1] - t[0])

    @acquisition_rate.setter
    def acquisition_rate(self, value):
        self._acquisition_rate = value

    # provenance
    def log_step(self, step, status):
        """Append a processing step and its outcome to the paired logs."""
        self.code_history.append(step)
        self.data_status.append(status)

    # emptiness checks used to short-circuit stages
    def is_empty(self, name):
        values = self.get(name)
        return values is None or np.size(values) == 0

    def is_all_nan(self, name):
        values = self.get(name)
        if values is None or np.size(values) == 0:
            return True
        return bool(np.all(np.isnan(np.asarray(values, dtype=float))))

    def void_fields(self, names):
        """
        Replace fields with empty arrays, keeping the trailing dimension of
        2-D fields so that later stacking still knows their width.
        """
        for name in names:
            if name not in self:
                continue
            values = np.asarray(self[name])
            if values.ndim == 2:
                self[name] = np.zeros((0, values.shape[1]))
            else:
                self[name] = np.array([], dtype=float)

    def nan_fields(self, names, npts):
        """Replace fields with NaN arrays of length npts."""
        for name in names:
            if name not in self:
                continue
            values = np.asarray(self[name])
            if values.ndim == 2:
                self[name] = np.full((npts, values.shape[1]), np.nan)
            else:
                self[name] = np.full(npts, np.nan)

    def copy(self):
        return copy.deepcopy(self)


class Deployment(object):
    """
    Ordered collection of the profile records of one instrument stream.

    Profiles are numbered 1..number_of_profiles. Only the selected profiles
    are visited by iteration and by `apply`; the others are placeholders.

    Parameters
    ----------
    instrument : str
        Stream tag shared by every record.
    number_of_profiles : int
        Number of profiles in the deployment.
    selected : list of int, optional
        Profile numbers selected for processing; default all.
    """

    def __init__(self, instrument, number_of_profiles, selected=None):
        self.instrument = instrument
        self.number_of_profiles = int(number_of_profiles)
        self.records = {
            n: ProfileRecord(n, instrument)
            for n in range(1, self.number_of_profiles + 1)
        }
        if selected is None:
            selected = range(1, self.number_of_profiles + 1)
        self.selected = [int(n) for n in selected]

    def __repr__(self):
        return (
            f"Deployment({self.instrument!r}, number_of_profiles={self.number_of_profiles}, "
            f"selected={len(self.selected)})"
        )

    def __len__(self):
        return self.number_of_profiles

    def __getitem__(self, profile_number):
        return self.records[profile_number]

    def __setitem__(self, profile_number, record):
        if record.profile_number != profile_number:
            raise ValueError(
                f"Cannot store profile {record.profile_number} at position {profile_number}"
            )
        self.records[profile_number] = record

    def __iter__(self):
        for n in self.selected:
            yield self.records[n]

    def all_records(self):
        """Every record in profile-number order, selected or not."""
        return [self.records[n] for n in sorted(self.records)]

    def apply(self, func, *others, **kwargs):
        """
        Run a per-profile stage over the selected profiles.

        Parameters
        ----------
        func : callable
            Called as ``func(record, *paired_records, **kwargs)`` and must
            return the (possibly new) record.
        others : Deployment
            Deployments whose records with the same profile number are passed
            as additional positional arguments.
        """
        for n in self.selected:
            paired = [other[n] for other in others]
            self.records[n] = func(self.records[n], *paired, **kwargs)
        return self

    def initialize_unselected(self, sensor_fields=None):
        """
        Give placeholder records of unselected profiles a status and empty
        sensor fields shaped like those of the selected profiles.
        """
        selected = set(self.selected)
        template = next(iter(self), None)
        if sensor_fields is None and template is not None:
            sensor_fields = template.sensor_fields
        sensor_fields = tuple(sensor_fields or ())
        for n, record in self.records.items():
            if n in selected:
                continue
            record.code_history = ["initialize_unselected"]
            record.data_status = ["not selected for import"]
            record.sensor_fields = sensor_fields
            for name in sensor_fields:
                if template is not None and name in template:
                    record[name] = template[name]
            record.void_fields(sensor_fields)
        return self

    def copy(self):
        return copy.deepcopy(self)
