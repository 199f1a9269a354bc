import logging

import numpy as np
import pytest

from wfpcal import flagging
from wfpcal.profile import ProfileRecord


def make_record(number=1, n=100, prange=(10.0, 110.0)):
    rec = ProfileRecord(
        number,
        "ctd",
        time=np.arange(n, dtype=float),
        pressure=np.linspace(*prange, n),
        data={"temperature": np.full(n, 10.0), "velENU": np.ones((n, 3))},
    )
    rec.sensor_fields = ("time", "pressure", "temperature", "velENU")
    return rec


class TestVoidShortProfiles:
    @pytest.mark.parametrize("n, voided", [(60, True), (61, False), (59, True)])
    def test_npts_boundary(self, n, voided):
        rec = make_record(n=n)
        result = flagging.void_short_profiles([rec], "pressure", 60, -1)
        assert (result == [1]) is voided
        assert (rec.pressure.size == 0) is voided
        expected = "all data set to empty" if voided else "no change"
        assert rec.data_status[-1] == expected

    def test_range(self):
        narrow = make_record(number=1, prange=(10.0, 14.0))
        wide = make_record(number=2, prange=(10.0, 16.0))
        voided = flagging.void_short_profiles([narrow, wide], "pressure", -1, 5.0)
        assert voided == [1]
        assert narrow["velENU"].shape == (0, 3)
        assert narrow["temperature"].shape == (0,)
        assert wide.pressure.size == 100

    def test_range_disabled(self):
        rec = make_record(prange=(10.0, 10.0))
        assert flagging.void_short_profiles([rec], "pressure", -1, -1) == []

    def test_range_ignores_nan(self):
        rec = make_record(n=50, prange=(0.0, 100.0))
        rec.pressure[5] = np.nan
        assert flagging.void_short_profiles([rec], "pressure", 10, 5) == []
        assert rec.pressure.size == 50
        assert rec.data_status == ["no change"]

    def test_all_nan_field_has_no_range(self):
        rec = make_record(n=50)
        rec.pressure[:] = np.nan
        assert flagging.void_short_profiles([rec], "pressure", -1, 0) == [1]
        assert rec.pressure.size == 0

    def test_only_masked_values_count(self):
        rec = make_record(n=100)
        rec.profile_mask[:50] = False
        assert flagging.void_short_profiles([rec], "pressure", 50, -1) == [1]

    def test_empty_field(self):
        rec = make_record()
        rec.void_fields(["pressure"])
        assert flagging.void_short_profiles([rec], "pressure", -1, -1) == []
        assert flagging.void_short_profiles([rec], "pressure", 0, -1) == [1]

    def test_profile_selection(self):
        recs = [make_record(number=1, n=10), make_record(number=2, n=10)]
        voided = flagging.void_short_profiles(recs, "pressure", 60, -1, profiles=[2])
        assert voided == [2]
        assert recs[0].pressure.size == 10
        assert recs[0].data_status == []

    def test_warning_lists_profiles(self, caplog):
        recs = [make_record(number=n, n=10 if n % 2 else 100) for n in (1, 2, 3)]
        with caplog.at_level(logging.WARNING):
            flagging.void_short_profiles(recs, "pressure", 60, -1)
        assert "[1, 3]" in caplog.messages[0]

    def test_logs_stay_paired(self):
        rec = make_record(n=10)
        flagging.void_short_profiles([rec], "pressure", 60, -1)
        assert len(rec.code_history) == len(rec.data_status) == 1


class TestNanBadSections:
    def test_masked_rows_set_to_nan(self):
        rec = make_record(n=10)
        rec.profile_mask[2:4] = False
        flagging.nan_bad_sections(rec)
        assert np.isnan(rec.pressure[2:4]).all()
        assert np.isnan(rec["velENU"][2:4]).all()
        assert np.isfinite(rec["velENU"][4:]).all()
        assert rec.time.size == 10

    def test_idempotent(self):
        rec = make_record(n=10)
        rec.profile_mask[::3] = False
        flagging.nan_bad_sections(rec)
        once = {name: np.array(rec[name]) for name in rec.sensor_fields}
        flagging.nan_bad_sections(rec)
        for name in rec.sensor_fields:
            np.testing.assert_array_equal(rec[name], once[name])

    def test_all_false_mask(self):
        rec = make_record(n=10)
        rec.profile_mask[:] = False
        flagging.nan_bad_sections(rec)
        for name in rec.sensor_fields:
            assert np.isnan(rec[name]).all()

    def test_empty_pressure(self):
        rec = make_record(n=10)
        rec.void_fields(["pressure"])
        flagging.nan_bad_sections(rec)
        assert rec.data_status[-1] == "pressure empty, no action taken"
        assert np.isfinite(rec["temperature"]).all()

    def test_integer_field_cast_to_float(self):
        rec = make_record(n=5)
        rec["nbeams"] = np.full(5, 3, dtype=int)
        rec.sensor_fields = rec.sensor_fields + ("nbeams",)
        rec.profile_mask[0] = False
        flagging.nan_bad_sections(rec)
        assert rec["nbeams"].dtype == float
        assert np.isnan(rec["nbeams"][0])
