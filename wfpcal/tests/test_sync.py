import numpy as np
import pytest

from wfpcal import sync
from wfpcal.profile import Direction, ProfileRecord

T0 = 1.6e9


@pytest.fixture
def ctd():
    t = np.arange(100, dtype=float)
    rec = ProfileRecord(
        1,
        "ctd",
        time=T0 + t,
        pressure=100 + 0.5 * t,
        dpdt=np.full(100, 0.5),
        profile_direction=Direction.DESCENDING,
    )
    rec.profile_date = T0 + 50
    return rec


@pytest.fixture
def acm():
    t = np.arange(10, 80, 0.5)
    return ProfileRecord(1, "acm", time=T0 + t, data={"heading": np.zeros(t.size)})


class TestCenteredDpdt:
    def test_linear(self):
        dpdt = sync.centered_dpdt(np.arange(10) * 0.25, 2.0)
        np.testing.assert_allclose(dpdt, 0.5)

    def test_ends_are_one_sided(self):
        dpdt = sync.centered_dpdt([0.0, 1.0, 3.0, 6.0], 1.0)
        np.testing.assert_allclose(dpdt, [1.0, 1.5, 2.5, 3.0])

    def test_short(self):
        assert np.isnan(sync.centered_dpdt([1.0], 1.0)).all()


class TestInterpolatePressure:
    def test_too_short(self):
        t = np.arange(5, dtype=float)
        p, dpdt = sync.interpolate_pressure(t, t, t, 1.0)
        assert p.size == dpdt.size == 0

    def test_no_overlap(self):
        t = np.arange(20, dtype=float)
        p, _ = sync.interpolate_pressure(t + 100, t, t, 1.0)
        assert p.size == 0

    def test_duplicate_ctd_times(self):
        t = np.repeat(np.arange(20, dtype=float), 2)
        p, _ = sync.interpolate_pressure(np.arange(2, 15, 0.5), t, 2 * t, 2.0)
        np.testing.assert_allclose(p, 2 * np.arange(2, 15, 0.5))


class TestTransferMask:
    def test_neighbours_of_bad_samples_dropped(self):
        t_source = np.arange(10, dtype=float)
        mask = np.ones(10, dtype=bool)
        mask[4] = False
        result = sync.transfer_mask(np.arange(0, 9.5, 0.5), t_source, mask)
        expected = np.ones(19, dtype=bool)
        expected[7:10] = False
        np.testing.assert_array_equal(result, expected)

    def test_outside_source_span(self):
        result = sync.transfer_mask([-1.0, 0.0, 9.0, 10.0], np.arange(10), np.ones(10))
        np.testing.assert_array_equal(result, [False, True, True, False])

    def test_non_finite_source_times_dropped(self):
        t_source = np.arange(10, dtype=float)
        t_source[3] = np.nan
        mask = np.ones(10, dtype=bool)
        mask[3] = False
        result = sync.transfer_mask(np.arange(10, dtype=float), t_source, mask)
        assert result.all()


class TestSyncToCtd:
    def test_pressure_added(self, acm, ctd):
        acm.depth_offset = 0.3
        acm = sync.sync_to_ctd(acm, ctd)
        t = acm.time - T0
        np.testing.assert_allclose(acm.pressure, 100 + 0.5 * t + 0.3, atol=1e-6)
        np.testing.assert_allclose(acm.dpdt, 0.5, atol=1e-6)
        assert acm.profile_direction is Direction.DESCENDING
        assert acm.profile_date == ctd.profile_date
        assert acm.data_status[-1] == "pressure record added"

    def test_mask_transferred(self, acm, ctd):
        ctd.profile_mask[20:31] = False
        acm = sync.sync_to_ctd(acm, ctd)
        t = acm.time - T0
        bad = (t > 19) & (t < 31)
        np.testing.assert_array_equal(acm.profile_mask, ~bad)

    def test_ctd_time_with_gaps(self, acm, ctd):
        ctd.time[[30, 31, 60]] = np.nan
        acm = sync.sync_to_ctd(acm, ctd)
        t = acm.time - T0
        np.testing.assert_allclose(acm.pressure, 100 + 0.5 * t, atol=1e-6)
        assert acm.profile_mask.all()

    def test_no_time(self, ctd):
        rec = ProfileRecord(1, "acm")
        rec = sync.sync_to_ctd(rec, ctd)
        assert rec.pressure.size == 0
        assert rec.data_status == ["no pressure record added"]

    def test_no_ctd_pressure(self, acm, ctd):
        ctd.void_fields(["pressure"])
        acm = sync.sync_to_ctd(acm, ctd)
        assert acm.pressure.size == acm.time.size
        assert np.isnan(acm.pressure).all()
        assert acm.data_status == ["NaN pressure record added"]

    def test_no_overlap(self, acm, ctd):
        ctd.time = ctd.time + 1000
        acm = sync.sync_to_ctd(acm, ctd)
        assert np.isnan(acm.pressure).all()
        assert np.isnan(acm.dpdt).all()
        assert acm.data_status == ["NaN pressure record added"]

    def test_profile_mismatch(self, acm):
        with pytest.raises(ValueError):
            sync.sync_to_ctd(acm, ProfileRecord(2, "ctd"))


class TestSyncCtdEng:
    @pytest.fixture
    def eng(self):
        t = np.arange(10, 60, dtype=float)
        return ProfileRecord(1, "eng", time=T0 + t, pressure=np.zeros(t.size))

    def test_synced(self, ctd, eng):
        eng.profile_mask[5] = False
        ctd, eng = sync.sync_ctd_eng(ctd, eng)
        t = eng.time - T0
        np.testing.assert_allclose(eng.pressure, 100 + 0.5 * t)
        np.testing.assert_allclose(eng.dpdt, 0.5)
        assert eng.profile_direction is Direction.DESCENDING
        # ctd loses the samples around the bad eng sample and outside eng span
        assert not ctd.profile_mask[15]
        assert ctd.profile_mask[20]
        assert not ctd.profile_mask[:10].any()
        assert ctd.data_status == eng.data_status == ["synced"]

    def test_not_synced(self, ctd, eng):
        eng.void_fields(["pressure"])
        ctd, eng = sync.sync_ctd_eng(ctd, eng)
        assert eng.data_status == ["not synced"]
        assert ctd.profile_mask.all()

    def test_missing_ctd_time(self, ctd, eng):
        ctd.time[3] = np.nan
        ctd, eng = sync.sync_ctd_eng(ctd, eng)
        assert not ctd.profile_mask.any()
        assert ctd.data_status == ["all flagged bad"]
        assert eng.data_status == ["not synced"]

    def test_ctd_dpdt_size_mismatch(self, ctd, eng):
        ctd.dpdt = np.array([], dtype=float)
        ctd, eng = sync.sync_ctd_eng(ctd, eng)
        assert np.isnan(eng.dpdt).all()
        assert eng.dpdt.size == eng.time.size
