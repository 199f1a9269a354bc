import logging

import gsw
import numpy as np
import pytest
from munch import Munch

from wfpcal import ctd
from wfpcal.common import make_processing_config
from wfpcal.profile import Direction, ProfileRecord

T0 = 1.6e9


@pytest.fixture
def cfg():
    return make_processing_config(
        {"number_of_profiles": 1, "latitude": 45.0, "longitude": -125.0}
    )


def make_ctd(n=400):
    t = np.arange(n, dtype=float)
    pressure = 10 + 0.25 * t
    temperature = np.linspace(12, 6, n)
    conductivity = gsw.C_from_SP(35.0, temperature, pressure)
    return ProfileRecord(
        1,
        "ctd",
        time=T0 + t,
        pressure=pressure,
        data={
            "conductivity": conductivity,
            "temperature": temperature,
            "oxygen": np.full(n, 250.0),
        },
    )


class TestSpeedMask:
    def test_steady_descent(self):
        mask = ctd.speed_mask(np.linspace(10, 110, 400), 1.0, 0.05, 15)
        assert not mask[:7].any()
        assert mask[7:392].all()
        assert not mask[392:].any()

    def test_ascent(self):
        mask = ctd.speed_mask(np.linspace(110, 10, 400), 1.0, 0.05, 15)
        assert mask[200]

    def test_stop(self):
        pressure = np.concatenate((np.linspace(10, 60, 200), np.full(50, 60.0),
                                   np.linspace(60, 110, 200)))
        mask = ctd.speed_mask(pressure, 1.0, 0.05, 5)
        assert not mask[205:245].any()
        assert mask[100] and mask[300]

    def test_empty(self):
        assert ctd.speed_mask([], 1.0, 0.05, 15).size == 0


@pytest.mark.parametrize(
    "pressure, expected",
    [
        (np.linspace(10, 100, 50), Direction.DESCENDING),
        (np.linspace(100, 10, 50), Direction.ASCENDING),
        (np.linspace(100, 104, 50), Direction.STATIONARY),
        (np.array([]), Direction.UNKNOWN),
    ],
)
def test_profile_direction(pressure, expected):
    assert ctd.profile_direction(pressure) is expected


class TestProcessCtd:
    def test_process(self, cfg):
        rec = ctd.process_ctd(make_ctd(), cfg)

        assert rec.data_status == ["CTD processed"]
        assert rec.profile_direction is Direction.DESCENDING
        assert rec.profile_date == pytest.approx(T0 + 199.5)
        assert list(rec.binning_parameters) == [10.0, 1.0, 2000.0]
        np.testing.assert_allclose(rec.dpdt[50:350], 0.25, atol=1e-3)
        np.testing.assert_allclose(rec["salinity"], 35.0, atol=0.05)
        assert (rec["sigma_theta"][50:350] > 25).all()
        assert not rec.profile_mask[:7].any()
        assert rec.profile_mask[50:350].all()

    def test_depth_offset(self, cfg):
        rec = make_ctd()
        rec.depth_offset = 1.5
        rec = ctd.process_ctd(rec, cfg)
        np.testing.assert_allclose(rec.pressure[50:350], 11.5 + 0.25 * np.arange(50, 350),
                                   atol=1e-3)

    def test_too_short(self, cfg):
        rec = ProfileRecord(1, "ctd", time=[0.0, 1.0], pressure=[10.0, 11.0])
        rec = ctd.process_ctd(rec, cfg)
        assert rec.data_status == ["CTD not processed"]
        assert rec.profile_direction is Direction.UNKNOWN


class TestProcessOxygen:
    @pytest.fixture
    def cal(self):
        return Munch(
            sbe43f=Munch(Soc=5e-4, Foffset=-1000.0, A=-3e-3, B=1.5e-4, C=-2.5e-6, E=0.036)
        )

    @pytest.fixture
    def rec(self, cfg):
        rec = make_ctd()
        rec["oxygen"] = np.full(400, 3000.0)
        return ctd.process_ctd(rec, cfg)

    def test_convert(self, rec, cfg, cal):
        rec = ctd.process_oxygen(rec, cfg, cal)

        t, p = rec["temperature"], rec.pressure
        SA = gsw.SA_from_SP(rec["salinity"], p, -125.0, 45.0)
        CT = gsw.CT_from_t(SA, t, p)
        o2sol = gsw.O2sol(SA, CT, p, -125.0, 45.0)
        poly = 1 + t * (-3e-3 + t * (1.5e-4 + t * -2.5e-6))
        # Soc * (f + Foffset) = 1
        expected = poly * o2sol * np.exp(0.036 * p / (t + 273.15))
        np.testing.assert_allclose(rec["oxygen"], expected, rtol=1e-10)
        assert rec.data_status[-1] == "oxygen processed [umol/kg]"

    def test_unit_conversions(self):
        assert ctd.oxy_ml_to_umolkg(1.0, 26.0) == pytest.approx(44660 / 1026)
        assert ctd.oxy_umolkg_to_ml(ctd.oxy_ml_to_umolkg(5.0, 26.0), 26.0) == pytest.approx(5.0)

    def test_no_calibration(self, rec, cfg, caplog):
        with caplog.at_level(logging.WARNING):
            rec = ctd.process_oxygen(rec, cfg)
        assert np.isnan(rec["oxygen"]).all()
        assert rec["oxygen"].size == 400
        assert rec.data_status[-1] == "oxygen set to NaN"
        assert "no SBE43F calibration" in caplog.text

    def test_missing_coefficient(self, rec, cfg, cal):
        del cal.sbe43f["E"]
        with pytest.raises(KeyError, match="E"):
            ctd.process_oxygen(rec, cfg, cal)

    def test_voided_profile(self, cfg, cal):
        rec = make_ctd()
        rec.void_fields(["pressure", "oxygen"])
        rec = ctd.process_oxygen(rec, cfg, cal)
        assert rec.data_status == ["oxygen not processed"]
