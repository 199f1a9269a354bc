import logging

import numpy as np
import pytest

from wfpcal import binning
from wfpcal.profile import ProfileRecord


def make_record(pressure, number=1, **fields):
    pressure = np.asarray(pressure, dtype=float)
    data = {"temperature": np.linspace(20, 4, pressure.size)}
    data.update(fields)
    rec = ProfileRecord(
        number, "ctd", time=np.arange(pressure.size, dtype=float), pressure=pressure, data=data
    )
    rec.sensor_fields = ("time", "pressure") + tuple(data)
    return rec


class TestPressureBin:
    def test_populated_bins(self):
        rec = make_record(np.linspace(20, 500, 200), velENU=np.ones((200, 3)))
        rec = binning.pressure_bin(rec, 20, 5, 500)
        assert rec.pressure.shape == (97,)
        assert rec["velENU"].shape == (97, 3)
        assert np.isfinite(rec.pressure).all()
        assert (np.diff(rec.pressure) > 0).all()
        assert (np.diff(rec["temperature"]) < 0).all()
        np.testing.assert_allclose(rec.pressure_bin_values, np.arange(20, 501, 5))
        assert rec.binning_parameters == (20, 5, 500)
        assert rec.data_status == ["binned"]

    def test_statistic(self):
        pressure = [10.0, 10.5, 11.0]
        x = np.array([1.0, 2.0, 9.0])
        mean = binning.pressure_bin(make_record(pressure, x=x), 10, 5, 20)
        median = binning.pressure_bin(
            make_record(pressure, x=x), 10, 5, 20, statistic="median"
        )
        assert mean["x"][0] == pytest.approx(4.0)
        assert median["x"][0] == pytest.approx(2.0)
        assert np.isnan(mean["x"][1:]).all()

    def test_unknown_statistic(self):
        with pytest.raises(ValueError, match="mode"):
            binning.pressure_bin(make_record([10.0]), 10, 5, 20, statistic="mode")

    def test_nan_values_ignored(self):
        x = np.array([1.0, np.nan, 3.0])
        rec = binning.pressure_bin(make_record([10.0, 10.5, 11.0], x=x), 10, 5, 10)
        assert rec["x"][0] == pytest.approx(2.0)

    def test_min_count(self):
        rec = make_record([10.0, 10.5, 15.0])
        rec = binning.pressure_bin(rec, 10, 5, 15, min_count=2)
        assert np.isfinite(rec["temperature"][0])
        assert np.isnan(rec["temperature"][1])

    def test_outside_bins_dropped(self):
        rec = binning.pressure_bin(make_record([1.0, 10.0, 50.0]), 10, 5, 20)
        np.testing.assert_allclose(rec.pressure, [10.0, np.nan, np.nan])

    def test_heading_circular_mean(self):
        heading = np.array([350.0, 10.0])
        rec = binning.pressure_bin(make_record([10.0, 11.0], heading=heading), 10, 5, 10)
        distance = np.abs(np.mod(rec["heading"][0] + 180, 360) - 180)
        assert distance < 1e-9

    def test_empty_pressure(self):
        rec = make_record(np.arange(10.0), velENU=np.ones((10, 3)))
        rec.void_fields(["pressure"])
        rec = binning.pressure_bin(rec, 10, 5, 20)
        assert rec.pressure.shape == (3,)
        assert rec["velENU"].shape == (3, 3)
        assert np.isnan(rec["velENU"]).all()
        assert rec.data_status == ["binned entries set to NaN"]

    def test_length_mismatch(self):
        rec = make_record([10.0, 11.0], x=np.ones(5))
        rec = binning.pressure_bin(rec, 10, 5, 20)
        assert rec["x"].shape == (3,)
        assert np.isnan(rec["x"]).all()


class TestBinningParameters:
    @pytest.fixture
    def records(self):
        return [
            make_record(np.linspace(12.3, 200, 50), number=1),
            make_record(np.linspace(100, 487.9, 50), number=2),
        ]

    def test_width(self, records):
        for rec in records:
            rec.binning_parameters = 5
        assert binning.determine_binning_parameters(records) == (14, 5, 489)

    def test_width_without_data(self, records, caplog):
        for rec in records:
            rec.binning_parameters = 5
            rec.void_fields(["pressure"])
        with caplog.at_level(logging.WARNING):
            params = binning.determine_binning_parameters(records)
        assert params == (0.0, 5.0, 0.0)
        assert "single empty bin" in caplog.messages[0]

        rec = binning.pressure_bin(records[0], *params)
        assert rec.pressure.shape == (1,)
        assert np.isnan(rec["temperature"]).all()

    def test_bad_width(self, records):
        for rec in records:
            rec.binning_parameters = 0
        assert binning.determine_binning_parameters(records) == (12, 1, 488)

    def test_full_parameters(self, records):
        records[0].binning_parameters = (10, 2, 99)
        records[1].binning_parameters = (10, 2, 99)
        assert binning.determine_binning_parameters(records) == (10, 2, 100)

    def test_missing(self, records):
        with pytest.raises(ValueError):
            binning.determine_binning_parameters(records)

    def test_mixed(self, records):
        records[0].binning_parameters = 5
        records[1].binning_parameters = (10, 2, 99)
        with pytest.raises(ValueError):
            binning.determine_binning_parameters(records)


def test_bin_centers():
    np.testing.assert_allclose(binning.bin_centers(10, 2.5, 20), [10, 12.5, 15, 17.5, 20])
