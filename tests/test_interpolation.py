import pytest

from custom_components.coastal_fishing_forecast.interpolation import (
    angular_interpolate,
    interpolate_hourly_to_15min,
    linear_interpolate,
)


def test_linear_keeps_endpoints_and_count():
    out = linear_interpolate([10.0, 20.0, 15.0], 9)
    assert len(out) == 9
    assert out[0] == 10.0
    assert out[-1] == 15.0
    assert out[2] == pytest.approx(15.0)


def test_short_series_returned_unchanged():
    assert linear_interpolate([4.0], 5) == [4.0]
    assert angular_interpolate([], 5) == []


def test_angular_takes_shortest_arc_across_north():
    out = angular_interpolate([350.0, 10.0], 3)
    assert out[0] == pytest.approx(350.0)
    assert out[1] == pytest.approx(0.0, abs=1e-9)
    assert out[2] == pytest.approx(10.0)
    assert all(0.0 <= v < 360.0 for v in out)


def test_hourly_to_15min_shape_and_values():
    records = [
        {"timestamp": 0, "temperature": 10.0, "wind_direction": 350.0},
        {"timestamp": 3600, "temperature": 12.0, "wind_direction": 10.0},
    ]
    out = interpolate_hourly_to_15min(records)
    assert [r["timestamp"] for r in out] == [0, 900, 1800, 2700, 3600]
    assert out[2]["temperature"] == 11.0
    assert out[2]["wind_direction"] == 0.0
    assert out[-1]["temperature"] == 12.0
    assert out[-1]["wind_direction"] == 10.0


def test_hourly_to_15min_missing_values_stay_none():
    records = [
        {"timestamp": 0, "pressure": 1012.0},
        {"timestamp": 3600, "pressure": 1011.0},
        {"timestamp": 7200, "pressure": None},
    ]
    out = interpolate_hourly_to_15min(records)
    assert len(out) == 9
    assert out[0]["pressure"] == 1012.0
    assert out[2]["pressure"] == 1011.5
    assert out[4]["pressure"] is None
    assert out[8]["pressure"] is None


def test_hourly_to_15min_needs_two_records():
    assert interpolate_hourly_to_15min([{"timestamp": 0}]) == []
