from datetime import datetime, timezone

import pytest

from custom_components.coastal_fishing_forecast.const import TIDE_AUTHORITATIVE, TIDE_FALLBACK
from custom_components.coastal_fishing_forecast.models import TideEvent, TideState
from custom_components.coastal_fishing_forecast.tides import (
    build_tide_state,
    classify_extremes,
    estimate_current,
    tide_state_at,
)

DAY = int(datetime(2025, 8, 15, tzinfo=timezone.utc).timestamp())
HOUR = 3600

EVENTS = [
    TideEvent(DAY, 0.5, "low"),
    TideEvent(DAY + 6 * HOUR, 3.0, "high"),
    TideEvent(DAY + 12 * HOUR, 0.6, "low"),
    TideEvent(DAY + 18 * HOUR, 2.9, "high"),
]
LEVELS = [(DAY, 0.5), (DAY + 3 * HOUR, 1.75), (DAY + 6 * HOUR, 3.0)]


def test_classify_extremes_by_neighbours():
    points = [(0, 1.0), (6 * HOUR, 3.0), (12 * HOUR, 0.5), (18 * HOUR, 2.8)]
    kinds = [e.kind for e in classify_extremes(points)]
    assert kinds == ["low", "high", "low", "high"]


def test_classify_extremes_forces_alternation():
    events = classify_extremes([(0, 1.0), (HOUR, 2.0), (2 * HOUR, 3.0)])
    kinds = [e.kind for e in events]
    assert all(a != b for a, b in zip(kinds, kinds[1:]))


def test_estimate_current_from_slope():
    levels = [(0, 0.0), (HOUR, 1.0), (2 * HOUR, 2.0)]
    speed, direction, kind = estimate_current(levels, HOUR // 2)
    assert speed == pytest.approx(2.5)
    assert direction == 45.0
    assert kind == "flood"

    speed, direction, kind = estimate_current([(0, 2.0), (HOUR, 1.0), (2 * HOUR, 0.0)], HOUR // 2)
    assert kind == "ebb"
    assert direction == 225.0


def test_estimate_current_outside_series_is_slack():
    levels = [(0, 0.0), (HOUR, 1.0), (2 * HOUR, 2.0)]
    assert estimate_current(levels, 0) == (0.0, 0.0, "slack")
    assert estimate_current(levels, 5 * HOUR) == (0.0, 0.0, "slack")
    assert estimate_current([(0, 1.0), (HOUR, 1.01), (2 * HOUR, 1.02)], HOUR // 2)[2] == "slack"


def test_build_tide_state_authoritative():
    now = DAY + 3 * HOUR
    state = build_tide_state(
        EVENTS, LEVELS, now, provenance=TIDE_AUTHORITATIVE, station_code="07080", distance_km=4.2
    )
    assert isinstance(state, TideState)
    assert state.next_event == EVENTS[1]
    assert state.previous_event == EVENTS[0]
    assert state.is_rising is True
    assert state.minutes_to_next == 180
    assert state.current_height == 1.75
    assert state.tidal_range == 2.5
    assert state.change_rate == pytest.approx(0.417, abs=1e-3)
    assert state.current_type == "flood"
    assert state.current_speed == pytest.approx(1.042, abs=1e-3)
    assert state.station_code == "07080"


def test_falling_tide_has_negative_change_rate():
    state = build_tide_state(EVENTS, [], DAY + 8 * HOUR, provenance=TIDE_AUTHORITATIVE)
    assert state.is_rising is False
    assert state.change_rate < 0
    assert state.current_type == "slack"


def test_past_last_event_authoritative_wraps_fallback_clamps():
    now = DAY + 20 * HOUR
    auth = build_tide_state(EVENTS, [], now, provenance=TIDE_AUTHORITATIVE)
    assert auth.next_event == EVENTS[0]
    fallback = build_tide_state(EVENTS, [], now, provenance=TIDE_FALLBACK, range_mode="extremes")
    assert fallback.next_event == EVENTS[-1]
    assert fallback.tidal_range == pytest.approx(abs(EVENTS[-1].height - fallback.previous_event.height))


def test_before_first_event_authoritative_does_not_wrap_back():
    state = build_tide_state(EVENTS, [], DAY - 2 * HOUR, provenance=TIDE_AUTHORITATIVE)
    assert state.next_event == EVENTS[0]
    assert state.previous_event is None
    assert state.is_rising is False
    assert state.change_rate <= 0
    assert state.minutes_to_next == 120


def test_levels_only_state():
    state = build_tide_state([], LEVELS, DAY + HOUR, provenance=TIDE_FALLBACK)
    assert state.next_event is None
    assert state.tidal_range == 0.0
    assert state.minutes_to_next is None
    assert state.is_rising is True


def test_no_data_gives_none():
    assert build_tide_state([], [], DAY, provenance=TIDE_AUTHORITATIVE) is None
    assert tide_state_at(None, DAY) is None


def test_tide_state_at_rederives_from_series():
    state = build_tide_state(EVENTS, LEVELS, DAY + 3 * HOUR, provenance=TIDE_AUTHORITATIVE)
    assert tide_state_at(state, DAY + 3 * HOUR) is state
    later = tide_state_at(state, DAY + 9 * HOUR)
    assert later.reference_time == DAY + 9 * HOUR
    assert later.next_event == EVENTS[2]
    assert later.is_rising is False
    assert later.events == state.events
