"""
Tide state derivation shared by the authoritative and fallback tide channels.

Both channels deliver a list of extremes (TideEvent) and a water-level
series; build_tide_state() turns those into the TideState at one instant and
keeps the series on the state so tide_state_at() can re-derive it for any
other forecast slot.
"""
from __future__ import annotations

import bisect
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

from .const import TIDE_AUTHORITATIVE
from .models import TideEvent, TideState

_LOGGER = logging.getLogger(__name__)

CURRENT_PER_METRE_HOUR = 2.5  # knots per m/h of level change
SLACK_RATE = 0.05  # m/h
FLOOD_DIRECTION = 45.0
EBB_DIRECTION = 225.0


def classify_extremes(points: Sequence[Tuple[int, float]]) -> List[TideEvent]:
    """Label extremes high/low by comparing neighbours, then force alternation."""
    pts = sorted(points)
    events: List[TideEvent] = []
    for i, (ts, h) in enumerate(pts):
        prev_h = pts[i - 1][1] if i > 0 else None
        next_h = pts[i + 1][1] if i + 1 < len(pts) else None
        if prev_h is not None and next_h is not None:
            kind = "high" if h > prev_h and h >= next_h else "low"
        elif next_h is not None:
            kind = "high" if h > next_h else "low"
        elif prev_h is not None:
            kind = "high" if h > prev_h else "low"
        else:
            kind = "high"
        events.append(TideEvent(int(ts), float(h), kind))

    for i in range(1, len(events)):
        if events[i].kind == events[i - 1].kind:
            flipped = "low" if events[i].kind == "high" else "high"
            events[i] = TideEvent(events[i].timestamp, events[i].height, flipped)
    return events


def estimate_current(levels: Sequence[Tuple[int, float]], now: int) -> Tuple[float, float, str]:
    """(speed kt, direction deg, type) from the water-level slope around ``now``."""
    times = [t for t, _h in levels]
    idx = bisect.bisect_left(times, now)
    if idx <= 0 or idx >= len(levels) - 1:
        return 0.0, 0.0, "slack"
    (t0, h0), (t1, h1) = levels[idx - 1], levels[idx]
    hours = (t1 - t0) / 3600.0
    if hours <= 0:
        return 0.0, 0.0, "slack"
    rate = (h1 - h0) / hours
    speed = abs(rate) * CURRENT_PER_METRE_HOUR
    direction = FLOOD_DIRECTION if rate > 0 else EBB_DIRECTION
    if abs(rate) < SLACK_RATE:
        kind = "slack"
    else:
        kind = "flood" if rate > 0 else "ebb"
    return speed, direction, kind


def _daily_range(events: Sequence[TideEvent], now: int, utc_offset_seconds: int) -> Optional[float]:
    tz = timezone(timedelta(seconds=utc_offset_seconds))
    local = datetime.fromtimestamp(now, tz=tz)
    day_start = int(datetime(local.year, local.month, local.day, tzinfo=tz).timestamp())
    day_end = day_start + 86400
    todays = [e for e in events if day_start <= e.timestamp < day_end]
    highs = [e.height for e in todays if e.kind == "high"]
    lows = [e.height for e in todays if e.kind == "low"]
    if highs and lows:
        return max(highs) - min(lows)
    return None


def build_tide_state(
    events: Sequence[TideEvent],
    levels: Sequence[Tuple[int, float]],
    now: int,
    *,
    provenance: str,
    range_mode: str = "daily",
    station_id: Optional[str] = None,
    station_code: Optional[str] = None,
    station_name: Optional[str] = None,
    distance_km: Optional[float] = None,
    utc_offset_seconds: int = 0,
) -> Optional[TideState]:
    """Derive the tide situation at ``now``; None when there is nothing to derive from."""
    events = sorted(events, key=lambda e: e.timestamp)
    levels = sorted((int(t), float(h)) for t, h in levels)
    if not events and not levels:
        return None

    current_height: Optional[float] = None
    if levels:
        at = bisect.bisect_left([t for t, _h in levels], now)
        current_height = levels[at][1] if at < len(levels) else levels[-1][1]

    next_event: Optional[TideEvent] = None
    previous_event: Optional[TideEvent] = None
    if events:
        idx = bisect.bisect_right([e.timestamp for e in events], now)
        if idx >= len(events):
            idx = -1
        if provenance == TIDE_AUTHORITATIVE:
            next_event = events[idx] if idx >= 0 else events[0]
            # before the first event there is no previous one to wrap to
            if idx == 0:
                previous_event = None
            else:
                previous_event = events[idx - 1] if idx > 0 else events[-1]
        else:
            next_event = events[idx] if idx >= 0 else events[-1]
            previous_event = events[idx - 1] if idx > 0 else events[0]

    speed, direction, current_type = estimate_current(levels, now)

    if next_event is not None:
        if previous_event is not None:
            step = abs(next_event.height - previous_event.height)
            hours = (next_event.timestamp - previous_event.timestamp) / 3600.0
        else:
            step = hours = 0.0
        tidal_range = step
        if range_mode == "daily":
            daily = _daily_range(events, now, utc_offset_seconds)
            if daily is not None:
                tidal_range = daily
        is_rising = next_event.kind == "high"
        change_rate = step / hours if hours else 0.0
        if not is_rising:
            change_rate = -change_rate
        minutes_to_next: Optional[int] = int(round((next_event.timestamp - now) / 60.0))
    else:
        tidal_range = 0.0
        is_rising = current_type == "flood"
        change_rate = 0.0
        minutes_to_next = None

    return TideState(
        reference_time=int(now),
        current_height=current_height,
        next_event=next_event,
        previous_event=previous_event,
        tidal_range=round(float(tidal_range), 3),
        change_rate=round(float(change_rate), 3),
        is_rising=is_rising,
        minutes_to_next=minutes_to_next,
        current_speed=round(speed, 3),
        current_direction=direction,
        current_type=current_type,
        provenance=provenance,
        range_mode=range_mode,
        station_id=station_id,
        station_code=station_code,
        station_name=station_name,
        distance_km=distance_km,
        events=tuple(events),
        water_levels=tuple(levels),
    )


def tide_state_at(state: Optional[TideState], timestamp: int, utc_offset_seconds: int = 0) -> Optional[TideState]:
    """Re-derive ``state`` at another instant from its stored series."""
    if state is None:
        return None
    if int(timestamp) == state.reference_time:
        return state
    return build_tide_state(
        state.events,
        state.water_levels,
        int(timestamp),
        provenance=state.provenance,
        range_mode=state.range_mode,
        station_id=state.station_id,
        station_code=state.station_code,
        station_name=state.station_name,
        distance_km=state.distance_km,
        utc_offset_seconds=utc_offset_seconds,
    )
