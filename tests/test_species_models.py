from datetime import datetime, timezone

import pytest

from custom_components.coastal_fishing_forecast.const import SAFETY_CAP, TIDE_AUTHORITATIVE
from custom_components.coastal_fishing_forecast.contexts import AlgorithmContext, build_context
from custom_components.coastal_fishing_forecast.models import Sample, TideState
from custom_components.coastal_fishing_forecast.scoring import Band, BandTable, LinearSegments, ScoreBuilder, validate_weights
from custom_components.coastal_fishing_forecast.species import SPECIES_MODELS, score_species


def at(year, month, day, hour=12):
    return int(datetime(year, month, day, hour, tzinfo=timezone.utc).timestamp())


def ctx(species, **extra):
    base = AlgorithmContext(sunrise=None, sunset=None, latitude=48.37, longitude=-123.73)
    return build_context(species, base, **extra)


def make_tide(tidal_range=1.5, rising=True, speed=0.5):
    return TideState(
        reference_time=0,
        current_height=1.0,
        next_event=None,
        previous_event=None,
        tidal_range=tidal_range,
        change_rate=0.3 if rising else -0.3,
        is_rising=rising,
        minutes_to_next=None,
        current_speed=speed,
        current_direction=45.0 if rising else 225.0,
        current_type="flood" if rising else "ebb",
        provenance=TIDE_AUTHORITATIVE,
    )


def bonus_reasons(result):
    return [b["reason"] for b in result.debug["bonuses"]]


# ---- contract ----

def test_registry_has_all_species():
    assert set(SPECIES_MODELS) == {
        "chum", "rockfish", "spot_prawn", "sockeye", "pink", "lingcod", "chinook", "coho", "halibut",
    }


def test_unknown_species_raises():
    with pytest.raises(KeyError):
        score_species("tuna", Sample(timestamp=at(2025, 6, 1)), ctx("chum"))


def test_unknown_context_field_raises():
    with pytest.raises(TypeError):
        ctx("chum", is_in_rca=True)


def test_bad_weights_and_tables_fail_at_definition():
    with pytest.raises(ValueError):
        validate_weights({"a": 0.5, "b": 0.4})
    with pytest.raises(ValueError):
        BandTable([Band(2.0, 1.0, "x"), Band(1.0, 0.5, "y")], above=(0.0, "z"))
    with pytest.raises(ValueError):
        LinearSegments([(5, 1.0)])


@pytest.mark.parametrize("species", sorted(SPECIES_MODELS))
def test_totals_stay_in_range(species):
    sample = Sample(timestamp=at(2025, 5, 20), wind_speed=12.0, pressure=1012.0, current_speed=0.8)
    result = score_species(species, sample, ctx(species), make_tide())
    assert 0.0 <= result.total <= 10.0
    assert result.total == round(result.total, 2)
    if result.factors:
        assert sum(f.weight for f in result.factors.values()) == pytest.approx(1.0)


@pytest.mark.parametrize(
    "species, timestamp, extra",
    [
        ("rockfish", at(2025, 7, 1), {"is_in_rca": True}),
        ("spot_prawn", at(2025, 8, 10), {}),
        ("sockeye", at(2025, 8, 1), {"fishery_open": False}),
        ("pink", at(2026, 8, 15), {}),
        ("lingcod", at(2025, 2, 10), {}),
        ("halibut", at(2025, 1, 15), {}),
    ],
)
def test_closed_gate_returns_empty_result(species, timestamp, extra):
    result = score_species(species, Sample(timestamp=timestamp, wind_speed=10.0), ctx(species, **extra), make_tide())
    assert result.total == 0.0
    assert result.factors == {}
    assert not result.is_in_season
    assert result.warnings


def test_chum_off_season_has_no_gate():
    result = score_species("chum", Sample(timestamp=at(2025, 3, 15)), ctx("chum"))
    assert result.factors
    assert not result.is_in_season


@pytest.mark.parametrize(
    "species, sample_values, extra",
    [
        ("chum", {"timestamp": at(2025, 10, 20), "wind_speed": 60.0, "precipitation": 10.0}, {}),
        ("rockfish", {"timestamp": at(2025, 7, 1), "current_speed": 2.0}, {}),
        ("spot_prawn", {"timestamp": at(2025, 5, 20), "wind_speed": 45.0}, {}),
        ("sockeye", {"timestamp": at(2025, 8, 1), "wind_speed": 50.0}, {"fishery_open": True}),
        ("sockeye", {"timestamp": at(2025, 8, 1), "wave_height": 2.5}, {"fishery_open": True}),
        ("pink", {"timestamp": at(2025, 8, 15), "wind_speed": 40.0}, {}),
        ("pink", {"timestamp": at(2025, 8, 15), "precipitation": 25.0}, {}),
        ("lingcod", {"timestamp": at(2025, 6, 10), "swell_height": 2.5}, {}),
        ("chinook", {"timestamp": at(2025, 7, 10), "wind_speed": 50.0}, {}),
        ("coho", {"timestamp": at(2025, 9, 20), "wind_speed": 50.0}, {}),
        ("halibut", {"timestamp": at(2025, 7, 1), "wind_speed": 50.0}, {}),
    ],
)
def test_safety_trip_caps_total(species, sample_values, extra):
    result = score_species(species, Sample(**sample_values), ctx(species, **extra))
    assert not result.is_safe
    assert result.total <= SAFETY_CAP


def test_floor_applies_before_safety_cap():
    b = ScoreBuilder("test", "test-v1", {"only": 1.0})
    b.add_factor("only", 0, 0.1)
    b.bonus(0.5, "halved")
    b.floor(6.0, "override")
    assert b.build().total == 6.0
    b.unsafe("rough")
    result = b.build()
    assert result.total == SAFETY_CAP
    assert result.debug["floors"] == [{"minimum": 6.0, "reason": "override"}]


# ---- chum ----

def test_chum_storm_biter_prime():
    sample = Sample(
        timestamp=at(2025, 10, 20),
        pressure=1008.0,
        precipitation=10.0,
        sea_surface_temperature=9.0,
        current_speed=1.0,
    )
    result = score_species("chum", sample, ctx("chum", pressure_history=(1012.0, 1010.0)))
    assert result.factors["stormTrigger"].score == 1.0
    assert result.factors["stagingSeams"].description == "soft_water"
    assert bonus_reasons(result) == ["storm_biter_prime"]
    assert result.total == 10.0
    assert result.is_in_season


def test_chum_high_wind_caps_score():
    sample = Sample(timestamp=at(2025, 10, 20), wind_speed=60.0, precipitation=10.0)
    result = score_species("chum", sample, ctx("chum"))
    assert not result.is_safe
    assert result.total <= SAFETY_CAP


# ---- rockfish ----

def test_rockfish_conservation_area_gate():
    result = score_species("rockfish", Sample(timestamp=at(2025, 7, 1)), ctx("rockfish", is_in_rca=True))
    assert result.total == 0.0
    assert result.factors == {}
    assert not result.is_in_season
    assert not result.is_safe


def test_rockfish_fast_drift_is_unsafe():
    sample = Sample(timestamp=at(2025, 7, 1), current_speed=2.0)
    result = score_species("rockfish", sample, ctx("rockfish"))
    assert result.factors["resultantDrift"].value == "2.0 kts"
    assert not result.is_safe
    assert result.total <= SAFETY_CAP


def test_rockfish_prefers_neap_tides():
    sample = Sample(timestamp=at(2025, 7, 1))
    neap = score_species("rockfish", sample, ctx("rockfish"), make_tide(tidal_range=0.8, speed=0.1))
    spring = score_species("rockfish", sample, ctx("rockfish"), make_tide(tidal_range=3.5, speed=0.1))
    assert neap.factors["tidalRange"].score == 1.0
    assert spring.factors["tidalRange"].score == 0.3
    assert neap.total > spring.total


# ---- spot prawn ----

def test_spot_prawn_closed_season():
    result = score_species("spot_prawn", Sample(timestamp=at(2025, 8, 10)), ctx("spot_prawn"))
    assert result.total == 0.0
    assert not result.is_in_season


def test_spot_prawn_safety_gate():
    result = score_species("spot_prawn", Sample(timestamp=at(2025, 5, 20), wind_speed=45.0), ctx("spot_prawn"))
    assert result.total == 0.0
    assert result.factors == {}
    assert not result.is_safe
    assert result.is_in_season


def test_spot_prawn_neap_bonus():
    result = score_species(
        "spot_prawn", Sample(timestamp=at(2025, 5, 16)), ctx("spot_prawn"), make_tide(tidal_range=1.5, speed=0.1)
    )
    assert bonus_reasons(result) == ["neap_slack_window"]
    assert result.factors["slackWindow"].score == 1.0
    assert result.debug["days_into_season"] == 1


def test_spot_prawn_without_tide_is_neutral_slack():
    result = score_species("spot_prawn", Sample(timestamp=at(2025, 5, 16)), ctx("spot_prawn"))
    assert result.factors["slackWindow"].score == 0.5
    assert bonus_reasons(result) == []


# ---- sockeye ----

def test_sockeye_closed_fishery():
    result = score_species("sockeye", Sample(timestamp=at(2025, 8, 1)), ctx("sockeye", fishery_open=False))
    assert result.total == 0.0
    assert not result.is_in_season


def test_sockeye_off_calendar_cap():
    sample = Sample(timestamp=at(2025, 11, 1))
    result = score_species("sockeye", sample, ctx("sockeye", fishery_open=True))
    assert result.factors["runTiming"].score == pytest.approx(0.1)
    assert result.total == 2.0
    assert not result.is_in_season


def test_sockeye_confirmed_run_lifts_cap():
    sample = Sample(timestamp=at(2025, 11, 1))
    context = ctx("sockeye", fishery_open=True, report_text="Commercial opening announced today")
    result = score_species("sockeye", sample, context)
    assert bonus_reasons(result) == ["massive_run"]
    assert result.total == 10.0
    assert result.is_in_season


# ---- pink ----

def test_pink_even_year_gate():
    result = score_species("pink", Sample(timestamp=at(2026, 8, 15)), ctx("pink"))
    assert result.total == 0.0
    assert "Even year" in result.warnings[0]


def test_pink_strong_run_bonus():
    sample = Sample(timestamp=at(2025, 8, 15), wind_speed=15.0)
    result = score_species("pink", sample, ctx("pink", report_text="Millions of pinks jumping"))
    assert result.factors["surfaceTexture"].description == "pink_ripple"
    assert bonus_reasons(result) == ["strong_run"]
    assert result.total == 9.75


def test_pink_slow_reports_penalize():
    sample = Sample(timestamp=at(2025, 8, 15), wind_speed=15.0)
    plain = score_species("pink", sample, ctx("pink"))
    slow = score_species("pink", sample, ctx("pink", report_text="slow day, ghost town out there"))
    assert bonus_reasons(slow) == ["slow"]
    assert slow.total < plain.total


# ---- lingcod ----

def test_lingcod_closed_for_spawning():
    result = score_species("lingcod", Sample(timestamp=at(2025, 2, 10)), ctx("lingcod"))
    assert result.total == 0.0
    assert not result.is_in_season


def test_lingcod_bonus_order_and_prime_time():
    sample = Sample(timestamp=at(2025, 5, 20), swell_height=0.3)
    context = ctx("lingcod", report_text="lots of rockfish on the pinnacles")
    result = score_species("lingcod", sample, context, make_tide(speed=1.0))
    assert result.factors["tidalShoulder"].score == pytest.approx(0.88)
    assert bonus_reasons(result) == ["strong_prey", "shallow_aggressive", "prime_time"]
    assert result.debug["prime_time"] is True
    assert result.total == 10.0


def test_lingcod_wind_against_tide_is_unsafe():
    sample = Sample(timestamp=at(2025, 7, 10), wind_speed=45.0, wind_direction=225.0, swell_height=0.3)
    result = score_species("lingcod", sample, ctx("lingcod"), make_tide(rising=True, speed=1.0))
    assert result.factors["windTideSafety"].description == "dangerous"
    assert not result.is_safe
    assert result.total <= SAFETY_CAP


# ---- chinook ----

def test_chinook_weights_follow_seasonal_mode():
    winter = score_species("chinook", Sample(timestamp=at(2025, 1, 15)), ctx("chinook"))
    summer = score_species("chinook", Sample(timestamp=at(2025, 7, 15)), ctx("chinook"))
    assert winter.debug["seasonal_mode"] == "feeder"
    assert winter.factors["baitPresence"].weight == 0.23
    assert summer.debug["seasonal_mode"] == "spawner"
    assert summer.factors["baitPresence"].weight == 0.17
    assert summer.factors["tidalCurrent"].weight == 0.18


def test_chinook_orca_suppresses_bite():
    sample = Sample(timestamp=at(2025, 7, 10), wind_speed=15.0)
    plain = score_species("chinook", sample, ctx("chinook"))
    orca = score_species("chinook", sample, ctx("chinook", report_text="Orca came through and it shut down"))
    assert bonus_reasons(orca) == ["orca_shutdown"]
    assert orca.total < plain.total
    assert any("ORCA ALERT" in w for w in orca.warnings)


def test_chinook_massive_bait_floors_total():
    sample = Sample(timestamp=at(2025, 7, 10), wind_speed=15.0)
    context = ctx("chinook", report_text="Massive herring balls everywhere until orca shut down the bite")
    result = score_species("chinook", sample, context)
    assert result.factors["baitPresence"].description == "massive"
    assert result.debug["floors"] == [{"minimum": 6.0, "reason": "massive_bait"}]
    assert result.total == 6.0


def test_chinook_large_exchange_blows_gear_off_depth():
    sample = Sample(timestamp=at(2025, 7, 10))
    result = score_species("chinook", sample, ctx("chinook", tidal_range=4.2, minutes_to_slack=300))
    assert result.factors["trollability"].description == "untrollable"
    assert result.debug["blowback"] == "untrollable"


# ---- coho ----

def test_coho_blown_out_river():
    sample = Sample(timestamp=at(2025, 9, 20))
    clear = score_species("coho", sample, ctx("coho"))
    blown = score_species("coho", sample, ctx("coho", precipitation_24h=50.0))
    assert blown.factors["riverTurbidity"].description == "blown_out"
    assert bonus_reasons(blown) == ["river_blown_out"]
    assert blown.total < clear.total
    assert blown.is_in_season


def test_coho_glass_calm_is_line_shy():
    result = score_species("coho", Sample(timestamp=at(2025, 9, 20)), ctx("coho", cloud_cover=10.0))
    assert bonus_reasons(result) == ["glass_calm"]


def test_coho_massive_bait_floors_total():
    context = ctx("coho", precipitation_24h=50.0, report_text="massive bait balls off the point")
    result = score_species("coho", Sample(timestamp=at(2025, 9, 20)), context)
    assert result.is_safe
    assert result.total == 8.0


def test_coho_tide_turn_window():
    sample = Sample(timestamp=at(2025, 9, 20))
    result = score_species("coho", sample, ctx("coho", minutes_to_slack=30), make_tide(speed=0.2))
    assert result.factors["currentFlow"].description == "tide_turn_window"
    assert result.debug["tide_turn"] is True


def test_coho_spring_is_out_of_season():
    result = score_species("coho", Sample(timestamp=at(2025, 3, 15)), ctx("coho"))
    assert result.factors
    assert not result.is_in_season


# ---- halibut ----

def test_halibut_short_period_chop_gatekeeper():
    sample = Sample(timestamp=at(2025, 7, 1), swell_height=2.0, swell_period=5.0)
    result = score_species("halibut", sample, ctx("halibut"))
    assert result.total == 0.0
    assert result.factors == {}
    assert not result.is_safe
    assert result.is_in_season
    assert "UNFISHABLE" in result.warnings[0]


def test_halibut_wind_against_tide_caps_anchor_safety():
    sample = Sample(timestamp=at(2025, 7, 1), wind_speed=30.0)
    result = score_species("halibut", sample, ctx("halibut", wind_direction=0.0, current_direction=180.0))
    assert result.factors["windTideSafety"].score == 0.4
    assert result.debug["anchor_safety_cap"] is True
    assert result.is_safe
    assert any("ANCHOR CAP" in w for w in result.warnings)


def test_halibut_slack_window_scores_best():
    sample = Sample(timestamp=at(2025, 7, 1))
    slack = score_species("halibut", sample, ctx("halibut", minutes_to_slack=20), make_tide(tidal_range=3.0))
    mid = score_species("halibut", sample, ctx("halibut", minutes_to_slack=200), make_tide(tidal_range=3.0))
    assert slack.factors["tidalSlope"].score == 1.0
    assert mid.factors["tidalSlope"].score == 0.3
    assert slack.total > mid.total
