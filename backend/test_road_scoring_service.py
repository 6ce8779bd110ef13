"""
Tests for Road Scoring Service

Covers per-criterion sub-scores, the slope paths, the weather stage and the
never-negative clamp.
"""

import pytest

from bike_profiles import BikeType, BikeTypeManager, weights_for
from common.criteria import SLOPE, SURFACE, TRACKTYPE
from road_scoring_service import (
    RoadScorer,
    breakdown,
    computed_slope_score,
    incline_tag_score,
    length_score,
    score,
    slope_score_from_percent,
    surface_score,
    width_score,
)
from segment_models import GeoPoint, Segment
from settings_store import InMemorySettingsStore
from weather_overlay_service import DailyPrecipitation, build_condition

# ~100 m apart: neither short nor long
MEDIUM_WAY = [GeoPoint(50.8700, 4.7000), GeoPoint(50.8709, 4.7000)]
LONG_WAY = [GeoPoint(50.8700, 4.7000), GeoPoint(50.8720, 4.7000), GeoPoint(50.8736, 4.7000)]
SHORT_WAY = [GeoPoint(50.8700, 4.7000), GeoPoint(50.8703, 4.7000)]

GRAVEL = weights_for(BikeType.GRAVEL_BIKE)
GRAVEL_TOURING = weights_for(BikeType.GRAVEL_BIKEPACKING)


def _muddy(rainy_days=3):
    daily = [DailyPrecipitation(f"2024-03-0{i + 1}", 10.0 if i < rainy_days else 0.0) for i in range(7)]
    return build_condition(daily)


class TestSpecExamples:
    def test_gravel_track_example(self):
        tags = {"surface": "gravel", "tracktype": "grade2", "bicycle": "yes"}
        weights = {SURFACE: 10, TRACKTYPE: 10, "bicycle": 0}
        result = breakdown(tags, MEDIUM_WAY, weights)
        assert result.subscores[SURFACE] == 20
        assert result.subscores[TRACKTYPE] == 10
        assert result.subscores["bicycle"] == 0
        assert result.score == 30

    def test_steep_incline_tag_clamps_to_zero(self):
        tags = {"surface": "gravel", "tracktype": "grade2", "incline": "15%"}
        weights = dict(GRAVEL, slope=10)
        result = breakdown(tags, LONG_WAY, weights)
        assert result.subscores[SLOPE] == -5000
        assert result.slope_source == "tag"
        assert result.score == 0


class TestSurface:
    @pytest.mark.parametrize("prefers_paved", [True, False], ids=["paved", "unpaved"])
    def test_unknown_or_missing_surface_is_neutral(self, prefers_paved):
        assert surface_score(None, 10, prefers_paved) == 0
        assert surface_score("sett", 10, prefers_paved) == 0

    def test_paved_profile_ordering(self):
        values = [surface_score(s, 10, True) for s in ("asphalt", "compacted", "gravel", "dirt")]
        assert values == sorted(values, reverse=True)
        assert values == [30, 10, -10, -30]

    def test_unpaved_profile_ordering(self):
        asphalt = surface_score("asphalt", 10, False)
        assert surface_score("gravel", 10, False) >= asphalt
        assert surface_score("dirt", 10, False) >= asphalt
        assert asphalt == -40

    def test_tag_value_is_normalised(self):
        assert surface_score("  Gravel ", 10, False) == 20


class TestWidthAndLength:
    @pytest.mark.parametrize("width,expected", [
        ("3.5 m", 10),
        ("3", 10),
        ("2", 0),
        ("1", -10),
        ("wide", 0),
        ("1.2.3", 0),
        (None, 0),
    ], ids=["wide-units", "exactly-3", "medium", "narrow", "text", "garbage", "missing"])
    def test_width(self, width, expected):
        assert width_score(width, 10) == expected

    @pytest.mark.parametrize("points,expected", [
        (LONG_WAY, 10),
        (MEDIUM_WAY, 0),
        (SHORT_WAY, -10),
        ([GeoPoint(50.87, 4.70)], 0),
    ], ids=["long", "medium", "short", "single-point"])
    def test_length(self, points, expected):
        assert length_score(points, 10) == expected


class TestSlope:
    @pytest.mark.parametrize("slope,expected", [
        (0.0, 0),
        (11.9, 0),
        (12.0, -2500),
        (14.9, -2500),
        (15.0, -5000),
        (19.9, -5000),
        (20.0, -10000),
        (35.0, -10000),
        (-15.0, -5000),
    ])
    def test_brackets(self, slope, expected):
        assert slope_score_from_percent(slope, 10) == expected

    def test_bracket_monotonicity(self):
        slopes = [0, 5, 11.99, 12, 13, 15, 17, 20, 40]
        magnitudes = [abs(slope_score_from_percent(s, 10)) for s in slopes]
        assert magnitudes == sorted(magnitudes)

    @pytest.mark.parametrize("incline,expected", [
        ("steep", -2000),
        ("up", -500),
        ("down", -500),
        ("Steep", -2000),
        ("8%", 0),
        ("-12%", -2500),
        ("25%", -10000),
        ("1.2.3", 0),
        ("flat", 0),
    ])
    def test_incline_tag(self, incline, expected):
        assert incline_tag_score(incline, 10) == expected

    def test_zero_weight_ignores_incline(self):
        assert incline_tag_score("steep", 0) == 0

    def test_negative_computed_slope_contributes_nothing(self):
        assert computed_slope_score(-1.0, 10) == 0

    def test_computed_slope_replaces_tag(self):
        tags = {"surface": "gravel", "incline": "25%"}
        result = breakdown(tags, MEDIUM_WAY, GRAVEL_TOURING, computed_slope=5.0, penalize_slope=True)
        assert result.slope_source == "computed"
        assert result.subscores[SLOPE] == 0
        assert result.score == 20

    def test_computed_slope_ignored_without_slope_penalties(self):
        tags = {"surface": "gravel"}
        assert score(tags, MEDIUM_WAY, GRAVEL_TOURING, computed_slope=16.0) == 20

    def test_computed_slope_penalty(self):
        tags = {"surface": "gravel"}
        result = breakdown(tags, MEDIUM_WAY, GRAVEL_TOURING, computed_slope=16.0, penalize_slope=True)
        assert result.subscores[SLOPE] == -5000
        assert result.score == 0

    def test_no_slope_information(self):
        result = breakdown({"surface": "gravel"}, MEDIUM_WAY, GRAVEL)
        assert result.slope_source == "none"
        assert result.subscores[SLOPE] == 0


class TestWeatherStage:
    def test_gravel_penalty(self):
        tags = {"surface": "gravel"}
        assert score(tags, MEDIUM_WAY, GRAVEL, weather=_muddy(3)) == 10

    def test_dirt_penalty_clamps(self):
        tags = {"surface": "dirt"}
        assert score(tags, MEDIUM_WAY, GRAVEL, weather=_muddy(3)) == 0

    def test_paved_not_penalised(self):
        tags = {"surface": "asphalt", "smoothness": "good"}
        weights = weights_for(BikeType.RACE_ROAD)
        dry = score(tags, MEDIUM_WAY, weights, prefers_paved=True)
        wet = score(tags, MEDIUM_WAY, weights, weather=_muddy(5), prefers_paved=True)
        assert dry == wet == 100

    def test_disabled_weather_has_no_effect(self):
        tags = {"surface": "gravel"}
        assert score(tags, MEDIUM_WAY, GRAVEL, weather=_muddy(4), weather_enabled=False) == 20

    def test_dry_weather_has_no_effect(self):
        tags = {"surface": "dirt"}
        assert score(tags, MEDIUM_WAY, GRAVEL, weather=_muddy(1)) == 10

    def test_breakdown_reports_penalty(self):
        result = breakdown({"surface": "gravel"}, MEDIUM_WAY, GRAVEL, weather=_muddy(3))
        assert result.weather_penalty == -10
        assert any("weather" in line for line in result.explanations)


class TestClamp:
    @pytest.mark.parametrize("bike_type", list(BikeType), ids=lambda b: b.value)
    @pytest.mark.parametrize("tags", [
        {"surface": "asphalt", "tracktype": "grade1", "bicycle": "no"},
        {"surface": "mud", "width": "0.5", "smoothness": "bad", "incline": "steep"},
        {"surface": "dirt", "incline": "30%"},
        {},
    ], ids=["paved-track", "awful", "steep-dirt", "no-tags"])
    def test_score_never_negative(self, bike_type, tags):
        weights = weights_for(bike_type)
        for points in (SHORT_WAY, MEDIUM_WAY):
            for prefers_paved in (True, False):
                result = score(
                    tags, points, weights, weather=_muddy(6),
                    prefers_paved=prefers_paved, penalize_slope=True,
                )
                assert result >= 0

    def test_missing_weights_use_fallback(self):
        # fallback surface weight is 3
        assert score({"surface": "gravel"}, MEDIUM_WAY, {}) == 6


class TestRoadScorer:
    def test_from_manager_uses_profile(self):
        manager = BikeTypeManager(InMemorySettingsStore())
        manager.set_bike_type(BikeType.RACE_ROAD)
        scorer = RoadScorer.from_manager(manager)
        assert scorer.prefers_paved is True
        assert scorer.penalize_slope is False
        assert scorer.score({"surface": "asphalt"}, MEDIUM_WAY) == 90

    def test_score_segment_uses_computed_slope_only_when_present(self):
        scorer = RoadScorer(GRAVEL_TOURING, penalize_slope=True)
        segment = Segment(points=list(MEDIUM_WAY), tags={"surface": "gravel", "incline": "15%"})
        assert scorer.score_segment(segment) == 0
        segment.max_slope_percent = 3.0
        assert scorer.score_segment(segment) == 20

    def test_deterministic(self):
        scorer = RoadScorer(GRAVEL, weather=_muddy(2))
        tags = {"surface": "compacted", "tracktype": "grade3"}
        assert scorer.score(tags, LONG_WAY) == scorer.score(tags, LONG_WAY)
