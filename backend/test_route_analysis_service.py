"""
Tests for Route Analysis Service

Tests leg splitting, surface classification, segment matching and the
slope summary of a whole route.
"""

import pytest

from bike_profiles import BikeType
from common.geo import path_length_m
from road_scoring_service import RoadScorer
from route_analysis_service import (
    RouteAnalyzer,
    score_category,
    split_into_legs,
    surface_category,
)
from segment_models import GeoPoint, Segment

# Five points 0.0009 deg (~100 m) apart going north
ROUTE = [GeoPoint(50.8700 + i * 0.0009, 4.7000) for i in range(5)]

GRAVEL_HALF = Segment(
    points=[GeoPoint(50.8700, 4.7000), GeoPoint(50.8718, 4.7000)],
    tags={"surface": "gravel"},
)
ASPHALT_HALF = Segment(
    points=[GeoPoint(50.8718, 4.7000), GeoPoint(50.8736, 4.7000)],
    tags={"surface": "asphalt"},
)


def _analyzer(scorer=None):
    return RouteAnalyzer(scorer or RoadScorer({}), BikeType.GRAVEL_BIKE)


@pytest.mark.parametrize("surface,category", [
    ("gravel", "gravel"),
    ("fine_gravel", "gravel"),
    ("Dirt", "gravel"),
    (" asphalt ", "asphalt"),
    ("concrete:plates", "asphalt"),
    ("sett", "unknown"),
])
def test_surface_category(surface, category):
    assert surface_category(surface) == category


@pytest.mark.parametrize("score,category", [
    (30, "asphalt"),
    (5, "asphalt"),
    (4, "unknown"),
    (1, "unknown"),
    (0, "gravel"),
])
def test_score_category(score, category):
    assert score_category(score) == category


class TestSplitIntoLegs:
    def test_hundred_meter_steps(self):
        legs = split_into_legs(ROUTE)
        assert len(legs) == 4
        assert legs[0].start == ROUTE[0] and legs[-1].end == ROUTE[-1]
        assert sum(leg.distance_m for leg in legs) == pytest.approx(path_length_m(ROUTE))

    def test_short_steps_accumulate(self):
        # ~44 m steps: legs close after every third step, plus a short tail
        points = [GeoPoint(50.8700 + i * 0.0004, 4.7000) for i in range(11)]
        legs = split_into_legs(points)
        assert [leg.end for leg in legs] == [points[3], points[6], points[9], points[10]]
        assert legs[-1].distance_m < 100

    @pytest.mark.parametrize("points", [[], [GeoPoint(50.87, 4.70)]], ids=["empty", "single"])
    def test_too_few_points(self, points):
        assert split_into_legs(points) == []


class TestRouteAnalyzer:
    def test_mixed_route(self):
        analysis = _analyzer().analyze(ROUTE, [GRAVEL_HALF, ASPHALT_HALF])

        assert analysis.bike_type == BikeType.GRAVEL_BIKE
        assert analysis.total_km == pytest.approx(path_length_m(ROUTE) / 1000.0)
        assert analysis.gravel_km == pytest.approx(analysis.total_km / 2)
        assert analysis.asphalt_km == pytest.approx(analysis.total_km / 2)
        assert analysis.unknown_km == 0.0
        assert set(analysis.surface_breakdown_km) == {"gravel", "asphalt"}
        assert analysis.gravel_percentage == pytest.approx(50.0)
        assert analysis.legs_analyzed == 4
        assert analysis.data_coverage_percentage == 100.0

    def test_unmatched_route_is_unknown(self):
        far_away = [GeoPoint(p.lat, p.lon + 0.01) for p in ROUTE]
        analysis = _analyzer().analyze(far_away, [GRAVEL_HALF, ASPHALT_HALF])

        assert analysis.unknown_km == pytest.approx(analysis.total_km)
        assert analysis.surface_breakdown_km == {"unknown": pytest.approx(analysis.total_km)}
        assert analysis.legs_with_road_data == 0
        assert analysis.data_coverage_percentage == 0.0

    @pytest.mark.parametrize("tags,key", [
        ({"tracktype": "grade2"}, "scored_asphalt"),
        ({"tracktype": "grade1"}, "scored_gravel"),
        ({"tracktype": "grade2", "smoothness": "bad"}, "scored_unknown"),
    ], ids=["high-score", "zero-score", "middle-score"])
    def test_untagged_surface_uses_score(self, tags, key):
        # ~200 m way, so the length criterion stays neutral
        segment = Segment(points=[GeoPoint(50.8700, 4.7000), GeoPoint(50.8718, 4.7000)], tags=tags)
        scorer = RoadScorer({"tracktype": 10, "smoothness": 7})
        analysis = _analyzer(scorer).analyze(ROUTE[:3], [segment])

        assert list(analysis.surface_breakdown_km) == [key]
        assert analysis.legs_with_road_data == 2

    def test_steepest_leg(self):
        elevations = [30.0, 30.0, 40.0, 40.0, 40.0]
        route = [p.with_elevation(e) for p, e in zip(ROUTE, elevations)]
        analysis = _analyzer().analyze(route, [GRAVEL_HALF, ASPHALT_HALF])

        assert analysis.has_elevation_data is True
        assert analysis.max_slope_percent == pytest.approx(10.0, rel=1e-2)
        assert analysis.steepest_point == route[1]
        assert analysis.steepest_location == "50.870900, 4.700000"

    def test_flat_route_without_elevation(self):
        analysis = _analyzer().analyze(ROUTE, [])
        assert analysis.has_elevation_data is False
        assert analysis.max_slope_percent == 0.0
        assert analysis.steepest_point is None
        assert analysis.steepest_location == "Unknown"

    def test_single_point_route(self):
        analysis = _analyzer().analyze([ROUTE[0]], [GRAVEL_HALF])
        assert analysis.total_km == 0.0
        assert analysis.legs_analyzed == 0
        assert analysis.data_coverage_percentage == 0.0
