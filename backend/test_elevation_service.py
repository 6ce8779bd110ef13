import pytest

from bike_profiles import BikeType, weights_for
from elevation_service import add_elevation_to_route, enrich_segments
from road_scoring_service import RoadScorer
from segment_models import SLOPE_NOT_COMPUTED, GeoPoint, Segment

STEP_DEG = 0.0009  # ~100 m


class RampElevationProvider:
    """Elevation rises 13.5 m per ~100 m north."""

    def __init__(self, per_degree=15000.0, fail=False):
        self.per_degree = per_degree
        self.fail = fail
        self.calls = []

    async def get_elevations(self, points):
        self.calls.append(list(points))
        if self.fail:
            return [None] * len(points)
        return [30.0 + (p.lat - 50.87) * self.per_degree for p in points]


def _segment(count=5, tags=None):
    points = [GeoPoint(50.87 + i * STEP_DEG, 4.70) for i in range(count)]
    return Segment(points=points, tags=tags or {"surface": "gravel"}, score=30)


def _touring_scorer():
    return RoadScorer(weights_for(BikeType.GRAVEL_BIKEPACKING), penalize_slope=True)


class TestEnrichSegments:
    @pytest.mark.asyncio
    async def test_adds_slope_and_rescores_copy(self):
        original = _segment()
        provider = RampElevationProvider()

        [enriched] = await enrich_segments([original], provider, _touring_scorer())

        assert enriched.max_slope_percent == pytest.approx(13.5, rel=1e-2)
        assert all(p.elevation > 0 for p in enriched.points)
        # gravel 20 + long way 10 - steep 2500, clamped
        assert enriched.score == 0
        assert original.max_slope_percent == SLOPE_NOT_COMPUTED
        assert all(p.elevation == 0.0 for p in original.points)
        assert original.score == 30

    @pytest.mark.asyncio
    async def test_profile_without_slope_penalty_keeps_tag_score(self):
        scorer = RoadScorer(weights_for(BikeType.GRAVEL_BIKE))
        [enriched] = await enrich_segments([_segment()], RampElevationProvider(), scorer)
        assert enriched.has_slope_data
        assert enriched.score == 30

    @pytest.mark.asyncio
    async def test_single_batched_lookup_with_bounded_samples(self):
        long_segment = _segment(count=60)
        provider = RampElevationProvider()
        await enrich_segments([_segment(), long_segment], provider, _touring_scorer())
        assert len(provider.calls) == 1
        assert len(provider.calls[0]) <= 5 + 10

    @pytest.mark.asyncio
    async def test_failed_lookup_leaves_sentinel(self):
        provider = RampElevationProvider(fail=True)
        [enriched] = await enrich_segments([_segment()], provider, _touring_scorer())
        assert enriched.max_slope_percent == SLOPE_NOT_COMPUTED
        assert all(p.elevation == 0.0 for p in enriched.points)
        assert enriched.score == 30

    @pytest.mark.asyncio
    async def test_short_response_is_padded(self):
        class ShortProvider:
            async def get_elevations(self, points):
                return [50.0]

        [enriched] = await enrich_segments([_segment()], ShortProvider(), _touring_scorer())
        assert enriched.max_slope_percent == SLOPE_NOT_COMPUTED

    @pytest.mark.asyncio
    async def test_no_segments(self):
        provider = RampElevationProvider()
        assert await enrich_segments([], provider, _touring_scorer()) == []
        assert provider.calls == []


class TestAddElevationToRoute:
    @pytest.mark.asyncio
    async def test_existing_elevation_kept(self):
        route = [GeoPoint(50.87, 4.70, 12.0), GeoPoint(50.871, 4.70)]
        provider = RampElevationProvider()
        assert await add_elevation_to_route(route, provider) == route
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_missing_elevation_interpolated(self):
        route = _segment(count=12).points
        provider = RampElevationProvider()
        result = await add_elevation_to_route(route, provider)
        assert len(result) == len(route)
        assert [(p.lat, p.lon) for p in result] == [(p.lat, p.lon) for p in route]
        assert result[0].elevation == pytest.approx(30.0)
        assert all(p.elevation > 0 for p in result)
        assert len(provider.calls[0]) <= 100

    @pytest.mark.asyncio
    async def test_lookup_failure_returns_route_unchanged(self):
        route = _segment(count=4).points
        result = await add_elevation_to_route(route, RampElevationProvider(fail=True))
        assert result == route
