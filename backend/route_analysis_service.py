"""
Route Analysis Service - Surface and slope summary of a whole route

Splits a route (an imported GPX track or the drawn route) into ~100 m legs,
matches each leg to the nearest scored segment and totals the distance per
surface. Reports:
- total / gravel / asphalt / unknown distance (km) and a per-surface km breakdown
- maximum slope and where it occurs (legs with elevation at either end)
- data coverage: share of legs matched to a segment

Surface rules for a matched leg:
- surface tag in the gravel family -> gravel, paved family -> asphalt, else unknown
- no surface tag: the segment score decides (>= 5 asphalt, <= 0 gravel, else unknown)
Unmatched legs count as unknown.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from bike_profiles import BikeType
from common.geo import distance_between, path_length_m
from elevation_service import has_elevation
from road_scoring_service import RoadScorer
from route_composer import SNAP_THRESHOLD_M, nearest_edge
from segment_models import GeoPoint, Segment
from slope_sampler import SlopeSampler

logger = logging.getLogger(__name__)

LEG_LENGTH_M = 100.0
SCORE_ASPHALT_THRESHOLD = 5
SCORE_GRAVEL_THRESHOLD = 0

GRAVEL_SURFACES = frozenset({
    "gravel", "fine_gravel", "pebblestone", "compacted",
    "ground", "earth", "dirt", "unpaved",
})
PAVED_SURFACES = frozenset({"asphalt", "paved", "concrete", "concrete:plates"})

GRAVEL = "gravel"
ASPHALT = "asphalt"
UNKNOWN = "unknown"


@dataclass(frozen=True)
class RouteLeg:
    start: GeoPoint
    end: GeoPoint
    distance_m: float

    @property
    def midpoint(self) -> GeoPoint:
        return GeoPoint((self.start.lat + self.end.lat) / 2.0, (self.start.lon + self.end.lon) / 2.0)

    def slope_percent(self) -> float:
        """Grade between the leg ends, -1 when neither end has an elevation."""
        return SlopeSampler.max_slope_percent([self.start, self.end])


@dataclass
class RouteAnalysis:
    bike_type: BikeType
    total_km: float = 0.0
    gravel_km: float = 0.0
    asphalt_km: float = 0.0
    unknown_km: float = 0.0
    surface_breakdown_km: Dict[str, float] = field(default_factory=dict)
    max_slope_percent: float = 0.0
    steepest_point: Optional[GeoPoint] = None
    has_elevation_data: bool = False
    legs_analyzed: int = 0
    legs_with_road_data: int = 0

    @property
    def gravel_percentage(self) -> float:
        return self.gravel_km / self.total_km * 100.0 if self.total_km > 0 else 0.0

    @property
    def asphalt_percentage(self) -> float:
        return self.asphalt_km / self.total_km * 100.0 if self.total_km > 0 else 0.0

    @property
    def data_coverage_percentage(self) -> float:
        if self.legs_analyzed == 0:
            return 0.0
        return self.legs_with_road_data / self.legs_analyzed * 100.0

    @property
    def steepest_location(self) -> str:
        if self.steepest_point is None:
            return "Unknown"
        return f"{self.steepest_point.lat:.6f}, {self.steepest_point.lon:.6f}"


def split_into_legs(points: Sequence[GeoPoint], leg_length_m: float = LEG_LENGTH_M) -> List[RouteLeg]:
    """Cut the route into legs of at least ``leg_length_m`` (the last one may be shorter)."""
    legs: List[RouteLeg] = []
    if len(points) < 2:
        return legs

    start = points[0]
    accumulated = 0.0
    last = len(points) - 1
    for i in range(1, len(points)):
        accumulated += distance_between(points[i - 1], points[i])
        if accumulated >= leg_length_m or i == last:
            legs.append(RouteLeg(start=start, end=points[i], distance_m=accumulated))
            start = points[i]
            accumulated = 0.0
    return legs


def surface_category(surface: str) -> str:
    key = surface.strip().lower()
    if key in GRAVEL_SURFACES:
        return GRAVEL
    if key in PAVED_SURFACES:
        return ASPHALT
    return UNKNOWN


def score_category(score: int) -> str:
    if score >= SCORE_ASPHALT_THRESHOLD:
        return ASPHALT
    if score <= SCORE_GRAVEL_THRESHOLD:
        return GRAVEL
    return UNKNOWN


class RouteAnalyzer:
    def __init__(
        self,
        scorer: RoadScorer,
        bike_type: BikeType,
        match_threshold_m: float = SNAP_THRESHOLD_M,
        leg_length_m: float = LEG_LENGTH_M,
    ):
        self.scorer = scorer
        self.bike_type = bike_type
        self.match_threshold_m = match_threshold_m
        self.leg_length_m = leg_length_m

    def match(self, leg: RouteLeg, segments: Sequence[Segment]) -> Optional[Segment]:
        """Segment whose nearest edge lies within the match threshold of the leg midpoint."""
        edge = nearest_edge(leg.midpoint, segments)
        if edge is None or edge.distance_m > self.match_threshold_m:
            return None
        return edge.segment

    def analyze(self, points: Sequence[GeoPoint], segments: Sequence[Segment]) -> RouteAnalysis:
        analysis = RouteAnalysis(bike_type=self.bike_type)
        if len(points) < 2:
            return analysis

        analysis.has_elevation_data = has_elevation(points)
        legs = split_into_legs(points, self.leg_length_m)
        analysis.legs_analyzed = len(legs)

        totals = {GRAVEL: 0.0, ASPHALT: 0.0, UNKNOWN: 0.0}
        breakdown: Dict[str, float] = {}

        for leg in legs:
            slope = leg.slope_percent()
            if slope > analysis.max_slope_percent:
                analysis.max_slope_percent = slope
                analysis.steepest_point = leg.start

            segment = self.match(leg, segments)
            if segment is None:
                totals[UNKNOWN] += leg.distance_m
                breakdown[UNKNOWN] = breakdown.get(UNKNOWN, 0.0) + leg.distance_m
                continue

            analysis.legs_with_road_data += 1
            surface = (segment.tags.get("surface") or "").strip()
            if surface:
                category = surface_category(surface)
                key = surface.lower()
            else:
                score = self.scorer.score(segment.tags, segment.points, slope if slope >= 0 else None)
                category = score_category(score)
                key = f"scored_{category}"
            totals[category] += leg.distance_m
            breakdown[key] = breakdown.get(key, 0.0) + leg.distance_m

        analysis.total_km = path_length_m(points) / 1000.0
        analysis.gravel_km = totals[GRAVEL] / 1000.0
        analysis.asphalt_km = totals[ASPHALT] / 1000.0
        analysis.unknown_km = totals[UNKNOWN] / 1000.0
        analysis.surface_breakdown_km = {k: v / 1000.0 for k, v in breakdown.items()}

        logger.info(
            f"Route analysis ({self.bike_type.value}): {analysis.total_km:.2f} km, "
            f"{analysis.gravel_percentage:.0f}% gravel, {analysis.asphalt_percentage:.0f}% asphalt, "
            f"coverage {analysis.data_coverage_percentage:.0f}%"
        )
        return analysis
