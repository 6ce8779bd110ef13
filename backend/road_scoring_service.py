"""
Road Scoring Service - Bike-type-aware segment scoring (Pure & Deterministic)

Scores one OSM way from its tags and geometry. Each criterion contributes
``weight x category multiplier``; the total never drops below zero.

Function:
  score(tags, points, weights, computed_slope=None, weather=None, ...) -> int

Pipeline (each stage is a pure function of (score, context)):
  1. tag stage      - surface, smoothness, tracktype, bicycle, width, length
  2. slope stage    - incline tag hint, or the computed slope when the profile
                      penalises slopes and elevation sampling produced one;
                      total clamped to >= 0
  3. weather stage  - mud penalty on loose surfaces when recent rain makes
                      them muddy; total re-clamped to >= 0

Surface tables:
- Paved-preferring profiles reward asphalt/concrete and punish dirt.
- Unpaved-preferring profiles reward the gravel family and punish pavement.

Slope brackets (|slope %|): [12,15) -250x, [15,20) -500x, >=20 -1000x.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple

from common.criteria import (
    BICYCLE,
    LENGTH,
    SLOPE,
    SMOOTHNESS,
    SURFACE,
    TRACKTYPE,
    WIDTH,
    complete_weights,
)
from common.geo import path_length_m
from segment_models import GeoPoint
from weather_overlay_service import (
    DEFAULT_PENALTY_CONFIG,
    WeatherCondition,
    WeatherPenaltyConfig,
    weather_penalty,
)

logger = logging.getLogger(__name__)

PAVED_SURFACE_MULTIPLIERS = {
    "asphalt": 3,
    "paved": 3,
    "concrete": 3,
    "concrete:plates": 3,
    "compacted": 1,
    "fine_gravel": 1,
    "gravel": -1,
    "pebblestone": -1,
    "dirt": -3,
    "earth": -3,
    "ground": -3,
    "unpaved": -3,
}

UNPAVED_SURFACE_MULTIPLIERS = {
    "gravel": 2,
    "fine_gravel": 2,
    "pebblestone": 2,
    "compacted": 2,
    "ground": 1,
    "earth": 1,
    "dirt": 1,
    "unpaved": 1,
    "asphalt": -4,
    "paved": -4,
    "concrete": -4,
    "concrete:plates": -4,
}

SMOOTHNESS_MULTIPLIERS = {"good": 1, "bad": -1}
TRACKTYPE_MULTIPLIERS = {"grade2": 1, "grade3": 1, "grade1": -1}
BICYCLE_MULTIPLIERS = {"yes": 1, "designated": 1, "no": -2}
INCLINE_TEXT_MULTIPLIERS = {"steep": -200, "up": -50, "down": -50}

WIDE_WAY_M = 3.0
NARROW_WAY_M = 1.5
LONG_WAY_M = 300.0
SHORT_WAY_M = 50.0

# (lower bound %, multiplier), checked top-down
SLOPE_BRACKETS = (
    (20.0, -1000),
    (15.0, -500),
    (12.0, -250),
)

SLOPE_SOURCE_NONE = "none"
SLOPE_SOURCE_TAG = "tag"
SLOPE_SOURCE_COMPUTED = "computed"


def _lookup(table: Mapping[str, int], value: Optional[str], weight: int) -> int:
    if value is None:
        return 0
    return table.get(value.strip().lower(), 0) * weight


def surface_score(surface: Optional[str], weight: int, prefers_paved: bool) -> int:
    table = PAVED_SURFACE_MULTIPLIERS if prefers_paved else UNPAVED_SURFACE_MULTIPLIERS
    return _lookup(table, surface, weight)


def smoothness_score(smoothness: Optional[str], weight: int) -> int:
    return _lookup(SMOOTHNESS_MULTIPLIERS, smoothness, weight)


def tracktype_score(tracktype: Optional[str], weight: int) -> int:
    return _lookup(TRACKTYPE_MULTIPLIERS, tracktype, weight)


def bicycle_score(bicycle: Optional[str], weight: int) -> int:
    return _lookup(BICYCLE_MULTIPLIERS, bicycle, weight)


def width_score(width: Optional[str], weight: int) -> int:
    if width is None:
        return 0
    try:
        meters = float(re.sub(r"[^0-9.]", "", width))
    except ValueError:
        return 0
    if meters >= WIDE_WAY_M:
        return weight
    if meters < NARROW_WAY_M:
        return -weight
    return 0


def length_score(points: Sequence[GeoPoint], weight: int) -> int:
    if points is None or len(points) < 2:
        return 0
    length = path_length_m(points)
    if length >= LONG_WAY_M:
        return weight
    if length < SHORT_WAY_M:
        return -weight
    return 0


def slope_score_from_percent(slope_percent: float, weight: int) -> int:
    """Bracket penalty on the absolute slope; gentle slopes cost nothing."""
    abs_slope = abs(slope_percent)
    for lower_bound, multiplier in SLOPE_BRACKETS:
        if abs_slope >= lower_bound:
            return multiplier * weight
    return 0


def incline_tag_score(incline: Optional[str], weight: int) -> int:
    """Rough slope hint from an OSM ``incline`` tag ("8%", "-12%", "steep", "up")."""
    if weight == 0 or incline is None:
        return 0

    value = incline.strip().lower()
    cleaned = re.sub(r"[^0-9.\-]", "", value)
    if not cleaned:
        return INCLINE_TEXT_MULTIPLIERS.get(value, 0) * weight

    try:
        slope_percent = float(cleaned)
    except ValueError:
        logger.debug(f"Could not parse incline: {incline}")
        return 0
    return slope_score_from_percent(slope_percent, weight)


def computed_slope_score(max_slope_percent: float, weight: int) -> int:
    if max_slope_percent < 0:
        return 0
    return slope_score_from_percent(max_slope_percent, weight)


@dataclass(frozen=True)
class ScoringContext:
    """Everything a pipeline stage may look at."""
    tags: Mapping[str, str]
    points: Sequence[GeoPoint]
    weights: Mapping[str, int]
    prefers_paved: bool = False
    penalize_slope: bool = False
    computed_slope: Optional[float] = None
    weather: Optional[WeatherCondition] = None
    weather_enabled: bool = True
    penalty_config: WeatherPenaltyConfig = DEFAULT_PENALTY_CONFIG

    @property
    def uses_computed_slope(self) -> bool:
        return self.computed_slope is not None and self.penalize_slope


ScoreStage = Callable[[int, ScoringContext], int]


def tag_subscores(ctx: ScoringContext) -> Dict[str, int]:
    weights = ctx.weights
    tags = ctx.tags
    return {
        SURFACE: surface_score(tags.get(SURFACE), weights[SURFACE], ctx.prefers_paved),
        SMOOTHNESS: smoothness_score(tags.get(SMOOTHNESS), weights[SMOOTHNESS]),
        TRACKTYPE: tracktype_score(tags.get(TRACKTYPE), weights[TRACKTYPE]),
        BICYCLE: bicycle_score(tags.get(BICYCLE), weights[BICYCLE]),
        WIDTH: width_score(tags.get(WIDTH), weights[WIDTH]),
        LENGTH: length_score(ctx.points, weights[LENGTH]),
    }


def slope_subscore(ctx: ScoringContext) -> Tuple[int, str]:
    """Slope contribution and where it came from."""
    weight = ctx.weights[SLOPE]
    if ctx.uses_computed_slope:
        return computed_slope_score(ctx.computed_slope, weight), SLOPE_SOURCE_COMPUTED
    incline = ctx.tags.get("incline")
    if incline is None:
        return 0, SLOPE_SOURCE_NONE
    return incline_tag_score(incline, weight), SLOPE_SOURCE_TAG


def weather_adjustment(ctx: ScoringContext) -> int:
    if not ctx.weather_enabled or ctx.weather is None or not ctx.weather.is_muddy:
        return 0
    return weather_penalty(ctx.tags.get(SURFACE), ctx.weather, ctx.penalty_config)


def tag_stage(score: int, ctx: ScoringContext) -> int:
    return score + sum(tag_subscores(ctx).values())


def slope_stage(score: int, ctx: ScoringContext) -> int:
    slope, _ = slope_subscore(ctx)
    return max(0, score + slope)


def weather_stage(score: int, ctx: ScoringContext) -> int:
    penalty = weather_adjustment(ctx)
    if penalty == 0:
        return score
    logger.debug(
        f"Weather penalty for {ctx.tags.get(SURFACE)}: {penalty} "
        f"(rainy days: {ctx.weather.rainy_days_count})"
    )
    return max(0, score + penalty)


DEFAULT_PIPELINE: Tuple[ScoreStage, ...] = (tag_stage, slope_stage, weather_stage)


def run_pipeline(ctx: ScoringContext, stages: Sequence[ScoreStage] = DEFAULT_PIPELINE) -> int:
    result = 0
    for stage in stages:
        result = stage(result, ctx)
    return max(0, result)


def _context(
    tags: Mapping[str, str],
    points: Sequence[GeoPoint],
    weights: Mapping[str, int],
    computed_slope: Optional[float],
    weather: Optional[WeatherCondition],
    prefers_paved: bool,
    penalize_slope: bool,
    weather_enabled: bool,
    penalty_config: WeatherPenaltyConfig,
) -> ScoringContext:
    return ScoringContext(
        tags=tags or {},
        points=points or [],
        weights=complete_weights(dict(weights or {})),
        prefers_paved=prefers_paved,
        penalize_slope=penalize_slope,
        computed_slope=computed_slope,
        weather=weather,
        weather_enabled=weather_enabled,
        penalty_config=penalty_config,
    )


def score(
    tags: Mapping[str, str],
    points: Sequence[GeoPoint],
    weights: Mapping[str, int],
    computed_slope: Optional[float] = None,
    weather: Optional[WeatherCondition] = None,
    *,
    prefers_paved: bool = False,
    penalize_slope: bool = False,
    weather_enabled: bool = True,
    penalty_config: WeatherPenaltyConfig = DEFAULT_PENALTY_CONFIG,
) -> int:
    """Compute a segment score (always >= 0).

    Missing weights take their fallback value. ``computed_slope`` replaces
    the incline-tag slope only when ``penalize_slope`` is set.
    """
    ctx = _context(
        tags, points, weights, computed_slope, weather,
        prefers_paved, penalize_slope, weather_enabled, penalty_config,
    )
    return run_pipeline(ctx)


@dataclass(frozen=True)
class ScoreBreakdown:
    """Per-criterion contributions behind a score."""
    subscores: Dict[str, int]
    slope_source: str
    weather_penalty: int
    score: int
    explanations: Tuple[str, ...] = field(default_factory=tuple)


def breakdown(
    tags: Mapping[str, str],
    points: Sequence[GeoPoint],
    weights: Mapping[str, int],
    computed_slope: Optional[float] = None,
    weather: Optional[WeatherCondition] = None,
    *,
    prefers_paved: bool = False,
    penalize_slope: bool = False,
    weather_enabled: bool = True,
    penalty_config: WeatherPenaltyConfig = DEFAULT_PENALTY_CONFIG,
) -> ScoreBreakdown:
    ctx = _context(
        tags, points, weights, computed_slope, weather,
        prefers_paved, penalize_slope, weather_enabled, penalty_config,
    )
    subscores = tag_subscores(ctx)
    slope, source = slope_subscore(ctx)
    subscores[SLOPE] = slope
    penalty = weather_adjustment(ctx)

    explanations = []
    for name, value in subscores.items():
        if value > 0:
            explanations.append(f"{name} +{value}")
        elif value < 0:
            explanations.append(f"{name} {value}")
    if penalty < 0:
        explanations.append(f"weather {penalty} ({weather.rainy_days_count} rainy days)")
    if not explanations:
        explanations.append("No scoring tags present")

    return ScoreBreakdown(
        subscores=subscores,
        slope_source=source,
        weather_penalty=penalty,
        score=run_pipeline(ctx),
        explanations=tuple(explanations),
    )


class RoadScorer:
    """
    Scoring configuration for one session: a profile's weights and flags plus
    the current weather condition.
    """

    def __init__(
        self,
        weights: Mapping[str, int],
        prefers_paved: bool = False,
        penalize_slope: bool = False,
        weather: Optional[WeatherCondition] = None,
        weather_enabled: bool = True,
        penalty_config: WeatherPenaltyConfig = DEFAULT_PENALTY_CONFIG,
    ):
        self.weights = complete_weights(dict(weights))
        self.prefers_paved = prefers_paved
        self.penalize_slope = penalize_slope
        self.weather = weather
        self.weather_enabled = weather_enabled
        self.penalty_config = penalty_config

    @classmethod
    def from_manager(cls, manager, weather: Optional[WeatherCondition] = None, weather_enabled: bool = True) -> "RoadScorer":
        return cls(
            weights=manager.current_weights(),
            prefers_paved=manager.prefers_paved_surface(),
            penalize_slope=manager.should_penalize_slope(),
            weather=weather,
            weather_enabled=weather_enabled,
        )

    def score(
        self,
        tags: Mapping[str, str],
        points: Sequence[GeoPoint],
        computed_slope: Optional[float] = None,
    ) -> int:
        return score(
            tags,
            points,
            self.weights,
            computed_slope,
            self.weather,
            prefers_paved=self.prefers_paved,
            penalize_slope=self.penalize_slope,
            weather_enabled=self.weather_enabled,
            penalty_config=self.penalty_config,
        )

    def breakdown(
        self,
        tags: Mapping[str, str],
        points: Sequence[GeoPoint],
        computed_slope: Optional[float] = None,
    ) -> ScoreBreakdown:
        return breakdown(
            tags,
            points,
            self.weights,
            computed_slope,
            self.weather,
            prefers_paved=self.prefers_paved,
            penalize_slope=self.penalize_slope,
            weather_enabled=self.weather_enabled,
            penalty_config=self.penalty_config,
        )

    def score_segment(self, segment) -> int:
        """Score a Segment, using its computed slope when it has one."""
        computed = segment.max_slope_percent if segment.has_slope_data else None
        return self.score(segment.tags, segment.points, computed)
