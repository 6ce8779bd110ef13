"""
Elevation enrichment for segments and drawn routes.

Segments: sample each way, look the samples up, derive the maximum slope from
the samples that came back with an elevation, write interpolated elevations
onto a copy of the way and rescore it.

Routes: keep elevations already present; otherwise sample, look up and
interpolate so the exported track carries heights.
"""

import logging
from typing import List, Optional, Sequence

from providers.contracts import ElevationProvider
from road_scoring_service import RoadScorer
from segment_models import GeoPoint, Segment
from slope_sampler import (
    ROUTE_MAX_SAMPLES,
    ROUTE_SAMPLE_INTERVAL_M,
    SEGMENT_MAX_SAMPLES,
    SEGMENT_SAMPLE_INTERVAL_M,
    SlopeSampler,
)

logger = logging.getLogger(__name__)


def _attach(samples: Sequence[GeoPoint], elevations: Sequence[Optional[float]]) -> List[GeoPoint]:
    """Samples that received an elevation, with it set."""
    return [
        point.with_elevation(elevation)
        for point, elevation in zip(samples, elevations)
        if elevation is not None
    ]


async def enrich_segments(
    segments: Sequence[Segment],
    provider: ElevationProvider,
    scorer: RoadScorer,
    interval_m: float = SEGMENT_SAMPLE_INTERVAL_M,
    max_samples: int = SEGMENT_MAX_SAMPLES,
) -> List[Segment]:
    """
    Add slope data to segments with a single batched elevation lookup.

    The input segments are not modified; enriched copies are returned in the
    same order. Segments whose samples got no elevation keep the -1 slope
    sentinel and their tag-based score.
    """
    if not segments:
        return []

    sample_sets = [SlopeSampler.sample(s.points, interval_m, max_samples) for s in segments]
    all_samples = [point for samples in sample_sets for point in samples]
    logger.info(f"Fetching elevation for {len(all_samples)} sample points across {len(segments)} segments")

    elevations = await provider.get_elevations(all_samples)
    if len(elevations) != len(all_samples):
        logger.warning(f"Elevation count mismatch: {len(elevations)} for {len(all_samples)} points")
        elevations = list(elevations)[:len(all_samples)]
        elevations += [None] * (len(all_samples) - len(elevations))

    enriched = []
    offset = 0
    for segment, samples in zip(segments, sample_sets):
        segment_elevations = elevations[offset:offset + len(samples)]
        offset += len(samples)

        with_elevation = _attach(samples, segment_elevations)
        updated = segment.copy()
        updated.max_slope_percent = SlopeSampler.max_slope_percent(with_elevation)
        if with_elevation:
            updated.points = SlopeSampler.interpolate(segment.points, with_elevation)
        updated.score = scorer.score_segment(updated)
        logger.debug(
            f"Segment {segment.way_id}: max slope {updated.max_slope_percent:.1f}%, "
            f"score {segment.score} -> {updated.score}"
        )
        enriched.append(updated)
    return enriched


def has_elevation(points: Sequence[GeoPoint]) -> bool:
    return any(p.elevation for p in points)


async def add_elevation_to_route(
    points: Sequence[GeoPoint],
    provider: ElevationProvider,
    interval_m: float = ROUTE_SAMPLE_INTERVAL_M,
    max_samples: int = ROUTE_MAX_SAMPLES,
) -> List[GeoPoint]:
    """
    Route points with elevations for export.

    Points are returned unchanged when any of them already has an elevation
    or when the lookup yields nothing.
    """
    if len(points) < 2 or has_elevation(points):
        return list(points)

    samples = SlopeSampler.sample(points, interval_m, max_samples)
    elevations = await provider.get_elevations(samples)
    with_elevation = _attach(samples, elevations)
    if not with_elevation:
        logger.warning("No elevation data available for route, exporting without heights")
        return list(points)
    return SlopeSampler.interpolate(points, with_elevation)
