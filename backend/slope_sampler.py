"""
Slope Sampler - Bounded elevation sampling and slope derivation

Pure domain logic for the elevation pipeline:
- sample: thin a dense point sequence to a bounded set for elevation lookup
- interpolate: give every original point the elevation of its nearest sample
- max_slope_percent: steepest grade between consecutive points

All functions are pure and deterministic (no I/O).

Sampling:
- Always keeps the first point
- Emits a point each time the walked distance crosses the next multiple of
  the interval
- Always keeps the last point, never returning more than max_points points
"""

from typing import List, Optional, Sequence

from common.geo import distance_between
from segment_models import SLOPE_NOT_COMPUTED, GeoPoint

SEGMENT_SAMPLE_INTERVAL_M = 75.0
SEGMENT_MAX_SAMPLES = 10
ROUTE_SAMPLE_INTERVAL_M = 50.0
ROUTE_MAX_SAMPLES = 100


class SlopeSampler:
    """
    Pure sampling and slope calculations.

    All methods are static and deterministic.
    """

    @staticmethod
    def sample(route: Sequence[GeoPoint], interval_m: float, max_points: int) -> List[GeoPoint]:
        """
        Reduce a route to at most ``max_points`` points spaced ~``interval_m`` apart.

        Args:
            route: Ordered points
            interval_m: Distance between emitted samples (meters, > 0)
            max_points: Upper bound on the output length (>= 2)

        Returns:
            Sampled points, first and last point of the route included

        Raises:
            ValueError: If interval_m <= 0 or max_points < 2
        """
        if interval_m <= 0:
            raise ValueError(f"interval_m must be positive, got {interval_m}")
        if max_points < 2:
            raise ValueError(f"max_points must be at least 2, got {max_points}")
        if not route:
            return []

        sampled = [route[0]]
        accumulated = 0.0
        next_sample_at = interval_m

        # One slot stays free for the final point
        for i in range(1, len(route)):
            if len(sampled) >= max_points - 1:
                break
            accumulated += distance_between(route[i - 1], route[i])
            if accumulated >= next_sample_at:
                sampled.append(route[i])
                while next_sample_at <= accumulated:
                    next_sample_at += interval_m

        last = route[-1]
        if last not in sampled:
            sampled.append(last)
        return sampled

    @staticmethod
    def interpolate(original: Sequence[GeoPoint], sampled: Sequence[GeoPoint]) -> List[GeoPoint]:
        """
        Copy the nearest sample's elevation onto every original point.

        Latitude and longitude are kept exactly. With no samples every
        elevation becomes 0 (unknown).
        """
        result = []
        for point in original:
            nearest = SlopeSampler.nearest(point, sampled)
            elevation = nearest.elevation if nearest is not None and nearest.elevation else 0.0
            result.append(GeoPoint(point.lat, point.lon, elevation))
        return result

    @staticmethod
    def nearest(point: GeoPoint, candidates: Sequence[GeoPoint]) -> Optional[GeoPoint]:
        """Closest candidate by great-circle distance; the first one wins ties."""
        best = None
        best_distance = float("inf")
        for candidate in candidates:
            d = distance_between(point, candidate)
            if d < best_distance:
                best = candidate
                best_distance = d
        return best

    @staticmethod
    def max_slope_percent(points: Sequence[GeoPoint]) -> float:
        """
        Steepest grade between consecutive points, in percent.

        Returns:
            Max of 100 * |delta elevation| / horizontal distance, or -1 when
            fewer than 2 points are given, no point has an elevation, or every
            pair is zero distance apart
        """
        if len(points) < 2:
            return SLOPE_NOT_COMPUTED
        if all(not p.elevation for p in points):
            return SLOPE_NOT_COMPUTED

        max_slope = SLOPE_NOT_COMPUTED
        for a, b in zip(points, points[1:]):
            horizontal = distance_between(a, b)
            if horizontal <= 0:
                continue
            slope = 100.0 * abs(b.elevation - a.elevation) / horizontal
            if slope > max_slope:
                max_slope = slope
        return max_slope
