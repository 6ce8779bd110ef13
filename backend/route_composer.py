"""
Route Composer - Hand-drawn routes snapped to scored segments

Each tap is projected onto the nearest edge of the last ingested segments.
A projection further than the snap threshold is rejected and the raw tap is
used instead. After the first anchor, every new anchor is joined to the
previous one by the directions provider and the whole connecting path is
appended; undo removes that path again as one unit.

Projection works in a locally flat lon/lat plane:
    t = clamp(((P - A) . (B - A)) / |B - A|^2, 0, 1),  P' = A + t (B - A)
Distances for choosing and thresholding candidates are great-circle meters.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from common.geo import distance_between
from providers.contracts import DirectionsProvider
from ride_session import RideSession
from segment_models import GeoPoint, Segment

logger = logging.getLogger(__name__)

SNAP_THRESHOLD_M = 50.0


@dataclass(frozen=True)
class SnapResult:
    point: GeoPoint
    snapped: bool
    distance_m: Optional[float] = None


def project_onto_segment(point: GeoPoint, a: GeoPoint, b: GeoPoint) -> GeoPoint:
    """Closest point to ``point`` on the edge a-b; a zero-length edge projects to a."""
    dx = b.lon - a.lon
    dy = b.lat - a.lat
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return GeoPoint(a.lat, a.lon)

    t = ((point.lon - a.lon) * dx + (point.lat - a.lat) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    return GeoPoint(a.lat + t * dy, a.lon + t * dx)


@dataclass(frozen=True)
class EdgeMatch:
    segment: Segment
    point: GeoPoint
    distance_m: float


def nearest_edge(tap: GeoPoint, segments: Sequence[Segment]) -> Optional[EdgeMatch]:
    """Closest projection of ``tap`` onto any segment edge; first found wins ties."""
    best = None
    for segment in segments:
        points = segment.points
        for a, b in zip(points, points[1:]):
            candidate = project_onto_segment(tap, a, b)
            d = distance_between(tap, candidate)
            if best is None or d < best.distance_m:
                best = EdgeMatch(segment=segment, point=candidate, distance_m=d)
    return best


def snap(tap: GeoPoint, segments: Sequence[Segment], threshold_m: float = SNAP_THRESHOLD_M) -> SnapResult:
    """
    Snap a tap onto the nearest segment edge.

    Returns:
        SnapResult with the projected point, or the unchanged tap when no edge
        lies within ``threshold_m``
    """
    match = nearest_edge(tap, segments)
    if match is None:
        return SnapResult(point=tap, snapped=False)
    if match.distance_m > threshold_m:
        return SnapResult(point=tap, snapped=False, distance_m=match.distance_m)
    return SnapResult(point=match.point, snapped=True, distance_m=match.distance_m)


class RouteComposer:
    def __init__(
        self,
        session: RideSession,
        directions: DirectionsProvider,
        snap_threshold_m: float = SNAP_THRESHOLD_M,
    ):
        self.session = session
        self.directions = directions
        self.snap_threshold_m = snap_threshold_m
        self._route: List[GeoPoint] = []
        # route length before each append, newest last
        self._append_marks: List[int] = []
        self._version = 0
        self._lock = asyncio.Lock()

    @property
    def route(self) -> List[GeoPoint]:
        return list(self._route)

    def snap(self, tap: GeoPoint) -> SnapResult:
        return snap(tap, self.session.last_segments, self.snap_threshold_m)

    async def add_point(self, tap: GeoPoint) -> SnapResult:
        """
        Snap ``tap`` and extend the route to it.

        Taps are handled one at a time in arrival order. If the route is
        undone or cleared while the connecting path is being fetched, the
        fetched path is dropped.
        """
        async with self._lock:
            result = self.snap(tap)
            logger.debug(
                f"Tap ({tap.lat:.6f}, {tap.lon:.6f}) snapped={result.snapped} "
                f"distance={result.distance_m}"
            )
            anchor = result.point

            if not self._route:
                self._append([anchor])
                return result

            version = self._version
            previous = self._route[-1]
            try:
                path = await self.directions.route(previous, anchor)
            except Exception as e:
                logger.warning(f"Directions lookup failed, joining with a straight line: {e}")
                path = []
            if version != self._version:
                logger.info("Route changed while routing, dropping connecting path")
                return result
            if not path:
                path = [previous, anchor]
            if path[0] == self._route[-1]:
                path = path[1:]
            if not path:
                return result
            self._append(path)
            return result

    def _append(self, points: Sequence[GeoPoint]) -> None:
        self._append_marks.append(len(self._route))
        self._route.extend(points)

    def undo(self) -> List[GeoPoint]:
        """Remove the most recently appended path (or single anchor)."""
        if not self._route:
            return []
        self._version += 1
        if self._append_marks:
            mark = self._append_marks.pop()
            del self._route[mark:]
        else:
            self._route.pop()
        return self.route

    def clear(self) -> None:
        self._version += 1
        self._route.clear()
        self._append_marks.clear()

    def load(self, points: Sequence[GeoPoint]) -> None:
        """Replace the route with externally supplied points (e.g. an imported track)."""
        self.clear()
        if points:
            self._append(list(points))
