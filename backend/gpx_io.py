"""
GPX track import and export for drawn routes.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

import gpxpy
import gpxpy.gpx

from common.errors import ParseError
from segment_models import GeoPoint

logger = logging.getLogger(__name__)

GPX_CREATOR = "GravelFinder"
POINT_INTERVAL_S = 1


@dataclass
class GpxTrack:
    name: Optional[str]
    points: List[GeoPoint] = field(default_factory=list)
    source: str = "track"


def write_gpx(
    points: Sequence[GeoPoint],
    name: str = "GravelFinder route",
    start_time: Optional[datetime] = None,
    interval_s: int = POINT_INTERVAL_S,
) -> str:
    """
    Serialise a route as a single-track GPX document.

    Elevations are rounded to one decimal; timestamps are UTC, starting at
    ``start_time`` (now by default) and ``interval_s`` seconds apart.
    """
    start = start_time or datetime.now(timezone.utc)
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    start = start.astimezone(timezone.utc)

    gpx = gpxpy.gpx.GPX()
    gpx.creator = GPX_CREATOR
    gpx.name = name
    gpx.time = start

    gpx_track = gpxpy.gpx.GPXTrack(name=name)
    gpx_track.type = "cycling"
    gpx.tracks.append(gpx_track)

    gpx_segment = gpxpy.gpx.GPXTrackSegment()
    gpx_track.segments.append(gpx_segment)

    for i, point in enumerate(points):
        gpx_segment.points.append(
            gpxpy.gpx.GPXTrackPoint(
                point.lat,
                point.lon,
                elevation=round(point.elevation or 0.0, 1),
                time=start + timedelta(seconds=i * interval_s),
            )
        )

    return gpx.to_xml()


def _to_geo(point) -> GeoPoint:
    elevation = point.elevation if point.elevation is not None else 0.0
    return GeoPoint(point.latitude, point.longitude, elevation)


def read_gpx(text: str) -> GpxTrack:
    """
    Parse GPX text into points.

    Tracks win over routes, routes over bare waypoints. Missing elevations
    become 0.

    Raises:
        ParseError: If the document is not valid GPX
    """
    try:
        gpx = gpxpy.parse(text)
    except gpxpy.gpx.GPXException as e:
        raise ParseError(f"Invalid GPX: {e}") from e

    track_points = [
        _to_geo(p)
        for track in gpx.tracks
        for segment in track.segments
        for p in segment.points
    ]
    if track_points:
        name = gpx.tracks[0].name or gpx.name
        return GpxTrack(name=name, points=track_points, source="track")

    route_points = [_to_geo(p) for route in gpx.routes for p in route.points]
    if route_points:
        name = gpx.routes[0].name or gpx.name
        return GpxTrack(name=name, points=route_points, source="route")

    waypoints = [_to_geo(p) for p in gpx.waypoints]
    if waypoints:
        return GpxTrack(name=gpx.name, points=waypoints, source="waypoints")

    logger.warning("GPX document contains no points")
    return GpxTrack(name=gpx.name, points=[], source="empty")
