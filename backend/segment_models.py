"""
Segment domain models.

Defines geographic points, query bounding boxes and scored road segments.
"""

from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence

from common.geo import path_length_m

SLOPE_NOT_COMPUTED = -1.0


@dataclass(frozen=True)
class GeoPoint:
    """A point on the map. Elevation 0.0 means unknown."""
    lat: float
    lon: float
    elevation: float = 0.0

    def with_elevation(self, elevation: float) -> "GeoPoint":
        return replace(self, elevation=elevation)


@dataclass(frozen=True)
class BoundingBox:
    """Query area in degrees."""
    south: float
    west: float
    north: float
    east: float

    def __post_init__(self):
        if self.south > self.north:
            raise ValueError(f"South {self.south} is north of north {self.north}")
        if self.west > self.east:
            raise ValueError(f"West {self.west} is east of east {self.east}")

    def to_overpass(self) -> str:
        """Overpass QL bbox filter: ``south,west,north,east``."""
        return f"{self.south},{self.west},{self.north},{self.east}"

    def center(self) -> GeoPoint:
        return GeoPoint((self.south + self.north) / 2.0, (self.west + self.east) / 2.0)

    @classmethod
    def around(cls, points: Sequence[GeoPoint], buffer_deg: float = 0.0) -> "BoundingBox":
        """Smallest box holding ``points``, grown by ``buffer_deg`` on every side."""
        if not points:
            raise ValueError("Cannot bound an empty point list")
        return cls(
            south=max(-90.0, min(p.lat for p in points) - buffer_deg),
            west=max(-180.0, min(p.lon for p in points) - buffer_deg),
            north=min(90.0, max(p.lat for p in points) + buffer_deg),
            east=min(180.0, max(p.lon for p in points) + buffer_deg),
        )


@dataclass
class Segment:
    """One OSM way with its tags, score and derived maximum slope."""
    points: List[GeoPoint]
    tags: Dict[str, str]
    score: int = 0
    max_slope_percent: float = SLOPE_NOT_COMPUTED
    way_id: Optional[int] = None

    def __post_init__(self):
        if len(self.points) < 2:
            raise ValueError(f"Segment needs at least 2 points, got {len(self.points)}")

    @property
    def has_slope_data(self) -> bool:
        return self.max_slope_percent >= 0

    def length_m(self) -> float:
        return path_length_m(self.points)

    def copy(self) -> "Segment":
        """Copy with independent point list and tag map."""
        return Segment(
            points=list(self.points),
            tags=dict(self.tags),
            score=self.score,
            max_slope_percent=self.max_slope_percent,
            way_id=self.way_id,
        )

