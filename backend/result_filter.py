"""
Result Filter - Display bands and visibility toggles for scored segments.

Bands:
- GREEN: score >= 20
- YELLOW: 10 <= score < 20
- RED: score < 10
"""

from enum import Enum
from typing import Dict, Iterable, List, Optional

from segment_models import Segment

GREEN_MIN_SCORE = 20
YELLOW_MIN_SCORE = 10


class Band(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


def band_for(score: int) -> Band:
    if score >= GREEN_MIN_SCORE:
        return Band.GREEN
    if score >= YELLOW_MIN_SCORE:
        return Band.YELLOW
    return Band.RED


class ResultFilter:
    """Which bands the rendering surface shows. Every band starts visible."""

    def __init__(self, green: bool = True, yellow: bool = True, red: bool = True):
        self.visible: Dict[Band, bool] = {
            Band.GREEN: green,
            Band.YELLOW: yellow,
            Band.RED: red,
        }

    def set_visible(self, band: Band, visible: bool) -> None:
        self.visible[band] = bool(visible)

    def set_all(self, green: bool, yellow: bool, red: bool) -> None:
        self.visible[Band.GREEN] = bool(green)
        self.visible[Band.YELLOW] = bool(yellow)
        self.visible[Band.RED] = bool(red)

    def overridden(
        self,
        green: Optional[bool] = None,
        yellow: Optional[bool] = None,
        red: Optional[bool] = None,
    ) -> "ResultFilter":
        """Independent copy with some toggles replaced; None keeps the current one."""
        return ResultFilter(
            self.visible[Band.GREEN] if green is None else green,
            self.visible[Band.YELLOW] if yellow is None else yellow,
            self.visible[Band.RED] if red is None else red,
        )

    def has_any_enabled(self) -> bool:
        return any(self.visible.values())

    def is_visible(self, segment: Segment) -> bool:
        return self.visible[band_for(segment.score)]

    def apply(self, segments: Iterable[Optional[Segment]]) -> List[Segment]:
        """Visible segments in their original order; None entries are dropped."""
        return [s for s in segments if s is not None and self.is_visible(s)]

    def partition(self, segments: Iterable[Optional[Segment]]) -> Dict[Band, List[Segment]]:
        groups: Dict[Band, List[Segment]] = {band: [] for band in Band}
        for segment in segments:
            if segment is not None:
                groups[band_for(segment.score)].append(segment)
        return groups

    def to_dict(self) -> dict:
        return {band.value: visible for band, visible in self.visible.items()}
