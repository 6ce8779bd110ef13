"""
Ride session state shared by ingestion, route drawing and the HTTP layer.

Holds the bike-type settings, the weather toggle and last condition, the
visibility filter and the snapshot of the most recently published segments.
A newer ingestion always supersedes an older one, whatever order they
finish in.
"""

import logging
from typing import List, Optional

from bike_profiles import BikeTypeManager
from result_filter import ResultFilter
from road_scoring_service import RoadScorer
from segment_models import Segment
from settings_store import InMemorySettingsStore, SettingsStore
from weather_overlay_service import WeatherCondition

logger = logging.getLogger(__name__)


class RideSession:
    def __init__(self, store: Optional[SettingsStore] = None, weather_enabled: bool = True):
        self.bike_types = BikeTypeManager(store if store is not None else InMemorySettingsStore())
        self.weather_enabled = weather_enabled
        self.weather_condition: Optional[WeatherCondition] = None
        self.filters = ResultFilter()
        self.last_segments: List[Segment] = []
        self._generation = 0

    def scorer(self, weather: Optional[WeatherCondition] = None) -> RoadScorer:
        """Scorer for the current bike type and weather toggle."""
        return RoadScorer.from_manager(
            self.bike_types,
            weather=weather,
            weather_enabled=self.weather_enabled,
        )

    def begin_ingestion(self) -> int:
        self._generation += 1
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    def publish(
        self,
        generation: int,
        segments: List[Segment],
        weather: Optional[WeatherCondition] = None,
    ) -> bool:
        """
        Replace the snapshot with the results of ingestion ``generation``.

        Returns:
            False (snapshot untouched) when a newer ingestion has started
        """
        if not self.is_current(generation):
            logger.info(f"Discarding stale ingestion {generation} (current {self._generation})")
            return False
        self.last_segments = list(segments)
        self.weather_condition = weather
        return True

    def segment(self, index: int) -> Segment:
        if index < 0 or index >= len(self.last_segments):
            raise IndexError(f"No segment at index {index}")
        return self.last_segments[index]

    def visible_segments(self) -> List[Segment]:
        return self.filters.apply(self.last_segments)

    def rescore(self) -> None:
        """Rescore the snapshot for the current bike type and weather toggle, best first."""
        scorer = self.scorer(self.weather_condition)
        rescored = []
        for segment in self.last_segments:
            updated = segment.copy()
            updated.score = scorer.score_segment(updated)
            rescored.append(updated)
        rescored.sort(key=lambda s: s.score, reverse=True)
        self.last_segments = rescored
        logger.info(f"Rescored {len(rescored)} segments for {self.bike_types.current_bike_type.value}")
