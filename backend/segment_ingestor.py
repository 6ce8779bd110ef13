"""
Segment Ingestor - Bounding box to scored segments

Queries Overpass for bike-relevant ways inside a bounding box, parses every
way into a Segment scored straight away from its tags and publishes the
result set on the ride session. When the profile wants it, elevation-derived
slope data follows in a second publication.

Failure model:
- NetworkError / ParseError: the whole request fails, previous results stay
- PartialDataError: one way is skipped, ingestion continues
- Weather and elevation failures degrade to neutral values
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from common.errors import ParseError, PartialDataError
from elevation_service import enrich_segments
from providers.registry import ProviderSet
from ride_session import RideSession
from road_scoring_service import RoadScorer
from segment_models import BoundingBox, GeoPoint, Segment
from weather_overlay_service import DAYS_TO_ANALYZE, WeatherCondition, build_condition

logger = logging.getLogger(__name__)

TAGGED_KEYS = ("surface", "tracktype", "smoothness", "bicycle", "incline")
HIGHWAY_CLASSES = ("track", "unclassified", "service", "residential", "cycleway")
QUERY_TIMEOUT_S = 20


def build_overpass_query(bbox: BoundingBox, timeout_s: int = QUERY_TIMEOUT_S) -> str:
    """Overpass QL for ways carrying any scoring tag or a bikeable highway class."""
    box = bbox.to_overpass()
    clauses = [f'way["{key}"]({box});' for key in TAGGED_KEYS]
    highways = "|".join(HIGHWAY_CLASSES)
    clauses.append(f'way["highway"~"{highways}"]({box});')
    return f"[out:json][timeout:{timeout_s}];(" + "".join(clauses) + ");out body geom;"


def _parse_point(node: Any) -> Optional[GeoPoint]:
    if not isinstance(node, dict):
        return None
    try:
        return GeoPoint(float(node["lat"]), float(node["lon"]))
    except (KeyError, TypeError, ValueError):
        return None


def parse_way(element: Dict[str, Any], scorer: RoadScorer) -> Segment:
    """
    Build one scored Segment from an Overpass way element.

    Raises:
        PartialDataError: If the way has fewer than 2 usable geometry points
    """
    geometry = element.get("geometry")
    if not isinstance(geometry, list):
        raise PartialDataError(f"Way {element.get('id')} has no geometry")

    points = [p for p in (_parse_point(node) for node in geometry) if p is not None]
    if len(points) < 2:
        raise PartialDataError(f"Way {element.get('id')} has {len(points)} usable points")

    raw_tags = element.get("tags") or {}
    if not isinstance(raw_tags, dict):
        raise PartialDataError(f"Way {element.get('id')} has malformed tags")
    tags = {str(k): str(v) for k, v in raw_tags.items()}

    segment = Segment(points=points, tags=tags, way_id=element.get("id"))
    segment.score = scorer.score(tags, points)
    return segment


def parse_overpass_response(data: Dict[str, Any], scorer: RoadScorer) -> List[Segment]:
    """
    Parse an Overpass JSON response into scored segments.

    Non-way elements are ignored and ways that fail to parse are skipped.

    Raises:
        ParseError: If the document has no elements array
    """
    elements = data.get("elements") if isinstance(data, dict) else None
    if not isinstance(elements, list):
        raise ParseError("Overpass response has no elements array")

    segments = []
    skipped = 0
    for element in elements:
        if not isinstance(element, dict) or element.get("type") != "way":
            continue
        try:
            segments.append(parse_way(element, scorer))
        except PartialDataError as e:
            skipped += 1
            logger.debug(f"Skipping way: {e}")

    logger.info(f"Parsed {len(segments)} segments ({skipped} ways skipped)")
    return segments


@dataclass
class IngestionResult:
    """
    Outcome of one ingestion.

    ``segments`` carry their tag-based scores. When the profile wants slope
    data, ``enrichment`` is the task that looks up elevations and publishes
    the rescored set; it resolves to whether that set was published.
    """
    segments: List[Segment]
    weather: Optional[WeatherCondition]
    published: bool
    enrichment: Optional["asyncio.Task[bool]"] = None

    @property
    def elevation_pending(self) -> bool:
        return self.enrichment is not None and not self.enrichment.done()


class SegmentIngestor:
    def __init__(self, session: RideSession, providers: ProviderSet):
        self.session = session
        self.providers = providers
        self._enrichments: Set["asyncio.Task[bool]"] = set()

    async def fetch(self, bbox: BoundingBox, scorer: Optional[RoadScorer] = None) -> List[Segment]:
        """
        Query and parse the ways inside ``bbox``.

        Raises:
            NetworkError: If Overpass cannot be reached
            ParseError: If the response is malformed
        """
        query = build_overpass_query(bbox)
        data = await self.providers.overpass.query(query)
        return parse_overpass_response(data, scorer or self.session.scorer())

    async def fetch_weather(self, location: GeoPoint) -> Optional[WeatherCondition]:
        daily = await self.providers.weather.get_daily_precipitation(
            location.lat, location.lon, DAYS_TO_ANALYZE
        )
        if not daily:
            logger.warning("No weather data available, scoring without weather penalty")
            return None
        condition = build_condition(daily)
        logger.info(
            f"Weather: {condition.rainy_days_count} rainy days, "
            f"{condition.total_precipitation_mm:.1f} mm, muddy={condition.is_muddy}"
        )
        return condition

    async def ingest(self, bbox: BoundingBox) -> IngestionResult:
        """
        Fetch, score and publish the segments of ``bbox``.

        Tag-based scores are published as soon as the ways are parsed. Slope
        data, when the profile wants it, is added by a background task that
        publishes again only if no newer ingestion has started meanwhile.
        The returned segments are sorted by score, best first. ``published``
        is False when a newer ingestion started before this one finished.
        """
        generation = self.session.begin_ingestion()

        weather = None
        if self.session.weather_enabled:
            weather = await self.fetch_weather(bbox.center())

        scorer = self.session.scorer(weather)
        segments = await self.fetch(bbox, scorer)
        segments.sort(key=lambda s: s.score, reverse=True)
        published = self.session.publish(generation, segments, weather)
        logger.info(f"Ingestion {generation}: {len(segments)} segments, published={published}")

        enrichment = None
        if published and segments and self.session.bike_types.should_fetch_elevation():
            enrichment = asyncio.create_task(
                self._enrich_and_publish(generation, segments, scorer, weather)
            )
            self._enrichments.add(enrichment)
            enrichment.add_done_callback(self._enrichment_done)

        return IngestionResult(
            segments=segments, weather=weather, published=published, enrichment=enrichment
        )

    async def _enrich_and_publish(
        self,
        generation: int,
        segments: List[Segment],
        scorer: RoadScorer,
        weather: Optional[WeatherCondition],
    ) -> bool:
        enriched = await enrich_segments(segments, self.providers.elevation, scorer)
        # the profile may have changed during the lookup
        current = self.session.scorer(weather)
        for segment in enriched:
            segment.score = current.score_segment(segment)
        enriched.sort(key=lambda s: s.score, reverse=True)
        if not self.session.is_current(generation):
            logger.info(f"Ingestion {generation} superseded, dropping slope data")
            return False
        published = self.session.publish(generation, enriched, weather)
        logger.info(f"Ingestion {generation}: slope data for {len(enriched)} segments published")
        return published

    def _enrichment_done(self, task: "asyncio.Task[bool]") -> None:
        self._enrichments.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Slope enrichment failed, keeping tag scores: {error}")

    async def wait_for_enrichment(self) -> None:
        """Wait for every pending slope enrichment; failures are already logged."""
        if self._enrichments:
            await asyncio.gather(*list(self._enrichments), return_exceptions=True)
