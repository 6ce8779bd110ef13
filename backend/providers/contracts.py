from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence

from segment_models import GeoPoint
from weather_overlay_service import DailyPrecipitation


class OverpassProvider(Protocol):
    async def query(self, query: str) -> Dict[str, Any]:
        """Run an Overpass QL query. Raises NetworkError or ParseError."""
        ...


class ElevationProvider(Protocol):
    async def get_elevations(self, points: Sequence[GeoPoint]) -> List[Optional[float]]:
        """One elevation per input point, None where the lookup failed."""
        ...


class WeatherProvider(Protocol):
    async def get_daily_precipitation(
        self, lat: float, lon: float, days: int
    ) -> Optional[List[DailyPrecipitation]]:
        ...


class DirectionsProvider(Protocol):
    async def route(self, start: GeoPoint, end: GeoPoint) -> List[GeoPoint]:
        """Connecting path from start to end, straight [start, end] on failure."""
        ...
