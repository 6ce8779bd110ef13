from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from common.geo import distance_between
from segment_models import GeoPoint
from weather_overlay_service import DailyPrecipitation

from .contracts import (
    DirectionsProvider,
    ElevationProvider,
    OverpassProvider,
    WeatherProvider,
)

FIXTURES_ROOT = Path(__file__).parent.parent / "fixtures" / "demo"


class _FixtureLoader:
    def __init__(self, fixture_name: str):
        self.path = FIXTURES_ROOT / fixture_name / "data.json"
        with self.path.open("r", encoding="utf-8") as f:
            self.data = json.load(f)


class FakeOverpassProvider(OverpassProvider, _FixtureLoader):
    def __init__(self) -> None:
        _FixtureLoader.__init__(self, "overpass")
        self.queries: List[str] = []

    async def query(self, query: str) -> Dict[str, Any]:
        self.queries.append(query)
        return {"elements": list(self.data.get("elements", []))}


class FakeElevationProvider(ElevationProvider, _FixtureLoader):
    """Elevation of the closest fixture spot, or a linear north-south ramp."""

    def __init__(self) -> None:
        _FixtureLoader.__init__(self, "elevation")

    async def get_elevations(self, points: Sequence[GeoPoint]) -> List[Optional[float]]:
        spots = [GeoPoint(s["lat"], s["lon"], s["elevation"]) for s in self.data.get("spots", [])]
        ramp = self.data.get("ramp", {})
        elevations: List[Optional[float]] = []
        for point in points:
            nearest = min(spots, key=lambda s: distance_between(point, s)) if spots else None
            if nearest is not None and distance_between(point, nearest) <= ramp.get("spot_radius_m", 25.0):
                elevations.append(nearest.elevation)
            else:
                base = ramp.get("base_m", 30.0)
                per_degree = ramp.get("m_per_degree_lat", 0.0)
                elevations.append(round(base + (point.lat - ramp.get("origin_lat", 0.0)) * per_degree, 1))
        return elevations


class FakeWeatherProvider(WeatherProvider, _FixtureLoader):
    def __init__(self) -> None:
        _FixtureLoader.__init__(self, "weather")

    async def get_daily_precipitation(
        self, lat: float, lon: float, days: int
    ) -> Optional[List[DailyPrecipitation]]:
        daily = self.data.get("daily", [])[-days:]
        return [DailyPrecipitation(d["date"], d["precipitation_mm"]) for d in daily]


class FakeDirectionsProvider(DirectionsProvider, _FixtureLoader):
    def __init__(self) -> None:
        _FixtureLoader.__init__(self, "directions")

    async def route(self, start: GeoPoint, end: GeoPoint) -> List[GeoPoint]:
        for route in self.data.get("routes", []):
            if (
                round(start.lat, 4) == round(route["start"][0], 4)
                and round(start.lon, 4) == round(route["start"][1], 4)
                and round(end.lat, 4) == round(route["end"][0], 4)
                and round(end.lon, 4) == round(route["end"][1], 4)
            ):
                via = [GeoPoint(lat, lon) for lat, lon in route.get("via", [])]
                return [start] + via + [end]
        return [start, end]
