from __future__ import annotations

import asyncio
import logging
import os
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Sequence

import httpx
import polyline

from common.errors import NetworkError, ParseError, readable_error_message
from segment_models import GeoPoint
from weather_overlay_service import DailyPrecipitation

from .contracts import (
    DirectionsProvider,
    ElevationProvider,
    OverpassProvider,
    WeatherProvider,
)

logger = logging.getLogger(__name__)

OVERPASS_URL = os.environ.get("OVERPASS_URL", "https://overpass-api.de/api/interpreter")
OPENTOPODATA_URL = os.environ.get("OPENTOPODATA_URL", "https://api.opentopodata.org/v1/srtm30m")
OPEN_METEO_URL = os.environ.get("OPEN_METEO_URL", "https://api.open-meteo.com/v1/forecast")
OSRM_BASE_URL = os.environ.get("OSRM_BASE_URL", "https://router.project-osrm.org/route/v1/bicycle/")
GRVL_USER_AGENT = os.environ.get("GRVL_USER_AGENT", "GravelFinder/1.0")
HEADERS = {"User-Agent": GRVL_USER_AGENT}

ELEVATION_BATCH_SIZE = 10
ELEVATION_BATCH_PAUSE_S = 0.6


class OverpassApiProvider(OverpassProvider):
    async def query(self, query: str) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=30.0, headers=HEADERS) as client:
                response = await client.post(OVERPASS_URL, data={"data": query})
                response.raise_for_status()
        except httpx.HTTPError as e:
            message = readable_error_message(e)
            logger.error(f"Overpass request failed: {message}")
            raise NetworkError(message, cause=e) from e

        try:
            data = response.json()
        except ValueError as e:
            raise ParseError(f"Overpass returned invalid JSON: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("elements"), list):
            raise ParseError("Overpass response has no elements array")
        return data


class OpenTopoDataElevationProvider(ElevationProvider):
    """SRTM 30m lookups in small batches; a failed batch yields None per point."""

    def __init__(
        self,
        batch_size: int = ELEVATION_BATCH_SIZE,
        pause_s: float = ELEVATION_BATCH_PAUSE_S,
    ) -> None:
        self.batch_size = batch_size
        self.pause_s = pause_s

    async def get_elevations(self, points: Sequence[GeoPoint]) -> List[Optional[float]]:
        elevations: List[Optional[float]] = []
        async with httpx.AsyncClient(timeout=20.0, headers=HEADERS) as client:
            for start in range(0, len(points), self.batch_size):
                if start > 0 and self.pause_s > 0:
                    await asyncio.sleep(self.pause_s)
                batch = points[start:start + self.batch_size]
                elevations.extend(await self._fetch_batch(client, batch))
        return elevations

    async def _fetch_batch(
        self, client: httpx.AsyncClient, batch: Sequence[GeoPoint]
    ) -> List[Optional[float]]:
        locations = "|".join(f"{p.lat:.6f},{p.lon:.6f}" for p in batch)
        try:
            response = await client.get(OPENTOPODATA_URL, params={"locations": locations})
            response.raise_for_status()
            data = response.json()
            if data.get("status") != "OK":
                raise ValueError(f"API status: {data.get('status')}")
            results = data.get("results", [])
        except Exception as e:
            logger.warning(f"Elevation batch of {len(batch)} points failed: {e}")
            return [None] * len(batch)

        elevations: List[Optional[float]] = []
        for i in range(len(batch)):
            value = results[i].get("elevation") if i < len(results) else None
            elevations.append(float(value) if value is not None else None)
        return elevations


class OpenMeteoWeatherProvider(WeatherProvider):
    async def get_daily_precipitation(
        self, lat: float, lon: float, days: int
    ) -> Optional[List[DailyPrecipitation]]:
        end = date.today()
        start = end - timedelta(days=days)
        params = {
            "latitude": f"{lat:.6f}",
            "longitude": f"{lon:.6f}",
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "daily": "precipitation_sum",
            "timezone": "auto",
        }
        try:
            async with httpx.AsyncClient(timeout=15.0, headers=HEADERS) as client:
                response = await client.get(OPEN_METEO_URL, params=params)
                response.raise_for_status()
                daily = response.json().get("daily", {})
                dates = daily.get("time", [])
                totals = daily.get("precipitation_sum", [])
                return [
                    DailyPrecipitation(day, float(total) if total is not None else 0.0)
                    for day, total in zip(dates, totals)
                ]
        except Exception as e:
            logger.warning(f"Weather lookup failed: {e}")
            return None


class OSRMDirectionsProvider(DirectionsProvider):
    async def route(self, start: GeoPoint, end: GeoPoint) -> List[GeoPoint]:
        coords = f"{start.lon},{start.lat};{end.lon},{end.lat}"
        try:
            async with httpx.AsyncClient(timeout=10.0, headers=HEADERS) as client:
                url = f"{OSRM_BASE_URL.rstrip('/')}/{coords}"
                params = {"overview": "full", "geometries": "polyline"}
                response = await client.get(url, params=params)
                response.raise_for_status()
                data = response.json()
                if data.get("code") == "Ok" and data.get("routes"):
                    decoded = polyline.decode(data["routes"][0]["geometry"])
                    if len(decoded) >= 2:
                        return [GeoPoint(lat, lon) for lat, lon in decoded]
        except Exception as e:
            logger.warning(f"Routing failed, using straight line: {e}")
        return [start, end]
