from fastapi import FastAPI, APIRouter, HTTPException, Query
from fastapi.responses import Response
from dotenv import load_dotenv
from starlette.middleware.cors import CORSMiddleware
import os
import logging
from pathlib import Path
from pydantic import BaseModel, Field
from typing import List, Optional, Dict
from datetime import datetime, timezone

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

from providers import get_providers
from common.criteria import CRITERIA
from common.errors import NetworkError, ParseError
from bike_profiles import BIKE_TYPE_INFO, BikeType, parse_bike_type, weights_for
from elevation_service import add_elevation_to_route, has_elevation
from gpx_io import read_gpx, write_gpx
from result_filter import ResultFilter, band_for
from route_analysis_service import RouteAnalysis, RouteAnalyzer
from ride_session import RideSession
from route_composer import RouteComposer
from segment_ingestor import SegmentIngestor
from segment_models import BoundingBox, GeoPoint, Segment
from settings_store import InMemorySettingsStore, JsonFileSettingsStore, SettingsStore, connect_mongo_settings
from weather_overlay_service import warning_for_surface

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

GRVL_SETTINGS_PATH = os.environ.get('GRVL_SETTINGS_PATH', '')
MONGO_URL = os.environ.get('MONGO_URL', '')
DB_NAME = os.environ.get('DB_NAME', 'gravelfinder')

# Road data fetched around a route before analysing it
ANALYSIS_BBOX_BUFFER_DEG = 0.01

# Create the main app
app = FastAPI()

# Create routers
api_router = APIRouter(prefix="/api")

# Session state (one rider per process)
_session: Optional[RideSession] = None
_composer: Optional[RouteComposer] = None
_ingestor: Optional[SegmentIngestor] = None


def _settings_store() -> SettingsStore:
    if MONGO_URL:
        store = connect_mongo_settings(MONGO_URL, DB_NAME)
        if store is not None:
            return store
    if GRVL_SETTINGS_PATH:
        return JsonFileSettingsStore(Path(GRVL_SETTINGS_PATH))
    return InMemorySettingsStore()


def get_session() -> RideSession:
    global _session
    if _session is None:
        _session = RideSession(_settings_store())
    return _session


def get_composer() -> RouteComposer:
    global _composer
    if _composer is None:
        _composer = RouteComposer(get_session(), get_providers().directions)
    return _composer


def get_ingestor() -> SegmentIngestor:
    """Shared ingestor; it owns the background slope enrichment tasks."""
    global _ingestor
    if _ingestor is None:
        _ingestor = SegmentIngestor(get_session(), get_providers())
    return _ingestor


def reset_state() -> None:
    """Drop the session, ingestor and drawn route; the next request starts fresh."""
    global _session, _composer, _ingestor
    _session = None
    _composer = None
    _ingestor = None

# ==================== Models ====================

class PointModel(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    elevation: float = 0.0


class ProfileModel(BaseModel):
    id: str
    name: str
    description: str
    weights: Dict[str, int]


class ProfilesResponse(BaseModel):
    current: str
    elevation_data_enabled: bool
    weather_enabled: bool
    should_penalize_slope: bool
    should_fetch_elevation: bool
    profiles: List[ProfileModel]


class BikeTypeRequest(BaseModel):
    bike_type: str


class CustomWeightsRequest(BaseModel):
    weights: Dict[str, int]


class ToggleRequest(BaseModel):
    enabled: bool


class BoundingBoxRequest(BaseModel):
    south: float = Field(..., ge=-90, le=90)
    west: float = Field(..., ge=-180, le=180)
    north: float = Field(..., ge=-90, le=90)
    east: float = Field(..., ge=-180, le=180)


class SegmentModel(BaseModel):
    index: int
    way_id: Optional[int] = None
    score: int
    band: str
    max_slope_percent: float
    length_m: float
    tags: Dict[str, str]
    points: List[PointModel]


class WeatherModel(BaseModel):
    rainy_days_count: int
    total_precipitation_mm: float
    is_muddy: bool
    warning_message: str
    report: str


class FiltersRequest(BaseModel):
    green: Optional[bool] = None
    yellow: Optional[bool] = None
    red: Optional[bool] = None


class SegmentsResponse(BaseModel):
    segments: List[SegmentModel]
    total: int
    filters: Dict[str, bool]
    weather: Optional[WeatherModel] = None
    published: bool = True
    elevation_pending: bool = False


class BreakdownResponse(BaseModel):
    index: int
    bike_type: str
    score: int
    band: str
    subscores: Dict[str, int]
    slope_source: str
    weather_penalty: int
    explanations: List[str]
    weather_warning: Optional[str] = None


class RoutePointRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class RouteResponse(BaseModel):
    points: List[PointModel]
    snapped: Optional[bool] = None
    snap_distance_m: Optional[float] = None


class GpxImportRequest(BaseModel):
    gpx: str
    replace_route: bool = False


class GpxImportResponse(BaseModel):
    name: Optional[str] = None
    source: str
    points: List[PointModel]


class GpxAnalyzeRequest(BaseModel):
    gpx: str


class RouteAnalysisResponse(BaseModel):
    bike_type: str
    total_km: float
    gravel_km: float
    asphalt_km: float
    unknown_km: float
    gravel_percentage: float
    asphalt_percentage: float
    surface_breakdown_km: Dict[str, float]
    max_slope_percent: float
    steepest_point: Optional[PointModel] = None
    steepest_location: str
    has_elevation_data: bool
    legs_analyzed: int
    legs_with_road_data: int
    data_coverage_percentage: float

# ==================== Helpers ====================

def _point_model(point: GeoPoint) -> PointModel:
    return PointModel(lat=point.lat, lon=point.lon, elevation=point.elevation)


def _segment_model(index: int, segment: Segment) -> SegmentModel:
    return SegmentModel(
        index=index,
        way_id=segment.way_id,
        score=segment.score,
        band=band_for(segment.score).value,
        max_slope_percent=segment.max_slope_percent,
        length_m=round(segment.length_m(), 1),
        tags=segment.tags,
        points=[_point_model(p) for p in segment.points],
    )


def _visible_segments(session: RideSession, filters: Optional[ResultFilter] = None) -> List[SegmentModel]:
    filters = filters or session.filters
    return [
        _segment_model(i, s)
        for i, s in enumerate(session.last_segments)
        if filters.is_visible(s)
    ]


def _weather_model(session: RideSession) -> Optional[WeatherModel]:
    if session.weather_condition is None:
        return None
    return WeatherModel(**session.weather_condition.to_dict())


def _profiles_response(session: RideSession) -> ProfilesResponse:
    manager = session.bike_types
    profiles = []
    for bike_type in BikeType:
        name, description = BIKE_TYPE_INFO[bike_type]
        profiles.append(ProfileModel(
            id=bike_type.value,
            name=name,
            description=description,
            weights=weights_for(bike_type, manager.custom_weights),
        ))
    return ProfilesResponse(
        current=manager.current_bike_type.value,
        elevation_data_enabled=manager.elevation_data_enabled,
        weather_enabled=session.weather_enabled,
        should_penalize_slope=manager.should_penalize_slope(),
        should_fetch_elevation=manager.should_fetch_elevation(),
        profiles=profiles,
    )


def _route_response(points: List[GeoPoint], snapped: Optional[bool] = None, distance_m: Optional[float] = None) -> RouteResponse:
    return RouteResponse(
        points=[_point_model(p) for p in points],
        snapped=snapped,
        snap_distance_m=round(distance_m, 1) if distance_m is not None else None,
    )

def _analysis_response(analysis: RouteAnalysis) -> RouteAnalysisResponse:
    return RouteAnalysisResponse(
        bike_type=analysis.bike_type.value,
        total_km=round(analysis.total_km, 3),
        gravel_km=round(analysis.gravel_km, 3),
        asphalt_km=round(analysis.asphalt_km, 3),
        unknown_km=round(analysis.unknown_km, 3),
        gravel_percentage=round(analysis.gravel_percentage, 1),
        asphalt_percentage=round(analysis.asphalt_percentage, 1),
        surface_breakdown_km={k: round(v, 3) for k, v in analysis.surface_breakdown_km.items()},
        max_slope_percent=round(analysis.max_slope_percent, 1),
        steepest_point=_point_model(analysis.steepest_point) if analysis.steepest_point else None,
        steepest_location=analysis.steepest_location,
        has_elevation_data=analysis.has_elevation_data,
        legs_analyzed=analysis.legs_analyzed,
        legs_with_road_data=analysis.legs_with_road_data,
        data_coverage_percentage=round(analysis.data_coverage_percentage, 1),
    )


async def _analyze_route(points: List[GeoPoint]) -> RouteAnalysisResponse:
    """Surface and slope summary of ``points`` for the current bike type."""
    session = get_session()
    providers = get_providers()
    if not has_elevation(points) and session.bike_types.should_fetch_elevation():
        points = await add_elevation_to_route(points, providers.elevation)

    scorer = session.scorer(session.weather_condition)
    bbox = BoundingBox.around(points, ANALYSIS_BBOX_BUFFER_DEG)
    try:
        segments = await get_ingestor().fetch(bbox, scorer)
    except (NetworkError, ParseError) as e:
        logger.warning(f"Road data for route analysis unavailable, using last results: {e}")
        segments = session.last_segments

    analysis = RouteAnalyzer(scorer, session.bike_types.current_bike_type).analyze(points, segments)
    return _analysis_response(analysis)

# ==================== Endpoints ====================

@api_router.get("/")
async def root():
    return {"message": "GravelFinder API", "version": "1.0", "criteria": list(CRITERIA)}

@api_router.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

@api_router.get("/profiles", response_model=ProfilesResponse)
async def get_profiles():
    return _profiles_response(get_session())

@api_router.put("/profiles/current", response_model=ProfilesResponse)
async def set_current_profile(request: BikeTypeRequest):
    session = get_session()
    try:
        bike_type = parse_bike_type(request.bike_type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    session.bike_types.set_bike_type(bike_type)
    session.rescore()
    return _profiles_response(session)

@api_router.put("/profiles/custom", response_model=ProfilesResponse)
async def update_custom_profile(request: CustomWeightsRequest):
    """Update custom weights; every criterion is persisted."""
    session = get_session()
    try:
        session.bike_types.update_custom_weights(request.weights)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid weights: {str(e)}")
    session.rescore()
    return _profiles_response(session)

@api_router.put("/settings/elevation", response_model=ProfilesResponse)
async def set_elevation_enabled(request: ToggleRequest):
    session = get_session()
    session.bike_types.set_elevation_data_enabled(request.enabled)
    return _profiles_response(session)

@api_router.put("/settings/weather", response_model=ProfilesResponse)
async def set_weather_enabled(request: ToggleRequest):
    session = get_session()
    session.weather_enabled = request.enabled
    logger.info(f"Weather overlay {'enabled' if request.enabled else 'disabled'}")
    session.rescore()
    return _profiles_response(session)

@api_router.post("/segments", response_model=SegmentsResponse)
async def ingest_segments(request: BoundingBoxRequest):
    """Fetch and score the ways inside a bounding box."""
    session = get_session()
    try:
        bbox = BoundingBox(request.south, request.west, request.north, request.east)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid bounding box: {str(e)}")

    logger.info(f"Segment request for bbox {bbox.to_overpass()}")
    try:
        result = await get_ingestor().ingest(bbox)
    except NetworkError as e:
        raise HTTPException(status_code=502, detail=e.message)
    except ParseError as e:
        logger.error(f"Malformed Overpass response: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    return SegmentsResponse(
        segments=_visible_segments(session),
        total=len(session.last_segments),
        filters=session.filters.to_dict(),
        weather=_weather_model(session),
        published=result.published,
        elevation_pending=result.elevation_pending,
    )

@api_router.get("/segments", response_model=SegmentsResponse)
async def get_segments(
    green: Optional[bool] = Query(None),
    yellow: Optional[bool] = Query(None),
    red: Optional[bool] = Query(None),
):
    """Last ingested segments; band query parameters filter this response only."""
    session = get_session()
    filters = session.filters.overridden(green, yellow, red)
    return SegmentsResponse(
        segments=_visible_segments(session, filters),
        total=len(session.last_segments),
        filters=filters.to_dict(),
        weather=_weather_model(session),
    )

@api_router.put("/segments/filters", response_model=SegmentsResponse)
async def set_segment_filters(request: FiltersRequest):
    """Store band visibility toggles; omitted bands keep their setting."""
    session = get_session()
    filters = session.filters.overridden(request.green, request.yellow, request.red)
    session.filters = filters
    return SegmentsResponse(
        segments=_visible_segments(session),
        total=len(session.last_segments),
        filters=filters.to_dict(),
        weather=_weather_model(session),
    )

@api_router.get("/segments/{index}/breakdown", response_model=BreakdownResponse)
async def get_segment_breakdown(index: int):
    session = get_session()
    try:
        segment = session.segment(index)
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))

    breakdown = session.scorer(session.weather_condition).breakdown(
        segment.tags,
        segment.points,
        segment.max_slope_percent if segment.has_slope_data else None,
    )
    return BreakdownResponse(
        index=index,
        bike_type=session.bike_types.current_bike_type.value,
        score=breakdown.score,
        band=band_for(breakdown.score).value,
        subscores=breakdown.subscores,
        slope_source=breakdown.slope_source,
        weather_penalty=breakdown.weather_penalty,
        explanations=list(breakdown.explanations),
        weather_warning=warning_for_surface(segment.tags.get("surface"), session.weather_condition)
        if session.weather_enabled else None,
    )

@api_router.post("/route/points", response_model=RouteResponse)
async def add_route_point(request: RoutePointRequest):
    composer = get_composer()
    result = await composer.add_point(GeoPoint(request.lat, request.lon))
    return _route_response(composer.route, result.snapped, result.distance_m)

@api_router.post("/route/undo", response_model=RouteResponse)
async def undo_route_point():
    composer = get_composer()
    return _route_response(composer.undo())

@api_router.delete("/route", response_model=RouteResponse)
async def clear_route():
    composer = get_composer()
    composer.clear()
    return _route_response([])

@api_router.get("/route", response_model=RouteResponse)
async def get_route():
    return _route_response(get_composer().route)

@api_router.get("/route/gpx")
async def export_route_gpx(name: str = Query("GravelFinder route")):
    """Drawn route as GPX, with elevations looked up when missing."""
    route = get_composer().route
    if len(route) < 2:
        raise HTTPException(status_code=400, detail="Route needs at least 2 points to export")

    points = await add_elevation_to_route(route, get_providers().elevation)
    xml = write_gpx(points, name=name)
    filename = f"gravelfinder_route_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}.gpx"
    return Response(
        content=xml,
        media_type="application/gpx+xml",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

@api_router.post("/gpx/import", response_model=GpxImportResponse)
async def import_gpx(request: GpxImportRequest):
    try:
        track = read_gpx(request.gpx)
    except ParseError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if request.replace_route:
        get_composer().load(track.points)

    logger.info(f"Imported GPX {track.name!r}: {len(track.points)} points from {track.source}")
    return GpxImportResponse(
        name=track.name,
        source=track.source,
        points=[_point_model(p) for p in track.points],
    )

@api_router.post("/gpx/analyze", response_model=RouteAnalysisResponse)
async def analyze_gpx(request: GpxAnalyzeRequest):
    """Surface breakdown, steepest point and data coverage of an uploaded track."""
    try:
        track = read_gpx(request.gpx)
    except ParseError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if len(track.points) < 2:
        raise HTTPException(status_code=400, detail="Track needs at least 2 points to analyze")

    logger.info(f"Analyzing GPX {track.name!r}: {len(track.points)} points")
    return await _analyze_route(track.points)

@api_router.get("/route/analysis", response_model=RouteAnalysisResponse)
async def analyze_drawn_route():
    route = get_composer().route
    if len(route) < 2:
        raise HTTPException(status_code=400, detail="Route needs at least 2 points to analyze")
    return await _analyze_route(route)


# Add CORS middleware first, before including router
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers in the main app
app.include_router(api_router)

@app.on_event("startup")
async def log_provider_mode():
    logger.info(f"GravelFinder API starting in {os.environ.get('GRVL_MODE', 'prod')} mode")
