from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .contracts import (
    DirectionsProvider,
    ElevationProvider,
    OverpassProvider,
    WeatherProvider,
)
from .fake_providers import (
    FakeDirectionsProvider,
    FakeElevationProvider,
    FakeOverpassProvider,
    FakeWeatherProvider,
)
from .real_providers import (
    OSRMDirectionsProvider,
    OpenMeteoWeatherProvider,
    OpenTopoDataElevationProvider,
    OverpassApiProvider,
)


@dataclass
class ProviderSet:
    overpass: OverpassProvider
    elevation: ElevationProvider
    weather: WeatherProvider
    directions: DirectionsProvider


def _build_prod() -> ProviderSet:
    return ProviderSet(
        overpass=OverpassApiProvider(),
        elevation=OpenTopoDataElevationProvider(),
        weather=OpenMeteoWeatherProvider(),
        directions=OSRMDirectionsProvider(),
    )


def _build_fake() -> ProviderSet:
    return ProviderSet(
        overpass=FakeOverpassProvider(),
        elevation=FakeElevationProvider(),
        weather=FakeWeatherProvider(),
        directions=FakeDirectionsProvider(),
    )


_provider_cache: Optional[ProviderSet] = None


def load_providers(mode: Optional[str] = None) -> ProviderSet:
    global _provider_cache
    active_mode = (mode or os.environ.get("GRVL_MODE", "prod")).lower()
    if _provider_cache and mode is None:
        return _provider_cache
    if active_mode in {"demo", "test"}:
        _provider_cache = _build_fake()
    else:
        _provider_cache = _build_prod()
    return _provider_cache


def get_providers() -> ProviderSet:
    return load_providers()


def reload_providers(mode: Optional[str] = None) -> ProviderSet:
    global _provider_cache
    _provider_cache = None
    return load_providers(mode)
