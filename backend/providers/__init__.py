from .contracts import DirectionsProvider, ElevationProvider, OverpassProvider, WeatherProvider
from .registry import ProviderSet, get_providers, load_providers, reload_providers

__all__ = [
    "DirectionsProvider",
    "ElevationProvider",
    "OverpassProvider",
    "WeatherProvider",
    "ProviderSet",
    "get_providers",
    "load_providers",
    "reload_providers",
]
