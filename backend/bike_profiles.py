"""
Bike Profiles - Weight sets per bike type

Maps each bike type to its per-criterion integer weights and decides which
scoring behaviours (paved-surface table, slope penalties, elevation lookups)
apply to it. The four built-in profiles are constants; the custom profile is
seeded once and then edited and persisted through a settings store.
"""

import logging
from enum import Enum
from typing import Dict, Mapping, Optional

from common.criteria import (
    BICYCLE,
    CRITERIA,
    LENGTH,
    SLOPE,
    SMOOTHNESS,
    SURFACE,
    TRACKTYPE,
    WIDTH,
    complete_weights,
    is_criterion,
)
from settings_store import SettingsStore

logger = logging.getLogger(__name__)

SELECTED_BIKE_TYPE_KEY = "selected_bike_type"
ELEVATION_ENABLED_KEY = "elevation_data_enabled"
CUSTOM_WEIGHT_PREFIX = "custom_weight_"


class BikeType(str, Enum):
    """Closed set of riding profiles."""
    RACE_ROAD = "RACE_ROAD"
    GRAVEL_BIKE = "GRAVEL_BIKE"
    RACE_BIKEPACKING = "RACE_BIKEPACKING"
    GRAVEL_BIKEPACKING = "GRAVEL_BIKEPACKING"
    CUSTOM = "CUSTOM"


DEFAULT_BIKE_TYPE = BikeType.GRAVEL_BIKE

BIKE_TYPE_INFO = {
    BikeType.RACE_ROAD: ("Race Bike - Roads", "Fast rides on asphalt and paved roads"),
    BikeType.GRAVEL_BIKE: ("Gravel Bike - Gravel", "Adventure rides on gravel and unpaved roads"),
    BikeType.RACE_BIKEPACKING: ("Bikepacking - Race Bike", "Long distance touring on paved roads"),
    BikeType.GRAVEL_BIKEPACKING: ("Bikepacking - Gravel", "Long distance touring on gravel roads"),
    BikeType.CUSTOM: ("Custom Mode", "Configure your own criteria"),
}

PROFILE_WEIGHTS: Mapping[BikeType, Mapping[str, int]] = {
    BikeType.RACE_ROAD: {
        SURFACE: 30,
        SMOOTHNESS: 10,
        TRACKTYPE: -50,  # avoid tracks
        BICYCLE: 10,
        WIDTH: 5,
        LENGTH: 8,
        SLOPE: 0,
    },
    BikeType.GRAVEL_BIKE: {
        SURFACE: 10,
        SMOOTHNESS: 5,
        TRACKTYPE: 10,
        BICYCLE: 0,
        WIDTH: 10,
        LENGTH: 10,
        SLOPE: 0,
    },
    BikeType.RACE_BIKEPACKING: {
        SURFACE: 30,
        SMOOTHNESS: 12,
        TRACKTYPE: -50,
        BICYCLE: 10,
        WIDTH: 6,
        LENGTH: 5,
        SLOPE: 10,
    },
    BikeType.GRAVEL_BIKEPACKING: {
        SURFACE: 10,
        SMOOTHNESS: 5,
        TRACKTYPE: 10,
        BICYCLE: 0,
        WIDTH: 10,
        LENGTH: 10,
        SLOPE: 10,
    },
}

CUSTOM_SEED_WEIGHTS = {
    SURFACE: 10,
    SMOOTHNESS: 5,
    TRACKTYPE: 10,
    BICYCLE: 0,
    WIDTH: 10,
    LENGTH: 10,
    SLOPE: 10,
}

TOURING_TYPES = frozenset({BikeType.RACE_BIKEPACKING, BikeType.GRAVEL_BIKEPACKING})
PAVED_TYPES = frozenset({BikeType.RACE_ROAD, BikeType.RACE_BIKEPACKING})


def parse_bike_type(value: Optional[str]) -> BikeType:
    """
    Parse a stored or requested bike type name.

    Raises:
        ValueError: If the name is not a known bike type
    """
    if not isinstance(value, str):
        raise ValueError(f"Bike type must be a string: {value!r}")
    try:
        return BikeType(value.strip().upper())
    except ValueError:
        raise ValueError(f"Unknown bike type: {value}") from None


def weights_for(bike_type: BikeType, custom_weights: Optional[Mapping[str, int]] = None) -> Dict[str, int]:
    """Weights for a profile, always defining all seven criteria."""
    if bike_type == BikeType.CUSTOM:
        return complete_weights(dict(custom_weights or CUSTOM_SEED_WEIGHTS))
    return complete_weights(dict(PROFILE_WEIGHTS[bike_type]))


def should_penalize_slope(bike_type: BikeType, weights: Mapping[str, int]) -> bool:
    if bike_type in TOURING_TYPES:
        return True
    if bike_type == BikeType.CUSTOM:
        return weights.get(SLOPE, 0) > 0
    return False


def should_fetch_elevation(bike_type: BikeType, weights: Mapping[str, int], elevation_enabled: bool) -> bool:
    # Touring always pays for the elevation round trip
    if bike_type in TOURING_TYPES:
        return True
    if bike_type == BikeType.CUSTOM:
        return elevation_enabled and weights.get(SLOPE, 0) > 0
    return elevation_enabled


def prefers_paved_surface(bike_type: BikeType) -> bool:
    return bike_type in PAVED_TYPES


class BikeTypeManager:
    """
    Current bike type, custom weights and elevation toggle, backed by a
    settings store.
    """

    def __init__(self, store: SettingsStore):
        self.store = store
        self.current_bike_type = DEFAULT_BIKE_TYPE
        self.elevation_data_enabled = False
        self.custom_weights: Dict[str, int] = dict(CUSTOM_SEED_WEIGHTS)
        self._load()

    def _load(self) -> None:
        saved = self.store.get_str(SELECTED_BIKE_TYPE_KEY, DEFAULT_BIKE_TYPE.value)
        try:
            self.current_bike_type = parse_bike_type(saved)
        except ValueError:
            logger.warning(f"Unrecognised stored bike type {saved!r}, using {DEFAULT_BIKE_TYPE.value}")
            self.current_bike_type = DEFAULT_BIKE_TYPE

        self.elevation_data_enabled = self.store.get_bool(ELEVATION_ENABLED_KEY, False)

        for key in CRITERIA:
            self.custom_weights[key] = self.store.get_int(
                CUSTOM_WEIGHT_PREFIX + key, CUSTOM_SEED_WEIGHTS[key]
            )

    def set_bike_type(self, bike_type: BikeType) -> None:
        self.current_bike_type = bike_type
        self.store.put(SELECTED_BIKE_TYPE_KEY, bike_type.value)
        logger.info(f"Bike type set to {bike_type.value}")

    def set_elevation_data_enabled(self, enabled: bool) -> None:
        self.elevation_data_enabled = bool(enabled)
        self.store.put(ELEVATION_ENABLED_KEY, self.elevation_data_enabled)

    def get_custom_weights(self) -> Dict[str, int]:
        return dict(self.custom_weights)

    def update_custom_weight(self, key: str, value: int) -> None:
        """Change one custom weight and persist the whole custom profile."""
        if not is_criterion(key):
            raise ValueError(f"Unknown criterion: {key}")
        self.custom_weights[key] = int(value)
        self.save_custom_weights()

    def update_custom_weights(self, weights: Mapping[str, int]) -> None:
        for key in weights:
            if not is_criterion(key):
                raise ValueError(f"Unknown criterion: {key}")
        for key, value in weights.items():
            self.custom_weights[key] = int(value)
        self.save_custom_weights()

    def save_custom_weights(self) -> None:
        for key in CRITERIA:
            self.store.put(CUSTOM_WEIGHT_PREFIX + key, self.custom_weights[key])

    def current_weights(self) -> Dict[str, int]:
        return weights_for(self.current_bike_type, self.custom_weights)

    def should_penalize_slope(self) -> bool:
        return should_penalize_slope(self.current_bike_type, self.current_weights())

    def should_fetch_elevation(self) -> bool:
        return should_fetch_elevation(
            self.current_bike_type, self.current_weights(), self.elevation_data_enabled
        )

    def prefers_paved_surface(self) -> bool:
        return prefers_paved_surface(self.current_bike_type)
