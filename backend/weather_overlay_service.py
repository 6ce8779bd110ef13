"""
Weather Overlay Service - Mud risk from recent rain

Derives a muddy/not-muddy condition from daily precipitation over a short
look-back window and turns it into an additive score penalty for loose
surfaces.

Inputs:
  - daily precipitation totals (mm) for the look-back window

Output:
  - WeatherCondition: rainy-day count, total precipitation, muddy flag, report
  - penalty: 0 or a negative integer, larger in magnitude for dirt than gravel

All functions are pure and deterministic.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

RAIN_THRESHOLD_MM = 5.0
DAYS_TO_ANALYZE = 7
MIN_RAINY_DAYS = 2

DIRT_FAMILY = ("dirt", "ground", "earth", "unpaved")
GRAVEL_FAMILY = ("gravel", "compacted")


@dataclass(frozen=True)
class DailyPrecipitation:
    """One day of precipitation history."""
    date: str
    precipitation_mm: float

    @property
    def is_rainy(self) -> bool:
        return self.precipitation_mm >= RAIN_THRESHOLD_MM


@dataclass(frozen=True)
class WeatherCondition:
    """Recent-rain summary for one location."""
    rainy_days_count: int
    total_precipitation_mm: float
    is_muddy: bool
    warning_message: str
    daily: Tuple[DailyPrecipitation, ...] = field(default_factory=tuple)
    days_analyzed: int = DAYS_TO_ANALYZE

    def detailed_report(self) -> str:
        lines = [
            f"Past {self.days_analyzed} days:",
            f"• Rainy days: {self.rainy_days_count}",
            f"• Total precipitation: {self.total_precipitation_mm:.1f} mm",
        ]
        if self.is_muddy:
            lines.append("")
            lines.append("⚠️ Warning: Unpaved roads may be muddy")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "rainy_days_count": self.rainy_days_count,
            "total_precipitation_mm": round(self.total_precipitation_mm, 1),
            "is_muddy": self.is_muddy,
            "warning_message": self.warning_message,
            "report": self.detailed_report(),
        }


@dataclass(frozen=True)
class WeatherPenaltyConfig:
    """Tunable penalty constants. Penalties grow with every rainy day past the minimum."""
    min_rainy_days: int = MIN_RAINY_DAYS
    dirt_base: int = 15
    dirt_per_extra_day: int = 5
    gravel_base: int = 8
    gravel_per_extra_day: int = 2


DEFAULT_PENALTY_CONFIG = WeatherPenaltyConfig()


def build_condition(
    daily: Sequence[DailyPrecipitation],
    min_rainy_days: int = MIN_RAINY_DAYS,
    days_analyzed: int = DAYS_TO_ANALYZE,
) -> WeatherCondition:
    """
    Summarise a precipitation history.

    Args:
        daily: Daily totals, oldest first
        min_rainy_days: Rainy days needed before roads count as muddy

    Returns:
        Immutable WeatherCondition
    """
    rainy_days = sum(1 for day in daily if day.is_rainy)
    total = sum(max(0.0, day.precipitation_mm) for day in daily)
    is_muddy = rainy_days >= min_rainy_days

    if is_muddy:
        warning = f"⚠️ Recent rain ({rainy_days} days): Unpaved roads may be muddy"
    else:
        warning = "✓ Good conditions: Limited recent rain"

    return WeatherCondition(
        rainy_days_count=rainy_days,
        total_precipitation_mm=total,
        is_muddy=is_muddy,
        warning_message=warning,
        daily=tuple(daily),
        days_analyzed=days_analyzed,
    )


def surface_family(surface: Optional[str]) -> Optional[str]:
    """'dirt', 'gravel' or None for a surface tag value."""
    if not surface:
        return None
    value = surface.lower()
    if any(name in value for name in DIRT_FAMILY):
        return "dirt"
    if any(name in value for name in GRAVEL_FAMILY):
        return "gravel"
    return None


def weather_penalty(
    surface: Optional[str],
    condition: Optional[WeatherCondition],
    config: WeatherPenaltyConfig = DEFAULT_PENALTY_CONFIG,
) -> int:
    """
    Score penalty for a surface under a weather condition.

    Returns:
        0 when not muddy or the surface is paved/unknown, otherwise a negative integer
    """
    if condition is None or not condition.is_muddy:
        return 0

    family = surface_family(surface)
    excess_days = max(0, condition.rainy_days_count - config.min_rainy_days)

    if family == "dirt":
        return -config.dirt_base - excess_days * config.dirt_per_extra_day
    if family == "gravel":
        return -config.gravel_base - excess_days * config.gravel_per_extra_day
    return 0


def warning_for_surface(surface: Optional[str], condition: Optional[WeatherCondition]) -> Optional[str]:
    if condition is None or not condition.is_muddy:
        return None

    family = surface_family(surface)
    if family == "dirt":
        return f"⚠️ High mud risk - {condition.rainy_days_count} rainy days recently"
    if family == "gravel":
        return f"⚠️ Moderate mud risk - {condition.rainy_days_count} rainy days recently"
    return None
