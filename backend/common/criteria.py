"""
Scoring Criterion Definitions

Shared constants for the per-criterion weights used across the backend.
Settings keys and API payloads use these names verbatim.
"""

# Criterion identifiers
SURFACE = "surface"
SMOOTHNESS = "smoothness"
TRACKTYPE = "tracktype"
BICYCLE = "bicycle"
WIDTH = "width"
LENGTH = "length"
SLOPE = "slope"

# All criteria, in display order
CRITERIA = (
    SURFACE,
    SMOOTHNESS,
    TRACKTYPE,
    BICYCLE,
    WIDTH,
    LENGTH,
    SLOPE,
)

# Weight used when a profile does not define a criterion
FALLBACK_WEIGHTS = {
    SURFACE: 3,
    SMOOTHNESS: 2,
    TRACKTYPE: 2,
    BICYCLE: 2,
    WIDTH: 1,
    LENGTH: 1,
    SLOPE: 5,
}


def is_criterion(name: str) -> bool:
    """Check if a name is a known scoring criterion."""
    return name in FALLBACK_WEIGHTS


def complete_weights(weights: dict) -> dict:
    """Return a copy of ``weights`` defining every criterion.

    Missing criteria take their fallback weight; unknown keys are dropped.
    """
    return {key: int(weights.get(key, FALLBACK_WEIGHTS[key])) for key in CRITERIA}
