"""Unit conversion and magnitude formatting for spatial analysis.

The display thresholds are relied on by consumers of analysis results, so they
are kept here as named constants rather than inline in the orchestrator.
"""

from typing import Union

from src.interfaces import LengthUnit

METERS_PER_UNIT = {
    LengthUnit.METERS: 1.0,
    LengthUnit.KILOMETERS: 1000.0,
    LengthUnit.FEET: 0.3048,
    LengthUnit.MILES: 1609.34,
}

KILOMETER_THRESHOLD_M = 1000.0
HECTARE_THRESHOLD_M2 = 1000.0
SQUARE_METERS_PER_HECTARE = 10_000.0
SQUARE_KILOMETER_THRESHOLD_M2 = 1_000_000.0


def to_meters(distance: float, unit: Union[LengthUnit, str]) -> float:
    """Convert a distance in ``unit`` to metres."""
    return distance * METERS_PER_UNIT[LengthUnit(unit)]


def format_distance(meters: float) -> str:
    """Format a length: kilometres above 1,000 m, metres otherwise.

    >>> format_distance(1500)
    '1.50 km'
    >>> format_distance(999.5)
    '999.50 m'
    """
    if meters > KILOMETER_THRESHOLD_M:
        return f"{meters / 1000.0:.2f} km"
    return f"{meters:.2f} m"


def format_area(square_meters: float) -> str:
    """Format an area in m², hectares or km².

    Areas under 1,000 m² stay in m²; up to 1,000,000 m² they are shown in
    hectares (10,000 m² each); beyond that in km².

    >>> format_area(5000)
    '0.50 ha'
    >>> format_area(2_000_000)
    '2.00 km²'
    """
    if square_meters > SQUARE_KILOMETER_THRESHOLD_M2:
        return f"{square_meters / SQUARE_KILOMETER_THRESHOLD_M2:.2f} km²"
    if square_meters >= HECTARE_THRESHOLD_M2:
        return f"{square_meters / SQUARE_METERS_PER_HECTARE:.2f} ha"
    return f"{square_meters:.2f} m²"
