"""Unit handling for PlanMeter.

Calibration units are symbolic tags passed through to measurements.
This module recognizes the supported tags, converts values between
them and formats measured values for display.
"""

from enum import Enum

from planmeter.core.errors import InvalidCalibrationInput


class Unit(Enum):
    """Supported real-world length units."""

    MILLIMETERS = "mm"
    CENTIMETERS = "cm"
    METERS = "m"
    INCHES = "in"
    FEET = "ft"

    @classmethod
    def parse(cls, tag: "str | Unit") -> "Unit":
        """Resolve a unit tag, raising InvalidCalibrationInput if unknown."""
        if isinstance(tag, cls):
            return tag
        try:
            return cls(str(tag).strip())
        except ValueError:
            raise InvalidCalibrationInput(f"Unknown unit: {tag!r}") from None


# Conversion factors to meters (base unit)
_TO_METERS = {
    Unit.MILLIMETERS: 0.001,
    Unit.CENTIMETERS: 0.01,
    Unit.METERS: 1.0,
    Unit.INCHES: 0.0254,
    Unit.FEET: 0.3048,
}


def convert_length(value: float, from_unit: str | Unit, to_unit: str | Unit) -> float:
    """Convert a length between units."""
    meters = value * _TO_METERS[Unit.parse(from_unit)]
    return meters / _TO_METERS[Unit.parse(to_unit)]


def convert_area(value: float, from_unit: str | Unit, to_unit: str | Unit) -> float:
    """Convert an area between square units."""
    factor = _TO_METERS[Unit.parse(from_unit)] / _TO_METERS[Unit.parse(to_unit)]
    return value * factor * factor


def format_measurement(value: float | None, unit: str | None, measurement_type: str) -> str:
    """Format a measured value for display.

    Counts are shown as whole pieces. Lengths and areas get fewer
    decimals as they grow: 2 below 1, 1 below 10, none above.
    """
    if value is None:
        return "-"

    if measurement_type == "count":
        return f"{round(value)} pcs"

    decimals = 2 if value < 1 else 1 if value < 10 else 0
    formatted = f"{value:.{decimals}f}"

    if not unit:
        return formatted
    if measurement_type == "area":
        return f"{formatted} {unit}²"
    return f"{formatted} {unit}"
