"""Records handled by the engine.

Calibrations and measurements are plain dataclasses. `to_record()`
and `from_record()` translate them to and from repository rows,
whose column names match the stored document tables.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from planmeter.core.errors import InvalidAnnotationField, InvalidGeometry
from planmeter.core.geometry import Point


CALIBRATIONS_TABLE = "document_scale_calibrations"
MEASUREMENTS_TABLE = "document_measurements"


def utc_now() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class MeasurementType(Enum):
    """Kinds of annotation a user can place on a page."""

    DISTANCE = "distance"
    AREA = "area"
    PERIMETER = "perimeter"
    COUNT = "count"

    @property
    def min_points(self) -> int:
        return _MIN_POINTS[self]

    @classmethod
    def parse(cls, value: "str | MeasurementType") -> "MeasurementType":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidGeometry(f"Unknown measurement type: {value!r}") from None


_MIN_POINTS = {
    MeasurementType.DISTANCE: 2,
    MeasurementType.AREA: 3,
    MeasurementType.PERIMETER: 2,
    MeasurementType.COUNT: 1,
}


class MeasurementColor(Enum):
    """Display colors offered for annotations."""

    BLUE = "blue"
    RED = "red"
    GREEN = "green"
    ORANGE = "orange"
    PURPLE = "purple"

    @classmethod
    def parse(cls, value: "str | MeasurementColor") -> "MeasurementColor":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidAnnotationField(f"Unknown color: {value!r}") from None


def _points_from_record(raw: Any) -> list[Point]:
    # Older rows store the point list as a JSON string
    if isinstance(raw, str):
        raw = json.loads(raw)
    return [Point.from_dict(p) for p in raw or []]


@dataclass
class ScaleCalibration:
    """The active calibration of one document page.

    `ratio_per_normalized_unit` is the normalized segment length per
    real-world unit. It is stored under the historical column name
    `pixels_per_unit` although no pixel counts are involved.
    """

    document_id: str
    page_number: int
    point1: Point
    point2: Point
    known_distance: float
    unit: str
    ratio_per_normalized_unit: float
    created_by: str | None = None
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def calibrated_at(self) -> str | None:
        """When the current ratio was established."""
        return self.updated_at or self.created_at

    def to_record(self) -> dict[str, Any]:
        record = {
            "document_id": self.document_id,
            "page_number": self.page_number,
            "created_by": self.created_by,
            "point1_x": self.point1.x,
            "point1_y": self.point1.y,
            "point2_x": self.point2.x,
            "point2_y": self.point2.y,
            "known_distance": self.known_distance,
            "unit": self.unit,
            "pixels_per_unit": self.ratio_per_normalized_unit,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if self.id is not None:
            record["id"] = self.id
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "ScaleCalibration":
        return cls(
            id=record.get("id"),
            document_id=record["document_id"],
            page_number=record["page_number"],
            point1=Point(record["point1_x"], record["point1_y"]),
            point2=Point(record["point2_x"], record["point2_y"]),
            known_distance=record["known_distance"],
            unit=record["unit"],
            ratio_per_normalized_unit=record["pixels_per_unit"],
            created_by=record.get("created_by"),
            created_at=record.get("created_at"),
            updated_at=record.get("updated_at"),
        )


@dataclass
class DocumentMeasurement:
    """A user-placed annotation on a document page.

    `scale_ratio`, `scale_unit` and `calibrated_at` are a snapshot of
    the page calibration taken at creation. They never change
    afterwards, even if the page is recalibrated.
    """

    document_id: str
    project_id: str
    type: MeasurementType
    page_number: int
    points: list[Point] = field(default_factory=list)
    scale_ratio: float | None = None
    scale_unit: str | None = None
    calibrated_at: str | None = None
    measured_value: float | None = None
    color: str = MeasurementColor.BLUE.value
    name: str | None = None
    note: str | None = None
    created_by: str | None = None
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_calibrated(self) -> bool:
        return self.scale_ratio is not None

    def to_record(self) -> dict[str, Any]:
        record = {
            "document_id": self.document_id,
            "project_id": self.project_id,
            "created_by": self.created_by,
            "type": self.type.value,
            "name": self.name,
            "page_number": self.page_number,
            "points": [p.to_dict() for p in self.points],
            "scale_ratio": self.scale_ratio,
            "scale_unit": self.scale_unit,
            "calibrated_at": self.calibrated_at,
            "measured_value": self.measured_value,
            "color": self.color,
            "note": self.note,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if self.id is not None:
            record["id"] = self.id
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "DocumentMeasurement":
        return cls(
            id=record.get("id"),
            document_id=record["document_id"],
            project_id=record["project_id"],
            created_by=record.get("created_by"),
            type=MeasurementType(record["type"]),
            name=record.get("name"),
            page_number=record["page_number"],
            points=_points_from_record(record.get("points")),
            scale_ratio=record.get("scale_ratio"),
            scale_unit=record.get("scale_unit"),
            calibrated_at=record.get("calibrated_at"),
            measured_value=record.get("measured_value"),
            color=record.get("color") or MeasurementColor.BLUE.value,
            note=record.get("note"),
            created_at=record.get("created_at"),
            updated_at=record.get("updated_at"),
        )


@dataclass
class MeasurementSummary:
    """Totals over a set of measurements, grouped by type."""

    count: int = 0
    total_distance: float = 0.0
    total_perimeter: float = 0.0
    total_area: float = 0.0
    total_count: int = 0
    unit: str | None = None
