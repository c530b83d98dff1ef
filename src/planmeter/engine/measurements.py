"""Measurement annotations on document pages.

Annotations are ordered lists of normalized points. On creation each
one copies the page calibration (ratio, unit and timestamp) as a
snapshot. Measured values are pushed by the rendering layer, or
derived from the stored geometry and snapshot via `recompute_value`.
"""

import math
from collections.abc import Iterable

from loguru import logger

from planmeter.config.manager import ConfigManager
from planmeter.core import geometry
from planmeter.core.auth import MeasurementPolicy
from planmeter.core.errors import (
    Forbidden,
    InvalidGeometry,
    NotAuthenticated,
    NotFound,
)
from planmeter.core.models import (
    MEASUREMENTS_TABLE,
    DocumentMeasurement,
    MeasurementColor,
    MeasurementSummary,
    MeasurementType,
    utc_now,
)
from planmeter.core.units import Unit, convert_area, convert_length
from planmeter.engine.calibration import CalibrationManager, validate_page_number
from planmeter.storage.repository import Repository


_UNSET = object()


def validate_points(measurement_type: MeasurementType, points) -> list[geometry.Point]:
    """Check point count against the type and every coordinate against [0, 1]."""
    coerced = geometry.coerce_points(points)
    if len(coerced) < measurement_type.min_points:
        raise InvalidGeometry(
            f"A {measurement_type.value} measurement needs at least "
            f"{measurement_type.min_points} points, got {len(coerced)}"
        )
    geometry.validate_normalized(coerced)
    return coerced


def summarize(measurements: Iterable[DocumentMeasurement], unit: str | Unit | None = None) -> MeasurementSummary:
    """Total the measured values of each type.

    With `unit`, lengths and areas stored in another unit are converted
    first. Values without a recorded unit are added as they are.
    """
    target = Unit.parse(unit).value if unit is not None else None
    summary = MeasurementSummary(unit=target)

    for m in measurements:
        summary.count += 1
        if m.type is MeasurementType.COUNT:
            summary.total_count += len(m.points)
            continue

        value = m.measured_value or 0.0
        if target is not None and m.scale_unit and m.scale_unit != target and value:
            if m.type is MeasurementType.AREA:
                value = convert_area(value, m.scale_unit, target)
            else:
                value = convert_length(value, m.scale_unit, target)

        if m.type is MeasurementType.DISTANCE:
            summary.total_distance += value
        elif m.type is MeasurementType.PERIMETER:
            summary.total_perimeter += value
        elif m.type is MeasurementType.AREA:
            summary.total_area += value

    return summary


class MeasurementEngine:
    """Creates, edits and deletes measurements for one acting user."""

    def __init__(
        self,
        repository: Repository,
        calibrations: CalibrationManager | None = None,
        user_id: str | None = None,
        policy: MeasurementPolicy | None = None,
        config: ConfigManager | None = None,
    ):
        self._repo = repository
        self._user_id = user_id
        self._calibrations = calibrations or CalibrationManager(repository, user_id=user_id)
        self._policy = policy or MeasurementPolicy()
        self._default_color = MeasurementColor.BLUE.value
        self._default_unit = Unit.METERS.value
        if config is not None:
            self._default_color = MeasurementColor.parse(
                config.get("measurement", "default_color", self._default_color)
            ).value
            self._default_unit = Unit.parse(
                config.get("measurement", "default_unit", self._default_unit)
            ).value
            config.add_listener(self._on_config_change)

    def _on_config_change(self, group: str, key: str, new_value, old_value):
        if group != "measurement":
            return
        if key == "default_color":
            self._default_color = MeasurementColor.parse(new_value).value
        elif key == "default_unit":
            self._default_unit = Unit.parse(new_value).value
        else:
            return
        logger.debug(f"Measurement {key} changed from {old_value} to {new_value}")

    @property
    def user_id(self) -> str | None:
        return self._user_id

    def _require_user(self, action: str):
        if self._user_id is None:
            raise NotAuthenticated(f"{action} requires an acting user")

    # -------------------------------------------------------------------
    # Create / read
    # -------------------------------------------------------------------

    def create_measurement(
        self,
        document_id: str,
        project_id: str,
        measurement_type: str | MeasurementType,
        page_number: int,
        points,
        color: str | None = None,
        name: str | None = None,
        note: str | None = None,
    ) -> DocumentMeasurement:
        """Persist a new annotation with a snapshot of the page calibration.

        The measured value is left unset; it depends on the rendered
        page and is supplied later through `update_measurement_value`.
        """
        self._require_user("Creating a measurement")

        kind = MeasurementType.parse(measurement_type)
        validate_page_number(page_number)
        coerced = validate_points(kind, points)
        color_value = MeasurementColor.parse(color).value if color else self._default_color

        calibration = self._calibrations.get_calibration(document_id, page_number)
        now = utc_now()
        measurement = DocumentMeasurement(
            document_id=document_id,
            project_id=project_id,
            type=kind,
            page_number=page_number,
            points=coerced,
            scale_ratio=calibration.ratio_per_normalized_unit if calibration else None,
            scale_unit=calibration.unit if calibration else None,
            calibrated_at=calibration.calibrated_at if calibration else None,
            measured_value=None,
            color=color_value,
            name=name or None,
            note=note or None,
            created_by=self._user_id,
            created_at=now,
            updated_at=now,
        )
        record = self._repo.insert(MEASUREMENTS_TABLE, measurement.to_record())
        created = DocumentMeasurement.from_record(record)
        logger.info(
            f"Created {kind.value} measurement {created.id} on document {document_id} "
            f"page {page_number} ({'calibrated' if calibration else 'uncalibrated'})"
        )
        return created

    def get_measurement(self, measurement_id: str) -> DocumentMeasurement:
        record = self._repo.get(MEASUREMENTS_TABLE, {"id": measurement_id})
        if record is None:
            raise NotFound(f"Measurement {measurement_id} not found")
        return DocumentMeasurement.from_record(record)

    def list_measurements_for_page(self, document_id: str, page_number: int) -> list[DocumentMeasurement]:
        """Measurements on one page, oldest first."""
        validate_page_number(page_number)
        records = self._repo.select(
            MEASUREMENTS_TABLE,
            {"document_id": document_id, "page_number": page_number},
            order_by="created_at",
        )
        logger.debug(f"Loaded {len(records)} measurements for document {document_id} page {page_number}")
        return [DocumentMeasurement.from_record(r) for r in records]

    def list_measurements_for_document(self, document_id: str) -> list[DocumentMeasurement]:
        """Measurements on every page of a document, oldest first."""
        records = self._repo.select(
            MEASUREMENTS_TABLE,
            {"document_id": document_id},
            order_by="created_at",
        )
        return [DocumentMeasurement.from_record(r) for r in records]

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------

    def update_measurement_value(self, measurement_id: str, measured_value: float):
        """Store a caller-computed value verbatim."""
        self._require_user("Updating a measured value")
        if isinstance(measured_value, bool) or not isinstance(measured_value, (int, float)):
            raise InvalidGeometry(f"Measured value must be a number, got {measured_value!r}")
        if not math.isfinite(measured_value):
            raise InvalidGeometry(f"Measured value must be finite, got {measured_value}")

        existing = self.get_measurement(measurement_id)
        if not self._policy.can_recompute_value(self._user_id, existing):
            raise Forbidden(f"User {self._user_id} may not update the value of {measurement_id}")

        self._repo.update(
            MEASUREMENTS_TABLE,
            measurement_id,
            {"measured_value": float(measured_value), "updated_at": utc_now()},
        )
        logger.debug(f"Measurement {measurement_id} value set to {measured_value}")

    def update_measurement_fields(
        self,
        measurement_id: str,
        name=_UNSET,
        color=_UNSET,
        note=_UNSET,
    ) -> DocumentMeasurement:
        """Change display fields. Only arguments actually passed are written.

        Geometry, type and the calibration snapshot cannot be changed;
        delete and recreate the measurement instead.
        """
        self._require_user("Editing a measurement")
        existing = self.get_measurement(measurement_id)
        if not self._policy.can_edit_content(self._user_id, existing):
            logger.warning(f"User {self._user_id} refused edit of measurement {measurement_id}")
            raise Forbidden("Only the creator can edit this measurement")

        patch = {"updated_at": utc_now()}
        if name is not _UNSET:
            patch["name"] = name or None
        if color is not _UNSET:
            patch["color"] = MeasurementColor.parse(color).value if color else self._default_color
        if note is not _UNSET:
            patch["note"] = note or None

        record = self._repo.update(MEASUREMENTS_TABLE, measurement_id, patch)
        return DocumentMeasurement.from_record(record)

    def delete_measurement(self, measurement_id: str):
        """Hard-delete a measurement. Creator only."""
        self._require_user("Deleting a measurement")
        existing = self.get_measurement(measurement_id)
        if not self._policy.can_delete(self._user_id, existing):
            logger.warning(f"User {self._user_id} refused delete of measurement {measurement_id}")
            raise Forbidden("Only the creator can delete this measurement")

        self._repo.delete(MEASUREMENTS_TABLE, measurement_id)
        logger.info(f"Deleted measurement {measurement_id}")

    def delete_document_measurements(self, document_id: str) -> int:
        """Cascade removal when the parent document is deleted."""
        removed = self._repo.delete_where(MEASUREMENTS_TABLE, {"document_id": document_id})
        logger.info(f"Removed {removed} measurements of document {document_id}")
        return removed

    # -------------------------------------------------------------------
    # Values and calibration drift
    # -------------------------------------------------------------------

    def compute_value(self, measurement: DocumentMeasurement) -> float | None:
        """Real-world value from the stored points and the snapshot ratio.

        None for uncalibrated non-count measurements.
        """
        return geometry.measure(measurement.type, measurement.points, measurement.scale_ratio)

    def recompute_value(self, measurement_id: str) -> float | None:
        """Compute the value from the snapshot and store it."""
        measurement = self.get_measurement(measurement_id)
        value = self.compute_value(measurement)
        if value is not None:
            self.update_measurement_value(measurement_id, value)
        return value

    def is_stale(self, measurement: DocumentMeasurement) -> bool:
        """Whether the page calibration changed since the snapshot was taken.

        Measurements are never rewritten on recalibration; this lets a
        caller detect the drift and offer to recreate them.
        """
        current = self._calibrations.get_calibration(measurement.document_id, measurement.page_number)
        if current is None:
            return measurement.scale_ratio is not None
        return (
            measurement.scale_ratio != current.ratio_per_normalized_unit
            or measurement.scale_unit != current.unit
            or measurement.calibrated_at != current.calibrated_at
        )

    def summarize_page(self, document_id: str, page_number: int, unit: str | Unit | None = None) -> MeasurementSummary:
        return summarize(self.list_measurements_for_page(document_id, page_number), unit=unit or self._default_unit)

    def summarize_document(self, document_id: str, unit: str | Unit | None = None) -> MeasurementSummary:
        return summarize(self.list_measurements_for_document(document_id), unit=unit or self._default_unit)
