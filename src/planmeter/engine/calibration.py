"""Scale calibration of document pages.

A page is calibrated from a reference segment drawn by the user and the
real-world length that segment represents. The derived ratio is the
normalized segment length per real-world unit. Each page holds at most
one calibration; recalibrating replaces it in place without history.
"""

import math

from loguru import logger

from planmeter.core.errors import (
    DegenerateCalibration,
    InvalidCalibrationInput,
    NotAuthenticated,
    NotFound,
    OutOfBounds,
)
from planmeter.core.geometry import Point, normalized_length, validate_normalized
from planmeter.core.models import CALIBRATIONS_TABLE, ScaleCalibration, utc_now
from planmeter.core.units import Unit
from planmeter.storage.repository import Repository


def validate_page_number(page_number) -> int:
    """Page numbers are 1-based integers."""
    if isinstance(page_number, bool) or not isinstance(page_number, int) or page_number < 1:
        raise OutOfBounds(f"Page number must be an integer >= 1, got {page_number!r}")
    return page_number


def compute_ratio(point1: Point, point2: Point, known_distance: float) -> float:
    """Normalized segment length per real-world unit.

    Raises InvalidCalibrationInput for a non-positive or non-finite
    distance, or when the ratio overflows or underflows to zero, and
    DegenerateCalibration for a zero-length segment.
    """
    if isinstance(known_distance, bool) or not isinstance(known_distance, (int, float)):
        raise InvalidCalibrationInput(f"Known distance must be a number, got {known_distance!r}")
    if not math.isfinite(known_distance) or known_distance <= 0:
        raise InvalidCalibrationInput(
            f"Known distance must be positive and finite, got {known_distance}"
        )
    length = normalized_length(point1, point2)
    if length == 0.0:
        raise DegenerateCalibration("Calibration points must not coincide")
    ratio = length / known_distance
    if not math.isfinite(ratio) or ratio <= 0.0:
        raise InvalidCalibrationInput(
            f"Known distance {known_distance} gives an unusable ratio ({ratio}) for a segment of length {length}"
        )
    return ratio


class CalibrationManager:
    """Maintains the single active calibration per document page."""

    def __init__(self, repository: Repository, user_id: str | None = None):
        self._repo = repository
        self._user_id = user_id

    @property
    def user_id(self) -> str | None:
        return self._user_id

    def set_calibration(
        self,
        document_id: str,
        page_number: int,
        point1,
        point2,
        known_distance: float,
        unit: str | Unit,
    ) -> ScaleCalibration:
        """Calibrate a page, replacing any previous calibration.

        Existing measurements on the page keep their ratio snapshots.
        """
        if self._user_id is None:
            raise NotAuthenticated("Calibration requires an acting user")

        validate_page_number(page_number)
        p1 = Point.coerce(point1)
        p2 = Point.coerce(point2)
        validate_normalized([p1, p2])
        ratio = compute_ratio(p1, p2, known_distance)
        unit_tag = Unit.parse(unit).value

        now = utc_now()
        calibration = ScaleCalibration(
            document_id=document_id,
            page_number=page_number,
            point1=p1,
            point2=p2,
            known_distance=float(known_distance),
            unit=unit_tag,
            ratio_per_normalized_unit=ratio,
            created_by=self._user_id,
            created_at=now,
            updated_at=now,
        )
        record = self._repo.upsert(
            CALIBRATIONS_TABLE,
            calibration.to_record(),
            conflict_key=("document_id", "page_number"),
        )
        logger.info(
            f"Calibrated document {document_id} page {page_number}: "
            f"{known_distance} {unit_tag}, ratio={ratio:.6g}"
        )
        return ScaleCalibration.from_record(record)

    def get_calibration(self, document_id: str, page_number: int) -> ScaleCalibration | None:
        """Return the page calibration, or None if the page is uncalibrated."""
        validate_page_number(page_number)
        record = self._repo.get(
            CALIBRATIONS_TABLE,
            {"document_id": document_id, "page_number": page_number},
        )
        if record is None:
            logger.debug(f"No calibration for document {document_id} page {page_number}")
            return None
        return ScaleCalibration.from_record(record)

    def delete_calibration(self, document_id: str, page_number: int):
        """Remove the page calibration. Measurement snapshots are untouched."""
        if self._user_id is None:
            raise NotAuthenticated("Deleting a calibration requires an acting user")

        existing = self.get_calibration(document_id, page_number)
        if existing is None:
            raise NotFound(f"No calibration for document {document_id} page {page_number}")
        self._repo.delete(CALIBRATIONS_TABLE, existing.id)
        logger.info(f"Deleted calibration for document {document_id} page {page_number}")

    def list_calibrations(self, document_id: str) -> list[ScaleCalibration]:
        """All calibrated pages of a document, by page number."""
        records = self._repo.select(CALIBRATIONS_TABLE, {"document_id": document_id})
        return sorted(
            (ScaleCalibration.from_record(r) for r in records),
            key=lambda c: c.page_number,
        )

    def delete_document_calibrations(self, document_id: str) -> int:
        """Cascade removal when the parent document is deleted."""
        removed = self._repo.delete_where(CALIBRATIONS_TABLE, {"document_id": document_id})
        logger.info(f"Removed {removed} calibrations of document {document_id}")
        return removed
