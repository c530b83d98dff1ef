"""Cleanup of engine records owned by a deleted document."""

from loguru import logger

from planmeter.engine.calibration import CalibrationManager
from planmeter.engine.measurements import MeasurementEngine


def purge_document(document_id: str, calibrations: CalibrationManager, measurements: MeasurementEngine) -> dict[str, int]:
    """Remove every calibration and measurement of a document."""
    removed = {
        "measurements": measurements.delete_document_measurements(document_id),
        "calibrations": calibrations.delete_document_calibrations(document_id),
    }
    logger.info(f"Purged document {document_id}: {removed}")
    return removed
