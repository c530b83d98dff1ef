"""Error taxonomy for the calibration and measurement engine.

Every failure is raised synchronously to the caller; nothing is
retried. Validation errors are raised before any repository write.
"""


class PlanMeterError(Exception):
    """Base class for all engine errors."""


class InvalidCalibrationInput(PlanMeterError, ValueError):
    """Known distance is non-positive or non-finite, or the unit is unknown."""


class DegenerateCalibration(PlanMeterError, ValueError):
    """The calibration reference segment has zero length."""


class InvalidGeometry(PlanMeterError, ValueError):
    """Point count inconsistent with the annotation type, or an unusable value."""


class OutOfBounds(PlanMeterError, ValueError):
    """A coordinate lies outside the normalized range, or a page number is < 1."""


class InvalidAnnotationField(PlanMeterError, ValueError):
    """A display field (color) holds an unsupported value."""


class NotFound(PlanMeterError, LookupError):
    """The referenced record does not exist."""


class Forbidden(PlanMeterError, PermissionError):
    """The acting user may not perform this mutation."""


class NotAuthenticated(PlanMeterError, PermissionError):
    """A write was attempted without an acting user."""
