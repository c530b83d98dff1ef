"""
PlanMeter - scale calibration and measurement engine for scanned drawings.

Lets a user calibrate a drawing page from a reference segment of known
real-world length, then place distance, area, perimeter and count
annotations whose real-world values derive from that calibration.
"""

from planmeter.version import __version__, __version_display__

__all__ = ["__version__", "__version_display__"]
