"""Version information for PlanMeter."""

__version__ = "0.3.0"
__version_display__ = f"PlanMeter V{__version__}"
