"""Controller earnings calculation for the school-management platform."""

__version__ = "1.0.0"
