"""Parking garage reservation service with vision-based occupancy reconciliation."""

__version__ = "1.0.0"
