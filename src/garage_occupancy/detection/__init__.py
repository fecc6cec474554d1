"""Vehicle detection results and spot assignment module."""

from .models import DetectedSpot, PlateDetection, SpotBoundary, Vehicle
from .plate_matching import match_plates_to_vehicles
from .spot_assignment import assign_vehicles_to_spots, convert_to_boundaries

__all__ = [
    "DetectedSpot",
    "PlateDetection",
    "SpotBoundary",
    "Vehicle",
    "match_plates_to_vehicles",
    "assign_vehicles_to_spots",
    "convert_to_boundaries",
]
