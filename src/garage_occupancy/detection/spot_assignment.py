"""Assignment of detected vehicles to the fixed spot grid."""

import logging
from dataclasses import dataclass
from typing import Sequence

from ..state.layout import DEFAULT_ROWS
from .models import EMPTY_BOX, DetectedSpot, SpotBoundary, Vehicle

logger = logging.getLogger(__name__)


@dataclass
class DetectionSummary:
    """Occupancy counts for one detection pass."""

    total_spots: int
    occupied_spots: int
    available_spots: int
    spots_with_plates: int


def assign_vehicles_to_spots(
    vehicles: Sequence[Vehicle],
    rows: int = DEFAULT_ROWS,
) -> list[DetectedSpot]:
    """
    Map detected vehicles onto spots 1A, 1B, ..., NA, NB.

    The camera faces the rows, and the rightmost vehicle (largest x) sits
    nearest to row 1. Back vehicles fill the A spots and front vehicles
    fill the B spots, each in descending x order. Vehicles beyond the
    number of rows are dropped.

    Args:
        vehicles: Detected vehicles tagged front/back
        rows: Number of rows in the garage

    Returns:
        Exactly 2 * rows spots in canonical order
    """
    # sorted() is stable, so vehicles at equal x keep their input order
    ordered = sorted(vehicles, key=lambda v: v.center[0], reverse=True)
    fronts = [v for v in ordered if v.position == "front"]
    backs = [v for v in ordered if v.position == "back"]

    for label, group in (("front", fronts), ("back", backs)):
        if len(group) > rows:
            logger.warning(
                f"Detected {len(group)} {label} vehicles for {rows} rows, "
                f"dropping {len(group) - rows}"
            )

    spots: list[DetectedSpot] = []
    for i in range(rows):
        back = backs[i] if i < len(backs) else None
        front = fronts[i] if i < len(fronts) else None
        spots.append(DetectedSpot(spot_number=f"{i + 1}A", is_occupied=back is not None, vehicle=back))
        spots.append(DetectedSpot(spot_number=f"{i + 1}B", is_occupied=front is not None, vehicle=front))

    logger.debug(f"Assigned {sum(1 for s in spots if s.is_occupied)} vehicle(s) to spots")
    return spots


def convert_to_boundaries(spots: Sequence[DetectedSpot]) -> list[SpotBoundary]:
    """Convert detected spots into boundary records carrying the vehicle box."""
    return [
        SpotBoundary(
            id=index,
            spot_number=spot.spot_number,
            bounding_box=spot.vehicle.bounding_box if spot.vehicle else EMPTY_BOX,
            is_occupied=spot.is_occupied,
            vehicle=spot.vehicle,
        )
        for index, spot in enumerate(spots)
    ]


def summarize_detection(spots: Sequence[DetectedSpot]) -> DetectionSummary:
    occupied = sum(1 for s in spots if s.is_occupied)
    with_plates = sum(1 for s in spots if s.vehicle is not None and s.vehicle.license_plate)
    return DetectionSummary(
        total_spots=len(spots),
        occupied_spots=occupied,
        available_spots=len(spots) - occupied,
        spots_with_plates=with_plates,
    )
