"""Nearest-centroid matching of license plates to detected vehicles."""

import logging
from typing import Optional, Sequence

import numpy as np

from .models import PlateDetection, Vehicle

logger = logging.getLogger(__name__)


def plate_corners(bbox: Sequence[float]) -> Optional[tuple[float, float, float, float]]:
    """
    Get two opposite corners (x1, y1, x2, y2) of a plate box.

    OCR services return either an axis-aligned box of 4 numbers or a
    quadrilateral of 8 numbers (4 points). For the quadrilateral, points
    0 and 2 are opposite corners.

    Returns:
        Corner tuple, or None if the box has an unsupported length
    """
    if len(bbox) == 4:
        x1, y1, x2, y2 = bbox
    elif len(bbox) == 8:
        x1, y1, x2, y2 = bbox[0], bbox[1], bbox[4], bbox[5]
    else:
        return None
    return (float(x1), float(y1), float(x2), float(y2))


def box_center(bbox: Sequence[float]) -> Optional[tuple[float, float]]:
    """Get the center point of a 4- or 8-number box."""
    corners = plate_corners(bbox)
    if corners is None:
        return None
    x1, y1, x2, y2 = corners
    return ((x1 + x2) / 2, (y1 + y2) / 2)


def match_plates_to_vehicles(
    plates: Sequence[PlateDetection],
    vehicles: Sequence[Vehicle],
) -> list[Vehicle]:
    """
    Assign each plate's text to the vehicle whose center is nearest.

    Vehicles are returned as copies in their original order, with
    license plates cleared before matching. Distance ties go to the
    first vehicle in input order. When several plates pick the same
    vehicle, the last one processed wins.

    Plates without a bounding box cannot be placed and are dropped with a
    warning. When the OCR service answers with bare strings only, no
    vehicle gets a plate from this pass.

    Args:
        plates: Plates read by the OCR service
        vehicles: Vehicles reported by the detector

    Returns:
        Vehicles with license_plate populated where a plate matched
    """
    matched = [v.with_plate(None) for v in vehicles]
    if not matched:
        return matched

    centers = np.array([v.center for v in matched], dtype=float)

    for plate in plates:
        if not plate.bbox:
            logger.warning(f"Plate '{plate.text}' has no bounding box, cannot place it")
            continue

        center = box_center(plate.bbox)
        if center is None:
            logger.warning(
                f"Plate '{plate.text}' has unsupported box of length {len(plate.bbox)}"
            )
            continue

        # argmin returns the first minimum, which keeps ties stable
        distances = np.sum((centers - np.array(center)) ** 2, axis=1)
        best = int(np.argmin(distances))
        matched[best].license_plate = plate.text

        logger.debug(f"Matched plate '{plate.text}' to vehicle #{best} at {matched[best].center}")

    return matched
