"""Detection pipeline: image -> vehicles and plates -> spot boundaries."""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from ..clients.vision import VisionClient
from ..metrics import record_detection_latency
from ..state.layout import DEFAULT_ROWS
from .models import DetectedSpot, SpotBoundary, Vehicle
from .plate_matching import match_plates_to_vehicles
from .spot_assignment import (
    DetectionSummary,
    assign_vehicles_to_spots,
    convert_to_boundaries,
    summarize_detection,
)

logger = logging.getLogger(__name__)


@dataclass
class DetectionResult:
    """Everything produced by one detection pass."""

    mapped_spots: list[DetectedSpot]
    boundaries: list[SpotBoundary]
    summary: DetectionSummary
    vehicles: list[Vehicle]
    processed_image: Optional[str]
    image_size: tuple[int, int]  # width, height


def decode_image(image_bytes: bytes) -> np.ndarray:
    """
    Decode uploaded image bytes.

    Raises:
        ValueError: If the bytes are not a decodable image
    """
    nparr = np.frombuffer(image_bytes, np.uint8)
    image = cv2.imdecode(nparr, cv2.IMREAD_COLOR)

    if image is None:
        raise ValueError("Failed to decode image bytes")

    return image


def detect_parking_spots(
    image_bytes: bytes,
    vision: VisionClient,
    rows: int = DEFAULT_ROWS,
    min_confidence: float = 0.0,
    filename: str = "image.jpg",
    content_type: str = "image/jpeg",
) -> DetectionResult:
    """
    Run the full detection pass over one image.

    Args:
        image_bytes: Encoded image (JPEG, PNG, ...)
        vision: Client for the detector and OCR services
        rows: Number of rows in the garage
        min_confidence: Vehicles below this confidence are ignored
        filename: Name forwarded to the vision services
        content_type: MIME type forwarded to the vision services

    Returns:
        DetectionResult with spots in canonical order

    Raises:
        ValueError: If the image cannot be decoded
        VisionServiceError: If vehicle detection fails
    """
    start = time.perf_counter()

    image = decode_image(image_bytes)
    height, width = image.shape[:2]
    logger.debug(f"Running detection on {width}x{height} image")

    detection = vision.detect_vehicles(image_bytes, filename=filename, content_type=content_type)
    vehicles = [v for v in detection.vehicles if v.confidence >= min_confidence]
    if len(vehicles) < len(detection.vehicles):
        logger.debug(
            f"Ignored {len(detection.vehicles) - len(vehicles)} vehicle(s) "
            f"below confidence {min_confidence}"
        )

    plates = vision.detect_plates(image_bytes, filename=filename, content_type=content_type) if vehicles else []
    vehicles = match_plates_to_vehicles(plates, vehicles)

    mapped_spots = assign_vehicles_to_spots(vehicles, rows=rows)
    summary = summarize_detection(mapped_spots)

    record_detection_latency(time.perf_counter() - start)
    logger.info(
        f"Detection: {summary.occupied_spots}/{summary.total_spots} spots occupied, "
        f"{summary.spots_with_plates} with plates"
    )

    return DetectionResult(
        mapped_spots=mapped_spots,
        boundaries=convert_to_boundaries(mapped_spots),
        summary=summary,
        vehicles=vehicles,
        processed_image=detection.processed_image,
        image_size=(width, height),
    )
