"""REST clients for the vehicle detector and license plate OCR services."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import requests

from ..detection.models import PlateDetection, Vehicle, parse_vehicles
from ..reservations.errors import VisionServiceError
from ..reservations.plates import normalize_plate

logger = logging.getLogger(__name__)


@dataclass
class VehicleDetectionResult:
    """Vehicles found by the detector, plus its annotated image."""

    vehicles: list[Vehicle] = field(default_factory=list)
    processed_image: Optional[str] = None  # base64 data or URL


def normalize_plate_response(payload: Any) -> list[PlateDetection]:
    """
    Normalize an OCR response into PlateDetection objects.

    The OCR service answers with {"license_plates": [...]} where each item
    is either a bare string or an object with "text" and "bbox". Plate
    text is normalized (whitespace removed, uppercased), so "ab 12345"
    becomes "AB12345". Blank reads and items of any other shape are dropped.
    """
    if isinstance(payload, dict):
        payload = payload.get("license_plates")
    if not isinstance(payload, list):
        return []

    plates = []
    for item in payload:
        if isinstance(item, str):
            text = normalize_plate(item)
            if text:
                plates.append(PlateDetection(text=text))
        elif isinstance(item, dict) and isinstance(item.get("text"), str):
            text = normalize_plate(item["text"])
            if not text:
                continue
            bbox = item.get("bbox")
            if isinstance(bbox, (list, tuple)) and len(bbox) in (4, 8):
                try:
                    bbox = tuple(float(v) for v in bbox)
                except (TypeError, ValueError):
                    bbox = None
            else:
                bbox = None
            plates.append(PlateDetection(text=text, bbox=bbox))
        else:
            logger.debug(f"Ignoring unrecognized plate entry: {item!r}")

    return plates


class VisionClient:
    """
    Client for the two hosted vision services.

    Vehicle detection failures raise VisionServiceError. Plate OCR is
    best-effort: failures are logged and produce no plates.
    """

    def __init__(
        self,
        detector_url: str,
        plate_url: str,
        timeout_seconds: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the vision client.

        Args:
            detector_url: Root URL of the vehicle detector service
            plate_url: Root URL of the plate OCR service
            timeout_seconds: Per-request timeout
            session: Session to use, mainly for tests
        """
        self.detector_url = detector_url.rstrip("/")
        self.plate_url = plate_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()

    def detect_vehicles(
        self,
        image_bytes: bytes,
        filename: str = "image.jpg",
        content_type: str = "image/jpeg",
    ) -> VehicleDetectionResult:
        """
        Send an image to the detector service.

        Returns:
            Detected vehicles; an empty or malformed payload yields none

        Raises:
            VisionServiceError: If the service cannot be reached or fails
        """
        url = f"{self.detector_url}/parking-detection"
        try:
            response = self._session.post(
                url,
                files={"file": (filename, image_bytes, content_type)},
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            logger.error(f"Vehicle detection failed: {e}")
            raise VisionServiceError(f"Vehicle detection failed: {e}") from e
        except ValueError as e:
            logger.error(f"Vehicle detector returned invalid JSON: {e}")
            raise VisionServiceError(f"Vehicle detector returned invalid JSON: {e}") from e

        if not isinstance(payload, dict):
            logger.warning("Vehicle detector returned no object, treating as zero detections")
            return VehicleDetectionResult()

        vehicles = parse_vehicles(payload.get("vehicles"))
        logger.debug(f"Detector found {len(vehicles)} vehicle(s)")

        return VehicleDetectionResult(
            vehicles=vehicles,
            processed_image=payload.get("processedImage"),
        )

    def detect_plates(
        self,
        image_bytes: bytes,
        filename: str = "image.jpg",
        content_type: str = "image/jpeg",
    ) -> list[PlateDetection]:
        """Send an image to the plate OCR service; failures yield no plates."""
        url = f"{self.plate_url}/license-plate"
        try:
            response = self._session.post(
                url,
                files={"image": (filename, image_bytes, content_type)},
                headers={"Accept": "application/json"},
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"License plate detection failed: {e}")
            return []

        plates = normalize_plate_response(payload)
        logger.debug(f"OCR read {len(plates)} plate(s)")
        return plates

    def close(self) -> None:
        self._session.close()
