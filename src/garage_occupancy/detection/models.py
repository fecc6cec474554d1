"""Detection data types produced by the vision pipeline."""

import logging
from dataclasses import dataclass, replace
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

BoundingBox = tuple[float, float, float, float]  # x1, y1, x2, y2
EMPTY_BOX: BoundingBox = (0, 0, 0, 0)

POSITIONS = ("front", "back")


@dataclass
class Vehicle:
    """A vehicle reported by the detector service."""

    type: str
    confidence: float
    bounding_box: BoundingBox
    center: tuple[float, float]
    area: float
    position: str  # "front" or "back"
    license_plate: Optional[str] = None

    def with_plate(self, plate: Optional[str]) -> "Vehicle":
        """Return a copy carrying the given license plate."""
        return replace(self, license_plate=plate)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Vehicle":
        """
        Create a Vehicle from the detector's JSON representation.

        Missing center and area are derived from the bounding box.

        Raises:
            ValueError: If the entry has no usable bounding box or position
        """
        bbox = data.get("boundingBox", data.get("bounding_box"))
        if not isinstance(bbox, (list, tuple)) or len(bbox) != 4:
            raise ValueError(f"Invalid bounding box: {bbox!r}")
        x1, y1, x2, y2 = (float(v) for v in bbox)

        position = str(data.get("position", "")).lower()
        if position not in POSITIONS:
            raise ValueError(f"Invalid vehicle position: {data.get('position')!r}")

        center = data.get("center")
        if isinstance(center, (list, tuple)) and len(center) == 2:
            center = (float(center[0]), float(center[1]))
        else:
            center = ((x1 + x2) / 2, (y1 + y2) / 2)

        area = data.get("area")
        if area is None:
            area = (x2 - x1) * (y2 - y1)

        return cls(
            type=str(data.get("type", "car")),
            confidence=float(data.get("confidence", 0.0)),
            bounding_box=(x1, y1, x2, y2),
            center=center,
            area=float(area),
            position=position,
            license_plate=data.get("licensePlate", data.get("license_plate")) or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "confidence": self.confidence,
            "boundingBox": list(self.bounding_box),
            "center": list(self.center),
            "area": self.area,
            "position": self.position,
            "licensePlate": self.license_plate,
        }


@dataclass(frozen=True)
class PlateDetection:
    """A license plate read by the OCR service."""

    text: str
    bbox: Optional[tuple[float, ...]] = None  # 4 or 8 numbers, None for text-only responses


@dataclass
class DetectedSpot:
    """A spot as seen by one detection pass."""

    spot_number: str
    is_occupied: bool
    vehicle: Optional[Vehicle] = None


@dataclass
class SpotBoundary:
    """Detection-derived boundary of one spot."""

    id: int
    spot_number: str
    bounding_box: BoundingBox
    is_occupied: bool
    vehicle: Optional[Vehicle] = None


SpotObservation = Union[DetectedSpot, SpotBoundary]


def parse_vehicles(payload: Any) -> list[Vehicle]:
    """
    Parse the detector's vehicle list, skipping malformed entries.

    A missing or non-list payload yields no vehicles.
    """
    if not isinstance(payload, list):
        if payload is not None:
            logger.warning(f"Unexpected vehicles payload type: {type(payload).__name__}")
        return []

    vehicles = []
    for entry in payload:
        if not isinstance(entry, dict):
            logger.warning(f"Skipping non-object vehicle entry: {entry!r}")
            continue
        try:
            vehicles.append(Vehicle.from_dict(entry))
        except (TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed vehicle entry: {e}")

    return vehicles
