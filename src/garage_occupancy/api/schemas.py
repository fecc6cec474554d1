"""API request and response schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ..detection.models import BoundingBox
from ..state.models import DetectedVehicleInfo, GarageSummary, Occupant, ParkingSpot


class SpotResponse(BaseModel):
    """Response schema for a single parking spot."""

    id: int
    spot_number: str
    is_occupied: bool
    anonymous: bool
    blocked_spot: bool
    occupied_by: Optional[Occupant] = None
    detected_vehicle: Optional[DetectedVehicleInfo] = None

    @classmethod
    def from_spot(cls, spot: ParkingSpot) -> "SpotResponse":
        return cls(
            id=spot.id,
            spot_number=spot.spot_number,
            is_occupied=spot.is_occupied,
            anonymous=spot.anonymous,
            blocked_spot=spot.blocked_spot,
            occupied_by=spot.occupied_by,
            detected_vehicle=spot.detected_vehicle,
        )


class StatusResponse(BaseModel):
    """Response schema for overall garage status."""

    summary: GarageSummary
    spots: list[SpotResponse]


class ReservationRequest(BaseModel):
    """Body for reserve and claim requests."""

    license_plate: Optional[str] = None
    estimated_departure: Optional[datetime] = None


class ActionResponse(BaseModel):
    """Result of a reservation action."""

    action: str
    spot_number: str
    reservation_id: Optional[int] = None
    notices: list[str] = []
    spots: list[SpotResponse]


class BoundaryResponse(BaseModel):
    """One spot as seen by a detection pass."""

    id: int
    spot_number: str
    bounding_box: BoundingBox
    is_occupied: bool
    vehicle_type: Optional[str] = None
    confidence: Optional[float] = None
    license_plate: Optional[str] = None


class WriteResponse(BaseModel):
    """One compensating reservation written after detection."""

    kind: str
    spot_number: str
    license_plate: Optional[str] = None
    outcome: str
    detail: Optional[str] = None


class DetectionResponse(BaseModel):
    """Response for an image detection pass."""

    total_spots: int
    occupied_spots: int
    available_spots: int
    spots_with_plates: int
    image_width: int
    image_height: int
    processed_image: Optional[str] = None
    boundaries: list[BoundaryResponse]
    writes: list[WriteResponse]
    spots: list[SpotResponse]


class ParkedInResponse(BaseModel):
    """Who, if anyone, is blocking the user's spot."""

    parked_in: bool
    spot_number: Optional[str] = None
    blocking_spot_number: Optional[str] = None
    driver_name: Optional[str] = None
    occupant: Optional[Occupant] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    uptime_seconds: float
    last_reservation_sync: Optional[datetime] = None


class PlateOwnerResponse(BaseModel):
    """A license plate and its registered owner's contact details."""

    license_plate: str
    registered: bool
    name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None


class PlateLookupResponse(BaseModel):
    """Owners for plates typed in or read from an image."""

    plates: list[PlateOwnerResponse]
