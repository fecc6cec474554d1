"""Data models for reservations and reconciled parking spot state."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from ..detection.models import BoundingBox, Vehicle


class BackendModel(BaseModel):
    """Base for records exchanged with the reservation backend (camelCase JSON)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Reservation(BackendModel):
    """A reservation record owned by the backend."""

    id: int
    spot_number: str
    user_id: Optional[int] = None
    license_plate: Optional[str] = None
    reservation_date: date
    estimated_departure: Optional[datetime] = None
    anonymous: bool = False
    blocked_spot: bool = False

    # Joined user fields, when the backend provides them
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    user_phone_number: Optional[str] = None

    @field_validator("anonymous", "blocked_spot", mode="before")
    @classmethod
    def null_as_false(cls, v):
        return False if v is None else v


class ReservationCreate(BackendModel):
    """Payload for creating a reservation."""

    spot_number: str
    user_id: Optional[int] = None
    license_plate: Optional[str] = None
    reservation_date: date
    estimated_departure: Optional[datetime] = None
    anonymous: bool = False
    blocked_spot: bool = False


class User(BackendModel):
    """A registered user as returned by the backend."""

    id: int
    email: Optional[str] = None
    name: Optional[str] = None
    phone_number: Optional[str] = None
    license_plate: Optional[str] = None
    second_license_plate: Optional[str] = None
    role: Optional[str] = None

    @property
    def plates(self) -> list[str]:
        """License plates registered to the user."""
        return [p for p in (self.license_plate, self.second_license_plate) if p]


class Occupant(BaseModel):
    """Who occupies a spot. Always derived, never stored."""

    model_config = ConfigDict(frozen=True)

    license_plate: Optional[str] = None
    second_license_plate: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    user_id: Optional[int] = None
    estimated_departure: Optional[datetime] = None
    anonymous: bool = False


class DetectedVehicleInfo(BaseModel):
    """Raw detection echo attached to a spot for diagnostics."""

    model_config = ConfigDict(frozen=True)

    confidence: float
    bounding_box: BoundingBox
    type: str
    area: float
    license_plate: Optional[str] = None

    @classmethod
    def from_vehicle(cls, vehicle: Vehicle) -> "DetectedVehicleInfo":
        return cls(
            confidence=vehicle.confidence,
            bounding_box=vehicle.bounding_box,
            type=vehicle.type,
            area=vehicle.area,
            license_plate=vehicle.license_plate,
        )


class ParkingSpot(BaseModel):
    """Reconciled state of one parking spot."""

    model_config = ConfigDict(frozen=True)

    id: int
    spot_number: str
    is_occupied: bool = False
    anonymous: bool = False
    blocked_spot: bool = False
    occupied_by: Optional[Occupant] = None
    vehicle: Optional[Vehicle] = None
    detected_vehicle: Optional[DetectedVehicleInfo] = None


class GarageSummary(BaseModel):
    """Occupancy counts across the garage."""

    total_spots: int
    available: int
    occupied: int
    anonymous: int
    blocked: int
    last_reservation_sync: Optional[datetime] = None
    last_detection: Optional[datetime] = None
