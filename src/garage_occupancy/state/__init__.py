"""Spot layout, reconciliation and state management module."""

from .layout import Column, SpotId, is_parked_in, spot_numbers
from .models import Occupant, ParkingSpot, Reservation, ReservationCreate, User
from .reconciliation import reconcile_from_detections, reconcile_from_reservations
from .garage_state import GarageState

__all__ = [
    "Column",
    "SpotId",
    "is_parked_in",
    "spot_numbers",
    "Occupant",
    "ParkingSpot",
    "Reservation",
    "ReservationCreate",
    "User",
    "reconcile_from_detections",
    "reconcile_from_reservations",
    "GarageState",
]
