"""Reservation actions module."""

from .errors import (
    AlreadyReservedError,
    BackendUnavailableError,
    ReservationError,
    ReservationNotFoundError,
    ReservationValidationError,
    SpotOccupiedError,
    UnauthorizedActionError,
    VisionServiceError,
)
from .orchestrator import ActionOutcome, DetectionSyncReport, PlateOwner, ReservationOrchestrator, SpotState

__all__ = [
    "AlreadyReservedError",
    "BackendUnavailableError",
    "ReservationError",
    "ReservationNotFoundError",
    "ReservationValidationError",
    "SpotOccupiedError",
    "UnauthorizedActionError",
    "VisionServiceError",
    "ActionOutcome",
    "DetectionSyncReport",
    "PlateOwner",
    "ReservationOrchestrator",
    "SpotState",
]
