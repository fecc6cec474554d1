"""Reconciliation of spot state from reservations and from detections.

Both reducers take the previous spot list plus new facts and return a
new list. They never modify their inputs and never talk to the backend.
"""

import logging
from datetime import date
from typing import Optional, Sequence

from ..detection.models import SpotObservation
from .layout import DEFAULT_ROWS, Column, SpotId, spot_numbers
from .models import DetectedVehicleInfo, Occupant, ParkingSpot, Reservation

logger = logging.getLogger(__name__)


def initial_spots(rows: int = DEFAULT_ROWS) -> list[ParkingSpot]:
    """Build the empty grid of 2 * rows spots in canonical order."""
    return [
        ParkingSpot(id=index + 1, spot_number=number)
        for index, number in enumerate(spot_numbers(rows))
    ]


def occupant_from_reservation(reservation: Reservation) -> Occupant:
    """
    Build the occupant record for a reservation.

    Anonymous reservations never expose an identity, even when the
    backend has one attached.
    """
    anonymous = reservation.anonymous
    return Occupant(
        license_plate=reservation.license_plate,
        second_license_plate=None,
        name=None if anonymous else reservation.user_name,
        email=None if anonymous else reservation.user_email,
        phone_number=None if anonymous else reservation.user_phone_number,
        user_id=None if anonymous else reservation.user_id,
        estimated_departure=reservation.estimated_departure,
        anonymous=anonymous,
    )


def reconcile_from_reservations(
    reservations: Sequence[Reservation],
    previous_spots: Sequence[ParkingSpot],
    rows: int = DEFAULT_ROWS,
    today: Optional[date] = None,
) -> list[ParkingSpot]:
    """
    Rebuild spot occupancy from the backend's reservations.

    Args:
        reservations: Reservations fetched from the backend
        previous_spots: Current spot list, or empty to bootstrap the grid
        rows: Number of rows, used when bootstrapping
        today: If given, reservations for other dates are ignored

    Returns:
        New spot list. Detection echoes (detected_vehicle) are kept, and
        the vehicle is kept on reserved spots and cleared on free ones.
    """
    spots = list(previous_spots) if previous_spots else initial_spots(rows)

    by_spot: dict[str, Reservation] = {}
    for reservation in reservations:
        if today is not None and reservation.reservation_date != today:
            continue
        if reservation.spot_number in by_spot:
            logger.warning(
                f"Multiple reservations for spot {reservation.spot_number}, "
                f"keeping #{by_spot[reservation.spot_number].id}"
            )
            continue
        by_spot[reservation.spot_number] = reservation

    reconciled = []
    for spot in spots:
        reservation = by_spot.get(spot.spot_number)
        if reservation is not None:
            reconciled.append(
                spot.model_copy(
                    update={
                        "is_occupied": True,
                        "anonymous": reservation.anonymous,
                        "blocked_spot": reservation.blocked_spot,
                        "occupied_by": occupant_from_reservation(reservation),
                    }
                )
            )
        else:
            reconciled.append(
                spot.model_copy(
                    update={
                        "is_occupied": False,
                        "anonymous": False,
                        "blocked_spot": False,
                        "occupied_by": None,
                        "vehicle": None,
                    }
                )
            )

    return reconciled


def _is_blocked(spot_number: str, occupied: dict[str, bool]) -> bool:
    spot = SpotId.parse(spot_number)
    if spot.column != Column.A:
        return False
    return occupied.get(str(spot.partner), False)


def reconcile_from_detections(
    boundaries: Sequence[SpotObservation],
    current_spots: Sequence[ParkingSpot],
    rows: int = DEFAULT_ROWS,
) -> list[ParkingSpot]:
    """
    Rebuild spot occupancy from one detection pass.

    Detection wins over the current state for occupancy. An A spot whose
    B partner is seen occupied is marked blocked, and if the A vehicle has
    no readable plate it is treated as an anonymous occupant.

    Args:
        boundaries: Detected spots or spot boundaries
        current_spots: Current spot list, or empty to bootstrap the grid
        rows: Number of rows, used when bootstrapping

    Returns:
        New spot list
    """
    spots = list(current_spots) if current_spots else initial_spots(rows)

    by_spot = {b.spot_number: b for b in boundaries}
    occupied = {b.spot_number: bool(b.is_occupied) for b in boundaries}

    reconciled = []
    for spot in spots:
        match = by_spot.get(spot.spot_number)
        is_occupied = bool(match and match.is_occupied)
        vehicle = match.vehicle if match else None
        plate = vehicle.license_plate if vehicle else None
        blocked = _is_blocked(spot.spot_number, occupied)

        if plate:
            occupied_by = Occupant(license_plate=plate)
        elif blocked and is_occupied:
            occupied_by = Occupant(anonymous=True)
        else:
            occupied_by = None

        reconciled.append(
            spot.model_copy(
                update={
                    "is_occupied": is_occupied,
                    "anonymous": blocked and is_occupied and not plate,
                    "blocked_spot": blocked,
                    "vehicle": vehicle,
                    "occupied_by": occupied_by,
                    "detected_vehicle": (
                        DetectedVehicleInfo.from_vehicle(vehicle) if vehicle else None
                    ),
                }
            )
        )

    return reconciled
