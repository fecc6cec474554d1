"""Pytest configuration and fixtures for garage occupancy tests."""
import threading
from datetime import date
from typing import Optional

import cv2
import numpy as np
import pytest

from garage_occupancy.clients.vision import VehicleDetectionResult
from garage_occupancy.detection.models import Vehicle
from garage_occupancy.reservations.errors import BackendUnavailableError, ReservationNotFoundError
from garage_occupancy.reservations.orchestrator import ReservationOrchestrator
from garage_occupancy.state.garage_state import GarageState
from garage_occupancy.state.models import Reservation, ReservationCreate, User

TODAY = date(2026, 10, 18)


class FakeBackend:
    """In-memory stand-in for the reservation backend."""

    def __init__(self, reservations=None, users=None):
        self.reservations: list[Reservation] = list(reservations or [])
        self.users: dict[int, User] = {u.id: u for u in users or []}
        self.calls: list[tuple] = []
        self.fail_creates_for: set[str] = set()
        self.fail_plate_lookups: set[str] = set()
        self.fail_gets = False
        self._next_id = 100
        self._lock = threading.Lock()

    @property
    def writes(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("create_reservation", "delete_reservation")]

    def get_reservations(self, day: date) -> list[Reservation]:
        self.calls.append(("get_reservations", day))
        if self.fail_gets:
            raise BackendUnavailableError("backend down")
        return [r for r in self.reservations if r.reservation_date == day]

    def create_reservation(self, reservation: ReservationCreate) -> Reservation:
        with self._lock:
            self.calls.append(("create_reservation", reservation))
            if reservation.spot_number in self.fail_creates_for:
                raise BackendUnavailableError(f"create failed for {reservation.spot_number}")

            user = self.users.get(reservation.user_id) if reservation.user_id else None
            self._next_id += 1
            created = Reservation(
                id=self._next_id,
                user_name=user.name if user else None,
                user_email=user.email if user else None,
                user_phone_number=user.phone_number if user else None,
                **reservation.model_dump(),
            )
            self.reservations.append(created)
            return created

    def delete_reservation(self, reservation_id: int) -> None:
        with self._lock:
            self.calls.append(("delete_reservation", reservation_id))
            for r in self.reservations:
                if r.id == reservation_id:
                    self.reservations.remove(r)
                    return
            raise ReservationNotFoundError(f"Reservation #{reservation_id} not found")

    def find_user_by_plate(self, plate: str) -> Optional[User]:
        self.calls.append(("find_user_by_plate", plate))
        if plate in self.fail_plate_lookups:
            raise BackendUnavailableError(f"lookup failed for {plate}")
        for user in self.users.values():
            if plate in user.plates:
                return user
        return None

    def get_user(self, user_id: int) -> Optional[User]:
        return self.users.get(user_id)


class FakeVision:
    """Vision client returning canned detections."""

    def __init__(self, vehicles=None, plates=None, processed_image=None):
        self.vehicles = vehicles or []
        self.plates = plates or []
        self.processed_image = processed_image
        self.plate_calls = 0

    def detect_vehicles(self, image_bytes, filename="image.jpg", content_type="image/jpeg"):
        return VehicleDetectionResult(vehicles=list(self.vehicles), processed_image=self.processed_image)

    def detect_plates(self, image_bytes, filename="image.jpg", content_type="image/jpeg"):
        self.plate_calls += 1
        return list(self.plates)


def png_bytes(width: int = 64, height: int = 32) -> bytes:
    image = np.zeros((height, width, 3), dtype=np.uint8)
    ok, encoded = cv2.imencode(".png", image)
    assert ok
    return encoded.tobytes()


def make_reservation(spot_number: str, res_id: int = 1, **kwargs) -> Reservation:
    data = {
        "id": res_id,
        "spotNumber": spot_number,
        "reservationDate": TODAY.isoformat(),
    }
    data.update(kwargs)
    return Reservation.model_validate(data)


@pytest.fixture
def make_vehicle():
    """Factory for detected vehicles."""

    def _make(position="back", x=100.0, y=50.0, plate=None, confidence=0.9, vehicle_type="car"):
        return Vehicle(
            type=vehicle_type,
            confidence=confidence,
            bounding_box=(x - 20, y - 10, x + 20, y + 10),
            center=(x, y),
            area=800.0,
            position=position,
            license_plate=plate,
        )

    return _make


@pytest.fixture
def alice():
    return User(
        id=7,
        name="Alice Hansen",
        email="alice@example.com",
        phone_number="+4512345678",
        license_plate="AB12345",
        second_license_plate="AB54321",
    )


@pytest.fixture
def bob():
    return User(
        id=8,
        name="Bob Nielsen",
        email="bob@example.com",
        phone_number="+4587654321",
        license_plate="CD67890",
    )


@pytest.fixture
def backend(alice, bob):
    return FakeBackend(users=[alice, bob])


@pytest.fixture
def garage_state():
    return GarageState(rows=5)


@pytest.fixture
def orchestrator(backend, garage_state):
    return ReservationOrchestrator(backend=backend, state=garage_state, today=lambda: TODAY)
