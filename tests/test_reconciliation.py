"""Tests for rebuilding spot state from reservations and detections."""
from datetime import date, datetime

from garage_occupancy.detection.models import DetectedSpot
from garage_occupancy.detection.spot_assignment import assign_vehicles_to_spots, convert_to_boundaries
from garage_occupancy.state.reconciliation import (
    initial_spots,
    reconcile_from_detections,
    reconcile_from_reservations,
)

from conftest import TODAY, make_reservation


def _by_number(spots):
    return {s.spot_number: s for s in spots}


class TestReconcileFromReservations:
    """Test suite for reconcile_from_reservations."""

    def test_bootstraps_empty_grid(self):
        spots = reconcile_from_reservations([], [])

        assert [s.spot_number for s in spots] == ["1A", "1B", "2A", "2B", "3A", "3B", "4A", "4B", "5A", "5B"]
        assert [s.id for s in spots] == list(range(1, 11))
        assert not any(s.is_occupied for s in spots)

    def test_single_reservation_scenario(self):
        reservations = [make_reservation("2A", userId=7, licensePlate="AB12345", anonymous=False)]

        spots = _by_number(reconcile_from_reservations(reservations, []))

        assert spots["2A"].is_occupied
        assert spots["2A"].occupied_by.license_plate == "AB12345"
        assert spots["2A"].occupied_by.user_id == 7
        others = [s for n, s in spots.items() if n != "2A"]
        assert len(others) == 9
        assert not any(s.is_occupied for s in others)

    def test_joined_user_fields(self):
        departure = datetime(2026, 10, 18, 17, 30)
        reservations = [
            make_reservation(
                "1B",
                userId=8,
                licensePlate="CD67890",
                userName="Bob Nielsen",
                userEmail="bob@example.com",
                userPhoneNumber="+4587654321",
                estimatedDeparture=departure.isoformat(),
            )
        ]

        occupant = _by_number(reconcile_from_reservations(reservations, []))["1B"].occupied_by

        assert occupant.name == "Bob Nielsen"
        assert occupant.email == "bob@example.com"
        assert occupant.phone_number == "+4587654321"
        assert occupant.estimated_departure == departure
        assert occupant.anonymous is False

    def test_anonymous_reservation_hides_identity(self):
        reservations = [
            make_reservation(
                "3A",
                userId=7,
                licensePlate="AB12345",
                userName="Alice Hansen",
                userEmail="alice@example.com",
                userPhoneNumber="+4512345678",
                anonymous=True,
                blockedSpot=True,
            )
        ]

        spot = _by_number(reconcile_from_reservations(reservations, []))["3A"]

        assert spot.is_occupied
        assert spot.anonymous
        assert spot.blocked_spot
        assert spot.occupied_by.anonymous
        assert spot.occupied_by.name is None
        assert spot.occupied_by.email is None
        assert spot.occupied_by.phone_number is None
        assert spot.occupied_by.user_id is None

    def test_null_flags_default_to_false(self):
        reservations = [make_reservation("1A", userId=7, anonymous=None, blockedSpot=None)]

        spot = _by_number(reconcile_from_reservations(reservations, []))["1A"]

        assert spot.anonymous is False
        assert spot.blocked_spot is False

    def test_idempotent(self):
        reservations = [
            make_reservation("2A", res_id=1, userId=7, licensePlate="AB12345"),
            make_reservation("4A", res_id=2, anonymous=True, blockedSpot=True),
        ]

        once = reconcile_from_reservations(reservations, [])
        twice = reconcile_from_reservations(reservations, once)

        assert twice == once

    def test_does_not_mutate_previous(self):
        previous = initial_spots()
        snapshot = list(previous)

        reconcile_from_reservations([make_reservation("1A", userId=7)], previous)

        assert previous == snapshot
        assert not previous[0].is_occupied

    def test_released_spot_is_cleared(self):
        reserved = reconcile_from_reservations([make_reservation("1A", userId=7)], [])

        released = _by_number(reconcile_from_reservations([], reserved))["1A"]

        assert not released.is_occupied
        assert released.occupied_by is None
        assert released.anonymous is False

    def test_preserves_detection_fields_on_reserved_spots(self, make_vehicle):
        vehicle = make_vehicle(position="back", x=500, plate="AB12345")
        boundaries = convert_to_boundaries(assign_vehicles_to_spots([vehicle]))
        detected = reconcile_from_detections(boundaries, [])

        spots = _by_number(reconcile_from_reservations([make_reservation("1A", userId=7)], detected))

        assert spots["1A"].vehicle == vehicle
        assert spots["1A"].detected_vehicle.license_plate == "AB12345"

    def test_clears_vehicle_on_free_spots(self, make_vehicle):
        vehicle = make_vehicle(position="front", x=500)
        detected = reconcile_from_detections(assign_vehicles_to_spots([vehicle]), [])

        spot = _by_number(reconcile_from_reservations([], detected))["1B"]

        assert spot.vehicle is None
        assert not spot.is_occupied
        assert spot.detected_vehicle is not None

    def test_ignores_other_days_when_today_given(self):
        reservations = [
            make_reservation("1A", res_id=1, userId=7, reservationDate="2026-10-17"),
            make_reservation("1B", res_id=2, userId=8),
        ]

        spots = _by_number(reconcile_from_reservations(reservations, [], today=TODAY))

        assert not spots["1A"].is_occupied
        assert spots["1B"].is_occupied

    def test_first_reservation_wins_for_duplicate_spot(self):
        reservations = [
            make_reservation("1A", res_id=1, userId=7, licensePlate="AB12345"),
            make_reservation("1A", res_id=2, userId=8, licensePlate="CD67890"),
        ]

        spot = _by_number(reconcile_from_reservations(reservations, []))["1A"]

        assert spot.occupied_by.user_id == 7

    def test_unknown_spot_reservations_are_ignored(self):
        spots = reconcile_from_reservations([make_reservation("9A", userId=7)], [])

        assert len(spots) == 10
        assert not any(s.is_occupied for s in spots)

    def test_occupancy_matches_reservations(self):
        reservations = [
            make_reservation("1A", res_id=1, userId=7),
            make_reservation("3B", res_id=2, anonymous=True),
        ]

        for spot in reconcile_from_reservations(reservations, []):
            has_reservation = spot.spot_number in ("1A", "3B")
            assert spot.is_occupied == has_reservation
            assert (spot.occupied_by is not None) == has_reservation


class TestReconcileFromDetections:
    """Test suite for reconcile_from_detections."""

    def test_empty_boundaries_give_unoccupied_grid(self):
        spots = reconcile_from_detections([], initial_spots())

        assert len(spots) == 10
        assert not any(s.is_occupied for s in spots)
        assert all(s.occupied_by is None for s in spots)

    def test_empty_current_spots_bootstrap(self):
        spots = reconcile_from_detections([], [], rows=3)
        assert len(spots) == 6

    def test_detection_overrides_reservation_occupancy(self):
        reserved = reconcile_from_reservations([make_reservation("2A", userId=7)], [])

        spots = _by_number(reconcile_from_detections(assign_vehicles_to_spots([]), reserved))

        assert not spots["2A"].is_occupied
        assert spots["2A"].occupied_by is None

    def test_unidentified_a_behind_occupied_b_is_anonymous_and_blocked(self, make_vehicle):
        boundaries = [
            DetectedSpot("2A", True, make_vehicle(position="back", x=400)),
            DetectedSpot("2B", True, make_vehicle(position="front", x=400, plate="CD67890")),
        ]

        spots = _by_number(reconcile_from_detections(boundaries, initial_spots()))

        assert spots["2A"].blocked_spot
        assert spots["2A"].anonymous
        assert spots["2A"].occupied_by.anonymous
        assert spots["2A"].occupied_by.license_plate is None
        assert spots["2A"].occupied_by.user_id is None
        assert spots["2B"].blocked_spot is False
        assert spots["2B"].occupied_by.license_plate == "CD67890"

    def test_blocked_spot_with_plate_is_not_anonymous(self, make_vehicle):
        boundaries = [
            DetectedSpot("1A", True, make_vehicle(position="back", plate="AB12345")),
            DetectedSpot("1B", True, make_vehicle(position="front")),
        ]

        spot = _by_number(reconcile_from_detections(boundaries, initial_spots()))["1A"]

        assert spot.blocked_spot
        assert spot.anonymous is False
        assert spot.occupied_by.license_plate == "AB12345"
        assert spot.occupied_by.anonymous is False

    def test_empty_a_behind_occupied_b_is_blocked_not_anonymous(self, make_vehicle):
        boundaries = [
            DetectedSpot("1A", False, None),
            DetectedSpot("1B", True, make_vehicle(position="front")),
        ]

        spot = _by_number(reconcile_from_detections(boundaries, initial_spots()))["1A"]

        assert spot.blocked_spot
        assert spot.anonymous is False
        assert spot.occupied_by is None

    def test_detected_vehicle_echo(self, make_vehicle):
        vehicle = make_vehicle(position="front", x=300, plate="CD67890", confidence=0.77)
        boundaries = convert_to_boundaries(assign_vehicles_to_spots([vehicle]))

        spots = _by_number(reconcile_from_detections(boundaries, initial_spots()))

        echo = spots["1B"].detected_vehicle
        assert echo.confidence == 0.77
        assert echo.bounding_box == vehicle.bounding_box
        assert echo.type == "car"
        assert echo.area == vehicle.area
        assert echo.license_plate == "CD67890"
        assert spots["1A"].detected_vehicle is None

    def test_end_to_end_detection_scenario(self, make_vehicle):
        vehicles = [
            make_vehicle(position="back", x=500, y=0, plate="XY98765"),
            make_vehicle(position="front", x=100, y=0, plate=None),
        ]

        mapped = assign_vehicles_to_spots(vehicles, rows=5)
        spots = _by_number(reconcile_from_detections(convert_to_boundaries(mapped), initial_spots()))

        assert spots["1A"].vehicle == vehicles[0]
        assert spots["1B"].vehicle == vehicles[1]
        assert spots["1A"].occupied_by.license_plate == "XY98765"
        assert spots["1B"].is_occupied
        assert spots["1B"].occupied_by is None
        assert spots["1B"].blocked_spot is False

    def test_repeat_pass_does_not_drift(self, make_vehicle):
        boundaries = [
            DetectedSpot("3A", True, make_vehicle(position="back")),
            DetectedSpot("3B", True, make_vehicle(position="front")),
        ]

        once = reconcile_from_detections(boundaries, initial_spots())
        twice = reconcile_from_detections(boundaries, once)

        assert twice == once

    def test_keeps_spot_ids(self):
        spots = reconcile_from_detections([], initial_spots())
        assert [s.id for s in spots] == list(range(1, 11))

    def test_reservation_date_type(self):
        assert make_reservation("1A").reservation_date == date(2026, 10, 18)
