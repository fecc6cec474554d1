"""Tests for spot identifiers and the blocking relation."""
import pytest

from garage_occupancy.detection.models import DetectedSpot
from garage_occupancy.state.layout import (
    Column,
    SpotId,
    blocked_spot_for,
    blocking_spot_for,
    is_blocking_car,
    is_parked_in,
    is_valid_spot,
    spot_numbers,
)


class TestSpotId:
    """Test suite for SpotId."""

    def test_round_trip_string(self):
        spot = SpotId.parse("3A")
        assert spot.row == 3
        assert spot.column == Column.A
        assert str(spot) == "3A"

    def test_multi_digit_row(self):
        assert str(SpotId.parse("12B")) == "12B"

    @pytest.mark.parametrize("value", ["", "A1", "3C", "0A", "3a", "03A", "3AB"])
    def test_rejects_malformed(self, value):
        with pytest.raises(ValueError):
            SpotId.parse(value)

    def test_partner(self):
        assert str(SpotId.parse("2A").partner) == "2B"
        assert str(SpotId.parse("2B").partner) == "2A"


class TestLayout:
    """Test suite for grid enumeration and blocking helpers."""

    def test_canonical_order(self):
        assert spot_numbers(3) == ["1A", "1B", "2A", "2B", "3A", "3B"]

    def test_default_grid_has_ten_spots(self):
        assert len(spot_numbers()) == 10

    def test_is_valid_spot(self):
        assert is_valid_spot("5B", rows=5)
        assert not is_valid_spot("6A", rows=5)
        assert not is_valid_spot("5C", rows=5)

    def test_blocking_only_flows_from_b_to_a(self):
        assert blocking_spot_for("4A") == "4B"
        assert blocking_spot_for("4B") is None
        assert blocked_spot_for("4B") == "4A"
        assert blocked_spot_for("4A") is None

    def test_is_blocking_car(self):
        assert is_blocking_car("2A", "2B")
        assert not is_blocking_car("2A", "3B")
        assert not is_blocking_car("2B", "2A")

    def test_is_parked_in(self):
        spots = [
            DetectedSpot(spot_number="1A", is_occupied=True),
            DetectedSpot(spot_number="1B", is_occupied=True),
            DetectedSpot(spot_number="2A", is_occupied=True),
            DetectedSpot(spot_number="2B", is_occupied=False),
        ]

        assert is_parked_in("1A", spots)
        assert not is_parked_in("2A", spots)
        assert not is_parked_in("1B", spots)
        assert not is_parked_in("3A", spots)
