"""Holder of the current reconciled spot list."""

import logging
import threading
from datetime import date, datetime
from typing import Optional, Sequence

from ..detection.models import SpotObservation
from ..metrics import (
    record_detection_confidence,
    record_reconciliation,
    update_spot_counts,
    update_spot_status,
)
from .layout import DEFAULT_ROWS
from .models import GarageSummary, ParkingSpot, Reservation
from .reconciliation import (
    initial_spots,
    reconcile_from_detections,
    reconcile_from_reservations,
)

logger = logging.getLogger(__name__)


class GarageState:
    """
    Owns the single mutable reference to the garage's spot list.

    The list is never patched in place. Every update runs one of the
    reconciliation reducers over the current list and swaps in the result.
    """

    def __init__(self, rows: int = DEFAULT_ROWS):
        """
        Initialize the garage state with an empty grid.

        Args:
            rows: Number of A/B rows in the garage
        """
        self.rows = rows
        self._spots: list[ParkingSpot] = initial_spots(rows)
        self._lock = threading.Lock()
        self._last_reservation_sync: Optional[datetime] = None
        self._last_detection: Optional[datetime] = None

        logger.info(f"Initialized GarageState with {len(self._spots)} spots")

    @property
    def spots(self) -> list[ParkingSpot]:
        """Snapshot of the current spot list."""
        with self._lock:
            return list(self._spots)

    def apply_reservations(
        self,
        reservations: Sequence[Reservation],
        today: Optional[date] = None,
    ) -> list[ParkingSpot]:
        """Replace the spot list with one reconciled from reservations."""
        with self._lock:
            self._spots = reconcile_from_reservations(
                reservations, self._spots, rows=self.rows, today=today
            )
            self._last_reservation_sync = datetime.now()
            spots = list(self._spots)

        record_reconciliation("reservations")
        self._update_metrics(spots)
        logger.debug(
            f"Reconciled {len(reservations)} reservation(s): "
            f"{self.get_occupied_count()} occupied"
        )
        return spots

    def apply_detections(self, boundaries: Sequence[SpotObservation]) -> list[ParkingSpot]:
        """Replace the spot list with one reconciled from a detection pass."""
        with self._lock:
            self._spots = reconcile_from_detections(boundaries, self._spots, rows=self.rows)
            self._last_detection = datetime.now()
            spots = list(self._spots)

        record_reconciliation("detections")
        for boundary in boundaries:
            if boundary.vehicle is not None:
                record_detection_confidence(boundary.spot_number, boundary.vehicle.confidence)

        self._update_metrics(spots)
        return spots

    def get_spot(self, spot_number: str) -> Optional[ParkingSpot]:
        """Get state for a specific spot."""
        for spot in self.spots:
            if spot.spot_number == spot_number:
                return spot
        return None

    def get_available_count(self) -> int:
        """Get count of available spots."""
        return sum(1 for s in self.spots if not s.is_occupied)

    def get_occupied_count(self) -> int:
        """Get count of occupied spots."""
        return sum(1 for s in self.spots if s.is_occupied)

    def get_summary(self) -> GarageSummary:
        spots = self.spots
        occupied = sum(1 for s in spots if s.is_occupied)
        return GarageSummary(
            total_spots=len(spots),
            available=len(spots) - occupied,
            occupied=occupied,
            anonymous=sum(1 for s in spots if s.anonymous),
            blocked=sum(1 for s in spots if s.blocked_spot),
            last_reservation_sync=self._last_reservation_sync,
            last_detection=self._last_detection,
        )

    def _update_metrics(self, spots: list[ParkingSpot]) -> None:
        for spot in spots:
            update_spot_status(spot.spot_number, spot.is_occupied)

        occupied = sum(1 for s in spots if s.is_occupied)
        update_spot_counts(
            total=len(spots),
            available=len(spots) - occupied,
            occupied=occupied,
        )
