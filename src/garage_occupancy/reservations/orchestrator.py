"""Reservation actions against the reconciled garage state.

Every user action runs strictly in sequence: guard checks against the
in-memory spots, the backend write, a full re-fetch, then a state
replace. Guard failures raise before any backend call is made.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Callable, Iterator, Optional, Protocol, Sequence

from ..detection.models import SpotObservation
from ..metrics import record_compensating_write, record_reservation_action
from ..state.garage_state import GarageState
from ..state.layout import Column, SpotId, blocked_spot_for, blocking_spot_for, is_parked_in
from ..state.models import Occupant, ParkingSpot, Reservation, ReservationCreate, User
from .errors import (
    AlreadyReservedError,
    BackendUnavailableError,
    ReservationError,
    ReservationNotFoundError,
    ReservationValidationError,
    SpotOccupiedError,
    UnauthorizedActionError,
)
from .plates import DEFAULT_PLATE_PATTERN, is_valid_license_plate, normalize_plate

logger = logging.getLogger(__name__)

UNKNOWN_DRIVER = "an unknown driver"


class ReservationBackend(Protocol):
    """Backend operations the orchestrator depends on."""

    def get_reservations(self, day: date) -> list[Reservation]: ...

    def create_reservation(self, reservation: ReservationCreate) -> Reservation: ...

    def delete_reservation(self, reservation_id: int) -> None: ...

    def find_user_by_plate(self, plate: str) -> Optional[User]: ...


class SpotState(str, Enum):
    """State of a spot from the acting user's point of view."""

    FREE = "free"
    RESERVED_BY_SELF = "reserved_by_self"
    RESERVED_BY_OTHER = "reserved_by_other"
    ANONYMOUS_OCCUPIED = "anonymous_occupied"


def classify_spot(spot: ParkingSpot, user_id: Optional[int]) -> SpotState:
    if not spot.is_occupied:
        return SpotState.FREE

    occupant = spot.occupied_by
    if spot.anonymous or (occupant is not None and occupant.anonymous):
        return SpotState.ANONYMOUS_OCCUPIED
    if occupant is not None and occupant.user_id is not None and occupant.user_id == user_id:
        return SpotState.RESERVED_BY_SELF
    return SpotState.RESERVED_BY_OTHER


def driver_name(occupant: Optional[Occupant]) -> str:
    """Name to show for an occupant, hiding anonymous ones."""
    if occupant is None or occupant.anonymous:
        return UNKNOWN_DRIVER
    return occupant.name or occupant.license_plate or UNKNOWN_DRIVER


@dataclass
class ActionOutcome:
    """Result of a successful reserve/unreserve/claim."""

    action: str
    spot_number: str
    reservation: Optional[Reservation] = None
    notices: list[str] = field(default_factory=list)


@dataclass
class ParkedInNotice:
    """The occupant blocking the user's A spot."""

    spot_number: str
    blocking_spot_number: str
    occupant: Occupant
    driver_name: str


@dataclass
class CompensatingWrite:
    """One reservation written back from a detection pass."""

    kind: str  # "identified" or "blocking"
    spot_number: str
    license_plate: Optional[str] = None
    outcome: str = "pending"  # created, skipped or failed
    detail: Optional[str] = None


@dataclass
class PlateOwner:
    """A looked-up license plate and the user registered with it, if any."""

    license_plate: str
    user: Optional[User] = None


@dataclass
class DetectionSyncReport:
    """Outcome of the compensating writes after a detection pass."""

    writes: list[CompensatingWrite] = field(default_factory=list)

    @property
    def created(self) -> list[CompensatingWrite]:
        return [w for w in self.writes if w.outcome == "created"]

    @property
    def failed(self) -> list[CompensatingWrite]:
        return [w for w in self.writes if w.outcome == "failed"]


class ReservationOrchestrator:
    """
    Sequences reservation actions and detection write-backs.

    Spot states, from the acting user's view:
        FREE --reserve--> RESERVED_BY_SELF --unreserve--> FREE
        ANONYMOUS_OCCUPIED --claim--> RESERVED_BY_SELF
        RESERVED_BY_OTHER has no transitions for the user.
    """

    def __init__(
        self,
        backend: ReservationBackend,
        state: GarageState,
        plate_pattern: str = DEFAULT_PLATE_PATTERN,
        max_workers: int = 4,
        today: Callable[[], date] = date.today,
    ):
        """
        Initialize the orchestrator.

        Args:
            backend: Reservation backend client
            state: Holder of the reconciled spot list
            plate_pattern: Regex that valid license plates must match
            max_workers: Thread pool size for detection write-backs
            today: Returns the reservation date to act on
        """
        self.backend = backend
        self.state = state
        self.plate_pattern = plate_pattern
        self.max_workers = max_workers
        self._today = today

    @contextmanager
    def _track(self, action: str) -> Iterator[None]:
        try:
            yield
        except ReservationError as e:
            record_reservation_action(action, type(e).__name__)
            logger.warning(f"{action} rejected: {e}")
            raise
        record_reservation_action(action, "success")

    def refresh(self) -> list[ParkingSpot]:
        """Re-fetch today's reservations and rebuild the spot list."""
        today = self._today()
        reservations = self.backend.get_reservations(today)
        return self.state.apply_reservations(reservations, today=today)

    # -------------------------
    # Guards
    # -------------------------
    def _require_spot(self, spot_number: str) -> ParkingSpot:
        spot = self.state.get_spot(spot_number)
        if spot is None:
            raise ReservationValidationError(f"Unknown spot: {spot_number}")
        return spot

    def _require_plate(self, user: User, license_plate: Optional[str]) -> str:
        plate = normalize_plate(license_plate)
        if plate is None:
            raise ReservationValidationError("Please select a license plate.")
        if not is_valid_license_plate(plate, self.plate_pattern):
            raise ReservationValidationError(
                f"Invalid license plate format: {plate}. Example: AB12345"
            )
        if plate not in {normalize_plate(p) for p in user.plates}:
            raise ReservationValidationError(f"License plate {plate} is not registered to you.")
        return plate

    def _require_no_reservation(self, user: User) -> None:
        for spot in self.state.spots:
            if spot.occupied_by is not None and spot.occupied_by.user_id == user.id:
                raise AlreadyReservedError(
                    f"You already have a reserved spot today ({spot.spot_number})."
                )

    # -------------------------
    # User actions
    # -------------------------
    def reserve(
        self,
        user: User,
        spot_number: str,
        license_plate: Optional[str],
        estimated_departure: Optional[datetime] = None,
    ) -> ActionOutcome:
        """
        Reserve a free spot for the user.

        Raises:
            ReservationValidationError: Unknown spot or bad plate
            UnauthorizedActionError: Spot is reserved by someone else
            SpotOccupiedError: Spot is anonymously occupied (claim it instead)
            AlreadyReservedError: User already holds a spot today
            BackendUnavailableError: Backend write or re-fetch failed
        """
        with self._track("reserve"):
            spot = self._require_spot(spot_number)
            plate = self._require_plate(user, license_plate)

            spot_state = classify_spot(spot, user.id)
            if spot_state == SpotState.RESERVED_BY_OTHER:
                raise UnauthorizedActionError(f"Spot {spot_number} is reserved by another user.")
            if spot_state == SpotState.ANONYMOUS_OCCUPIED:
                raise SpotOccupiedError(
                    f"Spot {spot_number} is occupied by an unknown vehicle; claim it instead."
                )
            self._require_no_reservation(user)

            logger.info(f"User {user.id} reserving spot {spot_number} with {plate}")
            reservation = self.backend.create_reservation(
                ReservationCreate(
                    spot_number=spot_number,
                    user_id=user.id,
                    license_plate=plate,
                    reservation_date=self._today(),
                    estimated_departure=estimated_departure,
                )
            )
            self.refresh()

        return ActionOutcome(
            action="reserve",
            spot_number=spot_number,
            reservation=reservation,
            notices=self._blocking_notices(spot_number),
        )

    def unreserve(self, user: User, spot_number: str) -> ActionOutcome:
        """
        Release the user's reservation on a spot.

        Raises:
            ReservationValidationError: Unknown spot
            UnauthorizedActionError: The spot is not reserved by the user
            ReservationNotFoundError: Backend has no matching reservation; re-sync
            BackendUnavailableError: Backend call failed
        """
        with self._track("unreserve"):
            spot = self._require_spot(spot_number)
            if spot.occupied_by is None or spot.occupied_by.user_id != user.id:
                raise UnauthorizedActionError(
                    f"Spot {spot_number} is not reserved by you."
                )

            reservations = self.backend.get_reservations(self._today())
            reservation = next(
                (r for r in reservations if r.spot_number == spot_number and r.user_id == user.id),
                None,
            )
            if reservation is None:
                raise ReservationNotFoundError(
                    f"No reservation by user {user.id} found for spot {spot_number}"
                )

            logger.info(f"User {user.id} releasing spot {spot_number}")
            self.backend.delete_reservation(reservation.id)
            self.refresh()

        return ActionOutcome(action="unreserve", spot_number=spot_number, reservation=reservation)

    def claim(
        self,
        user: User,
        spot_number: str,
        license_plate: Optional[str],
        estimated_departure: Optional[datetime] = None,
    ) -> ActionOutcome:
        """
        Take over an anonymously occupied spot.

        The anonymous reservation is deleted before the user's one is
        created. The two calls are not atomic: if the create fails, the
        spot is left free in the backend and the error propagates.

        Raises:
            ReservationValidationError: Unknown spot, bad plate, or spot is free
            UnauthorizedActionError: Spot is reserved by someone else
            AlreadyReservedError: User already holds a spot today
            ReservationNotFoundError: Anonymous reservation vanished mid-claim
            BackendUnavailableError: Backend call failed
        """
        with self._track("claim"):
            spot = self._require_spot(spot_number)
            plate = self._require_plate(user, license_plate)

            spot_state = classify_spot(spot, user.id)
            if spot_state == SpotState.FREE:
                raise ReservationValidationError(f"Spot {spot_number} is free; reserve it instead.")
            if spot_state == SpotState.RESERVED_BY_OTHER:
                raise UnauthorizedActionError(f"Spot {spot_number} is reserved by another user.")
            self._require_no_reservation(user)

            today = self._today()
            reservations = self.backend.get_reservations(today)
            anonymous = next(
                (r for r in reservations if r.spot_number == spot_number and r.anonymous),
                None,
            )
            if anonymous is not None:
                self.backend.delete_reservation(anonymous.id)

            try:
                reservation = self.backend.create_reservation(
                    ReservationCreate(
                        spot_number=spot_number,
                        user_id=user.id,
                        license_plate=plate,
                        reservation_date=today,
                        estimated_departure=estimated_departure,
                    )
                )
            except BackendUnavailableError:
                if anonymous is not None:
                    logger.error(
                        f"Claim of spot {spot_number} deleted anonymous reservation "
                        f"#{anonymous.id} but could not create the new one; spot is now free"
                    )
                raise

            logger.info(f"User {user.id} claimed spot {spot_number} with {plate}")
            self.refresh()

        return ActionOutcome(
            action="claim",
            spot_number=spot_number,
            reservation=reservation,
            notices=self._blocking_notices(spot_number),
        )

    def _blocking_notices(self, spot_number: str) -> list[str]:
        notices = []

        blocker = blocking_spot_for(spot_number)
        if blocker is not None:
            spot = self.state.get_spot(blocker)
            if spot is not None and spot.is_occupied:
                notices.append(
                    f"You will be parked in by {driver_name(spot.occupied_by)} in spot {blocker}."
                )

        blocked = blocked_spot_for(spot_number)
        if blocked is not None:
            spot = self.state.get_spot(blocked)
            if spot is not None and spot.is_occupied:
                notices.append(
                    f"You are parking in {driver_name(spot.occupied_by)} in spot {blocked}."
                )

        return notices

    def parked_in_by(self, user: User) -> Optional[ParkedInNotice]:
        """Get who is blocking the user's reserved A spot, if anyone."""
        spots = self.state.spots
        mine = next(
            (s for s in spots if s.occupied_by is not None and s.occupied_by.user_id == user.id),
            None,
        )
        if mine is None or not is_parked_in(mine.spot_number, spots):
            return None

        blocking_number = blocking_spot_for(mine.spot_number)
        blocking = next((s for s in spots if s.spot_number == blocking_number), None)
        if blocking is None or blocking.occupied_by is None:
            return None

        return ParkedInNotice(
            spot_number=mine.spot_number,
            blocking_spot_number=blocking.spot_number,
            occupant=blocking.occupied_by,
            driver_name=driver_name(blocking.occupied_by),
        )

    def lookup_plates(self, plates: Sequence[Optional[str]]) -> list[PlateOwner]:
        """
        Resolve license plates to their registered owners.

        Plates are normalized and de-duplicated in order of first
        appearance; empty entries are dropped. Unregistered plates come
        back with no user.

        Raises:
            BackendUnavailableError: If a lookup fails
        """
        normalized = []
        for plate in plates:
            plate = normalize_plate(plate)
            if plate is not None and plate not in normalized:
                normalized.append(plate)

        if not normalized:
            return []

        workers = max(1, min(self.max_workers, len(normalized)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            users = list(pool.map(self.backend.find_user_by_plate, normalized))

        logger.info(
            f"Looked up {len(normalized)} plate(s), "
            f"{sum(1 for u in users if u is not None)} registered"
        )
        return [PlateOwner(license_plate=p, user=u) for p, u in zip(normalized, users)]

    # -------------------------
    # Detection write-back
    # -------------------------
    def handle_spots_detected(self, boundaries: Sequence[SpotObservation]) -> DetectionSyncReport:
        """
        Apply a detection pass and write compensating reservations.

        The detection view is applied first. Then, for every identified
        vehicle whose owner has no reservation today, a reservation is
        created at the detected spot, and every A spot held by an
        unidentified vehicle behind an occupied B gets an anonymous
        blocking reservation. Identified vehicles on a spot that already
        has a reservation today are skipped, and a user gets at most one
        reservation even when several of their plates are seen. Writes
        run concurrently and fail independently; today's reservations
        are re-fetched afterwards whatever their outcome.

        Raises:
            BackendUnavailableError: If today's reservations cannot be fetched
        """
        self.state.apply_detections(boundaries)

        today = self._today()
        existing = self.backend.get_reservations(today)
        planned = self._plan_writes(boundaries, existing)

        report = DetectionSyncReport()
        for write in planned:
            if write.outcome == "skipped":
                record_compensating_write(write.kind, write.outcome)

        pending = [w for w in planned if w.outcome == "pending"]
        if pending:
            reserved_users = {r.user_id for r in existing if r.user_id is not None}
            users_lock = threading.Lock()
            workers = max(1, min(self.max_workers, len(pending)))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = {
                    pool.submit(
                        self._execute_write, write, today, reserved_users, users_lock
                    ): write
                    for write in pending
                }
                for future in as_completed(futures):
                    write = futures[future]
                    try:
                        future.result()
                    except ReservationError as e:
                        write.outcome = "failed"
                        write.detail = str(e)
                        logger.error(
                            f"Failed {write.kind} reservation for spot {write.spot_number}: {e}"
                        )
                    record_compensating_write(write.kind, write.outcome)

        report.writes = sorted(planned, key=lambda w: (SpotId.parse(w.spot_number).row, w.spot_number))
        if report.writes:
            logger.info(
                f"Detection write-back: {len(report.created)} created, "
                f"{len(report.failed)} failed of {len(report.writes)}"
            )

        self.refresh()
        return report

    def _plan_writes(
        self,
        boundaries: Sequence[SpotObservation],
        existing: Sequence[Reservation],
    ) -> list[CompensatingWrite]:
        by_spot = {b.spot_number: b for b in boundaries}
        reserved_spots = {r.spot_number for r in existing}
        anonymous_spots = {r.spot_number for r in existing if r.anonymous}
        planned = []

        for boundary in boundaries:
            plate = normalize_plate(boundary.vehicle.license_plate) if boundary.vehicle else None
            if boundary.is_occupied and plate:
                write = CompensatingWrite(
                    kind="identified", spot_number=boundary.spot_number, license_plate=plate
                )
                if boundary.spot_number in reserved_spots:
                    write.outcome = "skipped"
                    write.detail = f"spot {boundary.spot_number} is already reserved today"
                planned.append(write)

            spot = SpotId.parse(boundary.spot_number)
            if spot.column != Column.B or not boundary.is_occupied:
                continue

            back_number = str(spot.partner)
            back = by_spot.get(back_number)
            back_has_plate = back is not None and back.vehicle is not None and back.vehicle.license_plate
            if back is None or not back.is_occupied or back_has_plate:
                continue

            if back_number in anonymous_spots:
                logger.debug(f"Spot {back_number} already has an anonymous reservation")
                continue
            planned.append(CompensatingWrite(kind="blocking", spot_number=back_number))

        return planned

    def _execute_write(
        self,
        write: CompensatingWrite,
        today: date,
        reserved_users: set,
        users_lock: threading.Lock,
    ) -> None:
        if write.kind == "blocking":
            self.backend.create_reservation(
                ReservationCreate(
                    spot_number=write.spot_number,
                    user_id=None,
                    license_plate=None,
                    reservation_date=today,
                    estimated_departure=None,
                    anonymous=True,
                    blocked_spot=True,
                )
            )
            write.outcome = "created"
            logger.info(f"Created anonymous blocking reservation for spot {write.spot_number}")
            return

        user = self.backend.find_user_by_plate(write.license_plate)
        if user is None:
            write.outcome = "skipped"
            write.detail = "no user registered with this plate"
            return
        # At most one reservation per user per pass, even across plates
        with users_lock:
            already_reserved = user.id in reserved_users
            reserved_users.add(user.id)
        if already_reserved:
            write.outcome = "skipped"
            write.detail = f"user {user.id} already has a reservation today"
            return

        self.backend.create_reservation(
            ReservationCreate(
                spot_number=write.spot_number,
                user_id=user.id,
                license_plate=write.license_plate,
                reservation_date=today,
            )
        )
        write.outcome = "created"
        logger.info(
            f"Created reservation for user {user.id} ({write.license_plate}) at spot {write.spot_number}"
        )
