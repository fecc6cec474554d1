"""FastAPI route definitions."""

import logging
from datetime import datetime
from typing import Callable, NoReturn, Optional

from fastapi import APIRouter, Depends, File, Header, HTTPException, Response, UploadFile

from ..clients.vision import VisionClient
from ..detection.pipeline import decode_image, detect_parking_spots
from ..metrics import get_metrics
from ..reservations.errors import (
    AlreadyReservedError,
    BackendUnavailableError,
    ReservationError,
    ReservationNotFoundError,
    ReservationValidationError,
    SpotOccupiedError,
    UnauthorizedActionError,
    VisionServiceError,
)
from ..reservations.orchestrator import ActionOutcome, PlateOwner, ReservationOrchestrator
from ..state.garage_state import GarageState
from ..state.models import User
from .schemas import (
    ActionResponse,
    BoundaryResponse,
    DetectionResponse,
    HealthResponse,
    ParkedInResponse,
    PlateLookupResponse,
    PlateOwnerResponse,
    ReservationRequest,
    SpotResponse,
    StatusResponse,
    WriteResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Dependencies injected at startup
_state: Optional[GarageState] = None
_orchestrator: Optional[ReservationOrchestrator] = None
_vision: Optional[VisionClient] = None
_get_user_func: Optional[Callable[[int], Optional[User]]] = None
_min_confidence: float = 0.0
_start_time: datetime = datetime.now()


def init_router(
    state: GarageState,
    orchestrator: ReservationOrchestrator,
    vision: Optional[VisionClient],
    get_user_func: Callable[[int], Optional[User]],
    min_confidence: float = 0.0,
) -> None:
    """
    Initialize router with dependencies.

    Args:
        state: Holder of the reconciled spot list
        orchestrator: Reservation action orchestrator
        vision: Client for the vision services
        get_user_func: Function resolving a user ID to a User (None if unknown)
        min_confidence: Vehicles below this detection confidence are ignored
    """
    global _state, _orchestrator, _vision, _get_user_func, _min_confidence, _start_time

    _state = state
    _orchestrator = orchestrator
    _vision = vision
    _get_user_func = get_user_func
    _min_confidence = min_confidence
    _start_time = datetime.now()

    logger.info("API router initialized")


def _require_state() -> GarageState:
    if _state is None or _orchestrator is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return _state


def _raise_http(error: ReservationError) -> NoReturn:
    """Translate a reservation error into the matching HTTP error."""
    if isinstance(error, (AlreadyReservedError, SpotOccupiedError)):
        raise HTTPException(status_code=409, detail=str(error))
    if isinstance(error, ReservationValidationError):
        raise HTTPException(status_code=400, detail=str(error))
    if isinstance(error, UnauthorizedActionError):
        raise HTTPException(status_code=403, detail=str(error))
    if isinstance(error, ReservationNotFoundError):
        raise HTTPException(status_code=409, detail=f"{error}; re-sync required")
    if isinstance(error, BackendUnavailableError):
        raise HTTPException(status_code=502, detail=str(error))
    raise HTTPException(status_code=500, detail=str(error))


def get_current_user(x_user_id: int = Header(...)) -> User:
    """Resolve the acting user from the X-User-Id header."""
    if _get_user_func is None:
        raise HTTPException(status_code=503, detail="Service not initialized")

    try:
        user = _get_user_func(x_user_id)
    except BackendUnavailableError as e:
        raise HTTPException(status_code=502, detail=str(e))

    if user is None:
        raise HTTPException(status_code=401, detail=f"Unknown user {x_user_id}")
    return user


def _spot_responses() -> list[SpotResponse]:
    return [SpotResponse.from_spot(s) for s in _require_state().spots]


def _action_response(outcome: ActionOutcome) -> ActionResponse:
    return ActionResponse(
        action=outcome.action,
        spot_number=outcome.spot_number,
        reservation_id=outcome.reservation.id if outcome.reservation else None,
        notices=outcome.notices,
        spots=_spot_responses(),
    )


@router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Returns basic health information about the service.
    """
    uptime = (datetime.now() - _start_time).total_seconds()

    last_sync = None
    if _state is not None:
        last_sync = _state.get_summary().last_reservation_sync

    return HealthResponse(
        status="healthy" if _state is not None else "starting",
        uptime_seconds=uptime,
        last_reservation_sync=last_sync,
    )


@router.get("/spots", response_model=StatusResponse)
def get_status() -> StatusResponse:
    """
    Get overall garage status.

    Returns occupancy counts and the reconciled state of every spot.
    """
    state = _require_state()
    return StatusResponse(
        summary=state.get_summary(),
        spots=[SpotResponse.from_spot(s) for s in state.spots],
    )


@router.get("/spots/{spot_number}", response_model=SpotResponse)
def get_spot(spot_number: str) -> SpotResponse:
    """
    Get status for a specific parking spot.

    Args:
        spot_number: Spot identifier such as "3A"
    """
    spot = _require_state().get_spot(spot_number)
    if spot is None:
        raise HTTPException(status_code=404, detail=f"Spot '{spot_number}' not found")
    return SpotResponse.from_spot(spot)


@router.post("/sync", response_model=StatusResponse)
def sync_reservations() -> StatusResponse:
    """Re-fetch today's reservations and rebuild the spot list."""
    state = _require_state()
    try:
        _orchestrator.refresh()
    except BackendUnavailableError as e:
        _raise_http(e)

    return StatusResponse(
        summary=state.get_summary(),
        spots=[SpotResponse.from_spot(s) for s in state.spots],
    )


@router.post("/spots/{spot_number}/reserve", response_model=ActionResponse)
def reserve_spot(
    spot_number: str,
    request: ReservationRequest,
    user: User = Depends(get_current_user),
) -> ActionResponse:
    """Reserve a free spot for the acting user."""
    _require_state()
    try:
        outcome = _orchestrator.reserve(
            user, spot_number, request.license_plate, request.estimated_departure
        )
    except ReservationError as e:
        _raise_http(e)
    return _action_response(outcome)


@router.delete("/spots/{spot_number}/reservation", response_model=ActionResponse)
def unreserve_spot(
    spot_number: str,
    user: User = Depends(get_current_user),
) -> ActionResponse:
    """Release the acting user's reservation on a spot."""
    _require_state()
    try:
        outcome = _orchestrator.unreserve(user, spot_number)
    except ReservationError as e:
        _raise_http(e)
    return _action_response(outcome)


@router.post("/spots/{spot_number}/claim", response_model=ActionResponse)
def claim_spot(
    spot_number: str,
    request: ReservationRequest,
    user: User = Depends(get_current_user),
) -> ActionResponse:
    """Claim an anonymously occupied spot for the acting user."""
    _require_state()
    try:
        outcome = _orchestrator.claim(
            user, spot_number, request.license_plate, request.estimated_departure
        )
    except ReservationError as e:
        _raise_http(e)
    return _action_response(outcome)


@router.get("/me/parked-in", response_model=ParkedInResponse)
def parked_in(user: User = Depends(get_current_user)) -> ParkedInResponse:
    """Tell the acting user whether a vehicle is blocking their spot."""
    _require_state()
    notice = _orchestrator.parked_in_by(user)
    if notice is None:
        return ParkedInResponse(parked_in=False)

    return ParkedInResponse(
        parked_in=True,
        spot_number=notice.spot_number,
        blocking_spot_number=notice.blocking_spot_number,
        driver_name=notice.driver_name,
        occupant=notice.occupant,
    )


@router.post("/detections", response_model=DetectionResponse)
def detect_from_image(file: UploadFile = File(...)) -> DetectionResponse:
    """
    Run vehicle and plate detection on an uploaded image.

    The detected occupancy is applied to the garage, compensating
    reservations are written to the backend, and the spot list is
    rebuilt from a fresh reservation fetch.
    """
    state = _require_state()
    if _vision is None:
        raise HTTPException(status_code=503, detail="Vision services not configured")

    image_bytes = file.file.read()
    if not image_bytes:
        raise HTTPException(status_code=400, detail="Empty image upload")

    try:
        result = detect_parking_spots(
            image_bytes,
            _vision,
            rows=state.rows,
            min_confidence=_min_confidence,
            filename=file.filename or "image.jpg",
            content_type=file.content_type or "image/jpeg",
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except VisionServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))

    try:
        report = _orchestrator.handle_spots_detected(result.boundaries)
    except ReservationError as e:
        _raise_http(e)

    width, height = result.image_size
    return DetectionResponse(
        total_spots=result.summary.total_spots,
        occupied_spots=result.summary.occupied_spots,
        available_spots=result.summary.available_spots,
        spots_with_plates=result.summary.spots_with_plates,
        image_width=width,
        image_height=height,
        processed_image=result.processed_image,
        boundaries=[
            BoundaryResponse(
                id=b.id,
                spot_number=b.spot_number,
                bounding_box=b.bounding_box,
                is_occupied=b.is_occupied,
                vehicle_type=b.vehicle.type if b.vehicle else None,
                confidence=b.vehicle.confidence if b.vehicle else None,
                license_plate=b.vehicle.license_plate if b.vehicle else None,
            )
            for b in result.boundaries
        ],
        writes=[
            WriteResponse(
                kind=w.kind,
                spot_number=w.spot_number,
                license_plate=w.license_plate,
                outcome=w.outcome,
                detail=w.detail,
            )
            for w in report.writes
        ],
        spots=[SpotResponse.from_spot(s) for s in state.spots],
    )


def _plate_lookup_response(owners: list[PlateOwner]) -> PlateLookupResponse:
    return PlateLookupResponse(
        plates=[
            PlateOwnerResponse(
                license_plate=o.license_plate,
                registered=o.user is not None,
                name=o.user.name if o.user else None,
                email=o.user.email if o.user else None,
                phone_number=o.user.phone_number if o.user else None,
            )
            for o in owners
        ]
    )


@router.get("/plates/{license_plate}", response_model=PlateLookupResponse)
def lookup_plate(license_plate: str) -> PlateLookupResponse:
    """
    Look up the owner of a typed license plate.

    Args:
        license_plate: Plate text; whitespace and case are ignored
    """
    _require_state()
    try:
        owners = _orchestrator.lookup_plates([license_plate])
    except BackendUnavailableError as e:
        _raise_http(e)

    if not owners:
        raise HTTPException(status_code=400, detail="Empty license plate")
    return _plate_lookup_response(owners)


@router.post("/plates/recognize", response_model=PlateLookupResponse)
def recognize_plates(file: UploadFile = File(...)) -> PlateLookupResponse:
    """Read license plates from an uploaded image and look up their owners."""
    _require_state()
    if _vision is None:
        raise HTTPException(status_code=503, detail="Vision services not configured")

    image_bytes = file.file.read()
    if not image_bytes:
        raise HTTPException(status_code=400, detail="Empty image upload")

    try:
        decode_image(image_bytes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    plates = _vision.detect_plates(
        image_bytes,
        filename=file.filename or "image.jpg",
        content_type=file.content_type or "image/jpeg",
    )

    try:
        owners = _orchestrator.lookup_plates([p.text for p in plates])
    except BackendUnavailableError as e:
        _raise_http(e)
    return _plate_lookup_response(owners)


@router.get("/metrics")
def prometheus_metrics() -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format including:
    - garage_spot_occupied: Gauge of current spot status (1=occupied, 0=available)
    - garage_spots_total / _available / _occupied: Overall counts
    - garage_reconciliations_total: Reconciliation passes by source
    - garage_reservation_actions_total: Reservation actions by outcome
    - garage_compensating_writes_total: Detection write-backs by outcome
    - garage_detection_latency_seconds: Histogram of detection pipeline latency
    - garage_detection_confidence: Histogram of per-spot detection confidence
    """
    return Response(
        content=get_metrics(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
