"""Errors raised by reservation actions and external collaborators."""


class ReservationError(Exception):
    """Base class for reservation failures."""


class ReservationValidationError(ReservationError):
    """Request rejected before any backend call (bad plate, unknown spot, ...)."""


class AlreadyReservedError(ReservationValidationError):
    """The user already holds a reservation for today."""


class SpotOccupiedError(ReservationValidationError):
    """The spot cannot take this action in its current state."""


class UnauthorizedActionError(ReservationError):
    """The acting user does not own the reservation they tried to change."""


class ReservationNotFoundError(ReservationError):
    """
    An expected reservation is missing from the backend.

    The local view is out of date; callers should re-sync rather than
    retry the same request.
    """


class BackendUnavailableError(ReservationError):
    """The reservation backend could not be reached or failed."""


class VisionServiceError(Exception):
    """The vehicle detection service could not be reached or failed."""
