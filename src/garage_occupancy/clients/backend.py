"""REST client for the reservation and user backend."""

import logging
from datetime import date
from typing import Any, Optional
from urllib.parse import quote

import requests
from pydantic import ValidationError

from ..reservations.errors import BackendUnavailableError, ReservationNotFoundError
from ..state.models import Reservation, ReservationCreate, User

logger = logging.getLogger(__name__)


class BackendClient:
    """
    Wrapper around the reservation backend's REST API.

    Transport failures and unexpected HTTP statuses are raised as
    BackendUnavailableError. Expected 404s are translated per call.
    """

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timeout_seconds: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the backend client.

        Args:
            base_url: Root URL of the backend API (e.g. https://host/api)
            api_token: Optional bearer token sent with every request
            timeout_seconds: Per-request timeout
            session: Session to use, mainly for tests
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        self._session.headers.setdefault("Accept", "application/json")
        if api_token:
            self._session.headers["Authorization"] = f"Bearer {api_token}"

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(method, url, timeout=self.timeout_seconds, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise BackendUnavailableError(f"Backend request failed: {e}") from e

        logger.debug(f"{method} {url} -> {response.status_code}")
        return response

    @staticmethod
    def _raise_for_status(response: requests.Response) -> None:
        if response.status_code >= 400:
            raise BackendUnavailableError(
                f"Backend returned {response.status_code} for "
                f"{response.request.method if response.request else ''} {response.url}"
            )

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise BackendUnavailableError(f"Backend returned invalid JSON: {e}") from e

    def get_reservations(self, day: date) -> list[Reservation]:
        """
        Fetch all reservations for a date.

        Malformed records are skipped with a warning.
        """
        response = self._request("GET", "/reservations", params={"date": day.isoformat()})
        self._raise_for_status(response)
        payload = self._json(response)

        if not isinstance(payload, list):
            logger.warning(f"Unexpected reservations payload: {type(payload).__name__}")
            return []

        reservations = []
        for record in payload:
            try:
                reservations.append(Reservation.model_validate(record))
            except ValidationError as e:
                logger.warning(f"Skipping malformed reservation record: {e}")

        return reservations

    def create_reservation(self, reservation: ReservationCreate) -> Reservation:
        """Create a reservation and return the stored record."""
        body = reservation.model_dump(mode="json", by_alias=True)
        response = self._request("POST", "/reservations", json=body)
        self._raise_for_status(response)

        try:
            created = Reservation.model_validate(self._json(response))
        except ValidationError as e:
            raise BackendUnavailableError(f"Backend returned malformed reservation: {e}") from e

        logger.info(f"Created reservation #{created.id} for spot {created.spot_number}")
        return created

    def delete_reservation(self, reservation_id: int) -> None:
        """
        Delete a reservation by ID.

        Raises:
            ReservationNotFoundError: If the backend no longer has it
        """
        response = self._request("DELETE", f"/reservations/{reservation_id}")
        if response.status_code == 404:
            raise ReservationNotFoundError(f"Reservation #{reservation_id} not found")
        self._raise_for_status(response)
        logger.info(f"Deleted reservation #{reservation_id}")

    def find_user_by_plate(self, plate: str) -> Optional[User]:
        """Look up the user registered with a license plate, or None."""
        response = self._request("GET", f"/users/by-plate/{quote(plate, safe='')}")
        if response.status_code == 404:
            return None
        self._raise_for_status(response)

        try:
            return User.model_validate(self._json(response))
        except ValidationError as e:
            raise BackendUnavailableError(f"Backend returned malformed user: {e}") from e

    def get_user(self, user_id: int) -> Optional[User]:
        """Fetch a user by ID, or None if unknown."""
        response = self._request("GET", f"/users/{user_id}")
        if response.status_code == 404:
            return None
        self._raise_for_status(response)

        try:
            return User.model_validate(self._json(response))
        except ValidationError as e:
            raise BackendUnavailableError(f"Backend returned malformed user: {e}") from e

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()

    def __enter__(self) -> "BackendClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
