import logging
from typing import Any, Dict, List, Set

import cloudscraper
import requests
from cloudscraper.exceptions import CloudflareException

from turf_booking import config, slot_grid
from turf_booking.exceptions import (
    AvailabilityFetchError,
    BookingConflictError,
    BookingLookupError,
    BookingValidationError,
    CancellationError,
    GenericSubmissionError,
)
from turf_booking.models import BookingRecord, BookingRequest, Turf

logger = logging.getLogger(__name__)

CONFLICT_MARKERS = ("already booked", "not available", "conflict")

# Cloudflare challenge failures are not RequestException subclasses.
TRANSPORT_ERRORS = (requests.exceptions.RequestException, CloudflareException)


def _is_conflict(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in CONFLICT_MARKERS)


def _error_message(response: requests.Response | None) -> str | None:
    """Pulls the backend's ``message`` out of an error response, if it sent one."""
    if response is None:
        return None
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        return data.get("message") or data.get("error")
    return None


class BookingApiClient:
    """HTTP client for the turf booking backend."""

    def __init__(self, base_url: str | None = None, token: str | None = None, timeout: int | None = None):
        self.base_url = base_url or config.BOOKING_API_BASE
        if not self.base_url.endswith("/"):
            self.base_url += "/"
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self.session = cloudscraper.create_scraper()
        self.session.headers.update(config.COMMON_HEADERS)
        token = config.BOOKING_API_TOKEN if token is None else token
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def get_turf(self, turf_ref: int | str) -> Turf:
        """Fetches a turf with its sports and hourly rates."""
        url = self._url(f"turfs/{turf_ref}")
        logger.info(f"Fetching turf {turf_ref} from {url}")
        response = self.session.get(url, timeout=self.timeout)
        logger.debug(f"Response status: {response.status_code}")
        response.raise_for_status()
        data: Dict[str, Any] = response.json()
        raw = data.get("data", data) if isinstance(data, dict) else data

        sports = []
        for sport in raw.get("sports") or []:
            sport_type = (sport.get("sport_type") or {}).get("name")
            sports.append(
                {
                    "id": sport["id"],
                    "name": sport.get("name") or sport_type or str(sport["id"]),
                    "rate_per_hour": float(sport.get("rate_per_hour") or 0),
                    "sport_type": sport_type,
                }
            )
        return Turf(
            id=raw["id"],
            name=raw.get("name", ""),
            slug=raw.get("slug"),
            location=raw.get("location"),
            sports=sports,
        )

    def get_booked_slots(self, turf_id: int | str, sport_id: int | str, date_str: str) -> Set[int]:
        """Returns the slot values already booked for a turf, sport and date."""
        url = self._url(f"slot-bookings/turf/{turf_id}")
        logger.info(f"Fetching booked slots for turf {turf_id}, sport {sport_id} on {date_str}")

        try:
            response = self.session.post(url, json={"sport_id": sport_id, "date": date_str}, timeout=self.timeout)
            logger.debug(f"Response status: {response.status_code}")
            response.raise_for_status()
            data = response.json()
        except (*TRANSPORT_ERRORS, ValueError) as e:
            raise AvailabilityFetchError(f"Could not load booked slots: {e}")

        if not isinstance(data, dict) or not data.get("success") or data.get("data") is None:
            logger.warning(f"Booked slots response without data: {data}")
            return set()
        return slot_grid.expand_booked_ranges(data["data"])

    def create_booking(self, request: BookingRequest) -> BookingRecord:
        """Creates a booking. The backend re-checks that the range is still free."""
        url = self._url("slot-bookings")
        try:
            response = self.session.post(url, json=request.to_payload(), timeout=self.timeout)
            logger.debug(f"Response status: {response.status_code}")
        except TRANSPORT_ERRORS as e:
            logger.error(f"Error creating booking: {e}")
            raise GenericSubmissionError()

        message = _error_message(response)
        if response.status_code == 409:
            raise BookingConflictError(message)
        if response.status_code in (400, 422):
            if message and _is_conflict(message):
                raise BookingConflictError(message)
            raise BookingValidationError(message)
        if not response.ok:
            logger.error(f"Booking request failed with status {response.status_code}")
            raise GenericSubmissionError(message)

        try:
            data = response.json()
        except ValueError:
            raise GenericSubmissionError()

        if not isinstance(data, dict):
            logger.error(f"Unexpected booking response format: {data!r}")
            raise GenericSubmissionError()

        if not data.get("success"):
            message = data.get("message")
            if message and _is_conflict(message):
                raise BookingConflictError(message)
            raise GenericSubmissionError(message)

        try:
            return BookingRecord.from_api(data["data"]["booking"])
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Unexpected booking response format: {e}")
            logger.debug(f"Response data: {data}")
            raise GenericSubmissionError()

    def _get_json(self, path: str):
        url = self._url(path)
        try:
            response = self.session.get(url, timeout=self.timeout)
            logger.debug(f"Response status: {response.status_code}")
            response.raise_for_status()
            data = response.json()
        except (*TRANSPORT_ERRORS, ValueError) as e:
            raise BookingLookupError(_error_message(getattr(e, "response", None)) or f"Could not load bookings: {e}")
        return data.get("data", data) if isinstance(data, dict) else data

    def get_user_bookings(self) -> List[BookingRecord]:
        """Lists the bookings of the authenticated user."""
        logger.info("Fetching user bookings")
        rows = self._get_json("bookings/user")
        if not isinstance(rows, list):
            raise BookingLookupError("Unexpected bookings response format")
        try:
            return [BookingRecord.from_api(row) for row in rows]
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"Response data: {rows}")
            raise BookingLookupError(f"Unexpected bookings response format: {e}")

    def get_booking(self, booking_id: int | str) -> BookingRecord:
        logger.info(f"Fetching booking {booking_id}")
        row = self._get_json(f"bookings/{booking_id}")
        if isinstance(row, dict) and "booking" in row:
            row = row["booking"]
        try:
            return BookingRecord.from_api(row)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise BookingLookupError(f"Unexpected booking response format: {e}")

    def cancel_booking(self, booking_id: int | str, reason: str | None = None) -> str:
        """Cancels a booking and returns the backend's confirmation message."""
        url = self._url(f"bookings/{booking_id}/cancel")
        logger.info(f"Cancelling booking {booking_id}")
        try:
            response = self.session.put(url, json={"reason": reason}, timeout=self.timeout)
            logger.debug(f"Response status: {response.status_code}")
        except TRANSPORT_ERRORS as e:
            logger.error(f"Error cancelling booking: {e}")
            raise CancellationError()

        message = _error_message(response)
        if not response.ok:
            raise CancellationError(message)
        return message or f"Booking {booking_id} cancelled"
