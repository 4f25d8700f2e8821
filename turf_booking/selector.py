import logging
import threading
from concurrent.futures import Executor, Future
from datetime import date as date_cls, datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Set, Tuple

from pydantic import ValidationError

from turf_booking import config, slot_grid
from turf_booking.exceptions import (
    AvailabilityFetchError,
    BookingValidationError,
    GenericSubmissionError,
    SlotUnavailableError,
    SubmissionError,
)
from turf_booking.models import SLOTS_PER_DAY, BookingRecord, BookingRequest, Sport, TimeRange, TimeSlot, Turf

logger = logging.getLogger(__name__)

SLOT_HOURS = 0.5


class BookingBackend(Protocol):
    def get_turf(self, turf_ref: int | str) -> Turf: ...

    def get_booked_slots(self, turf_id: int | str, sport_id: int | str, date_str: str) -> Set[int]: ...

    def create_booking(self, request: BookingRequest) -> BookingRecord: ...

    def get_user_bookings(self) -> List[BookingRecord]: ...

    def cancel_booking(self, booking_id: int | str, reason: str | None = None) -> str: ...


class SelectionStatus(Enum):
    EMPTY = "empty"
    HAS_RANGE = "has_range"


class ClickKind(Enum):
    BOOKED = "booked"
    RECLICK_SOLE = "reclick_sole"
    NEXT = "next"
    OTHER = "other"


class Action(Enum):
    REJECT = "reject"
    START = "start"
    CLEAR = "clear"
    APPEND = "append"
    RESTART = "restart"


# Only a click on the slot right after the run extends it. Any other click
# starts over, so a selection is always one unbroken interval.
TRANSITIONS: Dict[Tuple[SelectionStatus, ClickKind], Action] = {
    (SelectionStatus.EMPTY, ClickKind.BOOKED): Action.REJECT,
    (SelectionStatus.EMPTY, ClickKind.OTHER): Action.START,
    (SelectionStatus.HAS_RANGE, ClickKind.BOOKED): Action.REJECT,
    (SelectionStatus.HAS_RANGE, ClickKind.RECLICK_SOLE): Action.CLEAR,
    (SelectionStatus.HAS_RANGE, ClickKind.NEXT): Action.APPEND,
    (SelectionStatus.HAS_RANGE, ClickKind.OTHER): Action.RESTART,
}


def classify_click(selection: List[int], slot: TimeSlot) -> ClickKind:
    if slot.is_booked:
        return ClickKind.BOOKED
    if not selection:
        return ClickKind.OTHER
    last = selection[-1]
    if len(selection) == 1 and slot.value == last:
        return ClickKind.RECLICK_SOLE
    if slot.value == last + 1:
        return ClickKind.NEXT
    return ClickKind.OTHER


def next_selection(selection: List[int], slot: TimeSlot) -> Tuple[Action, List[int]]:
    """Applies one click to a selection and returns the action taken with the new selection."""
    status = SelectionStatus.HAS_RANGE if selection else SelectionStatus.EMPTY
    action = TRANSITIONS[(status, classify_click(selection, slot))]

    if action is Action.REJECT:
        return action, list(selection)
    if action is Action.CLEAR:
        return action, []
    if action is Action.APPEND:
        return action, selection + [slot.value]
    return action, [slot.value]


def build_time_range(slots: List[TimeSlot], selection: List[int], rate_per_hour: float) -> Optional[TimeRange]:
    if not selection:
        return None
    first = slots[selection[0]]
    last = slots[selection[-1]]
    duration = SLOT_HOURS * len(selection)
    return TimeRange(
        start_time=first.start_time,
        end_time=last.end_time,
        duration=duration,
        total_price=duration * rate_per_hour,
        start_slot_value=first.value,
        end_slot_value=last.value,
    )


class SlotSelector:
    """Contiguous slot selection and booking submission for one turf.

    Owns the day grid and the in-progress selection. Any change of turf,
    sport or date regenerates the grid and drops the selection. Availability
    responses carry the generation they were requested for and are ignored
    once a newer context has been set.
    """

    def __init__(
        self,
        backend: BookingBackend,
        turf: Turf,
        on_booking_complete: Optional[Callable[[BookingRecord], None]] = None,
        on_close: Optional[Callable[[], None]] = None,
        fail_closed: bool | None = None,
    ):
        self.backend = backend
        self.turf = turf
        self.sport: Sport | None = turf.sports[0] if turf.sports else None
        self.date: str | None = None
        self.on_booking_complete = on_booking_complete
        self.on_close = on_close
        self.fail_closed = config.FAIL_CLOSED_AVAILABILITY if fail_closed is None else fail_closed

        self.slots: List[TimeSlot] = []
        self.selected_slot_values: List[int] = []
        self.error: str | None = None
        self.availability_error: AvailabilityFetchError | None = None
        self.confirmed_booking: BookingRecord | None = None
        self.closed = False

        self._generation = 0
        self._lock = threading.Lock()

    # --- Derived state ---

    @property
    def status(self) -> SelectionStatus:
        return SelectionStatus.HAS_RANGE if self.selected_slot_values else SelectionStatus.EMPTY

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_ready(self) -> bool:
        return self.sport is not None and self.date is not None

    @property
    def time_range(self) -> Optional[TimeRange]:
        if self.sport is None:
            return None
        return build_time_range(self.slots, self.selected_slot_values, self.sport.rate_per_hour)

    # --- Context ---

    def select_sport(self, sport: Sport | int | str, fetch: bool = True) -> int:
        if not isinstance(sport, Sport):
            found = self.turf.get_sport(sport)
            if found is None:
                raise BookingValidationError(f"Sport {sport} is not offered at {self.turf.name}")
            sport = found
        self.sport = sport
        return self._change_context(fetch)

    def select_date(self, day: date_cls | str, fetch: bool = True) -> int:
        if isinstance(day, datetime):
            day = day.date()
        if isinstance(day, date_cls):
            day = day.isoformat()
        try:
            date_cls.fromisoformat(day)
        except ValueError:
            raise BookingValidationError(f"Invalid date '{day}', expected YYYY-MM-DD")
        self.date = day
        return self._change_context(fetch)

    def select_turf(self, turf: Turf, fetch: bool = True) -> int:
        self.turf = turf
        self.sport = turf.sports[0] if turf.sports else None
        return self._change_context(fetch)

    def _change_context(self, fetch: bool) -> int:
        with self._lock:
            self._generation += 1
            token = self._generation
            self.selected_slot_values = []
            self.error = None
            self.availability_error = None
            self.confirmed_booking = None
            self.slots = slot_grid.generate(self.date, ()) if self.date else []

        logger.debug(f"Context changed (generation {token}): turf={self.turf.id} sport={self.sport and self.sport.id} date={self.date}")
        if fetch and self.is_ready:
            self.refresh_availability()
        return token

    # --- Availability ---

    def _load_booked_slots(self, turf_id, sport_id, date_str) -> Tuple[Set[int], AvailabilityFetchError | None]:
        try:
            return set(self.backend.get_booked_slots(turf_id, sport_id, date_str)), None
        except AvailabilityFetchError as e:
            error = e
        except Exception as e:
            error = AvailabilityFetchError(f"Could not load booked slots: {e}")

        if self.fail_closed:
            logger.error(f"Booked slots for {date_str} unavailable, blocking all slots: {error.message}")
            return set(range(SLOTS_PER_DAY)), error
        logger.error(f"Booked slots for {date_str} unavailable, showing all slots as free: {error.message}")
        return set(), error

    def apply_availability(self, token: int, booked: Iterable[int], error: AvailabilityFetchError | None = None) -> bool:
        """Regenerates the grid from a booked-slot snapshot if ``token`` is still current."""
        with self._lock:
            if token != self._generation or self.date is None:
                logger.debug(f"Discarding stale availability (generation {token}, current {self._generation})")
                return False
            self.slots = slot_grid.generate(self.date, booked)
            self.availability_error = error
            if error is not None:
                self.error = error.message
            return True

    def refresh_availability(self) -> bool:
        if not self.is_ready:
            return False
        token = self._generation
        booked, error = self._load_booked_slots(self.turf.id, self.sport.id, self.date)
        return self.apply_availability(token, booked, error)

    def refresh_availability_async(self, executor: Executor) -> Future:
        """Fetches booked slots on ``executor``; the future resolves to whether the result was applied."""
        if not self.is_ready:
            raise BookingValidationError("Select a sport and date first")
        token = self._generation
        turf_id, sport_id, date_str = self.turf.id, self.sport.id, self.date

        def _task() -> bool:
            booked, error = self._load_booked_slots(turf_id, sport_id, date_str)
            return self.apply_availability(token, booked, error)

        return executor.submit(_task)

    # --- Clicks ---

    def click(self, value: int) -> Action | None:
        """Handles a click on slot ``value``. Raises SlotUnavailableError for booked slots."""
        if not self.slots:
            logger.debug("Click ignored, no sport/date selected")
            return None
        if not 0 <= value < len(self.slots):
            raise ValueError(f"Slot value {value} outside 0..{len(self.slots) - 1}")

        slot = self.slots[value]
        action, selection = next_selection(self.selected_slot_values, slot)
        if action is Action.REJECT:
            error = SlotUnavailableError()
            self.error = error.message
            raise error

        self.selected_slot_values = selection
        self.error = None
        logger.debug(f"Slot {value}: {action.value} -> {selection}")
        return action

    # --- Submission ---

    def build_request(self, special_requests: str = "") -> BookingRequest:
        time_range = self.time_range
        if time_range is None or not self.is_ready:
            raise BookingValidationError("Select a sport, date and time range first")
        try:
            return BookingRequest(
                turf_id=self.turf.id,
                sport_id=self.sport.id,
                date=self.date,
                start_time=time_range.start_time,
                end_time=time_range.end_time,
                duration=time_range.duration,
                start_slot_value=time_range.start_slot_value,
                end_slot_value=time_range.end_slot_value,
                total_price=time_range.total_price,
                special_requests=special_requests,
                sport_type=self.sport.label,
            )
        except ValidationError as e:
            raise BookingValidationError(f"Invalid booking request: {e.errors()[0]['msg']}")

    def submit(self, special_requests: str = "") -> BookingRecord | None:
        """Submits the current range. Returns None when nothing is selected.

        On failure the message is kept in ``error``, the selection stays as
        it was and the error is re-raised.
        """
        if not self.selected_slot_values:
            return None

        try:
            request = self.build_request(special_requests)
            logger.info(
                f"Booking {self.turf.id}/{request.sport_id} on {request.date} "
                f"{request.start_time}-{request.end_time} for {request.total_price}"
            )
            record = self.backend.create_booking(request)
        except SubmissionError as e:
            self.error = e.message
            logger.warning(f"Booking failed: {e.message}")
            raise
        except Exception as e:
            error = GenericSubmissionError()
            self.error = error.message
            logger.error(f"Booking failed: {e}")
            raise error from e

        booked = {s.value for s in self.slots if s.is_booked}
        booked.update(range(request.start_slot_value, request.end_slot_value + 1))
        self.slots = slot_grid.generate(self.date, booked)
        self.selected_slot_values = []
        self.error = None
        self.confirmed_booking = record
        logger.info(f"Booking {record.id} confirmed")

        if self.on_booking_complete:
            self.on_booking_complete(record)
        return record

    def close(self) -> None:
        with self._lock:
            self._generation += 1
            self.selected_slot_values = []
            self.slots = []
            self.error = None
            self.closed = True
        if self.on_close:
            self.on_close()
