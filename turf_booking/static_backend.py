import logging
from typing import Dict, Iterable, List, Set, Tuple

from turf_booking import persist, slot_grid
from turf_booking.exceptions import BookingConflictError, BookingValidationError, CancellationError
from turf_booking.models import BookingRecord, BookingRequest, Sport, Turf

logger = logging.getLogger(__name__)

BookingKey = Tuple[str, str, str]
CANCELLED = "cancelled"

DEMO_TURFS: List[Turf] = [
    Turf(id="turf1", name="Premium Football Ground", sports=[Sport(id="football", name="Football", rate_per_hour=1200)]),
    Turf(id="turf2", name="Cricket Pitch", sports=[Sport(id="cricket", name="Cricket", rate_per_hour=1000)]),
    Turf(id="turf3", name="Tennis Court", sports=[Sport(id="tennis", name="Tennis", rate_per_hour=800)]),
    Turf(id="turf4", name="Basketball Court", sports=[Sport(id="basketball", name="Basketball", rate_per_hour=600)]),
    Turf(id="turf5", name="Badminton Court", sports=[Sport(id="badminton", name="Badminton", rate_per_hour=500)]),
    Turf(id="turf6", name="Volleyball Court", sports=[Sport(id="volleyball", name="Volleyball", rate_per_hour=700)]),
    Turf(id="turf7", name="Multi-Sport Ground", sports=[Sport(id="multi-sport", name="Multi-Sport", rate_per_hour=900)]),
    Turf(id="turf8", name="Training Ground", sports=[Sport(id="general", name="General", rate_per_hour=400)]),
]


def _slot_values(record: BookingRecord) -> range:
    return range(record.start_slot_value, record.end_slot_value + 1)


class StaticBookingBackend:
    """In-memory stand-in for the booking backend, seeded with the demo turfs.

    With ``persist_bookings`` set, confirmed and cancelled bookings go to the
    JSON ledger and earlier ones are loaded back on start.
    """

    def __init__(self, turfs: Iterable[Turf] = DEMO_TURFS, persist_bookings: bool = False):
        self.turfs: Dict[str, Turf] = {str(t.id): t for t in turfs}
        self.persist_bookings = persist_bookings
        self._booked: Dict[BookingKey, Set[int]] = {}
        self.records: Dict[str, BookingRecord] = {}
        self._next_id = 1

        if persist_bookings:
            rows = persist.load_bookings()
            for row in rows:
                record = BookingRecord(**row)
                self.records[str(record.id)] = record
                if record.status != CANCELLED:
                    self.seed(record.turf_id, record.sport_id, record.date, _slot_values(record))
            self._next_id = len(rows) + 1

    @staticmethod
    def _key(turf_id, sport_id, date_str) -> BookingKey:
        return str(turf_id), str(sport_id), date_str

    def seed(self, turf_id, sport_id, date_str: str, values: Iterable[int]):
        self._booked.setdefault(self._key(turf_id, sport_id, date_str), set()).update(values)

    def get_turf(self, turf_ref: int | str) -> Turf:
        try:
            return self.turfs[str(turf_ref)]
        except KeyError:
            raise BookingValidationError(f"Unknown turf '{turf_ref}'")

    def get_booked_slots(self, turf_id, sport_id, date_str: str) -> Set[int]:
        return set(self._booked.get(self._key(turf_id, sport_id, date_str), set()))

    def create_booking(self, request: BookingRequest) -> BookingRecord:
        turf = self.turfs.get(str(request.turf_id))
        if turf is None or turf.get_sport(request.sport_id) is None:
            raise BookingValidationError("Unknown turf or sport")

        wanted = set(range(request.start_slot_value, request.end_slot_value + 1))
        booked = self._booked.setdefault(self._key(request.turf_id, request.sport_id, request.date), set())
        taken = sorted(wanted & booked)
        if taken:
            start, _ = slot_grid.slot_bounds(taken[0])
            raise BookingConflictError(f"The slot starting at {start} is already booked")

        booked.update(wanted)
        record = BookingRecord(
            id=f"booking-{self._next_id}",
            turf_id=request.turf_id,
            sport_id=request.sport_id,
            date=request.date,
            start_time=request.start_time,
            end_time=request.end_time,
            duration=request.duration,
            start_slot_value=request.start_slot_value,
            end_slot_value=request.end_slot_value,
            total_price=request.total_price,
            status="confirmed",
            special_requests=request.special_requests,
        )
        self.records[str(record.id)] = record
        self._next_id += 1
        logger.info(f"Stored booking {record.id} for slots {request.start_slot_value}-{request.end_slot_value}")

        if self.persist_bookings:
            persist.save_booking(record)
        return record

    def get_user_bookings(self) -> List[BookingRecord]:
        return sorted(self.records.values(), key=lambda r: (r.date, r.start_slot_value))

    def cancel_booking(self, booking_id: int | str, reason: str | None = None) -> str:
        record = self.records.get(str(booking_id))
        if record is None:
            raise CancellationError(f"Booking {booking_id} not found")
        if record.status == CANCELLED:
            raise CancellationError(f"Booking {booking_id} is already cancelled")

        self._booked.get(self._key(record.turf_id, record.sport_id, record.date), set()).difference_update(_slot_values(record))
        record = record.model_copy(update={"status": CANCELLED, "cancellation_reason": reason})
        self.records[str(record.id)] = record
        logger.info(f"Cancelled booking {record.id}, released slots {record.start_slot_value}-{record.end_slot_value}")

        if self.persist_bookings:
            persist.update_booking(record)
        return f"Booking {record.id} cancelled"
