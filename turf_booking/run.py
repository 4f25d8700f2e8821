import logging
import sys
from datetime import datetime, timedelta
from typing import List

from turf_booking import config, slot_grid, telegram_notifier
from turf_booking.client import TRANSPORT_ERRORS, BookingApiClient
from turf_booking.exceptions import BookingError, SubmissionError
from turf_booking.models import BookingRecord, Turf
from turf_booking.selector import BookingBackend, SlotSelector
from turf_booking.static_backend import StaticBookingBackend

logger = logging.getLogger(__name__)


def make_backend(demo: bool = False) -> BookingBackend:
    if demo:
        logger.info("Using the static demo backend")
        return StaticBookingBackend(persist_bookings=True)
    return BookingApiClient()


def resolve_date(date_arg: str | None) -> str:
    """Validates a YYYY-MM-DD date; defaults to tomorrow."""
    if not date_arg:
        return (datetime.now() + timedelta(days=1)).strftime("%Y-%m-%d")
    try:
        return datetime.strptime(date_arg, "%Y-%m-%d").strftime("%Y-%m-%d")
    except ValueError:
        logger.error("Error: Date must be in YYYY-MM-DD format.")
        sys.exit(1)


def load_turf(backend: BookingBackend, turf_ref: str) -> Turf:
    try:
        return backend.get_turf(turf_ref)
    except (*TRANSPORT_ERRORS, BookingError, KeyError, ValueError) as e:
        logger.error(f"Failed to load turf {turf_ref}: {e}")
        sys.exit(1)


def open_selector(backend: BookingBackend, turf_ref: str, sport_ref: str | None, date_str: str, **hooks) -> SlotSelector:
    """Loads the turf and returns a selector with sport, date and availability set."""
    turf = load_turf(backend, turf_ref)
    if not turf.sports:
        logger.error(f"Turf {turf.name} offers no sports.")
        sys.exit(1)

    selector = SlotSelector(backend, turf, **hooks)
    try:
        if sport_ref is not None:
            selector.select_sport(sport_ref, fetch=False)
        selector.select_date(date_str)
    except BookingError as e:
        logger.error(e.message)
        sys.exit(1)
    if selector.availability_error:
        print(f"Warning: {selector.availability_error.message}. Availability is checked again on booking.")
    return selector


def print_availability_report(selector: SlotSelector):
    """Prints the slot grid for the selector's turf, sport and date."""
    free = [s for s in selector.slots if s.is_available]
    print(f"\n--- Availability for {selector.turf.name} ({selector.sport.label}) on {selector.date} ---")
    print(f"Rate: {config.CURRENCY_SYMBOL}{selector.sport.rate_per_hour:g}/hour")
    print(slot_grid.format_grid(selector.slots, selector.selected_slot_values))
    print(f"Summary: {len(free)} of {len(selector.slots)} slots available.")


def print_time_range(selector: SlotSelector):
    time_range = selector.time_range
    if time_range is None:
        print("No time range selected.")
        return
    print(
        f"Selected {time_range.start_time}-{time_range.end_time} "
        f"({time_range.duration:g} h): {config.CURRENCY_SYMBOL}{time_range.total_price:g}"
    )


def show_slots(turf_ref: str, sport_ref: str | None = None, date: str | None = None, demo: bool = False):
    backend = make_backend(demo)
    selector = open_selector(backend, turf_ref, sport_ref, resolve_date(date))
    print_availability_report(selector)


def notify_booking(record: BookingRecord, turf: Turf):
    print(f"\n*** Booking {record.id} confirmed: {record.date} {record.start_time}-{record.end_time} ***")
    telegram_notifier.send_telegram_message(telegram_notifier.format_booking_message(record, turf))


def book(
    turf_ref: str,
    clicks: List[int],
    sport_ref: str | None = None,
    date: str | None = None,
    special_requests: str = "",
    demo: bool = False,
) -> BookingRecord | None:
    """Replays slot clicks on a fresh selector and submits the resulting range."""
    backend = make_backend(demo)
    selector = open_selector(
        backend,
        turf_ref,
        sport_ref,
        resolve_date(date),
        on_booking_complete=lambda record: notify_booking(record, selector.turf),
    )

    for value in clicks:
        try:
            selector.click(value)
        except (BookingError, ValueError) as e:
            print(f"Slot {value}: {e}")

    print_time_range(selector)
    if selector.time_range is None:
        logger.error("Nothing to book.")
        return None

    try:
        return selector.submit(special_requests)
    except SubmissionError as e:
        print(f"Booking failed: {e.message}")
        return None


def print_bookings(records: List[BookingRecord]):
    """Prints one line per booking."""
    print(f"\n--- Bookings ({len(records)}) ---")
    for record in records:
        line = (
            f"[{str(record.status).upper()}] {record.id}: turf {record.turf_id} on {record.date} "
            f"{record.start_time}-{record.end_time} {config.CURRENCY_SYMBOL}{record.total_price:g}"
        )
        if record.cancellation_reason:
            line += f" ({record.cancellation_reason})"
        print(line)


def list_bookings(demo: bool = False) -> List[BookingRecord]:
    backend = make_backend(demo)
    try:
        records = backend.get_user_bookings()
    except BookingError as e:
        logger.error(f"Failed to load bookings: {e.message}")
        sys.exit(1)
    print_bookings(records)
    return records


def cancel(booking_id: str, reason: str | None = None, demo: bool = False) -> bool:
    backend = make_backend(demo)
    try:
        message = backend.cancel_booking(booking_id, reason)
    except BookingError as e:
        print(f"Cancellation failed: {e.message}")
        return False
    print(message)
    return True
