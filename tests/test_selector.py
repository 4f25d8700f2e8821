import random
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from turf_booking.exceptions import (
    AvailabilityFetchError,
    BookingConflictError,
    BookingValidationError,
    GenericSubmissionError,
    SlotUnavailableError,
)
from turf_booking.models import BookingRecord, Sport, TimeSlot, Turf
from turf_booking.selector import Action, SelectionStatus, SlotSelector, next_selection

DATE = "2025-01-01"


@pytest.fixture
def turf():
    return Turf(
        id=7,
        name="Arena",
        sports=[
            Sport(id=1, name="Football", rate_per_hour=1000),
            Sport(id=2, name="Cricket", rate_per_hour=750),
        ],
    )


@pytest.fixture
def backend():
    b = MagicMock()
    b.get_booked_slots.return_value = set()
    return b


@pytest.fixture
def selector(backend, turf):
    s = SlotSelector(backend, turf, fail_closed=False)
    s.select_date(DATE)
    return s


def _record(**overrides):
    data = dict(
        id=1, turf_id=7, sport_id=1, date=DATE, start_time="10:00", end_time="11:00",
        duration=1.0, start_slot_value=20, end_slot_value=21, total_price=1000.0,
    )
    data.update(overrides)
    return BookingRecord(**data)


def _is_contiguous(values):
    return all(b == a + 1 for a, b in zip(values, values[1:]))


# --- Transition table ---

def test_next_selection_actions():
    free = TimeSlot(start_time="02:00", end_time="02:30", value=4)
    booked = TimeSlot(start_time="02:00", end_time="02:30", value=4, is_booked=True)
    assert next_selection([], free) == (Action.START, [4])
    assert next_selection([4], free) == (Action.CLEAR, [])
    assert next_selection([3], free) == (Action.APPEND, [3, 4])
    assert next_selection([7], free) == (Action.RESTART, [4])
    assert next_selection([3], booked) == (Action.REJECT, [3])


# --- Clicks ---

def test_append_run(selector):
    selector.click(12)
    assert selector.selected_slot_values == [12]
    selector.click(13)
    assert selector.selected_slot_values == [12, 13]

    time_range = selector.time_range
    assert time_range.start_time == "06:00"
    assert time_range.end_time == "07:00"
    assert time_range.duration == 1.0
    assert time_range.total_price == 1000
    assert (time_range.start_slot_value, time_range.end_slot_value) == (12, 13)


def test_deselect_returns_to_empty(selector):
    selector.click(5)
    assert selector.click(5) is Action.CLEAR
    assert selector.selected_slot_values == []
    assert selector.status is SelectionStatus.EMPTY
    assert selector.time_range is None


def test_reclick_last_of_longer_run_restarts(selector):
    selector.click(12)
    selector.click(13)
    assert selector.click(13) is Action.RESTART
    assert selector.selected_slot_values == [13]


def test_restart_on_gap_and_backward(selector):
    selector.click(4)
    selector.click(6)
    assert selector.selected_slot_values == [6]
    selector.click(2)
    assert selector.selected_slot_values == [2]


def test_booked_slot_rejected(backend, turf):
    backend.get_booked_slots.return_value = {10}
    selector = SlotSelector(backend, turf)
    selector.select_date(DATE)
    selector.click(9)

    with pytest.raises(SlotUnavailableError):
        selector.click(10)
    assert selector.selected_slot_values == [9]
    assert selector.error == "This time slot is already booked"

    # Next successful click clears the error
    selector.click(20)
    assert selector.error is None


def test_click_without_date_is_ignored(backend, turf):
    selector = SlotSelector(backend, turf)
    assert selector.click(3) is None
    assert selector.selected_slot_values == []


def test_click_out_of_range(selector):
    with pytest.raises(ValueError):
        selector.click(48)


def test_contiguity_and_price_for_random_clicks(backend, turf):
    rng = random.Random(42)
    backend.get_booked_slots.return_value = {5, 17, 30}
    selector = SlotSelector(backend, turf)
    selector.select_date(DATE)

    for _ in range(500):
        try:
            selector.click(rng.choice([rng.randrange(48), selector.selected_slot_values[-1] + 1 if selector.selected_slot_values else 0]))
        except (SlotUnavailableError, ValueError):
            pass
        values = selector.selected_slot_values
        assert _is_contiguous(values)
        if values:
            assert selector.time_range.total_price == 0.5 * len(values) * 1000


# --- Context changes ---

def test_sport_change_resets_selection(selector, backend):
    backend.get_booked_slots.return_value = {1}
    selector.click(20)
    selector.click(21)

    selector.select_sport(2)
    assert selector.selected_slot_values == []
    assert selector.time_range is None
    assert len(selector.slots) == 48
    assert [s.value for s in selector.slots if s.is_booked] == [1]
    backend.get_booked_slots.assert_called_with(7, 2, DATE)

    selector.click(20)
    assert selector.time_range.total_price == 375


def test_date_change_drops_stale_booked_flags(selector, backend):
    backend.get_booked_slots.return_value = {3}
    selector.select_date("2025-01-02")
    assert selector.slots[3].is_booked

    backend.get_booked_slots.return_value = set()
    selector.select_date("2025-01-03")
    assert not any(s.is_booked for s in selector.slots)


def test_turf_change_resets_selection(selector, turf):
    selector.click(8)
    other = Turf(id=9, name="Other", sports=[Sport(id=4, name="Tennis", rate_per_hour=800)])
    selector.select_turf(other)
    assert selector.selected_slot_values == []
    assert selector.sport.id == 4


def test_unknown_sport_rejected(selector):
    with pytest.raises(BookingValidationError):
        selector.select_sport(99)


def test_invalid_date_rejected(selector):
    with pytest.raises(BookingValidationError):
        selector.select_date("01/01/2025")


# --- Availability ---

def test_fail_open_on_fetch_error(backend, turf):
    backend.get_booked_slots.side_effect = AvailabilityFetchError("Backend down")
    selector = SlotSelector(backend, turf, fail_closed=False)
    selector.select_date(DATE)

    assert len(selector.slots) == 48
    assert not any(s.is_booked for s in selector.slots)
    assert selector.availability_error.message == "Backend down"
    assert selector.error == "Backend down"
    selector.click(0)
    assert selector.selected_slot_values == [0]


def test_fail_open_on_unexpected_error(backend, turf):
    backend.get_booked_slots.side_effect = RuntimeError("boom")
    selector = SlotSelector(backend, turf, fail_closed=False)
    selector.select_date(DATE)
    assert isinstance(selector.availability_error, AvailabilityFetchError)
    assert not any(s.is_booked for s in selector.slots)


def test_fail_closed_blocks_all_slots(backend, turf):
    backend.get_booked_slots.side_effect = AvailabilityFetchError()
    selector = SlotSelector(backend, turf, fail_closed=True)
    selector.select_date(DATE)
    assert all(s.is_booked for s in selector.slots)


def test_stale_availability_discarded(selector):
    old_token = selector.generation
    selector.select_date("2025-01-02", fetch=False)

    assert selector.apply_availability(old_token, {1, 2, 3}) is False
    assert not any(s.is_booked for s in selector.slots)
    assert selector.apply_availability(selector.generation, {4}) is True
    assert selector.slots[4].is_booked


def test_refresh_availability_async(selector, backend):
    backend.get_booked_slots.return_value = {11}
    with ThreadPoolExecutor(max_workers=1) as executor:
        applied = selector.refresh_availability_async(executor).result()
    assert applied is True
    assert selector.slots[11].is_booked


def test_refresh_availability_async_stale_after_context_change(selector, backend):
    future = MagicMock()
    executor = MagicMock()
    executor.submit.return_value = future
    backend.get_booked_slots.return_value = {11}

    selector.refresh_availability_async(executor)
    task = executor.submit.call_args[0][0]
    backend.get_booked_slots.return_value = set()
    selector.select_date("2025-01-05")

    # The earlier fetch finishes after the date changed
    assert task() is False
    assert not selector.slots[11].is_booked


# --- Submission ---

def test_submit_without_selection_is_noop(selector, backend):
    assert selector.submit() is None
    backend.create_booking.assert_not_called()


def test_submit_success(backend, turf):
    on_complete = MagicMock()
    selector = SlotSelector(backend, turf, on_booking_complete=on_complete)
    selector.select_date(DATE)
    selector.click(20)
    selector.click(21)
    backend.create_booking.return_value = _record()

    record = selector.submit("  near the gate ")

    request = backend.create_booking.call_args[0][0]
    assert request.turf_id == 7
    assert request.sport_id == 1
    assert request.date == DATE
    assert (request.start_slot_value, request.end_slot_value) == (20, 21)
    assert request.duration == 1.0
    assert request.total_price == 1000
    assert request.special_requests == "near the gate"

    assert record.id == 1
    on_complete.assert_called_once_with(record)
    assert selector.confirmed_booking == record
    assert selector.selected_slot_values == []
    assert selector.slots[20].is_booked and selector.slots[21].is_booked


def test_submit_conflict_keeps_selection(selector, backend):
    selector.click(20)
    selector.click(21)
    backend.create_booking.side_effect = BookingConflictError("Slot 10:00 was just booked by another user")

    with pytest.raises(BookingConflictError):
        selector.submit()
    assert selector.error == "Slot 10:00 was just booked by another user"
    assert selector.selected_slot_values == [20, 21]


def test_submit_generic_error_message(selector, backend):
    selector.click(3)
    backend.create_booking.side_effect = GenericSubmissionError()
    with pytest.raises(GenericSubmissionError):
        selector.submit()
    assert selector.error == "Failed to create booking"
    assert selector.selected_slot_values == [3]


def test_submit_without_sport_is_validation_error(backend):
    selector = SlotSelector(backend, Turf(id=1, name="Empty"))
    selector.select_date(DATE)
    selector.click(3)
    with pytest.raises(BookingValidationError):
        selector.submit()
    backend.create_booking.assert_not_called()


def test_close_discards_state(selector):
    on_close = MagicMock()
    selector.on_close = on_close
    token = selector.generation
    selector.click(6)

    selector.close()
    assert selector.selected_slot_values == []
    assert selector.closed
    assert selector.apply_availability(token, {1}) is False
    on_close.assert_called_once()


def test_select_date_accepts_date_objects(selector):
    from datetime import date, datetime

    selector.select_date(date(2025, 3, 1))
    assert selector.date == "2025-03-01"
    selector.select_date(datetime(2025, 3, 2, 18, 30))
    assert selector.date == "2025-03-02"


def test_submit_unexpected_error_becomes_generic(selector, backend):
    selector.click(20)
    selector.click(21)
    backend.create_booking.side_effect = RuntimeError("socket closed")

    with pytest.raises(GenericSubmissionError) as exc_info:
        selector.submit()
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert selector.error == "Failed to create booking"
    assert selector.selected_slot_values == [20, 21]
    assert selector.confirmed_booking is None
