import logging
from typing import Dict, Iterable, List, Set, Tuple

from turf_booking.models import SLOTS_PER_DAY, TimeSlot

logger = logging.getLogger(__name__)

DAY_END = "23:59"


def slot_bounds(value: int) -> Tuple[str, str]:
    """Returns the (start, end) wall-clock times of a slot index."""
    if not 0 <= value < SLOTS_PER_DAY:
        raise ValueError(f"Slot value {value} outside 0..{SLOTS_PER_DAY - 1}")

    hour, half = divmod(value, 2)
    if half == 0:
        return f"{hour:02d}:00", f"{hour:02d}:30"
    # The last slot stops at 23:59 so it never reads as next-day 00:00.
    end = DAY_END if hour == 23 else f"{hour + 1:02d}:00"
    return f"{hour:02d}:30", end


def generate(date_str: str, booked_values: Iterable[int] = ()) -> List[TimeSlot]:
    """Generates the 48 half-hour slots of a day, flagging the booked ones."""
    booked = set(booked_values)
    unknown = sorted(v for v in booked if not 0 <= v < SLOTS_PER_DAY)
    if unknown:
        logger.warning(f"Ignoring booked values outside the day grid for {date_str}: {unknown}")

    slots = []
    for value in range(SLOTS_PER_DAY):
        start, end = slot_bounds(value)
        slots.append(TimeSlot(start_time=start, end_time=end, value=value, is_booked=value in booked))

    logger.debug(f"Generated {len(slots)} slots for {date_str}, {len(booked) - len(unknown)} booked")
    return slots


def expand_booked_ranges(bookings: Iterable[Dict]) -> Set[int]:
    """Expands backend booking rows into the set of slot values they occupy (both ends inclusive)."""
    booked: Set[int] = set()
    for booking in bookings:
        start = booking.get("start_slot_value")
        end = booking.get("end_slot_value")
        if start is None or end is None:
            logger.warning(f"Booking row without slot range: {booking}")
            continue
        booked.update(range(int(start), int(end) + 1))
    return booked


def format_grid(slots: List[TimeSlot], selected: Iterable[int] = ()) -> str:
    """Renders the grid as text, one slot per line."""
    selected_values = set(selected)
    lines = []
    for slot in slots:
        if slot.value in selected_values:
            prefix = "[SELECTED] "
        elif slot.is_booked:
            prefix = "[BOOKED]   "
        else:
            prefix = "[AVAILABLE]"
        lines.append(f"{prefix} {slot.value:2d}  {slot.start_time}-{slot.end_time}")
    return "\n".join(lines)
