import json
import logging
import os
from datetime import datetime, timezone
from typing import Dict, List

from turf_booking import config
from turf_booking.models import BookingRecord

logger = logging.getLogger(__name__)


def ensure_data_dir():
    """Ensures the data directory exists."""
    if not os.path.exists(config.DATA_DIR):
        os.makedirs(config.DATA_DIR)


def load_bookings() -> List[Dict]:
    """Loads confirmed bookings from the JSON ledger."""
    if not os.path.exists(config.BOOKINGS_FILE):
        logger.info("No bookings file found. Starting fresh.")
        return []
    try:
        with open(config.BOOKINGS_FILE, "r") as f:
            data: Dict = json.load(f)
            if "last_updated" in data and "bookings" in data:
                logger.info(f"Loaded {len(data['bookings'])} bookings, last updated: {data['last_updated']}")
                return data["bookings"]
            else:
                logger.warning("Bookings file has unexpected format. Starting fresh.")
                return []
    except (json.JSONDecodeError, IOError):
        logger.warning("Failed to load bookings file. Starting fresh.")
        return []


def save_bookings(bookings: List[Dict]) -> bool:
    """Writes the full booking list to the JSON ledger with a timestamp."""
    ensure_data_dir()
    try:
        data = {"last_updated": datetime.now(timezone.utc).isoformat(), "bookings": bookings}
        with open(config.BOOKINGS_FILE, "w") as f:
            json.dump(data, f, indent=2)
        return True
    except IOError as e:
        logger.error(f"Failed to save bookings: {e}")
        return False


def save_booking(record: BookingRecord):
    """Appends a confirmed booking to the JSON ledger."""
    bookings = load_bookings()
    bookings.append(record.model_dump())
    if save_bookings(bookings):
        logger.info(f"Saved booking {record.id} to {config.BOOKINGS_FILE}")


def update_booking(record: BookingRecord):
    """Replaces the ledger entry with the same id, e.g. after a cancellation."""
    bookings = load_bookings()
    found = False
    for i, booking in enumerate(bookings):
        if str(booking.get("id")) == str(record.id):
            bookings[i] = record.model_dump()
            found = True
    if not found:
        logger.warning(f"Booking {record.id} not found in {config.BOOKINGS_FILE}")
        return
    if save_bookings(bookings):
        logger.info(f"Updated booking {record.id} in {config.BOOKINGS_FILE}")
