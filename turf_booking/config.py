import logging
import os
from typing import Dict

logger = logging.getLogger(__name__)

# --- File Paths ---
DATA_DIR = os.environ.get("TURF_BOOKING_DATA_DIR", "data")
BOOKINGS_FILE = os.path.join(DATA_DIR, "bookings.json")

# --- URLs & API ---
BOOKING_API_BASE = os.environ.get("BOOKING_API_BASE", "http://localhost/creatimatixApp/backend/api/")
BOOKING_API_TOKEN = os.environ.get("BOOKING_API_TOKEN", "")
REQUEST_TIMEOUT = int(os.environ.get("REQUEST_TIMEOUT", "10"))

COMMON_HEADERS: Dict[str, str] = {
    "Accept": "application/json, text/plain, */*",
    "Content-Type": "application/json",
    "User-Agent": os.environ.get("BOOKING_USER_AGENT", "turf-booking/0.1"),
}

# --- Booking policy ---
# Availability fetch failures leave every slot selectable unless this is set.
FAIL_CLOSED_AVAILABILITY = os.environ.get("FAIL_CLOSED_AVAILABILITY", "").lower() in ("1", "true", "yes")
CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "₹")

# --- Telegram ---
TELEGRAM_BOT_TOKEN = os.environ.get("TELEGRAM_BOT_TOKEN")
TELEGRAM_CHAT_ID = os.environ.get("TELEGRAM_CHAT_ID")
if not TELEGRAM_BOT_TOKEN or not TELEGRAM_CHAT_ID:
    logger.warning("Telegram configuration incomplete. Skipping notifications.")
