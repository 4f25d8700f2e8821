import requests
import logging

from turf_booking import config
from turf_booking.models import BookingRecord, Turf

logger = logging.getLogger(__name__)


def format_booking_message(record: BookingRecord, turf: Turf | None = None) -> str:
    """Formats a confirmed booking as a Markdown Telegram message."""
    venue = turf.name if turf else f"Turf {record.turf_id}"
    lines = [
        f"✅ *Booking confirmed* ({record.id})",
        f"{venue}, {record.date}",
        f"{record.start_time}-{record.end_time} ({record.duration:g} h)",
        f"Total: {config.CURRENCY_SYMBOL}{record.total_price:g}",
    ]
    if record.special_requests:
        lines.append(f"Notes: {record.special_requests}")
    return "\n".join(lines)


def send_telegram_message(message: str):
    """Sends a message to the configured Telegram chat."""
    token = config.TELEGRAM_BOT_TOKEN
    chat_id = config.TELEGRAM_CHAT_ID

    if not token or not chat_id:
        logger.warning("Telegram configuration missing. Skipping notification.")
        return

    url = f"https://api.telegram.org/bot{token}/sendMessage"
    payload = {
        "chat_id": chat_id,
        "text": message,
        "parse_mode": "Markdown"
    }

    try:
        response = requests.post(url, json=payload, timeout=config.REQUEST_TIMEOUT)
        response.raise_for_status()
        logger.info("Telegram notification sent successfully.")
    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to send Telegram message: {e}")
