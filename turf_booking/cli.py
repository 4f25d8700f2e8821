import argparse
import logging
import sys

from turf_booking import run

# --- Logging Setup ---

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool):
    """Configures logging to stderr with local time."""
    import time

    level = logging.DEBUG if verbose else logging.INFO
    handler = logging.StreamHandler(sys.stderr)
    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s]: %(name)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    # Use local time instead of UTC for logging
    formatter.converter = time.localtime
    handler.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=[handler],
    )


def parse_arguments(argv=None):
    """Parses command line arguments."""
    parser = argparse.ArgumentParser(description="Check turf availability and book half-hour slots.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging.")
    parser.add_argument("--demo", action="store_true", help="Use the built-in demo turfs instead of the booking API.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("turf", help="Turf id or slug.")
    common.add_argument("--sport", help="Sport id. Defaults to the turf's first sport.")
    common.add_argument("--date", help="Date in YYYY-MM-DD format. Defaults to tomorrow.")

    subparsers.add_parser("slots", parents=[common], help="Show the slot grid for a day.")

    book = subparsers.add_parser("book", parents=[common], help="Select slots and create a booking.")
    book.add_argument("--click", type=int, action="append", default=[], help="Slot value to click (0-47). Repeatable.")
    book.add_argument("--from", dest="from_slot", type=int, help="First slot value of the range.")
    book.add_argument("--to", dest="to_slot", type=int, help="Last slot value of the range. Defaults to --from.")
    book.add_argument("--notes", default="", help="Special requests for the venue.")

    subparsers.add_parser("bookings", help="List your bookings.")

    cancel = subparsers.add_parser("cancel", help="Cancel a booking.")
    cancel.add_argument("booking_id", help="Booking id.")
    cancel.add_argument("--reason", help="Reason given to the venue.")
    return parser.parse_args(argv)


def clicks_from_args(args) -> list:
    """Turns --from/--to into the click sequence that builds that range."""
    if args.from_slot is None:
        return list(args.click)
    to_slot = args.from_slot if args.to_slot is None else args.to_slot
    return list(args.click) + list(range(args.from_slot, to_slot + 1))


def main(argv=None):
    args = parse_arguments(argv)
    setup_logging(args.verbose)

    if args.command == "slots":
        run.show_slots(args.turf, sport_ref=args.sport, date=args.date, demo=args.demo)
    elif args.command == "book":
        record = run.book(
            args.turf,
            clicks_from_args(args),
            sport_ref=args.sport,
            date=args.date,
            special_requests=args.notes,
            demo=args.demo,
        )
        if record is None:
            sys.exit(1)
    elif args.command == "bookings":
        run.list_bookings(demo=args.demo)
    elif args.command == "cancel":
        if not run.cancel(args.booking_id, reason=args.reason, demo=args.demo):
            sys.exit(1)
